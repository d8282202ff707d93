"""
Unit tests for Hue state synchronization, composed group state and updates.
"""

import json

import pytest

from colours import gamut_for_model, in_gamut
from errors import BackendUnavailableError, InvalidArgumentError, NotFoundError
from hue_interface import HueInterface, compose_group_state
from models import BridgeSnapshot, ComposedState, Group, Light, Scene, SceneState


def kitchen_snapshot():
    return BridgeSnapshot(
        groups={1: Group(id=1, name="Kitchen", lights=(10, 11))},
        lights={
            10: Light(id=10, model="LCT010", on=True, brightness=50, colour=(255, 0, 0)),
            11: Light(id=11, model="LCT010", on=False),
        },
        scenes={"s1": Scene(id="s1", group=1, name="Relax", lights=(10, 11))},
    )


class TestComposeState:
    def test_kitchen(self, hue_api):
        interface = HueInterface(hue_api)
        interface.snapshot = kitchen_snapshot()

        state = interface.compose_state("Kitchen")

        assert state == ComposedState(
            on=True,
            brightness=50,
            colour=(255, 0, 0),
            scenes=(SceneState(name="Relax", colour=None),),
        )
        assert state.as_dict() == {
            "on": True,
            "brightness": 50,
            "colour": [255, 0, 0],
            "scenes": [{"name": "Relax", "colour": None}],
        }

    def test_deterministic(self, hue_api):
        interface = HueInterface(hue_api)
        snapshot = kitchen_snapshot()
        assert interface.compose_state("Kitchen", snapshot) == interface.compose_state("Kitchen", snapshot)

    def test_averages_over_lights_that_are_on(self):
        snapshot = BridgeSnapshot(
            groups={1: Group(id=1, name="Hall", lights=(1, 2, 3, 4))},
            lights={
                1: Light(id=1, model="LCT010", on=True, brightness=25, colour=(255, 0, 0)),
                2: Light(id=2, model="LCT010", on=True, brightness=50, colour=(0, 0, 255)),
                3: Light(id=3, model="LCT010", on=False),
            },
        )
        state = compose_group_state(snapshot.groups[1], snapshot)

        assert state.on is True
        assert state.brightness == 37
        assert state.colour == (127, 0, 127)

    def test_all_lights_off(self):
        snapshot = BridgeSnapshot(
            groups={1: Group(id=1, name="Hall", lights=(1,))},
            lights={1: Light(id=1, model="LCT010", on=False)},
        )
        state = compose_group_state(snapshot.groups[1], snapshot)
        assert state == ComposedState(on=False, brightness=0, colour=(0, 0, 0))

    def test_unknown_group(self, hue_api):
        interface = HueInterface(hue_api)
        interface.snapshot = kitchen_snapshot()
        with pytest.raises(NotFoundError):
            interface.compose_state("Garage")
        with pytest.raises(NotFoundError):
            interface.find_group_id("Garage")

    def test_find_group_id(self, hue_api):
        interface = HueInterface(hue_api)
        assert interface.find_group_id("Kitchen", kitchen_snapshot()) == 1


@pytest.mark.asyncio
class TestSynchronize:
    async def test_first_synchronization_reports_nothing(self, hue_api):
        interface = HueInterface(hue_api)
        assert await interface.synchronize() == {}
        assert interface.group_names() == ["Kitchen", "Living Room"]

    async def test_unchanged_bridge_reports_nothing(self, hue_api):
        interface = HueInterface(hue_api)
        await interface.synchronize()
        await interface.synchronize()
        assert await interface.synchronize() == {}

    async def test_changed_group_is_reported(self, hue_api):
        interface = HueInterface(hue_api)
        await interface.synchronize()

        hue_api.lights["10"]["state"]["on"] = False
        updates = await interface.synchronize()

        assert list(updates) == ["Kitchen"]
        assert updates["Kitchen"].on is False
        assert updates["Kitchen"].brightness == 0

    async def test_irrelevant_change_replaces_snapshot(self, hue_api):
        interface = HueInterface(hue_api)
        await interface.synchronize()

        hue_api.lights["11"]["modelid"] = "LCT015"
        assert await interface.synchronize() == {}
        assert interface.snapshot.lights[11].model == "LCT015"

    async def test_reused_name_is_a_new_group(self, hue_api):
        interface = HueInterface(hue_api)
        await interface.synchronize()

        kitchen = hue_api.groups.pop("1")
        kitchen["lights"] = ["12"]
        hue_api.groups["5"] = kitchen
        assert await interface.synchronize() == {}
        assert interface.find_group_id("Kitchen") == 5

    async def test_deleted_group_is_dropped(self, hue_api):
        interface = HueInterface(hue_api)
        await interface.synchronize()

        del hue_api.groups["2"]
        hue_api.lights["12"]["state"]["on"] = False
        assert await interface.synchronize() == {}

    async def test_unreachable_lights_are_absent(self, hue_api):
        interface = HueInterface(hue_api)
        await interface.synchronize()

        hue_api.lights["12"]["state"]["reachable"] = False
        updates = await interface.synchronize()

        assert updates["Living Room"].on is False
        assert 12 not in interface.snapshot.lights

    async def test_failed_synchronization_keeps_snapshot(self, hue_api):
        interface = HueInterface(hue_api)
        await interface.synchronize()
        snapshot = interface.snapshot

        hue_api.fail = True
        with pytest.raises(BackendUnavailableError):
            await interface.synchronize()
        assert interface.snapshot is snapshot


@pytest.mark.asyncio
class TestUpdate:
    async def _interface(self, hue_api):
        interface = HueInterface(hue_api)
        await interface.synchronize()
        return interface

    async def test_brightness_bounds(self, hue_api):
        interface = await self._interface(hue_api)

        for value in (-1, 101):
            with pytest.raises(InvalidArgumentError):
                await interface.update("Kitchen", brightness=value)
        assert hue_api.actions == []

        await interface.update("Kitchen", brightness=0)
        await interface.update("Kitchen", brightness=100)
        assert hue_api.actions == [(1, {"bri": 0}), (1, {"bri": 254})]

    async def test_brightness_must_be_finite(self, hue_api):
        interface = await self._interface(hue_api)

        # json.loads accepts NaN and Infinity
        for value in (json.loads('{"b": NaN}')["b"], float("inf"), float("-inf")):
            with pytest.raises(InvalidArgumentError):
                await interface.update("Kitchen", brightness=value)
        assert hue_api.actions == []

    async def test_only_given_fields_are_sent(self, hue_api):
        interface = await self._interface(hue_api)

        await interface.update("Kitchen", on=False)
        assert hue_api.actions == [(1, {"on": False})]

    async def test_colour_is_converted_within_gamut(self, hue_api):
        interface = await self._interface(hue_api)

        await interface.update("Kitchen", colour=(0, 0, 255))
        group_id, state = hue_api.actions[0]

        assert group_id == 1
        assert list(state) == ["xy"]
        assert in_gamut(tuple(state["xy"]), gamut_for_model("LCT010"))
        # Pure blue lies outside gamut C and is clamped onto its blue corner
        assert state["xy"] == [0.153, 0.048]

    async def test_invalid_colour(self, hue_api):
        interface = await self._interface(hue_api)
        with pytest.raises(InvalidArgumentError):
            await interface.update("Kitchen", colour=(300, 0, 0))
        assert hue_api.actions == []

    async def test_unknown_scene_issues_no_request(self, hue_api):
        interface = await self._interface(hue_api)

        with pytest.raises(NotFoundError):
            await interface.update("Kitchen", scene="Movie Night")
        # "Movie" belongs to a different group
        with pytest.raises(NotFoundError):
            await interface.update("Kitchen", scene="Movie")
        assert hue_api.actions == []

    async def test_unknown_group(self, hue_api):
        interface = await self._interface(hue_api)
        with pytest.raises(NotFoundError):
            await interface.update("Garage", on=True)

    async def test_empty_update(self, hue_api):
        interface = await self._interface(hue_api)
        with pytest.raises(InvalidArgumentError):
            await interface.update("Kitchen")

    async def test_scene_colour_is_learned_after_activation(self, hue_api):
        interface = await self._interface(hue_api)

        await interface.update("Kitchen", scene="Relax")
        assert hue_api.actions == [(1, {"scene": "abc123"})]

        updates = await interface.synchronize()
        relax = updates["Kitchen"].scenes[0]
        assert relax.name == "Relax"
        assert relax.colour == interface.compose_state("Kitchen").colour

        # The learned colour is kept by later snapshots
        assert await interface.synchronize() == {}
        assert interface.snapshot.scenes["abc123"].colour == relax.colour

    async def test_deleted_scene_colour_is_forgotten(self, hue_api):
        interface = await self._interface(hue_api)

        await interface.update("Kitchen", scene="Relax")
        await interface.synchronize()
        assert "abc123" in interface._scene_colours

        del hue_api.scenes["abc123"]
        await interface.synchronize()
        assert interface._scene_colours == {}

        # A scene re-created under the same id starts without a colour
        hue_api.scenes["abc123"] = {"name": "Relax", "type": "GroupScene", "group": "1", "lights": ["10"]}
        await interface.synchronize()
        assert interface.snapshot.scenes["abc123"].colour is None

    async def test_update_does_not_patch_snapshot(self, hue_api):
        interface = await self._interface(hue_api)
        before = interface.compose_state("Kitchen")

        await interface.update("Kitchen", on=False)
        assert interface.compose_state("Kitchen") == before

    async def test_backend_failure(self, hue_api):
        interface = await self._interface(hue_api)
        hue_api.fail = True
        with pytest.raises(BackendUnavailableError):
            await interface.update("Kitchen", on=True)

    async def test_group_model_uses_first_known_light(self, hue_api):
        interface = await self._interface(hue_api)
        assert interface.group_model(1) == "LCT010"
        assert interface.group_model(42) == "LCT010"
        assert interface.group_model(2) == "LWB010"
