"""Synchronization of Philips Hue bridge state, and updates pushed to it."""

import dataclasses
import logging
import math
from typing import Dict, List, Optional

from colours import to_xy, validate_rgb
from constants import HUE_DEFAULT_MODEL, HUE_MAX_BRIGHTNESS
from errors import BackendUnavailableError, InvalidArgumentError, NotFoundError
from hue_helpers import fetch_snapshot
from models import (
    BridgeSnapshot,
    Colour,
    ComposedState,
    Group,
    GroupID,
    SceneID,
    SceneState,
    structurally_equal,
)

logger = logging.getLogger(__name__)


def _mean_colour(colours: List[Colour]) -> Colour:
    if not colours:
        return (0, 0, 0)
    count = len(colours)
    return (
        math.floor(sum(c[0] for c in colours) / count),
        math.floor(sum(c[1] for c in colours) / count),
        math.floor(sum(c[2] for c in colours) / count),
    )


def compose_group_state(group: Group, snapshot: BridgeSnapshot) -> ComposedState:
    """
    Summarise the lights of `group` in `snapshot`: on when any light is on,
    brightness and colour averaged over the lights that are on.
    """
    lights = [snapshot.lights[i] for i in group.lights if i in snapshot.lights]
    lit = [light for light in lights if light.on]

    brightness = 0
    if lit:
        brightness = math.floor(sum(light.brightness or 0 for light in lit) / len(lit))

    colour = _mean_colour([light.colour for light in lit if light.colour is not None])

    scenes = sorted(
        (SceneState(name=scene.name, colour=scene.colour)
         for scene in snapshot.scenes.values() if scene.group == group.id),
        key=lambda s: s.name,
    )

    return ComposedState(on=bool(lit), brightness=brightness, colour=colour, scenes=tuple(scenes))


class HueInterface:
    """
    Owns the cached bridge snapshot. `synchronize()` replaces it and reports
    the groups whose composed state changed; `update()` pushes changes to the
    bridge, which are picked up by the next synchronization.
    """

    def __init__(self, api):
        self.api = api
        self.snapshot: BridgeSnapshot = BridgeSnapshot.empty()

        # Scene colours are not known to the bridge; they're learned after activation.
        self._scene_colours: Dict[SceneID, Colour] = {}
        self._activated_scenes: Dict[SceneID, GroupID] = {}

    # ------------------------------------------------------------------
    # State getters
    # ------------------------------------------------------------------

    def _find_group(self, name: str, snapshot: BridgeSnapshot) -> Group:
        for group in snapshot.groups.values():
            if group.name == name:
                return group
        raise NotFoundError(f'The light group is not known to the Philips Hue bridge ("{name}").')

    def find_group_id(self, name: str, snapshot: Optional[BridgeSnapshot] = None) -> GroupID:
        """Resolve a group name to its id. O(n), group counts are small."""
        return self._find_group(name, self.snapshot if snapshot is None else snapshot).id

    def compose_state(self, group_name: str, snapshot: Optional[BridgeSnapshot] = None) -> ComposedState:
        snapshot = self.snapshot if snapshot is None else snapshot
        return compose_group_state(self._find_group(group_name, snapshot), snapshot)

    def group_names(self) -> List[str]:
        return sorted(group.name for group in self.snapshot.groups.values())

    def group_model(self, group_id: GroupID) -> str:
        """
        Light model used for colour conversion of a group: the first of its
        lights known to the snapshot. Groups mixing gamuts are converted with
        that light's gamut.
        """
        group = self.snapshot.groups.get(group_id)
        if group:
            for light_id in group.lights:
                light = self.snapshot.lights.get(light_id)
                if light and light.model:
                    return light.model
        return HUE_DEFAULT_MODEL

    # ------------------------------------------------------------------
    # Synchronization
    # ------------------------------------------------------------------

    def _learn_scene_colours(self, snapshot: BridgeSnapshot) -> BridgeSnapshot:
        """Record the colour of recently activated scenes, as shown by their group now."""
        # Scenes deleted on the bridge are forgotten.
        self._scene_colours = {
            scene_id: colour for scene_id, colour in self._scene_colours.items() if scene_id in snapshot.scenes
        }
        if not self._activated_scenes:
            return snapshot

        for scene_id, group_id in self._activated_scenes.items():
            group = snapshot.groups.get(group_id)
            if group is None:
                continue
            state = compose_group_state(group, snapshot)
            if state.on:
                self._scene_colours[scene_id] = state.colour
        self._activated_scenes = {}

        scenes = {
            scene_id: dataclasses.replace(scene, colour=self._scene_colours.get(scene_id, scene.colour))
            for scene_id, scene in snapshot.scenes.items()
        }
        return dataclasses.replace(snapshot, scenes=scenes)

    async def synchronize(self) -> Dict[str, ComposedState]:
        """
        Fetch a fresh snapshot and return the composed state of every group
        (by name) that changed since the previous one. Groups that are new,
        deleted or renamed are not reported. On failure the cached snapshot
        is left untouched.
        """
        snapshot = await fetch_snapshot(self.api, self._scene_colours)
        snapshot = self._learn_scene_colours(snapshot)

        previous = self.snapshot
        updates: Dict[str, ComposedState] = {}

        for group in snapshot.groups.values():
            old_group = previous.groups.get(group.id)
            if old_group is None or old_group.name != group.name:
                continue

            old_state = compose_group_state(old_group, previous)
            new_state = compose_group_state(group, snapshot)
            if not structurally_equal(old_state.as_dict(), new_state.as_dict()):
                updates[group.name] = new_state

        self.snapshot = snapshot

        if updates:
            logger.info(f"Hue groups changed: {', '.join(sorted(updates))}")
        return updates

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    async def update(
        self,
        group_name: str,
        on: Optional[bool] = None,
        brightness: Optional[float] = None,
        colour: Optional[Colour] = None,
        scene: Optional[str] = None,
    ) -> None:
        """
        Push a light update for the group to the bridge. Only the given
        properties are sent, in a single request. Everything is validated
        before the bridge is contacted.
        """
        group_id = self.find_group_id(group_name)
        state: Dict[str, object] = {}

        if on is not None:
            state["on"] = bool(on)

        if brightness is not None:
            if isinstance(brightness, bool) or not math.isfinite(brightness) or not 0 <= brightness <= 100:
                raise InvalidArgumentError("The brightness must be given as a percentage, between 0 and 100.")
            state["bri"] = math.floor((brightness / 100) * HUE_MAX_BRIGHTNESS)

        if colour is not None:
            x, y = to_xy(validate_rgb(colour), self.group_model(group_id))
            state["xy"] = [round(x, 4), round(y, 4)]

        scene_id: Optional[SceneID] = None
        if scene is not None:
            for candidate in self.snapshot.scenes.values():
                if candidate.group == group_id and candidate.name == scene:
                    scene_id = candidate.id
                    break
            if scene_id is None:
                raise NotFoundError(f'The light scene is not known to Philips Hue ("{scene}").')
            state["scene"] = scene_id

        if not state:
            raise InvalidArgumentError("At least one property must be given to update a light group.")

        logger.debug(f"Updating Hue group {group_name} ({group_id}): {state}")
        try:
            await self.api.set_group_state(group_id, state)
        except BackendUnavailableError:
            raise
        except Exception as e:
            raise BackendUnavailableError(f"Unable to update the light group ({group_name}): {e}") from e

        if scene_id is not None:
            self._activated_scenes[scene_id] = group_id
