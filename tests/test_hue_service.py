"""
Tests for the Philips Hue service commands and its synchronization routine.
"""

import asyncio

import pytest

from conftest import FakeClient
from errors import InvalidArgumentError, NotFoundError
from hue_service import PhilipsHueService
from service_manager import ServiceManager


async def start_service(hue_api):
    manager = ServiceManager()
    service = PhilipsHueService(hue_api, sync_interval=3600)
    assert await manager.add_service(service)
    return manager, service


@pytest.mark.asyncio
class TestPhilipsHueService:
    async def test_commands_are_registered(self, hue_api):
        manager, _ = await start_service(hue_api)
        try:
            commands = {c["command"]: c for c in manager.list_commands("Philips Hue")}
            assert set(commands) == {"power", "brightness", "colour", "scene", "state", "groups"}
            assert manager.commands["state"].subscribe is True
            assert not any(manager.commands[c].subscribe for c in ("power", "brightness", "colour", "scene"))
        finally:
            await manager.stop()

    async def test_bridge_outage_at_startup_recovers(self, hue_api):
        hue_api.fail = True
        manager = ServiceManager()
        service = PhilipsHueService(hue_api, sync_interval=0.01)
        client = FakeClient("a")
        try:
            assert await manager.add_service(service) is True
            assert "state" in manager.commands
            with pytest.raises(NotFoundError):
                await manager.dispatch(client, "state", {"group": "Kitchen"})

            hue_api.fail = False
            for _ in range(100):
                if service.interface.snapshot.groups:
                    break
                await asyncio.sleep(0.01)

            result = await manager.dispatch(client, "state", {"group": "Kitchen"})
            assert result["state"]["on"] is True
        finally:
            await manager.stop()

    async def test_validate_room_options(self, hue_api):
        manager, service = await start_service(hue_api)
        try:
            assert await service.validate({}) is True
            assert await service.validate({"group": "Kitchen"}) is True
            assert await service.validate({"group": "Garage"}) is False
            assert await service.validate({"group": 1}) is False
        finally:
            await manager.stop()

    async def test_validate_before_first_synchronization(self, hue_api):
        hue_api.fail = True
        service = PhilipsHueService(hue_api)
        assert await service.initialize(ServiceManager()) is True

        assert await service.validate({"group": "Garage"}) is True
        assert await service.validate({"group": 1}) is False

    async def test_state_subscription_receives_changes(self, hue_api):
        manager, service = await start_service(hue_api)
        a, b = FakeClient("a"), FakeClient("b")
        try:
            result = await manager.dispatch(a, "state", {"group": "Kitchen"})
            await manager.dispatch(b, "state", {"group": "Kitchen"})
            assert result["group"] == "Kitchen"
            assert result["state"]["on"] is True

            hue_api.lights["10"]["state"]["on"] = False
            await service.synchronize()

            for client in (a, b):
                assert len(client.messages) == 1
                message = client.messages[0]
                assert message["command"] == "state"
                assert message["group"] == "Kitchen"
                assert message["state"]["on"] is False

            manager.on_client_disconnected(a)
            hue_api.lights["10"]["state"]["on"] = True
            await service.synchronize()

            assert len(a.messages) == 1
            assert len(b.messages) == 2
        finally:
            await manager.stop()

    async def test_update_commands(self, hue_api):
        manager, _ = await start_service(hue_api)
        client = FakeClient("a")
        try:
            assert await manager.dispatch(client, "power", {"group": "Kitchen", "on": False}) == {"success": True}
            await manager.dispatch(client, "brightness", {"group": "Kitchen", "brightness": 50})
            await manager.dispatch(client, "colour", {"group": "Kitchen", "colour": "0000FF"})
            await manager.dispatch(client, "scene", {"group": "Kitchen", "scene": "Relax"})

            assert hue_api.actions == [
                (1, {"on": False}),
                (1, {"bri": 127}),
                (1, {"xy": [0.153, 0.048]}),
                (1, {"scene": "abc123"}),
            ]
        finally:
            await manager.stop()

    async def test_invalid_requests(self, hue_api):
        manager, _ = await start_service(hue_api)
        client = FakeClient("a")
        try:
            with pytest.raises(InvalidArgumentError):
                await manager.dispatch(client, "colour", {"group": "Kitchen", "colour": "blue"})
            with pytest.raises(InvalidArgumentError):
                await manager.dispatch(client, "brightness", {"group": "Kitchen", "brightness": 150})
            with pytest.raises(NotFoundError):
                await manager.dispatch(client, "scene", {"group": "Kitchen", "scene": "Movie Night"})
            with pytest.raises(NotFoundError):
                await manager.dispatch(client, "state", {"group": "Garage"})
            assert hue_api.actions == []
            assert manager.subscriptions == {}
        finally:
            await manager.stop()

    async def test_groups(self, hue_api):
        manager, _ = await start_service(hue_api)
        try:
            assert await manager.dispatch(FakeClient("a"), "groups", {}) == {"groups": ["Kitchen", "Living Room"]}
        finally:
            await manager.stop()

    async def test_stop_closes_api(self, hue_api):
        manager, _ = await start_service(hue_api)
        await manager.stop()
        assert hue_api.closed is True
