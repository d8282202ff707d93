"""Shared fixtures: an in-memory Hue bridge and fake client handles."""

import copy

import pytest

from errors import BackendUnavailableError


def bridge_groups():
    return {
        "0": {"name": "Group 0", "type": "LightGroup", "lights": ["10", "11", "12"]},
        "1": {"name": "Kitchen", "type": "Room", "lights": ["10", "11"]},
        "2": {"name": "Living Room", "type": "Zone", "lights": ["12"]},
        "3": {"name": "TV area", "type": "Entertainment", "lights": ["12"]},
    }


def bridge_lights():
    return {
        "10": {
            "modelid": "LCT010",
            "state": {"on": True, "bri": 127, "xy": [0.3127, 0.329], "reachable": True},
        },
        "11": {
            "modelid": "LCT001",
            "state": {"on": False, "bri": 254, "xy": [0.7, 0.3], "reachable": True},
        },
        "12": {
            "modelid": "LWB010",
            "state": {"on": True, "bri": 254, "reachable": True},
        },
        "13": {
            "modelid": "LCT010",
            "state": {"on": True, "bri": 254, "xy": [0.3, 0.3], "reachable": False},
        },
    }


def bridge_scenes():
    return {
        "abc123": {"name": "Relax", "type": "GroupScene", "group": "1", "lights": ["10", "11"]},
        "def456": {"name": "Movie", "type": "GroupScene", "group": "2", "lights": ["12"]},
        "ghi789": {"name": "Old style", "type": "LightScene", "lights": ["10"]},
    }


class FakeHueApi:
    """Serves mutable copies of the bridge data above and records group actions."""

    def __init__(self):
        self.groups = bridge_groups()
        self.lights = bridge_lights()
        self.scenes = bridge_scenes()
        self.actions = []
        self.fail = False
        self.closed = False

    def _get(self, data):
        if self.fail:
            raise BackendUnavailableError("bridge unreachable")
        return copy.deepcopy(data)

    async def get_groups(self):
        return self._get(self.groups)

    async def get_lights(self):
        return self._get(self.lights)

    async def get_scenes(self):
        return self._get(self.scenes)

    async def set_group_state(self, group_id, state):
        if self.fail:
            raise BackendUnavailableError("bridge unreachable")
        self.actions.append((group_id, state))
        return [{"success": {f"/groups/{group_id}/action/{k}": v}} for k, v in state.items()]

    async def close(self):
        self.closed = True


class FakeClient:
    """Client handle collecting the messages sent to it."""

    def __init__(self, name, fail=False):
        self.name = name
        self.fail = fail
        self.messages = []
        self.observers = set()

    async def send(self, message):
        if self.fail:
            raise ConnectionResetError("socket closed")
        self.messages.append(message)

    def add_observer(self, observer):
        self.observers.add(observer)

    def __str__(self):
        return f"[Client:{self.name}]"


@pytest.fixture
def hue_api():
    return FakeHueApi()
