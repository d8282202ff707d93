"""Philips Hue service: commands for controlling light groups and the sync routine."""

import logging
from typing import Any, Dict, List, Optional

from colours import parse_hex_colour
from constants import (
    CMD_BRIGHTNESS,
    CMD_COLOUR,
    CMD_GROUPS,
    CMD_POWER,
    CMD_SCENE,
    CMD_STATE,
    SYNC_INTERVAL,
)
from errors import BackendUnavailableError
from hue_interface import HueInterface
from models import ParameterType, ServiceCommand, ServiceCommandParameter, ServiceRoutine
from service import Service, ServiceBroadcaster

logger = logging.getLogger(__name__)

_GROUP = ServiceCommandParameter("group", ParameterType.STRING)


class PhilipsHueService(Service):
    """Controls the lights, rooms and zones of a Philips Hue bridge."""

    def __init__(self, api, sync_interval: float = SYNC_INTERVAL):
        self.api = api
        self.interface = HueInterface(api)
        self.sync_interval = sync_interval
        self.broadcaster: Optional[ServiceBroadcaster] = None

    def get_identifier(self) -> str:
        return "Philips Hue"

    async def initialize(self, broadcaster: ServiceBroadcaster) -> bool:
        """
        Fetch the initial bridge state so that state queries can be answered
        right away. An unreachable bridge is picked up by the sync routine.
        """
        self.broadcaster = broadcaster
        try:
            await self.interface.synchronize()
        except BackendUnavailableError as e:
            logger.warning(f"Unable to retrieve the initial Philips Hue state, retrying in {self.sync_interval}s: {e}")
        return True

    async def validate(self, options: Dict[str, Any]) -> bool:
        """Rooms may name the light `group` they control."""
        group = options.get("group")
        if group is None:
            return True
        if not isinstance(group, str):
            logger.error(f"The Philips Hue group must be given as text, got: {group!r}")
            return False

        # Group names cannot be checked before the bridge has been reached.
        if not self.interface.snapshot.groups:
            return True
        if group not in self.interface.group_names():
            logger.error(f'The Philips Hue group is not known to the bridge: "{group}"')
            return False
        return True

    async def stop(self):
        close = getattr(self.api, "close", None)
        if close is not None:
            await close()

    def get_commands(self) -> List[ServiceCommand]:
        return [
            ServiceCommand(
                command=CMD_POWER,
                description="Turns the lights in a group on or off.",
                handler=self.handle_power,
                parameters=(_GROUP, ServiceCommandParameter("on", ParameterType.BOOLEAN)),
            ),
            ServiceCommand(
                command=CMD_BRIGHTNESS,
                description="Changes the brightness of the lights in a group (0-100).",
                handler=self.handle_brightness,
                parameters=(_GROUP, ServiceCommandParameter("brightness", ParameterType.NUMBER)),
            ),
            ServiceCommand(
                command=CMD_COLOUR,
                description='Changes the colour of the lights in a group ("RRGGBB").',
                handler=self.handle_colour,
                parameters=(_GROUP, ServiceCommandParameter("colour", ParameterType.STRING)),
            ),
            ServiceCommand(
                command=CMD_SCENE,
                description="Activates one of the group's scenes.",
                handler=self.handle_scene,
                parameters=(_GROUP, ServiceCommandParameter("scene", ParameterType.STRING)),
            ),
            ServiceCommand(
                command=CMD_STATE,
                description="Returns the state of a group, and subscribes to its changes.",
                handler=self.handle_state,
                parameters=(_GROUP,),
                subscribe=True,
            ),
            ServiceCommand(
                command=CMD_GROUPS,
                description="Lists the names of the known light groups.",
                handler=self.handle_groups,
            ),
        ]

    def get_routines(self) -> List[ServiceRoutine]:
        return [
            ServiceRoutine(
                callback=self.synchronize,
                description="Synchronize the Philips Hue bridge state",
                interval_seconds=self.sync_interval,
            ),
        ]

    # ------------------------------------------------------------------
    # Command handlers
    # ------------------------------------------------------------------

    async def handle_power(self, group: str, on: bool) -> Dict[str, Any]:
        await self.interface.update(group, on=on)
        return {"success": True}

    async def handle_brightness(self, group: str, brightness: float) -> Dict[str, Any]:
        await self.interface.update(group, brightness=brightness)
        return {"success": True}

    async def handle_colour(self, group: str, colour: str) -> Dict[str, Any]:
        await self.interface.update(group, colour=parse_hex_colour(colour))
        return {"success": True}

    async def handle_scene(self, group: str, scene: str) -> Dict[str, Any]:
        await self.interface.update(group, scene=scene)
        return {"success": True}

    async def handle_state(self, group: str) -> Dict[str, Any]:
        return {"group": group, "state": self.interface.compose_state(group).as_dict()}

    async def handle_groups(self) -> Dict[str, Any]:
        return {"groups": self.interface.group_names()}

    # ------------------------------------------------------------------
    # Routine
    # ------------------------------------------------------------------

    async def synchronize(self):
        """Synchronize with the bridge and broadcast the groups whose state changed."""
        updates = await self.interface.synchronize()
        if self.broadcaster is None:
            return

        for name, state in updates.items():
            await self.broadcaster.distribute(CMD_STATE, [name], {"group": name, "state": state.as_dict()})
