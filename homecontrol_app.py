"""Main home control application."""

import logging
import os
from typing import Any, Dict, Optional

import yaml

from constants import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
    DEFAULT_STATE_FILE,
    MAXIMUM_INTERVAL_SECONDS,
    SYNC_INTERVAL,
)
from control_server import ControlServer
from environment import Environment
from hue_api import HueConnection
from hue_service import PhilipsHueService
from service_manager import ServiceManager

logger = logging.getLogger(__name__)


def load_config(path: str = DEFAULT_CONFIG_FILE) -> Dict[str, Any]:
    """Load and validate the configuration file, filling in defaults."""
    if not os.path.exists(path):
        raise FileNotFoundError(
            f"Configuration file '{path}' not found. "
            f"Please copy '{DEFAULT_CONFIG_FILE}.example' to '{path}' "
            f"and update with your settings."
        )

    try:
        with open(path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in '{path}': {e}")

    if not config:
        raise ValueError(f"'{path}' is empty")
    if not isinstance(config, dict):
        raise ValueError(f"'{path}' must contain a mapping")

    # Validate required sections
    if 'server' not in config:
        raise ValueError("Missing 'server' section in configuration")
    if 'hue' not in config:
        raise ValueError("Missing 'hue' section in configuration")

    server = config['server'] or {}
    server.setdefault('host', DEFAULT_SERVER_HOST)
    server.setdefault('port', DEFAULT_SERVER_PORT)
    server.setdefault('public', None)
    if not isinstance(server['port'], int):
        raise ValueError("'server.port' must be a number")
    config['server'] = server

    hue = config['hue'] or {}
    hue.setdefault('host', None)
    hue.setdefault('username', None)
    hue.setdefault('state_file', DEFAULT_STATE_FILE)
    hue.setdefault('sync_interval', SYNC_INTERVAL)
    interval = hue['sync_interval']
    if not isinstance(interval, (int, float)) or not 0 < interval <= MAXIMUM_INTERVAL_SECONDS:
        raise ValueError(f"'hue.sync_interval' must be in (0, {MAXIMUM_INTERVAL_SECONDS}]")
    config['hue'] = hue

    config['rooms'] = config.get('rooms') or {}
    Environment.from_config(config['rooms'])

    config.setdefault('debug', False)
    return config


class HomeControl:
    """Main server application: the Hue service behind the control endpoint."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.manager = ServiceManager()

        server = config['server']
        self.server = ControlServer(self.manager, server['host'], server['port'], server.get('public'))

        hue = config['hue']
        self.hue_connection = HueConnection(hue['host'], hue['username'], hue['state_file'])
        self.hue_service: Optional[PhilipsHueService] = None

        self.running = False

    async def start(self):
        """Start the server."""
        self.running = True

        api = await self.hue_connection.initialize()
        if api is None:
            logger.warning("Philips Hue is not available, its commands are disabled")
        else:
            self.hue_service = PhilipsHueService(api, self.config['hue']['sync_interval'])
            await self.manager.add_service(self.hue_service)

        if not await self.reload_environment(self.config['rooms']):
            raise ValueError("Unable to load the home configuration, aborting.")

        await self.server.start()

    async def reload_environment(self, rooms: Dict[str, Any]) -> bool:
        """Install the given room configuration. The current one is kept when it is invalid."""
        try:
            environment = Environment.from_config(rooms)
        except ValueError as e:
            logger.error(f"Unable to load the environment configuration: {e}")
            return False

        if not await self.manager.validate_environment(environment):
            return False

        self.server.environment = environment
        logger.info(f"Loaded the environment with {len(environment.room_names())} rooms")
        return True

    async def stop(self):
        """Stop the server."""
        if not self.running:
            return
        self.running = False

        try:
            await self.server.stop()
        except Exception as e:
            logger.debug(f"Error stopping control server: {e}")
        await self.manager.stop()
        await self.hue_connection.close()
