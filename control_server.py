"""WebSocket control endpoint through which room controllers talk to the server."""

import json
import logging
from typing import Any, Dict, Optional, Set

import aiohttp
from aiohttp import web

from constants import CMD_ENVIRONMENT_ROOM_LIST, CMD_ENVIRONMENT_SERVICE_LIST, CMD_HELLO, CONTROL_PATH
from environment import Environment
from errors import MissingParameterError, NotFoundError, TypeMismatchError

logger = logging.getLogger(__name__)


class NetworkClient:
    """A connected controller. Messages are sent as JSON; observers learn about disconnection."""

    def __init__(self, ws: web.WebSocketResponse, ip: Optional[str]):
        self.ws = ws
        self.ip = ip or "unknown"
        self.observers: Set[Any] = set()

    async def send(self, message: Dict[str, Any]):
        await self.ws.send_str(json.dumps(message))

    def add_observer(self, observer):
        """Safe to be called multiple times for the same observer."""
        self.observers.add(observer)

    def notify_disconnected(self):
        for observer in list(self.observers):
            observer.on_client_disconnected(self)
        self.observers.clear()

    def __str__(self) -> str:
        return f"[Client:{self.ip}]"


class ControlServer:
    """
    HTTP server exposing the `/control` WebSocket endpoint. Each text message
    is a JSON object {"command", "messageId", ...parameters}; the response
    echoes the messageId.
    """

    def __init__(self, manager, host: str, port: int, public: Optional[str] = None):
        self.manager = manager
        self.host = host
        self.port = port
        self.public = public
        self.environment = Environment.empty()
        self.runner: Optional[web.AppRunner] = None

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get(CONTROL_PATH, self._handle_control)
        if self.public:
            app.router.add_static("/", self.public)
        return app

    async def start(self):
        self.runner = web.AppRunner(self.make_app())
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        logger.info(f"The server is now listening on {self.host}:{self.port}...")

    async def stop(self):
        if self.runner:
            await self.runner.cleanup()
            self.runner = None

    async def _handle_control(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        client = NetworkClient(ws, request.remote)
        logger.info(f"{client} Connection has been opened.")

        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    if not await self._handle_message(client, msg.data):
                        await ws.close()
                        break
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.warning(f"{client} Connection error: {ws.exception()}")
        finally:
            client.notify_disconnected()
            logger.info(f"{client} Connection has been closed.")

        return ws

    async def _handle_message(self, client: NetworkClient, data: str) -> bool:
        """Handle one message. Returns False when the message was malformed."""
        try:
            message = json.loads(data)
            if not isinstance(message, dict):
                raise ValueError("Messages must be formatted as a valid JSON object.")
            if not isinstance(message.get("command"), str):
                raise ValueError("Messages are required to have a textual command.")
            if not isinstance(message.get("messageId"), str):
                raise ValueError("Messages are required to have been assigned a unique Id.")
        except ValueError as e:
            logger.error(f"{client} Received a message with invalid syntax: {e}")
            return False

        command = message.pop("command")
        message_id = message.pop("messageId")

        try:
            response = await self.handle_command(client, command, message)
        except Exception as e:
            logger.warning(f"{client} Unable to respond to a command message: {e}")
            response = {"error": str(e)}

        await client.send({**response, "messageId": message_id})
        return True

    async def handle_command(self, client: NetworkClient, command: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
        if command == CMD_HELLO:
            return {"ip": client.ip}

        if command == CMD_ENVIRONMENT_ROOM_LIST:
            return {"rooms": self.environment.room_names()}

        if command == CMD_ENVIRONMENT_SERVICE_LIST:
            if "room" not in parameters:
                raise MissingParameterError(command, "room")
            room = parameters["room"]
            if not isinstance(room, str):
                raise TypeMismatchError("room", "string", type(room).__name__)
            try:
                services = self.environment.room_services(room)
            except KeyError:
                raise NotFoundError(f'The room is not known to the environment ("{room}").')
            return {"services": [service.as_dict() for service in services]}

        response = await self.manager.dispatch(client, command, parameters)
        if response is None:
            logger.warning(f"{client} Received an invalid command: {command}")
            return {"error": f"Invalid command: {command}"}
        return response
