"""Registry and dispatcher for service commands, and broadcasts to subscribed clients."""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from constants import CMD_SERVICE_COMMANDS
from environment import Environment
from errors import MissingParameterError, TypeMismatchError
from models import ParameterType, ServiceCommand, Subscription
from scheduler import RoutineScheduler
from service import Service, ServiceBroadcaster

logger = logging.getLogger(__name__)

SubscriptionKey = Tuple[str, Tuple[Tuple[str, Any], ...]]


def _type_name(value: Any) -> str:
    if isinstance(value, bool):
        return ParameterType.BOOLEAN.value
    if isinstance(value, (int, float)):
        return ParameterType.NUMBER.value
    if isinstance(value, str):
        return ParameterType.STRING.value
    if value is None:
        return "null"
    if isinstance(value, (list, tuple)):
        return "array"
    return "object"


def _matches_type(value: Any, parameter_type: ParameterType) -> bool:
    if parameter_type is ParameterType.BOOLEAN:
        return isinstance(value, bool)
    if parameter_type is ParameterType.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if parameter_type is ParameterType.STRING:
        return isinstance(value, str)
    return False


def _subscription_key(command: str, parameters: List[Any]) -> SubscriptionKey:
    """Parameters are keyed with their type so that e.g. True and 1 stay distinct."""
    return command, tuple((_type_name(v), v) for v in parameters)


class ServiceManager(ServiceBroadcaster):
    """
    Owns the services, their commands and routines, and the subscriptions
    clients hold on subscribable commands.

    Client handles must provide `async send(message)`; when they also provide
    `add_observer(observer)` the manager is told through
    `on_client_disconnected(client)` when they go away.
    """

    def __init__(self, scheduler: Optional[RoutineScheduler] = None):
        self.scheduler = scheduler or RoutineScheduler()
        self.services: Dict[str, Service] = {}
        self.commands: Dict[str, ServiceCommand] = {}
        self.command_services: Dict[str, Optional[str]] = {}
        self.subscriptions: Dict[SubscriptionKey, Subscription] = {}

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------

    async def add_service(self, service: Service) -> bool:
        """Initialize `service` and activate its commands and routines."""
        identifier = service.get_identifier()

        if not await service.initialize(self):
            logger.warning(f"Unable to initialize {identifier}, skipping...")
            return False

        self.services[identifier] = service

        for command in service.get_commands():
            self.register(command, service=identifier)

        for routine in service.get_routines():
            self.scheduler.schedule(routine)

        logger.info(f"Service {identifier} is ready ({len(service.get_commands())} commands)")
        return True

    async def validate_environment(self, environment: Environment) -> bool:
        """Check that every room only uses known services, with options they accept."""
        for room, services in environment.rooms():
            for entry in services:
                service = self.services.get(entry.service)
                if service is None:
                    logger.error(f'Unknown service in room "{room}": {entry.service}')
                    return False

                if not await service.validate(entry.options):
                    logger.error(f'Invalid options for {entry.service} in room "{room}": {entry.options}')
                    return False

        return True

    async def stop(self):
        await self.scheduler.stop()
        for identifier, service in self.services.items():
            try:
                await service.stop()
            except Exception as e:
                logger.warning(f"Error while stopping {identifier}: {e}")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def register(self, command: ServiceCommand, service: Optional[str] = None):
        """Register `command`, replacing any command with the same identifier."""
        self.commands[command.command] = command
        self.command_services[command.command] = service

    def list_commands(self, service: str) -> List[Dict[str, Any]]:
        """Describe the commands registered for `service`."""
        return [
            {
                "command": command.command,
                "description": command.description,
                "parameters": [p.as_dict() for p in command.parameters],
            }
            for identifier, command in self.commands.items()
            if self.command_services.get(identifier) == service
        ]

    def _collect_parameters(self, command: ServiceCommand, parameters: Dict[str, Any]) -> List[Any]:
        values: List[Any] = []
        for description in command.parameters:
            if description.name not in parameters:
                if not description.optional:
                    raise MissingParameterError(command.command, description.name)
                break

            value = parameters[description.name]
            if not _matches_type(value, description.type):
                raise TypeMismatchError(description.name, description.type.value, _type_name(value))
            values.append(value)
        return values

    async def dispatch(self, client: Any, command: str, parameters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Validate and execute `command`. Returns None when the command is not
        known here, so that the caller can route it elsewhere. Validation and
        handler failures are raised to the caller.
        """
        service_command = self.commands.get(command)
        if service_command is None:
            if command == CMD_SERVICE_COMMANDS and isinstance(parameters.get("service"), str):
                return {"commands": self.list_commands(parameters["service"])}
            logger.debug(f"No service command registered for: {command}")
            return None

        values = self._collect_parameters(service_command, parameters)
        result = await service_command.handler(*values)

        if service_command.subscribe:
            self.subscribe(client, command, values)

        return result

    # ------------------------------------------------------------------
    # Subscriptions and broadcasts
    # ------------------------------------------------------------------

    def subscribe(self, client: Any, command: str, parameters: List[Any]):
        """Add `client` to the subscription for (command, parameters), creating it when needed."""
        key = _subscription_key(command, parameters)
        subscription = self.subscriptions.get(key)
        if subscription is None:
            subscription = Subscription(command=command, parameters=list(parameters))
            self.subscriptions[key] = subscription
        elif client in subscription.clients:
            return

        subscription.clients.add(client)

        add_observer = getattr(client, "add_observer", None)
        if add_observer is not None:
            add_observer(self)

        logger.debug(f"{client} Subscribed to {command} broadcasts.")

    async def distribute(self, command: str, parameters: List[Any], message: Dict[str, Any]) -> None:
        """Send `message` to every client subscribed to exactly (command, parameters)."""
        subscription = self.subscriptions.get(_subscription_key(command, parameters))
        if subscription is None:
            return

        clients = list(subscription.clients)
        payload = {"command": command, **message}
        results = await asyncio.gather(
            *(client.send(payload) for client in clients),
            return_exceptions=True,
        )
        for client, result in zip(clients, results):
            if isinstance(result, Exception):
                logger.warning(f"{client} Unable to deliver {command} broadcast: {result}")

    def on_client_disconnected(self, client: Any):
        """Stop broadcasting to `client`; subscriptions left without clients are dropped."""
        for key, subscription in list(self.subscriptions.items()):
            subscription.clients.discard(client)
            if not subscription.clients:
                del self.subscriptions[key]
