"""Base class for services offering commands and routines to the server."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from models import ServiceCommand, ServiceRoutine


class ServiceBroadcaster(ABC):
    """Enables services to broadcast command updates to all listening clients."""

    @abstractmethod
    async def distribute(self, command: str, parameters: List[Any], message: Dict[str, Any]) -> None:
        """Distribute `message` to all clients subscribed to `command` with `parameters`."""


class Service(ABC):
    """
    A service provides a set of commands clients can issue, and routines the
    server runs on its behalf.

    Lifecycle:
    - initialize(): connect to the backend, must return whether the service is usable
    - get_commands() / get_routines(): read once after a successful initialization
    - stop(): release resources
    """

    @abstractmethod
    def get_identifier(self) -> str:
        """Identifier that is unique to this service."""

    @abstractmethod
    def get_commands(self) -> List[ServiceCommand]:
        """Commands made available by this service. May be cached by the caller."""

    def get_routines(self) -> List[ServiceRoutine]:
        return []

    @abstractmethod
    async def initialize(self, broadcaster: ServiceBroadcaster) -> bool:
        pass

    async def validate(self, options: Dict[str, Any]) -> bool:
        """Validate the options a room configures for this service. Failures are logged by the service."""
        return True

    async def stop(self) -> None:
        pass
