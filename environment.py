"""The rooms the server controls, and the services available in each of them."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple


@dataclass(frozen=True)
class EnvironmentService:
    """A service offered in a room. `options` are interpreted by the service itself."""
    label: str
    service: str
    options: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "service": self.service, "options": dict(self.options)}


class Environment:
    """
    Rooms and their services, as described in the `rooms` section of the
    configuration:

        rooms:
          Kitchen:
            - label: Lights
              service: Philips Hue
              options:
                group: Kitchen

    Immutable once constructed; reloading builds a new instance.
    """

    def __init__(self, rooms: Dict[str, Tuple[EnvironmentService, ...]]):
        self._rooms = rooms

    @classmethod
    def empty(cls) -> "Environment":
        return cls({})

    @classmethod
    def from_config(cls, config: Any) -> "Environment":
        """Parse the `rooms` configuration section. Raises ValueError when it is malformed."""
        if config is None:
            return cls.empty()
        if not isinstance(config, Mapping):
            raise ValueError("'rooms' must be a mapping keyed by room name")

        rooms: Dict[str, Tuple[EnvironmentService, ...]] = {}
        for room, services in config.items():
            if not isinstance(room, str):
                raise ValueError(f"Room names must be text, got: {room!r}")
            if not isinstance(services, list):
                raise ValueError(f'Invalid configuration specified for room "{room}"')

            parsed: List[EnvironmentService] = []
            for entry in services:
                if not isinstance(entry, Mapping):
                    raise ValueError(f'Configuration for room "{room}" must be a list of mappings')
                if not isinstance(entry.get("label"), str):
                    raise ValueError(f'Textual "label" must be given for room "{room}"')
                if not isinstance(entry.get("service"), str):
                    raise ValueError(f'Textual "service" must be given in room "{room}"')

                options = entry.get("options") or {}
                if not isinstance(options, Mapping):
                    raise ValueError(f'"options" of {entry["service"]} in room "{room}" must be a mapping')

                parsed.append(EnvironmentService(entry["label"], entry["service"], dict(options)))
            rooms[room] = tuple(parsed)

        return cls(rooms)

    def rooms(self) -> List[Tuple[str, Tuple[EnvironmentService, ...]]]:
        return list(self._rooms.items())

    def room_names(self) -> List[str]:
        return sorted(self._rooms)

    def room_services(self, room: str) -> Tuple[EnvironmentService, ...]:
        """Raises KeyError for unknown rooms."""
        return self._rooms[room]
