"""Data models and dataclasses."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

# [r, g, b], each in range of 0-255
Colour = Tuple[int, int, int]

GroupID = int
LightID = int
SceneID = str


# ---------------------------------------------------------------------------
# Bridge snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Group:
    """A light group, room or zone known to the Hue bridge."""
    id: GroupID
    name: str
    lights: Tuple[LightID, ...]


@dataclass(frozen=True)
class Light:
    """A reachable light. Brightness (0-100) and colour are only known while it is on."""
    id: LightID
    model: str
    on: bool
    brightness: Optional[int] = None
    colour: Optional[Colour] = None


@dataclass(frozen=True)
class Scene:
    """A scene that belongs to a group. The colour is only known once it has been activated."""
    id: SceneID
    group: GroupID
    name: str
    lights: Tuple[LightID, ...]
    colour: Optional[Colour] = None


@dataclass(frozen=True)
class BridgeSnapshot:
    """Point-in-time capture of the bridge. Replaced as a whole, never mutated."""
    groups: Dict[GroupID, Group] = field(default_factory=dict)
    lights: Dict[LightID, Light] = field(default_factory=dict)
    scenes: Dict[SceneID, Scene] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "BridgeSnapshot":
        return cls()


@dataclass(frozen=True)
class SceneState:
    name: str
    colour: Optional[Colour]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "colour": list(self.colour) if self.colour is not None else None,
        }


@dataclass(frozen=True)
class ComposedState:
    """State of a group as reported to clients, derived from a snapshot."""
    on: bool
    brightness: int
    colour: Colour
    scenes: Tuple[SceneState, ...] = ()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "on": self.on,
            "brightness": self.brightness,
            "colour": list(self.colour),
            "scenes": [scene.as_dict() for scene in self.scenes],
        }


def structurally_equal(a: Any, b: Any) -> bool:
    """
    Deep equality over the JSON-like shapes exchanged with clients: primitives,
    lists/tuples and flat dicts. Unlike ==, True and 1 are not considered equal.
    """
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(structurally_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, dict) and isinstance(b, dict):
        if a.keys() != b.keys():
            return False
        return all(structurally_equal(a[k], b[k]) for k in a)
    if type(a) is not type(b):
        return False
    return a == b


# ---------------------------------------------------------------------------
# Service commands and routines
# ---------------------------------------------------------------------------

class ParameterType(Enum):
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"


@dataclass(frozen=True)
class ServiceCommandParameter:
    """A named, typed parameter of a service command."""
    name: str
    type: ParameterType
    optional: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type.value, "optional": self.optional}


@dataclass(frozen=True)
class ServiceCommand:
    """
    A command offered by a service. The handler receives the parameter values
    positionally, in declaration order. Subscribable commands register the
    issuing client for broadcasts keyed by (command, parameter values).
    """
    command: str
    description: str
    handler: Callable[..., Awaitable[Dict[str, Any]]]
    parameters: Tuple[ServiceCommandParameter, ...] = ()
    subscribe: bool = False


@dataclass(frozen=True)
class ServiceRoutine:
    """Behaviour a service wants to have executed at a fixed interval."""
    callback: Callable[[], Awaitable[Any]]
    description: str
    interval_seconds: float
    run_immediately: bool = False


@dataclass
class Subscription:
    """Clients that want broadcasts for one command with one set of parameters."""
    command: str
    parameters: List[Any]
    clients: set = field(default_factory=set)
