"""Helper functions for turning bridge responses into snapshots."""

import asyncio
import logging
import math
from typing import Any, Dict, Mapping, Optional, Tuple

from colours import to_rgb
from constants import HUE_GROUP_TYPES, HUE_MAX_BRIGHTNESS, HUE_SCENE_TYPE
from errors import BackendUnavailableError
from models import BridgeSnapshot, Colour, Group, GroupID, Light, LightID, Scene, SceneID

logger = logging.getLogger(__name__)

# Lights without colour support have no xy and are reported as white
WHITE: Colour = (255, 255, 255)


def _parse_id(value: Any) -> Optional[int]:
    """Bridge ids are numeric strings, e.g. "12"."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_light_ids(values: Any) -> Tuple[LightID, ...]:
    ids = (_parse_id(v) for v in (values or []))
    return tuple(i for i in ids if i is not None)


def extract_groups(response: Mapping[str, Dict[str, Any]]) -> Dict[GroupID, Group]:
    """
    Keep light groups, rooms and zones. Other types (e.g. Entertainment) and
    the implicit all-lights group 0 are dropped.
    """
    groups: Dict[GroupID, Group] = {}
    for key, group in response.items():
        group_id = _parse_id(key)
        if not group_id:
            continue
        if group.get("type") not in HUE_GROUP_TYPES:
            continue
        groups[group_id] = Group(
            id=group_id,
            name=str(group.get("name", "")),
            lights=_parse_light_ids(group.get("lights")),
        )
    return groups


def light_brightness(bri: Any) -> int:
    """Bridge brightness (0-254) as a percentage."""
    try:
        return max(0, min(100, math.floor(float(bri) / HUE_MAX_BRIGHTNESS * 100)))
    except (TypeError, ValueError):
        return 0


def extract_lights(response: Mapping[str, Dict[str, Any]]) -> Dict[LightID, Light]:
    """Reachable lights only. Brightness and colour are filled in when the light is on."""
    lights: Dict[LightID, Light] = {}
    for key, light in response.items():
        light_id = _parse_id(key)
        if light_id is None:
            continue
        state = light.get("state", {}) or {}
        if not state.get("reachable"):
            continue

        on = bool(state.get("on", False))
        brightness: Optional[int] = None
        colour: Optional[Colour] = None
        if on:
            brightness = light_brightness(state.get("bri", 0))
            xy = state.get("xy")
            colour = to_rgb(xy, state.get("bri", 0)) if xy else WHITE

        lights[light_id] = Light(
            id=light_id,
            model=str(light.get("modelid", "")),
            on=on,
            brightness=brightness,
            colour=colour,
        )
    return lights


def extract_scenes(
    response: Mapping[str, Dict[str, Any]],
    colours: Optional[Mapping[SceneID, Colour]] = None,
) -> Dict[SceneID, Scene]:
    """Group scenes only. Known scene colours are attached from `colours`."""
    colours = colours or {}
    scenes: Dict[SceneID, Scene] = {}
    for scene_id, scene in response.items():
        if scene.get("type") != HUE_SCENE_TYPE:
            continue
        group_id = _parse_id(scene.get("group"))
        if group_id is None:
            continue
        scenes[scene_id] = Scene(
            id=scene_id,
            group=group_id,
            name=str(scene.get("name", "")),
            lights=_parse_light_ids(scene.get("lights")),
            colour=colours.get(scene_id),
        )
    return scenes


async def fetch_snapshot(api, scene_colours: Optional[Mapping[SceneID, Colour]] = None) -> BridgeSnapshot:
    """
    Fetch groups, lights and scenes concurrently and build a snapshot from
    them. A failure of any fetch fails the whole snapshot.
    """
    try:
        groups, lights, scenes = await asyncio.gather(
            api.get_groups(),
            api.get_lights(),
            api.get_scenes(),
        )
    except BackendUnavailableError:
        raise
    except Exception as e:
        raise BackendUnavailableError(f"Unable to fetch the Hue bridge state: {e}") from e

    try:
        snapshot = BridgeSnapshot(
            groups=extract_groups(groups),
            lights=extract_lights(lights),
            scenes=extract_scenes(scenes, scene_colours),
        )
    except (AttributeError, TypeError, IndexError, ValueError) as e:
        raise BackendUnavailableError(f"Unexpected response format from the Hue bridge: {e}") from e

    logger.debug(
        f"Retrieved {len(snapshot.groups)} groups, {len(snapshot.lights)} lights "
        f"and {len(snapshot.scenes)} scenes from the Hue bridge"
    )
    return snapshot
