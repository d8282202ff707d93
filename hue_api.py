"""Philips Hue bridge REST client."""

import asyncio
import json
import logging
import os
from typing import Any, Dict, List, Optional

import aiohttp

from constants import (
    HUE_DISCOVERY_TIMEOUT,
    HUE_DISCOVERY_URL,
    HUE_ERROR_UNAUTHORIZED,
    HUE_IDENTIFIER_APP,
    HUE_IDENTIFIER_DEVICE,
    HUE_LINK_ATTEMPTS,
    HUE_LINK_TIMEOUT,
    HUE_REQUEST_TIMEOUT,
)
from errors import BackendUnavailableError, UnauthorizedError

logger = logging.getLogger(__name__)


class HueApi:
    """
    Thin client for the bridge's local v1 API:
      - groups / lights / scenes listings (dicts keyed by id)
      - group actions
    Every failure, including timeouts, is raised as BackendUnavailableError;
    rejected credentials as its UnauthorizedError subclass.
    """

    def __init__(self, host: str, username: Optional[str] = None, timeout: float = HUE_REQUEST_TIMEOUT):
        self.host = host
        self.username = username
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None

    @property
    def base_url(self) -> str:
        return f"http://{self.host}/api"

    async def connect(self):
        """Open the HTTP session used for all bridge requests."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()

    async def close(self):
        """Close the HTTP session."""
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        await self.connect()
        url = f"{self.base_url}{path}"
        logger.debug(f"Hue request: {method} {path}")

        async def _do():
            async with self.session.request(method, url, json=body) as resp:
                resp.raise_for_status()
                return await resp.json(content_type=None)

        try:
            data = await asyncio.wait_for(_do(), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise BackendUnavailableError(f"Hue bridge at {self.host} timed out ({method} {path})")
        except (aiohttp.ClientError, ValueError) as e:
            raise BackendUnavailableError(f"Hue bridge request {method} {path} failed: {e}") from e

        errors = _extract_errors(data)
        if errors:
            descriptions = "; ".join(str(e.get("description", e)) for e in errors)
            message = f"Hue bridge rejected {method} {path}: {descriptions}"
            if any(e.get("type") == HUE_ERROR_UNAUTHORIZED for e in errors):
                raise UnauthorizedError(message)
            raise BackendUnavailableError(message)
        return data

    def _user_path(self, path: str) -> str:
        if not self.username:
            raise BackendUnavailableError("No Hue bridge credentials available")
        return f"/{self.username}{path}"

    async def get_groups(self) -> Dict[str, Dict[str, Any]]:
        return await self._request("GET", self._user_path("/groups"))

    async def get_lights(self) -> Dict[str, Dict[str, Any]]:
        return await self._request("GET", self._user_path("/lights"))

    async def get_scenes(self) -> Dict[str, Dict[str, Any]]:
        return await self._request("GET", self._user_path("/scenes"))

    async def set_group_state(self, group_id: int, state: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Apply the given state (on / bri / xy / scene) to all lights in a group."""
        return await self._request("PUT", self._user_path(f"/groups/{group_id}/action"), state)

    async def create_user(self) -> Dict[str, str]:
        """
        Register this server with the bridge. Only succeeds within a short time
        after the bridge's link button has been pressed.
        """
        body = {"devicetype": f"{HUE_IDENTIFIER_APP}#{HUE_IDENTIFIER_DEVICE}", "generateclientkey": True}
        resp = await self._request("POST", "", body)
        success = resp[0]["success"]
        return {"username": success["username"], "clientkey": success.get("clientkey", "")}


def _extract_errors(data: Any) -> List[Dict[str, Any]]:
    """Hue reports failures as a 200 response with [{"error": {"type", "description", ...}}] entries."""
    if not isinstance(data, list):
        return []
    return [
        item["error"]
        for item in data
        if isinstance(item, dict) and isinstance(item.get("error"), dict)
    ]


async def discover_bridge(timeout: float = HUE_DISCOVERY_TIMEOUT) -> Optional[str]:
    """Find the address of a bridge on the local network through Philips' N-UPnP service."""
    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(HUE_DISCOVERY_URL, timeout=aiohttp.ClientTimeout(total=timeout)) as resp:
                resp.raise_for_status()
                bridges = await resp.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        logger.error(f"Hue bridge discovery failed: {e}")
        return None

    if not isinstance(bridges, list) or not bridges:
        return None
    return bridges[0].get("internalipaddress")


class HueConnection:
    """Establishes an authenticated HueApi, creating and persisting credentials when needed."""

    def __init__(self, host: Optional[str], username: Optional[str], state_file: str):
        self.host = host
        self.username = username
        self.state_file = state_file
        self.api: Optional[HueApi] = None

    def _load_state(self) -> Dict[str, Any]:
        if not os.path.exists(self.state_file):
            return {}
        try:
            with open(self.state_file, "r") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable state file '{self.state_file}': {e}")
            return {}

    def _save_state(self, state: Dict[str, Any]):
        with open(self.state_file, "w") as f:
            json.dump(state, f, indent=2)

    async def _verify(self, api: HueApi) -> bool:
        """
        False only when the bridge rejects the credentials. An unreachable
        bridge keeps them; requests fail until it comes back.
        """
        try:
            await api.get_lights()
        except UnauthorizedError as e:
            logger.debug(f"Hue bridge credentials were rejected: {e}")
            return False
        except BackendUnavailableError as e:
            logger.warning(f"Unable to reach the Philips Hue bridge at {api.host}, keeping the credentials: {e}")
        return True

    async def initialize(self) -> Optional[HueApi]:
        """Returns a connected HueApi, or None when no authenticated connection could be made."""
        host = self.host or await discover_bridge()
        if not host:
            logger.error("Unable to discover the Philips Hue bridge on the local network.")
            return None

        state = self._load_state()
        username = self.username or state.get("hue_username")

        api = HueApi(host, username)
        if username:
            if await self._verify(api):
                logger.info(f"Connected to the Philips Hue bridge at {host}")
                self.api = api
                return api
            logger.warning("The stored Philips Hue bridge credentials have been rejected.")

        for attempt in range(1, HUE_LINK_ATTEMPTS + 1):
            logger.info(f"Please press the Philips Hue bridge's link button (attempt {attempt}/{HUE_LINK_ATTEMPTS})...")
            await asyncio.sleep(HUE_LINK_TIMEOUT)
            try:
                user = await api.create_user()
            except (BackendUnavailableError, KeyError, IndexError, TypeError):
                continue

            api.username = user["username"]
            if not await self._verify(api):
                logger.error("Unable to verify the new credentials with the Philips Hue bridge.")
                break

            state.update({"hue_username": user["username"], "hue_clientkey": user["clientkey"]})
            self._save_state(state)
            logger.info("The connection with the Philips Hue bridge has been established.")
            self.api = api
            return api

        await api.close()
        logger.error("Unable to create new credentials with the Philips Hue bridge.")
        return None

    async def close(self):
        if self.api:
            await self.api.close()
