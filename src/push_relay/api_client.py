"""Async client for the Pushover Open Client HTTP API.

Covers the request/response half of the protocol: login, device
registration, fetching and acknowledging queued messages, and icon
downloads. Every call returns parsed data or raises ApiError; httpx
exceptions never escape this module.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
import structlog

from push_relay.config import ApiConfig
from push_relay.errors import ApiError, FetchError, TwoFactorRequired
from push_relay.models import Credentials, Message

log = structlog.get_logger()

LOGIN_PATH = "/1/users/login.json"
DEVICES_PATH = "/1/devices.json"
MESSAGES_PATH = "/1/messages.json"
ACK_PATH = "/1/devices/{device_id}/update_highest_message.json"
ICON_PATH = "/icons/{icon_id}.png"

# Open Client device type
DEVICE_OS = "O"


class ApiClient:
    """Thin wrapper over httpx.AsyncClient.

    Use as an async context manager, or call close() when done.
    """

    def __init__(self, config: ApiConfig, client: httpx.AsyncClient | None = None):
        self.config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout,
            headers={"User-Agent": config.user_agent},
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ApiError(f"{method} {path} failed: {type(e).__name__}: {e}") from e

    @staticmethod
    def _json(resp: httpx.Response, action: str) -> dict[str, Any]:
        """Parse a JSON body and check the API-level status flag."""
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(
                f"{action}: invalid JSON (HTTP {resp.status_code})", resp.status_code
            ) from e

        if not isinstance(data, dict):
            raise ApiError(
                f"{action}: unexpected JSON body (HTTP {resp.status_code})", resp.status_code
            )

        if resp.status_code != 200 or data.get("status") != 1:
            errors = data.get("errors") or [f"HTTP {resp.status_code}"]
            raise ApiError(f"{action} failed: {'; '.join(map(str, errors))}", resp.status_code)
        return data

    async def login(self, email: str, password: str, twofa: str | None = None) -> str:
        """Log in with account credentials and return the session secret.

        Raises:
            TwoFactorRequired: If the account has 2FA and no code was given
            ApiError: On any other failure
        """
        form = {"email": email, "password": password}
        if twofa:
            form["twofa"] = twofa

        resp = await self._request("POST", LOGIN_PATH, data=form)
        if resp.status_code == 412:
            raise TwoFactorRequired("Two-factor code required", resp.status_code)

        data = self._json(resp, "login")
        if not data.get("secret"):
            raise ApiError("login: response has no secret")
        log.info("login_succeeded")
        return data["secret"]

    async def register_device(self, secret: str, name: str) -> str:
        """Register this machine as an Open Client device. Returns the device id."""
        resp = await self._request(
            "POST", DEVICES_PATH, data={"secret": secret, "name": name, "os": DEVICE_OS}
        )
        data = self._json(resp, "register device")
        if not data.get("id"):
            raise ApiError("register device: response has no id")
        log.info("device_registered", name=name)
        return str(data["id"])

    async def fetch_messages(self, credentials: Credentials) -> list[Message] | None:
        """Fetch queued messages.

        Returns:
            A non-empty batch in server order, or None when the queue is empty
        """
        resp = await self._request(
            "GET",
            MESSAGES_PATH,
            params={"secret": credentials.secret, "device_id": credentials.device_id},
        )
        data = self._json(resp, "fetch messages")
        if "messages" not in data:
            raise ApiError("fetch messages: response has no 'messages' key")

        try:
            batch = [Message.from_api(m) for m in data["messages"]]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ApiError(f"fetch messages: malformed message: {e}") from e

        log.debug("messages_fetched", count=len(batch))
        return batch or None

    async def acknowledge(self, credentials: Credentials, max_id: int) -> None:
        """Delete every queued message with id <= max_id."""
        path = ACK_PATH.format(device_id=credentials.device_id)
        resp = await self._request(
            "POST", path, data={"secret": credentials.secret, "message": str(max_id)}
        )
        self._json(resp, "acknowledge")
        log.debug("messages_acknowledged", max_id=max_id)

    async def fetch_icon_bytes(self, icon_id: str) -> bytes:
        """Download an icon's PNG bytes.

        Raises:
            FetchError: On network failure or non-200 response
        """
        path = ICON_PATH.format(icon_id=quote(icon_id, safe=""))
        try:
            resp = await self._client.get(path)
        except httpx.HTTPError as e:
            raise FetchError(f"icon {icon_id!r}: {type(e).__name__}: {e}") from e

        if resp.status_code != 200:
            raise FetchError(f"icon {icon_id!r}: HTTP {resp.status_code}", resp.status_code)
        return resp.content
