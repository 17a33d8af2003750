"""WallChange REST command gateway.

Uses httpx for async HTTP.  Every call performs exactly one request and
classifies the answer; the gateway never retries and never touches the
session beyond reading the bearer credential (callers decide what a ``401``
means for the session).
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from wallchange.commands import Attachment, Command
from wallchange.config import ConsoleConfig
from wallchange.errors import (
    InvalidInputError,
    LoginFailedError,
    RateLimitedError,
    RemoteError,
    UnauthorizedError,
)
from wallchange.models import Agent, LoginResponse
from wallchange.session import SessionState

logger = logging.getLogger(__name__)


class CommandGateway:
    """Thin async wrapper around the WallChange server API.

    A single :class:`httpx.AsyncClient` is reused across calls.  Call
    :meth:`aclose` (or use as an async context manager) when done.
    """

    def __init__(
        self,
        config: ConsoleConfig,
        session: SessionState,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.session = session
        self._client = httpx.AsyncClient(
            base_url=config.api_url,
            timeout=config.request_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "CommandGateway":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #

    async def send(self, command: Command, target_id: str) -> str:
        """Deliver *command* to *target_id* (a concrete id or ``*``).

        Returns the server's success text.  Raises :class:`InvalidInputError`
        before any I/O for malformed input, otherwise one of
        :class:`RateLimitedError`, :class:`UnauthorizedError`,
        :class:`RemoteError`.
        """
        if not target_id:
            raise InvalidInputError("Missing target id")
        command.validate()
        spec = command.spec
        if spec.privileged and not self.session.is_privileged:
            raise InvalidInputError(f"{spec.label} requires an admin session")

        params: dict[str, str] = {"id": target_id}
        if command.attachment is not None:
            if spec.upload_type:
                params["type"] = spec.upload_type
            return await self._upload("/api/upload", params, command.attachment)

        value = command.param_value()
        if spec.param and value is not None:
            params[spec.param] = value
        if spec.kind == "uninstall":
            params["from"] = self.session.username or "console"
        return await self._request("GET", spec.endpoint, params=params)

    async def upload_file(self, attachment: Attachment) -> str:
        """Host *attachment* on the server without applying it; returns its URL."""
        if not attachment.content:
            raise InvalidInputError("Empty file")
        url = await self._upload("/api/upload", {}, attachment)
        return url.strip()

    # ------------------------------------------------------------------ #
    # Session and fleet queries
    # ------------------------------------------------------------------ #

    async def login(self, user: str, password: str) -> LoginResponse:
        """Exchange credentials for a bearer token and start the session."""
        try:
            response = await self._client.get(
                "/api/login", params={"user": user, "pass": password},
            )
        except httpx.HTTPError as exc:
            raise LoginFailedError(f"Cannot reach {self.config.api_url}: {exc}") from exc
        if not response.is_success:
            raise LoginFailedError("Login failed")
        try:
            data = response.json()
        except ValueError as exc:
            raise LoginFailedError(f"Invalid login response: {exc}") from exc
        if not isinstance(data, dict):
            raise LoginFailedError("Unexpected login response")
        if not data.get("token"):
            raise LoginFailedError(data.get("status") or "Login failed")
        result = LoginResponse(
            status=data.get("status", ""),
            token=data["token"],
            role=data.get("type", ""),
        )
        self.session.login(result.token, result.role, user)
        return result

    async def list_agents(self) -> list[Agent]:
        """Return the current snapshot of connected agents (GET /api/list)."""
        text = await self._request("GET", "/api/list")
        response_data = _parse_json(text)
        if not isinstance(response_data, list):
            raise RemoteError("Unexpected agent list payload")
        agents = []
        for item in response_data:
            if not isinstance(item, dict) or not item.get("id"):
                logger.warning("Skipping malformed agent entry: %r", item)
                continue
            agents.append(Agent.from_dict(item))
        return agents

    async def version(self) -> str:
        return (await self._request("GET", "/api/version", auth=False)).strip()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _upload(self, path: str, params: dict[str, str], attachment: Attachment) -> str:
        files = {"file": (attachment.filename, attachment.content, attachment.content_type)}
        return await self._request("POST", path, params=params, files=files)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        files: dict[str, Any] | None = None,
        auth: bool = True,
    ) -> str:
        headers = self.session.auth_headers() if auth else {}
        try:
            response = await self._client.request(
                method, path, params=params, files=files, headers=headers,
            )
        except httpx.HTTPError as exc:
            raise RemoteError(f"Cannot reach {self.config.api_url}: {exc}") from exc
        logger.debug("%s %s %s -> %d", method, path, params or {}, response.status_code)
        self._raise_for_status(response)
        return response.text

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code == 429:
            raise RateLimitedError()
        if response.status_code == 401:
            raise UnauthorizedError()
        if not response.is_success:
            raise RemoteError(response.text or f"HTTP {response.status_code}")


def _parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError as exc:
        raise RemoteError(f"Invalid JSON from server: {exc}") from exc
