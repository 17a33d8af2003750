"""Live log relay for one agent.

Opens a side-channel WebSocket to the server, authenticates with the
operator's bearer credential, subscribes to one agent's log feed and keeps
the most recent lines in a bounded buffer:

  idle -> connecting -> authenticating -> subscribed -> closed | errored

Frames are parsed as they arrive but only land in the visible buffer on a
fixed flush tick, so a chatty agent can't flood whoever is rendering the
lines.  A session is owned by one view, is never reused, and never
reconnects on its own.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections import deque
from typing import Any, Awaitable, Callable

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import WebSocketException

from wallchange.config import ConsoleConfig
from wallchange.relay.lines import LogLine, split_payload
from wallchange.session import SessionState

logger = logging.getLogger(__name__)

IDLE = "idle"
CONNECTING = "connecting"
AUTHENTICATING = "authenticating"
SUBSCRIBED = "subscribed"
CLOSED = "closed"
ERRORED = "errored"

AUTHENTICATED_LINE = ">>> Authenticated successfully"
DISCONNECTED_LINE = ">>> Disconnected"
ERROR_LINE = ">>> Connection error"

# Failures of the relay transport itself (TransportError).
TRANSPORT_ERRORS = (OSError, WebSocketException, asyncio.TimeoutError)

Connector = Callable[[str], Awaitable[Any]]
LinesCallback = Callable[[list[LogLine]], None]
StateCallback = Callable[[str], None]


async def _default_connect(url: str) -> ClientConnection:
    return await connect(url, ping_interval=20, ping_timeout=10, close_timeout=5)


class RelaySession:
    """Streams one agent's log feed into a bounded, periodically flushed buffer."""

    def __init__(
        self,
        config: ConsoleConfig,
        session: SessionState,
        agent_id: str,
        connect: Connector | None = None,
    ) -> None:
        self.config = config
        self.session = session
        self.agent_id = agent_id
        self.token = uuid.uuid4().hex[:8]
        self.flush_interval = config.log_flush_interval

        self._connect = connect or _default_connect
        self._state = IDLE
        self._closed = False
        self._ws: Any = None
        self._pending: list[str] = []
        self._buffer: deque[LogLine] = deque(maxlen=config.log_buffer_size)
        self._reader: asyncio.Task | None = None
        self._flusher: asyncio.Task | None = None
        self._stragglers: set[asyncio.Future] = set()
        self._line_callbacks: list[LinesCallback] = []
        self._state_callbacks: list[StateCallback] = []

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    @property
    def url(self) -> str:
        return self.config.ws_url(f"/admin-watcher-{self.token}")

    @property
    def state(self) -> str:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state == SUBSCRIBED

    @property
    def lines(self) -> tuple[LogLine, ...]:
        """The visible buffer, oldest first (at most ``log_buffer_size`` lines)."""
        return tuple(self._buffer)

    def texts(self) -> list[str]:
        return [line.text for line in self._buffer]

    def on_lines(self, callback: LinesCallback) -> None:
        """Register a callback receiving each flushed batch of lines."""
        self._line_callbacks.append(callback)

    def on_state_change(self, callback: StateCallback) -> None:
        self._state_callbacks.append(callback)

    async def open(self) -> None:
        """Start connecting and the flush timer; returns immediately."""
        if self._state != IDLE or self._closed:
            raise RuntimeError("Relay sessions cannot be reopened")
        self._set_state(CONNECTING)
        self._reader = asyncio.create_task(self._run())
        self._flusher = asyncio.create_task(self._flush_loop())

    async def close(self) -> None:
        """Tear down the connection and timers and discard the buffer."""
        if self._closed:
            return
        self._closed = True
        for task in (self._flusher, self._reader):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._flusher = self._reader = None
        if self._ws is not None:
            try:
                await self._ws.close()
            except TRANSPORT_ERRORS as exc:
                logger.debug("Error closing relay for %s: %s", self.agent_id, exc)
            self._ws = None
        self._pending.clear()
        self._buffer.clear()
        self._set_state(CLOSED, force=True)
        logger.info("Log relay for %s closed", self.agent_id)

    async def __aenter__(self) -> "RelaySession":
        await self.open()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    def flush(self) -> list[LogLine]:
        """Move pending lines into the visible buffer in one batch."""
        if self._closed or not self._pending:
            return []
        batch = [LogLine.of(text) for text in self._pending]
        self._pending = []
        self._buffer.extend(batch)
        for cb in self._line_callbacks:
            try:
                cb(batch)
            except Exception:
                logger.exception("Error in log-lines callback")
        return batch

    def clear(self) -> None:
        """Empty the visible buffer (the connection stays up)."""
        self._buffer.clear()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    async def _run(self) -> None:
        url = self.url
        logger.info("Opening log relay for %s", self.agent_id)
        pending = asyncio.ensure_future(self._connect(url))
        try:
            ws = await asyncio.shield(pending)
        except asyncio.CancelledError:
            # Closed mid-handshake: close the socket whenever it shows up.
            pending.add_done_callback(self._discard_connection)
            raise
        except TRANSPORT_ERRORS as exc:
            self._fail(exc)
            return

        if self._closed:
            await ws.close()
            return
        self._ws = ws
        self._set_state(AUTHENTICATING)
        try:
            await ws.send(json.dumps({"type": "auth_admin", "token": self.session.token}))
            await ws.send(json.dumps({"type": "subscribe", "target": self.agent_id}))
            self._set_state(SUBSCRIBED)
            async for raw in ws:
                self._handle_frame(raw)
        except TRANSPORT_ERRORS as exc:
            self._fail(exc)
            return

        if not self._closed:
            logger.info("Log relay for %s closed by server", self.agent_id)
            self._pending.append(DISCONNECTED_LINE)
            self._set_state(CLOSED)

    def _handle_frame(self, raw: str | bytes) -> None:
        if self._closed:
            return
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        try:
            data = json.loads(raw)
        except ValueError:
            self._pending.append(raw)
            return

        msg_type = data.get("type") if isinstance(data, dict) else None
        if msg_type == "auth_success":
            self._pending.append(AUTHENTICATED_LINE)
        elif msg_type == "log" and data.get("data"):
            self._pending.extend(split_payload(str(data["data"])))
        else:
            self._pending.append(json.dumps(data, ensure_ascii=False))

    async def _flush_loop(self) -> None:
        while not self._closed:
            await asyncio.sleep(self.flush_interval)
            self.flush()

    def _fail(self, exc: BaseException) -> None:
        if self._closed:
            return
        logger.warning("Log relay for %s failed: %s", self.agent_id, exc)
        self._pending.append(ERROR_LINE)
        self._set_state(ERRORED)

    def _set_state(self, state: str, force: bool = False) -> None:
        if self._closed and not force:
            return
        if state == self._state:
            return
        self._state = state
        logger.debug("Log relay for %s -> %s", self.agent_id, state)
        for cb in self._state_callbacks:
            try:
                cb(state)
            except Exception:
                logger.exception("Error in relay state callback")

    def _discard_connection(self, fut: asyncio.Future) -> None:
        if fut.cancelled() or fut.exception() is not None:
            return
        closer = asyncio.ensure_future(fut.result().close())
        self._stragglers.add(closer)
        closer.add_done_callback(self._stragglers.discard)
