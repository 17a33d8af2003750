"""Operator session state: bearer credential and role tag.

One :class:`SessionState` exists per console process.  It is set at login,
cleared at logout or whenever the server answers ``401``, and injected into
the gateway and the log relay instead of being read from a global.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)

PRIVILEGED_ROLE = "admin"

ClearedCallback = Callable[[str], None]


class SessionState:
    """Bearer credential plus role tag, optionally persisted to disk."""

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path else None
        self._token: str | None = None
        self._role: str = ""
        self._username: str = ""
        self._callbacks: list[ClearedCallback] = []

    @classmethod
    def load(cls, path: str | Path) -> SessionState:
        """Restore a persisted credential from *path*, if any."""
        state = cls(path)
        p = Path(path)
        if not p.exists():
            return state
        try:
            data = json.loads(p.read_text())
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", p, exc)
            return state
        if data.get("token"):
            state._token = data["token"]
            state._role = data.get("role", "")
            state._username = data.get("username", "")
        return state

    # ── Lifecycle ──────────────────────────────────────────────────

    def login(self, token: str, role: str = "", username: str = "") -> None:
        if not token:
            raise ValueError("Empty credential")
        self._token = token
        self._role = role
        self._username = username
        self._persist()
        logger.info("Session started for %s (role=%s)", username or "?", role or "-")

    def clear(self, reason: str = "logout") -> None:
        """Forget the credential and notify listeners (forces re-login)."""
        had_token = self._token is not None
        self._token = None
        self._role = ""
        self._username = ""
        if self._path is not None:
            try:
                self._path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not remove session file %s: %s", self._path, exc)
        if not had_token:
            return
        logger.info("Session cleared (%s)", reason)
        for cb in self._callbacks:
            try:
                cb(reason)
            except Exception:
                logger.exception("Error in session-cleared callback")

    def on_cleared(self, callback: ClearedCallback) -> None:
        """Register a callback invoked with the reason when the session is cleared."""
        self._callbacks.append(callback)

    # ── Accessors ──────────────────────────────────────────────────

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def role(self) -> str:
        return self._role

    @property
    def username(self) -> str:
        return self._username

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    @property
    def is_privileged(self) -> bool:
        return self.is_authenticated and self._role == PRIVILEGED_ROLE

    def auth_headers(self) -> dict[str, str]:
        if self._token:
            return {"Authorization": f"Bearer {self._token}"}
        return {}

    # ── Persistence ────────────────────────────────────────────────

    def _persist(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = {"token": self._token, "role": self._role, "username": self._username}
        self._path.write_text(json.dumps(data))
        os.chmod(self._path, 0o600)
