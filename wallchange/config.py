"""Configuration for the WallChange console."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://wallchange.codeky.fr"


def _default_session_file() -> str:
    return str(Path.home() / ".wallchange" / "session.json")


@dataclass
class ConsoleConfig:
    """Console configuration, loaded from config.json and the environment."""

    base_url: str = DEFAULT_BASE_URL

    # No client-side timeout on command calls; the server's answer is the
    # only liveness signal.
    request_timeout: float | None = None

    # Agent list polling
    refresh_interval: float = 10.0

    # Log relay
    log_flush_interval: float = 0.1
    log_buffer_size: int = 1000

    # Persisted credential
    session_file: str = field(default_factory=_default_session_file)

    @classmethod
    def load(cls, path: str | Path) -> ConsoleConfig:
        path = Path(path)
        if path.exists():
            with open(path) as f:
                data = json.load(f)
            known = {k for k in cls.__dataclass_fields__}
            filtered = {k: v for k, v in data.items() if k in known}
            return cls(**filtered)
        logger.warning("Config not found at %s, using defaults", path)
        return cls()

    @classmethod
    def from_env(cls, path: str | Path | None = None) -> ConsoleConfig:
        """Build a config from *path* (if given) with environment overrides."""
        cfg = cls.load(path) if path else cls()
        cfg.base_url = os.environ.get("WALLCHANGE_URL", cfg.base_url)
        cfg.session_file = os.environ.get("WALLCHANGE_SESSION_FILE", cfg.session_file)
        interval = os.environ.get("WALLCHANGE_REFRESH_INTERVAL")
        if interval:
            cfg.refresh_interval = float(interval)
        return cfg

    def save(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(dict(self.__dict__), f, indent=2)

    @property
    def api_url(self) -> str:
        return self.base_url.rstrip("/")

    def ws_url(self, path: str) -> str:
        """Derive a WebSocket URL for *path* from the base HTTP URL."""
        url = self.api_url
        if url.startswith("https://"):
            return url.replace("https://", "wss://", 1) + path
        url = url.replace("http://", "ws://", 1)
        if not url.startswith("ws"):
            url = "ws://" + url
        return url + path
