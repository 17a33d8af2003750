"""Plain data records returned by the WallChange server."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any


@dataclass(frozen=True)
class Agent:
    """One connected agent, as reported by ``GET /api/list``."""
    id: str
    hostname: str | None = None
    os: str | None = None
    uptime: str | None = None
    cpu: str | None = None
    ram: str | None = None
    version: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Agent:
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class LoginResponse:
    status: str
    token: str
    role: str = ""
