"""Per-agent live log relay."""

from wallchange.relay.lines import LogLine, classify
from wallchange.relay.session import RelaySession

__all__ = ["LogLine", "RelaySession", "classify"]
