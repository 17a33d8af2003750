"""Operator target selection.

Pure state, no I/O.  The model stores agent ids only and re-validates them
against the roster on every refresh, so a disconnected agent can never stay
selected.
"""

from __future__ import annotations

import logging

from wallchange.fleet.roster import AgentRoster

logger = logging.getLogger(__name__)

OFF = "off"
ACTIVE = "active"


class SelectionModel:
    """Set of targeted agent ids plus the multi-select mode flag.

    Invariants: ``mode == "off"`` implies an empty set, and the set is
    always a subset of the roster's ids.  Iteration order is the order in
    which ids were selected.
    """

    def __init__(self, roster: AgentRoster) -> None:
        self.roster = roster
        self._mode = OFF
        self._ids: dict[str, None] = {}
        roster.on_refresh(lambda _roster: self.prune())

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def active(self) -> bool:
        return self._mode == ACTIVE

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(self._ids)

    @property
    def count(self) -> int:
        return len(self._ids)

    @property
    def is_all(self) -> bool:
        """True when every known agent is selected (and there is at least one)."""
        return bool(self._ids) and len(self._ids) == len(self.roster)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._ids

    def __iter__(self):
        return iter(tuple(self._ids))

    def __len__(self) -> int:
        return len(self._ids)

    # ── Transitions ────────────────────────────────────────────────

    def enter_selection_mode(self, select_all: bool = False) -> None:
        self._mode = ACTIVE
        self._ids = dict.fromkeys(self.roster.ids()) if select_all else {}

    def toggle(self, agent_id: str) -> None:
        if self._mode != ACTIVE:
            return
        if agent_id in self._ids:
            del self._ids[agent_id]
        elif agent_id in self.roster:
            self._ids[agent_id] = None
        else:
            logger.debug("Ignoring toggle of unknown agent %s", agent_id)

    def select_all_or_none(self) -> None:
        """Toggle between "every known agent" and "nothing"."""
        if self._mode != ACTIVE:
            return
        if len(self._ids) == len(self.roster):
            self._ids = {}
        else:
            self._ids = dict.fromkeys(self.roster.ids())

    def exit(self) -> None:
        self._mode = OFF
        self._ids = {}

    def cancel(self) -> None:
        """External cancel signal (escape gesture, SIGINT)."""
        if self._mode == ACTIVE:
            logger.debug("Selection cancelled")
        self.exit()

    def prune(self) -> None:
        """Drop ids that are no longer in the roster."""
        stale = [i for i in self._ids if i not in self.roster]
        for agent_id in stale:
            del self._ids[agent_id]
        if stale:
            logger.info("Dropped %d disconnected agent(s) from selection", len(stale))
