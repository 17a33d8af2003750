"""Known-agent roster and its polling task.

The roster is the arena the selection model points into: agents are keyed
by their stable id, the snapshot is replaced wholesale on every poll and
never edited by commands.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable, Iterable

from wallchange.errors import GatewayError, UnauthorizedError
from wallchange.models import Agent

if TYPE_CHECKING:
    from wallchange.gateway import CommandGateway

logger = logging.getLogger(__name__)

RefreshCallback = Callable[["AgentRoster"], None]


class AgentRoster:
    """Read-only snapshot of connected agents, in server order."""

    def __init__(self, agents: Iterable[Agent] = ()) -> None:
        self._agents: dict[str, Agent] = {a.id: a for a in agents}
        self._callbacks: list[RefreshCallback] = []

    def on_refresh(self, callback: RefreshCallback) -> None:
        """Register a callback invoked after every snapshot replacement."""
        self._callbacks.append(callback)

    def replace(self, agents: Iterable[Agent]) -> None:
        self._agents = {a.id: a for a in agents}
        for cb in self._callbacks:
            try:
                cb(self)
            except Exception:
                logger.exception("Error in roster refresh callback")

    async def refresh(self, gateway: CommandGateway) -> None:
        """Poll the server once and replace the snapshot.

        A ``401`` clears the gateway's session before propagating.
        """
        try:
            agents = await gateway.list_agents()
        except UnauthorizedError:
            gateway.session.clear("unauthorized")
            raise
        self.replace(agents)
        logger.debug("Roster refreshed: %d agents", len(self._agents))

    def ids(self) -> list[str]:
        return list(self._agents)

    def agents(self) -> list[Agent]:
        return list(self._agents.values())

    def get(self, agent_id: str) -> Agent | None:
        return self._agents.get(agent_id)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __len__(self) -> int:
        return len(self._agents)


class RosterPoller:
    """Refreshes an :class:`AgentRoster` on a fixed interval in the background."""

    def __init__(
        self, roster: AgentRoster, gateway: CommandGateway, interval: float = 10.0,
    ) -> None:
        self.roster = roster
        self.gateway = gateway
        self.interval = interval
        self._running = False
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        if self._running:
            logger.warning("Roster poller is already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Roster poller started (interval=%.1fs)", self.interval)

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    @property
    def running(self) -> bool:
        return self._running

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.roster.refresh(self.gateway)
            except UnauthorizedError:
                logger.error("Agent list refused: session expired, stopping poller")
                self._running = False
                return
            except GatewayError as exc:
                logger.warning("Failed to fetch agents: %s", exc)
            except Exception:
                logger.exception("Agent list refresh failed")
            await asyncio.sleep(self.interval)
