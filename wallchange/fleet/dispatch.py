"""Fleet command dispatcher.

Turns one operator action plus a target selection into gateway calls:

  1. Every known agent selected -> a single call with the wildcard target,
     so the server's own fan-out applies.
  2. Otherwise one call per selected agent, strictly sequential.  The server
     throttles each target to one command every 10 seconds; concurrent
     fan-out would defeat that and is never used.

Per-target failures (rate limit, remote error) are recorded and the loop
moves on.  A ``401`` is not per-target: it aborts the dispatch, clears the
session and propagates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from wallchange.commands import WILDCARD, Attachment, Command, get_spec
from wallchange.errors import (
    DispatchInProgressError,
    GatewayError,
    InvalidInputError,
    UnauthorizedError,
)
from wallchange.fleet.selection import SelectionModel
from wallchange.gateway import CommandGateway
from wallchange.session import SessionState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchOutcome:
    """Consolidated result of one dispatch."""
    attempted: int
    succeeded: int
    failed: int
    failures: tuple[tuple[str, str], ...] = ()
    broadcast: bool = False
    label: str = "Command"

    def notifications(self) -> list[tuple[str, str]]:
        """User-facing ``(level, message)`` pairs; partial success yields both."""
        notes: list[tuple[str, str]] = []
        if self.succeeded > 0:
            if self.broadcast:
                notes.append(("success", f"{self.label} sent to all agents"))
            else:
                notes.append(("success", f"{self.label} sent to {self.succeeded} agent(s)"))
        if self.failed > 0:
            if self.broadcast:
                notes.append(("error", f"Failed to send {self.label.lower()} to all agents"))
            else:
                notes.append(("error", f"Failed to send {self.label.lower()} to {self.failed} agent(s)"))
        return notes


class FleetDispatcher:
    """Sends a command to a selection of agents through a :class:`CommandGateway`."""

    def __init__(self, gateway: CommandGateway, session: SessionState) -> None:
        self.gateway = gateway
        self.session = session
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        """True while a dispatch is outstanding; the trigger should be disabled."""
        return self._in_flight

    async def dispatch(
        self,
        command: Command,
        selection: SelectionModel | Iterable[str],
        all_known_ids: Iterable[str] | None = None,
        keep_selection: bool | None = None,
    ) -> DispatchOutcome:
        """Deliver *command* to every agent in *selection*.

        *all_known_ids* defaults to the selection model's roster; every
        selected id must be one of them.  *keep_selection* overrides the
        command's own policy for whether a successful dispatch closes the
        selection.
        """
        self._claim()
        try:
            targets, known = _resolve_targets(selection, all_known_ids)
            return await self._dispatch(command, selection, targets, known, keep_selection)
        finally:
            self._in_flight = False

    async def dispatch_uploaded(
        self,
        kind: str,
        attachment: Attachment,
        selection: SelectionModel | Iterable[str],
        all_known_ids: Iterable[str] | None = None,
        keep_selection: bool | None = None,
    ) -> DispatchOutcome:
        """Upload *attachment* once, then dispatch its hosted URL as a *kind* command."""
        spec = get_spec(kind)
        if not spec.uploadable:
            raise InvalidInputError(f"{spec.label} does not accept a file")
        self._claim()
        try:
            targets, known = _resolve_targets(selection, all_known_ids)
            try:
                url = await self.gateway.upload_file(attachment)
            except UnauthorizedError:
                self.session.clear("unauthorized")
                raise
            logger.info("Uploaded %s as %s", attachment.filename, url)
            return await self._dispatch(
                Command.build(kind, url=url), selection, targets, known, keep_selection,
            )
        finally:
            self._in_flight = False

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _claim(self) -> None:
        if self._in_flight:
            raise DispatchInProgressError("A dispatch is already in progress")
        self._in_flight = True

    async def _dispatch(
        self,
        command: Command,
        selection: SelectionModel | Iterable[str],
        targets: list[str],
        known: list[str],
        keep_selection: bool | None,
    ) -> DispatchOutcome:
        command.validate()
        if command.spec.privileged and not self.session.is_privileged:
            raise InvalidInputError(f"{command.spec.label} requires an admin session")

        if len(set(targets)) == len(set(known)):
            outcome = await self._broadcast(command)
        else:
            outcome = await self._fan_out(command, targets)

        for level, message in outcome.notifications():
            log = logger.info if level == "success" else logger.warning
            log("%s", message)

        if keep_selection is None:
            keep_selection = not command.spec.clears_selection
        if outcome.succeeded > 0 and not keep_selection and isinstance(selection, SelectionModel):
            selection.exit()
        return outcome

    async def _broadcast(self, command: Command) -> DispatchOutcome:
        label = command.spec.label
        try:
            await self.gateway.send(command, WILDCARD)
        except UnauthorizedError as exc:
            outcome = DispatchOutcome(1, 0, 1, ((WILDCARD, exc.kind),), True, label)
            self._abort(exc, outcome)
        except GatewayError as exc:
            logger.warning("Broadcast of %s failed: %s", command.kind, exc)
            return DispatchOutcome(1, 0, 1, ((WILDCARD, exc.kind),), True, label)
        return DispatchOutcome(1, 1, 0, (), True, label)

    async def _fan_out(self, command: Command, targets: list[str]) -> DispatchOutcome:
        label = command.spec.label
        succeeded = 0
        failures: list[tuple[str, str]] = []
        for agent_id in targets:
            try:
                await self.gateway.send(command, agent_id)
                succeeded += 1
            except UnauthorizedError as exc:
                failures.append((agent_id, exc.kind))
                attempted = succeeded + len(failures)
                outcome = DispatchOutcome(
                    attempted, succeeded, len(failures), tuple(failures), False, label,
                )
                self._abort(exc, outcome)
            except GatewayError as exc:
                logger.warning("Failed to send %s to %s: %s", command.kind, agent_id, exc)
                failures.append((agent_id, exc.kind))
        return DispatchOutcome(
            len(targets), succeeded, len(failures), tuple(failures), False, label,
        )

    def _abort(self, exc: UnauthorizedError, outcome: DispatchOutcome) -> None:
        logger.error("Dispatch aborted: session rejected by server")
        self.session.clear("unauthorized")
        raise UnauthorizedError(str(exc), outcome=outcome) from exc


def _resolve_targets(
    selection: SelectionModel | Iterable[str],
    all_known_ids: Iterable[str] | None,
) -> tuple[list[str], list[str]]:
    """Return ``(targets, known)``; targets must be a non-empty subset of known."""
    targets = list(selection)
    if all_known_ids is None:
        if not isinstance(selection, SelectionModel):
            raise InvalidInputError("Known agent ids are required for a plain id list")
        known = selection.roster.ids()
    else:
        known = list(all_known_ids)
    if not targets:
        raise InvalidInputError("No agents selected")
    known_set = set(known)
    unknown = [agent_id for agent_id in targets if agent_id not in known_set]
    if unknown:
        raise InvalidInputError(f"Unknown agent(s): {', '.join(unknown)}")
    return targets, known
