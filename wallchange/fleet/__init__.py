"""Fleet side of the console.

  - Roster: the polled, read-only snapshot of connected agents
  - Selection: which of those agents the operator is targeting
  - Dispatch: one command to a selection, folded into one outcome
"""

from wallchange.fleet.dispatch import DispatchOutcome, FleetDispatcher
from wallchange.fleet.roster import AgentRoster, RosterPoller
from wallchange.fleet.selection import SelectionModel

__all__ = [
    "AgentRoster",
    "DispatchOutcome",
    "FleetDispatcher",
    "RosterPoller",
    "SelectionModel",
]
