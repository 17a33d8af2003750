"""WallChange Console: operator tooling for a fleet of WallChange agents.

Two pieces do the real work:

  - Fleet dispatch: turn one operator action plus a target selection into
    gateway calls, and fold the per-target results into one outcome.
  - Log relay: stream a single agent's log feed into a bounded buffer.

Quickstart::

    from wallchange.config import ConsoleConfig
    from wallchange.gateway import CommandGateway
    from wallchange.session import SessionState

    config = ConsoleConfig.from_env()
    session = SessionState.load(config.session_file)
    async with CommandGateway(config, session) as gateway:
        agents = await gateway.list_agents()
"""

__version__ = "1.0.0"
