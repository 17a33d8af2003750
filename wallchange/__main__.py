"""WallChange console entry point.

Usage:
    python -m wallchange [--config CONFIG_PATH] [--server URL] <command> ...

Commands:
    login USER            Log in and store the session credential
    logout                Forget the stored credential
    whoami                Show the current session
    version               Show the server version
    list                  List connected agents
    send KIND ...         Send a command to some or all agents
    logs AGENT_ID         Follow one agent's live log feed
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import mimetypes
import signal
import sys
from pathlib import Path

from wallchange.commands import COMMANDS, Attachment, Command
from wallchange.config import ConsoleConfig
from wallchange.errors import (
    DispatchInProgressError,
    GatewayError,
    InvalidInputError,
    UnauthorizedError,
)
from wallchange.fleet import AgentRoster, FleetDispatcher, SelectionModel
from wallchange.gateway import CommandGateway
from wallchange.relay import RelaySession
from wallchange.relay import lines as severities
from wallchange.relay import session as relay_states
from wallchange.session import SessionState

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_UNAUTHORIZED = 2

_COLORS = {
    severities.NOISE: "\033[90m",
    severities.WARNING: "\033[33m",
    severities.ERROR: "\033[31m",
    severities.SUCCESS: "\033[32m",
    severities.INFO: "",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wallchange", description="WallChange operator console")
    parser.add_argument("--config", "-c", default=None, help="Path to config.json")
    parser.add_argument("--server", default=None, help="Server base URL (overrides config)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Log in and store the session credential")
    login.add_argument("user")
    login.add_argument("--password", default=None, help="Prompted for when omitted")

    sub.add_parser("logout", help="Forget the stored credential")
    sub.add_parser("whoami", help="Show the current session")
    sub.add_parser("version", help="Show the server version")
    sub.add_parser("list", help="List connected agents")

    send = sub.add_parser("send", help="Send a command to some or all agents")
    send.add_argument("kind", choices=sorted(COMMANDS))
    payload = send.add_mutually_exclusive_group()
    payload.add_argument("--url", default=None)
    payload.add_argument("--text", default=None)
    payload.add_argument("--file", default=None, help="Upload a file instead of a URL")
    send.add_argument(
        "--via-url", action="store_true",
        help="Upload --file once, then send its hosted URL to every target",
    )
    targets = send.add_mutually_exclusive_group(required=True)
    targets.add_argument("--target", "-t", action="append", default=[], metavar="AGENT_ID")
    targets.add_argument("--all", action="store_true", help="Target every connected agent")
    send.add_argument(
        "--keep-selection", action="store_true", default=None,
        help="Keep the selection open after a successful dispatch",
    )

    logs = sub.add_parser("logs", help="Follow one agent's live log feed")
    logs.add_argument("agent_id")
    return parser


# ── Commands ──────────────────────────────────────────────────────


async def _login(args, config: ConsoleConfig, session: SessionState) -> int:
    password = args.password if args.password is not None else getpass.getpass("Password: ")
    async with CommandGateway(config, session) as gateway:
        result = await gateway.login(args.user, password)
    print(f"Logged in as {args.user} ({result.role or 'no role'})")
    return EXIT_OK


async def _version(config: ConsoleConfig, session: SessionState) -> int:
    async with CommandGateway(config, session) as gateway:
        print(await gateway.version())
    return EXIT_OK


async def _list(config: ConsoleConfig, session: SessionState) -> int:
    roster = AgentRoster()
    async with CommandGateway(config, session) as gateway:
        await roster.refresh(gateway)
    for agent in roster.agents():
        print(f"{agent.id:<24} {agent.hostname or '-':<20} {agent.version or '-'}")
    print(f"{len(roster)} agent(s)")
    return EXIT_OK


def _command_from_args(args) -> Command:
    attachment = None
    if args.file:
        path = Path(args.file)
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        attachment = Attachment(path.name, path.read_bytes(), content_type)
    return Command.build(args.kind, url=args.url, text=args.text, attachment=attachment)


async def _send(args, config: ConsoleConfig, session: SessionState) -> int:
    command = _command_from_args(args)
    roster = AgentRoster()
    selection = SelectionModel(roster)
    async with CommandGateway(config, session) as gateway:
        await roster.refresh(gateway)
        selection.enter_selection_mode(select_all=args.all)
        for agent_id in args.target:
            if agent_id not in roster:
                logger.warning("Agent %s is not connected, skipping", agent_id)
            selection.toggle(agent_id)

        dispatcher = FleetDispatcher(gateway, session)
        if args.via_url and command.attachment is not None:
            outcome = await dispatcher.dispatch_uploaded(
                command.kind, command.attachment, selection,
                keep_selection=args.keep_selection,
            )
        else:
            outcome = await dispatcher.dispatch(
                command, selection, keep_selection=args.keep_selection,
            )

    for level, message in outcome.notifications():
        print(f"[{level}] {message}")
    for agent_id, kind in outcome.failures:
        print(f"  {agent_id}: {kind}")
    return EXIT_OK if outcome.failed == 0 else EXIT_FAILED


def _print_lines(batch) -> None:
    tty = sys.stdout.isatty()
    for line in batch:
        color = _COLORS.get(line.severity, "") if tty else ""
        print(f"{color}{line.text}\033[0m" if color else line.text, flush=True)


async def _logs(args, config: ConsoleConfig, session: SessionState) -> int:
    if not session.is_authenticated:
        raise UnauthorizedError("Not logged in")
    relay = RelaySession(config, session, args.agent_id)
    done = asyncio.Event()

    def _on_state(state: str) -> None:
        logger.info("Relay status: %s", state.upper())
        if state in (relay_states.CLOSED, relay_states.ERRORED):
            done.set()

    relay.on_lines(_print_lines)
    relay.on_state_change(_on_state)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, done.set)
        except (NotImplementedError, RuntimeError):
            logger.debug("Signal handler for %s unavailable; use Ctrl+C", sig)

    await relay.open()
    try:
        await done.wait()
        # Let the final marker line reach the screen.
        relay.flush()
        errored = relay.state == relay_states.ERRORED
    finally:
        await relay.close()
    return EXIT_FAILED if errored else EXIT_OK


async def _run(args) -> int:
    config = ConsoleConfig.from_env(args.config)
    if args.server:
        config.base_url = args.server
    session = SessionState.load(config.session_file)

    if args.command == "login":
        return await _login(args, config, session)
    if args.command == "logout":
        session.clear("logout")
        print("Logged out")
        return EXIT_OK
    if args.command == "whoami":
        if not session.is_authenticated:
            print("Not logged in")
            return EXIT_FAILED
        role = "admin" if session.is_privileged else (session.role or "operator")
        print(f"{session.username or '?'} ({role}) @ {config.api_url}")
        return EXIT_OK
    if args.command == "version":
        return await _version(config, session)
    if args.command == "list":
        return await _list(config, session)
    if args.command == "send":
        return await _send(args, config, session)
    if args.command == "logs":
        return await _logs(args, config, session)
    raise InvalidInputError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        return asyncio.run(_run(args))
    except UnauthorizedError as exc:
        print(f"{exc}: please run 'wallchange login' again", file=sys.stderr)
        return EXIT_UNAUTHORIZED
    except (GatewayError, DispatchInProgressError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILED
    except KeyboardInterrupt:
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
