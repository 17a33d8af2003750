"""Tests for the command-line console."""

from __future__ import annotations

import httpx
import pytest

import wallchange.__main__ as cli
from wallchange.gateway import CommandGateway
from wallchange.session import SessionState


class FakeServer:
    """Scripted WallChange server for httpx.MockTransport."""

    def __init__(self, agents=("A", "B", "C"), statuses: dict | None = None):
        self.agents = [{"id": a, "hostname": f"pc-{a.lower()}"} for a in agents]
        self.statuses = statuses or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/api/login":
            return httpx.Response(200, json={"status": "ok", "token": "new-tok", "type": "admin"})
        if path == "/api/list":
            return httpx.Response(200, json=self.agents)
        if path == "/api/version":
            return httpx.Response(200, text="3.2.1")
        status = self.statuses.get(request.url.params.get("id"), 200)
        return httpx.Response(status, text="OK" if status == 200 else "nope")

    def command_targets(self) -> list[str]:
        return [
            r.url.params["id"] for r in self.requests
            if r.url.path not in ("/api/list", "/api/login", "/api/version")
        ]


@pytest.fixture
def server(monkeypatch, tmp_path):
    srv = FakeServer()
    monkeypatch.setenv("WALLCHANGE_URL", "http://wallchange.test")
    monkeypatch.setenv("WALLCHANGE_SESSION_FILE", str(tmp_path / "session.json"))

    def factory(config, session):
        return CommandGateway(config, session, transport=httpx.MockTransport(srv))

    monkeypatch.setattr(cli, "CommandGateway", factory)
    return srv


def _logged_in(tmp_path):
    SessionState(tmp_path / "session.json").login("tok", "admin", "alice")


class TestParser:
    def test_send_requires_targets(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["send", "drunk"])

    def test_send_kinds(self):
        args = cli.build_parser().parse_args(["send", "key-combo", "--text", "alt+f4", "-t", "A", "-t", "B"])
        assert args.kind == "key-combo"
        assert args.target == ["A", "B"]
        assert args.keep_selection is None

    def test_unknown_kind_rejected(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["send", "self-destruct", "--all"])


class TestCommands:
    def test_login_persists_session(self, server, tmp_path, capsys):
        assert cli.main(["login", "alice", "--password", "pw"]) == cli.EXIT_OK
        assert SessionState.load(tmp_path / "session.json").token == "new-tok"
        assert "Logged in as alice" in capsys.readouterr().out

    def test_whoami_and_logout(self, server, tmp_path, capsys):
        _logged_in(tmp_path)
        assert cli.main(["whoami"]) == cli.EXIT_OK
        assert "alice (admin)" in capsys.readouterr().out
        assert cli.main(["logout"]) == cli.EXIT_OK
        assert cli.main(["whoami"]) == cli.EXIT_FAILED

    def test_list(self, server, tmp_path, capsys):
        _logged_in(tmp_path)
        assert cli.main(["list"]) == cli.EXIT_OK
        out = capsys.readouterr().out
        assert "pc-b" in out
        assert "3 agent(s)" in out

    def test_version(self, server, capsys):
        assert cli.main(["version"]) == cli.EXIT_OK
        assert "3.2.1" in capsys.readouterr().out

    def test_send_all_is_one_broadcast(self, server, tmp_path, capsys):
        _logged_in(tmp_path)
        assert cli.main(["send", "fireworks", "--all"]) == cli.EXIT_OK
        assert server.command_targets() == ["*"]
        assert "Fireworks sent to all agents" in capsys.readouterr().out

    def test_send_partial_failure(self, server, tmp_path, capsys):
        _logged_in(tmp_path)
        server.statuses = {"B": 429}
        code = cli.main([
            "send", "wallpaper-set", "--url", "http://x/y.png", "-t", "A", "-t", "B",
        ])
        assert code == cli.EXIT_FAILED
        assert server.command_targets() == ["A", "B"]
        out = capsys.readouterr().out
        assert "Wallpaper sent to 1 agent(s)" in out
        assert "B: rate_limited" in out

    def test_send_unauthorized_clears_session(self, server, tmp_path, capsys):
        _logged_in(tmp_path)
        server.statuses = {"A": 401}
        assert cli.main(["send", "drunk", "-t", "A", "-t", "B"]) == cli.EXIT_UNAUTHORIZED
        assert server.command_targets() == ["A"]
        assert not (tmp_path / "session.json").exists()
        assert "login" in capsys.readouterr().err

    def test_send_upload_via_url(self, server, tmp_path):
        _logged_in(tmp_path)
        image = tmp_path / "cat.png"
        image.write_bytes(b"\x89PNG")
        code = cli.main([
            "send", "particles-set", "--file", str(image), "--via-url", "-t", "C",
        ])
        assert code == cli.EXIT_OK
        posts = [r for r in server.requests if r.method == "POST"]
        assert len(posts) == 1
        assert "id" not in posts[0].url.params

    def test_send_invalid_input(self, server, tmp_path, capsys):
        _logged_in(tmp_path)
        assert cli.main(["send", "text-screen", "--all"]) == cli.EXIT_FAILED
        assert "needs some text" in capsys.readouterr().err

    def test_logs_requires_login(self, server, capsys):
        assert cli.main(["logs", "A"]) == cli.EXIT_UNAUTHORIZED
