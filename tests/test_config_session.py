"""Tests for console configuration and the operator session."""

from __future__ import annotations

import json
import os
import stat

from wallchange.config import ConsoleConfig
from wallchange.session import SessionState


class TestConsoleConfig:
    def test_defaults(self):
        cfg = ConsoleConfig()
        assert cfg.base_url == "https://wallchange.codeky.fr"
        assert cfg.request_timeout is None
        assert cfg.refresh_interval == 10.0
        assert cfg.log_flush_interval == 0.1
        assert cfg.log_buffer_size == 1000

    def test_load_save(self, tmp_path):
        cfg = ConsoleConfig(base_url="http://10.0.0.1:8080", refresh_interval=5.0)
        path = tmp_path / "config.json"
        cfg.save(path)
        loaded = ConsoleConfig.load(path)
        assert loaded.base_url == "http://10.0.0.1:8080"
        assert loaded.refresh_interval == 5.0

    def test_load_missing_file(self, tmp_path):
        cfg = ConsoleConfig.load(tmp_path / "nonexistent.json")
        assert cfg.base_url == "https://wallchange.codeky.fr"

    def test_load_ignores_unknown_keys(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"base_url": "http://x", "theme": "dark"}))
        cfg = ConsoleConfig.load(path)
        assert cfg.base_url == "http://x"
        assert not hasattr(cfg, "theme")

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("WALLCHANGE_URL", "http://override:9000")
        monkeypatch.setenv("WALLCHANGE_SESSION_FILE", str(tmp_path / "s.json"))
        monkeypatch.setenv("WALLCHANGE_REFRESH_INTERVAL", "2.5")
        cfg = ConsoleConfig.from_env()
        assert cfg.base_url == "http://override:9000"
        assert cfg.session_file == str(tmp_path / "s.json")
        assert cfg.refresh_interval == 2.5

    def test_ws_url(self):
        assert ConsoleConfig(base_url="http://h:1/").ws_url("/w") == "ws://h:1/w"
        assert ConsoleConfig(base_url="https://h").ws_url("/w") == "wss://h/w"
        assert ConsoleConfig(base_url="h:1").ws_url("/w") == "ws://h:1/w"


class TestSessionState:
    def test_login_and_headers(self):
        state = SessionState()
        assert not state.is_authenticated
        assert state.auth_headers() == {}
        state.login("tok", "admin", "alice")
        assert state.is_authenticated
        assert state.is_privileged
        assert state.auth_headers() == {"Authorization": "Bearer tok"}

    def test_non_admin_role_not_privileged(self):
        state = SessionState()
        state.login("tok", "viewer", "bob")
        assert not state.is_privileged

    def test_persist_and_load(self, tmp_path):
        path = tmp_path / "session.json"
        SessionState(path).login("tok", "admin", "alice")
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
        restored = SessionState.load(path)
        assert restored.token == "tok"
        assert restored.username == "alice"

    def test_clear_removes_file_and_notifies(self, tmp_path):
        path = tmp_path / "session.json"
        state = SessionState(path)
        state.login("tok", "admin", "alice")
        reasons: list[str] = []
        state.on_cleared(reasons.append)
        state.clear("unauthorized")
        assert not path.exists()
        assert state.token is None
        assert not state.is_privileged
        assert reasons == ["unauthorized"]

    def test_clear_twice_notifies_once(self):
        state = SessionState()
        state.login("tok")
        reasons: list[str] = []
        state.on_cleared(reasons.append)
        state.clear()
        state.clear()
        assert reasons == ["logout"]

    def test_load_corrupt_file(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{nope")
        assert not SessionState.load(path).is_authenticated
