#!/usr/bin/env python3
"""
Tests for configuration loading
"""

import os

import pytest

from thctl.config import (
    DEFAULT_ENDPOINT,
    ClientConfig,
    find_env_file,
    load_config,
    parse_duration,
)
from thctl.exceptions import ConfigError


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Run from an empty directory with an empty home"""
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    return work, home


class TestClientConfig:
    def test_defaults(self):
        config = ClientConfig()
        assert config.endpoint == DEFAULT_ENDPOINT
        assert config.auth_token == ""
        assert config.timeout == 30.0
        assert config.retry_count == 3

    def test_validation(self):
        with pytest.raises(ConfigError):
            ClientConfig(timeout=0)
        with pytest.raises(ConfigError):
            ClientConfig(retry_count=-1)

    def test_immutable(self):
        config = ClientConfig()
        with pytest.raises(AttributeError):
            config.endpoint = "http://other"

    def test_redacted_hides_token(self):
        assert ClientConfig(auth_token="secret").redacted()["auth_token"] == "configured"


class TestParseDuration:
    @pytest.mark.parametrize("text,expected", [
        ("30s", 30.0),
        ("1m30s", 90.0),
        ("500ms", 0.5),
        ("2h", 7200.0),
        ("1.5s", 1.5),
        ("45", 45.0),
    ])
    def test_valid(self, text, expected):
        assert parse_duration(text) == pytest.approx(expected)

    @pytest.mark.parametrize("text", ["", "abc", "30x", "s30", "1m 30s"])
    def test_invalid(self, text):
        with pytest.raises(ConfigError):
            parse_duration(text)


class TestLoadConfig:
    """Test precedence: defaults < environment < env file < overrides"""

    def test_defaults_without_sources(self, isolated):
        assert load_config(environ={}) == ClientConfig()

    def test_environment(self, isolated):
        config = load_config(environ={
            "LOTUS_API_URL": "http://env:1234/rpc/v0",
            "LOTUS_API_TOKEN": "env-token",
            "LOTUS_API_TIMEOUT": "10s",
            "LOTUS_API_RETRY_COUNT": "5",
        })

        assert config == ClientConfig("http://env:1234/rpc/v0", "env-token", 10.0, 5)

    def test_env_file_beats_environment(self, isolated):
        work, _ = isolated
        (work / ".thctl.env").write_text("LOTUS_API_URL=http://file:1234/rpc/v0\nLOTUS_API_TIMEOUT=1m\n")

        config = load_config(environ={"LOTUS_API_URL": "http://env:1234/rpc/v0", "LOTUS_API_TOKEN": "env-token"})

        assert config.endpoint == "http://file:1234/rpc/v0"
        assert config.auth_token == "env-token"
        assert config.timeout == 60.0

    def test_home_env_file(self, isolated):
        _, home = isolated
        (home / ".thctl.env").write_text("LOTUS_API_TOKEN=home-token\n")

        assert load_config(environ={}).auth_token == "home-token"
        assert find_env_file() == home / ".thctl.env"

    def test_current_directory_wins_over_home(self, isolated):
        work, home = isolated
        (work / ".thctl.env").write_text("LOTUS_API_TOKEN=work-token\n")
        (home / ".thctl.env").write_text("LOTUS_API_TOKEN=home-token\n")

        assert load_config(environ={}).auth_token == "work-token"

    def test_overrides_win(self, isolated):
        work, _ = isolated
        (work / ".thctl.env").write_text("LOTUS_API_URL=http://file:1234/rpc/v0\n")

        config = load_config(environ={}, endpoint="http://flag:1234/rpc/v0", auth_token=None, retry_count=0)

        assert config.endpoint == "http://flag:1234/rpc/v0"
        assert config.retry_count == 0

    def test_explicit_env_file(self, isolated, tmp_path):
        path = tmp_path / "custom.env"
        path.write_text("LOTUS_API_TOKEN=custom\n")

        assert load_config(env_file=str(path), environ={}).auth_token == "custom"

    def test_missing_explicit_env_file(self, isolated):
        with pytest.raises(ConfigError):
            load_config(env_file="/does/not/exist.env", environ={})

    def test_invalid_values(self, isolated):
        with pytest.raises(ConfigError):
            load_config(environ={"LOTUS_API_TIMEOUT": "soon"})
        with pytest.raises(ConfigError):
            load_config(environ={"LOTUS_API_RETRY_COUNT": "many"})
        with pytest.raises(ConfigError):
            load_config(environ={"LOTUS_API_RETRY_COUNT": "-2"})

    def test_unknown_override(self, isolated):
        with pytest.raises(ConfigError):
            load_config(environ={}, endpiont="typo")

    def test_process_environment_is_not_modified(self, isolated, monkeypatch):
        work, _ = isolated
        monkeypatch.delenv("LOTUS_API_TOKEN", raising=False)
        (work / ".thctl.env").write_text("LOTUS_API_TOKEN=file-token\n")

        load_config()

        assert "LOTUS_API_TOKEN" not in os.environ
