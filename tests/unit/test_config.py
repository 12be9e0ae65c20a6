"""Tests for environment-driven configuration."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from agentswitch.config import ClaudeConfig, GraphConfig, get_app_config, load_env


def test_load_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # Registered so the values loaded below are removed again afterwards.
    monkeypatch.setenv("AGENTSWITCH_TEST_A", "before")
    monkeypatch.setenv("AGENTSWITCH_TEST_B", "before")
    env_file = tmp_path / ".env"
    env_file.write_text('# comment\nAGENTSWITCH_TEST_A="quoted value"\nAGENTSWITCH_TEST_B = plain\n')

    load_env(env_file)
    assert os.environ["AGENTSWITCH_TEST_A"] == "quoted value"
    assert os.environ["AGENTSWITCH_TEST_B"] == "plain"


def test_load_env_missing_file(tmp_path: Path) -> None:
    load_env(tmp_path / "absent.env")


def test_app_config_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("AGENTSWITCH_PORT", "9000")
    monkeypatch.setenv("AGENTSWITCH_DB_PATH", str(tmp_path / "x.db"))
    monkeypatch.setenv("AGENTSWITCH_APPROVAL_TIMEOUT_S", "not-a-number")
    monkeypatch.delenv("AGENTSWITCH_HOST", raising=False)
    monkeypatch.delenv("AGENTSWITCH_WORKING_DIR", raising=False)

    cfg = get_app_config()
    assert cfg.host == "127.0.0.1"
    assert cfg.port == 9000
    assert cfg.db_path == tmp_path / "x.db"
    assert cfg.approval_timeout_s == 300.0
    assert cfg.default_working_dir is None


def test_claude_model_default_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLAUDE_MODEL_DEFAULT", "claude-opus-4-1")
    assert ClaudeConfig().resolve_model(None) == "claude-opus-4-1"
    assert ClaudeConfig().resolve_model("claude-haiku-4-5") == "claude-haiku-4-5"


def test_graph_factory_path(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AGENTSWITCH_GRAPH_FACTORY", "pkg.mod:build")
    assert GraphConfig().resolve_factory_path() == "pkg.mod:build"
    assert GraphConfig(factory_path="other:make").resolve_factory_path() == "other:make"
