"""Configuration loaded from the environment.

Call load_env() before reading any of these so a local .env file applies.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

RUNTIME_OVERRIDE_ENV = "AGENTSWITCH_AGENT_RUNTIME"


def load_env(env_path: Path | None = None) -> None:
    """Load .env file into os.environ. Handles quoted values and spaces."""
    if env_path is None:
        env_path = Path.cwd() / ".env"

    if not env_path.exists():
        return

    for line in env_path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            key, val = line.split("=", 1)
            val = val.strip().strip('"').strip("'")
            os.environ[key.strip()] = val


def _parse_float(raw: str | None, default: float) -> float:
    try:
        return float(raw) if raw not in (None, "") else default
    except ValueError:
        return default


@dataclass(frozen=True)
class AppConfig:
    host: str
    port: int
    db_path: Path
    approval_timeout_s: float

    # Used for new conversations created without a workspace.
    default_working_dir: str | None = None


def get_app_config() -> AppConfig:
    host = (os.getenv("AGENTSWITCH_HOST") or "127.0.0.1").strip() or "127.0.0.1"
    port = int(os.getenv("AGENTSWITCH_PORT", "7788"))
    db_path = Path(os.getenv("AGENTSWITCH_DB_PATH", str(Path.cwd() / "agentswitch.db")))
    return AppConfig(
        host=host,
        port=port,
        db_path=db_path,
        approval_timeout_s=_parse_float(os.getenv("AGENTSWITCH_APPROVAL_TIMEOUT_S"), 300.0),
        default_working_dir=os.getenv("AGENTSWITCH_WORKING_DIR") or None,
    )


@dataclass(frozen=True)
class GraphConfig:
    recursion_limit: int = 1000

    # "package.module:callable" returning a compiled graph for a conversation.
    factory_path: str | None = None

    def resolve_factory_path(self) -> str | None:
        return self.factory_path or os.getenv("AGENTSWITCH_GRAPH_FACTORY") or None


@dataclass(frozen=True)
class ClaudeConfig:
    claude_bin: str | None = None
    default_model: str = "claude-sonnet-4-5-20250929"

    def resolve_cli_path(self) -> str | None:
        """Explicit Claude Code CLI; None lets the SDK find its own."""
        return self.claude_bin or os.getenv("CLAUDE_BIN") or None

    def resolve_model(self, model_id: str | None) -> str:
        # Only Claude models make sense here; anything else picked in the UI
        # for another runtime falls back to the default.
        if model_id and model_id.startswith("claude-"):
            return model_id
        return os.getenv("CLAUDE_MODEL_DEFAULT") or self.default_model


@dataclass(frozen=True)
class CodexConfig:
    codex_bin: str | None = None
    default_model: str = "gpt-5-codex"
    api_key: str | None = None

    def resolve_bin(self) -> str:
        return self.codex_bin or os.getenv("CODEX_BIN", "codex")

    def resolve_model(self, model_id: str | None) -> str:
        if model_id and model_id.startswith(("gpt-", "o1", "o3")):
            return model_id
        return os.getenv("CODEX_MODEL_DEFAULT") or self.default_model

    def resolve_api_key(self) -> str | None:
        return self.api_key or os.getenv("OPENAI_API_KEY") or None

    def build_env(self) -> dict[str, str]:
        """Environment for the Codex CLI.

        Only what tool execution needs is passed through; the API key is
        injected explicitly.
        """
        env = {
            "HOME": os.getenv("HOME", ""),
            "PATH": os.getenv("PATH", ""),
        }
        api_key = self.resolve_api_key()
        if api_key:
            env["CODEX_API_KEY"] = api_key
        return env
