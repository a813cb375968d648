"""Shared nodeflow configuration utilities.

Centralises reading of ~/.nodeflow/configuration.json so that the CLI,
the executor and the LLM service share one implementation. Set
NODEFLOW_CONFIG to point at a different file.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_MAX_TOKENS = 4096
DEFAULT_HTTP_TIMEOUT = 30.0
MAX_LOOP_ITERATIONS = 1000

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

NODEFLOW_CONFIG_FILE = Path.home() / ".nodeflow" / "configuration.json"


def get_config_path() -> Path:
    override = os.environ.get("NODEFLOW_CONFIG")
    return Path(override).expanduser() if override else NODEFLOW_CONFIG_FILE


def get_nodeflow_config() -> dict[str, Any]:
    """Load nodeflow configuration from ~/.nodeflow/configuration.json."""
    path = get_config_path()
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8-sig") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def get_preferred_model() -> str:
    """Return the user's preferred model string (e.g. 'openai/gpt-4o-mini')."""
    llm = get_nodeflow_config().get("llm", {})
    if llm.get("provider") and llm.get("model"):
        return f"{llm['provider']}/{llm['model']}"
    return llm.get("model") or DEFAULT_MODEL


def get_max_tokens() -> int:
    """Return the configured max_tokens, falling back to DEFAULT_MAX_TOKENS."""
    return get_nodeflow_config().get("llm", {}).get("max_tokens", DEFAULT_MAX_TOKENS)


def get_api_key() -> str | None:
    """Return the API key from the environment variable specified in configuration."""
    llm = get_nodeflow_config().get("llm", {})
    api_key_env_var = llm.get("api_key_env_var")
    if api_key_env_var:
        return os.environ.get(api_key_env_var)
    return None


def _engine_setting(key: str, default: Any) -> Any:
    return get_nodeflow_config().get("engine", {}).get(key, default)


# ---------------------------------------------------------------------------
# EngineConfig – shared by the executor, services and CLI
# ---------------------------------------------------------------------------


@dataclass
class EngineConfig:
    """Engine configuration loaded from ~/.nodeflow/configuration.json."""

    model: str = field(default_factory=get_preferred_model)
    temperature: float = 0.7
    max_tokens: int = field(default_factory=get_max_tokens)
    api_key: str | None = field(default_factory=get_api_key)
    api_base: str | None = field(
        default_factory=lambda: get_nodeflow_config().get("llm", {}).get("api_base")
    )
    http_timeout: float = field(
        default_factory=lambda: float(_engine_setting("http_timeout", DEFAULT_HTTP_TIMEOUT))
    )
    max_loop_iterations: int = field(
        default_factory=lambda: int(_engine_setting("max_loop_iterations", MAX_LOOP_ITERATIONS))
    )
