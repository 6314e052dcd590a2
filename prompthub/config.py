"""Configuration loading and defaults.

Reads from config.toml at the project root, with environment variable overrides.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

from dotenv import load_dotenv

# Look for .env in the package's parent directory (project root)
_project_root = Path(__file__).resolve().parent.parent
load_dotenv(_project_root / ".env")
load_dotenv()  # also check cwd

# ---------------------------------------------------------------------------
# Load config.toml
# ---------------------------------------------------------------------------

_toml_path = Path(os.getenv("PROMPTHUB_CONFIG", str(_project_root / "config.toml")))
_cfg: dict = {}
if _toml_path.exists():
    with open(_toml_path, "rb") as f:
        _cfg = tomllib.load(f)

_server = _cfg.get("server", {})
_models = _cfg.get("models", {})
_vault = _cfg.get("vault", {})
_validation = _cfg.get("validation", {})

# ---------------------------------------------------------------------------
# Provider API keys (env-only, never in toml)
# ---------------------------------------------------------------------------

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")

# ---------------------------------------------------------------------------
# Model defaults
# ---------------------------------------------------------------------------

DEFAULT_PROVIDER = os.getenv("PROMPTHUB_DEFAULT_PROVIDER", _models.get("default_provider", "mock"))
DEFAULT_MODELS = {
    "openai": os.getenv("PROMPTHUB_OPENAI_MODEL", _models.get("openai_model", "gpt-4o-mini")),
    "anthropic": os.getenv("PROMPTHUB_ANTHROPIC_MODEL", _models.get("anthropic_model", "claude-sonnet-4-5")),
    "mock": "mock-model",
}
DEFAULT_TEMPERATURE = float(os.getenv("PROMPTHUB_TEMPERATURE", _models.get("temperature", 0.7)))
DEFAULT_MAX_TOKENS = int(os.getenv("PROMPTHUB_MAX_TOKENS", _models.get("max_tokens", 1000)))
MODEL_TIMEOUT_SECONDS = float(os.getenv("PROMPTHUB_MODEL_TIMEOUT", _models.get("timeout_seconds", 60)))

# ---------------------------------------------------------------------------
# Vault
# ---------------------------------------------------------------------------

PROMPTS_FILE = str(_project_root / os.getenv("PROMPTHUB_PROMPTS_FILE", _vault.get("prompts_file", "prompts.json")))
EVENT_LOG_FILE = os.getenv("PROMPTHUB_EVENT_LOG", _vault.get("event_log", "")) or None

# ---------------------------------------------------------------------------
# Validation limits
# ---------------------------------------------------------------------------

MAX_DAG_NODES = int(os.getenv("PROMPTHUB_MAX_DAG_NODES", _validation.get("max_dag_nodes", 50)))
MAX_TEMPLATE_LENGTH = int(os.getenv("PROMPTHUB_MAX_TEMPLATE_LENGTH", _validation.get("max_template_length", 50000)))

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------

SERVER_NAME = "prompthub-mcp"
SERVER_HOST = os.getenv("PROMPTHUB_HOST", _server.get("host", "0.0.0.0"))
SERVER_PORT = int(os.getenv("PROMPTHUB_PORT", _server.get("port", 8000)))
LOG_LEVEL = os.getenv("PROMPTHUB_LOG_LEVEL", _server.get("log_level", "INFO")).upper()
