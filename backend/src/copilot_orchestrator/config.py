"""Orchestrator configuration: paths, defaults and environment settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from main_config import (
    PROMPTS_DIR as _PROMPTS_DIR,
    SESSIONS_DIR as _SESSIONS_DIR,
)

load_dotenv()

# Path objects for use in this package (main_config uses os.path strings)
SESSIONS_DIR = Path(_SESSIONS_DIR)
PROMPTS_DIR = Path(_PROMPTS_DIR)

DEFAULT_MODEL = "gemini:gemini-2.0-flash"
DEFAULT_AGENT = "road_companion"
DEFAULT_MAX_TOOL_CYCLES = 8
DEFAULT_MODEL_TIMEOUT = 60.0
DEFAULT_STREAM_IDLE_TIMEOUT = 30.0
DEFAULT_TOOL_TIMEOUT = 20.0
DISPLAY_TIMEZONE = "Europe/Helsinki"


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass
class OrchestratorSettings:
    """Runtime settings for the service, usually built with ``from_env()``."""

    model: str = DEFAULT_MODEL
    agent: str = DEFAULT_AGENT
    max_tool_cycles: int = DEFAULT_MAX_TOOL_CYCLES
    model_timeout: float = DEFAULT_MODEL_TIMEOUT
    stream_idle_timeout: float = DEFAULT_STREAM_IDLE_TIMEOUT
    tool_timeout: float | None = DEFAULT_TOOL_TIMEOUT
    session_backend: str = "memory"  # "memory" | "json"
    sessions_dir: Path = SESSIONS_DIR
    max_sessions: int | None = None
    session_ttl: float | None = None
    api_base_url: str | None = None
    display_timezone: str = DISPLAY_TIMEZONE
    cors_origins: tuple[str, ...] = ("*",)

    @classmethod
    def from_env(cls) -> OrchestratorSettings:
        origins = os.getenv("COPILOT_CORS_ORIGINS", "*")
        return cls(
            model=os.getenv("COPILOT_MODEL", DEFAULT_MODEL),
            agent=os.getenv("COPILOT_AGENT", DEFAULT_AGENT),
            max_tool_cycles=_env_int("COPILOT_MAX_TOOL_CYCLES", DEFAULT_MAX_TOOL_CYCLES) or DEFAULT_MAX_TOOL_CYCLES,
            model_timeout=_env_float("COPILOT_MODEL_TIMEOUT", DEFAULT_MODEL_TIMEOUT) or DEFAULT_MODEL_TIMEOUT,
            stream_idle_timeout=_env_float("COPILOT_STREAM_IDLE_TIMEOUT", DEFAULT_STREAM_IDLE_TIMEOUT)
            or DEFAULT_STREAM_IDLE_TIMEOUT,
            tool_timeout=_env_float("COPILOT_TOOL_TIMEOUT", DEFAULT_TOOL_TIMEOUT),
            session_backend=os.getenv("COPILOT_SESSION_BACKEND", "memory").strip().lower(),
            max_sessions=_env_int("COPILOT_MAX_SESSIONS", None),
            session_ttl=_env_float("COPILOT_SESSION_TTL", None),
            api_base_url=os.getenv("API_BASE_URL") or None,
            display_timezone=os.getenv("COPILOT_TIMEZONE", DISPLAY_TIMEZONE),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()) or ("*",),
        )
