"""Utilities for loading and rendering agent system prompts from disk."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from .agents import AgentConfig
from .config import DISPLAY_TIMEZONE, PROMPTS_DIR

_cached_prompts: dict[Path, str] = {}


def _read_file(path: Path) -> str:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return ""
    return text.strip()


def get_prompt_template(agent: AgentConfig, prompts_dir: Path | None = None) -> str:
    """Return the agent's prompt template, cached after first read.

    If the prompt file does not exist or cannot be read, returns an empty string.
    """
    path = (prompts_dir or PROMPTS_DIR) / agent.prompt_file
    if path not in _cached_prompts:
        _cached_prompts[path] = _read_file(path)
    return _cached_prompts[path]


def format_now(now: datetime | None = None, tz_name: str = DISPLAY_TIMEZONE) -> tuple[str, str]:
    """(current date and time, today's date) as spoken text in ``tz_name``."""
    tz = ZoneInfo(tz_name)
    local = now.astimezone(tz) if now is not None else datetime.now(tz)
    hour = local.strftime("%I").lstrip("0") or "12"
    today = f"{local.strftime('%A, %B')} {local.day}, {local.year}"
    current = f"{today} at {hour}:{local.strftime('%M %p')}"
    return current, today


def render_system_prompt(
    agent: AgentConfig,
    now: datetime | None = None,
    tz_name: str = DISPLAY_TIMEZONE,
    prompts_dir: Path | None = None,
) -> str:
    """Render the agent's prompt with the current date and time filled in."""
    current, today = format_now(now, tz_name)
    return (
        get_prompt_template(agent, prompts_dir)
        .replace("{current_datetime}", current)
        .replace("{today}", today)
        .replace("{timezone}", tz_name)
    )
