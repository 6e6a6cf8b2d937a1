"""Wire the orchestrator's collaborators from settings."""

from __future__ import annotations

import logging

from src.copilot_tools import build_tool_registry, calendar_from_env

from .agents import get_agent
from .config import OrchestratorSettings
from .eviction import policy_from_settings
from .llm import ModelAdapter
from .loop import LoopOptions, Orchestrator
from .session_store import InMemorySessionStore, JsonFileSessionStore, SessionStore

logger = logging.getLogger(__name__)


def build_session_store(settings: OrchestratorSettings) -> SessionStore:
    eviction = policy_from_settings(settings.max_sessions, settings.session_ttl)
    if settings.session_backend == "json":
        return JsonFileSessionStore(settings.sessions_dir, eviction=eviction)
    if settings.session_backend != "memory":
        raise ValueError(f"Unknown session backend: {settings.session_backend}")
    return InMemorySessionStore(eviction=eviction)


def build_orchestrator(settings: OrchestratorSettings | None = None) -> Orchestrator:
    settings = settings or OrchestratorSettings.from_env()
    agent = get_agent(settings.agent)
    registry = build_tool_registry(
        api_base_url=settings.api_base_url,
        calendar=calendar_from_env(settings.display_timezone),
        tz_name=settings.display_timezone,
    )
    adapter = ModelAdapter.from_model_string(
        settings.model,
        timeout=settings.model_timeout,
        idle_timeout=settings.stream_idle_timeout,
        temperature=agent.temperature,
    )
    logger.info(
        "Orchestrator ready: agent=%s model=%s sessions=%s",
        agent.name,
        settings.model,
        settings.session_backend,
    )
    return Orchestrator(
        store=build_session_store(settings),
        registry=registry,
        adapter=adapter,
        agent=agent,
        options=LoopOptions(
            max_tool_cycles=settings.max_tool_cycles,
            tool_timeout=settings.tool_timeout,
            display_timezone=settings.display_timezone,
        ),
    )
