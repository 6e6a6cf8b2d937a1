"""Declarative agent configurations over the shared tool registry."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidInput


@dataclass(frozen=True)
class AgentConfig:
    """Which prompt and which subset of the registry an agent uses."""

    name: str
    prompt_file: str
    tool_names: tuple[str, ...]
    temperature: float | None = 0.7


RESTAURANT_SERVICE_AGENT = AgentConfig(
    name="restaurant_service",
    prompt_file="restaurant_service_system_prompt.md",
    tool_names=("get_restaurant_menu",),
)

ROAD_COMPANION_AGENT = AgentConfig(
    name="road_companion",
    prompt_file="road_companion_system_prompt.md",
    tool_names=(
        "get_nearby_restaurants",
        "get_menu",
        "place_order",
        "get_parking_options",
        "get_nearby_garages",
        "get_hotels",
        "book_hotel",
        "get_restaurant_recommendations",
        "build_itinerary",
        "book_restaurant",
        "get_calendar_events",
        "create_calendar_event",
    ),
)

AGENTS: dict[str, AgentConfig] = {
    a.name: a for a in (RESTAURANT_SERVICE_AGENT, ROAD_COMPANION_AGENT)
}


def get_agent(name: str) -> AgentConfig:
    try:
        return AGENTS[name]
    except KeyError:
        raise InvalidInput(f"Unknown agent '{name}'; expected one of: {', '.join(AGENTS)}") from None
