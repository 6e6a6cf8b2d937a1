"""Parking spots and car-service garages near the driver."""

from __future__ import annotations

from typing import Any

from src.copilot_orchestrator.errors import ToolExecutionError

from .data import GARAGE_SERVICES, GARAGES, PARKING_OPTIONS


def get_parking_options(destination: str | None = None) -> dict[str, Any]:
    return {
        "destination": destination or "current location",
        "options": sorted(PARKING_OPTIONS, key=lambda p: p["distance_km"]),
    }


def get_nearby_garages(service: str | None = None) -> dict[str, Any]:
    garages = GARAGES
    if service:
        key = service.strip().lower().replace(" ", "_")
        if key not in GARAGE_SERVICES:
            raise ToolExecutionError(
                f"Unknown service '{service}'. Known services: {', '.join(GARAGE_SERVICES)}"
            )
        garages = [g for g in GARAGES if key in g["services"]]
    return {
        "service": service,
        "garages": sorted(garages, key=lambda g: g["distance_km"]),
    }
