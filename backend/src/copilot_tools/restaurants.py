"""Food ordering: nearby restaurants, their menus and order placement."""

from __future__ import annotations

import random
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

from src.copilot_orchestrator.errors import ToolExecutionError

from .data import MENUS, RESTAURANT_DIRECTORY

MIN_ETA_MINUTES = 5
MAX_ETA_MINUTES = 15


def get_nearby_restaurants() -> str:
    lines = [
        f"{r['name']} ({r['type']}): {r['price_point']} price point - {r['description']}"
        for r in RESTAURANT_DIRECTORY
    ]
    return "Nearby restaurants:\n" + "\n".join(lines)


def _restaurant(restaurant_type: str) -> dict[str, str]:
    key = restaurant_type.strip().lower()
    for r in RESTAURANT_DIRECTORY:
        if r["type"] == key:
            return r
    known = ", ".join(r["type"] for r in RESTAURANT_DIRECTORY)
    raise ToolExecutionError(f"Unknown restaurant type '{restaurant_type}'. Known types: {known}")


def get_menu(restaurant_type: str) -> dict[str, Any]:
    restaurant = _restaurant(restaurant_type)
    return {
        "restaurant": restaurant["name"],
        "type": restaurant["type"],
        "currency": "EUR",
        "items": MENUS[restaurant["type"]],
    }


class OrderService:
    """Places orders and estimates when they will be ready."""

    def __init__(
        self,
        tz_name: str,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.tz = ZoneInfo(tz_name)
        self.rng = rng or random.Random()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.orders: dict[str, dict[str, Any]] = {}

    def place_order(self, restaurant_type: str, item_ids: list[str]) -> dict[str, Any]:
        restaurant = _restaurant(restaurant_type)
        if not item_ids:
            raise ToolExecutionError("An order needs at least one item")
        menu = {item["id"]: item for item in MENUS[restaurant["type"]]}
        unknown = [i for i in item_ids if i not in menu]
        if unknown:
            raise ToolExecutionError(
                f"Unknown item id(s) for {restaurant['name']}: {', '.join(unknown)}"
            )

        items = [menu[i] for i in item_ids]
        total = round(sum(item["price"] for item in items), 2)
        eta = self.rng.randint(MIN_ETA_MINUTES, MAX_ETA_MINUTES)
        arrival = (self.clock() + timedelta(minutes=eta)).astimezone(self.tz)
        order_id = f"ORD-{uuid.uuid4().hex[:8].upper()}"
        order = {
            "order_id": order_id,
            "restaurant": restaurant["name"],
            "items": [item["name"] for item in items],
            "total": total,
            "currency": "EUR",
            "eta_minutes": eta,
            "arrival_time": arrival.strftime("%H:%M"),
            "arrival_at": arrival.isoformat(),
        }
        self.orders[order_id] = order
        return order
