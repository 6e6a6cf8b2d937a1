"""Trip planning: hotels, restaurant picks, itineraries and bookings."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from src.copilot_orchestrator.errors import ToolExecutionError

from .data import HOTELS, RESTAURANT_RECOMMENDATIONS

logger = logging.getLogger(__name__)


def _city_key(destination: str) -> str:
    return destination.strip().lower()


def _slug(destination: str) -> str:
    return "-".join(destination.strip().lower().split()) or "city"


def _fallback_hotels(destination: str) -> list[dict[str, Any]]:
    city = destination.strip().title()
    slug = _slug(destination)
    return [
        {"id": f"{slug}-grand", "name": f"Grand Hotel {city}", "tier": "nice", "price_per_night": 220, "area": "City center"},
        {"id": f"{slug}-inn", "name": f"{city} City Inn", "tier": "budget", "price_per_night": 85, "area": "Near the station"},
    ]


def _fallback_restaurants(destination: str) -> list[dict[str, Any]]:
    city = destination.strip().title()
    slug = _slug(destination)
    return [
        {"id": f"{slug}-table", "name": f"Table {city}", "style": "fine_dining", "cuisine": "Seasonal tasting menu", "price_level": "€€€€"},
        {"id": f"{slug}-bistro", "name": f"Bistro {city}", "style": "casual", "cuisine": "Bistro", "price_level": "€€"},
    ]


def _prefer(entries: list[dict[str, Any]], field: str, value: str) -> list[dict[str, Any]]:
    """Entries matching the preference first; everything else after."""
    preferred = [e for e in entries if e[field] == value]
    return preferred + [e for e in entries if e[field] != value]


def _parse_payload(raw: str, name: str) -> dict[str, Any]:
    try:
        payload = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise ToolExecutionError(f"{name} is not valid JSON: {e}") from None
    if not isinstance(payload, dict):
        raise ToolExecutionError(f"{name} must be a JSON object")
    return payload


class TravelService:
    """Static travel catalogue plus an in-process booking ledger."""

    def __init__(self) -> None:
        self.bookings: dict[str, dict[str, Any]] = {}

    def get_hotels(self, destination: str, preference: str = "nice") -> dict[str, Any]:
        entries = HOTELS.get(_city_key(destination)) or _fallback_hotels(destination)
        return {"destination": destination, "preference": preference, "hotels": _prefer(entries, "tier", preference)}

    def get_restaurant_recommendations(
        self, destination: str, preference: str = "fine_dining"
    ) -> dict[str, Any]:
        entries = RESTAURANT_RECOMMENDATIONS.get(_city_key(destination)) or _fallback_restaurants(destination)
        return {
            "destination": destination,
            "preference": preference,
            "restaurants": _prefer(entries, "style", preference),
        }

    def build_itinerary(self, hotels_json: str, restaurants_json: str) -> str:
        hotel_payload = _parse_payload(hotels_json, "hotels_json")
        restaurant_payload = _parse_payload(restaurants_json, "restaurants_json")
        hotels = hotel_payload.get("hotels") or []
        restaurants = restaurant_payload.get("restaurants") or []
        if not hotels and not restaurants:
            raise ToolExecutionError("Nothing to build an itinerary from")

        destination = (
            hotel_payload.get("destination")
            or restaurant_payload.get("destination")
            or "your destination"
        )
        sentences = [f"Here's your trip to {destination}."]
        if hotels:
            hotel = hotels[0]
            sentences.append(
                f"You'll stay at {hotel['name']} in {hotel.get('area', 'the city')}, "
                f"about {hotel['price_per_night']} euros a night."
            )
        if restaurants:
            dinner = restaurants[0]
            sentences.append(f"For dinner I suggest {dinner['name']}, serving {dinner.get('cuisine', 'local food')}.")
            if len(restaurants) > 1:
                sentences.append(f"As an alternative there's {restaurants[1]['name']}.")
        sentences.append("Should I book the hotel or the restaurant for you?")
        return " ".join(sentences)

    def _find(self, identifier: str, catalogue: dict[str, list[dict[str, Any]]]) -> dict[str, Any] | None:
        for entries in catalogue.values():
            for entry in entries:
                if entry["id"] == identifier:
                    return entry
        return None

    def _hotel(self, identifier: str) -> dict[str, Any] | None:
        found = self._find(identifier, HOTELS)
        if found is None and identifier.endswith(("-grand", "-inn")):
            city = identifier.rsplit("-", 1)[0].replace("-", " ")
            found = next((h for h in _fallback_hotels(city) if h["id"] == identifier), None)
        return found

    def _restaurant(self, identifier: str) -> dict[str, Any] | None:
        found = self._find(identifier, RESTAURANT_RECOMMENDATIONS)
        if found is None and identifier.endswith(("-table", "-bistro")):
            city = identifier.rsplit("-", 1)[0].replace("-", " ")
            found = next((r for r in _fallback_restaurants(city) if r["id"] == identifier), None)
        return found

    def _record(self, kind: str, details: dict[str, Any]) -> str:
        code = uuid.uuid4().hex[:6].upper()
        self.bookings[code] = {"kind": kind, **details}
        logger.info("Booked %s %s (%s)", kind, details.get("name"), code)
        return code

    def book_hotel(self, hotel_identifier: str) -> str:
        hotel = self._hotel(hotel_identifier)
        if hotel is None:
            raise ToolExecutionError(f"Unknown hotel identifier '{hotel_identifier}'")
        code = self._record("hotel", {"id": hotel["id"], "name": hotel["name"]})
        return f"Your room at {hotel['name']} is booked. Confirmation code {code}."

    def book_restaurant(self, restaurant_identifier: str, time: str, party_size: int) -> str:
        restaurant = self._restaurant(restaurant_identifier)
        if restaurant is None:
            raise ToolExecutionError(f"Unknown restaurant identifier '{restaurant_identifier}'")
        if party_size < 1:
            raise ToolExecutionError("party_size must be at least 1")
        code = self._record(
            "restaurant",
            {"id": restaurant["id"], "name": restaurant["name"], "time": time, "party_size": party_size},
        )
        guests = "one person" if party_size == 1 else f"{party_size} people"
        return f"Table for {guests} at {restaurant['name']} at {time} is booked. Confirmation code {code}."
