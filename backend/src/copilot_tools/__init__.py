"""Tools available to the copilot agents, and the registry that holds them."""

from __future__ import annotations

import random

from src.copilot_orchestrator.config import DISPLAY_TIMEZONE
from src.copilot_orchestrator.tools import FieldSpec, ToolDescriptor, ToolRegistry

from .calendar import CalendarProvider, GoogleCalendarClient, InMemoryCalendar, calendar_from_env
from .menu_api import MenuApiClient
from .parking import get_nearby_garages, get_parking_options
from .restaurants import OrderService, get_menu, get_nearby_restaurants
from .travel import TravelService

RESTAURANT_TYPES = ("burger", "pizza", "salad")


def build_tool_registry(
    *,
    api_base_url: str | None = None,
    calendar: CalendarProvider | None = None,
    tz_name: str = DISPLAY_TIMEZONE,
    orders: OrderService | None = None,
    travel: TravelService | None = None,
    menu_api: MenuApiClient | None = None,
    rng: random.Random | None = None,
) -> ToolRegistry:
    """Register every tool once; agents pick their subset by name."""
    calendar = calendar or InMemoryCalendar(tz_name)
    orders = orders or OrderService(tz_name, rng=rng)
    travel = travel or TravelService()
    menu_api = menu_api or MenuApiClient(api_base_url)

    registry = ToolRegistry()
    registry.add_closer(menu_api.aclose)
    registry.add_closer(calendar.aclose)

    registry.register(ToolDescriptor(
        name="get_restaurant_menu",
        description="Fetches the restaurant's menu items including names, descriptions, and prices.",
        handler=menu_api.get_restaurant_menu,
    ))
    registry.register(ToolDescriptor(
        name="get_nearby_restaurants",
        description=(
            "Get a list of nearby restaurants available for ordering food, including their "
            "price points (cheap, moderate, expensive) and descriptions."
        ),
        handler=get_nearby_restaurants,
    ))
    registry.register(ToolDescriptor(
        name="get_menu",
        description="Get the menu of a nearby restaurant with item ids and prices in euros.",
        handler=get_menu,
        input_schema={
            "restaurant_type": FieldSpec("string", "Type of restaurant", enum=RESTAURANT_TYPES),
        },
    ))
    registry.register(ToolDescriptor(
        name="place_order",
        description=(
            "Place a food order once the driver has confirmed it. Returns the total, "
            "an estimated wait in minutes and the arrival time."
        ),
        handler=orders.place_order,
        input_schema={
            "restaurant_type": FieldSpec("string", "Type of restaurant", enum=RESTAURANT_TYPES),
            "item_ids": FieldSpec("array", "Menu item ids from get_menu", items="string"),
        },
    ))
    registry.register(ToolDescriptor(
        name="get_parking_options",
        description="Find available parking spots near the destination with distance and hourly price.",
        handler=get_parking_options,
        input_schema={
            "destination": FieldSpec("string", "Where the driver is heading", required=False),
        },
    ))
    registry.register(ToolDescriptor(
        name="get_nearby_garages",
        description="Find nearby car services: maintenance, tyres, charging or car wash.",
        handler=get_nearby_garages,
        input_schema={
            "service": FieldSpec(
                "string",
                "Service needed",
                required=False,
                enum=("maintenance", "tyres", "charging", "car_wash"),
            ),
        },
    ))
    registry.register(ToolDescriptor(
        name="get_hotels",
        description="Get hotels in a destination city as JSON with hotel identifiers.",
        handler=travel.get_hotels,
        input_schema={
            "destination": FieldSpec("string", "Destination city"),
            "preference": FieldSpec("string", "Hotel tier", required=False, default="nice", enum=("nice", "budget")),
        },
    ))
    registry.register(ToolDescriptor(
        name="book_hotel",
        description="Book a hotel by its identifier and return a confirmation.",
        handler=travel.book_hotel,
        input_schema={
            "hotel_identifier": FieldSpec("string", "Hotel id from get_hotels or the itinerary"),
        },
    ))
    registry.register(ToolDescriptor(
        name="get_restaurant_recommendations",
        description="Get restaurant recommendations in a destination city as JSON with restaurant identifiers.",
        handler=travel.get_restaurant_recommendations,
        input_schema={
            "destination": FieldSpec("string", "Destination city"),
            "preference": FieldSpec(
                "string", "Dining style", required=False, default="fine_dining", enum=("fine_dining", "casual")
            ),
        },
    ))
    registry.register(ToolDescriptor(
        name="build_itinerary",
        description="Build a spoken itinerary from the JSON results of get_hotels and get_restaurant_recommendations.",
        handler=travel.build_itinerary,
        input_schema={
            "hotels_json": FieldSpec("string", "JSON returned by get_hotels"),
            "restaurants_json": FieldSpec("string", "JSON returned by get_restaurant_recommendations"),
        },
    ))
    registry.register(ToolDescriptor(
        name="book_restaurant",
        description="Reserve a table at a recommended restaurant.",
        handler=travel.book_restaurant,
        input_schema={
            "restaurant_identifier": FieldSpec("string", "Restaurant id from the recommendations"),
            "time": FieldSpec("string", "Reservation time, e.g. 19:30"),
            "party_size": FieldSpec("integer", "Number of guests"),
        },
    ))
    registry.register(ToolDescriptor(
        name="get_calendar_events",
        description="List the driver's upcoming calendar events.",
        handler=calendar.get_calendar_events,
        input_schema={
            "max_results": FieldSpec("integer", "How many events to return", required=False, default=5),
        },
    ))
    registry.register(ToolDescriptor(
        name="create_calendar_event",
        description=(
            "Create a calendar event. Times are ISO 8601 (YYYY-MM-DDTHH:MM:SS) in local time; "
            "the default duration is one hour."
        ),
        handler=calendar.create_calendar_event,
        input_schema={
            "summary": FieldSpec("string", "Event title"),
            "start_time": FieldSpec("string", "Start time, ISO 8601"),
            "end_time": FieldSpec("string", "End time, ISO 8601", required=False),
            "location": FieldSpec("string", "Event location", required=False),
        },
    ))
    return registry


__all__ = [
    "CalendarProvider",
    "GoogleCalendarClient",
    "InMemoryCalendar",
    "MenuApiClient",
    "OrderService",
    "TravelService",
    "build_tool_registry",
    "calendar_from_env",
]
