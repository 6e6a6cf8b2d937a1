"""Unit tests for copilot_tools: restaurants, parking, travel, calendar, menu API."""
from __future__ import annotations

import json
import random
import unittest
from datetime import datetime, timezone
from unittest import mock

import httpx

from src.copilot_orchestrator.agents import RESTAURANT_SERVICE_AGENT, ROAD_COMPANION_AGENT
from src.copilot_orchestrator.errors import ToolExecutionError
from src.copilot_orchestrator.models import ToolCallRequest
from src.copilot_tools import MenuApiClient, OrderService, TravelService, build_tool_registry
from src.copilot_tools.calendar import GoogleCalendarClient, InMemoryCalendar, calendar_from_env
from src.copilot_tools.parking import get_nearby_garages, get_parking_options
from src.copilot_tools.restaurants import get_menu, get_nearby_restaurants

NOON_UTC = datetime(2025, 11, 20, 12, 0, tzinfo=timezone.utc)


class TestRestaurants(unittest.TestCase):
    def test_nearby_restaurants_lists_three(self) -> None:
        text = get_nearby_restaurants()
        for name in ("Pizza Palace", "Burger House", "Fresh Greens"):
            self.assertIn(name, text)
        self.assertEqual(len(text.splitlines()), 4)

    def test_menu_by_type(self) -> None:
        menu = get_menu("Burger")
        self.assertEqual(menu["restaurant"], "Burger House")
        self.assertIn({"id": "b3", "name": "Bacon Burger", "price": 12.99}, menu["items"])

    def test_menu_unknown_type(self) -> None:
        with self.assertRaises(ToolExecutionError):
            get_menu("sushi")

    def test_place_order_totals_and_arrival(self) -> None:
        orders = OrderService("Europe/Helsinki", rng=random.Random(7), clock=lambda: NOON_UTC)
        order = orders.place_order("burger", ["b3", "b6"])
        self.assertEqual(order["items"], ["Bacon Burger", "Milkshake"])
        self.assertAlmostEqual(order["total"], 18.98)
        self.assertGreaterEqual(order["eta_minutes"], 5)
        self.assertLessEqual(order["eta_minutes"], 15)
        # Helsinki is UTC+2 in November
        self.assertEqual(order["arrival_time"], f"14:{order['eta_minutes']:02d}")
        self.assertTrue(order["arrival_at"].endswith("+02:00"))
        self.assertIn(order["order_id"], orders.orders)

    def test_place_order_rejects_unknown_items(self) -> None:
        orders = OrderService("Europe/Helsinki")
        with self.assertRaises(ToolExecutionError):
            orders.place_order("pizza", ["b1"])
        with self.assertRaises(ToolExecutionError):
            orders.place_order("pizza", [])


class TestParking(unittest.TestCase):
    def test_parking_sorted_by_distance(self) -> None:
        options = get_parking_options("Kamppi")["options"]
        distances = [o["distance_km"] for o in options]
        self.assertEqual(distances, sorted(distances))

    def test_garages_filtered_by_service(self) -> None:
        garages = get_nearby_garages("tyres")["garages"]
        self.assertEqual({g["name"] for g in garages}, {"QuickFix Auto", "Nordic Tyre Center"})
        self.assertEqual(len(get_nearby_garages()["garages"]), 4)
        self.assertEqual(get_nearby_garages("car wash")["garages"][0]["name"], "Shine Car Wash")

    def test_garages_unknown_service(self) -> None:
        with self.assertRaises(ToolExecutionError):
            get_nearby_garages("paint job")


class TestTravel(unittest.TestCase):
    def setUp(self) -> None:
        self.travel = TravelService()

    def test_preferred_tier_first(self) -> None:
        hotels = self.travel.get_hotels("Helsinki", "budget")["hotels"]
        self.assertEqual(hotels[0]["tier"], "budget")
        self.assertEqual(len(hotels), 3)

    def test_unknown_city_falls_back(self) -> None:
        hotels = self.travel.get_hotels("Oulu")["hotels"]
        self.assertEqual(hotels[0]["name"], "Grand Hotel Oulu")
        code_sentence = self.travel.book_hotel(hotels[0]["id"])
        self.assertIn("Grand Hotel Oulu", code_sentence)

    def test_itinerary_from_tool_json(self) -> None:
        hotels = json.dumps(self.travel.get_hotels("Turku"))
        restaurants = json.dumps(self.travel.get_restaurant_recommendations("Turku"))
        text = self.travel.build_itinerary(hotels, restaurants)
        self.assertIn("Turku", text)
        self.assertIn("Hotel Kakola", text)
        self.assertIn("Kaskis", text)

    def test_itinerary_invalid_json(self) -> None:
        with self.assertRaises(ToolExecutionError):
            self.travel.build_itinerary("{not json", "{}")

    def test_bookings_recorded(self) -> None:
        confirmation = self.travel.book_restaurant("hel-olo", "19:30", 2)
        self.assertIn("Olo", confirmation)
        self.assertIn("2 people", confirmation)
        self.assertEqual(len(self.travel.bookings), 1)
        booking = next(iter(self.travel.bookings.values()))
        self.assertEqual(booking["kind"], "restaurant")

    def test_unknown_identifiers(self) -> None:
        with self.assertRaises(ToolExecutionError):
            self.travel.book_hotel("nowhere")
        with self.assertRaises(ToolExecutionError):
            self.travel.book_restaurant("nowhere", "19:00", 2)


class TestInMemoryCalendar(unittest.IsolatedAsyncioTestCase):
    async def test_create_defaults_to_one_hour_local_time(self) -> None:
        calendar = InMemoryCalendar("Europe/Helsinki", clock=lambda: NOON_UTC)
        created = await calendar.create_calendar_event("Dentist", "2025-11-21T14:00:00", location="Kamppi")
        self.assertTrue(created["created"])
        self.assertEqual(created["start"], "2025-11-21T14:00:00+02:00")
        self.assertEqual(created["end"], "2025-11-21T15:00:00+02:00")
        self.assertEqual(created["location"], "Kamppi")

        listed = await calendar.get_calendar_events(max_results=5)
        self.assertEqual([e["summary"] for e in listed["events"]], ["Dentist"])

    async def test_events_sorted_and_limited(self) -> None:
        calendar = InMemoryCalendar("Europe/Helsinki", clock=lambda: NOON_UTC)
        await calendar.create_calendar_event("Later", "2025-11-22T09:00:00")
        await calendar.create_calendar_event("Sooner", "2025-11-21T09:00:00")
        await calendar.create_calendar_event("Past", "2025-11-01T09:00:00")
        listed = await calendar.get_calendar_events(max_results=1)
        self.assertEqual([e["summary"] for e in listed["events"]], ["Sooner"])

    async def test_bad_times_rejected(self) -> None:
        calendar = InMemoryCalendar("Europe/Helsinki")
        with self.assertRaises(ToolExecutionError):
            await calendar.create_calendar_event("x", "tomorrow at two")
        with self.assertRaises(ToolExecutionError):
            await calendar.create_calendar_event("x", "2025-11-21T14:00:00", "2025-11-21T13:00:00")


class TestGoogleCalendarClient(unittest.IsolatedAsyncioTestCase):
    async def test_refreshes_token_once_and_posts_event(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.host == "oauth2.googleapis.com":
                return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
            if request.method == "POST":
                body = json.loads(request.content)
                return httpx.Response(200, json={"id": "ev1", **body})
            return httpx.Response(200, json={"items": []})

        client = GoogleCalendarClient(
            "id", "secret", "refresh", tz_name="Europe/Helsinki",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        created = await client.create_calendar_event("Lunch", "2025-11-21T12:00:00")
        await client.get_calendar_events()
        await client.aclose()

        self.assertEqual(created["id"], "ev1")
        self.assertEqual(created["summary"], "Lunch")
        token_calls = [r for r in seen if r.url.host == "oauth2.googleapis.com"]
        self.assertEqual(len(token_calls), 1)
        self.assertEqual(seen[1].headers["Authorization"], "Bearer tok")
        self.assertEqual(seen[2].url.params["maxResults"], "5")

    async def test_api_failure_is_tool_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "invalid_grant"})

        client = GoogleCalendarClient(
            "id", "secret", "refresh", tz_name="Europe/Helsinki",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        with self.assertRaises(ToolExecutionError):
            await client.get_calendar_events()
        await client.aclose()

    def test_calendar_from_env_without_credentials(self) -> None:
        with mock.patch.dict("os.environ", {}, clear=True):
            self.assertIsInstance(calendar_from_env("Europe/Helsinki"), InMemoryCalendar)


class TestMenuApi(unittest.IsolatedAsyncioTestCase):
    async def test_fetches_menu_json(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(str(request.url), "http://menu.local/menu")
            return httpx.Response(200, json={"items": [{"name": "Soup", "price": 7}]})

        api = MenuApiClient("http://menu.local/", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        data = json.loads(await api.get_restaurant_menu())
        await api.aclose()
        self.assertEqual(data["items"][0]["name"], "Soup")

    async def test_unconfigured_or_failing(self) -> None:
        unconfigured = MenuApiClient(None)
        with self.assertRaises(ToolExecutionError):
            await unconfigured.get_restaurant_menu()
        await unconfigured.aclose()

        api = MenuApiClient(
            "http://menu.local",
            client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))),
        )
        with self.assertRaises(ToolExecutionError):
            await api.get_restaurant_menu()
        await api.aclose()


class TestBuildToolRegistry(unittest.IsolatedAsyncioTestCase):
    async def test_every_agent_tool_registered(self) -> None:
        registry = build_tool_registry()
        for agent in (ROAD_COMPANION_AGENT, RESTAURANT_SERVICE_AGENT):
            self.assertEqual(registry.subset(agent.tool_names).names(), list(agent.tool_names))
        self.assertEqual(len(registry.names()), 13)
        await registry.aclose()

    async def test_place_order_through_registry(self) -> None:
        registry = build_tool_registry(rng=random.Random(1))
        result = await registry.execute(
            ToolCallRequest("c1", "place_order", {"restaurant_type": "salad", "item_ids": ["s2"]})
        )
        self.assertTrue(result.ok, result.error)
        self.assertEqual(json.loads(result.content)["restaurant"], "Fresh Greens")
        await registry.aclose()


if __name__ == "__main__":
    unittest.main()
