"""Static datasets behind the road companion's tools."""

from __future__ import annotations

from typing import Any

RESTAURANT_DIRECTORY: list[dict[str, str]] = [
    {
        "name": "Pizza Palace",
        "type": "pizza",
        "price_point": "moderate",
        "description": "Italian-style pizzas with fresh ingredients",
    },
    {
        "name": "Burger House",
        "type": "burger",
        "price_point": "cheap",
        "description": "Fast and affordable burgers",
    },
    {
        "name": "Fresh Greens",
        "type": "salad",
        "price_point": "moderate",
        "description": "Healthy salads and fresh options",
    },
]

# Prices in euros
MENUS: dict[str, list[dict[str, Any]]] = {
    "burger": [
        {"id": "b1", "name": "Classic Burger", "price": 10.99},
        {"id": "b2", "name": "Cheeseburger", "price": 11.99},
        {"id": "b3", "name": "Bacon Burger", "price": 12.99},
        {"id": "b4", "name": "Veggie Burger", "price": 11.49},
        {"id": "b5", "name": "French Fries", "price": 3.99},
        {"id": "b6", "name": "Milkshake", "price": 5.99},
    ],
    "pizza": [
        {"id": "p1", "name": "Margherita", "price": 11.50},
        {"id": "p2", "name": "Pepperoni", "price": 12.90},
        {"id": "p3", "name": "Quattro Formaggi", "price": 13.90},
        {"id": "p4", "name": "Vegetariana", "price": 12.50},
        {"id": "p5", "name": "Tiramisu", "price": 6.50},
    ],
    "salad": [
        {"id": "s1", "name": "Caesar Salad", "price": 10.90},
        {"id": "s2", "name": "Greek Salad", "price": 9.90},
        {"id": "s3", "name": "Quinoa Power Bowl", "price": 12.40},
        {"id": "s4", "name": "Fresh Juice", "price": 4.90},
    ],
}

PARKING_OPTIONS: list[dict[str, Any]] = [
    {"id": "park-1", "name": "City Center Garage", "distance_km": 0.3, "price_per_hour": 4.0, "available_spots": 42},
    {"id": "park-2", "name": "Harbor Parking", "distance_km": 0.8, "price_per_hour": 2.5, "available_spots": 15},
    {"id": "park-3", "name": "Station Park & Ride", "distance_km": 1.6, "price_per_hour": 1.2, "available_spots": 120},
]

GARAGES: list[dict[str, Any]] = [
    {"id": "garage-1", "name": "QuickFix Auto", "distance_km": 1.1, "services": ["maintenance", "tyres"], "open_until": "18:00"},
    {"id": "garage-2", "name": "Volt Charging Hub", "distance_km": 0.6, "services": ["charging"], "open_until": "24h"},
    {"id": "garage-3", "name": "Shine Car Wash", "distance_km": 2.0, "services": ["car_wash"], "open_until": "20:00"},
    {"id": "garage-4", "name": "Nordic Tyre Center", "distance_km": 3.4, "services": ["tyres"], "open_until": "17:00"},
]

GARAGE_SERVICES = ("maintenance", "tyres", "charging", "car_wash")

HOTELS: dict[str, list[dict[str, Any]]] = {
    "helsinki": [
        {"id": "hel-kamp", "name": "Hotel Kämp", "tier": "nice", "price_per_night": 320, "area": "Esplanadi"},
        {"id": "hel-st-george", "name": "Hotel St. George", "tier": "nice", "price_per_night": 290, "area": "Old Church Park"},
        {"id": "hel-omena", "name": "Omena Hotel Helsinki", "tier": "budget", "price_per_night": 89, "area": "Kamppi"},
    ],
    "tampere": [
        {"id": "tre-lapland", "name": "Lapland Hotels Tampere", "tier": "nice", "price_per_night": 180, "area": "Ratina"},
        {"id": "tre-dream", "name": "Dream Hostel & Hotel", "tier": "budget", "price_per_night": 65, "area": "Kaleva"},
    ],
    "turku": [
        {"id": "tku-kakola", "name": "Hotel Kakola", "tier": "nice", "price_per_night": 210, "area": "Kakolanmäki"},
        {"id": "tku-centro", "name": "Hotel Centro", "tier": "budget", "price_per_night": 95, "area": "City center"},
    ],
}

RESTAURANT_RECOMMENDATIONS: dict[str, list[dict[str, Any]]] = {
    "helsinki": [
        {"id": "hel-palace", "name": "Palace", "style": "fine_dining", "cuisine": "Nordic", "price_level": "€€€€"},
        {"id": "hel-olo", "name": "Olo", "style": "fine_dining", "cuisine": "Modern Finnish", "price_level": "€€€€"},
        {"id": "hel-savotta", "name": "Savotta", "style": "casual", "cuisine": "Traditional Finnish", "price_level": "€€"},
    ],
    "tampere": [
        {"id": "tre-c", "name": "Restaurant C", "style": "fine_dining", "cuisine": "Nordic tasting menu", "price_level": "€€€€"},
        {"id": "tre-tuulensuu", "name": "Gastropub Tuulensuu", "style": "casual", "cuisine": "Gastropub", "price_level": "€€"},
    ],
    "turku": [
        {"id": "tku-kaskis", "name": "Kaskis", "style": "fine_dining", "cuisine": "Seasonal Finnish", "price_level": "€€€€"},
        {"id": "tku-tintå", "name": "Tintå", "style": "casual", "cuisine": "Wine bar", "price_level": "€€"},
    ],
}
