"""Offline itinerary synthesis used when the generative API is unavailable."""
from __future__ import annotations

import math
from datetime import date
from typing import Dict, List, Optional

from travel_copilot.agents.response_formatter import format_mode_sections
from travel_copilot.agents.route_extractor import Route, display_city, extract_route
from travel_copilot.schemas import GenerationResult, Itinerary

BASE_PRICE: Dict[str, int] = {"bus": 800, "train": 1200, "plane": 4500}
TIER_MULTIPLIER: Dict[str, float] = {"budget": 1.0, "balanced": 1.5, "comfort": 2.5}
HOTEL_BASE_PRICE: Dict[str, int] = {"budget": 1200, "balanced": 3500, "comfort": 9000}
MODE_SEED_FACTOR: Dict[str, int] = {"bus": 1, "train": 2, "plane": 3}
DURATIONS: Dict[str, str] = {"bus": "12h 30m", "train": "8h 45m", "plane": "2h 10m"}

LOCAL_SUMMARIES: Dict[str, str] = {
    "plane": "Standard flight options for this route.",
    "train": "Comfortable rail journeys available.",
    "bus": "Economic road travel options.",
}

FALLBACK_PLAN = (("plane", "balanced"), ("train", "balanced"), ("bus", "budget"))


def tradeoff_multiplier(tradeoff: float) -> float:
    """Map the 0-100 budget/comfort slider onto a 0.8-1.2 price factor."""
    return 0.8 + (_clamp_tradeoff(tradeoff) / 100) * 0.4


def generate_local_response(
    text: str,
    travel_mode: str = "plane",
    tradeoff: float = 50,
    *,
    route: Optional[Route] = None,
    today: Optional[date] = None,
) -> GenerationResult:
    """Build three canned itineraries (plane, train, bus) for the route in ``text``.

    ``travel_mode`` only affects which tagged block the chat view shows; all
    three modes are always produced. An already resolved ``route`` skips the
    text heuristics.
    """
    route = route or extract_route(text)
    from_city = display_city(route.from_city)
    to_city = display_city(route.to_city)
    tradeoff = _clamp_tradeoff(tradeoff)
    travel_date = (today or date.today()).isoformat()

    itineraries = [
        build_itinerary(mode, tier, from_city, to_city, tradeoff, travel_date)
        for mode, tier in FALLBACK_PLAN
    ]
    return GenerationResult(
        text=format_mode_sections(LOCAL_SUMMARIES, itineraries),
        itineraries=itineraries,
        is_fallback=True,
    )


def build_itinerary(
    mode: str,
    tier: str,
    from_city: str,
    to_city: str,
    tradeoff: float,
    travel_date: str,
) -> Itinerary:
    multiplier = tradeoff_multiplier(tradeoff)
    cost = round_half_up(BASE_PRICE[mode] * TIER_MULTIPLIER[tier] * multiplier)
    hotel_price = round_half_up(HOTEL_BASE_PRICE[tier] * multiplier)
    seed = (len(from_city) + len(to_city)) * MODE_SEED_FACTOR[mode]
    duration = DURATIONS[mode]
    amenities = ["WiFi", "AC", "Pool", "Breakfast", "Spa"] if tradeoff > 60 else ["WiFi", "AC", "Breakfast"]

    return Itinerary.model_validate(
        {
            "id": f"itin-{mode}-{tier}-{seed}",
            "type": tier,
            "transportMode": mode,
            "flight": {
                "id": f"fl-{mode}-{seed}",
                "airline": _carrier(mode, tier),
                "flightNo": _service_number(mode, seed),
                "departure": {
                    "city": from_city,
                    "airport": from_city[:3].upper(),
                    "time": f"{8 + seed % 10:02d}:30",
                    "date": travel_date,
                },
                "arrival": {
                    "city": to_city,
                    "airport": to_city[:3].upper(),
                    "time": f"{14 + seed % 8:02d}:15",
                    "date": travel_date,
                },
                "duration": duration,
                "price": cost,
                "stops": 0,
                "isRedEye": tier == "budget" and seed % 2 == 0,
                "comfortScore": min(10, {"budget": 4, "balanced": 7}.get(tier, 9) + round_half_up(tradeoff / 50)),
            },
            "hotel": {
                "id": f"ht-{mode}-{seed}",
                "name": _hotel_name(tier, to_city),
                "city": to_city,
                "rating": min(5.0, {"budget": 3.0, "balanced": 4.0}.get(tier, 4.5) + tradeoff / 200),
                "pricePerNight": hotel_price,
                "amenities": amenities,
                "roomType": "Luxury Suite" if tradeoff > 80 else "Deluxe Room",
                "comfortScore": 5 if tier == "budget" else 9,
            },
            "totalCost": cost + hotel_price * 2,
            "totalDuration": duration,
            "explanation": [f"Local {mode} {tier} option."],
            "risks": [],
            "priceTrend": "stable",
            "confidenceScore": 85,
        }
    )


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp_tradeoff(value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 50.0
    if math.isnan(value):
        return 50.0
    return max(0.0, min(100.0, value))


def _carrier(mode: str, tier: str) -> str:
    if mode == "bus":
        return "RedBus Partner"
    if mode == "train":
        return "Indian Railways"
    return "IndiGo" if tier == "budget" else "Vistara"


def _service_number(mode: str, seed: int) -> str:
    if mode == "bus":
        return f"BUS-{100 + seed % 900}"
    if mode == "train":
        return str(12000 + seed)
    return f"UK-{900 + seed % 99}"


def _hotel_name(tier: str, city: str) -> str:
    suffix = {"budget": "Comfort Stay", "balanced": "Regency"}.get(tier, "Grand Plaza")
    return f"{city} {suffix}"


def fallback_itineraries(text: str, travel_mode: str, tradeoff: float) -> List[Itinerary]:
    return generate_local_response(text, travel_mode, tradeoff).itineraries
