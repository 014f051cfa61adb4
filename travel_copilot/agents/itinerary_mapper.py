"""Convert model option payloads into :class:`Itinerary` entities."""
from __future__ import annotations

import re
import uuid
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from travel_copilot.schemas import Itinerary, TRANSPORT_MODES

_TIER_BY_INDEX = ("budget", "balanced", "comfort")
_COMFORT_BY_TIER = {"budget": 5, "balanced": 7, "comfort": 9}
_PRICE_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")


def map_options(
    options: Sequence[Dict[str, Any]],
    from_city: str,
    to_city: str,
    *,
    today: Optional[date] = None,
) -> List[Itinerary]:
    """Return one itinerary per option, preserving order.

    ``totalCost`` is always recomputed from the transport and hotel prices;
    any total supplied by the model is ignored. Raises ``ValueError`` when an
    option cannot be coerced into a valid itinerary.
    """
    travel_date = (today or date.today()).isoformat()
    batch = uuid.uuid4().hex[:8]
    return [
        _map_option(opt, idx, from_city, to_city, travel_date, batch)
        for idx, opt in enumerate(options)
    ]


def _map_option(
    opt: Any,
    idx: int,
    from_city: str,
    to_city: str,
    travel_date: str,
    batch: str,
) -> Itinerary:
    if not isinstance(opt, dict):
        raise ValueError(f"option {idx} is not an object")
    transport = opt.get("transport") or {}
    hotel = opt.get("hotel") or {}
    if not isinstance(transport, dict) or not isinstance(hotel, dict):
        raise ValueError(f"option {idx} has malformed transport/hotel blocks")

    tier = opt.get("type")
    if tier not in _COMFORT_BY_TIER:
        tier = _TIER_BY_INDEX[min(idx, 2)]
    mode = transport.get("mode")
    if mode not in TRANSPORT_MODES:
        mode = infer_transport_mode(transport.get("name"), transport.get("number"))

    transport_price = _number(transport.get("price"), f"option {idx} transport price")
    hotel_price = _number(hotel.get("price"), f"option {idx} hotel price")
    duration = str(transport.get("duration") or "")
    comfort = tier == "comfort"

    payload = {
        "id": f"ai-{mode}-{idx}-{batch}",
        "type": tier,
        "transportMode": mode,
        "flight": {
            "id": f"fl-{idx}",
            "airline": str(transport.get("name") or "Unknown operator"),
            "flightNo": str(transport.get("number") or ""),
            "departure": _endpoint(from_city, transport.get("depTime"), travel_date),
            "arrival": _endpoint(to_city, transport.get("arrTime"), travel_date),
            "duration": duration,
            "price": transport_price,
            "stops": 0,
            "isRedEye": False,
            "comfortScore": transport.get("comfortRating") or _COMFORT_BY_TIER[tier],
        },
        "hotel": {
            "id": f"ht-{idx}",
            "name": str(hotel.get("name") or f"{to_city} Hotel"),
            "city": to_city,
            "rating": hotel.get("rating") or 0,
            "pricePerNight": hotel_price,
            "amenities": ["WiFi", "Pool", "Spa"] if comfort else ["WiFi", "AC"],
            "roomType": "Suite" if comfort else "Standard",
            "comfortScore": _COMFORT_BY_TIER[tier],
            "nearestHospital": hotel.get("nearestHospital"),
            "recommendedCafe": hotel.get("recommendedCafe"),
        },
        "totalCost": transport_price + hotel_price * 2,
        "totalDuration": duration,
        "explanation": [
            str(item) for item in (opt.get("description"), opt.get("bookingTips")) if item
        ],
        "risks": [],
        "priceTrend": "stable",
        "confidenceScore": 90,
    }
    return Itinerary.model_validate(payload)


def infer_transport_mode(operator: Any, number: Any) -> str:
    """Guess the mode of a leg whose payload did not state one."""
    name = str(operator or "").lower()
    code = str(number or "")
    if re.fullmatch(r"\d+", code) or any(word in name for word in ("train", "rail", "express")):
        return "train"
    if code.upper().startswith("BUS") or "bus" in name or "volvo" in name:
        return "bus"
    return "plane"


def _endpoint(city: str, time: Any, travel_date: str) -> Dict[str, str]:
    return {
        "city": city,
        "airport": city[:3].upper(),
        "time": str(time or "--:--"),
        "date": travel_date,
    }


def _number(value: Any, label: str) -> float:
    if isinstance(value, bool):
        raise ValueError(f"{label} is not numeric")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        # first figure only: "Rs. 4,250" or "1200-1500"
        match = _PRICE_RE.search(value)
        if match:
            return float(match.group(0).replace(",", ""))
    raise ValueError(f"{label} is missing or not numeric: {value!r}")
