"""Mode-tagged text produced for the chat transcript.

Every response carries one ``<PLANE>``, ``<TRAIN>`` and ``<BUS>`` block in
that order so the chat view can switch transport modes without another
round trip to the model.
"""
from __future__ import annotations

import re
from typing import Dict, Iterable, List, Mapping, Optional, Sequence
from urllib.parse import quote

from travel_copilot.schemas import Itinerary, ModeSegment, TRANSPORT_MODES

BOOKING_LINKS: Dict[str, tuple[str, str]] = {
    "plane": ("Book Flight", "https://www.makemytrip.com/"),
    "train": ("Book Train", "https://www.irctc.co.in/"),
    "bus": ("Book Bus", "https://www.redbus.in/"),
}
HOTEL_SEARCH_URL = "https://www.booking.com/searchresults.html?ss={city}"

_SEGMENT_RE = re.compile(r"<(PLANE|TRAIN|BUS)>\n?(.*?)</\1>\n?", re.IGNORECASE | re.DOTALL)


def format_mode_sections(
    summaries: Optional[Mapping[str, str]],
    itineraries: Sequence[Itinerary],
) -> str:
    """Render summaries and itineraries into tagged text for all three modes."""
    summaries = summaries if isinstance(summaries, Mapping) else {}
    first = itineraries[0] if itineraries else None
    from_city = first.flight.departure.city if first else "your origin"
    to_city = first.flight.arrival.city if first else "your destination"

    segments: List[ModeSegment] = []
    for mode in TRANSPORT_MODES:
        summary = summaries.get(mode)
        if not isinstance(summary, str) or not summary.strip():
            summary = f"Details for {mode} travel."
        match = next((itin for itin in itineraries if itin.transport_mode == mode), None)

        lines = [
            f"### 🌍 {mode.upper()} Option: {from_city} to {to_city}",
            "",
            summary,
            "",
        ]
        if match is not None:
            label, url = BOOKING_LINKS[mode]
            lines.extend(
                [
                    "**Quick Stats:**",
                    f"*   **Total Price:** ₹{format_amount(match.total_cost)}",
                    f"*   **Hospital:** {match.hotel.nearest_hospital or 'Nearby'}",
                    f"*   **Cafe:** {match.hotel.recommended_cafe or 'Nearby'}",
                    "",
                    f"[👉 Click here to {label} Now]({url})",
                    f"[👉 Search Hotels on Booking.com]({HOTEL_SEARCH_URL.format(city=quote(to_city, safe=''))})",
                ]
            )
        segments.append(ModeSegment(mode=mode, body="\n".join(lines) + "\n"))

    return serialize_segments(segments)


def serialize_segments(segments: Iterable[ModeSegment]) -> str:
    return "".join(f"<{seg.mode.upper()}>\n{seg.body}</{seg.mode.upper()}>\n" for seg in segments)


def parse_segments(text: str) -> List[ModeSegment]:
    """Inverse of :func:`serialize_segments`; untagged text yields no segments."""
    return [
        ModeSegment(mode=match.group(1).lower(), body=match.group(2))
        for match in _SEGMENT_RE.finditer(text or "")
    ]


def format_amount(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"
