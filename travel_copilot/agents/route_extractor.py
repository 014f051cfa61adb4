"""Origin/destination heuristics for free-text travel requests."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

DEFAULT_FROM_CITY = "Mumbai"
DEFAULT_TO_CITY = "Delhi"

_CITY = r"([a-zA-Z\s]+?)"
_BOUNDARY = r"(?:\s+on|\s+at|$)"

_PAIR_PATTERNS = (
    re.compile(rf"from\s+{_CITY}\s+to\s+{_CITY}{_BOUNDARY}", re.IGNORECASE),
    re.compile(rf"{_CITY}\s+to\s+{_CITY}{_BOUNDARY}", re.IGNORECASE),
)
_FROM_PATTERN = re.compile(rf"from\s+{_CITY}(?:\s+to|$)", re.IGNORECASE)
_TO_PATTERN = re.compile(rf"to\s+{_CITY}(?:\s+from|\s+on|\s+at|$)", re.IGNORECASE)


@dataclass(frozen=True)
class Route:
    from_city: str
    to_city: str


@dataclass(frozen=True)
class HeuristicRoute:
    """Route recovered from free text by :func:`extract_route`."""

    text: str


@dataclass(frozen=True)
class ExplicitRoute:
    """Route given as structured fields; skips the text heuristics."""

    from_city: str
    to_city: str


RouteSource = Union[HeuristicRoute, ExplicitRoute]


def extract_route(text: str | None) -> Route:
    """Return the origin/destination named in ``text``.

    Falls back to Mumbai/Delhi for whichever side no pattern recovers.
    """
    text = text or ""
    from_city = DEFAULT_FROM_CITY
    to_city = DEFAULT_TO_CITY

    for pattern in _PAIR_PATTERNS:
        match = pattern.search(text)
        if match:
            return Route(
                from_city=_clean(match.group(1)) or from_city,
                to_city=_clean(match.group(2)) or to_city,
            )

    from_match = _FROM_PATTERN.search(text)
    to_match = _TO_PATTERN.search(text)
    if from_match:
        from_city = _clean(from_match.group(1)) or from_city
    if to_match:
        to_city = _clean(to_match.group(1)) or to_city
    return Route(from_city=from_city, to_city=to_city)


def resolve_route(source: RouteSource) -> Route:
    if isinstance(source, ExplicitRoute):
        return Route(
            from_city=source.from_city.strip() or DEFAULT_FROM_CITY,
            to_city=source.to_city.strip() or DEFAULT_TO_CITY,
        )
    if isinstance(source, HeuristicRoute):
        return extract_route(source.text)
    raise TypeError(f"Unsupported route source: {type(source).__name__}")


def display_city(city: str) -> str:
    return city[:1].upper() + city[1:]


def _clean(value: str | None) -> str:
    return re.sub(r"\s+", " ", value or "").strip()
