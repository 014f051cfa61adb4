from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import os

import httpx

import logging

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(handler)
_level = os.getenv("TRAVEL_COPILOT_LOG_LEVEL", "INFO").upper()
logger.setLevel(getattr(logging, _level, logging.INFO))
logger.propagate = False


@dataclass
class FlightQuery:
    origin: str
    destination: str
    departure_date: str
    adults: int = 1
    max_results: int = 5

    def missing_fields(self) -> List[str]:
        return [
            name
            for name, value in (
                ("origin", self.origin),
                ("destination", self.destination),
                ("departureDate", self.departure_date),
            )
            if not (value or "").strip()
        ]


class FlightSearcher:
    """
    Flight-offer search against the Amadeus self-service API.

    Credentials are exchanged for a bearer token on every search; the offers
    come back untouched so callers can render whichever fields they need.
    """
    TOKEN_PATH = "/v1/security/oauth2/token"
    OFFERS_PATH = "/v2/shopping/flight-offers"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.client_id = client_id or os.getenv("AMADEUS_CLIENT_ID")
        self.client_secret = client_secret or os.getenv("AMADEUS_CLIENT_SECRET")
        self.base_url = (base_url or os.getenv("AMADEUS_BASE_URL") or "https://test.api.amadeus.com").rstrip("/")
        self.timeout = timeout

    async def search(self, query: FlightQuery) -> List[Dict[str, Any]]:
        """Return the raw offer list, or ``[]`` on any failure."""
        missing = query.missing_fields()
        if missing:
            logger.warning("Flight search skipped; missing %s", ", ".join(missing))
            return []
        if not self.client_id or not self.client_secret:
            logger.error("Missing Amadeus API keys")
            return []

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                token = await self._access_token(client)
                response = await client.get(
                    f"{self.base_url}{self.OFFERS_PATH}",
                    params={
                        "originLocationCode": query.origin,
                        "destinationLocationCode": query.destination,
                        "departureDate": query.departure_date,
                        "adults": str(query.adults),
                        "max": str(query.max_results),
                    },
                    headers={"Authorization": f"Bearer {token}"},
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError, KeyError):
            logger.warning(
                "Flight search failed for %s -> %s on %s",
                query.origin,
                query.destination,
                query.departure_date,
                exc_info=True,
            )
            return []

        offers = data.get("data") if isinstance(data, dict) else None
        if not isinstance(offers, list):
            logger.warning("No flight data received from Amadeus")
            return []
        logger.info("Flight search %s -> %s returned %d offer(s)", query.origin, query.destination, len(offers))
        return offers

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        response = await client.post(
            f"{self.base_url}{self.TOKEN_PATH}",
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )
        response.raise_for_status()
        return response.json()["access_token"]
