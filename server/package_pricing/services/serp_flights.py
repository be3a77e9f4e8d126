"""SerpApi Google Flights feed, used for long-haul destinations."""

import json
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

import httpx

from ..core.config import settings
from ..core.exceptions import UpstreamFetchError
from ..core.observability import metrics_collector
from .flight_quotes import (
    FlightQuote,
    FlightQuoteProvider,
    OpenJawFare,
    QuoteRequest,
    effective_arrival_date,
    parse_price,
)

logger = logging.getLogger(__name__)

ROUND_TRIP = "1"
ONE_WAY = "2"
MULTI_CITY = "3"

# Constant search options: one adult, economy, one bag, at most one stop, cheapest first
SEARCH_DEFAULTS = {
    "engine": "google_flights",
    "currency": "GBP",
    "gl": "uk",
    "hl": "en",
    "adults": "1",
    "bags": "1",
    "stops": "1",
    "travel_class": "1",
    "sort_by": "2",
}


def parse_serp_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse ``YYYY-MM-DD HH:MM`` as used in SerpApi leg times."""
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d %H:%M")
    except ValueError:
        return None


def itineraries(payload: dict[str, Any]) -> list[dict[str, Any]]:
    """Every itinerary with at least one leg, best flights first."""
    options = (payload.get("best_flights") or []) + (payload.get("other_flights") or [])
    return [option for option in options if option.get("flights")]


def is_no_results(message: str) -> bool:
    lowered = message.lower()
    return "returned any results" in lowered or "no results" in lowered


class SerpFlightProvider(FlightQuoteProvider):
    """
    Queries Google Flights through SerpApi: one request per outbound date
    for round trips, one multi-city request per origin, date and airport
    pair for open-jaw trips.
    """

    source = "serp"

    async def _search(self, client: httpx.AsyncClient, params: dict[str, Any]) -> dict[str, Any]:
        if not settings.serpapi_key:
            metrics_collector.record_quote_request(self.source, "error")
            raise UpstreamFetchError(self.source, detail="SerpApi key is not configured")

        payload = await self.get_json(
            client,
            settings.serpapi_base_url,
            {**SEARCH_DEFAULTS, "api_key": settings.serpapi_key, **params},
            headers={"Accept": "application/json"},
        )
        if not isinstance(payload, dict):
            metrics_collector.record_quote_request(self.source, "error")
            raise UpstreamFetchError(self.source, detail="SerpApi returned a malformed response")

        error = payload.get("error")
        if error:
            if is_no_results(str(error)):
                self.record_outcome(0)
                return {}
            metrics_collector.record_quote_request(self.source, "error")
            logger.error("SerpApi rejected the search", extra={"error": str(error)})
            raise UpstreamFetchError(self.source, detail=f"SerpApi error: {error}")

        self.record_outcome(len(itineraries(payload)))
        return payload

    async def round_trip(self, client: httpx.AsyncClient, request: QuoteRequest) -> list[FlightQuote]:
        async def search(day: date) -> list[FlightQuote]:
            payload = await self._search(client, {
                "type": ROUND_TRIP,
                "departure_id": ",".join(request.origins),
                "arrival_id": ",".join(request.destinations),
                "outbound_date": day.isoformat(),
                "return_date": (day + timedelta(days=request.nights)).isoformat(),
            })
            quotes = []
            for option in itineraries(payload):
                origin = (option["flights"][0].get("departure_airport") or {}).get("id", "").upper()
                price = parse_price(option.get("price"))
                if origin and price is not None:
                    quotes.append(FlightQuote(origin, day, price))
            return quotes

        results = await self.gather_bounded(
            (lambda day=day: search(day)) for day in request.dates
        )
        return [quote for quotes in results for quote in quotes]

    async def open_jaw(self, client: httpx.AsyncClient, request: QuoteRequest) -> list[OpenJawFare]:
        async def search(origin: str, day: date, arrive: str, depart: str) -> Optional[OpenJawFare]:
            legs = [
                {"departure_id": origin, "arrival_id": arrive, "date": day.isoformat()},
                {
                    "departure_id": depart,
                    "arrival_id": origin,
                    "date": (day + timedelta(days=request.nights)).isoformat(),
                },
            ]
            payload = await self._search(client, {
                "type": MULTI_CITY,
                "multi_city_json": json.dumps(legs),
            })

            best: Optional[OpenJawFare] = None
            for option in itineraries(payload):
                price = parse_price(option.get("price"))
                if price is None:
                    continue
                landing = next(
                    (
                        leg for leg in option["flights"]
                        if (leg.get("arrival_airport") or {}).get("id", "").upper() == arrive
                    ),
                    None,
                )
                arrives_at = parse_serp_datetime((landing or {}).get("arrival_airport", {}).get("time"))
                arrived = effective_arrival_date(arrives_at) if arrives_at else day
                if best is None or price < best.price:
                    best = OpenJawFare(origin, day, price, arrived)
            return best

        calls = [
            (lambda o=origin, d=day, a=arrive, p=depart: search(o, d, a, p))
            for origin in request.origins
            for day in request.dates
            for arrive in request.arrival_airports
            for depart in request.departure_airports
            if arrive != depart
        ]
        return [fare for fare in await self.gather_bounded(calls) if fare is not None]

    async def one_way_cheapest(
        self,
        client: httpx.AsyncClient,
        from_airport: str,
        to_airport: str,
        dates: list[date],
    ) -> dict[date, Decimal]:
        async def search(day: date) -> tuple[date, Optional[Decimal]]:
            payload = await self._search(client, {
                "type": ONE_WAY,
                "departure_id": from_airport,
                "arrival_id": to_airport,
                "outbound_date": day.isoformat(),
            })
            prices = [parse_price(option.get("price")) for option in itineraries(payload)]
            prices = [price for price in prices if price is not None]
            return day, (min(prices) if prices else None)

        results = await self.gather_bounded((lambda day=day: search(day)) for day in dates)
        return {day: price for day, price in results if price is not None}
