"""Sunshine flight feed: European charter and low-cost carriers."""

import logging
import re
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
    OneWayFlight,
    OpenJawFare,
    QuoteRequest,
    effective_arrival_date,
    parse_price,
)

logger = logging.getLogger(__name__)

_ERROR_PATTERN = re.compile(r"<Error>(.*?)</Error>", re.IGNORECASE | re.DOTALL)


def format_feed_date(day: date) -> str:
    return day.strftime("%d/%m/%Y")


def parse_feed_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse ``DD/MM/YYYY HH:mm`` (time optional)."""
    if not value:
        return None
    value = value.strip()
    for fmt in ("%d/%m/%Y %H:%M", "%d/%m/%Y"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def parse_offers(payload: dict[str, Any]) -> list[FlightQuote]:
    """Round-trip offers: one quote per offer with a parseable date and price."""
    quotes = []
    for offer in payload.get("Offers") or []:
        departs_at = parse_feed_datetime(offer.get("outdep"))
        price = parse_price(offer.get("fltnetpricepp"))
        origin = (offer.get("depapt") or "").upper()
        if departs_at is None or price is None or not origin:
            logger.debug("Skipping unusable Sunshine offer", extra={"offer": offer})
            continue
        quotes.append(FlightQuote(origin, departs_at.date(), price))
    return quotes


def parse_one_way_flights(payload: dict[str, Any]) -> list[OneWayFlight]:
    flights = []
    for raw in payload.get("Flights") or []:
        departs_at = parse_feed_datetime(raw.get("Depart"))
        price = parse_price(raw.get("Fltprice"))
        if departs_at is None or price is None:
            logger.debug("Skipping unusable Sunshine one-way flight", extra={"flight": raw})
            continue
        flights.append(
            OneWayFlight(
                from_airport=(raw.get("Depapt") or "").upper(),
                to_airport=(raw.get("Arrapt") or "").upper(),
                departs_at=departs_at,
                arrives_at=parse_feed_datetime(raw.get("Arrive")),
                price=price,
                carrier=raw.get("Fltsupplier"),
            )
        )
    return flights


class SunshineFlightProvider(FlightQuoteProvider):
    """
    Queries the Sunshine search feed.

    Round trips use the offers endpoint, which returns every offer in a date
    window in a single call. Open-jaw trips and internal legs are assembled
    from the one-way endpoint.
    """

    source = "sunshine"

    def raise_for_error_body(self, body: str) -> None:
        stripped = body.lstrip()
        if not (stripped.startswith("<?xml") or "<Error>" in stripped):
            return
        match = _ERROR_PATTERN.search(stripped)
        message = match.group(1).strip() if match else "unknown error"
        metrics_collector.record_quote_request(self.source, "error")
        logger.error("Sunshine feed rejected the request", extra={"error": message})
        raise UpstreamFetchError(self.source, detail=f"Sunshine flight feed error: {message}")

    async def _search(self, client: httpx.AsyncClient, url: str, params: dict[str, Any]) -> dict[str, Any]:
        payload = await self.get_json(client, url, {"agtid": settings.sunshine_agent_id, **params},
                                      headers={"Accept": "application/json"})
        if not isinstance(payload, dict):
            metrics_collector.record_quote_request(self.source, "error")
            raise UpstreamFetchError(self.source, detail="Sunshine returned a malformed response")
        if payload.get("error"):
            # The feed reports "no availability" this way
            logger.info("Sunshine search returned no results", extra={"reason": str(payload["error"])})
            return {}
        return payload

    async def round_trip(self, client: httpx.AsyncClient, request: QuoteRequest) -> list[FlightQuote]:
        async def search(destination: str) -> list[FlightQuote]:
            payload = await self._search(client, settings.sunshine_base_url, {
                "page": "FLTDATE",
                "platform": "WEB",
                "depart": "|".join(request.origins),
                "arrive": destination,
                "Startdate": format_feed_date(request.dates[0]),
                "EndDate": format_feed_date(request.dates[-1]),
                "duration": str(request.nights),
                "output": "JSON",
            })
            quotes = parse_offers(payload)
            self.record_outcome(len(quotes))
            return quotes

        results = await self.gather_bounded(
            (lambda destination=destination: search(destination)) for destination in request.destinations
        )
        return [quote for quotes in results for quote in quotes]

    async def _one_way(
        self,
        client: httpx.AsyncClient,
        departs: tuple[str, ...],
        arrives: tuple[str, ...],
        start: date,
        end: date,
    ) -> list[OneWayFlight]:
        payload = await self._search(client, settings.sunshine_oneway_url, {
            "depart": "|".join(departs),
            "Arrive": "|".join(arrives),
            "startdate": format_feed_date(start),
            "enddate": format_feed_date(end),
        })
        flights = parse_one_way_flights(payload)
        self.record_outcome(len(flights))
        return flights

    async def open_jaw(self, client: httpx.AsyncClient, request: QuoteRequest) -> list[OpenJawFare]:
        first, last = request.dates[0], request.dates[-1]
        outbound, inbound = await self.gather_bounded([
            lambda: self._one_way(client, request.origins, request.arrival_airports, first, last),
            lambda: self._one_way(
                client,
                request.departure_airports,
                request.origins,
                first + timedelta(days=request.nights - 1),
                last + timedelta(days=request.nights + 2),
            ),
        ])

        # cheapest flight home per (UK airport, departure date)
        cheapest_home: dict[tuple[str, date], Decimal] = {}
        for flight in inbound:
            key = (flight.to_airport, flight.departs_at.date())
            if key not in cheapest_home or flight.price < cheapest_home[key]:
                cheapest_home[key] = flight.price

        fares: dict[tuple[str, date], OpenJawFare] = {}
        for flight in outbound:
            arrived = effective_arrival_date(flight.arrives_at or flight.departs_at)
            home_price = cheapest_home.get((flight.from_airport, arrived + timedelta(days=request.nights)))
            if home_price is None:
                continue
            key = (flight.from_airport, flight.departs_at.date())
            total = flight.price + home_price
            if key not in fares or total < fares[key].price:
                fares[key] = OpenJawFare(flight.from_airport, flight.departs_at.date(), total, arrived)
        return list(fares.values())

    async def one_way_cheapest(
        self,
        client: httpx.AsyncClient,
        from_airport: str,
        to_airport: str,
        dates: list[date],
    ) -> dict[date, Decimal]:
        flights = await self._one_way(client, (from_airport,), (to_airport,), min(dates), max(dates))
        wanted = set(dates)
        cheapest: dict[date, Decimal] = {}
        for flight in flights:
            day = flight.departs_at.date()
            if day in wanted and (day not in cheapest or flight.price < cheapest[day]):
                cheapest[day] = flight.price
        return cheapest
