"""Flight quote providers: one interface over the external flight price sources."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Optional

import httpx

from ..core.config import settings
from ..core.exceptions import UpstreamFetchError, ValidationError
from ..core.observability import metrics_collector
from ..schemas.pricing import FlightSearchInput, FlightType
from .compositor import round_money

logger = logging.getLogger(__name__)

# Outbound arrivals before this hour count as arriving the previous day
EARLY_ARRIVAL_CUTOFF_HOUR = 6


@dataclass(frozen=True)
class InternalLeg:
    """Domestic one-way leg; ``day_offset`` counts days from the effective arrival date."""

    from_airport: str
    to_airport: str
    day_offset: int = 0


@dataclass(frozen=True)
class QuoteRequest:
    origins: tuple[str, ...]
    dates: tuple[date, ...]
    nights: int
    flight_type: FlightType = FlightType.ROUND_TRIP
    destinations: tuple[str, ...] = ()
    arrival_airports: tuple[str, ...] = ()
    departure_airports: tuple[str, ...] = ()
    internal_leg: Optional[InternalLeg] = None

    @classmethod
    def from_search(
        cls,
        search: FlightSearchInput,
        dates: Iterable[date],
        nights: Optional[int],
    ) -> "QuoteRequest":
        """Build and validate a request from an API search body."""
        leg = None
        if search.internal_leg is not None:
            leg = InternalLeg(
                from_airport=search.internal_leg.from_airport.upper(),
                to_airport=search.internal_leg.to_airport.upper(),
                day_offset=search.internal_leg.day_offset,
            )
        request = cls(
            origins=_codes(search.origin_airports),
            dates=tuple(sorted(set(dates))),
            nights=nights or 0,
            flight_type=search.flight_type,
            destinations=_codes(search.destination_airports),
            arrival_airports=_codes(search.arrival_airports),
            departure_airports=_codes(search.departure_airports),
            internal_leg=leg,
        )
        request.validate()
        return request

    def validate(self) -> None:
        """
        Reject requests that can never be quoted.

        Runs before any network call so that an illegal request costs nothing.

        Raises:
            ValidationError: Describes the first problem found
        """
        if not self.origins:
            raise ValidationError(detail="At least one origin airport is required")
        unknown = [code for code in self.origins if settings.airport_name(code) is None]
        if unknown:
            raise ValidationError(detail=f"Unknown origin airports: {', '.join(unknown)}")
        if not self.dates:
            raise ValidationError(detail="At least one travel date is required")
        if len(self.dates) > settings.max_quote_dates:
            raise ValidationError(
                detail=f"At most {settings.max_quote_dates} travel dates can be quoted at once, got {len(self.dates)}"
            )
        if self.nights < 1:
            raise ValidationError(detail="Trip length in nights must be at least 1")

        if self.flight_type == FlightType.ROUND_TRIP:
            if not self.destinations:
                raise ValidationError(detail="A round trip needs a destination airport")
            if self.internal_leg is not None:
                raise ValidationError(detail="Internal legs are only supported on open-jaw trips")
            return

        if not self.arrival_airports or not self.departure_airports:
            raise ValidationError(
                detail="An open-jaw trip needs both an arrival airport and a departure airport"
            )
        if set(self.arrival_airports) == set(self.departure_airports):
            raise ValidationError(
                detail="An open-jaw trip needs arrival and departure airports that differ"
            )
        if self.internal_leg is not None and self.internal_leg.from_airport == self.internal_leg.to_airport:
            raise ValidationError(detail="An internal leg must connect two different airports")


@dataclass(frozen=True)
class FlightQuote:
    """Cheapest fare found for one origin airport on one outbound date."""

    origin_airport: str
    departure_date: date
    price: Decimal
    currency: str = "GBP"


@dataclass
class OpenJawFare:
    origin_airport: str
    departure_date: date
    price: Decimal
    effective_arrival: date


@dataclass
class OneWayFlight:
    from_airport: str
    to_airport: str
    departs_at: datetime
    arrives_at: Optional[datetime]
    price: Decimal
    carrier: Optional[str] = None


def _codes(values: Iterable[str]) -> tuple[str, ...]:
    seen: list[str] = []
    for value in values:
        code = value.strip().upper()
        if code and code not in seen:
            seen.append(code)
    return tuple(seen)


def effective_arrival_date(arrives_at: datetime) -> date:
    """An arrival before 06:00 counts as the previous day's arrival."""
    if arrives_at.hour < EARLY_ARRIVAL_CUTOFF_HOUR:
        return arrives_at.date() - timedelta(days=1)
    return arrives_at.date()


def cheapest_by_origin_and_date(quotes: Iterable[FlightQuote]) -> dict[tuple[str, date], FlightQuote]:
    cheapest: dict[tuple[str, date], FlightQuote] = {}
    for quote in quotes:
        key = (quote.origin_airport, quote.departure_date)
        if key not in cheapest or quote.price < cheapest[key].price:
            cheapest[key] = quote
    return cheapest


def parse_price(value: Any) -> Optional[Decimal]:
    """Parse an upstream price; missing or unparseable prices yield None."""
    if value is None or value == "":
        return None
    try:
        price = Decimal(str(value))
    except ArithmeticError:
        return None
    if not price.is_finite() or price < 0:
        return None
    return price


class FlightQuoteProvider(ABC):
    """
    Quotes flights for a set of origin airports and outbound dates.

    ``quote`` returns at most one quote per origin/date, the cheapest
    qualifying fare. An origin/date without a fare is omitted. Transport
    failures (network, timeout, authentication, malformed responses) raise
    UpstreamFetchError and abort the whole batch.
    """

    source: str = "unknown"

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        concurrency: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self._client = client
        self._concurrency = concurrency or settings.flight_fetch_concurrency
        self._timeout = timeout_seconds or settings.upstream_timeout_seconds
        self._semaphore: Optional[asyncio.Semaphore] = None

    async def quote(self, request: QuoteRequest) -> list[FlightQuote]:
        request.validate()
        self._semaphore = asyncio.Semaphore(self._concurrency)

        logger.info(
            "Quoting flights",
            extra={
                "source": self.source,
                "flight_type": request.flight_type.value,
                "origins": list(request.origins),
                "date_count": len(request.dates),
                "nights": request.nights,
            }
        )

        if self._client is not None:
            quotes = await self._quote_with(self._client, request)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                quotes = await self._quote_with(client, request)

        metrics_collector.record_fares_found(self.source, len(quotes))
        logger.info(
            "Flight quotes fetched",
            extra={"source": self.source, "fares_found": len(quotes)}
        )
        return sorted(quotes, key=lambda quote: (quote.origin_airport, quote.departure_date))

    async def _quote_with(self, client: httpx.AsyncClient, request: QuoteRequest) -> list[FlightQuote]:
        wanted = {(origin, day) for origin in request.origins for day in request.dates}

        if request.flight_type == FlightType.ROUND_TRIP:
            quotes = await self.round_trip(client, request)
            return [
                FlightQuote(quote.origin_airport, quote.departure_date, round_money(quote.price), quote.currency)
                for key, quote in cheapest_by_origin_and_date(quotes).items()
                if key in wanted
            ]

        fares: dict[tuple[str, date], OpenJawFare] = {}
        for fare in await self.open_jaw(client, request):
            key = (fare.origin_airport, fare.departure_date)
            if key in wanted and (key not in fares or fare.price < fares[key].price):
                fares[key] = fare

        if request.internal_leg is not None:
            fares = await self._add_internal_leg(client, request.internal_leg, fares)

        return [
            FlightQuote(origin, day, round_money(fare.price))
            for (origin, day), fare in fares.items()
        ]

    async def _add_internal_leg(
        self,
        client: httpx.AsyncClient,
        leg: InternalLeg,
        fares: dict[tuple[str, date], OpenJawFare],
    ) -> dict[tuple[str, date], OpenJawFare]:
        leg_dates = sorted({fare.effective_arrival + timedelta(days=leg.day_offset) for fare in fares.values()})
        if not leg_dates:
            return fares

        leg_prices = await self.one_way_cheapest(client, leg.from_airport, leg.to_airport, leg_dates)
        priced: dict[tuple[str, date], OpenJawFare] = {}
        for key, fare in fares.items():
            leg_date = fare.effective_arrival + timedelta(days=leg.day_offset)
            leg_price = leg_prices.get(leg_date)
            if leg_price is None:
                logger.debug(
                    "No internal leg fare; dropping open-jaw fare",
                    extra={"origin": key[0], "departure_date": key[1].isoformat(), "leg_date": leg_date.isoformat()}
                )
                continue
            priced[key] = OpenJawFare(fare.origin_airport, fare.departure_date, fare.price + leg_price, fare.effective_arrival)
        return priced

    async def gather_bounded(self, calls: Iterable[Callable[[], Awaitable[Any]]]) -> list[Any]:
        """
        Run the calls concurrently, at most ``concurrency`` at a time.

        The first failure cancels the calls still pending and is re-raised.
        """
        semaphore = self._semaphore or asyncio.Semaphore(self._concurrency)

        async def bounded(call: Callable[[], Awaitable[Any]]) -> Any:
            async with semaphore:
                return await call()

        tasks = [asyncio.ensure_future(bounded(call)) for call in calls]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def get_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: dict[str, Any],
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """GET a JSON document, mapping every transport failure to UpstreamFetchError."""
        try:
            response = await client.get(url, params=params, headers=headers, timeout=self._timeout)
        except httpx.TimeoutException:
            metrics_collector.record_quote_request(self.source, "error")
            logger.error("Flight source timed out", extra={"source": self.source, "url": url})
            raise UpstreamFetchError(self.source, detail=f"{self.source} flight search timed out")
        except httpx.HTTPError as e:
            metrics_collector.record_quote_request(self.source, "error")
            logger.error("Flight source unreachable", extra={"source": self.source, "url": url, "error": str(e)})
            raise UpstreamFetchError(self.source, detail=f"{self.source} flight search failed: {e}")

        if response.status_code >= 400:
            metrics_collector.record_quote_request(self.source, "error")
            logger.error(
                "Flight source returned an error status",
                extra={"source": self.source, "status_code": response.status_code}
            )
            raise UpstreamFetchError(
                self.source,
                detail=f"{self.source} flight search returned HTTP {response.status_code}",
                upstream_status=response.status_code,
            )

        self.raise_for_error_body(response.text)
        try:
            return response.json()
        except ValueError:
            metrics_collector.record_quote_request(self.source, "error")
            raise UpstreamFetchError(self.source, detail=f"{self.source} returned a malformed response")

    def raise_for_error_body(self, body: str) -> None:
        """Hook for sources that report failures inside a 200 response."""

    def record_outcome(self, found: int) -> None:
        metrics_collector.record_quote_request(self.source, "fare" if found else "empty")

    @abstractmethod
    async def round_trip(self, client: httpx.AsyncClient, request: QuoteRequest) -> list[FlightQuote]:
        """Round-trip fares; may include several per origin/date."""

    @abstractmethod
    async def open_jaw(self, client: httpx.AsyncClient, request: QuoteRequest) -> list[OpenJawFare]:
        """Open-jaw fares (out to an arrival airport, home from a departure airport)."""

    @abstractmethod
    async def one_way_cheapest(
        self,
        client: httpx.AsyncClient,
        from_airport: str,
        to_airport: str,
        dates: list[date],
    ) -> dict[date, Decimal]:
        """Cheapest one-way fare per date between two airports."""

