"""Tour platform (Bokun) catalog client and availability parsing."""

import base64
import hashlib
import hmac
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from ..core.config import settings
from ..core.exceptions import UpstreamFetchError
from .compositor import round_money
from .flight_quotes import parse_price

logger = logging.getLogger(__name__)

SOURCE = "bokun"

_NIGHTS_PATTERN = re.compile(r"(\d+)\s*nights?", re.IGNORECASE)
_DAYS_PATTERN = re.compile(r"(\d+)\s*days?", re.IGNORECASE)
_WEEKS_PATTERN = re.compile(r"(\d+)\s*weeks?", re.IGNORECASE)
_STAR_PATTERN = re.compile(r"(\d)\s*[-*]?\s*star", re.IGNORECASE)

# Checked in order; the first keyword found in the title wins
HOTEL_TIERS = ("Deluxe", "Premium", "Standard", "Budget", "Luxury", "Superior")


@dataclass
class ParsedRate:
    source_rate_id: Optional[str]
    title: str
    room_category: str
    hotel_category: Optional[str]
    original_price: Decimal
    original_currency: str
    land_price: Decimal

    @property
    def match_key(self) -> tuple[str, str, Optional[str]]:
        return (self.title, self.room_category, self.hotel_category)


@dataclass
class ParsedDeparture:
    source_id: str
    departure_date: date
    available_spots: Optional[int] = None
    is_sold_out: bool = False
    rates: list[ParsedRate] = field(default_factory=list)


@dataclass
class UpstreamCatalog:
    departures: list[ParsedDeparture] = field(default_factory=list)
    duration_nights: Optional[int] = None

    @property
    def rates_count(self) -> int:
        return sum(len(departure.rates) for departure in self.departures)


def parse_duration_to_nights(text: Optional[str]) -> Optional[int]:
    """
    Turn a duration text into nights.

    "7 Days / 6 Nights" -> 6, "8 days" -> 7, "2 weeks" -> 14. Unrecognized text yields None.
    """
    if not text:
        return None
    match = _NIGHTS_PATTERN.search(text)
    if match:
        return int(match.group(1))
    match = _DAYS_PATTERN.search(text)
    if match:
        return max(1, int(match.group(1)) - 1)
    match = _WEEKS_PATTERN.search(text)
    if match:
        return int(match.group(1)) * 7
    return None


def parse_room_category(title: str, min_per_booking: int) -> str:
    lowered = title.lower()
    if "single" in lowered or "solo" in lowered:
        return "single"
    if "triple" in lowered or "3-share" in lowered:
        return "triple"
    if "twin" in lowered or "double" in lowered or "2-share" in lowered:
        return "twin"
    return {1: "single", 2: "twin", 3: "triple"}.get(min_per_booking, "standard")


def parse_hotel_category(title: str) -> Optional[str]:
    match = _STAR_PATTERN.search(title)
    if match:
        return f"{match.group(1)}-star"
    lowered = title.lower()
    for tier in HOTEL_TIERS:
        if tier.lower() in lowered:
            return tier
    return None


def _parse_date(value: Any) -> Optional[date]:
    """Availability dates arrive as epoch milliseconds or ISO strings."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).date()
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value else None
    except (TypeError, ValueError):
        return None


def convert_price(price: Decimal, currency: str, exchange_rate: Decimal, package_currency: str) -> Decimal:
    """Prices already in the package currency pass through; others are divided by the exchange rate."""
    if currency.upper() == package_currency.upper():
        return price
    return round_money(price / exchange_rate)


def _build_rate(
    source_rate_id: Any,
    title: str,
    min_per_booking: Any,
    price: Optional[Decimal],
    currency: Optional[str],
    exchange_rate: Decimal,
    package_currency: str,
) -> ParsedRate:
    original_price = price if price is not None else Decimal("0")
    original_currency = (currency or settings.bokun_currency).upper()
    return ParsedRate(
        source_rate_id=str(source_rate_id) if source_rate_id is not None else None,
        title=title,
        room_category=parse_room_category(title, _to_int(min_per_booking) or 1),
        hotel_category=parse_hotel_category(title),
        original_price=original_price,
        original_currency=original_currency,
        land_price=convert_price(original_price, original_currency, exchange_rate, package_currency),
    )


def parse_rates(availability: dict[str, Any], exchange_rate: Decimal, package_currency: str) -> list[ParsedRate]:
    """
    Rates of one availability: ``pricesByRate`` when present, otherwise the
    plain ``rates`` list. Duplicate (title, room, hotel) keys keep the first.
    """
    details = {
        rate.get("id"): rate
        for rate in availability.get("rates") or []
        if isinstance(rate, dict)
    }

    rates: list[ParsedRate] = []
    for rate_price in availability.get("pricesByRate") or []:
        rate_id = rate_price.get("activityRateId") or rate_price.get("rateId")
        detail = details.get(rate_price.get("activityRateId")) or {}
        title = detail.get("title") or rate_price.get("title") or rate_price.get("rateName") or "Standard Rate"

        price, currency = None, None
        units = rate_price.get("pricePerCategoryUnit") or []
        if units:
            amount = units[0].get("amount") or {}
            price = parse_price(amount.get("amount"))
            currency = amount.get("currency")
        rates.append(
            _build_rate(rate_id, title, detail.get("minPerBooking"), price, currency, exchange_rate, package_currency)
        )

    if not rates:
        for detail in details.values():
            title = detail.get("title") or detail.get("name") or "Standard Rate"
            price = parse_price(detail.get("price") or detail.get("pricePerPerson"))
            rates.append(
                _build_rate(
                    detail.get("id"), title, detail.get("minPerBooking"), price,
                    detail.get("currency"), exchange_rate, package_currency,
                )
            )

    unique: dict[tuple[str, str, Optional[str]], ParsedRate] = {}
    for rate in rates:
        unique.setdefault(rate.match_key, rate)
    return list(unique.values())


def parse_availabilities(
    data: Any,
    exchange_rate: Decimal,
    package_currency: str,
) -> list[ParsedDeparture]:
    """
    Parse an availability list into departures.

    Availabilities without a date or without any rate are dropped. The
    source id is the availability id when the platform sends one, otherwise
    the date (plus start time).

    Raises:
        UpstreamFetchError: The payload is not a list of availabilities
    """
    if not isinstance(data, list):
        logger.error(
            "Tour platform returned a malformed availability payload",
            extra={"payload_type": type(data).__name__}
        )
        raise UpstreamFetchError(SOURCE, detail="Tour platform returned a malformed availability response")

    departures: dict[str, ParsedDeparture] = {}
    for availability in data:
        if not isinstance(availability, dict):
            continue
        departure_date = _parse_date(availability.get("date"))
        if departure_date is None:
            continue

        rates = parse_rates(availability, exchange_rate, package_currency)
        if not rates:
            logger.debug(
                "Skipping availability without rates",
                extra={"departure_date": departure_date.isoformat()}
            )
            continue

        source_id = availability.get("id")
        if source_id is None:
            start_time = availability.get("startTime")
            source_id = f"{departure_date.isoformat()}T{start_time}" if start_time else departure_date.isoformat()
        source_id = str(source_id)
        if source_id in departures:
            continue

        departures[source_id] = ParsedDeparture(
            source_id=source_id,
            departure_date=departure_date,
            available_spots=_to_int(availability.get("availableSpots") or availability.get("availabilityCount")),
            is_sold_out=availability.get("soldOut") is True or availability.get("available") is False,
            rates=rates,
        )
    return sorted(departures.values(), key=lambda departure: (departure.departure_date, departure.source_id))


def sign_request(date_header: str, access_key: str, method: str, path: str, secret_key: str) -> str:
    """Base64 HMAC-SHA1 over date, access key, method and path with query."""
    message = f"{date_header}{access_key}{method.upper()}{path}".encode()
    digest = hmac.new(secret_key.encode(), message, hashlib.sha1).digest()
    return base64.b64encode(digest).decode()


class TourPlatformClient:
    """
    Read-only client for the tour platform's activity catalog.

    Every request is signed; failures raise UpstreamFetchError.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
    ):
        self._client = client
        self.base_url = (base_url or settings.bokun_base_url).rstrip("/")
        self.access_key = access_key if access_key is not None else settings.bokun_access_key
        self.secret_key = secret_key if secret_key is not None else settings.bokun_secret_key
        self.currency = settings.bokun_currency

    def signed_headers(self, method: str, path: str, now: Optional[datetime] = None) -> dict[str, str]:
        stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M:%S")
        return {
            "X-Bokun-Date": stamp,
            "X-Bokun-AccessKey": self.access_key,
            "X-Bokun-Signature": sign_request(stamp, self.access_key, method, path, self.secret_key),
            "Accept": "application/json",
        }

    async def _get(self, path: str, query: dict[str, str]) -> Any:
        if not self.access_key or not self.secret_key:
            raise UpstreamFetchError(SOURCE, detail="Tour platform credentials are not configured")

        full_path = f"{path}?{urlencode(query)}" if query else path
        headers = self.signed_headers("GET", full_path)
        url = f"{self.base_url}{full_path}"

        try:
            if self._client is not None:
                response = await self._client.get(url, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=settings.upstream_timeout_seconds) as client:
                    response = await client.get(url, headers=headers)
        except httpx.TimeoutException:
            logger.error("Tour platform timed out", extra={"path": path})
            raise UpstreamFetchError(SOURCE, detail="Tour platform request timed out")
        except httpx.HTTPError as e:
            logger.error("Tour platform unreachable", extra={"path": path, "error": str(e)})
            raise UpstreamFetchError(SOURCE, detail=f"Tour platform request failed: {e}")

        if response.status_code >= 400:
            logger.error(
                "Tour platform returned an error status",
                extra={"path": path, "status_code": response.status_code, "body": response.text[:500]}
            )
            raise UpstreamFetchError(
                SOURCE,
                detail=f"Tour platform returned HTTP {response.status_code}",
                upstream_status=response.status_code,
            )
        try:
            return response.json()
        except ValueError:
            raise UpstreamFetchError(SOURCE, detail="Tour platform returned a malformed response")

    async def get_availabilities(self, product_id: str, start: date, end: date) -> Any:
        return await self._get(
            f"/activity.json/{product_id}/availabilities",
            {"start": start.isoformat(), "end": end.isoformat(), "currency": self.currency},
        )

    async def get_product(self, product_id: str) -> Any:
        return await self._get(f"/activity.json/{product_id}", {"currency": self.currency})

    async def fetch_catalog(
        self,
        product_id: str,
        exchange_rate: Decimal,
        package_currency: str,
        today: Optional[date] = None,
    ) -> UpstreamCatalog:
        """
        Fetch product duration and the availability window starting today.

        A failed product-detail lookup only loses the duration; a failed
        availability lookup fails the whole fetch.
        """
        start = today or datetime.now(timezone.utc).date()
        end = start + timedelta(days=settings.sync_horizon_days)

        duration_nights = None
        try:
            product = await self.get_product(product_id)
        except UpstreamFetchError as e:
            logger.warning(
                "Could not fetch product details; keeping the current duration",
                extra={"product_id": product_id, "error": e.problem_details.get("detail")}
            )
        else:
            if isinstance(product, dict):
                fields = product.get("fields") if isinstance(product.get("fields"), dict) else {}
                duration_text = product.get("durationText") or fields.get("durationText")
                duration_nights = parse_duration_to_nights(duration_text)

        data = await self.get_availabilities(product_id, start, end)
        departures = parse_availabilities(data, exchange_rate, package_currency)
        catalog = UpstreamCatalog(departures=departures, duration_nights=duration_nights)

        logger.info(
            "Tour platform catalog fetched",
            extra={
                "product_id": product_id,
                "departures_count": len(departures),
                "rates_count": catalog.rates_count,
                "duration_nights": duration_nights,
            }
        )
        return catalog
