"""Unit tests for the tour platform client and availability parsing."""

import base64
import hashlib
import hmac
from datetime import date, datetime, timezone
from decimal import Decimal

import httpx
import pytest

from package_pricing.core.exceptions import UpstreamFetchError
from package_pricing.services.tour_platform import (
    TourPlatformClient,
    convert_price,
    parse_availabilities,
    parse_duration_to_nights,
    parse_hotel_category,
    parse_room_category,
    sign_request,
)


@pytest.mark.parametrize(
    "text, nights",
    [
        ("10 Days / 9 Nights", 9),
        ("7 days, 6 nights", 6),
        ("8 days", 7),
        ("1 day", 1),
        ("2 weeks", 14),
        ("1 Night", 1),
        ("flexible", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_duration_to_nights(text, nights):
    assert parse_duration_to_nights(text) == nights


@pytest.mark.parametrize(
    "title, min_per_booking, category",
    [
        ("Solo Traveller", 2, "single"),
        ("Single Supplement", 1, "single"),
        ("Triple Share", 1, "triple"),
        ("Twin Share", 1, "twin"),
        ("Double Room", 3, "twin"),
        ("Deluxe Room", 1, "single"),
        ("Deluxe Room", 2, "twin"),
        ("Deluxe Room", 3, "triple"),
        ("Deluxe Room", 5, "standard"),
    ],
)
def test_parse_room_category(title, min_per_booking, category):
    assert parse_room_category(title, min_per_booking) == category


@pytest.mark.parametrize(
    "title, category",
    [
        ("Twin Share 4 Star", "4-star"),
        ("5-star Superior Twin", "5-star"),
        ("Premium Twin", "Premium"),
        ("Luxury Deluxe Suite", "Deluxe"),
        ("Superior Room", "Superior"),
        ("Twin Share", None),
    ],
)
def test_parse_hotel_category(title, category):
    assert parse_hotel_category(title) == category


def test_convert_price():
    """Foreign prices are divided by the exchange rate; the package currency passes through."""
    assert convert_price(Decimal("1000"), "USD", Decimal("1.25"), "GBP") == Decimal("800.00")
    assert convert_price(Decimal("999.99"), "USD", Decimal("3"), "GBP") == Decimal("333.33")
    assert convert_price(Decimal("1000"), "gbp", Decimal("1.25"), "GBP") == Decimal("1000")


def test_parse_availabilities_prices_by_rate(catalog_payload):
    departures = parse_availabilities(catalog_payload["availabilities"], Decimal("1.25"), "GBP")

    assert [(d.source_id, d.departure_date, d.is_sold_out) for d in departures] == [
        ("9001", date(2026, 7, 13), False),
        ("9002", date(2026, 8, 10), True),
    ]
    first = departures[0]
    assert first.available_spots == 12
    assert [(r.title, r.room_category, r.hotel_category, r.land_price) for r in first.rates] == [
        ("Twin Share 4 Star", "twin", "4-star", Decimal("1000.00")),
        ("Solo Traveller 4 Star", "single", "4-star", Decimal("1200.00")),
    ]
    assert first.rates[0].original_price == Decimal("1250")
    assert first.rates[0].original_currency == "USD"
    assert first.rates[0].source_rate_id == "1"


def test_parse_availabilities_plain_rates_and_dropped_entries():
    """Test the plain rate list, duplicate rate keys and availabilities that are dropped."""
    data = [
        {
            "date": "2026-07-13",
            "startTime": "08:00",
            "rates": [
                {"id": 5, "title": "Twin Share", "price": "1250", "currency": "USD", "minPerBooking": 2},
                {"id": 6, "title": "Twin Share", "price": "1300", "currency": "USD"},
                {"id": 7, "name": "Budget Solo", "pricePerPerson": 500, "currency": "USD"},
            ],
        },
        {"id": 1, "rates": [{"id": 5, "title": "Twin Share", "price": "1250"}]},
        {"id": 2, "date": "2026-07-14", "rates": []},
        "not an availability",
    ]

    departures = parse_availabilities(data, Decimal("1.25"), "GBP")

    assert len(departures) == 1
    departure = departures[0]
    assert departure.source_id == "2026-07-13T08:00"
    assert [(r.title, r.room_category, r.hotel_category, r.land_price) for r in departure.rates] == [
        ("Twin Share", "twin", None, Decimal("1000.00")),
        ("Budget Solo", "single", "Budget", Decimal("400.00")),
    ]


@pytest.mark.parametrize("payload", [{"message": "unexpected shape"}, {"availabilities": []}, None, "oops"])
def test_parse_availabilities_rejects_non_list(payload):
    with pytest.raises(UpstreamFetchError) as exc_info:
        parse_availabilities(payload, Decimal("1"), "GBP")
    assert exc_info.value.source == "bokun"


def test_signed_headers():
    client = TourPlatformClient(access_key="ak", secret_key="sk")
    headers = client.signed_headers(
        "get", "/activity.json/42?currency=USD", now=datetime(2026, 7, 1, 9, 30, 5, tzinfo=timezone.utc)
    )

    expected = base64.b64encode(
        hmac.new(b"sk", b"2026-07-01 09:30:05akGET/activity.json/42?currency=USD", hashlib.sha1).digest()
    ).decode()
    assert headers["X-Bokun-Date"] == "2026-07-01 09:30:05"
    assert headers["X-Bokun-AccessKey"] == "ak"
    assert headers["X-Bokun-Signature"] == expected


@pytest.mark.asyncio
async def test_fetch_catalog_signs_each_request(catalog_payload):
    """Test every request carries a signature over its own path and query."""
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.raw_path.decode()
        paths.append(path)
        expected = sign_request(request.headers["X-Bokun-Date"], "ak", "GET", path, "sk")
        if request.headers["X-Bokun-Signature"] != expected:
            return httpx.Response(401, json={"message": "bad signature"})
        if request.url.path.endswith("/availabilities"):
            return httpx.Response(200, json=catalog_payload["availabilities"])
        return httpx.Response(200, json={"fields": {"durationText": "8 days"}})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        client = TourPlatformClient(client=http, base_url="https://bokun.test/", access_key="ak", secret_key="sk")
        catalog = await client.fetch_catalog("4242", Decimal("1.25"), "GBP", today=date(2026, 7, 1))

    assert catalog.duration_nights == 7
    assert len(catalog.departures) == 2
    assert catalog.rates_count == 3
    assert paths[0] == "/activity.json/4242?currency=USD"
    assert paths[1] == "/activity.json/4242/availabilities?start=2026-07-01&end=2027-07-01&currency=USD"


@pytest.mark.asyncio
async def test_fetch_catalog_survives_product_failure(catalog_payload):
    """A failed product lookup only loses the duration."""
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/availabilities"):
            return httpx.Response(200, json=catalog_payload["availabilities"])
        return httpx.Response(404, json={"message": "not found"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        client = TourPlatformClient(client=http, access_key="ak", secret_key="sk")
        catalog = await client.fetch_catalog("4242", Decimal("1.25"), "GBP")

    assert catalog.duration_nights is None
    assert len(catalog.departures) == 2


@pytest.mark.asyncio
async def test_availability_failure_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="maintenance")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        client = TourPlatformClient(client=http, access_key="ak", secret_key="sk")
        with pytest.raises(UpstreamFetchError) as exc_info:
            await client.fetch_catalog("4242", Decimal("1"), "GBP")

    assert exc_info.value.problem_details["source"] == "bokun"
    assert exc_info.value.problem_details["upstream_status"] == 503


@pytest.mark.asyncio
async def test_missing_credentials_raise():
    client = TourPlatformClient(access_key="", secret_key="")
    with pytest.raises(UpstreamFetchError):
        await client.get_availabilities("4242", date(2026, 7, 1), date(2026, 8, 1))


@pytest.mark.asyncio
async def test_malformed_response_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        client = TourPlatformClient(client=http, access_key="ak", secret_key="sk")
        with pytest.raises(UpstreamFetchError):
            await client.get_product("4242")
