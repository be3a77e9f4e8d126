"""Property-based tests for pricing invariants."""

import asyncio
from datetime import date, timedelta
from decimal import Decimal

from hypothesis import given, settings as hypothesis_settings
from hypothesis import strategies as st
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from package_pricing.core.config import settings
from package_pricing.core.database import Base, enable_sqlite_savepoints
from package_pricing.models import PricingEntry
from package_pricing.schemas.ledger import EntryInput
from package_pricing.schemas.package import CreatePackageRequest
from package_pricing.services.compositor import compose
from package_pricing.services.csv_codec import CsvCodec, export_ledger, parse_ledger_csv
from package_pricing.services.ledger_service import LedgerService
from package_pricing.services.package_service import PackageService

# Strategies for generating test data
costs = st.decimals(min_value=0, max_value=100000, places=2, allow_nan=False, allow_infinity=False)
markups = st.decimals(min_value=0, max_value=200, places=2, allow_nan=False, allow_infinity=False)
airports = st.sampled_from(sorted(settings.known_airports))
travel_dates = st.dates(min_value=date(2025, 1, 1), max_value=date(2027, 12, 31))
prices = st.integers(min_value=0, max_value=50000)


@given(land=costs, flight=costs, low=markups, high=markups)
def test_higher_markup_never_lowers_price(land, flight, low, high):
    """Test that raising the markup never makes the sell price cheaper."""
    low, high = min(low, high), max(low, high)
    assert compose(land, flight, low) <= compose(land, flight, high)


@given(land=costs, flight=costs, markup=markups)
def test_price_covers_costs(land, flight, markup):
    """A marked-up price never drops below the rounded cost it was built from."""
    price = compose(land, flight, markup)
    assert price >= compose(land, flight, 0)
    assert price >= 0


@given(land=costs, flight=costs, markup=markups)
def test_only_the_sum_of_costs_matters(land, flight, markup):
    assert compose(land, flight, markup) == compose(land + flight, 0, markup)


@given(
    rows=st.dictionaries(
        keys=st.tuples(airports, travel_dates),
        values=prices,
        max_size=30,
    )
)
def test_csv_export_parses_back_to_same_entries(rows):
    """Test that parsing an exported ledger yields exactly the exported entries."""
    entries = [
        PricingEntry(departure_airport=code, departure_date=day, price=price)
        for (code, day), price in rows.items()
    ]

    parsed = parse_ledger_csv(export_ledger(entries))

    assert parsed.errors == []
    assert {
        (entry.departure_airport, entry.departure_date): Decimal(str(entry.price))
        for entry in parsed.entries
    } == {key: Decimal(price) for key, price in rows.items()}


async def _in_fresh_database(work):
    """Run ``work(session)`` against a new in-memory database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    try:
        async with session_factory() as session:
            return await work(session)
    finally:
        await engine.dispose()


async def _create_package(session, slug):
    return await PackageService(session).create_package(CreatePackageRequest(title=slug.title(), slug=slug))


async def _upsert_all(writes: list[tuple[str, int, int]]) -> tuple[int, set[tuple[str, date]]]:
    async def work(session):
        package = await _create_package(session, "property-package")
        ledger = LedgerService(session)
        start = date(2025, 7, 1)
        for code, offset, price in writes:
            await ledger.upsert_entry(
                package.id,
                EntryInput(departure_airport=code, departure_date=start + timedelta(days=offset), price=price),
            )
        stored = await ledger.list_entries(package.id)
        return len(stored), {(entry.departure_airport, entry.departure_date) for entry in stored}

    return await _in_fresh_database(work)


@hypothesis_settings(max_examples=25, deadline=None)
@given(
    writes=st.lists(
        st.tuples(st.sampled_from(["LGW", "MAN", "BHX"]), st.integers(min_value=0, max_value=4), prices),
        min_size=1,
        max_size=15,
    )
)
def test_at_most_one_entry_per_airport_and_date(writes):
    """However writes repeat, the ledger holds one entry per (airport, date)."""
    count, keys = asyncio.run(_upsert_all(writes))

    expected = {(code, date(2025, 7, 1) + timedelta(days=offset)) for code, offset, _ in writes}
    assert count == len(expected)
    assert keys == expected


async def _csv_round_trip(rows: dict[tuple[str, date], float]):
    async def work(session):
        source = await _create_package(session, "source-package")
        target = await _create_package(session, "target-package")
        ledger = LedgerService(session)
        codec = CsvCodec(session)
        await ledger.bulk_upsert(source.id, [
            EntryInput(departure_airport=code, departure_date=day, price=price)
            for (code, day), price in rows.items()
        ])

        csv_text, _ = await codec.export_csv(source.id, actor="property")
        result = await codec.import_csv(target.id, csv_text, actor="property")

        def snapshot(entries):
            return [(e.departure_airport, e.departure_date, e.price, e.currency) for e in entries]

        return (
            result,
            snapshot(await ledger.list_entries(source.id)),
            snapshot(await ledger.list_entries(target.id)),
        )

    return await _in_fresh_database(work)


@hypothesis_settings(max_examples=25, deadline=None)
@given(
    rows=st.dictionaries(
        keys=st.tuples(airports, travel_dates),
        values=st.floats(min_value=0, max_value=50000, allow_nan=False, allow_infinity=False),
        max_size=20,
    )
)
def test_csv_import_of_export_rebuilds_the_ledger(rows):
    """Importing an exported ledger into an empty one stores exactly the same entries."""
    result, source, target = asyncio.run(_csv_round_trip(rows))

    assert result.errors == []
    assert result.created == len(rows)
    assert target == source
