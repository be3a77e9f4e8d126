"""Departure reconciliation against the tour platform and flight attachment."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import UpstreamFetchError, ValidationError
from ..core.locking import package_write_lock
from ..core.observability import metrics_collector
from ..models.departure import Departure, FlightAugmentation, Rate
from ..models.package import Package, PricingModule
from ..models.run import RunKind
from ..schemas.departure import AttachFlightsRequest
from ..schemas.ledger import EntryInput
from .compositor import compose, to_decimal
from .flight_quotes import FlightQuote, QuoteRequest
from .ledger_service import LedgerService
from .package_service import PackageService
from .pricing_service import require_module
from .providers import ProviderFactory, get_flight_provider
from .run_service import RunService
from .tour_platform import ParsedDeparture, ParsedRate, TourPlatformClient

logger = logging.getLogger(__name__)

CatalogClientFactory = Callable[[], TourPlatformClient]


@dataclass
class SyncResult:
    run_id: str
    departures_count: int = 0
    rates_count: int = 0
    departures_created: int = 0
    departures_updated: int = 0
    departures_removed: int = 0
    rates_created: int = 0
    rates_updated: int = 0
    rates_removed: int = 0
    duration_nights: Optional[int] = None


@dataclass
class AttachFlightsResult:
    run_id: str
    updated: int = 0
    augmentations_stored: int = 0
    fares_found: int = 0
    ledger_created: int = 0
    ledger_updated: int = 0


def _chunks(days: list[date], size: int) -> list[list[date]]:
    return [days[start:start + size] for start in range(0, len(days), size)]


class DepartureSyncReconciler:
    """
    Keeps a package's departures in step with the tour platform.

    Departures are matched by their upstream source id and rates by
    (title, room category, hotel category). Matched rates keep their flight
    augmentations; rates and departures that vanish upstream are deleted
    together with everything attached to them.
    """

    def __init__(
        self,
        db: AsyncSession,
        catalog_client_factory: CatalogClientFactory = TourPlatformClient,
        provider_factory: ProviderFactory = get_flight_provider,
    ):
        self.db = db
        self.catalog_client_factory = catalog_client_factory
        self.provider_factory = provider_factory
        self.package_service = PackageService(db)
        self.ledger = LedgerService(db)
        self.runs = RunService(db)

    async def list_departures(
        self,
        package_id: UUID | str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Departure]:
        package = await self.package_service.get_package_or_raise(package_id)

        conditions = [Departure.package_id == package.id]
        if date_from:
            conditions.append(Departure.departure_date >= date_from)
        if date_to:
            conditions.append(Departure.departure_date <= date_to)

        stmt = (
            select(Departure)
            .where(and_(*conditions))
            .order_by(Departure.departure_date, Departure.source_id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def sync(
        self,
        package_id: UUID | str,
        exchange_rate: Optional[float],
        actor: str,
    ) -> SyncResult:
        """
        Merge the upstream catalog into the package's departures.

        Running it twice against an unchanged catalog leaves the same
        departures, rates and augmentations in place.

        Raises:
            ValidationError: The package has no upstream product id or the exchange rate is not positive
            UpstreamFetchError: The tour platform could not be read; nothing is changed
        """
        package = await self.package_service.get_package_or_raise(package_id)
        if not package.upstream_product_id:
            raise ValidationError(detail="Package has no upstream product id to sync from")

        rate = to_decimal(exchange_rate if exchange_rate is not None else settings.default_exchange_rate)
        if rate <= 0:
            raise ValidationError(detail=f"Exchange rate must be positive, got {exchange_rate}")

        client = self.catalog_client_factory()
        try:
            catalog = await client.fetch_catalog(package.upstream_product_id, rate, package.currency)
        except UpstreamFetchError:
            metrics_collector.record_sync("error")
            raise

        async with package_write_lock(self.db, package.id):
            result = await self._merge(package, catalog.departures, catalog.duration_nights)
            run = await self.runs.record(
                kind=RunKind.DEPARTURE_SYNC,
                package_id=package.id,
                actor=actor,
                source="bokun",
                parameters={
                    "product_id": package.upstream_product_id,
                    "exchange_rate": float(rate),
                },
                summary={
                    "departures_count": result.departures_count,
                    "rates_count": result.rates_count,
                    "departures_created": result.departures_created,
                    "departures_updated": result.departures_updated,
                    "departures_removed": result.departures_removed,
                    "rates_created": result.rates_created,
                    "rates_updated": result.rates_updated,
                    "rates_removed": result.rates_removed,
                },
            )
            await self.db.commit()
        result.run_id = str(run.id)

        metrics_collector.record_sync("success", result.rates_count)
        logger.info(
            "Departures synced",
            extra={
                "package_id": str(package.id),
                "product_id": package.upstream_product_id,
                "departures_count": result.departures_count,
                "rates_count": result.rates_count,
                "departures_removed": result.departures_removed,
                "rates_removed": result.rates_removed,
            }
        )
        return result

    async def _merge(
        self,
        package: Package,
        parsed_departures: list[ParsedDeparture],
        duration_nights: Optional[int],
    ) -> SyncResult:
        result = SyncResult(run_id="")
        synced_at = datetime.now(timezone.utc)

        if duration_nights:
            package.duration_nights = duration_nights
        result.duration_nights = package.duration_nights

        existing = {departure.source_id: departure for departure in await self.list_departures(package.id)}
        seen: set[str] = set()

        for parsed in parsed_departures:
            seen.add(parsed.source_id)
            departure = existing.get(parsed.source_id)
            if departure is None:
                departure = Departure(package_id=package.id, source_id=parsed.source_id, rates=[])
                self.db.add(departure)
                result.departures_created += 1
            else:
                result.departures_updated += 1

            departure.departure_date = parsed.departure_date
            departure.duration_nights = package.duration_nights
            departure.available_spots = parsed.available_spots
            departure.is_sold_out = parsed.is_sold_out
            departure.last_synced_at = synced_at
            self._merge_rates(departure, parsed.rates, package.currency, result)

            result.departures_count += 1
            result.rates_count += len(parsed.rates)

        for source_id, departure in existing.items():
            if source_id not in seen:
                result.rates_removed += len(departure.rates)
                await self.db.delete(departure)
                result.departures_removed += 1

        await self.db.flush()
        return result

    def _merge_rates(
        self,
        departure: Departure,
        parsed_rates: list[ParsedRate],
        currency: str,
        result: SyncResult,
    ) -> None:
        current = {rate.match_key: rate for rate in departure.rates}
        merged: list[Rate] = []

        for position, parsed in enumerate(parsed_rates):
            rate = current.pop(parsed.match_key, None)
            if rate is None:
                rate = Rate(
                    title=parsed.title,
                    room_category=parsed.room_category,
                    hotel_category=parsed.hotel_category,
                    flight_augmentations=[],
                )
                result.rates_created += 1
            else:
                result.rates_updated += 1

            rate.source_rate_id = parsed.source_rate_id
            rate.land_price = parsed.land_price
            rate.currency = currency
            rate.original_price = parsed.original_price
            rate.original_currency = parsed.original_currency
            rate.position = position
            merged.append(rate)

        # anything left in current vanished upstream; delete-orphan removes it
        result.rates_removed += len(current)
        departure.rates = merged

    async def attach_flights(self, request: AttachFlightsRequest, actor: str) -> AttachFlightsResult:
        """
        Quote flights for every stored departure date and attach them per rate.

        Each rate gets one augmentation per origin airport with a fare; an
        airport without a fare loses any augmentation it had. The cheapest
        combined price per airport and departure date is then written to the
        ledger.

        Raises:
            ValidationError: Wrong pricing module, no departures, or an illegal flight search
            UpstreamFetchError: The flight source failed; nothing is written
        """
        package = await self.package_service.get_package_or_raise(request.package_id)
        require_module(package, PricingModule.UPSTREAM_DEPARTURES)

        departures = await self.list_departures(package.id)
        if not departures:
            raise ValidationError(detail="Package has no departures; sync departures before attaching flights")

        markup = request.markup_percent if request.markup_percent is not None else settings.default_markup_percent

        dates_by_nights: dict[int, set[date]] = defaultdict(set)
        for departure in departures:
            dates_by_nights[departure.duration_nights or package.duration_nights or 0].add(departure.departure_date)

        # validate every batch before the first network call
        quote_requests = [
            QuoteRequest.from_search(request, chunk, nights)
            for nights, days in sorted(dates_by_nights.items())
            for chunk in _chunks(sorted(days), settings.max_quote_dates)
        ]
        origins = quote_requests[0].origins

        provider = self.provider_factory(package.flight_source)
        quotes: dict[tuple[int, str, date], FlightQuote] = {}
        for quote_request in quote_requests:
            for quote in await provider.quote(quote_request):
                quotes[(quote_request.nights, quote.origin_airport, quote.departure_date)] = quote

        fetched_at = datetime.now(timezone.utc)
        result = AttachFlightsResult(run_id="", fares_found=len(quotes))
        cheapest: dict[tuple[str, date], int] = {}

        async with package_write_lock(self.db, package.id):
            for departure in departures:
                nights = departure.duration_nights or package.duration_nights or 0
                for rate in departure.rates:
                    stored = self._attach_to_rate(
                        rate, origins, departure.departure_date, nights, quotes, markup, fetched_at
                    )
                    if stored:
                        result.updated += 1
                        result.augmentations_stored += stored

                    for augmentation in rate.flight_augmentations:
                        key = (augmentation.airport_code, departure.departure_date)
                        if key not in cheapest or augmentation.combined_price < cheapest[key]:
                            cheapest[key] = augmentation.combined_price

            await self.db.flush()

            entries = [
                EntryInput(departure_airport=code, departure_date=day, price=float(price))
                for (code, day), price in sorted(cheapest.items())
            ]
            bulk = await self.ledger.bulk_upsert(package.id, entries, commit=False)
            result.ledger_created = bulk.created
            result.ledger_updated = bulk.updated

            run = await self.runs.record(
                kind=RunKind.ATTACH_FLIGHTS,
                package_id=package.id,
                actor=actor,
                source=package.flight_source,
                parameters={
                    "flight_type": request.flight_type.value,
                    "origins": list(origins),
                    "markup_percent": float(markup),
                },
                summary={
                    "updated": result.updated,
                    "augmentations_stored": result.augmentations_stored,
                    "fares_found": result.fares_found,
                    "ledger_created": bulk.created,
                    "ledger_updated": bulk.updated,
                    "errors": len(bulk.errors),
                },
            )
            await self.db.commit()
        result.run_id = str(run.id)

        logger.info(
            "Flights attached to departures",
            extra={
                "package_id": str(package.id),
                "source": package.flight_source,
                "rates_updated": result.updated,
                "augmentations_stored": result.augmentations_stored,
                "fares_found": result.fares_found,
            }
        )
        return result

    def _attach_to_rate(
        self,
        rate: Rate,
        origins: tuple[str, ...],
        departure_date: date,
        nights: int,
        quotes: dict[tuple[int, str, date], FlightQuote],
        markup: float,
        fetched_at: datetime,
    ) -> int:
        """Upsert the rate's augmentations for ``origins``; returns how many were stored."""
        by_airport = {augmentation.airport_code: augmentation for augmentation in rate.flight_augmentations}
        stored = 0

        for origin in origins:
            quote = quotes.get((nights, origin, departure_date))
            augmentation = by_airport.get(origin)
            if quote is None:
                if augmentation is not None:
                    rate.flight_augmentations.remove(augmentation)
                continue

            combined = compose(rate.land_price, quote.price, markup)
            if augmentation is None:
                augmentation = FlightAugmentation(
                    airport_code=origin,
                    airport_name=settings.airport_name(origin) or origin,
                )
                rate.flight_augmentations.append(augmentation)
            augmentation.flight_price = quote.price
            augmentation.combined_price = combined
            augmentation.markup_percent = Decimal(str(markup))
            augmentation.fetched_at = fetched_at
            stored += 1

        return stored
