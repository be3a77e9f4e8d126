"""Seasonal flight-inclusive pricing: quotes flights and composes them with season land costs."""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import ValidationError
from ..core.locking import package_write_lock
from ..models.package import Package, PricingModule
from ..models.run import RunKind
from ..schemas.ledger import EntryInput
from ..schemas.pricing import FetchSeasonalRequest
from .compositor import compose
from .cost_catalog import CostCatalog, pick_season
from .flight_quotes import QuoteRequest
from .ledger_service import EntryFailure, LedgerService
from .package_service import PackageService
from .providers import ProviderFactory, get_flight_provider
from .run_service import RunService

logger = logging.getLogger(__name__)


@dataclass
class SeasonalPricingResult:
    run_id: str
    fares_found: int = 0
    entries_created: int = 0
    entries_updated: int = 0
    skipped_no_season: int = 0
    skipped_no_fare: int = 0
    errors: list[EntryFailure] = field(default_factory=list)


def expand_dates(dates: list[date], date_from: Optional[date], date_to: Optional[date]) -> list[date]:
    """Explicit dates win; otherwise every day of the inclusive range."""
    if dates:
        return sorted(set(dates))
    if date_from is None or date_to is None:
        raise ValidationError(detail="Provide travel dates or both date_from and date_to")
    if date_from > date_to:
        raise ValidationError(detail="date_from must not be after date_to")
    span = (date_to - date_from).days + 1
    if span > settings.max_quote_dates:
        raise ValidationError(
            detail=f"At most {settings.max_quote_dates} travel dates can be quoted at once, got {span}"
        )
    return [date_from + timedelta(days=offset) for offset in range(span)]


def require_module(package: Package, module: PricingModule) -> None:
    if package.pricing_module != module.value:
        raise ValidationError(
            detail=(
                f"Package uses '{package.pricing_module}' pricing; "
                f"switch it to '{module.value}' before running this operation"
            )
        )


class SeasonalPricingService:
    """Fetches flight quotes for travel dates and writes composed sell prices to the ledger."""

    def __init__(self, db: AsyncSession, provider_factory: ProviderFactory = get_flight_provider):
        self.db = db
        self.provider_factory = provider_factory
        self.package_service = PackageService(db)
        self.catalog = CostCatalog(db)
        self.ledger = LedgerService(db)
        self.runs = RunService(db)

    async def fetch_seasonal(self, request: FetchSeasonalRequest, actor: str) -> SeasonalPricingResult:
        """
        Price every origin/date of the request.

        Dates without a covering season are skipped before any flight is
        quoted; origin/dates without a fare are skipped after. Everything is
        validated before the first network call.

        Raises:
            ValidationError: Illegal request (bad dates, open-jaw without two distinct airports, ...)
            UpstreamFetchError: The flight source failed; nothing is written
        """
        package = await self.package_service.get_package_or_raise(request.package_id)
        require_module(package, PricingModule.OPEN_JAW_SEASONAL)

        dates = expand_dates(request.dates, request.date_from, request.date_to)
        quote_request = QuoteRequest.from_search(request, dates, request.nights or package.duration_nights)
        markup = request.markup_percent if request.markup_percent is not None else settings.default_markup_percent

        seasons = await self.catalog.list_seasons(package.id)
        covered = [day for day in quote_request.dates if pick_season(seasons, day) is not None]
        origin_count = len(quote_request.origins)
        skipped_no_season = (len(quote_request.dates) - len(covered)) * origin_count

        quotes = []
        if covered:
            provider = self.provider_factory(package.flight_source)
            quotes = await provider.quote(replace(quote_request, dates=tuple(covered)))
        else:
            logger.info(
                "No season covers the requested dates; skipping flight search",
                extra={"package_id": str(package.id), "date_count": len(quote_request.dates)}
            )

        entries = []
        for quote in quotes:
            season = pick_season(seasons, quote.departure_date)
            entries.append(
                EntryInput(
                    departure_airport=quote.origin_airport,
                    departure_date=quote.departure_date,
                    price=compose(season.total_land_cost, quote.price, markup),
                )
            )

        async with package_write_lock(self.db, package.id):
            bulk = await self.ledger.bulk_upsert(package.id, entries, commit=False)
            run = await self.runs.record(
                kind=RunKind.SEASONAL_FETCH,
                package_id=package.id,
                actor=actor,
                source=package.flight_source,
                parameters={
                    "flight_type": quote_request.flight_type.value,
                    "origins": list(quote_request.origins),
                    "destinations": list(quote_request.destinations),
                    "arrival_airports": list(quote_request.arrival_airports),
                    "departure_airports": list(quote_request.departure_airports),
                    "date_from": quote_request.dates[0].isoformat(),
                    "date_to": quote_request.dates[-1].isoformat(),
                    "nights": quote_request.nights,
                    "markup_percent": float(markup),
                },
                summary={
                    "fares_found": len(quotes),
                    "created": bulk.created,
                    "updated": bulk.updated,
                    "skipped_no_season": skipped_no_season,
                    "skipped_no_fare": len(covered) * origin_count - len(quotes),
                    "errors": len(bulk.errors),
                },
            )
            await self.db.commit()

        result = SeasonalPricingResult(
            run_id=str(run.id),
            fares_found=len(quotes),
            entries_created=bulk.created,
            entries_updated=bulk.updated,
            skipped_no_season=skipped_no_season,
            skipped_no_fare=len(covered) * origin_count - len(quotes),
            errors=bulk.errors,
        )
        logger.info(
            "Seasonal pricing completed",
            extra={
                "package_id": str(package.id),
                "source": package.flight_source,
                "fares_found": result.fares_found,
                "created_count": result.entries_created,
                "updated_count": result.entries_updated,
                "skipped_no_season": result.skipped_no_season,
                "skipped_no_fare": result.skipped_no_fare,
            }
        )
        return result
