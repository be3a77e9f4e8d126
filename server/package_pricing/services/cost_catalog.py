"""Seasonal land cost catalog."""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError, ValidationError
from ..models.season import Season
from ..schemas.season import AddSeasonRequest, EditSeasonRequest
from .package_service import PackageService, parse_uuid

logger = logging.getLogger(__name__)


def validate_season_fields(
    label: Optional[str],
    start_date: date,
    end_date: date,
    land_cost_per_person: Decimal,
    hotel_cost_per_person: Optional[Decimal],
) -> None:
    """Raise ValidationError for a season that can never be priced."""
    if not label or not label.strip():
        raise ValidationError(detail="Season label is required")
    if start_date > end_date:
        raise ValidationError(
            detail=f"Season start date {start_date.isoformat()} is after end date {end_date.isoformat()}"
        )
    if land_cost_per_person is None or land_cost_per_person <= 0:
        raise ValidationError(detail="Land cost per person must be greater than zero")
    if hotel_cost_per_person is not None and hotel_cost_per_person < 0:
        raise ValidationError(detail="Hotel cost per person must not be negative")


def pick_season(seasons: list[Season], travel_date: date) -> Optional[Season]:
    """
    Choose the season covering ``travel_date``.

    Overlaps are rejected on write, but rows that predate that rule may
    still overlap: the latest start date wins, then the most recently created.
    """
    covering = [season for season in seasons if season.covers(travel_date)]
    if not covering:
        return None
    return max(covering, key=lambda season: (season.start_date, season.created_at))


class CostCatalog:
    """Service for season-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.package_service = PackageService(db)

    async def add_season(self, request: AddSeasonRequest) -> Season:
        """
        Add a season to a package.

        Raises:
            NotFoundError: If the package does not exist
            ValidationError: If the season is malformed or overlaps another season
        """
        package = await self.package_service.get_package_or_raise(request.package_id)
        validate_season_fields(
            request.label,
            request.start_date,
            request.end_date,
            request.land_cost_per_person,
            request.hotel_cost_per_person,
        )
        await self._reject_overlap(package.id, request.start_date, request.end_date)

        season = Season(
            package_id=package.id,
            label=request.label.strip(),
            start_date=request.start_date,
            end_date=request.end_date,
            land_cost_per_person=request.land_cost_per_person,
            hotel_cost_per_person=request.hotel_cost_per_person,
            notes=request.notes,
        )
        self.db.add(season)
        await self.db.commit()
        await self.db.refresh(season)

        logger.info(
            "Season added",
            extra={
                "season_id": str(season.id),
                "package_id": str(package.id),
                "start_date": season.start_date.isoformat(),
                "end_date": season.end_date.isoformat(),
            }
        )
        return season

    async def edit_season(self, request: EditSeasonRequest) -> Season:
        """Apply the provided fields to a season and re-validate the result."""
        season = await self.get_season_or_raise(request.season_id)
        changes = request.model_dump(exclude_unset=True, exclude={"season_id"})

        label = changes.get("label", season.label)
        start_date = changes.get("start_date", season.start_date)
        end_date = changes.get("end_date", season.end_date)
        land_cost = changes.get("land_cost_per_person", season.land_cost_per_person)
        hotel_cost = changes.get("hotel_cost_per_person", season.hotel_cost_per_person)

        validate_season_fields(label, start_date, end_date, land_cost, hotel_cost)
        await self._reject_overlap(season.package_id, start_date, end_date, exclude_id=season.id)

        season.label = label.strip()
        season.start_date = start_date
        season.end_date = end_date
        season.land_cost_per_person = land_cost
        season.hotel_cost_per_person = hotel_cost
        if "notes" in changes:
            season.notes = changes["notes"]

        await self.db.commit()
        await self.db.refresh(season)

        logger.info(
            "Season edited",
            extra={"season_id": str(season.id), "fields": sorted(changes)}
        )
        return season

    async def delete_season(self, season_id: str) -> None:
        season = await self.get_season_or_raise(season_id)
        await self.db.delete(season)
        await self.db.commit()
        logger.info("Season deleted", extra={"season_id": str(season_id)})

    async def list_seasons(self, package_id: UUID | str) -> list[Season]:
        package = await self.package_service.get_package_or_raise(package_id)
        stmt = (
            select(Season)
            .where(Season.package_id == package.id)
            .order_by(Season.start_date, Season.created_at)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_season(self, package_id: UUID | str, travel_date: date) -> Optional[Season]:
        """Season covering ``travel_date``, or None when the date is uncovered."""
        package = await self.package_service.get_package_or_raise(package_id)
        stmt = select(Season).where(
            and_(
                Season.package_id == package.id,
                Season.start_date <= travel_date,
                Season.end_date >= travel_date,
            )
        )
        result = await self.db.execute(stmt)
        return pick_season(list(result.scalars().all()), travel_date)

    async def get_season_or_raise(self, season_id: UUID | str) -> Season:
        if not isinstance(season_id, UUID):
            season_id = parse_uuid(season_id, "season")
        season = await self.db.get(Season, season_id)
        if not season:
            logger.warning("Season not found", extra={"season_id": str(season_id)})
            raise NotFoundError(resource_type="season", resource_id=str(season_id))
        return season

    async def _reject_overlap(
        self,
        package_id: UUID,
        start_date: date,
        end_date: date,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        stmt = select(Season).where(
            and_(
                Season.package_id == package_id,
                Season.start_date <= end_date,
                Season.end_date >= start_date,
            )
        )
        if exclude_id is not None:
            stmt = stmt.where(Season.id != exclude_id)
        result = await self.db.execute(stmt.limit(1))
        overlapping = result.scalar_one_or_none()
        if overlapping:
            logger.warning(
                "Season rejected - overlaps an existing season",
                extra={
                    "package_id": str(package_id),
                    "overlapping_season_id": str(overlapping.id),
                }
            )
            raise ValidationError(
                detail=(
                    f"Season overlaps '{overlapping.label}' "
                    f"({overlapping.start_date.isoformat()} to {overlapping.end_date.isoformat()})"
                ),
                errors={"overlapping_season_id": str(overlapping.id)},
            )
