"""Season-related Pydantic schemas.

Only shape constraints live here; business rules (date order, positive land
cost, overlaps) are enforced by the cost catalog so that they surface as 400
Problem responses rather than request validation failures.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class AddSeasonRequest(BaseModel):
    """Request schema for adding a season to a package."""

    package_id: str = Field(..., description="Package ID")
    label: str = Field(..., max_length=120, description="Season label, e.g. 'Summer 2025'")
    start_date: date = Field(..., description="First covered travel date")
    end_date: date = Field(..., description="Last covered travel date (inclusive)")
    land_cost_per_person: Decimal = Field(..., max_digits=10, decimal_places=2, description="Land cost per person")
    hotel_cost_per_person: Decimal | None = Field(
        None, max_digits=10, decimal_places=2, description="Optional hotel supplement per person"
    )
    notes: str | None = Field(None, max_length=2000, description="Free-form notes")


class EditSeasonRequest(BaseModel):
    """Request schema for editing a season. Omitted fields are left unchanged."""

    season_id: str = Field(..., description="Season ID")
    label: str | None = Field(None, max_length=120)
    start_date: date | None = None
    end_date: date | None = None
    land_cost_per_person: Decimal | None = Field(None, max_digits=10, decimal_places=2)
    hotel_cost_per_person: Decimal | None = Field(None, max_digits=10, decimal_places=2)
    notes: str | None = Field(None, max_length=2000)


class DeleteSeasonRequest(BaseModel):
    season_id: str = Field(..., description="Season ID")


class ListSeasonsRequest(BaseModel):
    package_id: str = Field(..., description="Package ID")


class FindSeasonRequest(BaseModel):
    package_id: str = Field(..., description="Package ID")
    travel_date: date = Field(..., description="Travel date to look up")


class Season(BaseModel):
    """Season response schema."""

    id: str = Field(..., description="Unique season ID")
    package_id: str = Field(..., description="Owning package ID")
    label: str
    start_date: date
    end_date: date
    land_cost_per_person: float
    hotel_cost_per_person: float | None = None
    notes: str | None = None


class ListSeasonsResponse(BaseModel):
    items: list[Season] = Field(..., description="Seasons ordered by start date")


class FindSeasonResponse(BaseModel):
    season: Season | None = Field(None, description="Covering season, null when the date is uncovered")
