"""Flight-priced pricing Pydantic schemas."""

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field

from .common import AIRPORT_CODE_PATTERN, ItemError


class FlightType(str, Enum):
    ROUND_TRIP = "round_trip"
    OPEN_JAW = "open_jaw"


class InternalLegInput(BaseModel):
    """Domestic one-way leg flown during the trip."""

    from_airport: str = Field(..., pattern=AIRPORT_CODE_PATTERN)
    to_airport: str = Field(..., pattern=AIRPORT_CODE_PATTERN)
    day_offset: int = Field(0, ge=0, le=60, description="Days after effective arrival, 0 = arrival day")


class FlightSearchInput(BaseModel):
    """
    Where to fly. Round trips use ``destination_airports``; open-jaw trips
    use ``arrival_airports`` for the outbound leg and ``departure_airports``
    for the return leg. Each side is a small set of candidate codes.
    """

    origin_airports: list[str] = Field(..., min_length=1, max_length=15, description="UK origin airport codes")
    flight_type: FlightType = Field(FlightType.ROUND_TRIP, description="round_trip or open_jaw")
    destination_airports: list[str] = Field(default_factory=list, max_length=5)
    arrival_airports: list[str] = Field(default_factory=list, max_length=5)
    departure_airports: list[str] = Field(default_factory=list, max_length=5)
    internal_leg: InternalLegInput | None = Field(None, description="Open-jaw only")
    markup_percent: float | None = Field(None, ge=0, le=500, description="Defaults to the configured markup")


class FetchSeasonalRequest(FlightSearchInput):
    """Quote flights for a set of dates and compose them with seasonal land costs."""

    package_id: str = Field(..., description="Package ID")
    dates: list[date] = Field(default_factory=list, description="Explicit travel dates")
    date_from: date | None = Field(None, description="Range start when no explicit dates are given")
    date_to: date | None = Field(None, description="Range end (inclusive)")
    nights: int | None = Field(None, ge=1, le=60, description="Defaults to the package duration")


class FetchSeasonalResponse(BaseModel):
    run_id: str
    fares_found: int = Field(..., ge=0, description="Origin/date pairs with a fare")
    entries_created: int = Field(..., ge=0)
    entries_updated: int = Field(..., ge=0)
    skipped_no_season: int = Field(..., ge=0, description="Fares dropped because no season covers the date")
    skipped_no_fare: int = Field(..., ge=0, description="Origin/date pairs without any fare")
    errors: list[ItemError] = Field(default_factory=list)
