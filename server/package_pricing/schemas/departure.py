"""Departure-related Pydantic schemas."""

from datetime import date, datetime

from pydantic import BaseModel, Field

from .pricing import FlightSearchInput


class SyncDeparturesRequest(BaseModel):
    """Request schema for syncing departures from the tour platform."""

    package_id: str = Field(..., description="Package ID")
    exchange_rate: float | None = Field(
        None, gt=0, description="Upstream prices are divided by this rate; defaults to the configured rate"
    )


class SyncDeparturesResponse(BaseModel):
    run_id: str
    departures_count: int = Field(..., ge=0)
    rates_count: int = Field(..., ge=0)
    departures_created: int = Field(..., ge=0)
    departures_updated: int = Field(..., ge=0)
    departures_removed: int = Field(..., ge=0)
    rates_created: int = Field(..., ge=0)
    rates_updated: int = Field(..., ge=0)
    rates_removed: int = Field(..., ge=0)
    duration_nights: int | None = None


class ListDeparturesRequest(BaseModel):
    package_id: str = Field(..., description="Package ID")
    date_from: date | None = Field(None, description="Start date filter")
    date_to: date | None = Field(None, description="End date filter")


class AttachFlightsRequest(FlightSearchInput):
    """Quote flights for every stored departure date and attach them to the rates."""

    package_id: str = Field(..., description="Package ID")


class AttachFlightsResponse(BaseModel):
    run_id: str
    updated: int = Field(..., ge=0, description="Rates that received at least one flight")
    augmentations_stored: int = Field(..., ge=0)
    fares_found: int = Field(..., ge=0)
    ledger_created: int = Field(..., ge=0)
    ledger_updated: int = Field(..., ge=0)


class FlightAugmentation(BaseModel):
    airport_code: str
    airport_name: str
    flight_price: float
    combined_price: int
    markup_percent: float
    fetched_at: datetime


class Rate(BaseModel):
    id: str
    source_rate_id: str | None = None
    title: str
    room_category: str
    hotel_category: str | None = None
    land_price: float
    currency: str
    flight_augmentations: list[FlightAugmentation] = Field(default_factory=list)


class Departure(BaseModel):
    """Departure response schema."""

    id: str
    package_id: str
    source_id: str
    departure_date: date
    duration_nights: int | None = None
    available_spots: int | None = None
    is_sold_out: bool
    last_synced_at: datetime
    rates: list[Rate] = Field(default_factory=list)


class ListDeparturesResponse(BaseModel):
    items: list[Departure] = Field(..., description="Departures ordered by date")
