"""Pricing ledger Pydantic schemas."""

from datetime import date

from pydantic import BaseModel, Field

from .common import AIRPORT_CODE_PATTERN, ItemError


class EntryInput(BaseModel):
    """A ledger entry to write. The airport name is resolved from the airport code."""

    departure_airport: str = Field(..., pattern=AIRPORT_CODE_PATTERN, description="Origin airport code")
    departure_date: date = Field(..., description="Travel date")
    price: float = Field(..., description="Sell price; rounded half up to whole units")


class ListEntriesRequest(BaseModel):
    package_id: str = Field(..., description="Package ID")
    departure_airport: str | None = Field(None, pattern=AIRPORT_CODE_PATTERN, description="Filter by airport")
    date_from: date | None = Field(None, description="Start date filter")
    date_to: date | None = Field(None, description="End date filter")


class UpsertEntryRequest(EntryInput):
    package_id: str = Field(..., description="Package ID")


class BulkUpsertRequest(BaseModel):
    package_id: str = Field(..., description="Package ID")
    entries: list[EntryInput] = Field(..., max_length=10000, description="Entries to write")


class DeleteEntryRequest(BaseModel):
    entry_id: str = Field(..., description="Pricing entry ID")


class ClearLedgerRequest(BaseModel):
    package_id: str = Field(..., description="Package ID")


class PricingEntry(BaseModel):
    """Pricing entry response schema."""

    id: str = Field(..., description="Unique entry ID")
    package_id: str
    departure_airport: str
    departure_airport_name: str
    departure_date: date
    price: int = Field(..., description="Sell price in whole currency units")
    currency: str
    is_available: bool = Field(..., description="False when every departure on the date is sold out")


class UpsertEntryResponse(BaseModel):
    entry: PricingEntry
    created: bool = Field(..., description="True when the key did not exist before")


class ListEntriesResponse(BaseModel):
    items: list[PricingEntry] = Field(..., description="Entries ordered by airport then date")


class BulkUpsertResponse(BaseModel):
    created: int = Field(..., ge=0)
    updated: int = Field(..., ge=0)
    errors: list[ItemError] = Field(default_factory=list)


class ClearLedgerResponse(BaseModel):
    removed: int = Field(..., ge=0)


class ExportCsvRequest(BaseModel):
    package_id: str = Field(..., description="Package ID")


class ExportCsvResponse(BaseModel):
    package_id: str
    filename: str
    rows: int = Field(..., ge=0)
    csv_text: str


class ImportCsvRequest(BaseModel):
    package_id: str = Field(..., description="Package ID")
    csv_text: str = Field(..., max_length=5_000_000, description="CSV document")


class CsvRowError(BaseModel):
    row: int = Field(..., description="1-based data row number (header excluded)")
    reason: str


class ImportCsvResponse(BaseModel):
    created: int = Field(..., ge=0)
    updated: int = Field(..., ge=0)
    errors: list[CsvRowError] = Field(default_factory=list)
