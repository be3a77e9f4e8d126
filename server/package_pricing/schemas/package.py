"""Package-related Pydantic schemas."""

from pydantic import BaseModel, Field

from ..models.package import FlightSource, PricingModule
from .common import CURRENCY_PATTERN


class CreatePackageRequest(BaseModel):
    """Request schema for creating a package."""

    title: str = Field(..., min_length=1, max_length=300, description="Package title")
    slug: str = Field(..., min_length=1, max_length=200, pattern=r"^[a-z0-9-]+$", description="URL-friendly slug")
    currency: str | None = Field(None, pattern=CURRENCY_PATTERN, description="ISO 4217 currency code")
    duration_nights: int | None = Field(None, ge=1, le=365, description="Duration in nights")
    pricing_module: PricingModule = Field(PricingModule.MANUAL, description="Active pricing module")
    flight_source: FlightSource = Field(FlightSource.SUNSHINE, description="Flight quote source")
    upstream_product_id: str | None = Field(None, max_length=64, description="Tour platform product ID")


class GetPackageRequest(BaseModel):
    """Request schema for fetching a package."""

    package_id: str = Field(..., description="Package ID")


class SetPricingModuleRequest(BaseModel):
    """Request schema for switching a package's pricing module."""

    package_id: str = Field(..., description="Package ID")
    pricing_module: PricingModule = Field(..., description="New pricing module")
    flight_source: FlightSource | None = Field(None, description="Optionally change the flight source too")


class Package(BaseModel):
    """Package response schema."""

    id: str = Field(..., description="Unique package ID")
    title: str = Field(..., description="Package title")
    slug: str = Field(..., description="URL-friendly slug")
    currency: str = Field(..., description="ISO 4217 currency code")
    duration_nights: int | None = Field(None, description="Duration in nights")
    pricing_module: PricingModule = Field(..., description="Active pricing module")
    flight_source: FlightSource = Field(..., description="Flight quote source")
    upstream_product_id: str | None = Field(None, description="Tour platform product ID")


class SetPricingModuleResponse(BaseModel):
    """Response schema for a pricing module switch."""

    package: Package = Field(..., description="Updated package")
    entries_removed: int = Field(..., ge=0, description="Ledger entries wiped by the switch")
