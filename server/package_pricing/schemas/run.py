"""Pricing run Pydantic schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ..models.run import RunKind


class ListRunsRequest(BaseModel):
    package_id: str | None = Field(None, description="Filter by package ID")
    kind: RunKind | None = Field(None, description="Filter by run kind")
    limit: int = Field(50, ge=1, le=500, description="Maximum runs returned")


class PricingRun(BaseModel):
    id: str
    package_id: str | None = None
    kind: RunKind
    actor: str
    source: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    summary: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class ListRunsResponse(BaseModel):
    items: list[PricingRun] = Field(..., description="Runs, newest first")
