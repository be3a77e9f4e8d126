"""Common Pydantic schemas."""

from pydantic import BaseModel, Field


AIRPORT_CODE_PATTERN = r"^[A-Za-z]{3}$"
CURRENCY_PATTERN = r"^[A-Z]{3}$"


class ItemError(BaseModel):
    """A single rejected item inside a bulk operation."""

    item: str = Field(..., description="Identifies the rejected item, e.g. 'LGW 2025-07-10'")
    reason: str = Field(..., description="Why the item was rejected")
