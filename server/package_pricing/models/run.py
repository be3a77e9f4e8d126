"""Pricing run model definition."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RunKind(str, Enum):
    SEASONAL_FETCH = "seasonal_fetch"
    CSV_IMPORT = "csv_import"
    CSV_EXPORT = "csv_export"
    DEPARTURE_SYNC = "departure_sync"
    ATTACH_FLIGHTS = "attach_flights"
    MODULE_SWITCH = "module_switch"


class PricingRun(Base):
    """Audit record of one bulk pricing operation on a package."""

    __tablename__ = "pricing_runs"

    id: Mapped[UUID] = mapped_column(
        PgUUID(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    # Kept after the package is deleted
    package_id: Mapped[UUID | None] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("packages.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    kind: Mapped[RunKind] = mapped_column(String(32), nullable=False)
    actor: Mapped[str] = mapped_column(String(255), nullable=False)
    source: Mapped[str | None] = mapped_column(String(32), nullable=True)
    parameters: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    summary: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Python default keeps microseconds; list order depends on it
    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        index=True
    )

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        CheckConstraint("length(actor) > 0", name="ck_pricing_run_actor_not_empty"),
    )

    def __repr__(self) -> str:
        return (
            f"<PricingRun(id={self.id}, package_id={self.package_id}, "
            f"kind={self.kind}, actor='{self.actor}', created_at={self.created_at})>"
        )
