"""Package model definition."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .departure import Departure
    from .pricing import PricingEntry
    from .season import Season


class PricingModule(str, Enum):
    """Which strategy produces the package's ledger entries."""
    MANUAL = "manual"
    OPEN_JAW_SEASONAL = "open_jaw_seasonal"
    UPSTREAM_DEPARTURES = "upstream_departures"


class FlightSource(str, Enum):
    """Flight quote source used when pricing the package."""
    SUNSHINE = "sunshine"
    SERP = "serp"


class Package(Base):
    """A sellable travel package. Only the fields pricing needs live here."""

    __tablename__ = "packages"

    id: Mapped[UUID] = mapped_column(
        PgUUID(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    title: Mapped[str] = mapped_column(String(300), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="GBP")
    duration_nights: Mapped[int | None] = mapped_column(Integer, nullable=True)

    pricing_module: Mapped[PricingModule] = mapped_column(
        String(32),
        nullable=False,
        default=PricingModule.MANUAL
    )
    flight_source: Mapped[FlightSource] = mapped_column(
        String(16),
        nullable=False,
        default=FlightSource.SUNSHINE
    )
    upstream_product_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        CheckConstraint("length(currency) = 3", name="ck_package_currency_length"),
        CheckConstraint(
            "duration_nights IS NULL OR duration_nights > 0",
            name="ck_package_duration_positive"
        ),
    )

    seasons: Mapped[list["Season"]] = relationship(
        "Season",
        back_populates="package",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
    departures: Mapped[list["Departure"]] = relationship(
        "Departure",
        back_populates="package",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
    pricing_entries: Mapped[list["PricingEntry"]] = relationship(
        "PricingEntry",
        back_populates="package",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Package(id={self.id}, slug='{self.slug}', module={self.pricing_module})>"
