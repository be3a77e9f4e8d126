"""Departure, rate and flight augmentation model definitions."""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .package import Package


class Departure(Base):
    """A dated departure of a package, mirrored from the tour platform."""

    __tablename__ = "departures"

    id: Mapped[UUID] = mapped_column(
        PgUUID(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    package_id: Mapped[UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("packages.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Stable upstream identity used to match departures across syncs
    source_id: Mapped[str] = mapped_column(String(64), nullable=False)
    departure_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    duration_nights: Mapped[int | None] = mapped_column(Integer, nullable=True)
    available_spots: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_sold_out: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

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
        UniqueConstraint("package_id", "source_id", name="uq_departure_package_source"),
    )

    package: Mapped["Package"] = relationship("Package", back_populates="departures")
    rates: Mapped[list["Rate"]] = relationship(
        "Rate",
        back_populates="departure",
        cascade="all, delete-orphan",
        order_by="Rate.position",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return (
            f"<Departure(id={self.id}, package_id={self.package_id}, "
            f"source_id='{self.source_id}', date={self.departure_date})>"
        )


class Rate(Base):
    """A priced room/hotel option on a departure."""

    __tablename__ = "departure_rates"

    id: Mapped[UUID] = mapped_column(
        PgUUID(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    departure_id: Mapped[UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("departures.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    source_rate_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    room_category: Mapped[str] = mapped_column(String(16), nullable=False, default="standard")
    hotel_category: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Land price converted into the package currency
    land_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    original_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    original_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

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
        UniqueConstraint(
            "departure_id", "title", "room_category", "hotel_category",
            name="uq_rate_departure_key"
        ),
        CheckConstraint("land_price >= 0", name="ck_rate_land_price_non_negative"),
        CheckConstraint(
            "room_category IN ('single', 'twin', 'triple', 'standard')",
            name="ck_rate_room_category"
        ),
    )

    departure: Mapped["Departure"] = relationship("Departure", back_populates="rates")
    flight_augmentations: Mapped[list["FlightAugmentation"]] = relationship(
        "FlightAugmentation",
        back_populates="rate",
        cascade="all, delete-orphan",
        order_by="FlightAugmentation.airport_code",
        lazy="selectin"
    )

    @property
    def match_key(self) -> tuple[str, str, str | None]:
        return (self.title, self.room_category, self.hotel_category)

    def __repr__(self) -> str:
        return (
            f"<Rate(id={self.id}, title='{self.title}', room={self.room_category}, "
            f"hotel={self.hotel_category}, land={self.land_price})>"
        )


class FlightAugmentation(Base):
    """Cheapest flight found from one UK airport, composed with the rate's land price."""

    __tablename__ = "rate_flight_augmentations"

    id: Mapped[UUID] = mapped_column(
        PgUUID(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    rate_id: Mapped[UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("departure_rates.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    airport_code: Mapped[str] = mapped_column(String(3), nullable=False)
    airport_name: Mapped[str] = mapped_column(String(120), nullable=False)
    flight_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    combined_price: Mapped[int] = mapped_column(Integer, nullable=False)
    markup_percent: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        UniqueConstraint("rate_id", "airport_code", name="uq_augmentation_rate_airport"),
        CheckConstraint("flight_price >= 0", name="ck_augmentation_flight_price_non_negative"),
        CheckConstraint("combined_price >= 0", name="ck_augmentation_combined_price_non_negative"),
    )

    rate: Mapped["Rate"] = relationship("Rate", back_populates="flight_augmentations")

    def __repr__(self) -> str:
        return (
            f"<FlightAugmentation(rate_id={self.rate_id}, airport={self.airport_code}, "
            f"flight={self.flight_price}, combined={self.combined_price})>"
        )
