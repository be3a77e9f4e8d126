"""Pricing ledger entry model definition."""

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .package import Package


# Largest price the Integer price column can hold
MAX_PRICE = 2_147_483_647


class PricingEntry(Base):
    """Sell price of a package from one origin airport on one travel date."""

    __tablename__ = "pricing_entries"

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

    departure_airport: Mapped[str] = mapped_column(String(3), nullable=False)
    departure_airport_name: Mapped[str] = mapped_column(String(120), nullable=False)
    departure_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Whole currency units
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

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
            "package_id", "departure_airport", "departure_date",
            name="uq_pricing_entry_package_airport_date"
        ),
        CheckConstraint("price >= 0", name="ck_pricing_entry_price_non_negative"),
        CheckConstraint("length(currency) = 3", name="ck_pricing_entry_currency_length"),
    )

    package: Mapped["Package"] = relationship("Package", back_populates="pricing_entries")

    @property
    def key(self) -> tuple[str, date]:
        return (self.departure_airport, self.departure_date)

    def __repr__(self) -> str:
        return (
            f"<PricingEntry(package_id={self.package_id}, airport={self.departure_airport}, "
            f"date={self.departure_date}, price={self.price} {self.currency})>"
        )
