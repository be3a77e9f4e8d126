"""Season model definition."""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .package import Package


class Season(Base):
    """Date-ranged land cost band for a package. The range is inclusive."""

    __tablename__ = "package_seasons"

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

    label: Mapped[str] = mapped_column(String(120), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    land_cost_per_person: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    hotel_cost_per_person: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

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
        CheckConstraint("start_date <= end_date", name="ck_season_start_before_end"),
        CheckConstraint("land_cost_per_person > 0", name="ck_season_land_cost_positive"),
        CheckConstraint(
            "hotel_cost_per_person IS NULL OR hotel_cost_per_person >= 0",
            name="ck_season_hotel_cost_non_negative"
        ),
    )

    package: Mapped["Package"] = relationship("Package", back_populates="seasons")

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    @property
    def total_land_cost(self) -> Decimal:
        """Land cost per person including the optional hotel supplement."""
        return Decimal(self.land_cost_per_person) + Decimal(self.hotel_cost_per_person or 0)

    def __repr__(self) -> str:
        return (
            f"<Season(id={self.id}, label='{self.label}', "
            f"{self.start_date}..{self.end_date}, land={self.land_cost_per_person})>"
        )
