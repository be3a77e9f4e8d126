"""Pricing ledger: the canonical per-package store of sell prices."""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import and_, delete, select
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import NotFoundError, ValidationError
from ..core.locking import package_write_lock
from ..core.observability import metrics_collector
from ..models.departure import Departure
from ..models.package import Package
from ..models.pricing import MAX_PRICE, PricingEntry
from ..schemas.ledger import EntryInput
from .compositor import round_whole
from .package_service import PackageService, parse_uuid

logger = logging.getLogger(__name__)


@dataclass
class EntryFailure:
    """A bulk item that was not written. ``index`` is its position in the input."""

    index: int
    item: str
    reason: str


@dataclass
class BulkUpsertResult:
    created: int = 0
    updated: int = 0
    errors: list[EntryFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.created + self.updated


def describe_entry(entry: EntryInput) -> str:
    return f"{entry.departure_airport.upper()} {entry.departure_date.isoformat()}"


def resolve_entry(entry: EntryInput) -> tuple[str, str, int]:
    """
    Normalize an entry before it is written.

    Returns:
        Upper-cased airport code, airport display name and whole-unit price

    Raises:
        ValidationError: Unknown airport, or a price that is negative or out of range
    """
    code = entry.departure_airport.strip().upper()
    name = settings.airport_name(code)
    if name is None:
        raise ValidationError(detail=f"Unknown departure airport '{code}'")
    if entry.price is None or entry.price < 0:
        raise ValidationError(detail=f"Price must not be negative, got {entry.price}")
    price = round_whole(entry.price)
    if price > MAX_PRICE:
        raise ValidationError(detail=f"Price must not exceed {MAX_PRICE}, got {entry.price}")
    return code, name, price


class LedgerService:
    """CRUD and bulk upsert over pricing entries, serialized per package."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.package_service = PackageService(db)

    async def list_entries(
        self,
        package_id: UUID | str,
        departure_airport: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[PricingEntry]:
        """Entries ordered by airport then date."""
        package = await self.package_service.get_package_or_raise(package_id)

        conditions = [PricingEntry.package_id == package.id]
        if departure_airport:
            conditions.append(PricingEntry.departure_airport == departure_airport.upper())
        if date_from:
            conditions.append(PricingEntry.departure_date >= date_from)
        if date_to:
            conditions.append(PricingEntry.departure_date <= date_to)

        stmt = (
            select(PricingEntry)
            .where(and_(*conditions))
            .order_by(PricingEntry.departure_airport, PricingEntry.departure_date)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def sold_out_dates(self, package_id: UUID) -> set[date]:
        """
        Travel dates on which every stored departure of the package is sold out.

        Availability is derived from departures rather than stored on entries,
        so a ledger rebuilt from CSV reports the same availability.
        """
        stmt = select(Departure.departure_date, Departure.is_sold_out).where(Departure.package_id == package_id)
        open_dates: set[date] = set()
        departure_dates: set[date] = set()
        for departure_date, is_sold_out in (await self.db.execute(stmt)).all():
            departure_dates.add(departure_date)
            if not is_sold_out:
                open_dates.add(departure_date)
        return departure_dates - open_dates

    async def get_entry_or_raise(self, entry_id: UUID | str) -> PricingEntry:
        if not isinstance(entry_id, UUID):
            entry_id = parse_uuid(entry_id, "pricing entry")
        entry = await self.db.get(PricingEntry, entry_id)
        if not entry:
            logger.warning("Pricing entry not found", extra={"entry_id": str(entry_id)})
            raise NotFoundError(resource_type="pricing entry", resource_id=str(entry_id))
        return entry

    async def upsert_entry(self, package_id: UUID | str, entry: EntryInput) -> tuple[PricingEntry, bool]:
        """
        Write a single entry, replacing any entry with the same airport and date.

        Returns:
            The stored entry and True when it was newly created
        """
        package = await self.package_service.get_package_or_raise(package_id)
        code, name, price = resolve_entry(entry)

        async with package_write_lock(self.db, package.id):
            async with self.db.begin_nested():
                stored, created = await self._write(package, code, name, entry.departure_date, price)
            await self.db.commit()

        metrics_collector.record_ledger_write("created" if created else "updated")
        logger.info(
            "Pricing entry upserted",
            extra={
                "package_id": str(package.id),
                "departure_airport": code,
                "departure_date": entry.departure_date.isoformat(),
                "price": price,
                "was_created": created,
            }
        )
        return stored, created

    async def bulk_upsert(
        self,
        package_id: UUID | str,
        entries: Iterable[EntryInput],
        commit: bool = True,
    ) -> BulkUpsertResult:
        """
        Upsert many entries. Each entry is written in its own savepoint, so a
        rejected entry is reported and the rest of the batch still lands.

        With ``commit=False`` the caller commits, which lets a run record
        share the transaction.
        """
        package = await self.package_service.get_package_or_raise(package_id)
        result = BulkUpsertResult()

        async with package_write_lock(self.db, package.id):
            for index, entry in enumerate(entries):
                try:
                    code, name, price = resolve_entry(entry)
                except ValidationError as e:
                    result.errors.append(EntryFailure(index, describe_entry(entry), e.reason))
                    continue

                try:
                    async with self.db.begin_nested():
                        _, created = await self._write(package, code, name, entry.departure_date, price)
                except (IntegrityError, DataError, OverflowError) as e:
                    logger.warning(
                        "Pricing entry rejected by database constraint",
                        extra={"package_id": str(package.id), "item": describe_entry(entry), "error": str(getattr(e, "orig", e))}
                    )
                    result.errors.append(EntryFailure(index, describe_entry(entry), "rejected by database constraint"))
                    continue

                if created:
                    result.created += 1
                else:
                    result.updated += 1
                metrics_collector.record_ledger_write("created" if created else "updated")

            if commit:
                await self.db.commit()

        logger.info(
            "Pricing entries bulk upserted",
            extra={
                "package_id": str(package.id),
                "created_count": result.created,
                "updated_count": result.updated,
                "error_count": len(result.errors),
            }
        )
        return result

    async def delete_entry(self, entry_id: UUID | str) -> None:
        entry = await self.get_entry_or_raise(entry_id)
        package_id = entry.package_id
        async with package_write_lock(self.db, package_id):
            await self.db.delete(entry)
            await self.db.commit()
        logger.info(
            "Pricing entry deleted",
            extra={"entry_id": str(entry_id), "package_id": str(package_id)}
        )

    async def clear(self, package_id: UUID | str) -> int:
        """Remove every entry of a package and return how many were removed."""
        package = await self.package_service.get_package_or_raise(package_id)
        async with package_write_lock(self.db, package.id):
            result = await self.db.execute(
                delete(PricingEntry).where(PricingEntry.package_id == package.id)
            )
            await self.db.commit()
        removed = result.rowcount or 0
        logger.info("Pricing ledger cleared", extra={"package_id": str(package.id), "removed": removed})
        return removed

    async def _write(
        self,
        package: Package,
        code: str,
        name: str,
        departure_date: date,
        price: int,
    ) -> tuple[PricingEntry, bool]:
        stmt = select(PricingEntry).where(
            and_(
                PricingEntry.package_id == package.id,
                PricingEntry.departure_airport == code,
                PricingEntry.departure_date == departure_date,
            )
        )
        existing = (await self.db.execute(stmt)).scalar_one_or_none()
        if existing:
            existing.departure_airport_name = name
            existing.price = price
            existing.currency = package.currency
            await self.db.flush()
            return existing, False

        entry = PricingEntry(
            package_id=package.id,
            departure_airport=code,
            departure_airport_name=name,
            departure_date=departure_date,
            price=price,
            currency=package.currency,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry, True
