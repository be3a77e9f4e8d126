"""Ledger to CSV and back."""

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import ValidationError
from ..core.locking import package_write_lock
from ..core.observability import metrics_collector
from ..models.pricing import MAX_PRICE, PricingEntry
from ..models.run import RunKind
from ..schemas.ledger import EntryInput
from .ledger_service import LedgerService
from .package_service import PackageService
from .run_service import RunService

logger = logging.getLogger(__name__)

CSV_COLUMNS = ["departure_airport_code", "departure_date", "price"]


@dataclass
class RowError:
    row: int
    reason: str


@dataclass
class ParsedCsv:
    entries: list[EntryInput] = field(default_factory=list)
    # data row number of each parsed entry, aligned with ``entries``
    rows: list[int] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)


@dataclass
class CsvImportResult:
    created: int = 0
    updated: int = 0
    errors: list[RowError] = field(default_factory=list)


def export_ledger(entries: Iterable[PricingEntry]) -> str:
    """Render entries grouped by airport, each group in date order."""
    ordered = sorted(entries, key=lambda entry: (entry.departure_airport, entry.departure_date))

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for entry in ordered:
        writer.writerow([entry.departure_airport, entry.departure_date.isoformat(), entry.price])
    return buffer.getvalue()


def _parse_price(raw: str) -> Decimal:
    try:
        price = Decimal(raw)
    except InvalidOperation:
        raise ValueError(f"price '{raw}' is not a number")
    if not price.is_finite():
        raise ValueError(f"price '{raw}' is not a number")
    if price < 0:
        raise ValueError(f"price {raw} is negative")
    if price > MAX_PRICE:
        raise ValueError(f"price {raw} is above the maximum of {MAX_PRICE}")
    return price


def parse_ledger_csv(text: str) -> ParsedCsv:
    """
    Parse a ledger CSV document.

    Rows are numbered from 1, excluding the header. A bad row is reported and
    skipped; it never stops the rest of the document from being parsed.

    Raises:
        ValidationError: The header lacks one of the required columns
    """
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    header = [name.strip() for name in (reader.fieldnames or [])]
    missing = [column for column in CSV_COLUMNS if column not in header]
    if missing:
        raise ValidationError(
            detail=f"CSV header must contain {', '.join(CSV_COLUMNS)}; missing {', '.join(missing)}"
        )
    reader.fieldnames = header

    parsed = ParsedCsv()
    for row_number, row in enumerate(reader, start=1):
        code = (row.get("departure_airport_code") or "").strip().upper()
        raw_date = (row.get("departure_date") or "").strip()
        raw_price = (row.get("price") or "").strip()

        if not code and not raw_date and not raw_price:
            continue
        if settings.airport_name(code) is None:
            parsed.errors.append(RowError(row_number, f"unknown airport code '{code}'"))
            continue
        try:
            departure_date = date.fromisoformat(raw_date)
        except ValueError:
            parsed.errors.append(RowError(row_number, f"date '{raw_date}' is not YYYY-MM-DD"))
            continue
        try:
            price = _parse_price(raw_price)
        except ValueError as e:
            parsed.errors.append(RowError(row_number, str(e)))
            continue

        parsed.entries.append(
            EntryInput(departure_airport=code, departure_date=departure_date, price=float(price))
        )
        parsed.rows.append(row_number)

    return parsed


class CsvCodec:
    """Export and import of a package ledger as CSV."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.package_service = PackageService(db)
        self.ledger = LedgerService(db)
        self.runs = RunService(db)

    async def export_csv(self, package_id: UUID | str, actor: str) -> tuple[str, int]:
        """Return the CSV document and its number of data rows."""
        package = await self.package_service.get_package_or_raise(package_id)
        entries = await self.ledger.list_entries(package.id)
        text = export_ledger(entries)

        await self.runs.record(
            kind=RunKind.CSV_EXPORT,
            package_id=package.id,
            actor=actor,
            summary={"rows": len(entries)},
        )
        await self.db.commit()

        logger.info(
            "Pricing ledger exported",
            extra={"package_id": str(package.id), "rows": len(entries)}
        )
        return text, len(entries)

    async def import_csv(self, package_id: UUID | str, text: str, actor: str) -> CsvImportResult:
        """
        Upsert every valid row of ``text`` into the package ledger.

        Raises:
            ValidationError: Missing required header columns
        """
        package = await self.package_service.get_package_or_raise(package_id)
        parsed = parse_ledger_csv(text)

        async with package_write_lock(self.db, package.id):
            bulk = await self.ledger.bulk_upsert(package.id, parsed.entries, commit=False)
            errors = list(parsed.errors)
            errors.extend(RowError(parsed.rows[failure.index], failure.reason) for failure in bulk.errors)
            errors.sort(key=lambda error: error.row)

            result = CsvImportResult(created=bulk.created, updated=bulk.updated, errors=errors)
            await self.runs.record(
                kind=RunKind.CSV_IMPORT,
                package_id=package.id,
                actor=actor,
                parameters={"bytes": len(text)},
                summary={
                    "created": result.created,
                    "updated": result.updated,
                    "errors": len(result.errors),
                },
            )
            await self.db.commit()

        metrics_collector.record_csv_rows(result.created + result.updated, len(result.errors))
        logger.info(
            "Pricing ledger imported from CSV",
            extra={
                "package_id": str(package.id),
                "created_count": result.created,
                "updated_count": result.updated,
                "error_count": len(result.errors),
            }
        )
        return result
