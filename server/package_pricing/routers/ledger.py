"""Ledger router for pricing entry operations and CSV import/export."""

import logging
from datetime import date

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_actor
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..models.pricing import PricingEntry as PricingEntryModel
from ..schemas.common import ItemError
from ..schemas.ledger import (
    BulkUpsertRequest,
    BulkUpsertResponse,
    ClearLedgerRequest,
    ClearLedgerResponse,
    CsvRowError,
    DeleteEntryRequest,
    EntryInput,
    ExportCsvRequest,
    ExportCsvResponse,
    ImportCsvRequest,
    ImportCsvResponse,
    ListEntriesRequest,
    ListEntriesResponse,
    PricingEntry,
    UpsertEntryRequest,
    UpsertEntryResponse,
)
from ..services.csv_codec import CsvCodec
from ..services.ledger_service import LedgerService
from ..services.package_service import PackageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/ledger", tags=["ledger"])


def entry_response(entry: PricingEntryModel, sold_out: set[date]) -> PricingEntry:
    return PricingEntry(
        id=str(entry.id),
        package_id=str(entry.package_id),
        departure_airport=entry.departure_airport,
        departure_airport_name=entry.departure_airport_name,
        departure_date=entry.departure_date,
        price=entry.price,
        currency=entry.currency,
        is_available=entry.departure_date not in sold_out,
    )


def _unexpected(operation: str, package_id: str, e: Exception) -> InternalServerError:
    logger.error(
        f"Unexpected error in ledger {operation}",
        extra={"package_id": package_id, "error": str(e)},
        exc_info=True
    )
    return InternalServerError()


@router.post("/list", response_model=ListEntriesResponse)
async def list_entries(
    request: ListEntriesRequest,
    db: AsyncSession = Depends(get_db)
) -> JSONResponse:
    """List a package's entries, grouped by airport and in date order."""
    try:
        service = LedgerService(db)
        package = await service.package_service.get_package_or_raise(request.package_id)
        entries = await service.list_entries(
            package.id,
            departure_airport=request.departure_airport,
            date_from=request.date_from,
            date_to=request.date_to,
        )
        sold_out = await service.sold_out_dates(package.id)
        response_data = ListEntriesResponse(items=[entry_response(entry, sold_out) for entry in entries])
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _unexpected("list", request.package_id, e)


@router.post("/upsert", response_model=UpsertEntryResponse)
async def upsert_entry(
    request: UpsertEntryRequest,
    db: AsyncSession = Depends(get_db)
) -> JSONResponse:
    """
    Write one entry. An existing entry for the same airport and date is
    replaced rather than duplicated.
    """
    try:
        entry_input = EntryInput(
            departure_airport=request.departure_airport,
            departure_date=request.departure_date,
            price=request.price,
        )
        service = LedgerService(db)
        entry, created = await service.upsert_entry(request.package_id, entry_input)
        sold_out = await service.sold_out_dates(entry.package_id)
        response_data = UpsertEntryResponse(entry=entry_response(entry, sold_out), created=created)
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _unexpected("upsert", request.package_id, e)


@router.post("/bulk-upsert", response_model=BulkUpsertResponse)
async def bulk_upsert(
    request: BulkUpsertRequest,
    db: AsyncSession = Depends(get_db)
) -> JSONResponse:
    """
    Write many entries. Rejected entries are reported per item and never
    stop the rest of the batch.
    """
    try:
        result = await LedgerService(db).bulk_upsert(request.package_id, request.entries)
        response_data = BulkUpsertResponse(
            created=result.created,
            updated=result.updated,
            errors=[ItemError(item=failure.item, reason=failure.reason) for failure in result.errors],
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _unexpected("bulk upsert", request.package_id, e)


@router.post("/delete")
async def delete_entry(
    request: DeleteEntryRequest,
    db: AsyncSession = Depends(get_db)
) -> JSONResponse:
    try:
        await LedgerService(db).delete_entry(request.entry_id)
        return JSONResponse(status_code=200, content={"deleted": True, "entry_id": request.entry_id})

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in ledger delete",
            extra={"entry_id": request.entry_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/clear", response_model=ClearLedgerResponse)
async def clear_ledger(
    request: ClearLedgerRequest,
    db: AsyncSession = Depends(get_db)
) -> JSONResponse:
    try:
        removed = await LedgerService(db).clear(request.package_id)
        return JSONResponse(
            status_code=200,
            content=ClearLedgerResponse(removed=removed).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _unexpected("clear", request.package_id, e)


@router.post("/export-csv", response_model=ExportCsvResponse)
async def export_csv(
    request: ExportCsvRequest,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor)
) -> JSONResponse:
    """Export the ledger as CSV (airport code, date, price)."""
    try:
        package = await PackageService(db).get_package_or_raise(request.package_id)
        csv_text, rows = await CsvCodec(db).export_csv(package.id, actor=actor)
        response_data = ExportCsvResponse(
            package_id=str(package.id),
            filename=f"{package.slug}-pricing.csv",
            rows=rows,
            csv_text=csv_text,
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _unexpected("CSV export", request.package_id, e)


@router.post("/import-csv", response_model=ImportCsvResponse)
async def import_csv(
    request: ImportCsvRequest,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor)
) -> JSONResponse:
    """
    Import a CSV document into the ledger.

    Valid rows are upserted; each bad row is reported with its row number
    and skipped.
    """
    try:
        result = await CsvCodec(db).import_csv(request.package_id, request.csv_text, actor=actor)
        response_data = ImportCsvResponse(
            created=result.created,
            updated=result.updated,
            errors=[CsvRowError(row=error.row, reason=error.reason) for error in result.errors],
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _unexpected("CSV import", request.package_id, e)
