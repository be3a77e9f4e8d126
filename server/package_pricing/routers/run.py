"""Pricing run router: the audit trail of bulk pricing operations."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.run import ListRunsRequest, ListRunsResponse, PricingRun
from ..services.package_service import PackageService
from ..services.run_service import RunService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/run", tags=["run"])


@router.post("/list", response_model=ListRunsResponse)
async def list_runs(
    request: ListRunsRequest,
    db: AsyncSession = Depends(get_db)
) -> JSONResponse:
    """List pricing runs newest first, optionally for one package or of one kind."""
    try:
        package_id = None
        if request.package_id is not None:
            package_id = (await PackageService(db).get_package_or_raise(request.package_id)).id

        runs = await RunService(db).list_runs(package_id=package_id, kind=request.kind, limit=request.limit)
        response_data = ListRunsResponse(
            items=[
                PricingRun(
                    id=str(run.id),
                    package_id=str(run.package_id) if run.package_id else None,
                    kind=run.kind,
                    actor=run.actor,
                    source=run.source,
                    parameters=run.parameters or {},
                    summary=run.summary or {},
                    created_at=run.created_at,
                )
                for run in runs
            ]
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error listing pricing runs",
            extra={"package_id": request.package_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()
