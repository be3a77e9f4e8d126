"""Pricing router for flight-inclusive seasonal pricing."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_actor, get_provider_factory
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.common import ItemError
from ..schemas.pricing import FetchSeasonalRequest, FetchSeasonalResponse
from ..services.pricing_service import SeasonalPricingService
from ..services.providers import ProviderFactory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/pricing", tags=["pricing"])


@router.post("/fetch-seasonal", response_model=FetchSeasonalResponse)
async def fetch_seasonal(
    request: FetchSeasonalRequest,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
    provider_factory: ProviderFactory = Depends(get_provider_factory)
) -> JSONResponse:
    """
    Quote flights for the requested dates and write season-based sell prices.

    Dates that no season covers are skipped without quoting. A failing
    flight source aborts the request with a 502 and writes nothing.
    """
    service = SeasonalPricingService(db, provider_factory=provider_factory)

    try:
        result = await service.fetch_seasonal(request, actor=actor)
        response_data = FetchSeasonalResponse(
            run_id=result.run_id,
            fares_found=result.fares_found,
            entries_created=result.entries_created,
            entries_updated=result.entries_updated,
            skipped_no_season=result.skipped_no_season,
            skipped_no_fare=result.skipped_no_fare,
            errors=[ItemError(item=failure.item, reason=failure.reason) for failure in result.errors],
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in seasonal pricing",
            extra={
                "package_id": request.package_id,
                "flight_type": request.flight_type.value,
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError()
