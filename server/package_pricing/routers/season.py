"""Season router for seasonal land-cost operations."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..models.season import Season as SeasonModel
from ..schemas.season import (
    AddSeasonRequest,
    DeleteSeasonRequest,
    EditSeasonRequest,
    FindSeasonRequest,
    FindSeasonResponse,
    ListSeasonsRequest,
    ListSeasonsResponse,
    Season,
)
from ..services.cost_catalog import CostCatalog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/season", tags=["season"])


def season_response(season: SeasonModel) -> Season:
    return Season(
        id=str(season.id),
        package_id=str(season.package_id),
        label=season.label,
        start_date=season.start_date,
        end_date=season.end_date,
        land_cost_per_person=float(season.land_cost_per_person),
        hotel_cost_per_person=(
            float(season.hotel_cost_per_person) if season.hotel_cost_per_person is not None else None
        ),
        notes=season.notes,
    )


@router.post("/add", response_model=Season)
async def add_season(
    request: AddSeasonRequest,
    db: AsyncSession = Depends(get_db)
) -> JSONResponse:
    """
    Add a season to a package.

    Rejects seasons whose start is after their end, whose land cost is not
    positive, or that overlap an existing season of the package.
    """
    try:
        season = await CostCatalog(db).add_season(request)
        return JSONResponse(
            status_code=200,
            content=season_response(season).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error adding season",
            extra={"package_id": request.package_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/edit", response_model=Season)
async def edit_season(
    request: EditSeasonRequest,
    db: AsyncSession = Depends(get_db)
) -> JSONResponse:
    """Edit a season; omitted fields keep their current values."""
    try:
        season = await CostCatalog(db).edit_season(request)
        return JSONResponse(
            status_code=200,
            content=season_response(season).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error editing season",
            extra={"season_id": request.season_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/delete")
async def delete_season(
    request: DeleteSeasonRequest,
    db: AsyncSession = Depends(get_db)
) -> JSONResponse:
    try:
        await CostCatalog(db).delete_season(request.season_id)
        return JSONResponse(
            status_code=200,
            content={"deleted": True, "season_id": request.season_id}
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error deleting season",
            extra={"season_id": request.season_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/list", response_model=ListSeasonsResponse)
async def list_seasons(
    request: ListSeasonsRequest,
    db: AsyncSession = Depends(get_db)
) -> JSONResponse:
    try:
        seasons = await CostCatalog(db).list_seasons(request.package_id)
        response_data = ListSeasonsResponse(items=[season_response(season) for season in seasons])
        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error listing seasons",
            extra={"package_id": request.package_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/find", response_model=FindSeasonResponse)
async def find_season(
    request: FindSeasonRequest,
    db: AsyncSession = Depends(get_db)
) -> JSONResponse:
    """
    Find the season covering a travel date.

    An uncovered date is not an error; the response carries a null season.
    """
    try:
        season = await CostCatalog(db).find_season(request.package_id, request.travel_date)
        response_data = FindSeasonResponse(season=season_response(season) if season else None)
        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error finding season",
            extra={
                "package_id": request.package_id,
                "travel_date": request.travel_date.isoformat(),
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError()
