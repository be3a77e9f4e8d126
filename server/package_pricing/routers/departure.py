"""Departure router for tour platform sync and flight attachment."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_actor, get_catalog_client_factory, get_provider_factory
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..models.departure import Departure as DepartureModel
from ..schemas.departure import (
    AttachFlightsRequest,
    AttachFlightsResponse,
    Departure,
    FlightAugmentation,
    ListDeparturesRequest,
    ListDeparturesResponse,
    Rate,
    SyncDeparturesRequest,
    SyncDeparturesResponse,
)
from ..services.departure_sync import CatalogClientFactory, DepartureSyncReconciler
from ..services.providers import ProviderFactory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/departure", tags=["departure"])


def _convert_departure_to_schema(departure_model: DepartureModel) -> Departure:
    """Convert a departure with its rates and augmentations to the response schema."""
    return Departure(
        id=str(departure_model.id),
        package_id=str(departure_model.package_id),
        source_id=departure_model.source_id,
        departure_date=departure_model.departure_date,
        duration_nights=departure_model.duration_nights,
        available_spots=departure_model.available_spots,
        is_sold_out=departure_model.is_sold_out,
        last_synced_at=departure_model.last_synced_at,
        rates=[
            Rate(
                id=str(rate.id),
                source_rate_id=rate.source_rate_id,
                title=rate.title,
                room_category=rate.room_category,
                hotel_category=rate.hotel_category,
                land_price=float(rate.land_price),
                currency=rate.currency,
                flight_augmentations=[
                    FlightAugmentation(
                        airport_code=augmentation.airport_code,
                        airport_name=augmentation.airport_name,
                        flight_price=float(augmentation.flight_price),
                        combined_price=augmentation.combined_price,
                        markup_percent=float(augmentation.markup_percent),
                        fetched_at=augmentation.fetched_at,
                    )
                    for augmentation in rate.flight_augmentations
                ],
            )
            for rate in departure_model.rates
        ],
    )


@router.post("/sync", response_model=SyncDeparturesResponse)
async def sync_departures(
    request: SyncDeparturesRequest,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
    catalog_client_factory: CatalogClientFactory = Depends(get_catalog_client_factory),
    provider_factory: ProviderFactory = Depends(get_provider_factory)
) -> JSONResponse:
    """
    Sync the package's departures and rates from the tour platform.

    Matched rates keep their attached flights; departures and rates that
    vanished upstream are removed.
    """
    reconciler = DepartureSyncReconciler(db, catalog_client_factory, provider_factory)

    try:
        result = await reconciler.sync(request.package_id, request.exchange_rate, actor=actor)
        response_data = SyncDeparturesResponse(
            run_id=result.run_id,
            departures_count=result.departures_count,
            rates_count=result.rates_count,
            departures_created=result.departures_created,
            departures_updated=result.departures_updated,
            departures_removed=result.departures_removed,
            rates_created=result.rates_created,
            rates_updated=result.rates_updated,
            rates_removed=result.rates_removed,
            duration_nights=result.duration_nights,
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error syncing departures",
            extra={"package_id": request.package_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/list", response_model=ListDeparturesResponse)
async def list_departures(
    request: ListDeparturesRequest,
    db: AsyncSession = Depends(get_db)
) -> JSONResponse:
    """List synced departures with their rates and attached flights."""
    reconciler = DepartureSyncReconciler(db)

    try:
        departures = await reconciler.list_departures(
            request.package_id,
            date_from=request.date_from,
            date_to=request.date_to,
        )
        response_data = ListDeparturesResponse(
            items=[_convert_departure_to_schema(departure) for departure in departures]
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error listing departures",
            extra={"package_id": request.package_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/attach-flights", response_model=AttachFlightsResponse)
async def attach_flights(
    request: AttachFlightsRequest,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
    provider_factory: ProviderFactory = Depends(get_provider_factory)
) -> JSONResponse:
    """
    Quote flights for every synced departure date and attach them to each rate.

    The cheapest combined price per airport and date also lands in the ledger.
    """
    reconciler = DepartureSyncReconciler(db, provider_factory=provider_factory)

    try:
        result = await reconciler.attach_flights(request, actor=actor)
        response_data = AttachFlightsResponse(
            run_id=result.run_id,
            updated=result.updated,
            augmentations_stored=result.augmentations_stored,
            fares_found=result.fares_found,
            ledger_created=result.ledger_created,
            ledger_updated=result.ledger_updated,
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error attaching flights",
            extra={"package_id": request.package_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()
