"""Package router for package management operations."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_actor
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..models.package import Package as PackageModel
from ..schemas.package import (
    CreatePackageRequest,
    GetPackageRequest,
    Package,
    SetPricingModuleRequest,
    SetPricingModuleResponse,
)
from ..services.package_service import PackageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/package", tags=["package"])


def package_response(package: PackageModel) -> Package:
    return Package(
        id=str(package.id),
        title=package.title,
        slug=package.slug,
        currency=package.currency,
        duration_nights=package.duration_nights,
        pricing_module=package.pricing_module,
        flight_source=package.flight_source,
        upstream_product_id=package.upstream_product_id,
    )


@router.post("/create", response_model=Package)
async def create_package(
    request: CreatePackageRequest,
    db: AsyncSession = Depends(get_db)
) -> JSONResponse:
    """
    Create a new package.

    Slugs are unique; creating a second package with the same slug is a conflict.
    """
    package_service = PackageService(db)

    try:
        package = await package_service.create_package(request)

        logger.info(
            "Package created successfully",
            extra={"package_id": str(package.id), "slug": request.slug}
        )
        return JSONResponse(
            status_code=200,
            content=package_response(package).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in package creation",
            extra={"slug": request.slug, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/get", response_model=Package)
async def get_package(
    request: GetPackageRequest,
    db: AsyncSession = Depends(get_db)
) -> JSONResponse:
    """Get a package by ID."""
    package_service = PackageService(db)

    try:
        package = await package_service.get_package_or_raise(request.package_id)
        return JSONResponse(
            status_code=200,
            content=package_response(package).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error fetching package",
            extra={"package_id": request.package_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/set-module", response_model=SetPricingModuleResponse)
async def set_pricing_module(
    request: SetPricingModuleRequest,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor)
) -> JSONResponse:
    """
    Switch the package's active pricing module.

    Switching to a different module wipes the package's pricing ledger; the
    response reports how many entries were removed.
    """
    package_service = PackageService(db)

    try:
        package, removed = await package_service.set_pricing_module(
            request.package_id,
            request.pricing_module,
            actor=actor,
            flight_source=request.flight_source,
        )

        response_data = SetPricingModuleResponse(
            package=package_response(package),
            entries_removed=removed,
        )
        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error switching pricing module",
            extra={
                "package_id": request.package_id,
                "pricing_module": request.pricing_module.value,
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError()
