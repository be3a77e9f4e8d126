"""Package service for business logic operations."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import ConflictError, NotFoundError
from ..core.locking import package_write_lock
from ..models.package import FlightSource, Package, PricingModule
from ..models.pricing import PricingEntry
from ..models.run import RunKind
from ..schemas.package import CreatePackageRequest
from .run_service import RunService

logger = logging.getLogger(__name__)


def parse_uuid(value: str, resource_type: str) -> UUID:
    """Parse an id from a request body; malformed ids are reported as not found."""
    try:
        return UUID(str(value))
    except ValueError:
        raise NotFoundError(resource_type=resource_type, resource_id=str(value))


class PackageService:
    """Service for package-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_package(self, request: CreatePackageRequest) -> Package:
        """
        Create a new package.

        Raises:
            ConflictError: If a package with the same slug already exists
        """
        existing = await self.get_package_by_slug(request.slug)
        if existing:
            logger.warning(
                "Package creation failed - slug already exists",
                extra={"slug": request.slug, "existing_package_id": str(existing.id)}
            )
            raise ConflictError(
                detail=f"Package with slug '{request.slug}' already exists",
                conflicting_resource={"id": str(existing.id), "slug": existing.slug}
            )

        package = Package(
            title=request.title,
            slug=request.slug,
            currency=(request.currency or settings.default_currency).upper(),
            duration_nights=request.duration_nights,
            pricing_module=request.pricing_module.value,
            flight_source=request.flight_source.value,
            upstream_product_id=request.upstream_product_id,
        )

        try:
            self.db.add(package)
            await self.db.commit()
            await self.db.refresh(package)
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(
                "Package creation failed due to integrity constraint",
                extra={"slug": request.slug, "error": str(e)}
            )
            raise ConflictError(detail=f"Package with slug '{request.slug}' already exists")

        logger.info(
            "Package created successfully",
            extra={
                "package_id": str(package.id),
                "slug": package.slug,
                "pricing_module": package.pricing_module,
            }
        )
        return package

    async def get_package_by_id(self, package_id: UUID) -> Optional[Package]:
        stmt = select(Package).where(Package.id == package_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_package_by_slug(self, slug: str) -> Optional[Package]:
        stmt = select(Package).where(Package.slug == slug)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_package_or_raise(self, package_id: UUID | str) -> Package:
        """
        Get package by ID or raise NotFoundError.

        Accepts the raw string from a request body as well as a UUID.
        """
        if not isinstance(package_id, UUID):
            package_id = parse_uuid(package_id, "package")
        package = await self.get_package_by_id(package_id)
        if not package:
            logger.warning("Package not found", extra={"package_id": str(package_id)})
            raise NotFoundError(resource_type="package", resource_id=str(package_id))
        return package

    async def set_pricing_module(
        self,
        package_id: UUID | str,
        module: PricingModule,
        actor: str,
        flight_source: FlightSource | None = None,
    ) -> tuple[Package, int]:
        """
        Switch the pricing module of a package.

        Switching to a different module wipes the package's ledger, since
        entries produced by one strategy are meaningless to another. Setting
        the module that is already active keeps the ledger.

        Returns:
            The updated package and the number of ledger entries removed
        """
        package = await self.get_package_or_raise(package_id)
        previous = PricingModule(package.pricing_module)

        removed = 0
        async with package_write_lock(self.db, package.id):
            if module != previous:
                result = await self.db.execute(
                    delete(PricingEntry).where(PricingEntry.package_id == package.id)
                )
                removed = result.rowcount or 0
            package.pricing_module = module.value
            if flight_source is not None:
                package.flight_source = flight_source.value

            await RunService(self.db).record(
                kind=RunKind.MODULE_SWITCH,
                package_id=package.id,
                actor=actor,
                source=package.flight_source,
                parameters={"from": previous.value, "to": module.value},
                summary={"entries_removed": removed},
            )
            await self.db.commit()

        await self.db.refresh(package)
        logger.info(
            "Package pricing module switched",
            extra={
                "package_id": str(package.id),
                "from_module": previous.value,
                "to_module": module.value,
                "entries_removed": removed,
                "actor": actor,
            }
        )
        return package, removed
