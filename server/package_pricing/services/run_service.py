"""Pricing run audit trail."""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.run import PricingRun, RunKind

logger = logging.getLogger(__name__)


class RunService:
    """Records and lists bulk pricing operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        kind: RunKind,
        package_id: Optional[UUID],
        actor: str,
        summary: dict[str, Any],
        parameters: Optional[dict[str, Any]] = None,
        source: Optional[str] = None,
    ) -> PricingRun:
        """
        Add a run record to the session and flush it.

        The caller owns the transaction, so the record commits or rolls back
        together with the work it describes.
        """
        run = PricingRun(
            package_id=package_id,
            kind=kind.value,
            actor=actor or "system",
            source=source,
            parameters=parameters or {},
            summary=summary,
        )
        self.db.add(run)
        await self.db.flush()

        logger.info(
            "Pricing run recorded",
            extra={
                "run_id": str(run.id),
                "package_id": str(package_id) if package_id else None,
                "kind": kind.value,
                "actor": run.actor,
                "summary": summary,
            }
        )
        return run

    async def list_runs(
        self,
        package_id: Optional[UUID] = None,
        kind: Optional[RunKind] = None,
        limit: int = 50,
    ) -> list[PricingRun]:
        stmt = select(PricingRun)
        if package_id is not None:
            stmt = stmt.where(PricingRun.package_id == package_id)
        if kind is not None:
            stmt = stmt.where(PricingRun.kind == kind.value)
        stmt = stmt.order_by(PricingRun.created_at.desc()).limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())
