"""Per-package write serialization for ledger and departure writes."""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import AsyncIterator
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# One lock per package id. Entries disappear once no task holds or awaits the lock.
_package_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

# Package ids whose lock the current task already holds
_held_locks: ContextVar[frozenset[str]] = ContextVar("held_package_locks", default=frozenset())


def _lock_for(package_id: UUID) -> asyncio.Lock:
    key = str(package_id)
    lock = _package_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _package_locks[key] = lock
    return lock


@asynccontextmanager
async def package_write_lock(db: AsyncSession, package_id: UUID) -> AsyncIterator[None]:
    """
    Serialize writes for one package.

    Holds an in-process lock for the package and, on PostgreSQL, a
    transaction-scoped advisory lock so that separate worker processes
    also queue behind each other. The advisory lock is released when the
    surrounding transaction ends, so callers commit inside this block.

    Re-entering the block for the same package from the same task is a
    no-op, so a bulk operation can call single-purpose writers.
    """
    key = str(package_id)
    held = _held_locks.get()
    if key in held:
        yield
        return

    lock = _lock_for(package_id)
    async with lock:
        token = _held_locks.set(held | {key})
        try:
            if db.bind is not None and db.bind.dialect.name == "postgresql":
                await db.execute(
                    text("SELECT pg_advisory_xact_lock(hashtext(:package_id))"),
                    {"package_id": key},
                )
            logger.debug("Acquired package write lock", extra={"package_id": key})
            yield
        finally:
            _held_locks.reset(token)
