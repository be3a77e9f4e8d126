"""Unit tests for per-package write locks."""

import asyncio
import gc
from uuid import uuid4

import pytest

from package_pricing.core import locking
from package_pricing.core.locking import package_write_lock


@pytest.mark.asyncio
async def test_lock_serializes_writers_of_one_package(test_session):
    package_id = uuid4()
    events = []

    async def writer(name):
        async with package_write_lock(test_session, package_id):
            events.append(f"{name} in")
            await asyncio.sleep(0.01)
            events.append(f"{name} out")

    await asyncio.gather(writer("first"), writer("second"))

    assert events == ["first in", "first out", "second in", "second out"]


@pytest.mark.asyncio
async def test_lock_is_reentrant_within_a_task(test_session):
    package_id = uuid4()

    async with package_write_lock(test_session, package_id):
        async with package_write_lock(test_session, package_id):
            assert str(package_id) in locking._package_locks


@pytest.mark.asyncio
async def test_idle_locks_are_dropped(test_session):
    """Locks are not kept for packages nobody is writing to."""
    package_ids = [uuid4() for _ in range(5)]

    for package_id in package_ids:
        async with package_write_lock(test_session, package_id):
            pass
    gc.collect()

    assert not any(str(package_id) in locking._package_locks for package_id in package_ids)
