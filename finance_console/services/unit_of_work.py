"""
Unit of work for mutations that must serialize on one aggregate.

A garnishment profile (its paid/balance pair) and an employee's
loan ledger (its outstanding balance) are the shared mutable state
of the system. Writes against one of them go through
run_unit_of_work(), which:

1. holds an in-process asyncio lock keyed by the aggregate, so
   writers in this process queue up instead of racing;
2. runs the work callable, which must re-read the aggregate from
   the database and validate against what it finds;
3. commits. If the commit loses to a writer in another process
   (stale row version, or a unique constraint), it rolls back and
   runs the work once more against the fresh state. A second
   conflict is reported as ConflictError.

Any other failure, including cancellation, rolls the session back
so no partial change is left behind.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Hashable, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from finance_console.errors import (
    CollaboratorUnavailable,
    ConflictError,
    DomainError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Attempts per unit of work: the original plus one automatic retry
MAX_ATTEMPTS = 2


class KeyedLock:
    """
    One asyncio.Lock per key, created on demand.

    A key's lock is dropped as soon as nobody holds or waits for it,
    so the registry does not grow with every aggregate ever touched.
    """

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


aggregate_locks = KeyedLock()


async def run_unit_of_work(
    db: AsyncSession,
    key: Hashable,
    work: Callable[[], Awaitable[T]],
) -> T:
    """Run work() and commit it as one serialized, retried transaction."""
    async with aggregate_locks.hold(key):
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                result = await work()
                await db.commit()
                return result
            except (StaleDataError, IntegrityError) as e:
                await db.rollback()
                if attempt == MAX_ATTEMPTS:
                    logger.warning("Conflict on %s persisted after retry", key)
                    raise ConflictError(
                        "The record was changed by another user while "
                        "saving. Reload and try again."
                    ) from e
                logger.warning(
                    "Conflict on %s (%s), revalidating and retrying",
                    key, type(e).__name__,
                )
            except DomainError:
                await db.rollback()
                raise
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error("Database failure on %s: %s", key, e)
                raise CollaboratorUnavailable(
                    "The database is unavailable. Try again later."
                ) from e
            except asyncio.CancelledError:
                await db.rollback()
                raise
