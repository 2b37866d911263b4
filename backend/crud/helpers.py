"""
Helper functions shared across CRUD operations.
"""

import logging
from contextlib import asynccontextmanager

from infrastructure.database.connection import serialized_write
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger("CRUD")


@asynccontextmanager
async def write_transaction(db: AsyncSession, commit: bool = True):
    """
    Run a unit of work under the SQLite write lock and commit it.

    The lock is taken before the first flush so two sessions never hold
    competing SQLite write locks. On error the session is rolled back.

    With commit=False the caller owns the transaction and the lock, and the
    block simply runs inside it.
    """
    if not commit:
        yield db
        return

    async with serialized_write():
        try:
            yield db
            await db.commit()
        except Exception:
            await db.rollback()
            raise
