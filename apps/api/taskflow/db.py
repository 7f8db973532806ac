from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from taskflow.config import settings

engine = create_async_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@asynccontextmanager
async def transaction(db: AsyncSession) -> AsyncIterator[AsyncSession]:
  """
  Commit everything issued inside the block, or nothing.

  Used for multi-statement cascades (board/task deletes) so a failure halfway
  never leaves orphaned rows behind.
  """
  try:
    yield db
    await db.commit()
  except BaseException:
    await db.rollback()
    raise
