from __future__ import annotations

import pytest

from taskflow.config import Settings

pytestmark = pytest.mark.anyio


@pytest.mark.parametrize(
  "url",
  [
    "postgresql+asyncpg://u:p@db:5432/taskflow_test",
    "postgresql+asyncpg://u:p@db:5432/taskflow_test?ssl=disable",
    "sqlite+aiosqlite:///./taskflow_test.db",
  ],
)
async def test_test_databases_are_recognised(url: str) -> None:
  assert Settings(database_url=url).is_test_db() is True


@pytest.mark.parametrize(
  "url",
  [
    "postgresql+asyncpg://u:p@db:5432/taskflow",
    "postgresql+asyncpg://u:p@db:5432/attestations",
    "postgresql+asyncpg://u:p@db:5432/contest",
    "postgresql+asyncpg://u:p@db:5432/latest?sslmode=require",
    "postgresql+asyncpg://u:p@db:5432/test_results",
  ],
)
async def test_production_names_containing_test_are_not_test_dbs(url: str) -> None:
  assert Settings(database_url=url).is_test_db() is False
