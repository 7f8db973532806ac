from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete, select

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./taskflow_test.db")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("SEED_ALICE_PASSWORD", "alice1234")
os.environ.setdefault("SEED_BOB_PASSWORD", "bob12345")

from taskflow.config import settings
from taskflow.db import SessionLocal, engine
from taskflow.main import app
from taskflow.models import Base, Board, BoardMember, Notification, Reminder, Session, Task, User
from taskflow.rate_limit import login_throttle
from taskflow.seed import SEED_USERS, seed

SEEDED_USERNAMES = [u[0] for u in SEED_USERS]
PASSWORDS = {"alice": "alice1234", "bob": "bob12345"}

_schema_ready = False


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


async def _ensure_schema() -> None:
  global _schema_ready
  if _schema_ready:
    return
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.drop_all)
    await conn.run_sync(Base.metadata.create_all)
  await seed()
  _schema_ready = True


async def _reset_db() -> None:
  login_throttle.reset()
  async with SessionLocal() as db:
    # Keep seeded users; wipe everything else for deterministic tests.
    await db.execute(delete(Reminder))
    await db.execute(delete(Notification))
    await db.execute(delete(Task))
    await db.execute(delete(BoardMember))
    await db.execute(delete(Board))
    await db.execute(delete(Session))
    await db.execute(delete(User).where(User.username.notin_(SEEDED_USERNAMES)))
    await db.commit()
  await engine.dispose()


@pytest.fixture(autouse=True)
async def _clean_between_tests() -> None:
  if not settings.is_test_db():
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. taskflow_test)."
    )
  await _ensure_schema()
  await _reset_db()
  yield
  await _reset_db()


@pytest.fixture
async def client() -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


async def login(client: AsyncClient, username: str, password: str | None = None) -> dict:
  res = await client.post("/api/auth/login", json={"username": username, "password": password or PASSWORDS[username]})
  assert res.status_code == 200, res.text
  cookie = res.headers.get("set-cookie")
  assert cookie and "tf_session=" in cookie
  return res.json()


async def seeded_user_id(username: str) -> str:
  async with SessionLocal() as db:
    res = await db.execute(select(User).where(User.username == username))
    return res.scalar_one().id


async def shared_board(client: AsyncClient, name: str = "Team Board") -> dict:
  """Workplace board owned by alice with bob as a member. Leaves alice logged in."""
  await login(client, "alice")
  b = (await client.post("/api/boards", json={"name": name, "type": "workplace"})).json()
  res = await client.post(f"/api/boards/{b['id']}/members", json={"email": "bob@taskflow.local"})
  assert res.status_code == 200, res.text
  return b
