from __future__ import annotations

from datetime import timedelta

import pytest
from httpx import AsyncClient

from conftest import login, seeded_user_id
from taskflow import storage
from taskflow.db import SessionLocal
from taskflow.models import utcnow

pytestmark = pytest.mark.anyio


async def _seed_notifications(username: str, count: int) -> list[str]:
  uid = await seeded_user_id(username)
  base = utcnow() - timedelta(hours=1)
  ids = []
  async with SessionLocal() as db:
    for i in range(count):
      n = await storage.create_notification(
        db, user_id=uid, type="reminder", message=f"note {i}", created_at=base + timedelta(minutes=i)
      )
      ids.append(n.id)
    await db.commit()
  return ids


async def test_list_is_newest_first_and_capped(client: AsyncClient) -> None:
  ids = await _seed_notifications("alice", 55)
  await login(client, "alice")
  notes = (await client.get("/api/notifications")).json()
  assert len(notes) == 50
  assert notes[0]["id"] == ids[-1]
  assert notes[0]["message"] == "note 54"
  assert notes[-1]["message"] == "note 5"


async def test_mark_read_and_read_all(client: AsyncClient) -> None:
  first, second, third = await _seed_notifications("alice", 3)
  await login(client, "alice")

  res = await client.post(f"/api/notifications/{first}/read")
  assert res.status_code == 200
  # idempotent
  assert (await client.post(f"/api/notifications/{first}/read")).status_code == 200
  read = {n["id"]: n["read"] for n in (await client.get("/api/notifications")).json()}
  assert read == {first: True, second: False, third: False}

  assert (await client.post("/api/notifications/read-all")).json() == {"success": True}
  assert all(n["read"] for n in (await client.get("/api/notifications")).json())


async def test_cannot_touch_someone_elses_notification(client: AsyncClient) -> None:
  (bobs,) = await _seed_notifications("bob", 1)
  await login(client, "alice")
  res = await client.post(f"/api/notifications/{bobs}/read")
  assert res.status_code == 403
  assert res.json() == {"message": "Not authorized"}

  res = await client.post("/api/notifications/missing/read")
  assert res.status_code == 403

  await client.post("/api/notifications/read-all")
  await login(client, "bob")
  notes = (await client.get("/api/notifications")).json()
  assert [n["read"] for n in notes] == [False]
