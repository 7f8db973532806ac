from __future__ import annotations

from datetime import timedelta

import pytest
from httpx import AsyncClient

from conftest import login, shared_board
from taskflow.client.poller import DueReminderTracker, ReminderAlert, ReminderPoller
from taskflow.db import SessionLocal
from taskflow.models import utcnow
from taskflow.reminders.service import run_due_check_once

pytestmark = pytest.mark.anyio


def _r(rid: str) -> dict:
  return {"id": rid, "taskId": f"task-{rid}"}


async def test_tracker_alerts_only_on_new_ids() -> None:
  tracker = DueReminderTracker()
  assert tracker.update([]) is None

  alert = tracker.update([_r("a")])
  assert alert is not None
  assert alert.new_ids == {"a"}
  assert alert.title == "Task Reminder"

  assert tracker.update([_r("a")]) is None

  # one new id re-alerts with the whole batch
  alert = tracker.update([_r("a"), _r("b")])
  assert alert is not None
  assert [r["id"] for r in alert.reminders] == ["a", "b"]
  assert alert.new_ids == {"b"}
  assert alert.title == "2 Task Reminders"

  # shrinking is silent
  assert tracker.update([_r("b")]) is None
  assert [r["id"] for r in tracker.active] == ["b"]

  # empty clears state so a returning id alerts again
  assert tracker.update([]) is None
  assert tracker.active == []
  assert tracker.update([_r("b")]) is not None


async def test_tracker_forget_allows_realert() -> None:
  tracker = DueReminderTracker()
  tracker.update([_r("a"), _r("b")])
  tracker.forget("a")
  assert [r["id"] for r in tracker.active] == ["b"]
  alert = tracker.update([_r("a"), _r("b")])
  assert alert is not None and alert.new_ids == {"a"}


async def test_poller_against_api(client: AsyncClient) -> None:
  b = await shared_board(client)
  t = (await client.post("/api/tasks", json={"title": "Pay invoice", "boardId": b["id"]})).json()
  when = utcnow() + timedelta(minutes=1)
  r = (await client.post("/api/reminders", json={"taskId": t["id"], "reminderTime": when.isoformat()})).json()

  alerts: list[ReminderAlert] = []

  async def on_alert(alert: ReminderAlert) -> None:
    alerts.append(alert)

  poller = ReminderPoller(client, on_alert=on_alert)
  assert poller.interval_seconds == 15.0
  assert await poller.poll_once() is None

  async with SessionLocal() as db:
    await run_due_check_once(db, now=when + timedelta(seconds=30))

  alert = await poller.poll_once()
  assert alert is not None
  assert alerts == [alert]
  assert alert.reminders[0]["id"] == r["id"]
  assert alert.reminders[0]["task"]["title"] == "Pay invoice"

  # same due set on the next poll: no second alert
  assert await poller.poll_once() is None
  assert len(alerts) == 1

  await poller.dismiss_all()
  assert poller.tracker.active == []
  assert (await client.get("/api/reminders/due")).json() == []
  assert await poller.poll_once() is None


async def test_poller_with_sync_callback(client: AsyncClient) -> None:
  await login(client, "alice")
  seen: list[ReminderAlert] = []
  poller = ReminderPoller(client, on_alert=seen.append)
  assert await poller.fetch_due() == []
  assert await poller.poll_once() is None
  assert seen == []
