from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 15.0


@dataclass(frozen=True)
class ReminderAlert:
  """Every currently due reminder, raised when at least one of them is new."""

  reminders: list[dict[str, Any]]
  new_ids: frozenset[str] = field(default_factory=frozenset)

  @property
  def title(self) -> str:
    return "Task Reminder" if len(self.reminders) == 1 else f"{len(self.reminders)} Task Reminders"


class DueReminderTracker:
  """Diffs successive /api/reminders/due responses by reminder id."""

  def __init__(self) -> None:
    self._seen: set[str] = set()
    self.active: list[dict[str, Any]] = []

  def update(self, reminders: list[dict[str, Any]]) -> ReminderAlert | None:
    if not reminders:
      self._seen = set()
      self.active = []
      return None

    ids = {str(r["id"]) for r in reminders}
    new_ids = ids - self._seen
    self._seen = ids
    self.active = list(reminders)
    if not new_ids:
      return None
    return ReminderAlert(reminders=list(reminders), new_ids=frozenset(new_ids))

  def forget(self, reminder_id: str) -> None:
    self._seen.discard(reminder_id)
    self.active = [r for r in self.active if str(r["id"]) != reminder_id]


AlertCallback = Callable[[ReminderAlert], Awaitable[None] | None]


class ReminderPoller:
  def __init__(
    self,
    client: httpx.AsyncClient,
    *,
    on_alert: AlertCallback,
    interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    tracker: DueReminderTracker | None = None,
  ) -> None:
    self.client = client
    self.on_alert = on_alert
    self.interval_seconds = interval_seconds
    self.tracker = tracker or DueReminderTracker()

  async def fetch_due(self) -> list[dict[str, Any]]:
    res = await self.client.get("/api/reminders/due")
    res.raise_for_status()
    data = res.json()
    return data if isinstance(data, list) else []

  async def poll_once(self) -> ReminderAlert | None:
    alert = self.tracker.update(await self.fetch_due())
    if alert is not None:
      out = self.on_alert(alert)
      if asyncio.iscoroutine(out):
        await out
    return alert

  async def dismiss(self, reminder_id: str) -> None:
    res = await self.client.post(f"/api/reminders/{reminder_id}/dismiss")
    res.raise_for_status()
    self.tracker.forget(reminder_id)

  async def dismiss_all(self) -> None:
    for r in list(self.tracker.active):
      await self.dismiss(str(r["id"]))

  async def run(self, *, stop: asyncio.Event | None = None) -> None:
    stop = stop or asyncio.Event()
    while not stop.is_set():
      try:
        await self.poll_once()
      except httpx.HTTPError as e:
        logger.warning("reminder poll failed: %s", e)
      try:
        await asyncio.wait_for(stop.wait(), timeout=self.interval_seconds)
      except asyncio.TimeoutError:
        pass
