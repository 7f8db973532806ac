"""
In-process periodic job runner.

Jobs are plain async callables that receive "now" from an injectable clock, so
tests can call ``run_job_now`` with a fixed time instead of waiting on the
wall clock. Each registered job gets one asyncio task; a tick that raises is
logged and the loop keeps going. There is no overlap guard beyond that single
task per job.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable

from taskflow.models import utcnow

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class PeriodicJob:
  name: str
  func: Callable[[datetime], Awaitable[Any]]
  interval_seconds: float
  initial_delay_seconds: float = 0.0
  runs: int = 0
  failures: int = 0
  last_run_at: datetime | None = None
  last_error: str | None = field(default=None, repr=False)


class Scheduler:
  def __init__(self, *, clock: Clock = utcnow, sleep: Sleep = asyncio.sleep) -> None:
    self._clock = clock
    self._sleep = sleep
    self._jobs: dict[str, PeriodicJob] = {}
    self._tasks: dict[str, asyncio.Task] = {}

  @property
  def jobs(self) -> list[PeriodicJob]:
    return list(self._jobs.values())

  @property
  def running(self) -> bool:
    return any(not t.done() for t in self._tasks.values())

  def register(self, job: PeriodicJob) -> PeriodicJob:
    if job.name in self._jobs:
      raise ValueError(f"job {job.name!r} already registered")
    self._jobs[job.name] = job
    return job

  async def run_job_now(self, name: str) -> Any:
    """Run one tick of a job immediately. Errors are recorded and re-raised."""
    job = self._jobs[name]
    now = self._clock()
    job.last_run_at = now
    job.runs += 1
    try:
      result = await job.func(now)
    except Exception as e:
      job.failures += 1
      job.last_error = str(e) or e.__class__.__name__
      raise
    job.last_error = None
    return result

  async def _loop(self, job: PeriodicJob) -> None:
    await self._sleep(max(0.0, float(job.initial_delay_seconds)))
    while True:
      try:
        await self.run_job_now(job.name)
      except Exception:
        logger.exception("scheduled job %r failed", job.name)
      await self._sleep(max(0.0, float(job.interval_seconds)))

  def start(self) -> None:
    for name, job in self._jobs.items():
      t = self._tasks.get(name)
      if t is not None and not t.done():
        continue
      self._tasks[name] = asyncio.create_task(self._loop(job), name=f"job:{name}")
      logger.info("scheduled job %r every %ss", name, job.interval_seconds)

  async def stop(self) -> None:
    tasks = list(self._tasks.values())
    self._tasks.clear()
    for t in tasks:
      t.cancel()
    if tasks:
      await asyncio.gather(*tasks, return_exceptions=True)

  def snapshot(self) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for job in self._jobs.values():
      t = self._tasks.get(job.name)
      out.append(
        {
          "name": job.name,
          "intervalSeconds": job.interval_seconds,
          "running": bool(t is not None and not t.done()),
          "runs": job.runs,
          "failures": job.failures,
          "lastRunAt": job.last_run_at,
          "lastError": job.last_error,
        }
      )
    return out
