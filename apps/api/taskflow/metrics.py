from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from time import monotonic
from typing import Any


@dataclass
class RequestSample:
  ts: datetime
  status_code: int
  latency_ms: float


class RuntimeMetrics:
  """Rolling 24h request stats plus counters for the due-check sweeps."""

  def __init__(self) -> None:
    self._started_monotonic = monotonic()
    self._started_at = datetime.now(timezone.utc)
    self._samples: deque[RequestSample] = deque()
    self._lock = Lock()
    self._sweeps = 0
    self._sweep_failures = 0
    self._notifications_created = 0
    self._reminders_fired = 0
    self._last_sweep_at: datetime | None = None

  @property
  def started_at(self) -> datetime:
    return self._started_at

  def uptime_seconds(self) -> int:
    return max(0, int(monotonic() - self._started_monotonic))

  def observe_request(self, status_code: int, latency_ms: float) -> None:
    now = datetime.now(timezone.utc)
    with self._lock:
      self._samples.append(RequestSample(ts=now, status_code=status_code, latency_ms=latency_ms))
      self._prune_locked(now)

  def observe_sweep(self, *, at: datetime, notifications_created: int, reminders_fired: int, failures: int) -> None:
    with self._lock:
      self._sweeps += 1
      self._sweep_failures += failures
      self._notifications_created += notifications_created
      self._reminders_fired += reminders_fired
      self._last_sweep_at = at

  def _prune_locked(self, now: datetime) -> None:
    cutoff = now - timedelta(hours=24)
    while self._samples and self._samples[0].ts < cutoff:
      self._samples.popleft()

  def snapshot(self) -> dict[str, Any]:
    now = datetime.now(timezone.utc)
    with self._lock:
      self._prune_locked(now)
      samples = list(self._samples)
      sweeps = {
        "runs": self._sweeps,
        "failures": self._sweep_failures,
        "notificationsCreated": self._notifications_created,
        "remindersFired": self._reminders_fired,
        "lastRunAt": self._last_sweep_at,
      }

    errors_24h = sum(1 for s in samples if s.status_code >= 500)
    p95_ms = 0.0
    if samples:
      sorted_latencies = sorted(s.latency_ms for s in samples)
      idx = max(0, int(len(sorted_latencies) * 0.95) - 1)
      p95_ms = sorted_latencies[idx]

    return {
      "uptimeSeconds": self.uptime_seconds(),
      "requestCount24h": len(samples),
      "errorCount24h": errors_24h,
      "p95LatencyMs24h": round(p95_ms, 2),
      "dueCheck": sweeps,
    }


runtime_metrics = RuntimeMetrics()
