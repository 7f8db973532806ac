"""
Login throttling.

Two fixed-window counters guard POST /api/auth/login: one per client IP and
one per case-folded username. The IP window is consulted first; a request it
refuses is not counted against the username. Expired windows are evicted as
the clock moves, so memory tracks only recently seen IPs and usernames.
State is per process.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Literal

Scope = Literal["ip", "username"]


@dataclass
class _Window:
  expires_at: float
  attempts: int


@dataclass(frozen=True)
class ThrottleDecision:
  allowed: bool
  retry_after: int = 0
  scope: Scope | None = None


class LoginThrottle:
  def __init__(self, *, window_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
    self.window_seconds = float(window_seconds)
    self._clock = clock
    self._lock = Lock()
    self._windows: dict[tuple[Scope, str], _Window] = {}
    self._next_eviction_at = 0.0

  @property
  def tracked(self) -> int:
    return len(self._windows)

  def attempt(self, *, ip: str, username: str, ip_limit: int, username_limit: int) -> ThrottleDecision:
    now = self._clock()
    with self._lock:
      self._evict_expired_locked(now)
      checks: tuple[tuple[Scope, str, int], ...] = (
        ("ip", ip or "unknown", ip_limit),
        ("username", (username or "").strip().lower(), username_limit),
      )
      for scope, subject, limit in checks:
        wait = self._count_locked((scope, subject), limit, now)
        if wait:
          return ThrottleDecision(allowed=False, retry_after=wait, scope=scope)
    return ThrottleDecision(allowed=True)

  def _count_locked(self, key: tuple[Scope, str], limit: int, now: float) -> int:
    w = self._windows.get(key)
    if w is None or now >= w.expires_at:
      self._windows[key] = _Window(expires_at=now + self.window_seconds, attempts=1)
      return 0
    if w.attempts >= max(1, int(limit)):
      return max(1, math.ceil(w.expires_at - now))
    w.attempts += 1
    return 0

  def _evict_expired_locked(self, now: float) -> None:
    if now < self._next_eviction_at:
      return
    for key in [k for k, w in self._windows.items() if now >= w.expires_at]:
      del self._windows[key]
    self._next_eviction_at = now + self.window_seconds

  def reset(self) -> None:
    with self._lock:
      self._windows.clear()
      self._next_eviction_at = 0.0


login_throttle = LoginThrottle()
