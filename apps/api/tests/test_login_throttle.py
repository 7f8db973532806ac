from __future__ import annotations

import pytest

from taskflow.rate_limit import LoginThrottle

pytestmark = pytest.mark.anyio


class FakeClock:
  def __init__(self) -> None:
    self.now = 1000.0

  def __call__(self) -> float:
    return self.now


def _attempt(throttle: LoginThrottle, *, ip: str = "10.0.0.1", username: str = "alice", ip_limit: int = 10, username_limit: int = 3):
  return throttle.attempt(ip=ip, username=username, ip_limit=ip_limit, username_limit=username_limit)


async def test_username_window_blocks_then_reopens() -> None:
  clock = FakeClock()
  throttle = LoginThrottle(window_seconds=60, clock=clock)

  for _ in range(3):
    assert _attempt(throttle).allowed
  clock.now += 15
  d = _attempt(throttle, username="ALICE ")
  assert not d.allowed
  assert d.scope == "username"
  assert d.retry_after == 45

  # another username from the same ip is unaffected
  assert _attempt(throttle, username="bob").allowed

  clock.now += 45
  assert _attempt(throttle).allowed


async def test_ip_refusal_does_not_count_against_username() -> None:
  clock = FakeClock()
  throttle = LoginThrottle(window_seconds=60, clock=clock)

  assert _attempt(throttle, ip_limit=1, username="carol").allowed
  for _ in range(5):
    d = _attempt(throttle, ip_limit=1, username="dave")
    assert not d.allowed and d.scope == "ip"

  # dave was never counted, so a fresh ip gets all three attempts
  for _ in range(3):
    assert _attempt(throttle, ip="10.0.0.2", username="dave").allowed


async def test_expired_windows_are_evicted() -> None:
  clock = FakeClock()
  throttle = LoginThrottle(window_seconds=60, clock=clock)

  for i in range(50):
    _attempt(throttle, ip=f"10.0.1.{i}", username=f"user{i}")
  assert throttle.tracked == 100

  clock.now += 61
  _attempt(throttle, ip="10.0.2.1", username="late")
  assert throttle.tracked == 2

  throttle.reset()
  assert throttle.tracked == 0
