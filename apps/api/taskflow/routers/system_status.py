from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from taskflow.config import settings
from taskflow.deps import get_current_user
from taskflow.metrics import runtime_metrics
from taskflow.models import User
from taskflow.scheduler import Scheduler

router = APIRouter(prefix="/api/system", tags=["system"])

_scheduler: Scheduler | None = None


def bind_scheduler(scheduler: Scheduler) -> None:
  global _scheduler
  _scheduler = scheduler


@router.get("/status")
async def system_status(_: User = Depends(get_current_user)) -> dict:
  return {
    "version": settings.app_version,
    "buildSha": settings.build_sha,
    "serverTime": datetime.now(timezone.utc),
    "schedulerEnabled": bool(settings.scheduler_enabled),
    "jobs": _scheduler.snapshot() if _scheduler is not None else [],
    "metrics": runtime_metrics.snapshot(),
  }
