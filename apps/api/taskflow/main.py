from __future__ import annotations

import logging
from datetime import datetime
from time import monotonic

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.trustedhost import TrustedHostMiddleware

from taskflow.config import settings
from taskflow.db import SessionLocal
from taskflow.logging_setup import setup_logging
from taskflow.metrics import runtime_metrics
from taskflow.reminders.service import DueCheckResult, run_due_check_once
from taskflow.routers.auth import router as auth_router
from taskflow.routers.boards import router as boards_router
from taskflow.routers.notifications import router as notifications_router
from taskflow.routers.reminders import router as reminders_router
from taskflow.routers.system_status import bind_scheduler, router as system_status_router
from taskflow.routers.tasks import router as tasks_router
from taskflow.scheduler import PeriodicJob, Scheduler
from taskflow.security import is_placeholder_secret

logger = logging.getLogger(__name__)

DUE_CHECK_JOB = "due-check"

app = FastAPI(
  title="TaskFlow API",
  version="0.1.0",
  docs_url="/docs" if settings.api_docs_enabled else None,
  redoc_url="/redoc" if settings.api_docs_enabled else None,
  openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
  detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
  return JSONResponse(status_code=exc.status_code, content={"message": detail}, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
  errors = exc.errors()
  message = "Invalid request"
  if errors:
    first = errors[0]
    loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path")]
    reason = first.get("msg") or "invalid value"
    message = f"{'.'.join(loc)}: {reason}" if loc else reason
  return JSONResponse(status_code=400, content={"message": message})


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
  logger.exception("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
  return JSONResponse(status_code=500, content={"message": "Internal server error"})


app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_origin_regex=settings.cors_origin_regex,
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_host_list())

app.include_router(auth_router)
app.include_router(boards_router)
app.include_router(tasks_router)
app.include_router(notifications_router)
app.include_router(reminders_router)
app.include_router(system_status_router)


@app.middleware("http")
async def _request_metrics_middleware(request, call_next):
  start = monotonic()
  response = await call_next(request)
  elapsed_ms = (monotonic() - start) * 1000.0
  runtime_metrics.observe_request(response.status_code, elapsed_ms)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
  return response


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "buildSha": settings.build_sha}


async def due_check_tick(now: datetime) -> DueCheckResult:
  async with SessionLocal() as db:
    return await run_due_check_once(db, now=now)


scheduler = Scheduler()
scheduler.register(
  PeriodicJob(
    name=DUE_CHECK_JOB,
    func=due_check_tick,
    interval_seconds=settings.due_check_interval_seconds,
    initial_delay_seconds=settings.due_check_initial_delay_seconds,
  )
)
bind_scheduler(scheduler)


@app.on_event("startup")
async def _startup() -> None:
  setup_logging(level=settings.log_level)
  if settings.is_test_db():
    return
  if is_placeholder_secret(settings.app_secret):
    raise RuntimeError("APP_SECRET is required and must not be a placeholder")
  if settings.scheduler_enabled:
    scheduler.start()


@app.on_event("shutdown")
async def _shutdown() -> None:
  await scheduler.stop()
