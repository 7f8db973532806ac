from __future__ import annotations

import logging

from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, Response, status
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow import storage
from taskflow.config import settings
from taskflow.deps import client_ip, get_current_user, get_db
from taskflow.models import Session as DbSession, User
from taskflow.rate_limit import login_throttle
from taskflow.schemas import LoginIn, RegisterIn, SuccessOut, UserOut
from taskflow.security import SESSION_COOKIE_NAME, hash_password, new_session_expires_at, session_ttl, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def user_out(u: User) -> UserOut:
  return UserOut(
    id=u.id,
    username=u.username,
    email=u.email,
    firstName=u.first_name,
    lastName=u.last_name,
    profileImageUrl=u.profile_image_url,
    createdAt=u.created_at,
  )


def _throttle_login_or_429(ip: str, username: str) -> None:
  decision = login_throttle.attempt(
    ip=ip,
    username=username,
    ip_limit=int(settings.rate_limit_login_ip_per_minute),
    username_limit=int(settings.rate_limit_login_username_per_minute),
  )
  if decision.allowed:
    return
  logger.info("login throttled by %s ip=%s", decision.scope, ip)
  raise HTTPException(
    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
    detail="Too many requests",
    headers={"Retry-After": str(decision.retry_after)},
  )


async def _start_session(db: AsyncSession, request: Request, response: Response, u: User) -> None:
  s = DbSession(
    user_id=u.id,
    expires_at=new_session_expires_at(),
    created_ip=client_ip(request),
    user_agent=request.headers.get("user-agent"),
  )
  db.add(s)
  await db.commit()
  response.set_cookie(
    key=SESSION_COOKIE_NAME,
    value=s.id,
    httponly=True,
    secure=settings.cookie_secure,
    samesite="lax",
    domain=settings.cookie_domain or None,
    max_age=int(session_ttl().total_seconds()),
    path="/",
  )


@router.post("/register", response_model=UserOut)
async def register(payload: RegisterIn, request: Request, response: Response, db: AsyncSession = Depends(get_db)) -> UserOut:
  username = payload.username.strip()
  if not username:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username and password are required")
  if await storage.get_user_by_username(db, username):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username already taken")
  if payload.email and await storage.get_user_by_email(db, payload.email):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")

  u = await storage.create_user(
    db,
    username=username,
    password_hash=hash_password(payload.password),
    email=payload.email,
    first_name=payload.firstName,
    last_name=payload.lastName,
  )
  await _start_session(db, request, response, u)
  logger.info("registered user id=%s username=%s", u.id, u.username)
  return user_out(u)


@router.post("/login", response_model=UserOut)
async def login(payload: LoginIn, request: Request, response: Response, db: AsyncSession = Depends(get_db)) -> UserOut:
  ip = client_ip(request) or "unknown"
  username = payload.username.strip()
  _throttle_login_or_429(ip, username)

  u = await storage.get_user_by_username(db, username)
  if not u or not verify_password(payload.password, u.password_hash):
    logger.info("login failed username=%s ip=%s", username, ip)
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")

  await _start_session(db, request, response, u)
  logger.info("login user id=%s ip=%s", u.id, ip)
  return user_out(u)


@router.post("/logout", response_model=SuccessOut)
async def logout(
  response: Response,
  db: AsyncSession = Depends(get_db),
  session_id: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
) -> SuccessOut:
  if session_id:
    await db.execute(delete(DbSession).where(DbSession.id == session_id))
    await db.commit()
    logger.info("logout session=%s", session_id[:8])
  response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")
  return SuccessOut()


@router.get("/user", response_model=UserOut)
async def current_user(user: User = Depends(get_current_user)) -> UserOut:
  return user_out(user)
