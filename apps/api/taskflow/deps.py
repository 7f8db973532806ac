from __future__ import annotations

from datetime import datetime, timezone
from typing import AsyncIterator

from fastapi import Cookie, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow import storage
from taskflow.db import SessionLocal
from taskflow.models import Board, Session as DbSession, User
from taskflow.security import SESSION_COOKIE_NAME


async def get_db() -> AsyncIterator[AsyncSession]:
  async with SessionLocal() as session:
    yield session


async def get_current_user(
  db: AsyncSession = Depends(get_db),
  session_id: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
) -> User:
  if not session_id:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

  res = await db.execute(select(DbSession).where(DbSession.id == session_id))
  s = res.scalar_one_or_none()
  if not s:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
  if s.expires_at < datetime.now(timezone.utc):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired")

  u = await storage.get_user(db, s.user_id)
  if not u:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
  return u


async def require_board_member(board_id: str, user: User, db: AsyncSession) -> None:
  if not await storage.is_board_member(db, board_id, user.id):
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a member of this board")


async def get_board_or_404(board_id: str, db: AsyncSession) -> Board:
  b = await storage.get_board(db, board_id)
  if not b:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Board not found")
  return b


def client_ip(request: Request) -> str | None:
  return request.client.host if request.client else None
