from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow import storage
from taskflow.db import transaction
from taskflow.deps import get_board_or_404, get_current_user, get_db, require_board_member
from taskflow.models import Board, BoardMember, User
from taskflow.routers.auth import user_out
from taskflow.routers.tasks import task_out
from taskflow.schemas import BoardCreateIn, BoardMemberAddIn, BoardMemberOut, BoardOut, SuccessOut, TaskOut, UserOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/boards", tags=["boards"])


def _board_out(b: Board) -> BoardOut:
  return BoardOut(id=b.id, name=b.name, type=b.type, ownerId=b.owner_id, description=b.description, createdAt=b.created_at)


def _member_out(m: BoardMember) -> BoardMemberOut:
  return BoardMemberOut(id=m.id, boardId=m.board_id, userId=m.user_id)


@router.get("", response_model=list[BoardOut])
async def list_boards(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[BoardOut]:
  return [_board_out(b) for b in await storage.get_boards_for_user(db, user.id)]


@router.post("", response_model=BoardOut)
async def create_board(payload: BoardCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> BoardOut:
  name = payload.name.strip()
  if not name:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name and type are required")
  b = await storage.create_board(db, name=name, type=payload.type, owner_id=user.id, description=payload.description)
  await db.commit()
  return _board_out(b)


@router.get("/{board_id}", response_model=BoardOut)
async def get_board(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> BoardOut:
  b = await get_board_or_404(board_id, db)
  await require_board_member(b.id, user, db)
  return _board_out(b)


@router.delete("/{board_id}", response_model=SuccessOut)
async def delete_board(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> SuccessOut:
  b = await get_board_or_404(board_id, db)
  if b.owner_id != user.id:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not the owner")
  async with transaction(db):
    await storage.delete_board(db, board_id)
  logger.info("board deleted id=%s by user=%s", board_id, user.id)
  return SuccessOut()


@router.get("/{board_id}/tasks", response_model=list[TaskOut])
async def list_board_tasks(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[TaskOut]:
  await require_board_member(board_id, user, db)
  return [task_out(t) for t in await storage.get_tasks(db, board_id)]


@router.get("/{board_id}/members", response_model=list[UserOut])
async def list_board_members(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[UserOut]:
  await require_board_member(board_id, user, db)
  return [user_out(u) for u in await storage.get_board_members(db, board_id)]


@router.post("/{board_id}/members", response_model=BoardMemberOut)
async def add_board_member(
  board_id: str,
  payload: BoardMemberAddIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> BoardMemberOut:
  b = await get_board_or_404(board_id, db)
  if b.owner_id != user.id:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only owner can add members")

  email = payload.email.strip().lower()
  if not email:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required")
  target = await storage.get_user_by_email(db, email)
  if not target:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
  if await storage.is_board_member(db, board_id, target.id):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Already a member")

  m = await storage.add_board_member(db, board_id=board_id, user_id=target.id)
  await db.commit()
  return _member_out(m)
