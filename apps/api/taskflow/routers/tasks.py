from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow import storage
from taskflow.db import transaction
from taskflow.deps import get_current_user, get_db, require_board_member
from taskflow.models import Task, User
from taskflow.notifications.events import notify_task_assigned, notify_task_status_changed
from taskflow.schemas import SuccessOut, TaskCreateIn, TaskOut, TaskUpdateIn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])

# payload field -> model attribute
_UPDATE_MAPPING = [
  ("title", "title"),
  ("description", "description"),
  ("column", "column"),
  ("priority", "priority"),
  ("assigneeId", "assignee_id"),
  ("status", "status"),
  ("dueDate", "due_date"),
  ("reminderDate", "reminder_date"),
  ("position", "position"),
]
_NOT_NULL_FIELDS = {"title", "column", "priority", "status", "position"}


def task_out(t: Task) -> TaskOut:
  return TaskOut(
    id=t.id,
    title=t.title,
    description=t.description,
    boardId=t.board_id,
    column=t.column,
    priority=t.priority,
    assigneeId=t.assignee_id,
    creatorId=t.creator_id,
    status=t.status,
    dueDate=t.due_date,
    reminderDate=t.reminder_date,
    position=t.position,
    createdAt=t.created_at,
    updatedAt=t.updated_at,
  )


async def _validate_assignee(board_id: str, assignee_id: str | None, db: AsyncSession) -> None:
  if not assignee_id:
    return
  if not await storage.is_board_member(db, board_id, assignee_id):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid assigneeId (must be a board member)")


async def _get_task_or_404(task_id: str, db: AsyncSession) -> Task:
  t = await storage.get_task(db, task_id)
  if not t:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
  return t


@router.get("/my", response_model=list[TaskOut])
async def my_tasks(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[TaskOut]:
  return [task_out(t) for t in await storage.get_my_tasks(db, user.id)]


@router.post("", response_model=TaskOut)
async def create_task(payload: TaskCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TaskOut:
  title = payload.title.strip()
  if not title:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title and boardId are required")
  await require_board_member(payload.boardId, user, db)
  await _validate_assignee(payload.boardId, payload.assigneeId, db)

  t = await storage.create_task(
    db,
    title=title,
    board_id=payload.boardId,
    creator_id=user.id,
    description=payload.description or None,
    column=payload.column,
    priority=payload.priority,
    assignee_id=payload.assigneeId,
    due_date=payload.dueDate,
    reminder_date=payload.reminderDate,
  )
  await notify_task_assigned(db, task=t, actor_id=user.id)
  await db.commit()
  return task_out(t)


@router.get("/{task_id}", response_model=TaskOut)
async def get_task(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TaskOut:
  t = await _get_task_or_404(task_id, db)
  await require_board_member(t.board_id, user, db)
  return task_out(t)


@router.patch("/{task_id}", response_model=TaskOut)
async def update_task(task_id: str, payload: TaskUpdateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TaskOut:
  t = await _get_task_or_404(task_id, db)
  await require_board_member(t.board_id, user, db)

  fields_set = payload.model_fields_set
  new_status = payload.status if "status" in fields_set else None
  # Accept/decline belongs to the assignee alone, board owner included.
  if new_status in ("accepted", "declined") and t.assignee_id != user.id:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the assignee can accept or decline")
  if "assigneeId" in fields_set:
    await _validate_assignee(t.board_id, payload.assigneeId, db)

  title_before = t.title
  changes: dict = {}
  for field_name, model_attr in _UPDATE_MAPPING:
    if field_name not in fields_set:
      continue
    val = getattr(payload, field_name)
    if val is None and model_attr in _NOT_NULL_FIELDS:
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field_name} cannot be null")
    changes[model_attr] = val

  t = await storage.update_task(db, t, changes)
  if new_status:
    await notify_task_status_changed(db, task=t, new_status=new_status, actor_id=user.id, title=title_before)
  await db.commit()
  return task_out(t)


@router.delete("/{task_id}", response_model=SuccessOut)
async def delete_task(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> SuccessOut:
  t = await _get_task_or_404(task_id, db)
  board = await storage.get_board(db, t.board_id)
  if t.creator_id != user.id and (board is None or board.owner_id != user.id):
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to delete this task")
  async with transaction(db):
    await storage.delete_task(db, task_id)
  logger.info("task deleted id=%s by user=%s", task_id, user.id)
  return SuccessOut()
