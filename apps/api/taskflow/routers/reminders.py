from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow import storage
from taskflow.deps import get_current_user, get_db, require_board_member
from taskflow.models import Reminder, User
from taskflow.routers.tasks import task_out
from taskflow.schemas import ReminderCreateIn, ReminderOut, SuccessOut

router = APIRouter(prefix="/api/reminders", tags=["reminders"])


async def _reminder_out(db: AsyncSession, r: Reminder, *, with_task: bool = True) -> ReminderOut:
  t = await storage.get_task(db, r.task_id) if with_task else None
  return ReminderOut(
    id=r.id,
    userId=r.user_id,
    taskId=r.task_id,
    reminderTime=r.reminder_time,
    fired=bool(r.fired),
    dismissed=bool(r.dismissed),
    createdAt=r.created_at,
    task=task_out(t) if t else None,
  )


async def _own_reminder_or_error(reminder_id: str, user: User, db: AsyncSession) -> Reminder:
  r = await storage.get_reminder(db, reminder_id)
  if not r:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reminder not found")
  if r.user_id != user.id:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
  return r


@router.get("", response_model=list[ReminderOut])
async def list_reminders(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[ReminderOut]:
  return [await _reminder_out(db, r) for r in await storage.get_reminders(db, user.id)]


@router.get("/due", response_model=list[ReminderOut])
async def list_due_reminders(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[ReminderOut]:
  return [await _reminder_out(db, r) for r in await storage.get_due_reminders(db, user.id)]


@router.post("", response_model=ReminderOut)
async def create_reminder(payload: ReminderCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> ReminderOut:
  t = await storage.get_task(db, payload.taskId)
  if not t:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
  await require_board_member(t.board_id, user, db)

  r = await storage.create_reminder(db, user_id=user.id, task_id=t.id, reminder_time=payload.reminderTime)
  await db.commit()
  return await _reminder_out(db, r, with_task=False)


@router.post("/{reminder_id}/dismiss", response_model=SuccessOut)
async def dismiss_reminder(reminder_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> SuccessOut:
  await _own_reminder_or_error(reminder_id, user, db)
  await storage.dismiss_reminder(db, reminder_id)
  await db.commit()
  return SuccessOut()


@router.delete("/{reminder_id}", response_model=SuccessOut)
async def delete_reminder(reminder_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> SuccessOut:
  await _own_reminder_or_error(reminder_id, user, db)
  await storage.delete_reminder(db, reminder_id)
  await db.commit()
  return SuccessOut()
