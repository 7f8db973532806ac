from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow import storage
from taskflow.deps import get_current_user, get_db
from taskflow.models import Notification, User
from taskflow.schemas import NotificationOut, SuccessOut

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _notification_out(n: Notification) -> NotificationOut:
  return NotificationOut(
    id=n.id,
    userId=n.user_id,
    taskId=n.task_id,
    type=n.type,
    message=n.message,
    read=bool(n.read),
    createdAt=n.created_at,
  )


@router.get("", response_model=list[NotificationOut])
async def list_notifications(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[NotificationOut]:
  return [_notification_out(n) for n in await storage.get_notifications(db, user.id)]


@router.post("/read-all", response_model=SuccessOut)
async def mark_all_read(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> SuccessOut:
  await storage.mark_all_notifications_read(db, user.id)
  await db.commit()
  return SuccessOut()


@router.post("/{notification_id}/read", response_model=SuccessOut)
async def mark_read(notification_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> SuccessOut:
  n = await storage.get_notification(db, notification_id)
  if not n or n.user_id != user.id:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
  await storage.mark_notification_read(db, notification_id)
  await db.commit()
  return SuccessOut()
