from __future__ import annotations

import asyncio
import os
import secrets
from datetime import timedelta

from sqlalchemy import select

from taskflow import storage
from taskflow.db import SessionLocal
from taskflow.models import Board, Task, utcnow
from taskflow.security import hash_password

DEMO_BOARD_NAME = "TaskFlow Demo"

SEED_USERS = (
  ("alice", "alice@taskflow.local", "Alice", "SEED_ALICE_PASSWORD"),
  ("bob", "bob@taskflow.local", "Bob", "SEED_BOB_PASSWORD"),
)


def _bootstrap_password(env_key: str) -> tuple[str, bool]:
  configured = (os.getenv(env_key) or "").strip()
  if configured:
    return configured, False
  return secrets.token_urlsafe(14), True


async def seed() -> list[str]:
  """Create the demo users and board if missing. Returns generated credential lines."""
  boot_lines: list[str] = []
  async with SessionLocal() as db:
    users = {}
    for username, email, first_name, env_key in SEED_USERS:
      u = await storage.get_user_by_username(db, username)
      if not u:
        password, generated = _bootstrap_password(env_key)
        u = await storage.create_user(
          db,
          username=username,
          email=email,
          first_name=first_name,
          password_hash=hash_password(password),
        )
        if generated:
          boot_lines.append(f"{username}={password}")
      users[username] = u

    alice, bob = users["alice"], users["bob"]
    res = await db.execute(select(Board).where(Board.name == DEMO_BOARD_NAME, Board.owner_id == alice.id))
    board = res.scalar_one_or_none()
    if not board:
      board = await storage.create_board(
        db,
        name=DEMO_BOARD_NAME,
        type="workplace",
        owner_id=alice.id,
        description="Shared board for trying out assignments and reminders.",
      )
      await storage.add_board_member(db, board_id=board.id, user_id=bob.id)

    tres = await db.execute(select(Task.id).where(Task.board_id == board.id).limit(1))
    if tres.scalar_one_or_none() is None:
      now = utcnow()
      samples = [
        ("Welcome to TaskFlow", "todo", "medium", None, timedelta(days=3)),
        ("Review the onboarding doc", "in_progress", "high", bob.id, timedelta(hours=20)),
        ("Ship the first release", "done", "urgent", bob.id, None),
      ]
      for title, column, priority, assignee_id, due_in in samples:
        await storage.create_task(
          db,
          title=title,
          board_id=board.id,
          creator_id=alice.id,
          column=column,
          priority=priority,
          assignee_id=assignee_id,
          due_date=(now + due_in) if due_in else None,
        )

    await db.commit()

  if boot_lines:
    print("TaskFlow seed credentials created:")
    for ln in boot_lines:
      print(f"  {ln}")
  return boot_lines


def main() -> None:
  asyncio.run(seed())


if __name__ == "__main__":
  main()
