#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import os
import sys
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "apps" / "api"))

from taskflow.client.poller import DEFAULT_POLL_INTERVAL_SECONDS, ReminderAlert, ReminderPoller  # noqa: E402
from taskflow.logging_setup import setup_logging  # noqa: E402


def _print_alert(alert: ReminderAlert) -> None:
  print("\a" + alert.title, flush=True)
  for r in alert.reminders:
    task = r.get("task") or {}
    marker = "*" if r["id"] in alert.new_ids else " "
    due = task.get("dueDate") or "no due date"
    print(f" {marker} [{task.get('priority', '?')}] {task.get('title', r['taskId'])} (due {due})", flush=True)


async def _watch(args: argparse.Namespace, password: str) -> int:
  async with httpx.AsyncClient(base_url=args.base_url.rstrip("/"), timeout=20) as client:
    res = await client.post("/api/auth/login", json={"username": args.username, "password": password})
    if res.status_code != 200:
      print(f"login failed: {res.status_code} {res.text}", file=sys.stderr)
      return 1
    poller = ReminderPoller(client, on_alert=_print_alert, interval_seconds=args.interval)
    if args.once:
      await poller.poll_once()
      return 0
    await poller.run()
  return 0


def main() -> int:
  parser = argparse.ArgumentParser(description="Poll TaskFlow for due reminders and ring the terminal bell")
  parser.add_argument("--base-url", default=os.getenv("TASKFLOW_URL", "http://localhost:8000"))
  parser.add_argument("--username", required=True)
  parser.add_argument("--interval", type=float, default=DEFAULT_POLL_INTERVAL_SECONDS)
  parser.add_argument("--once", action="store_true", help="poll a single time and exit")
  parser.add_argument("--log-level", default="WARNING")
  args = parser.parse_args()

  setup_logging(level=args.log_level)
  password = os.getenv("TASKFLOW_PASSWORD") or getpass.getpass()
  try:
    return asyncio.run(_watch(args, password))
  except KeyboardInterrupt:
    return 130


if __name__ == "__main__":
  raise SystemExit(main())
