from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Chatty libraries that only matter when something is wrong.
_QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "passlib")


def setup_logging(*, level: str | int = logging.INFO) -> None:
  """
  Configure root logging once at startup: one stderr handler, warnings
  routed into logging, third-party noise held at WARNING.
  """
  if isinstance(level, str):
    level = logging.getLevelName(level.strip().upper())
    if not isinstance(level, int):
      level = logging.INFO

  root = logging.getLogger()
  root.setLevel(level)
  for h in list(root.handlers):
    root.removeHandler(h)

  handler = logging.StreamHandler(sys.stderr)
  handler.setLevel(level)
  handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
  root.addHandler(handler)

  for name in _QUIET_LOGGERS:
    logging.getLogger(name).setLevel(logging.WARNING)

  logging.captureWarnings(True)
