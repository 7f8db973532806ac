from __future__ import annotations

from datetime import datetime, timedelta, timezone

from passlib.context import CryptContext

from taskflow.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SESSION_COOKIE_NAME = "tf_session"


def hash_password(password: str) -> str:
  return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
  try:
    return pwd_context.verify(password, password_hash)
  except ValueError:
    # malformed/unknown hash in the store
    return False


def session_ttl() -> timedelta:
  return timedelta(days=max(1, int(settings.session_ttl_days)))


def new_session_expires_at() -> datetime:
  return datetime.now(timezone.utc) + session_ttl()


def is_placeholder_secret(value: str | None) -> bool:
  return not value or value.strip().lower() in {"dev-secret-change-me", "replace_with_strong_random_secret"}
