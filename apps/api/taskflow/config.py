from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://taskflow:taskflow@db:5432/taskflow"
  app_secret: str = "dev-secret-change-me"
  app_version: str = "v2026-10-17"
  build_sha: str = "dev"
  api_docs_enabled: bool = False

  cookie_secure: bool = False
  cookie_domain: str | None = None
  session_ttl_days: int = 7

  rate_limit_login_ip_per_minute: int = 60
  rate_limit_login_username_per_minute: int = 20

  cors_origins: str = "http://localhost:5000,http://127.0.0.1:5000"
  cors_origin_regex: str = r"^http://(localhost|127\.0\.0\.1):5000$"
  trusted_hosts: str = "localhost,127.0.0.1,0.0.0.0,api,web,testserver"

  scheduler_enabled: bool = True
  due_check_initial_delay_seconds: float = 5.0
  due_check_interval_seconds: float = 60.0
  due_soon_window_hours: int = 24
  notification_dedupe_hours: int = 24
  notification_list_limit: int = 50

  log_level: str = "INFO"

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

  def trusted_host_list(self) -> list[str]:
    return [h.strip() for h in self.trusted_hosts.split(",") if h.strip()]

  def is_test_db(self) -> bool:
    """True only for databases named `*_test` (SQLite files may carry a .db/.sqlite suffix)."""
    db_name = self.database_url.rsplit("/", 1)[-1].split("?", 1)[0]
    for suffix in (".db", ".sqlite3", ".sqlite"):
      if db_name.endswith(suffix):
        db_name = db_name[: -len(suffix)]
        break
    return db_name.endswith("_test")


settings = Settings()
