from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://boardsync:boardsync@db:5432/boardsync"
  app_secret: str = "dev-secret-change-me"
  fernet_key: str = "AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA="
  app_version: str = "v2026-10-19"
  build_sha: str = "dev"
  log_level: str = "INFO"

  cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
  cors_origin_regex: str = r"^http://(localhost|127\.0\.0\.1):3000$"
  trusted_hosts: str = "localhost,127.0.0.1,api,web"

  # Base URL GitHub delivers webhooks to; the hook is registered at {public_base_url}/webhooks/github.
  public_base_url: str = "http://localhost:8000"

  github_api_base_url: str = "https://api.github.com"
  github_token: str | None = None
  github_timeout_seconds: float = 20.0
  github_user_agent: str = "BoardSync/1.0"
  github_import_page_size: int = 100
  github_import_max_pages: int = 10

  rate_limit_webhook_per_minute: int = 100
  redis_url: str | None = None

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

  def trusted_host_list(self) -> list[str]:
    return [h.strip() for h in self.trusted_hosts.split(",") if h.strip()]

  def webhook_url(self) -> str:
    return f"{self.public_base_url.rstrip('/')}/webhooks/github"


settings = Settings()
