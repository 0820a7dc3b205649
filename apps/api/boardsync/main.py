from __future__ import annotations

import logging

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.trustedhost import TrustedHostMiddleware

from boardsync.config import settings
from boardsync.github.client import GitHubApiError
from boardsync.routers.github import router as github_router
from boardsync.routers.projects import router as projects_router
from boardsync.routers.tasks import router as tasks_router
from boardsync.routers.webhooks import router as webhooks_router
from boardsync.security import IntegrationSecretDecryptError

structlog.configure(
  processors=[
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.format_exc_info,
    structlog.processors.JSONRenderer(),
  ],
  wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(settings.log_level.upper())),
)

logger = structlog.get_logger()

app = FastAPI(title="BoardSync API", version="0.1.0")


@app.exception_handler(GitHubApiError)
async def _github_api_error_handler(_, exc: GitHubApiError) -> JSONResponse:
  return JSONResponse(
    status_code=502,
    content={"detail": {"message": exc.message, "statusCode": exc.status_code, "github": exc.details}},
  )


@app.exception_handler(IntegrationSecretDecryptError)
async def _integration_secret_error_handler(_, exc: IntegrationSecretDecryptError) -> JSONResponse:
  return JSONResponse(status_code=400, content={"detail": str(exc)})

app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_origin_regex=settings.cors_origin_regex,
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_host_list())

app.include_router(webhooks_router)
app.include_router(github_router)
app.include_router(projects_router)
app.include_router(tasks_router)


@app.middleware("http")
async def _security_headers_middleware(request, call_next):
  response = await call_next(request)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
  return response


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "buildSha": settings.build_sha}


def _is_test_db() -> bool:
  db_name = settings.database_url.rsplit("/", 1)[-1]
  return "test" in db_name


@app.on_event("startup")
async def _startup() -> None:
  if _is_test_db():
    return
  if not settings.app_secret or settings.app_secret.strip().lower() in {"dev-secret-change-me", "replace_with_strong_random_secret"}:
    raise RuntimeError("APP_SECRET is required and must not be a placeholder")
  if not settings.fernet_key or settings.fernet_key.strip() in {"AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA=", "REPLACE_WITH_FERNET_KEY"}:
    raise RuntimeError("FERNET_KEY is required and must not be a placeholder")
  logger.info("api_started", version=settings.app_version, webhook_url=settings.webhook_url())
