from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.config import settings
from boardsync.deps import get_current_user, get_db
from boardsync.github.events import parse_event, repository_id
from boardsync.github.signatures import verify_signature
from boardsync.metrics import delivery_metrics
from boardsync.models import User
from boardsync.rate_limit import limiter
from boardsync.schemas import WebhookProcessedOut
from boardsync.security import decrypt_secret
from boardsync.store import SyncStore
from boardsync.sync.engine import TaskSyncEngine
from boardsync.sync.router import dispatch

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = structlog.get_logger()


def _reject(event: str | None, outcome: str, status_code: int, detail: str, headers: dict[str, str] | None = None) -> HTTPException:
  delivery_metrics.observe(event or "unknown", outcome)
  return HTTPException(status_code=status_code, detail=detail, headers=headers)


@router.post("/github", response_model=WebhookProcessedOut)
async def github_webhook(request: Request, db: AsyncSession = Depends(get_db)) -> WebhookProcessedOut:
  signature = request.headers.get("x-hub-signature-256")
  event_name = request.headers.get("x-github-event")
  delivery_id = request.headers.get("x-github-delivery")
  if not signature or not event_name:
    raise _reject(event_name, "rejected", status.HTTP_400_BAD_REQUEST, "Missing required headers")

  # Raw bytes are kept for the signature check; the parsed copy is only used to find the repository.
  body = await request.body()
  try:
    payload = json.loads(body)
  except ValueError:
    raise _reject(event_name, "rejected", status.HTTP_400_BAD_REQUEST, "Invalid JSON body")
  if not isinstance(payload, dict):
    raise _reject(event_name, "rejected", status.HTTP_400_BAD_REQUEST, "JSON object body required")

  log = logger.bind(event=event_name, delivery_id=delivery_id)
  repo_id = repository_id(payload)
  store = SyncStore(db)
  webhook = await store.webhook_for_repo(repo_id) if repo_id else None
  if webhook is None:
    # Success on purpose: an unregistered repository must not trigger GitHub redeliveries.
    log.info("github_webhook_not_configured", repository_id=repo_id)
    delivery_metrics.observe(event_name, "not_configured")
    return WebhookProcessedOut(message="Webhook not configured", event=event_name, deliveryId=delivery_id)

  if not verify_signature(decrypt_secret(webhook.secret_encrypted), body, signature):
    log.warning("github_webhook_signature_invalid", repository_id=repo_id)
    raise _reject(event_name, "unauthorized", status.HTTP_401_UNAUTHORIZED, "Invalid signature")

  allowed, retry_after = await limiter.hit(
    f"webhook:github:{repo_id}",
    limit=settings.rate_limit_webhook_per_minute,
    window_seconds=60,
  )
  if not allowed:
    log.warning("github_webhook_rate_limited", repository_id=repo_id, retry_after=retry_after)
    raise _reject(
      event_name,
      "rate_limited",
      status.HTTP_429_TOO_MANY_REQUESTS,
      "Too many webhook deliveries",
      headers={"Retry-After": str(retry_after)},
    )

  try:
    event = parse_event(event_name, payload)
  except ValidationError as e:
    log.warning("github_webhook_payload_invalid", errors=e.error_count())
    raise _reject(event_name, "rejected", status.HTTP_400_BAD_REQUEST, f"Payload does not match the {event_name} event")

  engine = TaskSyncEngine(store)
  try:
    result = await dispatch(engine, event)
    await db.commit()
  except IntegrityError:
    # A concurrent delivery of the same event committed first.
    await db.rollback()
    log.info("github_webhook_duplicate_delivery", repository_id=repo_id)
    delivery_metrics.observe(event_name, "duplicate")
    return WebhookProcessedOut(message="Duplicate delivery ignored", event=event_name, deliveryId=delivery_id)
  except Exception as e:
    await db.rollback()
    log.exception("github_webhook_processing_failed", repository_id=repo_id)
    delivery_metrics.observe(event_name, "failed")
    raise HTTPException(
      status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
      detail={"message": "Failed to process webhook", "error": str(e)},
    ) from e

  outcome = "ignored" if "ignored" in result else "processed"
  log.info("github_webhook_processed", repository_id=repo_id, outcome=outcome, result=result)
  delivery_metrics.observe(event_name, outcome)
  return WebhookProcessedOut(message="Webhook processed successfully", event=event_name, deliveryId=delivery_id, result=result)


@router.get("/github/stats")
async def github_webhook_stats(_: User = Depends(get_current_user)) -> dict:
  return delivery_metrics.snapshot()
