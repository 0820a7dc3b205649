from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx
import structlog
from dateutil import parser as dateparser
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.github.client import WEBHOOK_EVENTS, GitHubApiError
from boardsync.github.events import GitHubIssue
from boardsync.models import Column, Project
from boardsync.security import encrypt_secret, new_webhook_secret
from boardsync.store import SyncStore
from boardsync.sync.columns import DEFAULT_COLUMNS, ColumnName, TaskStatus, infer_priority, validate_columns

logger = structlog.get_logger()

PROJECT_GRADIENTS = [
  "linear-gradient(135deg, #667eea 0%, #764ba2 100%)",
  "linear-gradient(135deg, #f093fb 0%, #f5576c 100%)",
  "linear-gradient(135deg, #4facfe 0%, #00f2fe 100%)",
  "linear-gradient(135deg, #43e97b 0%, #38f9d7 100%)",
  "linear-gradient(135deg, #fa709a 0%, #fee140 100%)",
  "linear-gradient(135deg, #30cfd0 0%, #330867 100%)",
]

# Failures a best-effort step absorbs; anything else is a bug and propagates.
STEP_ERRORS = (GitHubApiError, httpx.HTTPError, SQLAlchemyError, ValueError)


class GitHubGateway(Protocol):
  async def create_webhook(self, owner: str, repo: str, url: str, secret: str) -> dict[str, Any]: ...

  async def list_issues(self, owner: str, repo: str, *, page: int = 1, per_page: int = 100) -> list[dict[str, Any]]: ...


def _error_text(exc: Exception) -> str:
  if isinstance(exc, SQLAlchemyError):
    # Statement and bound parameters stay in the log, not in client warnings.
    orig = getattr(exc, "orig", None)
    lines = str(orig if orig is not None else exc).strip().splitlines()
    message = lines[0].strip() if lines else ""
  else:
    message = str(exc).strip()
  if message:
    return f"{exc.__class__.__name__}: {message}"
  return exc.__class__.__name__


@dataclass
class StepResult:
  step: str
  ok: bool
  value: Any = None
  error: str | None = None

  @classmethod
  def success(cls, step: str, value: Any = None) -> "StepResult":
    return cls(step=step, ok=True, value=value)

  @classmethod
  def failure(cls, step: str, exc: Exception) -> "StepResult":
    return cls(step=step, ok=False, error=_error_text(exc))

  def warning(self) -> str | None:
    if self.ok:
      return None
    return f"{self.step} failed: {self.error}"


async def create_project_with_columns(db: AsyncSession, **fields: Any) -> tuple[Project, dict[str, Column]]:
  project = Project(gradient=random.choice(PROJECT_GRADIENTS), **fields)
  db.add(project)
  await db.flush()
  created = [Column(project_id=project.id, name=name.value, order=order, color=color) for name, order, color in DEFAULT_COLUMNS]
  db.add_all(created)
  await db.flush()
  validate_columns(c.name for c in created)
  return project, {c.name: c for c in created}


async def register_webhook(
  store: SyncStore,
  github: GitHubGateway,
  *,
  project_id: str,
  owner: str,
  repo: str,
  url: str,
) -> StepResult:
  """Register the repository hook and persist it only when GitHub accepted it.

  A failure, including GitHub's 422 for an existing hook, leaves the project
  without a webhook row; deliveries for it are then answered as not configured.
  """
  secret = new_webhook_secret()
  try:
    hook = await github.create_webhook(owner, repo, url, secret)
    hook_id = hook.get("id") if isinstance(hook, dict) else None
    if isinstance(hook_id, bool) or not isinstance(hook_id, int):
      raise ValueError("GitHub response carried no webhook id")
    events = hook.get("events")
    webhook = await store.add_webhook(
      project_id=project_id,
      webhook_id=hook_id,
      secret_encrypted=encrypt_secret(secret),
      events=list(events) if isinstance(events, list) and events else list(WEBHOOK_EVENTS),
    )
  except STEP_ERRORS as e:
    logger.warning("github_webhook_registration_failed", project_id=project_id, owner=owner, repo=repo, error=_error_text(e))
    return StepResult.failure("webhook registration", e)
  logger.info("github_webhook_registered", project_id=project_id, owner=owner, repo=repo, webhook_id=webhook.webhook_id)
  return StepResult.success("webhook registration", webhook)


def _parse_ts(value: Any) -> datetime | None:
  if not isinstance(value, str) or not value.strip():
    return None
  dt = dateparser.isoparse(value)
  return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


async def fetch_issues(github: GitHubGateway, owner: str, repo: str, *, page_size: int, max_pages: int) -> list[dict[str, Any]]:
  out: list[dict[str, Any]] = []
  for page in range(1, max(1, max_pages) + 1):
    batch = await github.list_issues(owner, repo, page=page, per_page=page_size)
    out.extend(batch)
    if len(batch) < page_size:
      break
  return out


async def import_issues(
  store: SyncStore,
  github: GitHubGateway,
  *,
  project_id: str,
  column_ids: dict[str, str],
  owner: str,
  repo: str,
  page_size: int = 100,
  max_pages: int = 10,
) -> StepResult:
  """Bulk-create Backlog tasks for every issue (open and closed) of the repository.

  Pull requests returned by the issues endpoint are skipped. Tasks keep the fetch
  order as their ``order``; an issue number repeated across pages (paging shifts
  when issues are opened mid-import) keeps its first occurrence. Callers must make
  sure the project was not imported before: issues are not re-checked against the
  database one by one.
  """
  backlog_id = column_ids.get(ColumnName.backlog.value)
  if backlog_id is None:
    logger.warning("github_import_column_missing", project_id=project_id, column=ColumnName.backlog.value)
    return StepResult.success("issue import", [])

  try:
    raw_issues = await fetch_issues(github, owner, repo, page_size=page_size, max_pages=max_pages)
    rows: list[dict[str, Any]] = []
    seen: set[int] = set()
    for raw in raw_issues:
      if raw.get("pull_request"):
        continue
      issue = GitHubIssue.model_validate(raw)
      if issue.number in seen:
        continue
      seen.add(issue.number)
      row: dict[str, Any] = {
        "project_id": project_id,
        "column_id": backlog_id,
        "title": issue.title,
        "description": issue.body or "",
        "status": TaskStatus.todo.value,
        "priority": infer_priority(label.name for label in issue.labels),
        "order": len(rows),
        "github_issue_number": issue.number,
        "github_issue_id": str(issue.id),
        "github_state": issue.state,
      }
      created_at = _parse_ts(raw.get("created_at"))
      updated_at = _parse_ts(raw.get("updated_at"))
      if created_at:
        row["created_at"] = created_at
      if updated_at:
        row["updated_at"] = updated_at
      rows.append(row)
    tasks = await store.add_tasks(rows) if rows else []
  except STEP_ERRORS as e:
    logger.warning("github_import_failed", project_id=project_id, owner=owner, repo=repo, error=str(e))
    return StepResult.failure("issue import", e)
  logger.info("github_import_completed", project_id=project_id, owner=owner, repo=repo, imported=len(tasks))
  return StepResult.success("issue import", tasks)
