from __future__ import annotations

from typing import Any, Literal

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.config import settings
from boardsync.deps import get_current_user, get_db, get_github_client
from boardsync.github.client import GitHubApiError, GitHubClient
from boardsync.models import User
from boardsync.schemas import RepoImportIn, RepoImportOut, RepoOut
from boardsync.store import SyncStore
from boardsync.sync.importer import create_project_with_columns, import_issues, register_webhook

router = APIRouter(prefix="/github", tags=["github"])
logger = structlog.get_logger()


def _already_imported(project_id: str) -> HTTPException:
  return HTTPException(
    status_code=status.HTTP_400_BAD_REQUEST,
    detail={"message": "Repository already imported", "projectId": project_id},
  )


def _repo_out(r: dict[str, Any]) -> RepoOut:
  owner = r.get("owner") if isinstance(r.get("owner"), dict) else {}
  return RepoOut(
    id=r["id"],
    name=r["name"],
    fullName=r.get("full_name") or f"{owner.get('login', '')}/{r['name']}",
    description=r.get("description"),
    url=r.get("html_url"),
    private=bool(r.get("private")),
    owner=owner.get("login") or "",
    stargazersCount=r.get("stargazers_count") or 0,
    forksCount=r.get("forks_count") or 0,
    language=r.get("language"),
    defaultBranch=r.get("default_branch"),
    createdAt=r.get("created_at"),
    updatedAt=r.get("updated_at"),
  )


@router.get("/repos", response_model=list[RepoOut])
async def list_repos(
  search: str = "",
  type: Literal["all", "public", "private"] = Query(default="all"),
  github: GitHubClient = Depends(get_github_client),
) -> list[RepoOut]:
  """Repositories of the token owner, most recently updated first.

  ``search`` matches the name or description, case-insensitively.
  """
  try:
    repos = await github.list_user_repositories(type=type, sort="updated", per_page=100)
  except (GitHubApiError, httpx.HTTPError) as e:
    logger.warning("github_repos_list_failed", error=str(e))
    raise HTTPException(
      status_code=status.HTTP_502_BAD_GATEWAY,
      detail={"message": "Failed to fetch repositories", "error": str(e) or e.__class__.__name__},
    ) from e
  needle = search.strip().lower()
  if needle:
    repos = [
      r for r in repos if needle in str(r.get("name") or "").lower() or needle in str(r.get("description") or "").lower()
    ]
  return [_repo_out(r) for r in repos]


@router.post("/import-repo", response_model=RepoImportOut)
async def import_repo(
  payload: RepoImportIn,
  user: User = Depends(get_current_user),
  github: GitHubClient = Depends(get_github_client),
  db: AsyncSession = Depends(get_db),
) -> RepoImportOut:
  repo_id = str(payload.repoId).strip()
  if not repo_id:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="repoId is required")
  owner = payload.owner.strip()
  repo = payload.repo.strip()

  store = SyncStore(db)
  existing = await store.project_by_repo_id(repo_id)
  if existing:
    raise _already_imported(existing.id)

  project, columns = await create_project_with_columns(
    db,
    name=payload.repoName.strip(),
    description=payload.repoDescription,
    github_repo_id=repo_id,
    github_repo_url=payload.repoUrl or f"https://github.com/{owner}/{repo}",
    github_owner=owner,
    github_repo=repo,
    user_id=user.id,
  )
  # Plain ids survive the rollbacks below; ORM instances would be expired.
  project_id = project.id
  column_ids = {name: c.id for name, c in columns.items()}
  try:
    await db.commit()
  except IntegrityError:
    await db.rollback()
    existing = await store.project_by_repo_id(repo_id)
    if existing:
      raise _already_imported(existing.id)
    raise
  logger.info("github_repo_project_created", project_id=project_id, owner=owner, repo=repo, repository_id=repo_id)

  warnings: list[str] = []
  hook = await register_webhook(store, github, project_id=project_id, owner=owner, repo=repo, url=settings.webhook_url())
  if hook.ok:
    await db.commit()
  else:
    await db.rollback()
    warnings.append(hook.warning())

  imported = await import_issues(
    store,
    github,
    project_id=project_id,
    column_ids=column_ids,
    owner=owner,
    repo=repo,
    page_size=settings.github_import_page_size,
    max_pages=settings.github_import_max_pages,
  )
  if imported.ok:
    await db.commit()
  else:
    await db.rollback()
    warnings.append(imported.warning())

  return RepoImportOut(
    projectId=project_id,
    message="Repository imported successfully",
    importedCount=len(imported.value or []),
    webhookConfigured=hook.ok,
    warnings=warnings,
  )
