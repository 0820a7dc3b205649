from __future__ import annotations

import re

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.config import settings
from boardsync.deps import get_current_user, get_db, get_optional_github_client, get_owned_project
from boardsync.github.client import GitHubApiError, GitHubClient
from boardsync.models import Activity, Column, Comment, Project, Task, User, Webhook
from boardsync.schemas import (
  ActivityOut,
  ColumnOut,
  ProjectCreateIn,
  ProjectCreateOut,
  ProjectDetailOut,
  ProjectOut,
  TaskOut,
  WebhookOut,
)
from boardsync.store import SyncStore
from boardsync.sync.columns import ColumnName, TaskStatus
from boardsync.sync.importer import create_project_with_columns, register_webhook

router = APIRouter(prefix="/projects", tags=["projects"])
logger = structlog.get_logger()

README_TASK_TITLE = "Setup project README"
README_TASK_DESCRIPTION = "Create a comprehensive README.md file with project documentation"


def _initials(name: str) -> str:
  return "".join(w[0] for w in name.split()).upper()[:2]


def _project_out(p: Project, *, webhook_configured: bool = False, tasks_count: int = 0, columns_count: int = 0) -> ProjectOut:
  return ProjectOut(
    id=p.id,
    name=p.name,
    description=p.description,
    gradient=p.gradient,
    initials=_initials(p.name),
    type="github" if p.github_repo_id else "standard",
    githubRepoId=p.github_repo_id,
    githubUrl=p.github_repo_url,
    githubOwner=p.github_owner,
    githubRepo=p.github_repo,
    webhookConfigured=webhook_configured,
    tasksCount=tasks_count,
    columnsCount=columns_count,
    createdAt=p.created_at,
    updatedAt=p.updated_at,
  )


def _task_out(t: Task) -> TaskOut:
  return TaskOut(
    id=t.id,
    projectId=t.project_id,
    columnId=t.column_id,
    title=t.title,
    description=t.description,
    status=t.status,
    priority=t.priority,
    order=t.order,
    githubIssueNumber=t.github_issue_number,
    githubIssueId=t.github_issue_id,
    githubState=t.github_state,
    githubPrNumber=t.github_pr_number,
    githubPrId=t.github_pr_id,
    githubBranch=t.github_branch,
    completedAt=t.completed_at,
    createdAt=t.created_at,
    updatedAt=t.updated_at,
  )


def _activity_out(a: Activity) -> ActivityOut:
  return ActivityOut(
    id=a.id,
    projectId=a.project_id,
    taskId=a.task_id,
    type=a.type,
    description=a.description,
    metadata=dict(a.meta or {}),
    createdAt=a.created_at,
  )


async def _summaries(db: AsyncSession, projects: list[Project]) -> list[ProjectOut]:
  ids = [p.id for p in projects]
  if not ids:
    return []
  tres = await db.execute(select(Task.project_id, func.count()).where(Task.project_id.in_(ids)).group_by(Task.project_id))
  task_counts = {pid: n for pid, n in tres.all()}
  cres = await db.execute(select(Column.project_id, func.count()).where(Column.project_id.in_(ids)).group_by(Column.project_id))
  column_counts = {pid: n for pid, n in cres.all()}
  wres = await db.execute(select(Webhook.project_id).where(Webhook.project_id.in_(ids)))
  hooked = set(wres.scalars().all())
  return [
    _project_out(
      p,
      webhook_configured=p.id in hooked,
      tasks_count=task_counts.get(p.id, 0),
      columns_count=column_counts.get(p.id, 0),
    )
    for p in projects
  ]


async def _summary(db: AsyncSession, project_id: str) -> ProjectOut:
  res = await db.execute(select(Project).where(Project.id == project_id))
  return (await _summaries(db, [res.scalar_one()]))[0]


@router.get("", response_model=list[ProjectOut])
async def list_projects(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[ProjectOut]:
  res = await db.execute(select(Project).where(Project.user_id == user.id).order_by(Project.updated_at.desc()))
  return await _summaries(db, list(res.scalars().all()))


@router.post("", response_model=ProjectCreateOut)
async def create_project(
  payload: ProjectCreateIn,
  user: User = Depends(get_current_user),
  github: GitHubClient | None = Depends(get_optional_github_client),
  db: AsyncSession = Depends(get_db),
) -> ProjectCreateOut:
  name = (payload.name or "").strip()
  if not name:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Project name is required")

  repo_fields: dict[str, str | None] = {}
  if payload.createGithubRepo:
    if github is None:
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No GitHub access token available")
    repo_name = re.sub(r"\s+", "-", name).lower()
    try:
      repo = await github.create_repository(repo_name, description=payload.description, private=payload.isPrivate)
    except (GitHubApiError, httpx.HTTPError) as e:
      logger.warning("github_repo_create_failed", name=repo_name, error=str(e))
      raise HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={"message": "Failed to create GitHub repository", "error": str(e)},
      ) from e
    repo_fields = {
      "github_repo_id": str(repo["id"]),
      "github_repo_url": repo.get("html_url"),
      "github_owner": (repo.get("owner") or {}).get("login"),
      "github_repo": repo.get("name") or repo_name,
    }

  project, columns = await create_project_with_columns(
    db,
    name=name,
    description=payload.description or None,
    user_id=user.id,
    **repo_fields,
  )
  project_id = project.id
  store = SyncStore(db)
  backlog = columns.get(ColumnName.backlog.value)
  if repo_fields and backlog is not None:
    await store.add_task(
      project_id=project_id,
      column_id=backlog.id,
      title=README_TASK_TITLE,
      description=README_TASK_DESCRIPTION,
      status=TaskStatus.todo.value,
      priority="medium",
      order=0,
    )
  await db.commit()
  logger.info("project_created", project_id=project_id, github=bool(repo_fields))

  warnings: list[str] = []
  if repo_fields and github is not None:
    hook = await register_webhook(
      store,
      github,
      project_id=project_id,
      owner=repo_fields["github_owner"] or "",
      repo=repo_fields["github_repo"] or "",
      url=settings.webhook_url(),
    )
    if hook.ok:
      await db.commit()
    else:
      await db.rollback()
      warnings.append(hook.warning())

  message = "Project and GitHub repository created successfully" if repo_fields else "Project created successfully"
  return ProjectCreateOut(project=await _summary(db, project_id), message=message, warnings=warnings)


@router.get("/{project_id}", response_model=ProjectDetailOut)
async def get_project(project_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> ProjectDetailOut:
  p = await get_owned_project(project_id, user, db)
  cres = await db.execute(select(Column).where(Column.project_id == p.id).order_by(Column.order.asc()))
  columns = cres.scalars().all()
  tres = await db.execute(select(Task).where(Task.project_id == p.id).order_by(Task.order.asc(), Task.created_at.asc()))
  by_column: dict[str, list[TaskOut]] = {}
  for t in tres.scalars().all():
    by_column.setdefault(t.column_id, []).append(_task_out(t))
  return ProjectDetailOut(
    project=(await _summaries(db, [p]))[0],
    columns=[ColumnOut(id=c.id, name=c.name, order=c.order, color=c.color, tasks=by_column.get(c.id, [])) for c in columns],
  )


@router.delete("/{project_id}")
async def delete_project(
  project_id: str,
  user: User = Depends(get_current_user),
  github: GitHubClient | None = Depends(get_optional_github_client),
  db: AsyncSession = Depends(get_db),
) -> dict:
  p = await get_owned_project(project_id, user, db)
  owner, repo = p.github_owner, p.github_repo
  webhook = await SyncStore(db).webhook_for_project(p.id)

  warnings: list[str] = []
  if webhook and owner and repo:
    if github is None:
      warnings.append("webhook removal skipped: no GitHub access token available")
    else:
      try:
        await github.delete_webhook(owner, repo, webhook.webhook_id)
      except (GitHubApiError, httpx.HTTPError) as e:
        logger.warning("github_webhook_delete_failed", project_id=p.id, owner=owner, repo=repo, error=str(e))
        warnings.append(f"webhook removal failed: {e}")

  task_ids = select(Task.id).where(Task.project_id == p.id)
  await db.execute(delete(Comment).where(Comment.task_id.in_(task_ids)).execution_options(synchronize_session=False))
  await db.execute(delete(Activity).where(Activity.project_id == p.id).execution_options(synchronize_session=False))
  await db.execute(delete(Task).where(Task.project_id == p.id).execution_options(synchronize_session=False))
  await db.execute(delete(Column).where(Column.project_id == p.id).execution_options(synchronize_session=False))
  await db.execute(delete(Webhook).where(Webhook.project_id == p.id).execution_options(synchronize_session=False))
  await db.execute(delete(Project).where(Project.id == p.id).execution_options(synchronize_session=False))
  await db.commit()
  logger.info("project_deleted", project_id=project_id)
  return {"ok": True, "warnings": warnings}


@router.post("/{project_id}/webhook", response_model=WebhookOut)
async def configure_webhook(
  project_id: str,
  user: User = Depends(get_current_user),
  github: GitHubClient | None = Depends(get_optional_github_client),
  db: AsyncSession = Depends(get_db),
) -> WebhookOut:
  p = await get_owned_project(project_id, user, db)
  if not p.github_owner or not p.github_repo:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Project is not linked to a GitHub repository")
  store = SyncStore(db)
  if await store.webhook_for_project(p.id):
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Webhook already configured")
  if github is None:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No GitHub access token available")

  hook = await register_webhook(store, github, project_id=p.id, owner=p.github_owner, repo=p.github_repo, url=settings.webhook_url())
  if not hook.ok:
    await db.rollback()
    raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=hook.warning())
  w: Webhook = hook.value
  out = WebhookOut(projectId=w.project_id, webhookId=w.webhook_id, events=list(w.events or []), createdAt=w.created_at)
  await db.commit()
  return out


@router.get("/{project_id}/activities", response_model=list[ActivityOut])
async def list_activities(
  project_id: str,
  limit: int = Query(default=50, ge=1, le=200),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[ActivityOut]:
  p = await get_owned_project(project_id, user, db)
  res = await db.execute(
    select(Activity).where(Activity.project_id == p.id).order_by(Activity.created_at.desc()).limit(limit)
  )
  return [_activity_out(a) for a in res.scalars().all()]
