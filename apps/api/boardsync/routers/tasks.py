from __future__ import annotations

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.deps import get_current_user, get_db, get_optional_github_client
from boardsync.github.client import GitHubApiError, GitHubClient
from boardsync.models import Comment, Project, Task, User
from boardsync.schemas import CommentCreateIn, CommentCreateOut, CommentOut
from boardsync.store import SyncStore

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = structlog.get_logger()


def _comment_out(c: Comment) -> CommentOut:
  return CommentOut(
    id=c.id,
    taskId=c.task_id,
    authorId=c.author_id,
    content=c.content,
    githubCommentId=c.github_comment_id,
    sourceAuthor=c.source_author,
    edited=bool(c.edited),
    editedAt=c.edited_at,
    createdAt=c.created_at,
  )


async def _owned_task(task_id: str, user: User, db: AsyncSession) -> tuple[Task, Project]:
  res = await db.execute(
    select(Task, Project)
    .join(Project, Project.id == Task.project_id)
    .where(Task.id == task_id, Project.user_id == user.id)
  )
  row = res.first()
  if not row:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
  return row[0], row[1]


@router.get("/{task_id}/comments", response_model=list[CommentOut])
async def list_comments(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[CommentOut]:
  task, _ = await _owned_task(task_id, user, db)
  res = await db.execute(select(Comment).where(Comment.task_id == task.id).order_by(Comment.created_at.asc()))
  return [_comment_out(c) for c in res.scalars().all()]


@router.post("/{task_id}/comments", response_model=CommentCreateOut)
async def add_comment(
  task_id: str,
  payload: CommentCreateIn,
  user: User = Depends(get_current_user),
  github: GitHubClient | None = Depends(get_optional_github_client),
  db: AsyncSession = Depends(get_db),
) -> CommentCreateOut:
  task, project = await _owned_task(task_id, user, db)
  task_id, project_id, issue_number = task.id, project.id, task.github_issue_number
  content = payload.content.strip()
  if not content:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Comment content is required")

  warnings: list[str] = []
  github_comment_id: str | None = None
  if issue_number is not None and project.github_owner and project.github_repo:
    if github is None:
      warnings.append("GitHub mirror skipped: no GitHub access token available")
    else:
      try:
        mirrored = await github.create_comment(project.github_owner, project.github_repo, issue_number, content)
        github_comment_id = str(mirrored["id"])
      except (GitHubApiError, httpx.HTTPError, KeyError, TypeError) as e:
        logger.warning("github_comment_mirror_failed", task_id=task_id, issue_number=issue_number, error=str(e))
        warnings.append(f"GitHub mirror failed: {e}")

  store = SyncStore(db)
  try:
    c = await store.add_comment(task_id=task_id, author_id=user.id, content=content, github_comment_id=github_comment_id)
    await store.add_activity(
      project_id=project_id,
      task_id=task_id,
      user_id=user.id,
      type="commented",
      description=f"Comment added to issue #{issue_number}" if issue_number is not None else "Comment added",
      meta={"issueNumber": issue_number, "commentId": github_comment_id} if github_comment_id else {},
      dedupe_key=f"comment:{github_comment_id}:created" if github_comment_id else None,
    )
    await db.commit()
  except IntegrityError:
    # The webhook echo of this very comment was stored first.
    await db.rollback()
    if github_comment_id is None:
      raise
    c = await store.comment_by_github_id(task_id, github_comment_id)
    if c is None:
      raise
  return CommentCreateOut(comment=_comment_out(c), warnings=warnings)
