from __future__ import annotations

from typing import Any

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.models import Activity, Column, Comment, Project, Task, Webhook


class SyncStore:
  """Persistence operations the sync engine and importer rely on.

  Multi-row changes are issued as single ``UPDATE``/``DELETE`` statements keyed by
  the external GitHub identifier, so concurrent deliveries converge instead of
  racing on a read-modify-write. Nothing here commits; the request owns the
  transaction.
  """

  def __init__(self, db: AsyncSession) -> None:
    self.db = db

  async def project_by_repo_id(self, repo_id: str | int) -> Project | None:
    res = await self.db.execute(select(Project).where(Project.github_repo_id == str(repo_id)))
    return res.scalar_one_or_none()

  async def columns_by_name(self, project_id: str) -> dict[str, Column]:
    res = await self.db.execute(select(Column).where(Column.project_id == project_id).order_by(Column.order.asc()))
    return {c.name: c for c in res.scalars().all()}

  async def webhook_for_repo(self, repo_id: str | int) -> Webhook | None:
    res = await self.db.execute(
      select(Webhook).join(Project, Project.id == Webhook.project_id).where(Project.github_repo_id == str(repo_id))
    )
    return res.scalar_one_or_none()

  async def webhook_for_project(self, project_id: str) -> Webhook | None:
    res = await self.db.execute(select(Webhook).where(Webhook.project_id == project_id))
    return res.scalar_one_or_none()

  async def add_webhook(self, *, project_id: str, webhook_id: int, secret_encrypted: str, events: list[str]) -> Webhook:
    w = Webhook(project_id=project_id, webhook_id=webhook_id, secret_encrypted=secret_encrypted, events=list(events))
    self.db.add(w)
    await self.db.flush()
    return w

  async def task_by_issue(self, project_id: str, issue_number: int) -> Task | None:
    res = await self.db.execute(
      select(Task).where(Task.project_id == project_id, Task.github_issue_number == issue_number)
    )
    return res.scalar_one_or_none()

  async def task_by_pr_or_branch(self, project_id: str, pr_number: int, branch: str | None) -> Task | None:
    # Prefer the PR number match; the branch is only a fallback key.
    res = await self.db.execute(select(Task).where(Task.project_id == project_id, Task.github_pr_number == pr_number))
    t = res.scalar_one_or_none()
    if t or not branch:
      return t
    res = await self.db.execute(
      select(Task)
      .where(Task.project_id == project_id, Task.github_branch == branch, Task.github_pr_number.is_(None))
      .order_by(Task.created_at.asc())
      .limit(1)
    )
    return res.scalar_one_or_none()

  async def count_tasks_in_column(self, column_id: str) -> int:
    res = await self.db.execute(select(func.count(Task.id)).where(Task.column_id == column_id))
    return int(res.scalar_one())

  async def add_task(self, **fields: Any) -> Task:
    t = Task(**fields)
    self.db.add(t)
    await self.db.flush()
    return t

  async def add_tasks(self, rows: list[dict[str, Any]]) -> list[Task]:
    tasks = [Task(**r) for r in rows]
    self.db.add_all(tasks)
    await self.db.flush()
    return tasks

  async def update_task(self, task_id: str, **values: Any) -> None:
    await self.db.execute(
      update(Task).where(Task.id == task_id).values(**values).execution_options(synchronize_session=False)
    )

  async def update_tasks_by_issue(self, project_id: str, issue_number: int, **values: Any) -> int:
    res = await self.db.execute(
      update(Task)
      .where(Task.project_id == project_id, Task.github_issue_number == issue_number)
      .values(**values)
      .execution_options(synchronize_session=False)
    )
    return int(res.rowcount or 0)

  async def update_tasks_by_pr(self, project_id: str, pr_number: int, **values: Any) -> int:
    res = await self.db.execute(
      update(Task)
      .where(Task.project_id == project_id, Task.github_pr_number == pr_number)
      .values(**values)
      .execution_options(synchronize_session=False)
    )
    return int(res.rowcount or 0)

  async def tasks_on_branch(self, project_id: str, branch: str) -> list[Task]:
    res = await self.db.execute(select(Task).where(Task.project_id == project_id, Task.github_branch == branch))
    return list(res.scalars().all())

  async def promote_branch_tasks(self, project_id: str, branch: str, *, from_status: str, **values: Any) -> int:
    # The status predicate lives in the UPDATE itself so tasks that moved on meanwhile are never demoted.
    res = await self.db.execute(
      update(Task)
      .where(Task.project_id == project_id, Task.github_branch == branch, Task.status == from_status)
      .values(**values)
      .execution_options(synchronize_session=False)
    )
    return int(res.rowcount or 0)

  async def comment_by_github_id(self, task_id: str, github_comment_id: str) -> Comment | None:
    res = await self.db.execute(
      select(Comment).where(Comment.task_id == task_id, Comment.github_comment_id == github_comment_id)
    )
    return res.scalar_one_or_none()

  async def add_comment(self, **fields: Any) -> Comment:
    c = Comment(**fields)
    self.db.add(c)
    await self.db.flush()
    return c

  async def update_comments_by_github_id(self, project_id: str, github_comment_id: str, **values: Any) -> int:
    res = await self.db.execute(
      update(Comment)
      .where(
        Comment.github_comment_id == github_comment_id,
        Comment.task_id.in_(select(Task.id).where(Task.project_id == project_id)),
      )
      .values(**values)
      .execution_options(synchronize_session=False)
    )
    return int(res.rowcount or 0)

  async def delete_comments_by_github_id(self, project_id: str, github_comment_id: str) -> int:
    res = await self.db.execute(
      delete(Comment).where(
        Comment.github_comment_id == github_comment_id,
        Comment.task_id.in_(select(Task.id).where(Task.project_id == project_id)),
      ).execution_options(synchronize_session=False)
    )
    return int(res.rowcount or 0)

  async def activity_exists(self, project_id: str, dedupe_key: str) -> bool:
    res = await self.db.execute(
      select(Activity.id).where(and_(Activity.project_id == project_id, Activity.dedupe_key == dedupe_key)).limit(1)
    )
    return res.scalar_one_or_none() is not None

  async def add_activity(
    self,
    *,
    project_id: str,
    type: str,
    description: str,
    task_id: str | None = None,
    user_id: str | None = None,
    meta: dict[str, Any] | None = None,
    dedupe_key: str | None = None,
  ) -> Activity:
    a = Activity(
      project_id=project_id,
      task_id=task_id,
      user_id=user_id,
      type=type,
      description=description,
      meta=dict(meta or {}),
      dedupe_key=dedupe_key,
    )
    self.db.add(a)
    await self.db.flush()
    return a

