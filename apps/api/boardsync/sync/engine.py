from __future__ import annotations

from datetime import datetime
from typing import Any, Awaitable, Callable

import structlog

from boardsync.github.events import IssueCommentEvent, IssuesEvent, PullRequestEvent, PushEvent
from boardsync.models import Column, Project, utcnow
from boardsync.store import SyncStore
from boardsync.sync.columns import STATUS_COLUMNS, ColumnName, TaskStatus

logger = structlog.get_logger()


def _ignored(reason: str, **extra: Any) -> dict[str, Any]:
  return {"ignored": reason, **extra}


class TaskSyncEngine:
  """Applies GitHub webhook events to projects, tasks, comments and the activity feed.

  Every handler is safe to run twice for the same delivery. Creations check for the
  external key first, updates are unconditional ``UPDATE`` statements keyed by the
  GitHub number or id, and activities carry a dedupe key.

  A repository with no project, an untracked issue or a missing target column turns
  the event into a logged no-op, never an error.
  """

  def __init__(self, store: SyncStore, *, now: Callable[[], datetime] = utcnow) -> None:
    self.store = store
    self.now = now

  async def _project(self, repo_id: int, event: str) -> Project | None:
    project = await self.store.project_by_repo_id(repo_id)
    if project is None:
      logger.info("github_sync_repository_untracked", event=event, repository_id=repo_id)
    return project

  async def _column(self, project: Project, name: ColumnName) -> Column | None:
    columns = await self.store.columns_by_name(project.id)
    col = columns.get(name.value)
    if col is None:
      logger.warning("github_sync_column_missing", project_id=project.id, column=name.value)
    return col

  async def _record(self, project: Project, *, dedupe_key: str, **fields: Any) -> bool:
    if await self.store.activity_exists(project.id, dedupe_key):
      return False
    await self.store.add_activity(project_id=project.id, user_id=project.user_id, dedupe_key=dedupe_key, **fields)
    return True

  # issues

  async def handle_issues(self, event: IssuesEvent) -> dict[str, Any]:
    project = await self._project(event.repository.id, "issues")
    if project is None:
      return _ignored("repository not tracked")
    handlers: dict[str, Callable[[Project, IssuesEvent], Awaitable[dict[str, Any]]]] = {
      "opened": self._issue_opened,
      "edited": self._issue_edited,
      "closed": self._issue_closed,
      "reopened": self._issue_reopened,
    }
    handler = handlers.get(event.action)
    if handler is None:
      return _ignored("unsupported action", action=event.action)
    return await handler(project, event)

  async def _issue_opened(self, project: Project, event: IssuesEvent) -> dict[str, Any]:
    issue = event.issue
    existing = await self.store.task_by_issue(project.id, issue.number)
    if existing is not None:
      return {"taskId": existing.id, "idempotent": True}

    backlog = await self._column(project, ColumnName.backlog)
    if backlog is None:
      return _ignored("column missing", column=ColumnName.backlog.value)

    order = await self.store.count_tasks_in_column(backlog.id)
    task = await self.store.add_task(
      project_id=project.id,
      column_id=backlog.id,
      title=issue.title,
      description=issue.body or "",
      status=TaskStatus.todo.value,
      order=order,
      github_issue_number=issue.number,
      github_issue_id=str(issue.id),
      github_state=issue.state,
    )
    await self._record(
      project,
      dedupe_key=f"issue:{issue.number}:created",
      task_id=task.id,
      type="created",
      description=f"Issue #{issue.number} created: {issue.title}",
      meta={"issueNumber": issue.number},
    )
    return {"taskId": task.id, "created": True}

  async def _issue_edited(self, project: Project, event: IssuesEvent) -> dict[str, Any]:
    issue = event.issue
    updated = await self.store.update_tasks_by_issue(
      project.id,
      issue.number,
      title=issue.title,
      description=issue.body or "",
    )
    return {"updated": updated}

  async def _issue_closed(self, project: Project, event: IssuesEvent) -> dict[str, Any]:
    done = await self._column(project, STATUS_COLUMNS[TaskStatus.done])
    if done is None:
      return _ignored("column missing", column=ColumnName.done.value)
    updated = await self.store.update_tasks_by_issue(
      project.id,
      event.issue.number,
      status=TaskStatus.done.value,
      github_state="closed",
      column_id=done.id,
      completed_at=self.now(),
    )
    return {"updated": updated}

  async def _issue_reopened(self, project: Project, event: IssuesEvent) -> dict[str, Any]:
    todo = await self._column(project, STATUS_COLUMNS[TaskStatus.todo])
    if todo is None:
      return _ignored("column missing", column=ColumnName.todo.value)
    updated = await self.store.update_tasks_by_issue(
      project.id,
      event.issue.number,
      status=TaskStatus.todo.value,
      github_state="open",
      column_id=todo.id,
      completed_at=None,
    )
    return {"updated": updated}

  # pull_request

  async def handle_pull_request(self, event: PullRequestEvent) -> dict[str, Any]:
    project = await self._project(event.repository.id, "pull_request")
    if project is None:
      return _ignored("repository not tracked")
    if event.action == "opened":
      return await self._pull_request_opened(project, event)
    if event.action == "closed":
      return await self._pull_request_closed(project, event)
    return _ignored("unsupported action", action=event.action)

  async def _pull_request_opened(self, project: Project, event: PullRequestEvent) -> dict[str, Any]:
    pr = event.pull_request
    in_review = await self._column(project, STATUS_COLUMNS[TaskStatus.inReview])
    if in_review is None:
      return _ignored("column missing", column=ColumnName.in_review.value)

    existing = await self.store.task_by_pr_or_branch(project.id, pr.number, pr.head.ref)
    if existing is not None:
      await self.store.update_task(
        existing.id,
        github_pr_number=pr.number,
        github_pr_id=str(pr.id),
        status=TaskStatus.inReview.value,
        column_id=in_review.id,
      )
      await self._record(
        project,
        dedupe_key=f"pr:{pr.number}:opened",
        task_id=existing.id,
        type="pr_opened",
        description=f"Pull request #{pr.number} opened: {pr.title}",
        meta={"prNumber": pr.number, "branch": pr.head.ref},
      )
      return {"taskId": existing.id, "linked": True}

    order = await self.store.count_tasks_in_column(in_review.id)
    task = await self.store.add_task(
      project_id=project.id,
      column_id=in_review.id,
      title=pr.title,
      description=pr.body or "",
      status=TaskStatus.inReview.value,
      order=order,
      github_pr_number=pr.number,
      github_pr_id=str(pr.id),
      github_branch=pr.head.ref,
    )
    await self._record(
      project,
      dedupe_key=f"pr:{pr.number}:opened",
      task_id=task.id,
      type="created",
      description=f"Pull request #{pr.number} created: {pr.title}",
      meta={"prNumber": pr.number, "branch": pr.head.ref},
    )
    return {"taskId": task.id, "created": True}

  async def _pull_request_closed(self, project: Project, event: PullRequestEvent) -> dict[str, Any]:
    pr = event.pull_request
    if pr.merged:
      done = await self._column(project, STATUS_COLUMNS[TaskStatus.done])
      if done is None:
        return _ignored("column missing", column=ColumnName.done.value)
      updated = await self.store.update_tasks_by_pr(
        project.id,
        pr.number,
        status=TaskStatus.done.value,
        column_id=done.id,
        completed_at=self.now(),
      )
      return {"updated": updated, "merged": True}

    in_progress = await self._column(project, STATUS_COLUMNS[TaskStatus.inProgress])
    if in_progress is None:
      return _ignored("column missing", column=ColumnName.in_progress.value)
    updated = await self.store.update_tasks_by_pr(
      project.id,
      pr.number,
      status=TaskStatus.inProgress.value,
      column_id=in_progress.id,
    )
    return {"updated": updated, "merged": False}

  # issue_comment

  async def handle_issue_comment(self, event: IssueCommentEvent) -> dict[str, Any]:
    project = await self._project(event.repository.id, "issue_comment")
    if project is None:
      return _ignored("repository not tracked")

    task = await self.store.task_by_issue(project.id, event.issue.number)
    if task is None:
      logger.info("github_sync_issue_untracked", project_id=project.id, issue_number=event.issue.number)
      return _ignored("issue not tracked")

    comment = event.comment
    github_comment_id = str(comment.id)

    if event.action == "created":
      existing = await self.store.comment_by_github_id(task.id, github_comment_id)
      if existing is not None:
        return {"commentId": existing.id, "taskId": task.id, "idempotent": True}
      # Authored as the project owner; the GitHub login is kept alongside.
      c = await self.store.add_comment(
        task_id=task.id,
        author_id=project.user_id,
        content=comment.body,
        github_comment_id=github_comment_id,
        source_author=comment.user.login if comment.user else None,
      )
      await self._record(
        project,
        dedupe_key=f"comment:{github_comment_id}:created",
        task_id=task.id,
        type="commented",
        description=f"Comment added to issue #{event.issue.number}",
        meta={"issueNumber": event.issue.number, "commentId": github_comment_id},
      )
      return {"commentId": c.id, "taskId": task.id}

    if event.action == "edited":
      updated = await self.store.update_comments_by_github_id(
        project.id,
        github_comment_id,
        content=comment.body,
        edited=True,
        edited_at=self.now(),
      )
      return {"updated": updated}

    if event.action == "deleted":
      deleted = await self.store.delete_comments_by_github_id(project.id, github_comment_id)
      return {"deleted": deleted}

    return _ignored("unsupported action", action=event.action)

  # push

  async def handle_push(self, event: PushEvent) -> dict[str, Any]:
    project = await self._project(event.repository.id, "push")
    if project is None:
      return _ignored("repository not tracked")

    branch = event.branch
    recorded = 0
    for commit in event.commits:
      summary = (commit.message or "").strip().splitlines()[0] if (commit.message or "").strip() else commit.id[:7]
      if await self._record(
        project,
        dedupe_key=f"push:{branch}:{commit.id}",
        type="push",
        description=f"Commit to {branch}: {summary}",
        meta={"branch": branch, "sha": commit.id, "author": commit.author.name},
      ):
        recorded += 1

    if event.deleted:
      return {"activities": recorded, "promoted": 0, "branchDeleted": True}

    tasks = await self.store.tasks_on_branch(project.id, branch)
    if not tasks:
      return {"activities": recorded, "promoted": 0}

    in_progress = await self._column(project, STATUS_COLUMNS[TaskStatus.inProgress])
    if in_progress is None:
      return {"activities": recorded, "promoted": 0}
    promoted = await self.store.promote_branch_tasks(
      project.id,
      branch,
      from_status=TaskStatus.todo.value,
      status=TaskStatus.inProgress.value,
      column_id=in_progress.id,
    )
    return {"activities": recorded, "promoted": promoted}
