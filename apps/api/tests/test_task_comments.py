from __future__ import annotations

import pytest
from sqlalchemy import select

from boardsync.db import SessionLocal
from boardsync.models import Activity, Task
from conftest import deliver, import_repo, issue, upstream_error


async def _issue_task(project_id: str, number: int) -> Task:
  async with SessionLocal() as db:
    res = await db.execute(select(Task).where(Task.project_id == project_id, Task.github_issue_number == number))
    return res.scalar_one()


@pytest.mark.anyio
async def test_local_comment_is_mirrored_and_echo_is_deduplicated(client, github):
  github.issues = [issue(8, "Needs docs")]
  imported = await import_repo(client)
  task = await _issue_task(imported["projectId"], 8)

  res = await client.post(f"/tasks/{task.id}/comments", json={"content": "On it"})
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["warnings"] == []
  [mirrored] = github.comments
  assert mirrored["issue_number"] == 8
  assert mirrored["body"] == "On it"
  assert body["comment"]["githubCommentId"] == str(mirrored["id"])

  echo = await deliver(
    client,
    "issue_comment",
    {
      "action": "created",
      "issue": issue(8, "Needs docs"),
      "comment": {"id": mirrored["id"], "body": "On it", "user": {"login": "octocat"}},
      "repository": {"id": 4242},
    },
    secret=github.secret,
  )
  assert echo.status_code == 200, echo.text
  assert echo.json()["result"]["idempotent"] is True

  listed = await client.get(f"/tasks/{task.id}/comments")
  assert [c["content"] for c in listed.json()] == ["On it"]
  async with SessionLocal() as db:
    res = await db.execute(select(Activity).where(Activity.type == "commented"))
    assert len(res.scalars().all()) == 1


@pytest.mark.anyio
async def test_mirror_failure_keeps_local_comment(client, github):
  github.issues = [issue(8, "Needs docs")]
  imported = await import_repo(client)
  task = await _issue_task(imported["projectId"], 8)
  github.fail_comment = upstream_error(403, "Resource not accessible by integration")

  res = await client.post(f"/tasks/{task.id}/comments", json={"content": "Local only"})
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["comment"]["githubCommentId"] is None
  assert body["warnings"] == ["GitHub mirror failed: Resource not accessible by integration"]


@pytest.mark.anyio
async def test_comment_on_standard_project_task_is_local(client, github):
  created = (await client.post("/projects", json={"name": "Offline"})).json()
  project_id = created["project"]["id"]
  detail = (await client.get(f"/projects/{project_id}")).json()
  backlog_id = next(c["id"] for c in detail["columns"] if c["name"] == "Backlog")
  async with SessionLocal() as db:
    t = Task(project_id=project_id, column_id=backlog_id, title="Plan")
    db.add(t)
    await db.commit()
    task_id = t.id

  res = await client.post(f"/tasks/{task_id}/comments", json={"content": "Note to self"})
  assert res.status_code == 200, res.text
  assert github.comments == []
  assert res.json()["comment"]["githubCommentId"] is None


@pytest.mark.anyio
async def test_comment_validation_and_ownership(client, github):
  github.issues = [issue(1, "One")]
  imported = await import_repo(client)
  task = await _issue_task(imported["projectId"], 1)

  empty = await client.post(f"/tasks/{task.id}/comments", json={"content": "   "})
  assert empty.status_code == 400, empty.text
  missing = await client.get("/tasks/does-not-exist/comments")
  assert missing.status_code == 404, missing.text
