from __future__ import annotations

import json
import os
import sys
import tempfile
import uuid
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

# Must be set before boardsync.config is imported.
os.environ.setdefault(
  "DATABASE_URL",
  f"sqlite+aiosqlite:///{Path(tempfile.gettempdir()) / 'boardsync_test.db'}",
)

from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from boardsync.config import settings
from boardsync.db import SessionLocal, engine
from boardsync.deps import get_optional_github_client
from boardsync.github.client import WEBHOOK_EVENTS, GitHubApiError
from boardsync.github.signatures import compute_signature
from boardsync.main import app
from boardsync.metrics import delivery_metrics
from boardsync.models import ApiToken, Base, Project, User
from boardsync.rate_limit import limiter
from boardsync.security import api_token_hash

OWNER_EMAIL = "owner@boardsync.local"
OWNER_TOKEN = "bst_test-owner-token"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


async def _reset_db() -> None:
  limiter.reset_prefix("webhook:")
  delivery_metrics.reset()
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.drop_all)
    await conn.run_sync(Base.metadata.create_all)
  async with SessionLocal() as db:
    owner = User(email=OWNER_EMAIL, name="Owner", github_login="octocat")
    db.add(owner)
    await db.flush()
    db.add(ApiToken(user_id=owner.id, name="tests", token_hash=api_token_hash(OWNER_TOKEN)))
    await db.commit()
  await engine.dispose()


@pytest.fixture(autouse=True)
async def _clean_between_tests(anyio_backend) -> None:
  db_name = settings.database_url.rsplit("/", 1)[-1]
  if "test" not in db_name:
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. boardsync_test)."
    )
  await _reset_db()
  yield
  app.dependency_overrides.clear()


@pytest.fixture
async def client() -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(
    transport=transport,
    base_url="http://localhost",
    headers={"Authorization": f"Bearer {OWNER_TOKEN}"},
  ) as c:
    yield c


class FakeGitHub:
  """In-memory stand-in for GitHubClient; set ``fail_*`` to make a call raise."""

  def __init__(self) -> None:
    self.issues: list[dict[str, Any]] = []
    self.hooks: list[dict[str, Any]] = []
    self.deleted_hooks: list[int] = []
    self.comments: list[dict[str, Any]] = []
    self.repos: list[dict[str, Any]] = []
    self.issue_pages_requested: list[int] = []
    self.repo_listings: list[dict[str, Any]] = []
    self.fail_webhook: Exception | None = None
    self.fail_issues: Exception | None = None
    self.fail_repo: Exception | None = None
    self.fail_comment: Exception | None = None
    self.fail_repo_listing: Exception | None = None
    self._next_id = 9000

  def _id(self) -> int:
    self._next_id += 1
    return self._next_id

  async def create_webhook(self, owner: str, repo: str, url: str, secret: str) -> dict[str, Any]:
    if self.fail_webhook:
      raise self.fail_webhook
    hook = {"id": self._id(), "events": list(WEBHOOK_EVENTS), "config": {"url": url, "secret": secret}, "repo": f"{owner}/{repo}"}
    self.hooks.append(hook)
    return hook

  async def delete_webhook(self, owner: str, repo: str, hook_id: int) -> None:
    self.deleted_hooks.append(hook_id)

  async def create_repository(self, name: str, *, description: str | None = None, private: bool = False) -> dict[str, Any]:
    if self.fail_repo:
      raise self.fail_repo
    repo = {
      "id": self._id(),
      "name": name,
      "private": private,
      "description": description,
      "html_url": f"https://github.com/octocat/{name}",
      "owner": {"login": "octocat"},
    }
    self.repos.append(repo)
    return repo

  async def list_user_repositories(
    self, *, type: str = "all", sort: str = "updated", page: int = 1, per_page: int = 100
  ) -> list[dict[str, Any]]:
    if self.fail_repo_listing:
      raise self.fail_repo_listing
    self.repo_listings.append({"type": type, "sort": sort})
    if type == "all":
      return list(self.repos)
    return [r for r in self.repos if bool(r.get("private")) == (type == "private")]

  async def list_issues(self, owner: str, repo: str, *, page: int = 1, per_page: int = 100) -> list[dict[str, Any]]:
    if self.fail_issues:
      raise self.fail_issues
    self.issue_pages_requested.append(page)
    start = (page - 1) * per_page
    return self.issues[start : start + per_page]

  async def create_comment(self, owner: str, repo: str, issue_number: int, body: str) -> dict[str, Any]:
    if self.fail_comment:
      raise self.fail_comment
    comment = {"id": self._id(), "body": body, "issue_number": issue_number}
    self.comments.append(comment)
    return comment

  @property
  def secret(self) -> str:
    return self.hooks[-1]["config"]["secret"]


@pytest.fixture
def github() -> FakeGitHub:
  fake = FakeGitHub()
  app.dependency_overrides[get_optional_github_client] = lambda: fake
  return fake


def upstream_error(status_code: int = 500, message: str = "Server Error") -> GitHubApiError:
  return GitHubApiError(status_code=status_code, message=message)


def issue(number: int, title: str, *, state: str = "open", labels: list[str] | None = None, body: str | None = None, **extra: Any) -> dict[str, Any]:
  return {
    "id": 100000 + number,
    "number": number,
    "title": title,
    "body": body,
    "state": state,
    "labels": [{"name": n} for n in labels or []],
    **extra,
  }


async def import_repo(
  client: AsyncClient,
  *,
  repo_id: int = 4242,
  owner: str = "octocat",
  repo: str = "widgets",
) -> dict[str, Any]:
  res = await client.post(
    "/github/import-repo",
    json={"repoId": repo_id, "repoName": repo, "repoDescription": "Widgets", "owner": owner, "repo": repo},
  )
  assert res.status_code == 200, res.text
  return res.json()


async def deliver(
  client: AsyncClient,
  event: str,
  payload: dict[str, Any],
  *,
  secret: str,
  signature: str | None = None,
  body: bytes | None = None,
) -> Any:
  raw = body if body is not None else json.dumps(payload).encode("utf-8")
  return await client.post(
    "/webhooks/github",
    content=raw,
    headers={
      "Content-Type": "application/json",
      "X-GitHub-Event": event,
      "X-GitHub-Delivery": str(uuid.uuid4()),
      "X-Hub-Signature-256": signature if signature is not None else compute_signature(secret, raw),
    },
  )


async def owner_id() -> str:
  async with SessionLocal() as db:
    res = await db.execute(select(User.id).where(User.email == OWNER_EMAIL))
    return res.scalar_one()


async def project_by_repo(repo_id: int) -> Project:
  async with SessionLocal() as db:
    res = await db.execute(select(Project).where(Project.github_repo_id == str(repo_id)))
    return res.scalar_one()
