from __future__ import annotations

import json

import httpx
import pytest

from boardsync.github.client import GitHubApiError, GitHubClient, normalize_base_url


def _client(handler) -> GitHubClient:
  return GitHubClient(token="ghp_test", base_url="api.github.com", transport=httpx.MockTransport(handler))


def test_normalize_base_url():
  assert normalize_base_url("") == "https://api.github.com"
  assert normalize_base_url("github.example.com/api/v3/") == "https://github.example.com/api/v3"
  assert normalize_base_url("http://localhost:9000") == "http://localhost:9000"


@pytest.mark.anyio
async def test_create_webhook_sends_events_and_secret():
  seen: list[httpx.Request] = []

  def handler(request: httpx.Request) -> httpx.Response:
    seen.append(request)
    return httpx.Response(201, json={"id": 77, "events": ["issues", "pull_request", "issue_comment", "push"]})

  hook = await _client(handler).create_webhook("octocat", "widgets", "https://boards.example/webhooks/github", "s3cret")
  assert hook["id"] == 77

  [req] = seen
  assert req.method == "POST"
  assert req.url.path == "/repos/octocat/widgets/hooks"
  assert req.headers["authorization"] == "Bearer ghp_test"
  assert req.headers["accept"] == "application/vnd.github+json"
  body = json.loads(req.content)
  assert body["events"] == ["issues", "pull_request", "issue_comment", "push"]
  assert body["config"] == {
    "url": "https://boards.example/webhooks/github",
    "content_type": "json",
    "secret": "s3cret",
    "insecure_ssl": "0",
  }


@pytest.mark.anyio
async def test_create_webhook_conflict_is_reported():
  def handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
      422,
      json={"message": "Validation Failed", "errors": [{"message": "Hook already exists on this repository"}]},
    )

  with pytest.raises(GitHubApiError) as exc:
    await _client(handler).create_webhook("octocat", "widgets", "https://x/webhooks/github", "s")
  assert exc.value.status_code == 422
  assert exc.value.message.startswith("Webhook already exists for octocat/widgets")
  assert "Hook already exists on this repository" in exc.value.message


@pytest.mark.anyio
async def test_list_issues_requests_all_states():
  def handler(request: httpx.Request) -> httpx.Response:
    assert request.url.path == "/repos/octocat/widgets/issues"
    assert request.url.params["state"] == "all"
    assert request.url.params["page"] == "2"
    assert request.url.params["per_page"] == "50"
    return httpx.Response(200, json=[{"number": 1}, "junk", {"number": 2}])

  issues = await _client(handler).list_issues("octocat", "widgets", page=2, per_page=50)
  assert issues == [{"number": 1}, {"number": 2}]


@pytest.mark.anyio
async def test_error_payload_is_surfaced():
  def handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(404, json={"message": "Not Found", "documentation_url": "https://docs.github.com/rest"})

  with pytest.raises(GitHubApiError) as exc:
    await _client(handler).list_pull_requests("octocat", "missing")
  assert exc.value.status_code == 404
  assert exc.value.message == "Not Found"
  assert exc.value.details["documentationUrl"] == "https://docs.github.com/rest"


@pytest.mark.anyio
async def test_delete_webhook_accepts_no_content():
  def handler(request: httpx.Request) -> httpx.Response:
    assert request.method == "DELETE"
    assert request.url.path == "/repos/octocat/widgets/hooks/77"
    return httpx.Response(204)

  assert await _client(handler).delete_webhook("octocat", "widgets", 77) is None


@pytest.mark.anyio
async def test_update_issue_drops_unknown_fields():
  def handler(request: httpx.Request) -> httpx.Response:
    assert request.method == "PATCH"
    return httpx.Response(200, json=json.loads(request.content))

  out = await _client(handler).update_issue("octocat", "widgets", 3, state="closed", title=None, milestone=4)
  assert out == {"state": "closed"}


@pytest.mark.anyio
async def test_create_repository_and_comment():
  calls: list[tuple[str, str, dict]] = []

  def handler(request: httpx.Request) -> httpx.Response:
    calls.append((request.method, request.url.path, json.loads(request.content)))
    if request.url.path == "/user/repos":
      return httpx.Response(201, json={"id": 1, "name": "side-quest", "owner": {"login": "octocat"}})
    return httpx.Response(201, json={"id": 99, "body": "hi"})

  gh = _client(handler)
  repo = await gh.create_repository("side-quest", description="Hacks", private=True)
  comment = await gh.create_comment("octocat", "side-quest", 5, "hi")
  assert repo["name"] == "side-quest"
  assert comment["id"] == 99
  assert calls == [
    ("POST", "/user/repos", {"name": "side-quest", "private": True, "auto_init": True, "description": "Hacks"}),
    ("POST", "/repos/octocat/side-quest/issues/5/comments", {"body": "hi"}),
  ]


@pytest.mark.anyio
async def test_list_user_repositories_sorts_by_update():
  def handler(request: httpx.Request) -> httpx.Response:
    assert request.method == "GET"
    assert request.url.path == "/user/repos"
    assert request.url.params["type"] == "private"
    assert request.url.params["sort"] == "updated"
    assert request.url.params["per_page"] == "100"
    return httpx.Response(200, json=[{"id": 1, "name": "widgets"}, None])

  repos = await _client(handler).list_user_repositories(type="private")
  assert repos == [{"id": 1, "name": "widgets"}]
