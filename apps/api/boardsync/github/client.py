from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

WEBHOOK_EVENTS = ["issues", "pull_request", "issue_comment", "push"]


def normalize_base_url(base_url: str) -> str:
  b = (base_url or "").strip().rstrip("/")
  if not b:
    b = "https://api.github.com"
  if not (b.startswith("http://") or b.startswith("https://")):
    b = "https://" + b
  return b


class GitHubApiError(RuntimeError):
  def __init__(self, *, status_code: int, message: str, details: dict[str, Any] | None = None) -> None:
    super().__init__(message)
    self.status_code = status_code
    self.message = message
    self.details = details or {}


def _extract_github_error(status_code: int, payload: Any) -> tuple[str, dict[str, Any]]:
  if isinstance(payload, dict):
    msg = str(payload.get("message") or "").strip() or "GitHub request failed"
    errors = payload.get("errors")
    if isinstance(errors, list) and errors:
      parts = []
      for e in errors:
        if isinstance(e, dict):
          parts.append(str(e.get("message") or e.get("code") or "").strip())
        elif e:
          parts.append(str(e))
      parts = [p for p in parts if p]
      if parts:
        msg = f"{msg}: {'; '.join(parts)}"
    return msg, {"errors": errors or [], "documentationUrl": payload.get("documentation_url")}
  if isinstance(payload, str) and payload.strip():
    return payload.strip()[:500], {}
  return f"GitHub request failed ({status_code})", {}


async def _request_json(client: httpx.AsyncClient, method: str, path: str, **kwargs: Any) -> Any:
  r = await client.request(method, path, **kwargs)
  if r.status_code >= 400:
    try:
      payload = r.json()
    except ValueError:
      payload = (r.text or "")[:800]
    msg, details = _extract_github_error(r.status_code, payload)
    raise GitHubApiError(status_code=r.status_code, message=msg, details=details)
  if r.status_code == 204 or not r.content:
    return None
  return r.json()


@dataclass
class GitHubClient:
  token: str
  base_url: str = "https://api.github.com"
  timeout: float = 20.0
  user_agent: str = "BoardSync/1.0"
  transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)

  def httpx_client(self) -> httpx.AsyncClient:
    return httpx.AsyncClient(
      base_url=normalize_base_url(self.base_url),
      timeout=self.timeout,
      transport=self.transport,
      headers={
        "Accept": "application/vnd.github+json",
        "Authorization": f"Bearer {self.token}",
        "X-GitHub-Api-Version": "2022-11-28",
        "User-Agent": self.user_agent,
      },
    )

  async def create_webhook(self, owner: str, repo: str, url: str, secret: str) -> dict[str, Any]:
    async with self.httpx_client() as client:
      try:
        return await _request_json(
          client,
          "POST",
          f"/repos/{owner}/{repo}/hooks",
          json={
            "name": "web",
            "active": True,
            "events": list(WEBHOOK_EVENTS),
            "config": {"url": url, "content_type": "json", "secret": secret, "insecure_ssl": "0"},
          },
        )
      except GitHubApiError as e:
        if e.status_code == 422:
          raise GitHubApiError(
            status_code=422, message=f"Webhook already exists for {owner}/{repo}: {e.message}", details=e.details
          ) from e
        raise

  async def delete_webhook(self, owner: str, repo: str, hook_id: int) -> None:
    async with self.httpx_client() as client:
      await _request_json(client, "DELETE", f"/repos/{owner}/{repo}/hooks/{hook_id}")

  async def create_repository(self, name: str, *, description: str | None = None, private: bool = False) -> dict[str, Any]:
    body: dict[str, Any] = {"name": name, "private": bool(private), "auto_init": True}
    if description:
      body["description"] = description
    async with self.httpx_client() as client:
      return await _request_json(client, "POST", "/user/repos", json=body)

  async def list_user_repositories(
    self, *, type: str = "all", sort: str = "updated", page: int = 1, per_page: int = 100
  ) -> list[dict[str, Any]]:
    async with self.httpx_client() as client:
      data = await _request_json(
        client,
        "GET",
        "/user/repos",
        params={"type": type, "sort": sort, "per_page": per_page, "page": page},
      )
    return [x for x in (data or []) if isinstance(x, dict)]

  async def list_issues(self, owner: str, repo: str, *, page: int = 1, per_page: int = 100) -> list[dict[str, Any]]:
    async with self.httpx_client() as client:
      data = await _request_json(
        client,
        "GET",
        f"/repos/{owner}/{repo}/issues",
        params={"state": "all", "per_page": per_page, "page": page},
      )
    return [x for x in (data or []) if isinstance(x, dict)]

  async def list_pull_requests(self, owner: str, repo: str, *, page: int = 1, per_page: int = 100) -> list[dict[str, Any]]:
    async with self.httpx_client() as client:
      data = await _request_json(
        client,
        "GET",
        f"/repos/{owner}/{repo}/pulls",
        params={"state": "all", "per_page": per_page, "page": page},
      )
    return [x for x in (data or []) if isinstance(x, dict)]

  async def create_comment(self, owner: str, repo: str, issue_number: int, body: str) -> dict[str, Any]:
    async with self.httpx_client() as client:
      return await _request_json(client, "POST", f"/repos/{owner}/{repo}/issues/{issue_number}/comments", json={"body": body})

  async def update_issue(self, owner: str, repo: str, issue_number: int, **fields: Any) -> dict[str, Any]:
    allowed = {"title", "body", "state", "labels", "assignees"}
    body = {k: v for k, v in fields.items() if k in allowed and v is not None}
    async with self.httpx_client() as client:
      return await _request_json(client, "PATCH", f"/repos/{owner}/{repo}/issues/{issue_number}", json=body)
