from __future__ import annotations

from typing import Any, ClassVar, Union

from pydantic import BaseModel, Field


class RepositoryRef(BaseModel):
  id: int
  name: str | None = None
  full_name: str | None = None


class GitHubLabel(BaseModel):
  name: str


class GitHubUser(BaseModel):
  login: str | None = None


class GitHubIssue(BaseModel):
  id: int
  number: int
  title: str
  body: str | None = None
  state: str = "open"
  labels: list[GitHubLabel] = Field(default_factory=list)
  pull_request: dict[str, Any] | None = None


class PullRequestHead(BaseModel):
  ref: str
  sha: str | None = None


class GitHubPullRequest(BaseModel):
  id: int
  number: int
  title: str
  body: str | None = None
  state: str = "open"
  merged: bool = False
  head: PullRequestHead


class GitHubComment(BaseModel):
  id: int
  body: str = ""
  user: GitHubUser | None = None


class CommitAuthor(BaseModel):
  name: str | None = None


class PushCommit(BaseModel):
  id: str
  message: str = ""
  author: CommitAuthor = Field(default_factory=CommitAuthor)


class IssuesEvent(BaseModel):
  event: ClassVar[str] = "issues"

  action: str
  issue: GitHubIssue
  repository: RepositoryRef


class PullRequestEvent(BaseModel):
  event: ClassVar[str] = "pull_request"

  action: str
  pull_request: GitHubPullRequest
  repository: RepositoryRef


class IssueCommentEvent(BaseModel):
  event: ClassVar[str] = "issue_comment"

  action: str
  issue: GitHubIssue
  comment: GitHubComment
  repository: RepositoryRef


class PushEvent(BaseModel):
  event: ClassVar[str] = "push"

  ref: str
  deleted: bool = False
  commits: list[PushCommit] = Field(default_factory=list)
  repository: RepositoryRef

  @property
  def branch(self) -> str:
    prefix = "refs/heads/"
    return self.ref[len(prefix):] if self.ref.startswith(prefix) else self.ref


class UnrecognizedEvent(BaseModel):
  name: str
  action: str | None = None


GitHubEvent = Union[IssuesEvent, PullRequestEvent, IssueCommentEvent, PushEvent, UnrecognizedEvent]

EVENT_MODELS: dict[str, type[BaseModel]] = {
  IssuesEvent.event: IssuesEvent,
  PullRequestEvent.event: PullRequestEvent,
  IssueCommentEvent.event: IssueCommentEvent,
  PushEvent.event: PushEvent,
}


def parse_event(name: str, payload: dict[str, Any]) -> GitHubEvent:
  """Build the typed event for an ``X-GitHub-Event`` name.

  Raises ``pydantic.ValidationError`` when a recognized event does not carry the
  fields its handler needs.
  """
  model = EVENT_MODELS.get(name)
  if model is None:
    action = payload.get("action")
    return UnrecognizedEvent(name=name, action=action if isinstance(action, str) else None)
  return model.model_validate(payload)


def repository_id(payload: dict[str, Any]) -> str | None:
  repo = payload.get("repository")
  if not isinstance(repo, dict):
    return None
  rid = repo.get("id")
  if isinstance(rid, bool) or not isinstance(rid, (int, str)):
    return None
  s = str(rid).strip()
  return s or None
