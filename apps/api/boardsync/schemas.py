from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class WebhookProcessedOut(BaseModel):
  message: str
  event: str | None = None
  deliveryId: str | None = None
  result: dict[str, Any] | None = None


class RepoImportIn(BaseModel):
  repoId: int | str
  repoName: str = Field(min_length=1, max_length=200)
  repoDescription: str | None = None
  repoUrl: str | None = None
  owner: str = Field(min_length=1, max_length=100)
  repo: str = Field(min_length=1, max_length=100)


class RepoOut(BaseModel):
  id: int
  name: str
  fullName: str
  description: str | None = None
  url: str | None = None
  private: bool = False
  owner: str
  stargazersCount: int = 0
  forksCount: int = 0
  language: str | None = None
  defaultBranch: str | None = None
  createdAt: datetime | None = None
  updatedAt: datetime | None = None


class RepoImportOut(BaseModel):
  projectId: str
  message: str
  importedCount: int = 0
  webhookConfigured: bool = False
  warnings: list[str] = Field(default_factory=list)


class ProjectCreateIn(BaseModel):
  name: str = ""
  description: str | None = None
  isPrivate: bool = False
  createGithubRepo: bool = False


class ProjectOut(BaseModel):
  id: str
  name: str
  description: str | None = None
  gradient: str | None = None
  initials: str
  type: Literal["github", "standard"]
  githubRepoId: str | None = None
  githubUrl: str | None = None
  githubOwner: str | None = None
  githubRepo: str | None = None
  webhookConfigured: bool = False
  tasksCount: int = 0
  columnsCount: int = 0
  createdAt: datetime
  updatedAt: datetime


class ProjectCreateOut(BaseModel):
  project: ProjectOut
  message: str
  warnings: list[str] = Field(default_factory=list)


class TaskOut(BaseModel):
  id: str
  projectId: str
  columnId: str
  title: str
  description: str
  status: str
  priority: str | None = None
  order: int
  githubIssueNumber: int | None = None
  githubIssueId: str | None = None
  githubState: str | None = None
  githubPrNumber: int | None = None
  githubPrId: str | None = None
  githubBranch: str | None = None
  completedAt: datetime | None = None
  createdAt: datetime
  updatedAt: datetime


class ColumnOut(BaseModel):
  id: str
  name: str
  order: int
  color: str | None = None
  tasks: list[TaskOut] = Field(default_factory=list)


class ProjectDetailOut(BaseModel):
  project: ProjectOut
  columns: list[ColumnOut]


class CommentOut(BaseModel):
  id: str
  taskId: str
  authorId: str
  content: str
  githubCommentId: str | None = None
  sourceAuthor: str | None = None
  edited: bool = False
  editedAt: datetime | None = None
  createdAt: datetime


class CommentCreateIn(BaseModel):
  content: str = Field(min_length=1, max_length=65536)


class CommentCreateOut(BaseModel):
  comment: CommentOut
  warnings: list[str] = Field(default_factory=list)


class ActivityOut(BaseModel):
  id: str
  projectId: str
  taskId: str | None = None
  type: str
  description: str
  metadata: dict[str, Any] = Field(default_factory=dict)
  createdAt: datetime


class WebhookOut(BaseModel):
  projectId: str
  webhookId: int
  events: list[str]
  createdAt: datetime
