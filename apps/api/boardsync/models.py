from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Plain JSON on SQLite (tests), JSONB on Postgres.
JsonType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


def new_id() -> str:
  return str(uuid.uuid4())


class Base(DeclarativeBase):
  pass


class User(Base):
  __tablename__ = "users"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
  email: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  github_login: Mapped[str | None] = mapped_column(String, nullable=True)
  github_token_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class ApiToken(Base):
  __tablename__ = "api_tokens"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  token_hash: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Project(Base):
  __tablename__ = "projects"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
  name: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  gradient: Mapped[str | None] = mapped_column(String, nullable=True)
  github_repo_id: Mapped[str | None] = mapped_column(String, nullable=True, unique=True, index=True)
  github_repo_url: Mapped[str | None] = mapped_column(String, nullable=True)
  github_owner: Mapped[str | None] = mapped_column(String, nullable=True)
  github_repo: Mapped[str | None] = mapped_column(String, nullable=True)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Column(Base):
  __tablename__ = "columns"
  __table_args__ = (UniqueConstraint("project_id", "name", name="ux_columns_project_name"),)

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
  project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  color: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Task(Base):
  __tablename__ = "tasks"
  __table_args__ = (
    UniqueConstraint("project_id", "github_issue_number", name="ux_tasks_project_issue_number"),
    UniqueConstraint("project_id", "github_pr_number", name="ux_tasks_project_pr_number"),
  )

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
  project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
  column_id: Mapped[str] = mapped_column(String(36), ForeignKey("columns.id"), nullable=False, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str] = mapped_column(Text, nullable=False, default="")
  status: Mapped[str] = mapped_column(String, nullable=False, default="todo")
  priority: Mapped[str | None] = mapped_column(String, nullable=True)
  order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  github_issue_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
  github_issue_id: Mapped[str | None] = mapped_column(String, nullable=True)
  github_state: Mapped[str | None] = mapped_column(String, nullable=True)
  github_pr_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
  github_pr_id: Mapped[str | None] = mapped_column(String, nullable=True)
  github_branch: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Comment(Base):
  __tablename__ = "comments"
  __table_args__ = (UniqueConstraint("task_id", "github_comment_id", name="ux_comments_task_github_comment"),)

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
  task_id: Mapped[str] = mapped_column(String(36), ForeignKey("tasks.id"), nullable=False, index=True)
  author_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
  content: Mapped[str] = mapped_column(Text, nullable=False)
  github_comment_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  source_author: Mapped[str | None] = mapped_column(String, nullable=True)
  edited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Activity(Base):
  __tablename__ = "activities"
  __table_args__ = (UniqueConstraint("project_id", "dedupe_key", name="ux_activities_project_dedupe"),)

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
  project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
  task_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("tasks.id"), nullable=True, index=True)
  user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
  type: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str] = mapped_column(Text, nullable=False)
  meta: Mapped[dict[str, Any]] = mapped_column("metadata", JsonType, nullable=False, default=dict)
  dedupe_key: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Webhook(Base):
  __tablename__ = "webhooks"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
  project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id"), nullable=False, unique=True, index=True)
  webhook_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
  secret_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
  events: Mapped[list[str]] = mapped_column(JsonType, nullable=False, default=list)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
