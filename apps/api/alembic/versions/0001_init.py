"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  op.create_table(
    "users",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("github_login", sa.String(), nullable=True),
    sa.Column("github_token_encrypted", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_users_email", "users", ["email"], unique=True)

  op.create_table(
    "api_tokens",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("token_hash", sa.String(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
  )
  op.create_index("ix_api_tokens_user_id", "api_tokens", ["user_id"], unique=False)
  op.create_index("ix_api_tokens_token_hash", "api_tokens", ["token_hash"], unique=True)

  op.create_table(
    "projects",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("gradient", sa.String(), nullable=True),
    sa.Column("github_repo_id", sa.String(), nullable=True),
    sa.Column("github_repo_url", sa.String(), nullable=True),
    sa.Column("github_owner", sa.String(), nullable=True),
    sa.Column("github_repo", sa.String(), nullable=True),
    sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_projects_github_repo_id", "projects", ["github_repo_id"], unique=True)
  op.create_index("ix_projects_user_id", "projects", ["user_id"], unique=False)

  op.create_table(
    "columns",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("project_id", sa.String(length=36), sa.ForeignKey("projects.id"), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("order", sa.Integer(), nullable=False),
    sa.Column("color", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.UniqueConstraint("project_id", "name", name="ux_columns_project_name"),
  )
  op.create_index("ix_columns_project_id", "columns", ["project_id"], unique=False)

  op.create_table(
    "tasks",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("project_id", sa.String(length=36), sa.ForeignKey("projects.id"), nullable=False),
    sa.Column("column_id", sa.String(length=36), sa.ForeignKey("columns.id"), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=False, server_default=""),
    sa.Column("status", sa.String(), nullable=False, server_default="todo"),
    sa.Column("priority", sa.String(), nullable=True),
    sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("github_issue_number", sa.Integer(), nullable=True),
    sa.Column("github_issue_id", sa.String(), nullable=True),
    sa.Column("github_state", sa.String(), nullable=True),
    sa.Column("github_pr_number", sa.Integer(), nullable=True),
    sa.Column("github_pr_id", sa.String(), nullable=True),
    sa.Column("github_branch", sa.String(), nullable=True),
    sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    sa.UniqueConstraint("project_id", "github_issue_number", name="ux_tasks_project_issue_number"),
    sa.UniqueConstraint("project_id", "github_pr_number", name="ux_tasks_project_pr_number"),
  )
  op.create_index("ix_tasks_project_id", "tasks", ["project_id"], unique=False)
  op.create_index("ix_tasks_column_id", "tasks", ["column_id"], unique=False)
  op.create_index("ix_tasks_github_branch", "tasks", ["github_branch"], unique=False)

  op.create_table(
    "comments",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("task_id", sa.String(length=36), sa.ForeignKey("tasks.id"), nullable=False),
    sa.Column("author_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("content", sa.Text(), nullable=False),
    sa.Column("github_comment_id", sa.String(), nullable=True),
    sa.Column("source_author", sa.String(), nullable=True),
    sa.Column("edited", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.UniqueConstraint("task_id", "github_comment_id", name="ux_comments_task_github_comment"),
  )
  op.create_index("ix_comments_task_id", "comments", ["task_id"], unique=False)
  op.create_index("ix_comments_github_comment_id", "comments", ["github_comment_id"], unique=False)

  op.create_table(
    "activities",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("project_id", sa.String(length=36), sa.ForeignKey("projects.id"), nullable=False),
    sa.Column("task_id", sa.String(length=36), sa.ForeignKey("tasks.id"), nullable=True),
    sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
    sa.Column("type", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=False),
    sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
    sa.Column("dedupe_key", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.UniqueConstraint("project_id", "dedupe_key", name="ux_activities_project_dedupe"),
  )
  op.create_index("ix_activities_project_id", "activities", ["project_id"], unique=False)
  op.create_index("ix_activities_task_id", "activities", ["task_id"], unique=False)

  op.create_table(
    "webhooks",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("project_id", sa.String(length=36), sa.ForeignKey("projects.id"), nullable=False),
    sa.Column("webhook_id", sa.BigInteger(), nullable=False),
    sa.Column("secret_encrypted", sa.Text(), nullable=False),
    sa.Column("events", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_webhooks_project_id", "webhooks", ["project_id"], unique=True)


def downgrade() -> None:
  op.drop_table("webhooks")
  op.drop_table("activities")
  op.drop_table("comments")
  op.drop_table("tasks")
  op.drop_table("columns")
  op.drop_table("projects")
  op.drop_table("api_tokens")
  op.drop_table("users")
