from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.config import settings
from boardsync.db import SessionLocal
from boardsync.github.client import GitHubClient
from boardsync.models import ApiToken, Project, User
from boardsync.security import api_token_hash, decrypt_secret


async def get_db() -> AsyncSession:
  async with SessionLocal() as session:
    yield session


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
  auth = request.headers.get("authorization")
  if not auth or not auth.lower().startswith("bearer "):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
  token = auth.split(" ", 1)[1].strip()
  if not token:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
  h = api_token_hash(token)
  tres = await db.execute(select(ApiToken).where(ApiToken.token_hash == h, ApiToken.revoked_at.is_(None)))
  t = tres.scalar_one_or_none()
  if not t:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
  ures = await db.execute(select(User).where(User.id == t.user_id))
  u = ures.scalar_one_or_none()
  if not u:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
  return u


def get_optional_github_client(user: User = Depends(get_current_user)) -> GitHubClient | None:
  token = decrypt_secret(user.github_token_encrypted) if user.github_token_encrypted else (settings.github_token or "")
  if not token.strip():
    return None
  return GitHubClient(
    token=token.strip(),
    base_url=settings.github_api_base_url,
    timeout=settings.github_timeout_seconds,
    user_agent=settings.github_user_agent,
  )


def get_github_client(client: GitHubClient | None = Depends(get_optional_github_client)) -> GitHubClient:
  if client is None:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No GitHub access token available")
  return client


async def get_owned_project(project_id: str, user: User, db: AsyncSession) -> Project:
  res = await db.execute(select(Project).where(Project.id == project_id, Project.user_id == user.id))
  p = res.scalar_one_or_none()
  if not p:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
  return p
