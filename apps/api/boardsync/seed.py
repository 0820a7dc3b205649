from __future__ import annotations

import asyncio
import os
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import select

from boardsync.db import SessionLocal
from boardsync.models import ApiToken, User
from boardsync.security import api_token_hash, encrypt_secret, new_api_token


async def seed() -> str | None:
  """Ensure the owner user exists and mint an API token for it on first run.

  Returns the new plaintext token, or None when the user already had one.
  """
  email = (os.getenv("SEED_USER_EMAIL") or "owner@boardsync.local").strip().lower()
  name = (os.getenv("SEED_USER_NAME") or "Owner").strip()
  github_login = (os.getenv("SEED_GITHUB_LOGIN") or "").strip() or None
  github_token = (os.getenv("SEED_GITHUB_TOKEN") or "").strip()

  async with SessionLocal() as db:
    res = await db.execute(select(User).where(User.email == email))
    user = res.scalar_one_or_none()
    if not user:
      user = User(email=email, name=name)
      db.add(user)
    if github_login:
      user.github_login = github_login
    if github_token:
      user.github_token_encrypted = encrypt_secret(github_token)
    await db.flush()

    tres = await db.execute(select(ApiToken.id).where(ApiToken.user_id == user.id, ApiToken.revoked_at.is_(None)).limit(1))
    if tres.scalar_one_or_none():
      await db.commit()
      return None

    token = new_api_token()
    db.add(ApiToken(user_id=user.id, name="bootstrap", token_hash=api_token_hash(token)))
    await db.commit()

  out_dir = Path(os.getenv("BOOTSTRAP_CREDENTIALS_DIR", "data"))
  out_dir.mkdir(parents=True, exist_ok=True)
  out_file = out_dir / "bootstrap_token.txt"
  stamp = datetime.now(timezone.utc).isoformat()
  out_file.write_text(f"[{stamp}]\n{email}={token}\n", encoding="utf-8")
  print("BoardSync API token created:")
  print(f"  {email}={token}")
  print(f"Saved to {out_file}")
  return token


def main() -> None:
  asyncio.run(seed())


if __name__ == "__main__":
  main()
