from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select, update

from boardsync.db import SessionLocal
from boardsync.main import app
from boardsync.models import ApiToken, User, Webhook
from boardsync.security import api_token_hash, decrypt_secret, encrypt_secret, new_api_token, new_webhook_secret
from boardsync.seed import seed
from conftest import deliver, import_repo, issue


def test_secret_helpers():
  secret = new_webhook_secret()
  assert len(secret) == 40
  assert secret != new_webhook_secret()
  token = new_api_token()
  assert token.startswith("bst_")
  assert api_token_hash(token) == api_token_hash(f"  {token} ")
  assert api_token_hash(token) != token
  assert decrypt_secret(encrypt_secret("ghp_abc")) == "ghp_abc"


@pytest.mark.anyio
async def test_seed_mints_token_once(tmp_path, monkeypatch):
  monkeypatch.setenv("SEED_USER_EMAIL", "Lead@Example.com")
  monkeypatch.setenv("SEED_GITHUB_LOGIN", "lead-dev")
  monkeypatch.setenv("SEED_GITHUB_TOKEN", "ghp_seeded")
  monkeypatch.setenv("BOOTSTRAP_CREDENTIALS_DIR", str(tmp_path))

  token = await seed()
  assert token and token.startswith("bst_")
  assert token in (tmp_path / "bootstrap_token.txt").read_text(encoding="utf-8")
  assert await seed() is None

  async with SessionLocal() as db:
    user = (await db.execute(select(User).where(User.email == "lead@example.com"))).scalar_one()
    assert user.github_login == "lead-dev"
    assert decrypt_secret(user.github_token_encrypted) == "ghp_seeded"
    tokens = (await db.execute(select(ApiToken).where(ApiToken.user_id == user.id))).scalars().all()
    assert len(tokens) == 1

  async with AsyncClient(
    transport=ASGITransport(app=app),
    base_url="http://localhost",
    headers={"Authorization": f"Bearer {token}"},
  ) as c:
    res = await c.get("/projects")
    assert res.status_code == 200, res.text
    assert res.json() == []


@pytest.mark.anyio
async def test_undecryptable_webhook_secret_is_reported(client, github):
  imported = await import_repo(client)
  async with SessionLocal() as db:
    await db.execute(
      update(Webhook).where(Webhook.project_id == imported["projectId"]).values(secret_encrypted="not-a-fernet-token")
    )
    await db.commit()

  res = await deliver(
    client,
    "issues",
    {"action": "opened", "issue": issue(1, "x"), "repository": {"id": 4242}},
    secret=github.secret,
  )
  assert res.status_code == 400, res.text
  assert "re-register the webhook" in res.json()["detail"]
