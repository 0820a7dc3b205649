from __future__ import annotations

import base64
import hashlib
import hmac
import secrets

from cryptography.fernet import Fernet, InvalidToken

from boardsync.config import settings

API_TOKEN_PREFIX = "bst_"


class IntegrationSecretDecryptError(RuntimeError):
  pass


def _fernet() -> Fernet:
  key = settings.fernet_key
  # accept raw bytes/base64 for ergonomics
  try:
    base64.urlsafe_b64decode(key.encode("utf-8"))
    return Fernet(key.encode("utf-8"))
  except ValueError:
    b = base64.urlsafe_b64encode(key.encode("utf-8").ljust(32, b"\0")[:32])
    return Fernet(b)


def encrypt_secret(value: str) -> str:
  return _fernet().encrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_secret(value: str) -> str:
  try:
    return _fernet().decrypt(value.encode("utf-8")).decode("utf-8")
  except InvalidToken as exc:
    raise IntegrationSecretDecryptError(
      "Stored secret cannot be decrypted with the current key; re-register the webhook or reconnect GitHub."
    ) from exc


def new_webhook_secret() -> str:
  return secrets.token_hex(20)


def new_api_token() -> str:
  return API_TOKEN_PREFIX + secrets.token_urlsafe(32)


def api_token_hash(token: str) -> str:
  # Keyed hash so DB leaks don't allow offline token matching.
  key = (settings.app_secret or "").encode("utf-8")
  msg = (token or "").strip().encode("utf-8")
  return hmac.new(key, msg, hashlib.sha256).hexdigest()
