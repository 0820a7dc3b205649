from __future__ import annotations

import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="


def compute_signature(secret: str, body: bytes) -> str:
  digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
  return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
  """Check an ``X-Hub-Signature-256`` header against the raw request body.

  ``body`` must be the bytes exactly as received. Parsing and re-serializing the
  JSON changes whitespace and key order, which changes the digest.
  """
  claimed = (signature or "").strip()
  if not claimed or not secret:
    return False
  return hmac.compare_digest(compute_signature(secret, body), claimed)
