from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from boardsync.config import settings

logger = structlog.get_logger()


@dataclass
class _Bucket:
  reset_at: float
  count: int


class RateLimiter:
  """
  Fixed-window rate limiter.

  Uses Redis when REDIS_URL is configured so replicas share windows; otherwise
  (and whenever Redis errors) counts in process memory.
  """

  def __init__(self, redis_url: str | None = None) -> None:
    self._lock = Lock()
    self._buckets: dict[str, _Bucket] = {}
    self._redis: Redis | None = None
    if redis_url:
      self._redis = Redis.from_url(redis_url, encoding="utf-8", decode_responses=True)

  async def hit(self, key: str, *, limit: int, window_seconds: int) -> tuple[bool, int]:
    """
    Returns (allowed, retry_after_seconds).
    """
    if self._redis is not None:
      try:
        rk = f"rl:{key}"
        pipe = self._redis.pipeline()
        pipe.incr(rk, 1)
        pipe.ttl(rk)
        count, ttl = await pipe.execute()
        if int(count) == 1:
          await self._redis.expire(rk, int(window_seconds))
          ttl = int(window_seconds)
        retry = max(1, int(ttl)) if int(ttl) > 0 else int(window_seconds)
        if int(count) > int(limit):
          return False, retry
        return True, 0
      except RedisError as e:
        logger.warning("rate_limit_redis_unavailable", error=str(e))

    now = time.time()
    with self._lock:
      b = self._buckets.get(key)
      if b is None or now >= b.reset_at:
        self._buckets[key] = _Bucket(reset_at=now + window_seconds, count=1)
        return True, 0
      if b.count >= limit:
        retry = max(1, int(b.reset_at - now))
        return False, retry
      b.count += 1
      return True, 0

  def reset_prefix(self, prefix: str) -> None:
    with self._lock:
      for k in list(self._buckets.keys()):
        if k.startswith(prefix):
          del self._buckets[k]


limiter = RateLimiter(settings.redis_url)
