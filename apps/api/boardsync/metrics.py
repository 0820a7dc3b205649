from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from threading import Lock
from time import monotonic


class DeliveryMetrics:
  """In-process counters of webhook deliveries by event and outcome."""

  def __init__(self) -> None:
    self._started_monotonic = monotonic()
    self._started_at = datetime.now(timezone.utc)
    self._counts: Counter[tuple[str, str]] = Counter()
    self._last_delivery_at: datetime | None = None
    self._lock = Lock()

  def uptime_seconds(self) -> int:
    return max(0, int(monotonic() - self._started_monotonic))

  def observe(self, event: str, outcome: str) -> None:
    with self._lock:
      self._counts[(event or "unknown", outcome)] += 1
      self._last_delivery_at = datetime.now(timezone.utc)

  def reset(self) -> None:
    with self._lock:
      self._counts.clear()
      self._last_delivery_at = None

  def snapshot(self) -> dict:
    with self._lock:
      counts = dict(self._counts)
      last = self._last_delivery_at

    by_event: dict[str, dict[str, int]] = {}
    by_outcome: dict[str, int] = {}
    for (event, outcome), n in sorted(counts.items()):
      by_event.setdefault(event, {})[outcome] = n
      by_outcome[outcome] = by_outcome.get(outcome, 0) + n

    return {
      "startedAt": self._started_at.isoformat(),
      "uptimeSeconds": self.uptime_seconds(),
      "lastDeliveryAt": last.isoformat() if last else None,
      "total": sum(by_outcome.values()),
      "byOutcome": by_outcome,
      "byEvent": by_event,
    }


delivery_metrics = DeliveryMetrics()
