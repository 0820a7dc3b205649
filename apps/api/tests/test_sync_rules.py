from __future__ import annotations

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from boardsync.github.events import (
  IssuesEvent,
  PushEvent,
  UnrecognizedEvent,
  parse_event,
  repository_id,
)
from boardsync.github.signatures import compute_signature, verify_signature
from boardsync.metrics import DeliveryMetrics
from boardsync.rate_limit import RateLimiter
from boardsync.sync.columns import DEFAULT_COLUMNS, ColumnLayoutError, infer_priority, validate_columns
from boardsync.sync.importer import StepResult


@pytest.mark.parametrize(
  ("labels", "expected"),
  [
    (["urgent"], "high"),
    (["bug", "urgent"], "high"),
    (["bug"], "medium"),
    (["enhancement"], "low"),
    ([], "low"),
    (["Bug"], "low"),
  ],
)
def test_infer_priority(labels, expected):
  assert infer_priority(labels) == expected


def test_default_columns_layout():
  assert [(n.value, o, c) for n, o, c in DEFAULT_COLUMNS] == [
    ("Backlog", 0, "#6B7280"),
    ("To Do", 1, "#3B82F6"),
    ("In Progress", 2, "#F59E0B"),
    ("In Review", 3, "#8B5CF6"),
    ("Done", 4, "#10B981"),
  ]
  validate_columns([n.value for n, _, _ in DEFAULT_COLUMNS])


def test_validate_columns_rejects_duplicates_and_gaps():
  with pytest.raises(ColumnLayoutError, match="Duplicate"):
    validate_columns(["Backlog", "Backlog", "To Do", "In Progress", "In Review", "Done"])
  with pytest.raises(ColumnLayoutError, match="Missing columns: Done"):
    validate_columns(["Backlog", "To Do", "In Progress", "In Review"])


def test_signature_roundtrip_and_rejections():
  body = b'{"action":"opened"}'
  sig = compute_signature("topsecret", body)
  assert sig.startswith("sha256=")
  assert verify_signature("topsecret", body, sig)
  assert not verify_signature("topsecret", body + b" ", sig)
  assert not verify_signature("other", body, sig)
  assert not verify_signature("topsecret", body, sig.replace("sha256=", "sha1="))
  assert not verify_signature("topsecret", body, "")
  assert not verify_signature("", body, sig)


def test_parse_event_variants():
  ev = parse_event(
    "issues",
    {"action": "opened", "issue": {"id": 1, "number": 2, "title": "t"}, "repository": {"id": 3}},
  )
  assert isinstance(ev, IssuesEvent)
  assert ev.issue.number == 2

  push = parse_event("push", {"ref": "refs/heads/feature/a/b", "repository": {"id": 3}})
  assert isinstance(push, PushEvent)
  assert push.branch == "feature/a/b"
  assert push.commits == []

  tag = parse_event("push", {"ref": "refs/tags/v1", "repository": {"id": 3}})
  assert tag.branch == "refs/tags/v1"

  other = parse_event("release", {"action": "published"})
  assert other == UnrecognizedEvent(name="release", action="published")

  with pytest.raises(ValidationError):
    parse_event("pull_request", {"action": "opened", "repository": {"id": 3}})


def test_repository_id_extraction():
  assert repository_id({"repository": {"id": 42}}) == "42"
  assert repository_id({"repository": {"id": "42"}}) == "42"
  assert repository_id({"repository": {"id": True}}) is None
  assert repository_id({"repository": "octocat/widgets"}) is None
  assert repository_id({}) is None


def test_step_result_warning():
  ok = StepResult.success("issue import", [1, 2])
  assert ok.warning() is None
  failed = StepResult.failure("webhook registration", ValueError("GitHub response carried no webhook id"))
  assert failed.warning() == "webhook registration failed: ValueError: GitHub response carried no webhook id"
  bare = StepResult.failure("issue import", RuntimeError())
  assert bare.warning() == "issue import failed: RuntimeError"


def test_step_result_warning_hides_sql_statement():
  exc = IntegrityError(
    "INSERT INTO tasks (title, github_issue_number) VALUES (?, ?)",
    ("Rotate leaked credentials", 4),
    Exception("UNIQUE constraint failed: tasks.project_id, tasks.github_issue_number"),
  )
  warning = StepResult.failure("issue import", exc).warning()
  assert warning == "issue import failed: IntegrityError: UNIQUE constraint failed: tasks.project_id, tasks.github_issue_number"
  assert "INSERT" not in warning
  assert "Rotate leaked credentials" not in warning


def test_delivery_metrics_snapshot():
  m = DeliveryMetrics()
  m.observe("issues", "processed")
  m.observe("issues", "processed")
  m.observe("push", "unauthorized")
  snap = m.snapshot()
  assert snap["total"] == 3
  assert snap["byOutcome"] == {"processed": 2, "unauthorized": 1}
  assert snap["byEvent"] == {"issues": {"processed": 2}, "push": {"unauthorized": 1}}
  assert snap["lastDeliveryAt"] is not None
  m.reset()
  assert m.snapshot()["total"] == 0


@pytest.mark.anyio
async def test_rate_limiter_memory_window():
  rl = RateLimiter()
  assert await rl.hit("webhook:github:1", limit=2, window_seconds=60) == (True, 0)
  assert await rl.hit("webhook:github:1", limit=2, window_seconds=60) == (True, 0)
  allowed, retry = await rl.hit("webhook:github:1", limit=2, window_seconds=60)
  assert allowed is False
  assert 1 <= retry <= 60
  # Separate repositories have separate windows.
  assert await rl.hit("webhook:github:2", limit=2, window_seconds=60) == (True, 0)
  rl.reset_prefix("webhook:github:1")
  assert await rl.hit("webhook:github:1", limit=2, window_seconds=60) == (True, 0)
