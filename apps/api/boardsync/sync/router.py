from __future__ import annotations

from typing import Any

import structlog

from boardsync.github.events import (
  GitHubEvent,
  IssueCommentEvent,
  IssuesEvent,
  PullRequestEvent,
  PushEvent,
  UnrecognizedEvent,
)
from boardsync.sync.engine import TaskSyncEngine

logger = structlog.get_logger()


async def dispatch(engine: TaskSyncEngine, event: GitHubEvent) -> dict[str, Any]:
  if isinstance(event, IssuesEvent):
    return await engine.handle_issues(event)
  if isinstance(event, PullRequestEvent):
    return await engine.handle_pull_request(event)
  if isinstance(event, IssueCommentEvent):
    return await engine.handle_issue_comment(event)
  if isinstance(event, PushEvent):
    return await engine.handle_push(event)
  if isinstance(event, UnrecognizedEvent):
    # Acknowledged so GitHub does not redeliver events we never subscribe to handle.
    logger.info("github_webhook_event_unhandled", event=event.name, action=event.action)
    return {"ignored": "unhandled event", "event": event.name}
  raise TypeError(f"Unsupported event variant: {type(event).__name__}")
