from __future__ import annotations

from enum import Enum
from typing import Iterable


class TaskStatus(str, Enum):
  todo = "todo"
  inProgress = "inProgress"
  inReview = "inReview"
  done = "done"
  cancelled = "cancelled"


class ColumnName(str, Enum):
  backlog = "Backlog"
  todo = "To Do"
  in_progress = "In Progress"
  in_review = "In Review"
  done = "Done"


# (name, order, color) seeded on every new project.
DEFAULT_COLUMNS: list[tuple[ColumnName, int, str]] = [
  (ColumnName.backlog, 0, "#6B7280"),
  (ColumnName.todo, 1, "#3B82F6"),
  (ColumnName.in_progress, 2, "#F59E0B"),
  (ColumnName.in_review, 3, "#8B5CF6"),
  (ColumnName.done, 4, "#10B981"),
]

# Where a task with a given status is placed. Newly opened issues are the one
# exception: they start in Backlog with status todo.
STATUS_COLUMNS: dict[TaskStatus, ColumnName] = {
  TaskStatus.todo: ColumnName.todo,
  TaskStatus.inProgress: ColumnName.in_progress,
  TaskStatus.inReview: ColumnName.in_review,
  TaskStatus.done: ColumnName.done,
}


class ColumnLayoutError(ValueError):
  pass


def validate_columns(names: Iterable[str]) -> None:
  seen: set[str] = set()
  dupes: set[str] = set()
  for n in names:
    if n in seen:
      dupes.add(n)
    seen.add(n)
  if dupes:
    raise ColumnLayoutError(f"Duplicate column names: {', '.join(sorted(dupes))}")
  missing = [c.value for c in ColumnName if c.value not in seen]
  if missing:
    raise ColumnLayoutError(f"Missing columns: {', '.join(missing)}")


def infer_priority(label_names: Iterable[str]) -> str:
  names = set(label_names)
  if "urgent" in names:
    return "high"
  if "bug" in names:
    return "medium"
  return "low"
