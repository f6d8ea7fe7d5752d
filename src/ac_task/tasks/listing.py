"""Task listing with in-memory filters; the API ignores most filter params."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from typing import Any

from ac_task.http.client import ActiveCollabClient
from ac_task.tasks.models import CompletionState, TaskRecord


@dataclass(slots=True)
class TaskFilter:
    """Filters applied after fetching all task headers."""

    assignee_id: int | None = None
    state: CompletionState | None = None
    task_list_id: int | None = None
    due_before: date | None = None
    due_after: date | None = None
    search: str | None = None

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {}
        if self.assignee_id is not None:
            payload["assignee_id"] = self.assignee_id
        if self.state is not None:
            payload["is_completed"] = self.state.is_complete
        if self.task_list_id is not None:
            payload["task_list_id"] = self.task_list_id
        if self.due_before is not None:
            payload["due_before"] = self.due_before.isoformat()
        if self.due_after is not None:
            payload["due_after"] = self.due_after.isoformat()
        if self.search:
            payload["search"] = self.search
        return payload


def fetch_task_headers(client: ActiveCollabClient, project_id: int) -> list[TaskRecord]:
    payload = client.get(f"/projects/{project_id}/tasks")
    return [TaskRecord.from_payload(item) for item in _extract_list(payload, key="tasks")]


def fetch_task_lists(client: ActiveCollabClient, project_id: int) -> dict[int, str]:
    payload = client.get(f"/projects/{project_id}/task-lists")
    task_lists: dict[int, str] = {}
    for item in _extract_list(payload, key="task_lists"):
        if isinstance(item, dict) and "id" in item:
            task_lists[int(item["id"])] = str(item.get("name") or "")
    return task_lists


def filter_tasks(tasks: Iterable[TaskRecord], task_filter: TaskFilter) -> list[TaskRecord]:
    before_ts = _day_end_timestamp(task_filter.due_before) if task_filter.due_before else None
    after_ts = _day_start_timestamp(task_filter.due_after) if task_filter.due_after else None
    needle = task_filter.search.lower() if task_filter.search else None

    filtered: list[TaskRecord] = []
    for task in tasks:
        if task_filter.assignee_id is not None and task.assignee_id != task_filter.assignee_id:
            continue
        if task_filter.state is not None and task.state is not task_filter.state:
            continue
        if task_filter.task_list_id is not None and task.task_list_id != task_filter.task_list_id:
            continue
        if before_ts is not None and (task.due_on is None or task.due_on > before_ts):
            continue
        if after_ts is not None and (task.due_on is None or task.due_on < after_ts):
            continue
        if needle is not None and needle not in task.name.lower():
            continue
        filtered.append(task)
    return filtered


def sort_by_due_date(tasks: Iterable[TaskRecord]) -> list[TaskRecord]:
    """Ascending by due date, undated tasks last."""

    return sorted(tasks, key=lambda task: (task.due_on is None, task.due_on or 0))


def format_due_date(timestamp: int | None) -> str | None:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=UTC).date().isoformat()


def is_overdue(timestamp: int | None, now: datetime) -> bool:
    if timestamp is None:
        return False
    return timestamp < int(now.timestamp())


def _extract_list(payload: Any, *, key: str) -> list[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get(key), list):
        return payload[key]
    return []


def _day_start_timestamp(day: date) -> int:
    return int(datetime.combine(day, time.min, tzinfo=UTC).timestamp())


def _day_end_timestamp(day: date) -> int:
    return int(datetime.combine(day, time.max, tzinfo=UTC).timestamp())
