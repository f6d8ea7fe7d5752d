"""Domain models for task completion state and status transitions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ac_task.errors import ACTaskError, ErrorType, validation_error
from ac_task.http.client import unwrap_single

logger = logging.getLogger(__name__)

_STATUS_ALIASES = {"done": "complete", "open": "open"}


class CompletionState(str, Enum):
    """Two-variant completion state; raw API encodings stop at this boundary."""

    COMPLETE = "complete"
    OPEN = "open"

    @classmethod
    def from_status(cls, status: str) -> CompletionState:
        """Parse the CLI status argument (`done` or `open`, any case)."""

        normalized = _STATUS_ALIASES.get(status.strip().lower())
        if normalized is None:
            raise validation_error("Invalid status value", 'Status must be "done" or "open".')
        return cls(normalized)

    @classmethod
    def from_flag(cls, value: Any) -> CompletionState:
        """Normalize an `is_completed` flag sent as boolean or 0/1.

        Only `True` and `1` mean complete. Any other value reads as open, so a
        stale or odd read is a mismatch for the verifier to retry.
        """

        if isinstance(value, bool):
            return cls.COMPLETE if value else cls.OPEN
        if isinstance(value, int) and value == 1:
            return cls.COMPLETE
        if value not in (None, 0):
            logger.debug("Treating is_completed=%r as open", value)
        return cls.OPEN

    @property
    def is_complete(self) -> bool:
        return self is CompletionState.COMPLETE

    @property
    def status_label(self) -> str:
        return "Completed" if self.is_complete else "Reopened"


@dataclass(frozen=True, slots=True)
class TaskRecord:
    """Task fields the CLI reads back from the API."""

    id: int
    task_number: int | None
    name: str
    state: CompletionState
    completed_on: int | None = None
    completed_by_id: int | None = None
    assignee_id: int | None = None
    due_on: int | None = None
    task_list_id: int | None = None
    project_id: int | None = None

    @property
    def is_completed(self) -> bool:
        return self.state.is_complete

    @classmethod
    def from_payload(cls, payload: Any) -> TaskRecord:
        record = unwrap_single(payload)
        if not isinstance(record, dict) or "id" not in record:
            raise ACTaskError(
                type=ErrorType.API_ERROR,
                message="Unexpected task response format",
                code=1,
                details=repr(payload)[:500],
            )
        return cls(
            id=int(record["id"]),
            task_number=_optional_int(record.get("task_number")),
            name=str(record.get("name") or ""),
            state=CompletionState.from_flag(record.get("is_completed")),
            completed_on=_optional_int(record.get("completed_on")),
            completed_by_id=_optional_int(record.get("completed_by_id")),
            assignee_id=_optional_int(record.get("assignee_id")),
            due_on=_optional_int(record.get("due_on")),
            task_list_id=_optional_int(record.get("task_list_id")),
            project_id=_optional_int(record.get("project_id")),
        )


@dataclass(frozen=True, slots=True)
class TransitionRequest:
    """Immutable input for one status transition."""

    task_id: int
    project_id: int
    target_state: CompletionState

    def __post_init__(self) -> None:
        if self.task_id <= 0:
            raise validation_error("Invalid task ID", "Task ID must be a positive number.")
        if self.project_id <= 0:
            raise validation_error("Invalid project ID", "Project ID must be a positive number.")


@dataclass(frozen=True, slots=True)
class TransitionOutcome:
    """Verified result of a status transition."""

    matched: bool
    final_task: TaskRecord
    attempts_used: int


def parse_task_id(raw: str) -> int:
    """Parse a positive task id from CLI input."""

    try:
        task_id = int(raw.strip())
    except ValueError as error:
        raise validation_error("Invalid task ID", "Task ID must be a positive number.") from error
    if task_id <= 0:
        raise validation_error("Invalid task ID", "Task ID must be a positive number.")
    return task_id


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def task_path(project_id: int, task_id: int) -> str:
    return f"/projects/{project_id}/tasks/{task_id}"
