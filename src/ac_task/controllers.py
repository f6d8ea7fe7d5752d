"""Controllers for ac-task CLI commands."""

from __future__ import annotations

import json
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from pathlib import Path

from ac_task.auth import fetch_current_user
from ac_task.config import Settings
from ac_task.http.client import ActiveCollabClient
from ac_task.tasks.listing import (
    TaskFilter,
    fetch_task_headers,
    fetch_task_lists,
    filter_tasks,
    format_due_date,
    is_overdue,
    sort_by_due_date,
)
from ac_task.tasks.models import (
    CompletionState,
    TaskRecord,
    TransitionOutcome,
    TransitionRequest,
    parse_task_id,
)
from ac_task.tasks.resolver import EndpointResolver
from ac_task.tasks.status import StatusTransitionService
from ac_task.tasks.verifier import ConsistencyVerifier

MISMATCH_WARNING = "Status update sent but server returned different value. Check manually."
NAME_COLUMN_WIDTH = 50
LIST_COLUMN_WIDTH = 15

ClientFactory = Callable[[Settings, bool], ActiveCollabClient]


@dataclass(slots=True)
class UpdateStatusCommand:
    """CLI input for a task status change."""

    task_id: str
    status: str
    output_format: str = "human"
    insecure: bool = False
    cwd: Path | None = None


@dataclass(slots=True)
class ListTasksCommand:
    """CLI input for task listing."""

    show_all: bool = False
    closed: bool = False
    mine: bool = True
    days: int | None = None
    task_list_id: int | None = None
    search: str | None = None
    due_before: date | None = None
    due_after: date | None = None
    output_format: str = "human"
    insecure: bool = False
    cwd: Path | None = None


@dataclass(slots=True)
class WhoAmICommand:
    """CLI input for identity check."""

    output_format: str = "human"
    insecure: bool = False
    cwd: Path | None = None


def default_client_factory(settings: Settings, insecure: bool) -> ActiveCollabClient:
    return ActiveCollabClient.from_settings(settings.require_connection(), insecure=insecure)


class TaskCliController:
    """Wires settings, API client and task services for CLI commands."""

    def __init__(
        self,
        *,
        client_factory: ClientFactory = default_client_factory,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._client_factory = client_factory
        self._sleep = sleep
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    def update_status(self, command: UpdateStatusCommand) -> list[str]:
        target_state = CompletionState.from_status(command.status)
        settings = Settings.from_env(cwd=command.cwd)
        request = TransitionRequest(
            task_id=parse_task_id(command.task_id),
            project_id=settings.require_project_id(),
            target_state=target_state,
        )

        with self._client(settings, command.insecure) as client:
            service = StatusTransitionService(
                client,
                resolver=EndpointResolver(client, clock=self._clock),
                verifier=ConsistencyVerifier(
                    client,
                    backoff_seconds=settings.status_sync.backoff_seconds,
                    sleep=self._sleep,
                ),
            )
            outcome = service.transition(request)

        if command.output_format == "json":
            return [_dump_json(_outcome_payload(outcome))]
        return _outcome_lines(outcome)

    def list_tasks(self, command: ListTasksCommand) -> list[str]:
        settings = Settings.from_env(cwd=command.cwd)
        project_id = settings.require_project_id()

        with self._client(settings, command.insecure) as client:
            assignee_id = None
            if not command.show_all and command.mine:
                assignee_id = settings.user.cached_user_id or fetch_current_user(
                    client,
                    settings.connection.token,
                ).id
            task_filter = self._build_filter(command, assignee_id=assignee_id)
            all_tasks = fetch_task_headers(client, project_id)
            task_lists = fetch_task_lists(client, project_id)

        tasks = sort_by_due_date(filter_tasks(all_tasks, task_filter))

        if command.output_format == "json":
            return [
                _dump_json(
                    {
                        "count": len(tasks),
                        "total_fetched": len(all_tasks),
                        "filters": task_filter.to_payload(),
                        "tasks": [
                            {
                                "id": task.id,
                                "task_number": task.task_number,
                                "name": task.name,
                                "is_completed": task.is_completed,
                                "assignee_id": task.assignee_id,
                                "due_on": format_due_date(task.due_on),
                                "task_list_id": task.task_list_id,
                                "task_list_name": task_lists.get(task.task_list_id or 0),
                            }
                            for task in tasks
                        ],
                    },
                ),
            ]

        lines: list[str] = []
        filter_parts: list[str] = []
        if task_filter.assignee_id is not None:
            filter_parts.append("My tasks")
        if task_filter.state is CompletionState.OPEN:
            filter_parts.append("Open")
        elif task_filter.state is CompletionState.COMPLETE:
            filter_parts.append("Closed")
        if task_filter.search:
            filter_parts.append(f'Search: "{task_filter.search}"')
        if filter_parts:
            lines.append(f"Filters: {', '.join(filter_parts)}")
        lines.append(f"Showing {len(tasks)} of {len(all_tasks)} tasks")
        if not tasks:
            lines.append("No tasks found matching the criteria.")
            lines.append("Try using --all to see all tasks.")
            return lines
        now = self._clock()
        for task in tasks:
            lines.append(_task_row(task, task_lists, now=now))
        return lines

    def whoami(self, command: WhoAmICommand) -> list[str]:
        settings = Settings.from_env(cwd=command.cwd)
        with self._client(settings, command.insecure) as client:
            user = fetch_current_user(client, settings.connection.token)

        if command.output_format == "json":
            return [_dump_json({"id": user.id, "name": user.name, "status": user.status})]
        return [
            f"✓ Logged in as {user.name} (ID: {user.id})",
            f"  Status: {user.status}",
            f"  URL: {settings.connection.base_url}",
        ]

    def _build_filter(self, command: ListTasksCommand, *, assignee_id: int | None) -> TaskFilter:
        task_filter = TaskFilter(assignee_id=assignee_id, task_list_id=command.task_list_id)
        if command.closed:
            task_filter.state = CompletionState.COMPLETE
        elif not command.show_all:
            task_filter.state = CompletionState.OPEN

        if command.days is not None:
            today = self._clock().date()
            task_filter.due_after = today
            task_filter.due_before = today + timedelta(days=command.days)
        if command.due_before is not None:
            task_filter.due_before = command.due_before
        if command.due_after is not None:
            task_filter.due_after = command.due_after
        task_filter.search = command.search or None
        return task_filter

    @contextmanager
    def _client(self, settings: Settings, insecure: bool) -> Iterator[ActiveCollabClient]:
        client = self._client_factory(settings, insecure)
        try:
            yield client
        finally:
            client.close()


def _outcome_payload(outcome: TransitionOutcome) -> dict[str, object]:
    task = outcome.final_task
    payload: dict[str, object] = {
        "success": outcome.matched,
        "task": {
            "id": task.id,
            "task_number": task.task_number,
            "name": task.name,
            "is_completed": task.is_completed,
        },
        "attempts_used": outcome.attempts_used,
    }
    if not outcome.matched:
        payload["warning"] = MISMATCH_WARNING
    return payload


def _outcome_lines(outcome: TransitionOutcome) -> list[str]:
    task = outcome.final_task
    mark = "✓" if task.is_completed else "○"
    lines = [
        f"✓ Task #{task.task_number or task.id}: {task.name}",
        f"  Status: {mark} {task.state.status_label}",
    ]
    if not outcome.matched:
        lines.append("  ⚠ Warning: Server returned different status. Verify manually.")
    return lines


def _task_row(task: TaskRecord, task_lists: dict[int, str], *, now: datetime) -> str:
    mark = "✓" if task.is_completed else "○"
    number = f"#{task.task_number or task.id}".ljust(6)
    name = _truncate(task.name, NAME_COLUMN_WIDTH).ljust(NAME_COLUMN_WIDTH)
    list_name = _truncate(task_lists.get(task.task_list_id or 0, "Unknown"), LIST_COLUMN_WIDTH)
    due = format_due_date(task.due_on) or "No due date"
    if is_overdue(task.due_on, now):
        due = f"{due} (overdue)"
    return f"{mark} {number} {name} {list_name.ljust(LIST_COLUMN_WIDTH)} {due}"


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def _dump_json(payload: object) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)
