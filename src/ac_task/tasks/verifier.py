"""Read-after-write verification with a fixed backoff schedule."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ac_task.config import DEFAULT_STATUS_BACKOFF_SECONDS
from ac_task.http.client import ActiveCollabClient
from ac_task.tasks.models import CompletionState, TaskRecord, task_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Verification:
    """Last observed task and whether it matched the expected state."""

    matched: bool
    task: TaskRecord
    attempts_used: int


class ConsistencyVerifier:
    """Re-reads a task until it reflects the expected completion state.

    The first read happens immediately. Each mismatch with retries left
    sleeps for the next entry of `backoff_seconds` and reads again, so at most
    `max_retries` extra reads are made. Exhausting the schedule is reported
    as `matched=False` rather than raised; read errors still propagate.
    """

    def __init__(
        self,
        client: ActiveCollabClient,
        *,
        backoff_seconds: Sequence[float] = DEFAULT_STATUS_BACKOFF_SECONDS,
        max_retries: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        schedule = tuple(float(delay) for delay in backoff_seconds)
        if max_retries is None:
            max_retries = len(schedule)
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        if len(schedule) != max_retries:
            raise ValueError(
                f"Backoff schedule has {len(schedule)} entries but max_retries={max_retries}",
            )
        self._client = client
        self._backoff_seconds = schedule
        self._sleep = sleep

    @property
    def max_retries(self) -> int:
        return len(self._backoff_seconds)

    @property
    def backoff_seconds(self) -> tuple[float, ...]:
        return self._backoff_seconds

    def verify(
        self,
        project_id: int,
        task_id: int,
        expected_state: CompletionState,
    ) -> Verification:
        path = task_path(project_id, task_id)
        attempt = 0
        while True:
            task = TaskRecord.from_payload(self._client.get(path))
            if task.state is expected_state:
                return Verification(matched=True, task=task, attempts_used=attempt)
            if attempt >= self.max_retries:
                logger.warning(
                    "Task %d still %s after %d retries, expected %s",
                    task_id,
                    task.state.value,
                    attempt,
                    expected_state.value,
                )
                return Verification(matched=False, task=task, attempts_used=attempt)
            delay = self._backoff_seconds[attempt]
            logger.debug(
                "Task %d reads %s, expected %s; retry %d/%d in %.1fs",
                task_id,
                task.state.value,
                expected_state.value,
                attempt + 1,
                self.max_retries,
                delay,
            )
            self._sleep(delay)
            attempt += 1
