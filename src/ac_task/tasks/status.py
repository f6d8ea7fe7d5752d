"""Status transition: mutate through the resolver, then confirm with the verifier."""

from __future__ import annotations

import logging

from ac_task.http.client import ActiveCollabClient
from ac_task.tasks.models import CompletionState, TransitionOutcome, TransitionRequest
from ac_task.tasks.resolver import EndpointResolver
from ac_task.tasks.verifier import ConsistencyVerifier

logger = logging.getLogger(__name__)


class StatusTransitionService:
    """Entry point used by the `update-status` command."""

    def __init__(
        self,
        client: ActiveCollabClient,
        *,
        resolver: EndpointResolver | None = None,
        verifier: ConsistencyVerifier | None = None,
    ) -> None:
        self._resolver = resolver or EndpointResolver(client)
        self._verifier = verifier or ConsistencyVerifier(client)

    def update_status(self, task_id: int, status: str, project_id: int) -> TransitionOutcome:
        request = TransitionRequest(
            task_id=task_id,
            project_id=project_id,
            target_state=CompletionState.from_status(status),
        )
        return self.transition(request)

    def transition(self, request: TransitionRequest) -> TransitionOutcome:
        mutation = self._resolver.apply(request)
        logger.debug(
            "Task %d mutation accepted by %s (fallback=%s)",
            request.task_id,
            mutation.endpoint,
            mutation.used_fallback,
        )
        verification = self._verifier.verify(
            request.project_id,
            request.task_id,
            request.target_state,
        )
        return TransitionOutcome(
            matched=verification.matched,
            final_task=verification.task,
            attempts_used=verification.attempts_used,
        )
