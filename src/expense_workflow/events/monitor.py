"""Security telemetry handlers."""

from __future__ import annotations

import logging
from collections import Counter
from uuid import UUID

from expense_workflow.events.emitter import EventEmitter
from expense_workflow.events.types import DecisionRejected, DomainEvent

logger = logging.getLogger(__name__)


class UnauthorizedAttemptMonitor:
    """Flags actors who repeatedly attempt decisions they may not take.

    Stale-state rejections are ordinary races and are not counted.
    """

    def __init__(self, threshold: int = 3):
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.threshold = threshold
        self._attempts: Counter[UUID] = Counter()

    def attach(self, emitter: EventEmitter) -> UnauthorizedAttemptMonitor:
        emitter.on(DecisionRejected, self)
        return self

    def attempts(self, actor_id: UUID) -> int:
        return self._attempts[actor_id]

    def __call__(self, event: DomainEvent) -> None:
        if not isinstance(event, DecisionRejected) or event.reason != "unauthorized":
            return
        actor_id = event.metadata.actor_id
        if actor_id is None:
            return

        self._attempts[actor_id] += 1
        count = self._attempts[actor_id]
        if count >= self.threshold:
            logger.warning(
                "Account %s has made %d unauthorized decision attempts (latest: %s on report %s)",
                actor_id,
                count,
                event.decision,
                event.report_id,
            )
