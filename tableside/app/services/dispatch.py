"""Post-commit pipeline for lifecycle transitions.

Invalidation runs inline so the caller reads its own write; notification is
queued behind every earlier transition so subscribers see commit order.
Neither step can fail the operation that produced the transition.
"""

from __future__ import annotations

import logging
from functools import partial

from ..obs.errors import capture_exception
from ..routes_metrics import lifecycle_transitions_total, side_effect_failures_total
from .effects import EffectQueue
from .invalidation import InvalidationCoordinator
from .transitions import Transition

logger = logging.getLogger("tableside.dispatch")


class TransitionDispatcher:
    def __init__(
        self,
        coordinator: InvalidationCoordinator,
        notifier=None,
        effects: EffectQueue | None = None,
    ) -> None:
        self.coordinator = coordinator
        self.notifier = notifier
        self.effects = effects or EffectQueue(stage="notify")

    async def committed(self, transition: Transition) -> None:
        """Run side effects for a transition whose store write succeeded."""
        lifecycle_transitions_total.labels(kind=transition.kind.value).inc()
        logger.info(
            "transition %s",
            transition.kind.value,
            extra={
                "kind": transition.kind.value,
                "order_id": transition.order_id,
                "session_id": transition.session_id,
                "table_id": transition.table_code,
            },
        )
        try:
            await self.coordinator.invalidate(transition)
        except Exception as exc:
            side_effect_failures_total.labels(stage="invalidate").inc()
            logger.exception("invalidation failed for %s", transition.kind.value)
            capture_exception(exc)
        if self.notifier is not None:
            self.effects.submit(partial(self.notifier.dispatch, transition))

    async def drain(self) -> None:
        """Wait for queued notifications; used by tests and on shutdown."""
        await self.effects.join()


__all__ = ["TransitionDispatcher"]
