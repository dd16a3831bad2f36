"""Ordered background execution of post-commit side effects.

A single consumer drains an ``asyncio.Queue`` so effects run in the order
their transitions committed. A failing effect is logged, counted and
dropped; it never stops the consumer and never reaches the caller whose
write produced it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from ..obs.errors import capture_exception
from ..routes_metrics import side_effect_failures_total

logger = logging.getLogger("tableside.effects")

Effect = Callable[[], Awaitable[None]]


class EffectQueue:
    def __init__(self, stage: str = "notify", timeout: float | None = None) -> None:
        self._stage = stage
        self._timeout = timeout
        self._queue: asyncio.Queue[Effect | None] | None = None
        self._worker: asyncio.Task | None = None

    def _ensure_worker(self) -> asyncio.Queue:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())
        return self._queue

    def submit(self, effect: Effect) -> None:
        """Schedule ``effect`` after everything submitted before it."""
        self._ensure_worker().put_nowait(effect)

    async def _run(self) -> None:
        queue = self._queue
        while True:
            effect = await queue.get()
            try:
                if effect is None:
                    return
                if self._timeout:
                    await asyncio.wait_for(effect(), timeout=self._timeout)
                else:
                    await effect()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                side_effect_failures_total.labels(stage=self._stage).inc()
                logger.exception("%s side effect failed", self._stage)
                capture_exception(exc)
            finally:
                queue.task_done()

    async def join(self) -> None:
        """Wait until every submitted effect has run."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        """Drain pending effects, then stop the consumer."""
        if self._worker is None or self._worker.done():
            return
        self._queue.put_nowait(None)
        try:
            await self._worker
        finally:
            self._worker = None


__all__ = ["EffectQueue", "Effect"]
