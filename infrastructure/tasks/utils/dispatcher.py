"""Deferred dispatch backed by Celery, decoupling callers from the task API."""
from __future__ import annotations

import asyncio
from typing import Any, Dict

from core.logging_config import get_logger
from domain.payment.exceptions import SchedulingError
from ..config.celery import celery_app


logger = get_logger(__name__)


class CeleryDeferredDispatcher:
    """Runs a named task after a fixed countdown (the DeferredDispatch port)."""

    def __init__(self, delay_seconds: int = 30, queue: str | None = None) -> None:
        self.delay_seconds = delay_seconds
        self.queue = queue

    def _enqueue(self, hook: str, payload: Dict[str, Any]) -> None:
        # Registered tasks go through apply_async so eager mode is honoured.
        from .. import payment_tasks  # noqa: F401  (registers payment tasks)

        options: Dict[str, Any] = {"countdown": self.delay_seconds}
        if self.queue:
            options["queue"] = self.queue
        task = celery_app.tasks.get(hook)
        if task is not None:
            task.apply_async(kwargs=payload, **options)
        else:
            celery_app.send_task(hook, kwargs=payload, **options)

    async def schedule(self, hook: str, payload: Dict[str, Any]) -> None:
        try:
            await asyncio.to_thread(self._enqueue, hook, payload)
        except Exception as exc:
            logger.error("deferred_dispatch_failed", hook=hook, error=str(exc))
            raise SchedulingError(hook=hook) from exc
        logger.debug("deferred_dispatch_scheduled", hook=hook, countdown=self.delay_seconds)
