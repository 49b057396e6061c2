"""Common base task for Celery jobs"""
from __future__ import annotations

from celery import Task
from structlog.contextvars import bound_contextvars

from core.logging_config import get_logger

logger = get_logger(__name__)


class BaseTask(Task):
    """Binds the task id into log context and reports failures; never retries."""

    max_retries = 0

    def __call__(self, *args, **kwargs):
        with bound_contextvars(task_id=getattr(self.request, "id", None), task_name=self.name):
            return super().__call__(*args, **kwargs)

    def on_failure(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        # kwargs hold the raw webhook body and hash; keep them out of the log line.
        logger.error(
            "celery_task_failure",
            task_id=task_id,
            task_name=self.name,
            exc=str(exc),
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)
