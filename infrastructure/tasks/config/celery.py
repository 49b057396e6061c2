"""Celery application for deferred payment processing"""
from __future__ import annotations

import os

from celery import Celery
from kombu import Queue

from core.config import settings
from core.logging_config import get_logger
from core.settings import processor_settings


CELERY_IMPORTS = (
    "infrastructure.tasks.payment_tasks",
)

EAGER_ENVIRONMENTS = frozenset({"development", "dev", "test", "testing"})

_broker = settings.redis.url or os.getenv("CELERY_BROKER_URL")
_queue = processor_settings.schedule.queue

celery_app = Celery("payment_reconciler")

celery_app.conf.update(
    broker_url=_broker,
    result_backend=settings.redis.url or os.getenv("CELERY_RESULT_BACKEND"),
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # worker 崩溃时任务重新入队
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,
    worker_prefetch_multiplier=1,
    task_default_queue=_queue,
    task_queues=(Queue(_queue),),
    task_routes={"payments.*": {"queue": _queue}},
    imports=CELERY_IMPORTS,
)

# 本地/测试环境同步执行，countdown 被忽略
celery_app.conf.task_always_eager = (settings.ENVIRONMENT or "production").lower() in EAGER_ENVIRONMENTS


logger = get_logger(__name__)


@celery_app.on_after_configure.connect
def _log_configuration(sender, **kwargs):
    logger.info("celery_configured", queue=_queue, eager=sender.conf.task_always_eager)
