"""Celery task infrastructure package.

Importing this module wires together the configured Celery app and the
deferred dispatcher that the payment services depend upon.
"""
from .config.celery import celery_app
from .utils.dispatcher import CeleryDeferredDispatcher

__all__ = ["celery_app", "CeleryDeferredDispatcher"]
