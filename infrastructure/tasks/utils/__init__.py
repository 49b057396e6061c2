from .base_task import BaseTask
from .dispatcher import CeleryDeferredDispatcher

__all__ = ["BaseTask", "CeleryDeferredDispatcher"]
