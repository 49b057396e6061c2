"""
Deferred dispatch port: run a named hook with a payload after a fixed delay.
"""
from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class DeferredDispatch(Protocol):
    async def schedule(self, hook: str, payload: dict[str, Any]) -> None:
        """Enqueue `hook` for later execution; raises SchedulingError on failure."""
        ...
