"""
Base payment client implementing shared concerns: http, response mapping, logging.

Concrete processors subclass and implement endpoint-specific logic. Requests
are sent once; transport and HTTP failures come back as error-shaped
response objects instead of exceptions.
"""
from __future__ import annotations

import json
from typing import Any, Optional
from contextlib import asynccontextmanager

import httpx

from core.logging_config import get_logger
from application.dtos.gateway import GatewayResponse


logger = get_logger(__name__)


class BasePaymentClient:
    provider: str = "base"

    def __init__(
        self,
        *,
        timeouts: Optional[dict[str, float]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeouts_cfg = timeouts or {"connect": 1.0, "read": 3.0, "write": 3.0, "total": 5.0}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def timeouts(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self._timeouts_cfg["connect"],
            read=self._timeouts_cfg["read"],
            write=self._timeouts_cfg["write"],
            timeout=self._timeouts_cfg["total"],
        )

    @asynccontextmanager
    async def client(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeouts, transport=self._transport)
        try:
            yield self._client
        finally:
            # Keep open for reuse; explicit aclose() will close.
            ...

    async def aclose(self) -> None:
        """Close underlying HTTP client if created."""
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def _send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        response_type: type[GatewayResponse],
        body: Optional[dict[str, Any]] = None,
    ) -> GatewayResponse:
        try:
            async with self.client() as http:
                resp = await http.request(method, url, headers=headers, json=body if body else None)
        except httpx.HTTPError as exc:
            return response_type.from_error(str(exc) or exc.__class__.__name__, request_body=body)

        try:
            payload = resp.json() if resp.content else None
        except (json.JSONDecodeError, ValueError):
            payload = None
        return response_type(
            status_code=resp.status_code,
            reason_phrase=resp.reason_phrase,
            body=payload,
            request_body=body,
        )

    def _log(self, event: str, response: GatewayResponse, **kwargs) -> None:
        if response.request_is_success():
            logger.debug(event, provider=self.provider, **kwargs, **response.log_data())
        else:
            logger.error(event, provider=self.provider, **kwargs, **response.log_data())
