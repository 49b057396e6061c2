"""
REST adapter for the remote payment processor.

Auth: `POST login` with app credentials returns a bearer token; every other
call carries it in `Authorization`. Cancel and refund share the `reversal`
endpoint and differ only in the body (refunds carry an amount).
"""
from __future__ import annotations

from typing import Any, Optional

import httpx

from application.dtos.gateway import (
    CancelResponse,
    CaptureResponse,
    CardResponse,
    CustomerResponse,
    GatewayResponse,
    RefundResponse,
    TokenResponse,
    TransactionResponse,
)
from core.settings import ProcessorSettings, processor_settings
from infrastructure.external.payments.base import BasePaymentClient


# Response variant per endpoint
RESPONSE_TYPES: dict[str, type[GatewayResponse]] = {
    "login": TokenResponse,
    "transaction": TransactionResponse,
    "capture": CaptureResponse,
    "cancel": CancelResponse,
    "refund": RefundResponse,
    "card": CardResponse,
    "card_update": GatewayResponse,
    "customer": CustomerResponse,
}

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


def build_api_url(base: str, slug: str, id: str = "", endpoint: str = "", fields: Optional[list[str]] = None) -> str:
    path = "/".join(part for part in (slug, id, endpoint) if part) + "/"
    url = base.rstrip("/") + "/" + path
    if fields:
        url += "?" + str(httpx.QueryParams({"filter": ",".join(fields)}))
    return url


class ProcessorClient(BasePaymentClient):
    provider = "acquired"

    def __init__(
        self,
        settings: Optional[ProcessorSettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or processor_settings
        super().__init__(timeouts=self.settings.timeouts.model_dump(), transport=transport)

    def _url(self, slug: str, id: str = "", endpoint: str = "", fields: Optional[list[str]] = None) -> str:
        return build_api_url(self.settings.api_url, slug, id, endpoint, fields)

    async def _access_token(self) -> TokenResponse:
        response = await self._send(
            "POST",
            self._url("login"),
            headers=dict(DEFAULT_HEADERS),
            response_type=RESPONSE_TYPES["login"],
            body={"app_id": self.settings.app_id, "app_key": self.settings.app_key},
        )
        self._log("processor_access_token", response)
        return response  # type: ignore[return-value]

    async def _request(
        self,
        method: str,
        kind: str,
        url: str,
        body: Optional[dict[str, Any]] = None,
    ) -> Any:
        response_type = RESPONSE_TYPES[kind]
        token = await self._access_token()
        if not token.authorization:
            return response_type.from_error(
                "Access token in authorization header doesn't exist.", request_body=body
            )

        headers = {**DEFAULT_HEADERS, "Authorization": token.authorization}
        response = await self._send(method, url, headers=headers, response_type=response_type, body=body)
        self._log("processor_request", response, method=method, endpoint=kind)
        return response

    async def get_transaction(self, transaction_id: str, fields: Optional[list[str]] = None) -> TransactionResponse:
        return await self._request("GET", "transaction", self._url("transactions", transaction_id, fields=fields))

    async def capture_transaction(self, transaction_id: str, body: dict) -> CaptureResponse:
        return await self._request("POST", "capture", self._url("transactions", transaction_id, "capture"), body)

    async def cancel_transaction(self, transaction_id: str, body: dict) -> CancelResponse:
        return await self._request("POST", "cancel", self._url("transactions", transaction_id, "reversal"), body)

    async def refund_transaction(self, transaction_id: str, body: dict) -> RefundResponse:
        return await self._request("POST", "refund", self._url("transactions", transaction_id, "reversal"), body)

    async def get_card(self, card_id: str) -> CardResponse:
        return await self._request("GET", "card", self._url("cards", card_id))

    async def update_card(self, card_id: str, body: dict) -> GatewayResponse:
        return await self._request("PUT", "card_update", self._url("cards", card_id), body)

    async def get_customer(self, customer_id: str) -> CustomerResponse:
        return await self._request("GET", "customer", self._url("customers", customer_id))
