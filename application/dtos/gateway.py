"""
Processor response variants returned by the gateway port.

Every remote call yields one of these objects instead of raising: the services
decide between decline and outright error from `request_is_success()`,
`decline_reason` and `error_message_formatted()`.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from shared.codes import ACTION_SUCCESS_STATUSES


class ResponseValidationError(Exception):
    """Successful HTTP exchange whose body lacks required data."""


class GatewayResponse:
    """Shared contract of processor responses."""

    def __init__(
        self,
        *,
        status_code: int = 0,
        reason_phrase: str = "",
        body: Any = None,
        request_body: Optional[dict] = None,
        error: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.reason_phrase = reason_phrase
        self.body: Optional[dict] = body if isinstance(body, dict) else None
        self.request_body = request_body or {}
        self.error_message = ""
        self.invalid_parameters: list[str] = []
        self._request_succeeded = False
        try:
            if error is not None:
                self.error_message = error
            elif status_code >= 400:
                self._read_error_body()
            else:
                self.validate()
                self._request_succeeded = True
        except ResponseValidationError as exc:
            self.error_message = str(exc)
            self._request_succeeded = False
        finally:
            self.status = self._resolve_status()

    @classmethod
    def from_error(cls, message: str, request_body: Optional[dict] = None):
        return cls(error=message or "Unknown error", request_body=request_body)

    def _read_error_body(self) -> None:
        message = self.field("error") or self.field("title") or self.reason_phrase
        self.error_message = str(message or "Unknown error")
        params = self.field("invalid_parameters")
        if isinstance(params, list):
            self.invalid_parameters = [
                f"{p.get('parameter', '')} - {p.get('reason', '')}" for p in params if isinstance(p, dict)
            ]

    def validate(self) -> None:
        if not self.body:
            raise ResponseValidationError("Invalid response body")

    def _resolve_status(self) -> str:
        return self.field("status") or "error_unknown"

    def field(self, name: str) -> Any:
        if not self.body:
            return None
        return self.body.get(name)

    def request_is_success(self) -> bool:
        return self._request_succeeded

    def request_is_error(self) -> bool:
        return not self._request_succeeded

    def error_message_formatted(self, with_invalid_params: bool = False) -> str:
        if not self.error_message:
            return ""
        message = f'Error message: "{self.error_message}".'
        if with_invalid_params and self.invalid_parameters:
            message += f' Invalid parameters: "{", ".join(self.invalid_parameters)}".'
        return message

    def log_data(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "status": self.status,
            "response_code": self.status_code,
            "reason_phrase": self.reason_phrase,
            "request_body": self.request_body,
            "response_body": self.body,
        }
        if self.request_is_error():
            data["error_message"] = self.error_message
        return data


def _parse_created(value: Any) -> Optional[int]:
    if not value:
        return None
    if isinstance(value, (int, float)):
        return int(value)
    try:
        created = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return int(created.timestamp())


class TransactionResponse(GatewayResponse):
    def validate(self) -> None:
        super().validate()
        if not self.field("transaction_id") or not self.field("status"):
            raise ResponseValidationError("Required transaction data not found.")

    @property
    def transaction_id(self) -> Optional[str]:
        return self.field("transaction_id")

    @property
    def transaction_type(self) -> Optional[str]:
        return self.field("transaction_type")

    @property
    def payment_method(self) -> Optional[str]:
        return self.field("payment_method")

    @property
    def card_id(self) -> Optional[str]:
        return self.field("card_id")

    @property
    def decline_reason(self) -> Optional[str]:
        succeeded = self.request_is_success() and self.status == "success"
        reason = self.field("reason")
        return reason if not succeeded and reason else None

    @property
    def created_timestamp(self) -> Optional[int]:
        return _parse_created(self.field("created"))


class TransactionActionResponse(GatewayResponse):
    success_statuses = ACTION_SUCCESS_STATUSES

    def validate(self) -> None:
        super().validate()
        if not self.field("transaction_id") or not self.field("status"):
            raise ResponseValidationError("Required transaction data not found.")

    @property
    def transaction_id(self) -> Optional[str]:
        return self.field("transaction_id")

    def action_is_successful(self) -> bool:
        return self.request_is_success() and self.status in self.success_statuses

    @property
    def decline_reason(self) -> Optional[str]:
        """Status of an answered but refused action; None for outright errors."""
        if self.request_is_error() or self.action_is_successful():
            return None
        return self.status


class CaptureResponse(TransactionActionResponse):
    def is_captured(self) -> bool:
        return self.action_is_successful()


class CancelResponse(TransactionActionResponse):
    def is_cancelled(self) -> bool:
        return self.action_is_successful()


class RefundResponse(TransactionActionResponse):
    def is_refunded(self) -> bool:
        return self.action_is_successful()


CARD_FIELDS = ("holder_name", "scheme", "number", "expiry_month", "expiry_year")


class CardResponse(GatewayResponse):
    def validate(self) -> None:
        super().validate()
        card = self.field("card")
        if not isinstance(card, dict) or not card or not self.field("customer_id"):
            raise ResponseValidationError("Required card data not found.")
        for name in CARD_FIELDS:
            if not card.get(name):
                raise ResponseValidationError(f'Required card field "{name}" not found.')

    def _resolve_status(self) -> str:
        # Card bodies carry no status of their own.
        if self.request_is_success() and self.field("card"):
            return "success"
        return super()._resolve_status()

    @property
    def card_data(self) -> Optional[dict]:
        return self.field("card")

    @property
    def card_id(self) -> Optional[str]:
        return self.field("card_id")

    @property
    def customer_id(self) -> Optional[str]:
        return self.field("customer_id")

    def is_active(self) -> bool:
        return self.request_is_success() and bool(self.field("is_active"))


class CustomerResponse(GatewayResponse):
    def validate(self) -> None:
        super().validate()
        if not self.field("reference"):
            raise ResponseValidationError("Required customer data not found.")

    def _resolve_status(self) -> str:
        if self.request_is_success() and self.field("reference"):
            return "success"
        return super()._resolve_status()


class TokenResponse(GatewayResponse):
    def validate(self) -> None:
        super().validate()
        if not self.field("token_type") or not self.field("access_token"):
            raise ResponseValidationError("Access token creation failed.")

    def _resolve_status(self) -> str:
        if self.request_is_success() and self.field("access_token"):
            return "success"
        return super()._resolve_status()

    @property
    def authorization(self) -> Optional[str]:
        if not self.request_is_success():
            return None
        return f"{self.field('token_type')} {self.field('access_token')}"

    def log_data(self) -> dict[str, Any]:
        data = super().log_data()
        data.pop("request_body", None)
        data.pop("response_body", None)
        return data
