"""
Incoming redirect/webhook authentication and validation.

Both channels are untrusted: the browser redirect is signed with a two-round
SHA-256 over selected fields, the webhook with HMAC-SHA256 over the raw body.
Only data that passes every check becomes an `IncomingEvent`.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import re
from collections.abc import Mapping
from typing import Any, Iterable

from application.dtos.payments import (
    IncomingEvent,
    WEBHOOK_CARD_NEW,
    WEBHOOK_CARD_UPDATE,
    WEBHOOK_STATUS_UPDATE,
    WEBHOOK_TYPES,
)
from core.logging_config import get_logger
from domain.payment.exceptions import IncomingDataError, IncomingSignatureError


logger = get_logger(__name__)

REDIRECT_REQUIRED_FIELDS = ("status", "transaction_id", "order_id", "timestamp", "hash")
WEBHOOK_REQUIRED_FIELDS = ("webhook_id", "webhook_type", "webhook_body")
CARD_REQUIRED_FIELDS = ("holder_name", "scheme", "number", "expiry_month", "expiry_year")

_WHITESPACE = re.compile(r"\s+")
_SCRIPT_STYLE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]*>")


def webhook_body_requirements(webhook_type: str) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """(body fields, nested card fields) required for a webhook kind."""
    if webhook_type == WEBHOOK_STATUS_UPDATE:
        return ("transaction_id", "status", "order_id"), ()
    if webhook_type == WEBHOOK_CARD_NEW:
        return ("transaction_id", "status", "order_id", "card_id"), ()
    if webhook_type == WEBHOOK_CARD_UPDATE:
        return ("card_id", "update_type", "update_detail", "card"), CARD_REQUIRED_FIELDS
    return (), ()


def is_empty(value: Any) -> bool:
    """Absent, empty string, zero, "0", False or an empty container."""
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value == "" or value == "0"
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _get(data: Any, name: str) -> Any:
    if isinstance(data, Mapping):
        return data.get(name)
    return getattr(data, name, None)


def missing_fields(data: Any, fields: Iterable[str]) -> list[str]:
    return [name for name in fields if is_empty(_get(data, name))]


def strip_markup(value: str) -> str:
    """Drop script/style blocks and tags, collapse whitespace. Entities stay encoded."""
    value = _SCRIPT_STYLE.sub("", value)
    value = _TAG.sub("", value)
    return _WHITESPACE.sub(" ", value).strip()


def sanitize(value: Any) -> Any:
    """Apply `strip_markup` to every string, recursively."""
    if isinstance(value, str):
        return strip_markup(value)
    if isinstance(value, Mapping):
        return {k: sanitize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [sanitize(v) for v in value]
    return value


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def redirect_signature(fields: Mapping[str, Any], app_key: str) -> str:
    first = hashlib.sha256(
        "".join(_text(fields.get(k)) for k in ("status", "transaction_id", "order_id", "timestamp")).encode("utf-8")
    ).hexdigest()
    return hashlib.sha256((first + app_key).encode("utf-8")).hexdigest()


def webhook_signature(raw_body: str, app_key: str) -> str:
    canonical = _WHITESPACE.sub("", raw_body)
    return hmac.new(app_key.encode("utf-8"), canonical.encode("utf-8"), hashlib.sha256).hexdigest()


def webhook_log_data(raw_body: str) -> dict[str, Any]:
    """Loggable form of an unauthenticated body.

    Decoded JSON goes to the log as a dict so key based redaction applies;
    anything else is reduced to its length and digest.
    """
    try:
        decoded = json.loads(raw_body)
    except ValueError:
        decoded = None
    if isinstance(decoded, dict):
        return {"incoming-webhook-data": decoded}
    return {
        "incoming-webhook-data": {
            "length": len(raw_body),
            "sha256": hashlib.sha256(raw_body.encode("utf-8")).hexdigest(),
        }
    }


def _digest_equals(expected: str, supplied: str) -> bool:
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))


class IncomingDataService:
    """Turns raw redirect fields or webhook bodies into trusted events."""

    def __init__(self, app_key: str) -> None:
        self._app_key = app_key or ""

    def _fail(self, channel: str, error: IncomingDataError, log_data: dict | None = None) -> IncomingDataError:
        logger.error("incoming_data_rejected", channel=channel, error=error.message, **(log_data or {}))
        return error

    @staticmethod
    def _require(data: Any, fields: Iterable[str], context: str) -> None:
        missing = missing_fields(data, fields)
        if missing:
            raise IncomingDataError(f'Missing required fields in {context}: "{", ".join(missing)}".')

    def parse_redirect(self, fields: Mapping[str, Any]) -> IncomingEvent:
        data = sanitize(dict(fields or {}))
        log_data = {"incoming-redirect-data": data}
        try:
            self._require(data, REDIRECT_REQUIRED_FIELDS, "redirect_data")
            if not self._app_key or not _digest_equals(redirect_signature(data, self._app_key), _text(data.get("hash"))):
                raise IncomingSignatureError("Redirect data hash is invalid.", channel="redirect")
        except IncomingDataError as exc:
            raise self._fail("redirect", exc, log_data)

        event = IncomingEvent(
            channel="redirect",
            kind=WEBHOOK_STATUS_UPDATE,
            order_reference=_text(data.get("order_id")),
            transaction_id=_text(data.get("transaction_id")),
            status=_text(data.get("status")),
            timestamp=_to_int(data.get("timestamp")),
            hash=_text(data.get("hash")),
            payload=data,
        )
        logger.debug("incoming_data_received", channel="redirect", **event.log_data())
        return event

    def parse_webhook(self, raw_body: str | bytes, supplied_hash: str | None) -> IncomingEvent:
        if isinstance(raw_body, bytes):
            raw_body = raw_body.decode("utf-8", errors="replace")
        supplied_hash = supplied_hash or ""
        log_data = webhook_log_data(raw_body)
        try:
            if not self._app_key or not _digest_equals(webhook_signature(raw_body, self._app_key), supplied_hash):
                raise IncomingSignatureError("Webhook hash is invalid.", channel="webhook")

            try:
                decoded = json.loads(raw_body)
            except ValueError:
                decoded = None
            if not isinstance(decoded, dict) or not decoded:
                raise IncomingDataError("Webhook data is invalid.")

            data = sanitize(decoded)
            log_data = {"incoming-webhook-data": data}

            self._require(data, WEBHOOK_REQUIRED_FIELDS, "webhook")

            webhook_type = _text(data.get("webhook_type"))
            if webhook_type not in WEBHOOK_TYPES:
                raise IncomingDataError(
                    f'Wrong webhook type sent. Webhook type "{webhook_type}". '
                    f"Webhook ID: {_text(data.get('webhook_id'))}."
                )

            body = data.get("webhook_body")
            if not isinstance(body, Mapping):
                body = {}
            body_fields, card_fields = webhook_body_requirements(webhook_type)
            self._require(body, body_fields, "webhook_body")
            if card_fields:
                card = body.get("card")
                self._require(card if isinstance(card, Mapping) else {}, card_fields, "webhook_body")
        except IncomingDataError as exc:
            raise self._fail("webhook", exc, log_data)

        event = IncomingEvent(
            channel="webhook",
            kind=webhook_type,
            webhook_id=_text(data.get("webhook_id")),
            timestamp=_to_int(data.get("timestamp")),
            hash=supplied_hash,
            payload=data,
            raw_body=raw_body,
        )
        if webhook_type in (WEBHOOK_STATUS_UPDATE, WEBHOOK_CARD_NEW):
            event.order_reference = _text(body.get("order_id"))
            event.transaction_id = _text(body.get("transaction_id"))
            event.status = _text(body.get("status"))
        if webhook_type in (WEBHOOK_CARD_NEW, WEBHOOK_CARD_UPDATE):
            event.card_id = _text(body.get("card_id"))

        logger.debug("incoming_data_received", channel="webhook", webhook_type=webhook_type, **event.log_data())
        return event
