import json

import pytest

from application.dtos.payments import WEBHOOK_CARD_NEW, WEBHOOK_CARD_UPDATE, WEBHOOK_STATUS_UPDATE
from application.services import incoming_data_service
from application.services.incoming_data_service import (
    IncomingDataService,
    is_empty,
    missing_fields,
    sanitize,
    webhook_log_data,
    webhook_signature,
)
from core.config import settings
from core.logging_config import RedactSensitiveFields
from domain.payment.exceptions import IncomingDataError, IncomingSignatureError
from domain.payment.references import OrderReference, PaymentMethodReference
from tests.fakes import APP_KEY, redirect, sign_webhook, webhook


CARD = {
    "holder_name": "J Smith",
    "scheme": "visa",
    "number": "4242",
    "expiry_month": "03",
    "expiry_year": "27",
}


def _card_update_body(card):
    return {"card_id": "card_1", "update_type": "card_details", "update_detail": "expiry", "card": card}


def test_parse_status_update_webhook(incoming):
    raw, signature = webhook(WEBHOOK_STATUS_UPDATE, {"transaction_id": "t1", "status": "success", "order_id": "101-wc_order_abc"})
    event = incoming.parse_webhook(raw, signature)
    assert event.channel == "webhook"
    assert event.kind == WEBHOOK_STATUS_UPDATE
    assert event.transaction_id == "t1"
    assert event.status == "success"
    assert event.reference == OrderReference(order_id=101, order_key="wc_order_abc")
    assert event.raw_body == raw
    assert event.hash == signature


def test_webhook_bytes_body_is_accepted(incoming):
    raw, signature = webhook(WEBHOOK_STATUS_UPDATE, {"transaction_id": "t1", "status": "success", "order_id": "101-k"})
    event = incoming.parse_webhook(raw.encode("utf-8"), signature)
    assert event.order_id == 101


def test_webhook_hash_ignores_formatting(incoming):
    body = {"transaction_id": "t1", "status": "success", "order_id": "101-k"}
    pretty, _ = webhook(WEBHOOK_STATUS_UPDATE, body, indent=4)
    compact, compact_hash = webhook(WEBHOOK_STATUS_UPDATE, body)
    assert incoming.parse_webhook(pretty, compact_hash).transaction_id == "t1"
    assert webhook_signature(pretty, APP_KEY) == webhook_signature(compact, APP_KEY)


def test_any_single_byte_change_breaks_the_hash(incoming):
    raw, signature = webhook(WEBHOOK_STATUS_UPDATE, {"transaction_id": "t1", "status": "success", "order_id": "101-k"})
    for position in (0, len(raw) // 2, len(raw) - 1):
        original = raw[position]
        replacement = "x" if original != "x" else "y"
        mutated = raw[:position] + replacement + raw[position + 1:]
        with pytest.raises(IncomingSignatureError, match="Webhook hash is invalid."):
            incoming.parse_webhook(mutated, signature)


@pytest.mark.parametrize("supplied", [None, "", "0" * 64])
def test_missing_or_wrong_webhook_hash(incoming, supplied):
    raw, _ = webhook(WEBHOOK_STATUS_UPDATE, {"transaction_id": "t1", "status": "success", "order_id": "101-k"})
    with pytest.raises(IncomingSignatureError):
        incoming.parse_webhook(raw, supplied)


def test_empty_app_key_rejects_everything():
    raw, _ = webhook(WEBHOOK_STATUS_UPDATE, {"transaction_id": "t1", "status": "success", "order_id": "101-k"})
    service = IncomingDataService("")
    with pytest.raises(IncomingSignatureError):
        service.parse_webhook(raw, sign_webhook(raw, ""))


def test_signed_garbage_is_invalid_data(incoming):
    raw = "not json"
    with pytest.raises(IncomingDataError, match="Webhook data is invalid."):
        incoming.parse_webhook(raw, sign_webhook(raw))


def test_missing_order_id_is_reported_alone(incoming):
    raw, signature = webhook(WEBHOOK_STATUS_UPDATE, {"transaction_id": "t1", "status": "success"})
    with pytest.raises(IncomingDataError) as exc_info:
        incoming.parse_webhook(raw, signature)
    assert exc_info.value.message == 'Missing required fields in webhook_body: "order_id".'


def test_missing_envelope_fields(incoming):
    raw = json.dumps({"webhook_type": WEBHOOK_STATUS_UPDATE, "webhook_id": ""})
    with pytest.raises(IncomingDataError) as exc_info:
        incoming.parse_webhook(raw, sign_webhook(raw))
    assert exc_info.value.message == 'Missing required fields in webhook: "webhook_id, webhook_body".'


def test_wrong_webhook_type(incoming):
    raw, signature = webhook("refund_update", {"transaction_id": "t1"}, webhook_id="wh_9")
    with pytest.raises(IncomingDataError) as exc_info:
        incoming.parse_webhook(raw, signature)
    assert exc_info.value.message == 'Wrong webhook type sent. Webhook type "refund_update". Webhook ID: wh_9.'


def test_card_new_requires_card_id(incoming):
    raw, signature = webhook(WEBHOOK_CARD_NEW, {"transaction_id": "t1", "status": "success", "order_id": "7-add_payment_method-n1"})
    with pytest.raises(IncomingDataError, match='"card_id"'):
        incoming.parse_webhook(raw, signature)


def test_card_new_for_payment_method_flow(incoming):
    raw, signature = webhook(
        WEBHOOK_CARD_NEW,
        {"transaction_id": "t1", "status": "success", "order_id": "7-add_payment_method-n1", "card_id": "card_1"},
    )
    event = incoming.parse_webhook(raw, signature)
    assert event.card_id == "card_1"
    assert event.is_for_payment_method()
    assert event.reference == PaymentMethodReference(user_id=7, nonce="n1")


@pytest.mark.parametrize("field", sorted(CARD))
def test_card_update_reports_each_missing_card_field(incoming, field):
    card = {k: v for k, v in CARD.items() if k != field}
    raw, signature = webhook(WEBHOOK_CARD_UPDATE, _card_update_body(card))
    with pytest.raises(IncomingDataError) as exc_info:
        incoming.parse_webhook(raw, signature)
    assert exc_info.value.message == f'Missing required fields in webhook_body: "{field}".'


def test_card_update_reports_inner_names(incoming):
    card = dict(CARD, number="", expiry_month="")
    raw, signature = webhook(WEBHOOK_CARD_UPDATE, _card_update_body(card))
    with pytest.raises(IncomingDataError) as exc_info:
        incoming.parse_webhook(raw, signature)
    assert exc_info.value.message == 'Missing required fields in webhook_body: "number, expiry_month".'


def test_card_update_event(incoming):
    raw, signature = webhook(WEBHOOK_CARD_UPDATE, _card_update_body(CARD))
    event = incoming.parse_webhook(raw, signature)
    assert event.card_id == "card_1"
    assert event.transaction_id == ""


def test_parse_redirect(incoming):
    event = incoming.parse_redirect(redirect("success", "t1", "101-wc_order_abc"))
    assert event.channel == "redirect"
    assert event.status == "success"
    assert event.timestamp == 1715774400
    assert event.order_id == 101


def test_redirect_hash_mismatch(incoming):
    fields = redirect("success", "t1", "101-wc_order_abc")
    fields["status"] = "declined"
    with pytest.raises(IncomingSignatureError, match="Redirect data hash is invalid."):
        incoming.parse_redirect(fields)


def test_redirect_missing_fields_in_declared_order(incoming):
    with pytest.raises(IncomingDataError) as exc_info:
        incoming.parse_redirect({"status": "success", "order_id": "101-k", "timestamp": ""})
    assert exc_info.value.message == 'Missing required fields in redirect_data: "transaction_id, timestamp, hash".'


def test_redirect_fields_are_sanitized(incoming):
    fields = redirect("success", "t1", "101-k")
    fields["extra"] = "<script>alert(1)</script>note"
    fields["escaped"] = "&lt;b&gt;x"
    event = incoming.parse_redirect(fields)
    assert event.payload["extra"] == "note"
    assert event.payload["escaped"] == "&lt;b&gt;x"


@pytest.mark.parametrize("value", [None, "", "0", 0, False, [], {}])
def test_is_empty(value):
    assert is_empty(value)


@pytest.mark.parametrize("value", ["a", 1, "00", True, [0], {"a": 1}])
def test_is_not_empty(value):
    assert not is_empty(value)


def test_missing_fields_works_on_objects():
    class Body:
        transaction_id = "t1"
        status = ""

    assert missing_fields(Body(), ["transaction_id", "status", "order_id"]) == ["status", "order_id"]


def test_sanitize_is_recursive():
    assert sanitize({"a": ["<b>x</b>", {"c": "<i>y</i>"}], "n": 5}) == {"a": ["x", {"c": "y"}], "n": 5}


@pytest.mark.parametrize(
    "value, expected",
    [
        ("&lt;script&gt;alert(1)&lt;/script&gt;", "&lt;script&gt;alert(1)&lt;/script&gt;"),
        ("<b>bold</b>  and\n\tspaced", "bold and spaced"),
        ("<STYLE type='text/css'>p {}</STYLE>O'Brien & Co", "O'Brien & Co"),
    ],
)
def test_sanitize_never_decodes_entities(value, expected):
    assert sanitize(value) == expected


class _RecordingLogger:
    def __init__(self):
        self.records = []

    def error(self, event, **kw):
        self.records.append((event, kw))

    def debug(self, event, **kw):
        pass


def test_rejected_webhook_body_is_logged_as_redactable_data(incoming, monkeypatch):
    recorder = _RecordingLogger()
    monkeypatch.setattr(incoming_data_service, "logger", recorder)
    card = dict(CARD, holder_name="Jane Doe", number="4242424242424242")
    raw, _ = webhook(WEBHOOK_CARD_UPDATE, _card_update_body(card))

    with pytest.raises(IncomingSignatureError):
        incoming.parse_webhook(raw, "bad")

    [(event, fields)] = recorder.records
    assert event == "incoming_data_rejected"
    redacted = RedactSensitiveFields(settings.LOG_REDACT_FIELDS)(None, "error", dict(fields))
    rendered = json.dumps(redacted)
    assert "4242424242424242" not in rendered
    assert "Jane Doe" not in rendered
    assert redacted["incoming-webhook-data"]["webhook_body"]["card_id"] == "card_1"


def test_undecodable_webhook_body_is_logged_as_digest():
    raw = 'holder_name=Jane Doe&number=4242424242424242'

    data = webhook_log_data(raw)["incoming-webhook-data"]

    assert data["length"] == len(raw)
    assert len(data["sha256"]) == 64
    assert "4242424242424242" not in json.dumps(data)
