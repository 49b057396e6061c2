from core.config import DEFAULT_REDACT_FIELDS
from core.logging_config import REDACTED, RedactSensitiveFields


def test_nested_fields_are_redacted():
    processor = RedactSensitiveFields(["hash", "number", "App_Key"])
    event = {
        "event": "incoming_data_rejected",
        "incoming-webhook-data": {
            "webhook_id": "wh_1",
            "webhook_body": {"card": {"Number": "4242424242424242", "scheme": "visa"}},
        },
        "hash": "abc",
        "app_key": "secret",
        "items": [{"number": "1"}, "plain"],
    }

    redacted = processor(None, "error", event)

    assert redacted["event"] == "incoming_data_rejected"
    assert redacted["hash"] == REDACTED
    assert redacted["app_key"] == REDACTED
    assert redacted["incoming-webhook-data"]["webhook_id"] == "wh_1"
    assert redacted["incoming-webhook-data"]["webhook_body"]["card"] == {"Number": REDACTED, "scheme": "visa"}
    assert redacted["items"] == [{"number": REDACTED}, "plain"]


def test_default_fields_cover_credentials_and_card_holder_data():
    for name in ("app_key", "app_id", "access_token", "hash", "holder_name", "number", "email"):
        assert name in DEFAULT_REDACT_FIELDS
