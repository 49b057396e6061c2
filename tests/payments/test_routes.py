import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_payment_service
from application.dtos.payments import WEBHOOK_CARD_NEW, WEBHOOK_STATUS_UPDATE
from main import app
from shared.codes import PaymentCode
from tests.fakes import redirect, webhook


REF = "101-wc_order_abc"


@pytest.fixture
def client(payment_service):
    app.dependency_overrides[get_payment_service] = lambda: payment_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["data"] == {"status": "healthy"}


def test_webhook_accepted_and_deferred(client, scheduler, pending_order):
    raw, signature = webhook(WEBHOOK_STATUS_UPDATE, {"transaction_id": "t1", "status": "success", "order_id": REF})

    response = client.post("/api/v1/payments/webhook", content=raw, headers={"Hash": signature})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Webhook processed successfully."
    assert body["data"] == {"webhook_id": "wh_1", "webhook_type": WEBHOOK_STATUS_UPDATE}
    assert len(scheduler.scheduled) == 1
    assert "X-Request-ID" in response.headers


def test_webhook_with_bad_hash(client, scheduler):
    raw, _ = webhook(WEBHOOK_STATUS_UPDATE, {"transaction_id": "t1", "status": "success", "order_id": REF})

    response = client.post("/api/v1/payments/webhook", content=raw, headers={"Hash": "bad"})

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == 'Webhook processing failed. Error: "Webhook hash is invalid.".'
    assert body["code"] == PaymentCode.SIGNATURE_ERROR
    assert scheduler.scheduled == []


def test_order_redirect_success(client, gateway, pending_order):
    gateway.add_transaction("t1", "success", "2024-05-15T11:00:00Z")

    response = client.post(
        "/api/v1/payments/redirect/order", data=redirect("success", "t1", REF), follow_redirects=False
    )

    assert response.status_code == 303
    assert response.headers["location"] == "/checkout/order-received/101/?key=wc_order_abc"


def test_order_redirect_failure_goes_back_to_checkout(client, pending_order):
    fields = redirect("success", "t1", REF)
    fields["hash"] = "tampered"

    response = client.get("/api/v1/payments/redirect/order", params=fields, follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/checkout/"


def test_payment_method_redirect_carries_status(client):
    response = client.post(
        "/api/v1/payments/redirect/payment-method",
        data=redirect("declined", "t9", "7-add_payment_method-n1"),
        follow_redirects=False,
    )

    assert response.status_code == 303
    assert response.headers["location"] == "/my-account/payment-methods/?acquired_payment_method_status=declined"


def test_payment_method_notice(client):
    response = client.get("/api/v1/payments/payment-method-notice", params={"status": "blocked"})
    assert response.json()["data"] == {"message": "Your payment method was blocked.", "type": "error"}


def test_capture_endpoint(client, pending_order):
    response = client.post("/api/v1/orders/101/capture")
    assert response.status_code == 200
    assert response.json()["data"] == {"order_id": 101, "result": "error"}


def test_refund_endpoint_reports_blocker(client, pending_order):
    response = client.post("/api/v1/orders/101/refunds", json={"amount": "10.00"})

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == PaymentCode.REFUND_FAILED
    assert body["message"] == 'Payment refund failed. Transaction is not in "success" or "settled" status.'


def test_refund_endpoint_validates_amount(client, pending_order):
    response = client.post("/api/v1/orders/101/refunds", json={"amount": "0"})
    assert response.status_code == 422


def test_refund_endpoint_unknown_order(client):
    response = client.post("/api/v1/orders/999/refunds", json={"amount": "1"})
    assert response.status_code == 404


def test_order_notice(client, pending_order):
    response = client.get("/api/v1/orders/101/notice")
    assert response.json()["data"] == {"order_id": 101, "notice": None}


def test_delete_unknown_payment_method(client):
    response = client.delete("/api/v1/payments/customers/7/payment-methods/42")
    assert response.status_code == 404
    assert response.json()["message"] == "Token not found."


def test_request_id_is_echoed_into_error_body(client):
    response = client.delete(
        "/api/v1/payments/customers/7/payment-methods/42", headers={"X-Request-ID": "req-123"}
    )

    assert response.headers["X-Request-ID"] == "req-123"
    assert "X-Process-Time" in response.headers
    assert response.json()["error"]["request_id"] == "req-123"


def test_webhook_with_malformed_card_data_is_rejected(client, gateway, tokens, pending_order):
    gateway.add_card("card_1", expiry_year="xx")
    raw, signature = webhook(
        WEBHOOK_CARD_NEW, {"transaction_id": "t1", "status": "success", "order_id": REF, "card_id": "card_1"}
    )

    response = client.post("/api/v1/payments/webhook", content=raw, headers={"Hash": signature})

    assert response.status_code == 400
    assert response.json()["message"] == 'Webhook processing failed. Error: "Failed to validate token.".'
    assert tokens.all == []
