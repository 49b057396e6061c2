import pytest

from domain.payment.references import (
    InvalidReference,
    OrderReference,
    PaymentMethodReference,
    format_order_reference,
    format_payment_method_reference,
    is_payment_method_reference,
    parse_reference,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("101-wc_order_abc", OrderReference(101, "wc_order_abc")),
        ("7-add_payment_method-n1", PaymentMethodReference(7, "n1")),
        ("7-add_payment_method", PaymentMethodReference(7, "")),
        ("x-add_payment_method-n1", PaymentMethodReference(0, "n1")),
        ("7-add_payment_method_n1", PaymentMethodReference(7, "n1")),
        ("5-add_payment_methodXYZ", InvalidReference("5-add_payment_methodXYZ")),
        ("101", InvalidReference("101")),
        ("0-key", InvalidReference("0-key")),
        ("abc-key", InvalidReference("abc-key")),
        ("101-", InvalidReference("101-")),
        ("101-key-extra", InvalidReference("101-key-extra")),
        ("", InvalidReference("")),
        (None, InvalidReference("")),
    ],
)
def test_parse_reference(raw, expected):
    assert parse_reference(raw) == expected


def test_formatting_round_trips():
    assert parse_reference(format_order_reference(12, "wc_order_x")) == OrderReference(12, "wc_order_x")
    reference = parse_reference(format_payment_method_reference(3, "abc"))
    assert reference == PaymentMethodReference(3, "abc")
    assert is_payment_method_reference(reference)
