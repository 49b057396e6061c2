"""
Payment specific codes and processor status groups.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Processor/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    SIGNATURE_ERROR = 60002
    TIMEOUT = 60003

    # Incoming data (redirect/webhook)
    INCOMING_DATA_INVALID = 60010
    INCOMING_REFERENCE_INVALID = 60011

    # Order transaction state
    ORDER_NOT_FOUND = 60020
    ORDER_NOT_PROCESSABLE = 60021
    REFUND_FAILED = 60023

    # Stored payment methods
    CUSTOMER_NOT_FOUND = 60030
    PAYMENT_METHOD_ERROR = 60031
    TOKEN_NOT_FOUND = 60032

    # Deferred dispatch
    SCHEDULE_FAILED = 60040


# Remote transaction statuses that mean "money moved"
TRANSACTION_SUCCESS_STATUSES = frozenset({"success", "settled"})

# Payment method flows also accept executed bank payments
PAYMENT_METHOD_SUCCESS_STATUSES = frozenset({"success", "settled", "executed"})

# capture/cancel/refund responses
ACTION_SUCCESS_STATUSES = frozenset({"success", "pending"})

# External order statuses an incoming event may still move
PROCESSABLE_ORDER_STATUSES = frozenset({"pending", "failed", "on-hold"})

THREE_D_SECURE_FAILURE_STATUSES = frozenset({"tds_error", "tds_expired", "tds_failed"})
