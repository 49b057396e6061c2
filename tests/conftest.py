"""Pytest bootstrap configuration.

Ensure environment variables are set before test collection and module
imports that depend on application settings.
"""
import os

os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///./test_payments.db")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("PROCESSOR__APP_KEY", "test-app-key")

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from application.services.incoming_data_service import IncomingDataService
from application.services.order_service import OrderService
from application.services.payment_method_service import PaymentMethodService
from application.services.payment_service import PaymentService
from domain.payment.entity import Customer, Order, OrderStatus
from tests.fakes import (
    APP_KEY,
    FixedClock,
    InMemoryCustomerRepository,
    InMemoryOrderRepository,
    InMemoryPaymentTokenRepository,
    RecordingScheduler,
    StubGateway,
)


NOW = datetime(2024, 5, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def orders():
    return InMemoryOrderRepository()


@pytest.fixture
def customers():
    repo = InMemoryCustomerRepository()
    repo.add(Customer(id=7, email="buyer@example.com", processor_customer_id="cust_7"))
    return repo


@pytest.fixture
def tokens():
    return InMemoryPaymentTokenRepository()


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def incoming():
    return IncomingDataService(APP_KEY)


@pytest.fixture
def order_service(orders, gateway, scheduler, clock):
    return OrderService(
        orders,
        gateway,
        scheduler,
        gateway_id="acquired",
        payment_reference="Online order",
        clock=clock,
    )


@pytest.fixture
def payment_method_service(customers, tokens, orders, gateway, scheduler):
    return PaymentMethodService(
        customers,
        tokens,
        orders,
        gateway,
        scheduler,
        gateway_id="acquired",
        tokenization_enabled=True,
    )


@pytest.fixture
def payment_service(incoming, order_service, payment_method_service):
    return PaymentService(incoming, order_service, payment_method_service)


@pytest.fixture
def pending_order(orders):
    order = Order(
        id=101,
        order_key="wc_order_abc",
        total=Decimal("100.00"),
        status=OrderStatus.PENDING,
        customer_id=7,
        payment_method="acquired",
    )
    orders.add(order)
    return order
