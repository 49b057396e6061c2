"""
Factory for payment gateway clients.
"""
from __future__ import annotations

from typing import Optional

from core.settings import ProcessorSettings, processor_settings
from application.ports.payment_gateway import PaymentGateway


def get_payment_gateway(settings: Optional[ProcessorSettings] = None) -> PaymentGateway:
    from .processor_client import ProcessorClient
    return ProcessorClient(settings or processor_settings)
