"""Infrastructure models package exports."""
from .base import Base, metadata
from .order import OrderModel, CustomerModel, PaymentTokenModel

__all__ = [
    "Base",
    "metadata",
    "OrderModel",
    "CustomerModel",
    "PaymentTokenModel",
]
