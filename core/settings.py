"""
Payment processor settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings; values are injected into services by
the composition root, services never import this module.
"""
from __future__ import annotations

import re
from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator


class ProcessorTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 3.0
    write: float = 3.0
    total: float = 5.0


class ScheduleSettings(BaseModel):
    delay_seconds: int = 30
    queue: str = "default"


class RedirectUrls(BaseModel):
    order_received: str = "/checkout/order-received/{order_id}/?key={order_key}"
    checkout: str = "/checkout/"
    payment_methods: str = "/my-account/payment-methods/"


class ProcessorSettings(BaseSettings):
    environment: Literal["staging", "production"] = "staging"
    api_url_production: str = "https://api.acquired.com/v1/"
    api_url_staging: str = "https://test-api.acquired.com/v1/"

    app_id: str = ""
    app_key: str = ""

    gateway_id: str = "acquired"
    transaction_type: Literal["capture", "authorisation"] = "capture"
    tokenization_enabled: bool = False
    payment_reference: str = "Online order"

    timeouts: ProcessorTimeouts = Field(default_factory=ProcessorTimeouts)
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    urls: RedirectUrls = Field(default_factory=RedirectUrls)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PROCESSOR__",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    @field_validator("payment_reference")
    @classmethod
    def _sanitize_payment_reference(cls, v: str) -> str:
        """The processor accepts word characters, spaces and dashes, at most 18 long."""
        return re.sub(r"[^\w \-]", "", v or "")[:18]

    @property
    def api_url(self) -> str:
        return self.api_url_production if self.environment == "production" else self.api_url_staging

    @property
    def status_key(self) -> str:
        """Query parameter carrying the add-payment-method outcome."""
        return f"{self.gateway_id}_payment_method_status"

    @property
    def scheduled_order_hook(self) -> str:
        return "payments.process_scheduled_order"

    @property
    def scheduled_payment_method_hook(self) -> str:
        return "payments.process_scheduled_payment_method"


processor_settings = ProcessorSettings()
