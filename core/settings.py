"""
Payment-related settings using pydantic-settings v2 with nested env keys.

This module is isolated so core.config.Settings stays provider agnostic.
"""
from __future__ import annotations

from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, ConfigDict, Field, field_validator


class PaymentTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 3.0
    write: float = 3.0
    total: float = 5.0


class PaymentRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2


class KlarnaSettings(BaseModel):
    """Credentials and mode for one Klarna merchant; validated eagerly."""

    eid: str
    shared_secret_key: str
    mode: Literal["sandbox", "live"] = "sandbox"

    model_config = ConfigDict(frozen=True)

    @field_validator("eid", "shared_secret_key", mode="before")
    @classmethod
    def _not_empty(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            raise ValueError("must not be empty")
        return str(v)


class KlarnaEnvSettings(BaseModel):
    eid: Optional[str] = None
    shared_secret_key: Optional[str] = None
    mode: str = "sandbox"


class PaymentSettings(BaseSettings):
    default_provider: str = Field(default="klarna", validation_alias="PAYMENT__DEFAULT_PROVIDER")
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)

    klarna: KlarnaEnvSettings = Field(default_factory=KlarnaEnvSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
