# settings.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # -----------------------
    # DB
    # -----------------------
    DATABASE_URL: str = Field(default="postgresql://localhost/expense_payouts")
    DB_STATEMENT_TIMEOUT_MS: int = Field(default=5000)

    # -----------------------
    # Payout provider (Mode Switch)
    # -----------------------
    PAYOUT_PROVIDER: str = "PAYPAL"
    PAYOUT_MODE: Literal["sandbox", "live", "mock"] = "sandbox"

    # -----------------------
    # PAYPAL
    # -----------------------
    PAYPAL_SANDBOX_API_URL: str = "https://api-m.sandbox.paypal.com"
    PAYPAL_LIVE_API_URL: str = "https://api-m.paypal.com"
    PAYPAL_HTTP_TIMEOUT_S: float = 20.0

    # -----------------------
    # Batch processing
    # -----------------------
    # max concurrent per-expense updates after a batch submission
    PAYOUT_UPDATE_CONCURRENCY: int = Field(default=10, ge=1)
    PAYOUT_POLL_BATCH_LIMIT: int = Field(default=500, ge=1)
    PAYOUT_POLL_INTERVAL_SECONDS: int = Field(default=300, ge=1)


settings = Settings()
