from __future__ import annotations

from dataclasses import dataclass

from settings import settings


def payout_mode() -> str:
    return (settings.PAYOUT_MODE or "sandbox").strip().lower()


def normalize_provider(value: str) -> str:
    return (value or "").strip().upper().replace("-", "_").replace(" ", "_")


@dataclass(frozen=True)
class PaypalConfig:
    mode: str  # "sandbox" | "live"
    api_url: str
    timeout_s: float


def paypal_config() -> PaypalConfig:
    mode = payout_mode()
    if mode == "live":
        api_url = settings.PAYPAL_LIVE_API_URL
    else:
        api_url = settings.PAYPAL_SANDBOX_API_URL
    return PaypalConfig(
        mode=mode,
        api_url=(api_url or "").strip().rstrip("/"),
        timeout_s=float(settings.PAYPAL_HTTP_TIMEOUT_S),
    )
