# app/providers/factory.py
from __future__ import annotations

from typing import Any, Dict

from app.providers.config import normalize_provider, payout_mode

_PROVIDER_CACHE: Dict[str, Any] = {}


def get_provider(name: str):
    key = normalize_provider(name)
    if not key:
        return None

    if payout_mode() == "mock":
        key = "MOCK"

    if key in _PROVIDER_CACHE:
        return _PROVIDER_CACHE[key]

    if key == "PAYPAL":
        from app.providers.paypal import PaypalPayoutsProvider
        provider = PaypalPayoutsProvider()

    elif key == "MOCK":
        from app.providers.mock import MockPayoutProvider
        provider = MockPayoutProvider()

    else:
        return None

    _PROVIDER_CACHE[key] = provider
    return provider


async def close_providers() -> None:
    """Close the clients of every cached provider and forget them."""
    providers = list(_PROVIDER_CACHE.values())
    _PROVIDER_CACHE.clear()
    for provider in providers:
        await provider.aclose()
