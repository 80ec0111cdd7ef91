from __future__ import annotations

import asyncio
import base64
import json

import httpx
import pytest

from app.providers.base import PayoutProviderError
from app.providers.config import PaypalConfig
from app.providers.http import AsyncHttpClient
from app.providers.paypal import PaypalPayoutsProvider
from tests.fakes import ACCOUNT


API = "https://api.sandbox.paypal.test"


class PaypalStub:
    """Routes requests like the Payouts API would and records what it saw."""

    def __init__(self, *, payout_status=201, pages=None, batch_status=200):
        self.requests: list[httpx.Request] = []
        self.payout_status = payout_status
        self.pages = pages or {}
        self.batch_status = batch_status

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/v1/oauth2/token":
            return httpx.Response(200, json={"access_token": "A21-token", "expires_in": 32400})
        if path == "/v1/payments/payouts" and request.method == "POST":
            if self.payout_status >= 400:
                return httpx.Response(
                    self.payout_status,
                    json={"name": "INSUFFICIENT_FUNDS", "message": "Sender does not have sufficient funds."},
                )
            return httpx.Response(
                self.payout_status,
                json={"batch_header": {"payout_batch_id": "PB-1", "batch_status": "PENDING"}},
            )
        if path.startswith("/v1/payments/payouts/"):
            if self.batch_status >= 400:
                return httpx.Response(self.batch_status, json={"name": "INVALID_RESOURCE_ID"})
            page = request.url.params.get("page", "1")
            return httpx.Response(200, json=self.pages[page])
        return httpx.Response(404)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


def _provider(stub: PaypalStub) -> PaypalPayoutsProvider:
    config = PaypalConfig(mode="sandbox", api_url=API, timeout_s=5)
    return PaypalPayoutsProvider(config=config, http=AsyncHttpClient(transport=httpx.MockTransport(stub)))


def test_submit_batch_authenticates_with_account_credentials():
    stub = PaypalStub()
    provider = _provider(stub)
    body = {"sender_batch_header": {"sender_batch_id": "abc"}, "items": []}

    result = asyncio.run(provider.submit_batch(ACCOUNT, body))

    assert result["batch_header"]["payout_batch_id"] == "PB-1"
    token_req, payout_req = stub.requests
    expected = base64.b64encode(f"{ACCOUNT.client_id}:{ACCOUNT.token}".encode()).decode()
    assert token_req.headers["Authorization"] == f"Basic {expected}"
    assert token_req.content == b"grant_type=client_credentials"
    assert payout_req.headers["Authorization"] == "Bearer A21-token"
    assert json.loads(payout_req.content) == body


def test_access_token_is_reused_across_calls():
    stub = PaypalStub()
    provider = _provider(stub)

    async def twice():
        await provider.submit_batch(ACCOUNT, {"items": []})
        await provider.submit_batch(ACCOUNT, {"items": []})

    asyncio.run(twice())

    assert stub.paths().count("/v1/oauth2/token") == 1


def test_rejected_submission_raises_provider_error():
    provider = _provider(PaypalStub(payout_status=422))

    with pytest.raises(PayoutProviderError) as exc_info:
        asyncio.run(provider.submit_batch(ACCOUNT, {"items": []}))

    assert exc_info.value.status_code == 422
    assert "Sender does not have sufficient funds." in str(exc_info.value)


def test_fetch_batch_info_follows_next_links():
    pages = {
        "1": {
            "batch_header": {"payout_batch_id": "PB-1", "batch_status": "SUCCESS"},
            "items": [{"payout_item_id": "I-1"}],
            "links": [{"rel": "next", "href": f"{API}/v1/payments/payouts/PB-1?page_size=1000&page=2"}],
        },
        "2": {"items": [{"payout_item_id": "I-2"}], "links": [{"rel": "self", "href": "ignored"}]},
    }
    stub = PaypalStub(pages=pages)

    batch = asyncio.run(_provider(stub).fetch_batch_info(ACCOUNT, "PB-1"))

    assert batch["batch_header"]["payout_batch_id"] == "PB-1"
    assert [item["payout_item_id"] for item in batch["items"]] == ["I-1", "I-2"]
    assert stub.paths() == ["/v1/oauth2/token", "/v1/payments/payouts/PB-1", "/v1/payments/payouts/PB-1"]


def test_unknown_batch_surfaces_404():
    provider = _provider(PaypalStub(batch_status=404))

    with pytest.raises(PayoutProviderError) as exc_info:
        asyncio.run(provider.fetch_batch_info(ACCOUNT, "PB-404"))

    assert exc_info.value.status_code == 404


def test_aclose_closes_the_http_client():
    provider = _provider(PaypalStub())

    asyncio.run(provider.aclose())

    assert provider.http._client.is_closed
