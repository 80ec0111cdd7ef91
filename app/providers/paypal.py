# app/providers/paypal.py
from __future__ import annotations

import logging
import time
from typing import Any, Optional
from urllib.parse import quote

from app.expenses.model import ConnectedAccount
from app.providers.base import PayoutProviderError
from app.providers.config import PaypalConfig, paypal_config
from app.providers.http import AsyncHttpClient, HttpResponse


logger = logging.getLogger("payouts.paypal")

TOKEN_SAFETY_BUFFER_S = 60
PAGE_SIZE = 1000


class PaypalPayoutsProvider:
    """
    Async client for the PayPal Payouts API.

    Credentials come from the host's connected account (client_id + secret token),
    so one provider instance serves every host; access tokens are cached per client id.
    """

    name = "paypal"

    def __init__(self, config: Optional[PaypalConfig] = None, http: Optional[AsyncHttpClient] = None):
        self.config = config or paypal_config()
        self.http = http or AsyncHttpClient(timeout_s=self.config.timeout_s)
        self._tokens: dict[str, tuple[str, float]] = {}

    async def get_access_token(self, account: ConnectedAccount) -> str:
        now = time.time()
        cached = self._tokens.get(account.client_id)
        if cached and now < (cached[1] - TOKEN_SAFETY_BUFFER_S):
            return cached[0]

        url = f"{self.config.api_url}/v1/oauth2/token"
        resp = await self.http.post(
            url,
            headers={"Accept": "application/json"},
            data={"grant_type": "client_credentials"},
            auth=(account.client_id, account.token),
        )
        token = (resp.json or {}).get("access_token") if resp.ok else None
        if not token:
            raise _provider_error("PAYPAL_TOKEN_ERROR", resp)

        expires_in = int((resp.json or {}).get("expires_in") or 3600)
        self._tokens[account.client_id] = (token, now + max(0, expires_in))
        return token

    async def _headers(self, account: ConnectedAccount) -> dict[str, str]:
        token = await self.get_access_token(account)
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def submit_batch(self, account: ConnectedAccount, request_body: dict[str, Any]) -> dict[str, Any]:
        sender_batch_id = (request_body.get("sender_batch_header") or {}).get("sender_batch_id")
        url = f"{self.config.api_url}/v1/payments/payouts"
        resp = await self.http.post(url, headers=await self._headers(account), json_body=request_body)
        logger.info("paypal payout create status=%s sender_batch_id=%s", resp.status_code, sender_batch_id)
        if not resp.ok or not isinstance(resp.json, dict):
            raise _provider_error("PAYPAL_PAYOUT_FAILED", resp)
        return resp.json

    async def fetch_batch_info(self, account: ConnectedAccount, batch_id: str) -> dict[str, Any]:
        headers = await self._headers(account)
        url: Optional[str] = (
            f"{self.config.api_url}/v1/payments/payouts/{quote(batch_id, safe='')}"
            f"?page_size={PAGE_SIZE}&page=1"
        )
        batch: dict[str, Any] = {}
        items: list[dict[str, Any]] = []
        while url:
            resp = await self.http.get(url, headers=headers)
            logger.info("paypal payout batch status=%s batch_id=%s", resp.status_code, batch_id)
            if not resp.ok or not isinstance(resp.json, dict):
                raise _provider_error("PAYPAL_BATCH_FETCH_FAILED", resp)
            if not batch:
                batch = dict(resp.json)
            items.extend(resp.json.get("items") or [])
            url = _next_link(resp.json)

        batch["items"] = items
        return batch

    async def aclose(self) -> None:
        await self.http.aclose()


def _next_link(payload: dict[str, Any]) -> Optional[str]:
    for link in payload.get("links") or []:
        if isinstance(link, dict) and link.get("rel") == "next":
            return link.get("href")
    return None


def _provider_error(code: str, resp: HttpResponse) -> PayoutProviderError:
    payload = resp.json if isinstance(resp.json, dict) else {}
    message = payload.get("message") or payload.get("error_description") or payload.get("name") or code
    return PayoutProviderError(
        f"{code}: {message}",
        status_code=resp.status_code,
        response={"http_status": resp.status_code, "body": payload or resp.text[:300]},
    )
