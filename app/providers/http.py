# app/providers/http.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx


logger = logging.getLogger("payouts.http")


@dataclass
class HttpResponse:
    status_code: int
    json: Optional[dict[str, Any]]
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class AsyncHttpClient:
    def __init__(self, timeout_s: float = 20.0, transport: httpx.AsyncBaseTransport | None = None):
        self._client = httpx.AsyncClient(timeout=timeout_s, follow_redirects=True, transport=transport)

    async def post(
        self,
        url: str,
        *,
        headers: dict[str, str],
        json_body: dict[str, Any] | None = None,
        data: dict[str, str] | None = None,
        auth: tuple[str, str] | None = None,
    ) -> HttpResponse:
        r = await self._client.post(url, headers=headers, json=json_body, data=data, auth=auth)
        self._debug_dump("POST", url, r)
        return self._wrap(r)

    async def get(self, url: str, *, headers: dict[str, str]) -> HttpResponse:
        r = await self._client.get(url, headers=headers)
        self._debug_dump("GET", url, r)
        return self._wrap(r)

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _wrap(r: httpx.Response) -> HttpResponse:
        try:
            payload = r.json()
        except ValueError:
            payload = None
        return HttpResponse(status_code=r.status_code, json=payload, text=r.text)

    @staticmethod
    def _debug_dump(method: str, url: str, r: httpx.Response) -> None:
        # headers carry bearer tokens; never log them
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s %s -> status=%s text=%s", method, url, r.status_code, r.text[:300])
