from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Any, Mapping, Optional

import httpx

from ..core.constants import DEFAULT_REQUEST_TIMEOUT
from ..core.exceptions import NetworkError, RequestCancelled

logger = logging.getLogger(__name__)


class CancelToken:
    """Abort handle for in-flight requests.

    Calling `cancel()` makes every request started with this token raise
    `RequestCancelled`, e.g. when the screen that issued it goes away.
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, str) and message.strip():
            return message
    return f"Request failed: {response.status_code} {response.reason_phrase}".strip()


class RemoteClient:
    """Thin JSON-over-HTTP wrapper.

    - serializes JSON bodies and deserializes JSON responses
    - any non-2xx status raises `NetworkError` (server `message` when present)
    - transport failures and timeouts raise `NetworkError`
    - aborted calls raise `RequestCancelled`
    - no retries; callers decide
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        headers: Optional[Mapping[str, str]] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = float(timeout)
        self._transport = transport
        self._headers = {"Content-Type": "application/json", "Accept": "application/json", **dict(headers or {})}

    @property
    def base_url(self) -> str:
        return self._base_url

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    async def request(
        self,
        path: str,
        *,
        method: str = "GET",
        json: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> Any:
        url = self.url_for(path)
        if cancel_token is not None and cancel_token.cancelled:
            raise RequestCancelled(f"{method} {url} cancelled before start")

        call = asyncio.ensure_future(self._send(method, url, json=json, params=params))
        if cancel_token is None:
            return await call

        waiter = asyncio.ensure_future(cancel_token.wait())
        try:
            done, _ = await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not call.done():
                call.cancel()
                with suppress(asyncio.CancelledError):
                    await call

        if call in done:
            return call.result()

        logger.info("Request cancelled by caller: %s %s", method, url)
        raise RequestCancelled(f"{method} {url} cancelled")

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request(path, method="GET", **kwargs)

    async def post(self, path: str, body: Any, **kwargs) -> Any:
        return await self.request(path, method="POST", json=body, **kwargs)

    async def _send(self, method: str, url: str, *, json: Any, params: Optional[Mapping[str, Any]]) -> Any:
        logger.debug("%s %s", method, url)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                headers=self._headers,
                transport=self._transport,
            ) as client:
                response = await client.request(method, url, json=json, params=params)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Request timed out: {method} {url}") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Request failed: {method} {url}: {exc}") from exc

        if not response.is_success:
            raise NetworkError(_error_message(response), status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise NetworkError(f"Invalid JSON from {method} {url}", status_code=response.status_code) from exc
