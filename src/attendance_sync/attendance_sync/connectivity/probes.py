from __future__ import annotations

from typing import Optional, Protocol

import httpx

from ..core.constants import DEFAULT_PROBE_TIMEOUT


class ConnectivityProbe(Protocol):
    async def check(self) -> bool:
        raise NotImplementedError


class HttpProbe(ConnectivityProbe):
    """Online means the API answered a short GET, whatever its status code."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = float(timeout)
        self._transport = transport

    async def check(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                await client.get(self.url)
        except httpx.HTTPError:
            return False
        return True


class StaticProbe(ConnectivityProbe):
    """Fixed answer, for offline mode and tests."""

    def __init__(self, online: bool):
        self.online = online
        self.calls = 0

    async def check(self) -> bool:
        self.calls += 1
        return self.online
