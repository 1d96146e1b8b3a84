from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

import httpx

from predictnow.core.codec import CodecError
from predictnow.core.wire import WireModel

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SNIPPET_CHARS = 500


@dataclass(frozen=True)
class TransportResult(Generic[T]):
    success: bool
    value: T | None = None
    message: str = ""


class ServiceTransport:
    """One logical PredictNow endpoint (CPO or CAI) over a long-lived connection pool."""

    def __init__(
        self,
        name: str,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.name = name
        self.base_url = (base_url or "").strip()
        self.timeout = timeout
        self._transport = transport
        self.client: Optional[httpx.AsyncClient] = None
        self._closed = False

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    async def initialize(self) -> None:
        if self.client:
            return

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            trust_env=False,
            follow_redirects=True,
            headers={"Accept": "application/json"},
            transport=self._transport,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        self._closed = True
        if self.client:
            await self.client.aclose()
            self.client = None

    def url_for(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _fail(self, message: str) -> TransportResult[Any]:
        logger.error(message)
        return TransportResult(success=False, value=None, message=message)

    async def request(
        self,
        method: str,
        path: str,
        decode: Callable[[bytes], T],
        *,
        json: Any = None,
        data: Optional[dict[str, Any]] = None,
        files: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> TransportResult[T]:
        """Send one request and decode its body. Never raises."""
        label = f"{self.name} {method} {path}"
        if not self.is_configured:
            return self._fail(f"{label}: endpoint URL is not configured")
        if self._closed:
            return self._fail(f"{label}: client is closed")

        await self.initialize()

        status_code = 0
        body = b""
        try:
            async with self.client.stream(
                method,
                path,
                json=json,
                data=data,
                files=files,
                params=params,
            ) as response:
                status_code = response.status_code
                body = await response.aread()
        except Exception as exc:
            return self._fail(f"{label}: error {exc.__class__.__name__}: {exc}, status {status_code}")

        snippet = body[:_SNIPPET_CHARS].decode("utf-8", errors="replace")
        if not 200 <= status_code < 300:
            return self._fail(f"{label}: status {status_code}, response: {snippet}")

        try:
            value = decode(body)
        except CodecError as exc:
            return self._fail(f"{label}: invalid response ({exc}), response: {snippet}")
        except Exception as exc:
            return self._fail(f"{label}: could not decode response ({exc.__class__.__name__}: {exc})")

        if isinstance(value, WireModel) and value.is_null:
            message = f"{label}: {value.diagnostic or 'empty response'}"
            logger.error(message)
            return TransportResult(success=False, value=value, message=message)
        return TransportResult(success=True, value=value)
