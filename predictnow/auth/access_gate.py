from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

_ROSTER_TOKEN = re.compile(r"[^\s,;\"'<>\[\]{}()]+")


def roster_identities(document: str) -> set[str]:
    """Identities listed in a roster document (JSON, CSV or one per line)."""
    return {token.casefold() for token in _ROSTER_TOKEN.findall(document or "")}


class AccessGate:
    """Decides once whether a caller identity may use the service.

    Open mode only requires a non-blank identity. Verified mode also requires the
    identity to be listed in the roster document at ``roster_url``. Any failure
    to decide denies every later call.
    """

    def __init__(
        self,
        user_id: str,
        verify: bool = True,
        roster_url: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.user_id = (user_id or "").strip()
        self.verify = verify
        self.roster_url = (roster_url or "").strip()
        self.timeout = timeout
        self._transport = transport
        self._allowed: bool | None = None
        self._reason = ""
        self._lock = asyncio.Lock()

    @classmethod
    def closed(cls, reason: str) -> "AccessGate":
        gate = cls("", verify=False)
        gate._deny(reason)
        return gate

    @property
    def decided(self) -> bool:
        return self._allowed is not None

    @property
    def denial_message(self) -> str:
        return f"Access denied: {self._reason}" if self._reason else "Access denied"

    def _deny(self, reason: str) -> bool:
        self._allowed = False
        self._reason = reason
        logger.warning("PredictNow access denied: %s", reason)
        return False

    async def is_open(self) -> bool:
        if self._allowed is not None:
            return self._allowed
        async with self._lock:
            if self._allowed is None:
                self._allowed = await self._evaluate()
        return self._allowed

    async def _evaluate(self) -> bool:
        if not self.user_id:
            return self._deny("user identification is blank")
        if not self.verify:
            return True
        if not self.roster_url:
            return self._deny("roster URL is not configured")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                trust_env=False,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(self.roster_url)
                response.raise_for_status()
                document = response.text
        except Exception as exc:
            return self._deny(f"roster could not be fetched from {self.roster_url}: {exc}")

        if self.user_id.casefold() not in roster_identities(document):
            return self._deny(f"{self.user_id} is not a registered user")
        logger.info("PredictNow access granted for %s", self.user_id)
        return True
