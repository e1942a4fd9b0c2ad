"""Settlement transfer port: pays funds out of campaign escrow.

``transfer`` either moves the full amount or raises ``TransferFailed``; there
is never a partial payout and this layer never retries.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

import httpx

from fundgate.config import settings
from fundgate.services.errors import TransferFailed

logger = logging.getLogger(__name__)


class TransferPort(Protocol):
    async def transfer(self, to: str, amount: int) -> None: ...


@dataclass
class Payout:
    to: str
    amount: int
    reference: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class RecordingLedger:
    """In-process settlement that records every payout it makes."""

    def __init__(self) -> None:
        self.payouts: list[Payout] = []

    async def transfer(self, to: str, amount: int) -> None:
        payout = Payout(to=to, amount=amount, reference=uuid.uuid4().hex)
        self.payouts.append(payout)
        logger.info("Recorded payout %s of %d to %s", payout.reference, amount, to)

    def total_paid_to(self, to: str) -> int:
        return sum(p.amount for p in self.payouts if p.to == to)


class HttpSettlementClient:
    """Thin async client for an external settlement service."""

    def __init__(self, base_url: str, api_key: str = "", timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers: dict[str, str] = {"Accept": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def transfer(self, to: str, amount: int) -> None:
        reference = uuid.uuid4().hex
        try:
            client = await self._get_client()
            resp = await client.post(
                "/transfers",
                json={"to": to, "amount": amount, "reference": reference},
            )
        except httpx.HTTPError as exc:
            raise TransferFailed(f"Settlement unreachable: {exc}") from exc
        if resp.status_code // 100 != 2:
            raise TransferFailed(f"Settlement rejected transfer: HTTP {resp.status_code}")
        logger.info("Settled transfer %s of %d to %s", reference, amount, to)


_default_port: TransferPort | None = None


def get_transfer_port() -> TransferPort:
    """Return the process-wide transfer port chosen by ``SETTLEMENT_URL``."""
    global _default_port
    if _default_port is None:
        if settings.SETTLEMENT_URL:
            _default_port = HttpSettlementClient(
                settings.SETTLEMENT_URL,
                api_key=settings.SETTLEMENT_API_KEY,
                timeout=settings.SETTLEMENT_TIMEOUT_SECONDS,
            )
        else:
            _default_port = RecordingLedger()
    return _default_port
