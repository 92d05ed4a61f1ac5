"""
Chain anchoring strategies.

A chain anchor commits a Merkle root to an external ledger and returns the
transaction id. The lifecycle manager receives one strategy at construction
and treats every failure as non-fatal.

Strategies:
- DisabledChainAnchor: no ledger configured; always unavailable
- InMemoryChainAnchor: deterministic local ledger for tests and demos
- HttpChainAnchor: posts roots to an anchoring relay over HTTP
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from veritasor.core.settings import AnchorSettings
from veritasor.protocol.enums import AnchorMode
from veritasor.protocol.errors import (
    ChainAnchorError,
    ChainNetworkError,
    ChainUnavailableError,
)
from veritasor.utils.json import canonical_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnchorRequest:
    """What gets committed on the ledger for one attestation."""
    business_id: str
    period: str
    merkle_root: str
    timestamp: int
    version: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "business": self.business_id,
            "period": self.period,
            "merkleRoot": self.merkle_root,
            "timestamp": self.timestamp,
            "version": self.version,
        }


class ChainAnchor(ABC):
    name: str = "anchor"

    @abstractmethod
    async def submit(self, request: AnchorRequest) -> str:
        """
        Anchor a root and return the transaction id.

        Raises:
            ChainUnavailableError: The ledger cannot be reached or refuses work
            ChainNetworkError: Transport failure talking to the ledger
        """

    async def close(self) -> None:
        return None


class DisabledChainAnchor(ChainAnchor):
    name = "disabled"

    async def submit(self, request: AnchorRequest) -> str:
        raise ChainUnavailableError("Chain anchoring is not configured")


class InMemoryChainAnchor(ChainAnchor):
    """
    Local ledger stand-in.

    Transaction ids are the SHA-256 of the canonical request, so the same
    request always anchors to the same id. ``fail_with`` and ``delay`` inject
    failures and latency.
    """

    name = "memory"

    def __init__(
        self,
        *,
        fail_with: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self.fail_with = fail_with
        self.delay = delay
        self.calls: List[AnchorRequest] = []
        self.transactions: Dict[str, AnchorRequest] = {}

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def submit(self, request: AnchorRequest) -> str:
        self.calls.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        tx_hash = "0x" + hashlib.sha256(canonical_json(request.to_dict())).hexdigest()
        self.transactions[tx_hash] = request
        return tx_hash


class HttpChainAnchor(ChainAnchor):
    """
    Client for an anchoring relay.

    POST {base_url}/anchors with the request as JSON; the relay answers
    ``{"txHash": "..."}``. 503 maps to ChainUnavailableError, every other
    failure to ChainNetworkError.
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def submit(self, request: AnchorRequest) -> str:
        try:
            resp = await self._client.post("/anchors", json=request.to_dict())
        except httpx.TimeoutException as e:
            raise ChainUnavailableError(f"Anchoring relay timed out: {e}")
        except httpx.HTTPError as e:
            raise ChainNetworkError(f"Anchoring relay request failed: {e}")

        if resp.status_code == 503:
            raise ChainUnavailableError("Anchoring relay unavailable")
        if resp.status_code >= 400:
            raise ChainNetworkError(f"Anchoring relay returned HTTP {resp.status_code}")

        try:
            body = resp.json()
        except ValueError:
            raise ChainAnchorError("Anchoring relay returned invalid JSON")

        tx_hash = body.get("txHash") if isinstance(body, dict) else None
        if not isinstance(tx_hash, str) or not tx_hash:
            raise ChainAnchorError("Anchoring relay response has no txHash")
        return tx_hash

    async def close(self) -> None:
        await self._client.aclose()


def build_chain_anchor(settings: AnchorSettings) -> ChainAnchor:
    """Pick the anchoring strategy named by configuration."""
    if settings.mode is AnchorMode.HTTP:
        logger.info("Using HTTP chain anchor at %s", settings.url)
        return HttpChainAnchor(settings.url, timeout=settings.timeout)
    if settings.mode is AnchorMode.MEMORY:
        return InMemoryChainAnchor()
    return DisabledChainAnchor()
