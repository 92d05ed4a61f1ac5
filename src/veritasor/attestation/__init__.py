"""
Attestation lifecycle.

Submission with idempotency and best-effort chain anchoring, scoped
listing and lookup, and terminal revocation.
"""

from .anchor import (
    AnchorRequest,
    ChainAnchor,
    DisabledChainAnchor,
    HttpChainAnchor,
    InMemoryChainAnchor,
    build_chain_anchor,
)
from .business import Business, BusinessDirectory, InMemoryBusinessDirectory
from .idempotency import IdempotencyEntry, IdempotencyGuard
from .manager import IDEMPOTENCY_SCOPE, AttestationLifecycleManager
from .models import AttestationPage, AttestationRecord, Caller, ListQuery, SubmitRequest
from .store import AttestationStore, InMemoryAttestationStore, JsonlAttestationStore

__all__ = [
    # Models
    "AttestationRecord",
    "AttestationPage",
    "Caller",
    "ListQuery",
    "SubmitRequest",
    # Anchoring
    "AnchorRequest",
    "ChainAnchor",
    "DisabledChainAnchor",
    "InMemoryChainAnchor",
    "HttpChainAnchor",
    "build_chain_anchor",
    # Businesses
    "Business",
    "BusinessDirectory",
    "InMemoryBusinessDirectory",
    # Idempotency
    "IdempotencyEntry",
    "IdempotencyGuard",
    # Stores
    "AttestationStore",
    "InMemoryAttestationStore",
    "JsonlAttestationStore",
    # Manager
    "AttestationLifecycleManager",
    "IDEMPOTENCY_SCOPE",
]
