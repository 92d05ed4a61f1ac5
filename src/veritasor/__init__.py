"""
Veritasor: Merkle-committed business attestations.

A business commits a batch of attestation leaves to one Merkle root, anchors
the root on a ledger when one is reachable, and later proves single leaves
against it without disclosing the batch.
"""

from .merkle import MerkleTree, MerkleProof, ProofStep, verify_proof
from .attestation import (
    AttestationLifecycleManager,
    AttestationRecord,
    Caller,
    ListQuery,
    SubmitRequest,
)
from .core.settings import VeritasorSettings, get_settings

__all__ = [
    "MerkleTree",
    "MerkleProof",
    "ProofStep",
    "verify_proof",
    "AttestationLifecycleManager",
    "AttestationRecord",
    "Caller",
    "ListQuery",
    "SubmitRequest",
    "VeritasorSettings",
    "get_settings",
]

__version__ = "0.1.0"
