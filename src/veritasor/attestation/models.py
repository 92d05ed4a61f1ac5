"""
Attestation data models.

Models:
- Caller: Authenticated identity handed in by the transport layer
- AttestationRecord: One committed (optionally anchored) batch for a business/period
- SubmitRequest: Input of a submission, either a precomputed root or raw leaves
- ListQuery: Filters and pagination for listing
- AttestationPage: One page of listing results
"""

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from veritasor.merkle.tree import Leaf, hash_leaf_data
from veritasor.protocol.enums import AttestationStatus
from veritasor.protocol.errors import ValidationError
from veritasor.utils.json import canonical_json
from veritasor.utils.timestamps import parse_iso, to_iso


@dataclass(frozen=True)
class Caller:
    """Identity of the user issuing a request."""
    user_id: Optional[str] = None


# ===========================================================================
# Attestation Record
# ===========================================================================


@dataclass(frozen=True)
class AttestationRecord:
    """
    Persisted attestation.

    Everything except status, revoked_at and revocation_reason is fixed at
    creation. Revocation produces a new record value via ``revoked``.

    Attributes:
        id: Unique identifier
        business_id: Owning business
        period: Reporting period the batch covers (e.g. "2025-10")
        merkle_root: Root committing the batch
        timestamp: Caller-supplied or submission time, epoch milliseconds
        version: Leaf schema version
        tx_hash: Anchoring transaction id, or a pending_ id when anchoring failed
        attested_at: When the record was persisted
        status: submitted or revoked
        revoked_at: When the record was revoked
        revocation_reason: Optional free-text reason given at revocation
    """
    id: str
    business_id: str
    period: str
    merkle_root: str
    timestamp: int
    version: str
    tx_hash: str
    attested_at: datetime
    status: AttestationStatus = AttestationStatus.SUBMITTED
    revoked_at: Optional[datetime] = None
    revocation_reason: Optional[str] = None

    @property
    def is_revoked(self) -> bool:
        return self.status is AttestationStatus.REVOKED

    def revoked(self, at: datetime, reason: Optional[str] = None) -> "AttestationRecord":
        return replace(
            self,
            status=AttestationStatus.REVOKED,
            revoked_at=at,
            revocation_reason=reason,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "businessId": self.business_id,
            "period": self.period,
            "merkleRoot": self.merkle_root,
            "timestamp": self.timestamp,
            "version": self.version,
            "txHash": self.tx_hash,
            "status": self.status.value,
            "revokedAt": to_iso(self.revoked_at) if self.revoked_at else None,
            "revocationReason": self.revocation_reason,
            "attestedAt": to_iso(self.attested_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AttestationRecord":
        revoked_at = data.get("revokedAt")
        return cls(
            id=data["id"],
            business_id=data["businessId"],
            period=data["period"],
            merkle_root=data["merkleRoot"],
            timestamp=int(data["timestamp"]),
            version=data["version"],
            tx_hash=data["txHash"],
            attested_at=parse_iso(data["attestedAt"]),
            status=AttestationStatus(data.get("status", AttestationStatus.SUBMITTED.value)),
            revoked_at=parse_iso(revoked_at) if revoked_at else None,
            revocation_reason=data.get("revocationReason"),
        )


# ===========================================================================
# Requests
# ===========================================================================


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


@dataclass(frozen=True)
class SubmitRequest:
    """
    Submission input.

    Exactly one of ``merkle_root`` and ``leaves`` must be given. When leaves
    are given the lifecycle manager builds the tree and commits its root.
    """
    period: str
    merkle_root: Optional[str] = None
    leaves: Optional[Sequence[Leaf]] = None
    business_id: Optional[str] = None
    timestamp: Optional[int] = None
    version: Optional[str] = None

    def validate(self) -> None:
        if not _non_empty_str(self.period):
            raise ValidationError("period must be a non-empty string")
        if self.business_id is not None and not _non_empty_str(self.business_id):
            raise ValidationError("businessId must be a non-empty string")

        if (self.merkle_root is None) == (self.leaves is None):
            raise ValidationError("Exactly one of merkleRoot or leaves is required")
        if self.merkle_root is not None and not _non_empty_str(self.merkle_root):
            raise ValidationError("merkleRoot must be a non-empty string")
        if self.leaves is not None:
            if isinstance(self.leaves, (str, bytes)) or len(self.leaves) == 0:
                raise ValidationError("leaves must be a non-empty sequence")
            for leaf in self.leaves:
                if not isinstance(leaf, (str, bytes, bytearray, memoryview)):
                    raise ValidationError("every leaf must be a string or bytes")

        if self.timestamp is not None:
            if isinstance(self.timestamp, bool) or not isinstance(self.timestamp, int):
                raise ValidationError("timestamp must be an integer (epoch milliseconds)")
            if self.timestamp < 0:
                raise ValidationError("timestamp must be non-negative")
        if self.version is not None and not _non_empty_str(self.version):
            raise ValidationError("version must be a non-empty string")

    def fingerprint(self) -> str:
        """Stable digest of the payload, used to detect idempotency key reuse."""
        content = {
            "businessId": self.business_id,
            "period": self.period,
            "merkleRoot": self.merkle_root,
            "leaves": [hash_leaf_data(leaf) for leaf in self.leaves] if self.leaves is not None else None,
            "timestamp": self.timestamp,
            "version": self.version,
        }
        return hashlib.sha256(canonical_json(content)).hexdigest()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubmitRequest":
        leaves = data.get("leaves")
        return cls(
            period=data.get("period"),
            merkle_root=data.get("merkleRoot"),
            leaves=list(leaves) if isinstance(leaves, (list, tuple)) else leaves,
            business_id=data.get("businessId"),
            timestamp=data.get("timestamp"),
            version=data.get("version"),
        )


@dataclass(frozen=True)
class ListQuery:
    """
    Filters and pagination for listing.

    ``page`` and ``limit`` are 1-indexed. ``limit`` falls back to the
    configured page size when omitted.
    """
    business_id: Optional[str] = None
    period: Optional[str] = None
    status: Optional[AttestationStatus] = None
    page: int = 1
    limit: Optional[int] = None

    def validate(self, max_limit: int) -> None:
        if self.business_id is not None and not _non_empty_str(self.business_id):
            raise ValidationError("businessId must be a non-empty string")
        if self.period is not None and not _non_empty_str(self.period):
            raise ValidationError("period must be a non-empty string")
        if self.status is not None and not isinstance(self.status, AttestationStatus):
            raise ValidationError("status must be 'submitted' or 'revoked'")
        if isinstance(self.page, bool) or not isinstance(self.page, int) or self.page < 1:
            raise ValidationError("page must be an integer >= 1")
        if self.limit is not None:
            if isinstance(self.limit, bool) or not isinstance(self.limit, int):
                raise ValidationError("limit must be an integer")
            if not 1 <= self.limit <= max_limit:
                raise ValidationError(f"limit must be between 1 and {max_limit}")

    def matches(self, record: AttestationRecord) -> bool:
        if self.period is not None and record.period != self.period:
            return False
        if self.status is not None and record.status is not self.status:
            return False
        return True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ListQuery":
        status = data.get("status")
        try:
            parsed_status = AttestationStatus(status) if status is not None else None
        except ValueError:
            raise ValidationError("status must be 'submitted' or 'revoked'")
        return cls(
            business_id=data.get("businessId"),
            period=data.get("period"),
            status=parsed_status,
            page=data.get("page", 1),
            limit=data.get("limit"),
        )


@dataclass
class AttestationPage:
    """One page of listing results plus totals for the whole filtered set."""
    items: List[AttestationRecord]
    page: int
    limit: int
    total: int
    total_pages: int = field(init=False)

    def __post_init__(self) -> None:
        self.total_pages = max(1, math.ceil(self.total / self.limit))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": [item.to_dict() for item in self.items],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "totalPages": self.total_pages,
            },
        }
