"""
Attestation lifecycle manager.

Orchestrates submission, listing, scoped lookup and revocation on top of a
chain anchor, an idempotency guard and one or two attestation stores.

Submit path, strictly in this order:

    validate → resolve business → derive root → idempotency guard
             → anchor attempt (bounded by a timeout) → persist → return

CONTRACTS:
1. Anchoring is best-effort. Any anchor failure or timeout yields a
   ``pending_`` transaction id and the record is still persisted.
2. One idempotency key anchors and persists at most once; repeats, including
   concurrent ones, get the first result.
3. Storage failures are fatal to the operation and surface as
   PersistenceError / RevokeFailedError.
4. A record of another business is never returned: it is reported as absent.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from veritasor.core.settings import VeritasorSettings, get_settings
from veritasor.merkle.tree import Leaf, MerkleProof, MerkleTree, verify_proof
from veritasor.protocol.errors import (
    AttestationNotFoundError,
    BusinessNotFoundError,
    ForbiddenError,
    PersistenceError,
    RevokeFailedError,
    UnauthorizedError,
    ValidationError,
)
from veritasor.utils.ids import generate_uuid, pending_tx_hash
from veritasor.utils.timestamps import epoch_ms, utc_now

from .anchor import AnchorRequest, ChainAnchor, build_chain_anchor
from .business import BusinessDirectory
from .idempotency import IdempotencyGuard
from .models import AttestationPage, AttestationRecord, Caller, ListQuery, SubmitRequest
from .store import AttestationStore, InMemoryAttestationStore, JsonlAttestationStore

logger = logging.getLogger(__name__)

IDEMPOTENCY_SCOPE = "attestations"


class AttestationLifecycleManager:
    """
    Entry point for the attestation workflow.

    Args:
        store: Durable attestation store
        anchor: Chain anchoring strategy
        businesses: Resolves the business a caller acts for
        overflow: Optional second store. It receives records the durable
            store failed to persist and is merged into reads, with the
            durable store winning on id conflicts.
        guard: Idempotency guard; one is created from settings when omitted
        settings: Configuration; defaults to ``get_settings()``
        clock: Source of "now" (timezone-aware UTC)
        id_factory: Generates attestation ids
    """

    def __init__(
        self,
        store: AttestationStore,
        anchor: ChainAnchor,
        businesses: BusinessDirectory,
        *,
        overflow: Optional[AttestationStore] = None,
        guard: Optional[IdempotencyGuard] = None,
        settings: Optional[VeritasorSettings] = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = generate_uuid,
    ) -> None:
        settings = settings or get_settings()
        self._store = store
        self._overflow = overflow
        self._anchor = anchor
        self._businesses = businesses
        self._guard = guard or IdempotencyGuard(settings.idempotency.ttl)
        self._clock = clock
        self._id_factory = id_factory

        self._anchor_timeout = settings.anchor.timeout
        self._pending_prefix = settings.anchor.pending_prefix
        self._default_version = settings.attestation.default_version
        self._page_limit = settings.attestation.page_limit
        self._max_page_limit = settings.attestation.max_page_limit

    @classmethod
    def from_settings(
        cls,
        businesses: BusinessDirectory,
        settings: Optional[VeritasorSettings] = None,
    ) -> "AttestationLifecycleManager":
        """
        Wire a manager from configuration.

        With ``store.path`` set, records go to a JSONL log and an in-memory
        overflow store backs it; otherwise a single in-memory store is used.
        """
        settings = settings or get_settings()
        overflow: Optional[AttestationStore] = None
        if settings.store.path:
            store: AttestationStore = JsonlAttestationStore(settings.store.path, sync=settings.store.sync)
            overflow = InMemoryAttestationStore()
        else:
            store = InMemoryAttestationStore()

        return cls(
            store,
            build_chain_anchor(settings.anchor),
            businesses,
            overflow=overflow,
            settings=settings,
        )

    @property
    def guard(self) -> IdempotencyGuard:
        return self._guard

    async def close(self) -> None:
        await self._anchor.close()
        await self._store.close()
        if self._overflow is not None:
            await self._overflow.close()

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    async def submit(
        self,
        caller: Caller,
        request: SubmitRequest,
        idempotency_key: Optional[str] = None,
    ) -> AttestationRecord:
        """
        Commit a root (or a batch of leaves) for the caller's business.

        Raises:
            ValidationError: Malformed request or idempotency key
            UnauthorizedError: No authenticated user
            ForbiddenError: business_id names another business
            BusinessNotFoundError: No business resolvable for the caller
            IdempotencyConflictError: Key reused with a different payload
            PersistenceError: The record could not be stored
        """
        request.validate()
        if idempotency_key is not None and (not isinstance(idempotency_key, str) or not idempotency_key.strip()):
            raise ValidationError("Idempotency key must be a non-empty string")

        business_id = await self._resolve_business(caller, request.business_id)
        merkle_root = self._derive_root(request)

        async def work() -> AttestationRecord:
            return await self._anchor_and_persist(business_id, request, merkle_root)

        if idempotency_key is None:
            return await work()

        return await self._guard.execute(
            IDEMPOTENCY_SCOPE,
            idempotency_key,
            work,
            fingerprint=f"{business_id}:{request.fingerprint()}",
        )

    @staticmethod
    def _derive_root(request: SubmitRequest) -> str:
        if request.leaves is not None:
            return MerkleTree(request.leaves).root
        return request.merkle_root

    async def _anchor_and_persist(
        self,
        business_id: str,
        request: SubmitRequest,
        merkle_root: str,
    ) -> AttestationRecord:
        timestamp = request.timestamp if request.timestamp is not None else epoch_ms(self._clock())
        version = request.version or self._default_version

        tx_hash = await self._anchor_root(
            AnchorRequest(
                business_id=business_id,
                period=request.period,
                merkle_root=merkle_root,
                timestamp=timestamp,
                version=version,
            )
        )

        record = AttestationRecord(
            id=self._id_factory(),
            business_id=business_id,
            period=request.period,
            merkle_root=merkle_root,
            timestamp=timestamp,
            version=version,
            tx_hash=tx_hash,
            attested_at=self._clock(),
        )
        saved = await self._persist(record)
        logger.info(
            "Attestation %s submitted for business %s period %s (tx %s)",
            saved.id,
            business_id,
            saved.period,
            saved.tx_hash,
        )
        return saved

    async def _anchor_root(self, request: AnchorRequest) -> str:
        try:
            return await asyncio.wait_for(self._anchor.submit(request), timeout=self._anchor_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Chain anchor timed out after %.1fs for business %s period %s; recording as pending",
                self._anchor_timeout,
                request.business_id,
                request.period,
            )
        except Exception as e:
            logger.warning(
                "Chain anchor failed for business %s period %s: %s; recording as pending",
                request.business_id,
                request.period,
                e,
            )
        return pending_tx_hash(self._pending_prefix)

    async def _persist(self, record: AttestationRecord) -> AttestationRecord:
        try:
            return await self._store.create(record)
        except Exception as e:
            if self._overflow is None:
                if isinstance(e, PersistenceError):
                    raise
                raise PersistenceError(f"Failed to store attestation {record.id}: {e}") from e
            logger.warning(
                "Durable store rejected attestation %s (%s); writing to overflow store",
                record.id,
                e,
            )

        try:
            return await self._overflow.create(record)
        except Exception as e:
            raise PersistenceError(f"Failed to store attestation {record.id}: {e}") from e

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def list(self, caller: Caller, query: Optional[ListQuery] = None) -> AttestationPage:
        """
        One page of the business's attestations, newest first.

        Raises:
            ValidationError: Bad filters or pagination
            ForbiddenError: business_id names another business
            BusinessNotFoundError: No business resolvable for the caller
        """
        query = query or ListQuery()
        query.validate(self._max_page_limit)
        business_id = await self._resolve_business(caller, query.business_id)

        records = await self._collect(business_id)
        filtered = [r for r in records if query.matches(r)]

        limit = query.limit or self._page_limit
        start = (query.page - 1) * limit
        return AttestationPage(
            items=filtered[start:start + limit],
            page=query.page,
            limit=limit,
            total=len(filtered),
        )

    async def _collect(self, business_id: str) -> List[AttestationRecord]:
        """
        Snapshot of every record of a business across both stores.

        De-duplicated by id with the durable store winning, then ordered by
        attested_at descending. The sort is stable, so ties keep insertion
        order (durable records first, then overflow).
        """
        merged: Dict[str, AttestationRecord] = {}
        for record in await self._store.list_by_business(business_id):
            merged[record.id] = record
        if self._overflow is not None:
            for record in await self._overflow.list_by_business(business_id):
                merged.setdefault(record.id, record)

        return sorted(merged.values(), key=lambda r: r.attested_at, reverse=True)

    async def get_by_id(self, attestation_id: str, business_id: str) -> Optional[AttestationRecord]:
        """Scoped lookup; records of other businesses come back as None."""
        record, _ = await self._locate(attestation_id)
        if record is None or record.business_id != business_id:
            return None
        return record

    async def get(self, caller: Caller, attestation_id: str) -> AttestationRecord:
        _check_id(attestation_id)
        business_id = await self._resolve_business(caller, None)
        record = await self.get_by_id(attestation_id, business_id)
        if record is None:
            raise AttestationNotFoundError()
        return record

    async def _locate(self, attestation_id: str) -> Tuple[Optional[AttestationRecord], Optional[AttestationStore]]:
        record = await self._store.get(attestation_id)
        if record is not None:
            return record, self._store
        if self._overflow is not None:
            record = await self._overflow.get(attestation_id)
            if record is not None:
                return record, self._overflow
        return None, None

    # ------------------------------------------------------------------
    # Revoke
    # ------------------------------------------------------------------

    async def revoke(
        self,
        caller: Caller,
        attestation_id: str,
        reason: Optional[str] = None,
    ) -> AttestationRecord:
        """
        Revoke one of the caller's attestations.

        Revoking an already revoked record returns it unchanged.

        Raises:
            AttestationNotFoundError: Unknown id or another business's record
            RevokeFailedError: The store failed to record the revocation
        """
        _check_id(attestation_id)
        if reason is not None:
            if not isinstance(reason, str) or not reason.strip():
                raise ValidationError("reason must be a non-empty string")
            reason = reason.strip()

        business_id = await self._resolve_business(caller, None)
        record, owner = await self._locate(attestation_id)
        if record is None or owner is None or record.business_id != business_id:
            raise AttestationNotFoundError()

        if record.is_revoked:
            logger.info("Attestation %s already revoked at %s", attestation_id, record.revoked_at)
            return record

        try:
            revoked = await owner.revoke(attestation_id, revoked_at=self._clock(), reason=reason)
        except Exception as e:
            raise RevokeFailedError(f"Failed to revoke attestation {attestation_id}: {e}") from e
        if revoked is None:
            raise RevokeFailedError()

        logger.info("Attestation %s revoked for business %s", attestation_id, business_id)
        return revoked

    # ------------------------------------------------------------------
    # Proofs
    # ------------------------------------------------------------------

    @staticmethod
    def verify_inclusion(record: AttestationRecord, leaf: Leaf, proof: MerkleProof, index: int) -> bool:
        """Check a leaf against the root committed by ``record``."""
        return verify_proof(leaf, proof, record.merkle_root, index)

    @staticmethod
    def build_tree(leaves: Sequence[Leaf]) -> MerkleTree:
        return MerkleTree(leaves)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    async def _resolve_business(self, caller: Optional[Caller], requested: Optional[str]) -> str:
        if caller is None or not caller.user_id:
            raise UnauthorizedError()

        own = await self._businesses.resolve_business_id(caller.user_id)
        if requested and own and requested != own:
            raise ForbiddenError("Cannot act on attestations of another business")

        business_id = requested or own
        if not business_id:
            raise BusinessNotFoundError()
        return business_id


def _check_id(attestation_id: str) -> None:
    if not isinstance(attestation_id, str) or not attestation_id.strip():
        raise ValidationError("Invalid attestation id")
