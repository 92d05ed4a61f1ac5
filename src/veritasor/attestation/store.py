"""
Attestation stores.

The lifecycle manager depends only on the ``AttestationStore`` interface.
Backends are picked when the manager is constructed:

- InMemoryAttestationStore: insertion-ordered map, lives for the process
- JsonlAttestationStore: append-only, hash-chained JSONL log replayed on open

Stores hand out frozen records, so a caller can never alter what the store
holds except through ``create`` and ``revoke``.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from veritasor.protocol.errors import PersistenceError
from veritasor.utils.json import canonical_json, json_dumps, json_loads
from veritasor.utils.timestamps import now_iso

from .models import AttestationRecord

logger = logging.getLogger(__name__)


class AttestationStore(ABC):
    """Capability interface every attestation backend implements."""

    name: str = "store"

    @abstractmethod
    async def create(self, record: AttestationRecord) -> AttestationRecord:
        """Persist a new record. Raises PersistenceError on failure or duplicate id."""

    @abstractmethod
    async def get(self, attestation_id: str) -> Optional[AttestationRecord]:
        ...

    @abstractmethod
    async def list_by_business(self, business_id: str) -> List[AttestationRecord]:
        """Records of one business in insertion order."""

    @abstractmethod
    async def revoke(
        self,
        attestation_id: str,
        *,
        revoked_at: datetime,
        reason: Optional[str] = None,
    ) -> Optional[AttestationRecord]:
        """Mark a record revoked. Returns None when the id is unknown."""

    async def close(self) -> None:
        return None


# ===========================================================================
# In-memory store
# ===========================================================================


class InMemoryAttestationStore(AttestationStore):
    """
    Process-local store.

    Used directly in tests and as the overflow store next to a durable
    backend. Contents are dropped on ``close``.
    """

    name = "memory"

    def __init__(self) -> None:
        self._records: Dict[str, AttestationRecord] = {}

    async def create(self, record: AttestationRecord) -> AttestationRecord:
        if record.id in self._records:
            raise PersistenceError(f"Attestation {record.id} already exists")
        self._records[record.id] = record
        logger.debug("Stored attestation %s in memory", record.id)
        return record

    async def get(self, attestation_id: str) -> Optional[AttestationRecord]:
        return self._records.get(attestation_id)

    async def list_by_business(self, business_id: str) -> List[AttestationRecord]:
        return [r for r in self._records.values() if r.business_id == business_id]

    async def revoke(
        self,
        attestation_id: str,
        *,
        revoked_at: datetime,
        reason: Optional[str] = None,
    ) -> Optional[AttestationRecord]:
        current = self._records.get(attestation_id)
        if current is None:
            return None
        updated = current.revoked(revoked_at, reason)
        self._records[attestation_id] = updated
        return updated

    async def close(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)


# ===========================================================================
# JSONL store
# ===========================================================================


ENTRY_CREATED = "attestation_created"
ENTRY_REVOKED = "attestation_revoked"


class JsonlAttestationStore(AttestationStore):
    """
    Append-only attestation log.

    Every mutation is one JSONL entry chained to the previous entry's hash
    and fsynced before the call returns. The log is replayed into memory on
    open; a corrupted tail stops replay at the last good entry.
    """

    name = "jsonl"
    FILENAME = "attestations.jsonl"

    def __init__(self, directory: str, *, sync: bool = True) -> None:
        self._dir = Path(directory)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create store directory {directory}: {e}")
        self._path = self._dir / self.FILENAME
        self._sync = sync
        self._lock = threading.Lock()
        self._seq = 0
        self._last_hash: Optional[str] = None
        self._records: Dict[str, AttestationRecord] = {}

        self._replay()

    @property
    def path(self) -> Path:
        return self._path

    def _replay(self) -> None:
        """
        Load the log into memory.

        Replay stops at the first corrupted entry and the file is cut back to
        the end of the last good one, so later appends never land behind
        unreadable bytes.
        """
        if not self._path.exists():
            return

        good_end = 0
        missing_newline = False
        with open(self._path, "rb") as f:
            for raw in f:
                line = raw.strip()
                if line:
                    try:
                        entry = json_loads(line.decode("utf-8"))
                        record = AttestationRecord.from_dict(entry["payload"])
                    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                        logger.warning("Stopping replay at corrupted entry in %s: %s", self._path, e)
                        break
                    self._records[record.id] = record
                    self._seq = entry.get("seq", self._seq)
                    self._last_hash = entry.get("entry_hash")
                good_end += len(raw)
                missing_newline = not raw.endswith(b"\n")
            size = f.seek(0, os.SEEK_END)

        if good_end < size:
            logger.warning(
                "Truncating %s from %d to %d bytes to drop a corrupted tail",
                self._path,
                size,
                good_end,
            )
            self._repair(good_end, missing_newline)
        elif missing_newline:
            self._repair(good_end, True)
        logger.debug("Replayed %d attestations from %s", len(self._records), self._path)

    def _repair(self, length: int, add_newline: bool) -> None:
        try:
            with open(self._path, "r+b") as f:
                f.truncate(length)
                if add_newline:
                    f.seek(length)
                    f.write(b"\n")
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise PersistenceError(f"Cannot repair {self._path}: {e}")

    @staticmethod
    def _entry_hash(entry: Dict[str, Any]) -> str:
        return hashlib.sha256(canonical_json(entry)).hexdigest()

    def _append(self, entry_type: str, record: AttestationRecord) -> None:
        """Write one chained entry. Caller holds ``self._lock``."""
        entry: Dict[str, Any] = {
            "seq": self._seq + 1,
            "entry_type": entry_type,
            "timestamp_iso": now_iso(),
            "payload": record.to_dict(),
            "prev_hash": self._last_hash,
        }
        entry["entry_hash"] = self._entry_hash(entry)

        line = json_dumps(entry) + "\n"
        try:
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(line)
                f.flush()
                if self._sync:
                    os.fsync(f.fileno())
        except OSError as e:
            raise PersistenceError(f"Failed to append to {self._path}: {e}")

        self._seq = entry["seq"]
        self._last_hash = entry["entry_hash"]

    def _create_sync(self, record: AttestationRecord) -> AttestationRecord:
        with self._lock:
            if record.id in self._records:
                raise PersistenceError(f"Attestation {record.id} already exists")
            self._append(ENTRY_CREATED, record)
            self._records[record.id] = record
        logger.debug("Appended attestation %s to %s", record.id, self._path)
        return record

    def _revoke_sync(
        self,
        attestation_id: str,
        revoked_at: datetime,
        reason: Optional[str],
    ) -> Optional[AttestationRecord]:
        with self._lock:
            current = self._records.get(attestation_id)
            if current is None:
                return None
            updated = current.revoked(revoked_at, reason)
            self._append(ENTRY_REVOKED, updated)
            self._records[attestation_id] = updated
            return updated

    async def create(self, record: AttestationRecord) -> AttestationRecord:
        return await asyncio.to_thread(self._create_sync, record)

    def _get_sync(self, attestation_id: str) -> Optional[AttestationRecord]:
        with self._lock:
            return self._records.get(attestation_id)

    def _list_sync(self, business_id: str) -> List[AttestationRecord]:
        with self._lock:
            return [r for r in self._records.values() if r.business_id == business_id]

    async def get(self, attestation_id: str) -> Optional[AttestationRecord]:
        return await asyncio.to_thread(self._get_sync, attestation_id)

    async def list_by_business(self, business_id: str) -> List[AttestationRecord]:
        return await asyncio.to_thread(self._list_sync, business_id)

    async def revoke(
        self,
        attestation_id: str,
        *,
        revoked_at: datetime,
        reason: Optional[str] = None,
    ) -> Optional[AttestationRecord]:
        return await asyncio.to_thread(self._revoke_sync, attestation_id, revoked_at, reason)

    def read_entries(self) -> List[Dict[str, Any]]:
        entries: List[Dict[str, Any]] = []
        if not self._path.exists():
            return entries
        with open(self._path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json_loads(line))
                except json.JSONDecodeError:
                    logger.warning("Skipping corrupted log entry")
                    break
        return entries

    def verify_integrity(self) -> Tuple[bool, Optional[str]]:
        """
        Verify the hash chain.

        Returns (True, None) when intact, else (False, reason).
        """
        prev_hash: Optional[str] = None
        for entry in self.read_entries():
            seq = entry.get("seq")
            if entry.get("prev_hash") != prev_hash:
                return False, f"Chain broken at seq {seq}"
            stored = entry.get("entry_hash")
            body = {k: v for k, v in entry.items() if k != "entry_hash"}
            if self._entry_hash(body) != stored:
                return False, f"Hash mismatch at seq {seq}"
            prev_hash = stored
        return True, None
