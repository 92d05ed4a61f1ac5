"""
ID generators used across Veritasor.
"""

from __future__ import annotations

import uuid


def generate_uuid() -> str:
    """Generate a UUIDv4 string."""
    return str(uuid.uuid4())


def pending_tx_hash(prefix: str = "pending_") -> str:
    """Synthetic transaction id assigned when anchoring did not complete."""
    return f"{prefix}{uuid.uuid4()}"
