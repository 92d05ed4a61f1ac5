from .json import json_dumps, json_loads, canonical_json
from .ids import generate_uuid, pending_tx_hash
from .logging import get_logger, configure_logging

__all__ = [
    "json_dumps",
    "json_loads",
    "canonical_json",
    "generate_uuid",
    "pending_tx_hash",
    "get_logger",
    "configure_logging",
]
