from enum import Enum


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "validation_error"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    BUSINESS_NOT_FOUND = "business_not_found"
    ATTESTATION_NOT_FOUND = "attestation_not_found"
    EMPTY_INPUT = "empty_input"
    INDEX_OUT_OF_RANGE = "index_out_of_range"
    CHAIN_UNAVAILABLE = "chain_unavailable"
    NETWORK_ERROR = "network_error"
    IDEMPOTENCY_CONFLICT = "idempotency_conflict"
    PERSISTENCE_ERROR = "persistence_error"
    REVOKE_FAILED = "revoke_failed"
    INTERNAL_ERROR = "internal_error"


class AttestationStatus(str, Enum):
    SUBMITTED = "submitted"
    REVOKED = "revoked"


class ProofPosition(str, Enum):
    """Side of the path node on which a proof sibling sits."""
    LEFT = "left"
    RIGHT = "right"


class AnchorMode(str, Enum):
    DISABLED = "disabled"
    MEMORY = "memory"
    HTTP = "http"
