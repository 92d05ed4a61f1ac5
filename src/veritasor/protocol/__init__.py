from .enums import AnchorMode, AttestationStatus, ErrorCode, ProofPosition
from .errors import (
    AttestationNotFoundError,
    BusinessNotFoundError,
    ChainAnchorError,
    ChainNetworkError,
    ChainUnavailableError,
    EmptyInputError,
    ForbiddenError,
    IdempotencyConflictError,
    IndexOutOfRangeError,
    MerkleError,
    NotFoundError,
    PersistenceError,
    RevokeFailedError,
    UnauthorizedError,
    ValidationError,
    VeritasorError,
)

__all__ = [
    "AnchorMode",
    "AttestationStatus",
    "ErrorCode",
    "ProofPosition",
    "VeritasorError",
    "ValidationError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "BusinessNotFoundError",
    "AttestationNotFoundError",
    "IdempotencyConflictError",
    "MerkleError",
    "EmptyInputError",
    "IndexOutOfRangeError",
    "ChainAnchorError",
    "ChainUnavailableError",
    "ChainNetworkError",
    "PersistenceError",
    "RevokeFailedError",
]
