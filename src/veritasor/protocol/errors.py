from typing import Optional
from .enums import ErrorCode


class VeritasorError(Exception):
    status_code = 500

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.code = code or ErrorCode.INTERNAL_ERROR

    def to_dict(self):
        return {"code": self.code.value, "message": str(self)}


# ---------------------------------------------------------------------------
# Request / identity errors
# ---------------------------------------------------------------------------

class ValidationError(VeritasorError):
    """Raised when request input is malformed."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.VALIDATION_ERROR)


class UnauthorizedError(VeritasorError):
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, ErrorCode.UNAUTHORIZED)


class ForbiddenError(VeritasorError):
    """Raised when a caller acts on a business it does not own."""
    status_code = 403

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.FORBIDDEN)


class NotFoundError(VeritasorError):
    status_code = 404


class BusinessNotFoundError(NotFoundError):
    def __init__(self, message: str = "Business not found for user"):
        super().__init__(message, ErrorCode.BUSINESS_NOT_FOUND)


class AttestationNotFoundError(NotFoundError):
    def __init__(self, message: str = "Attestation not found"):
        super().__init__(message, ErrorCode.ATTESTATION_NOT_FOUND)


class IdempotencyConflictError(VeritasorError):
    """Raised when an idempotency key is reused with a different payload."""
    status_code = 422

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.IDEMPOTENCY_CONFLICT)


# ---------------------------------------------------------------------------
# Merkle tree contract violations
# ---------------------------------------------------------------------------

class MerkleError(VeritasorError):
    status_code = 400


class EmptyInputError(MerkleError, ValueError):
    def __init__(self, message: str = "Cannot build tree with no leaves"):
        super().__init__(message, ErrorCode.EMPTY_INPUT)


class IndexOutOfRangeError(MerkleError, IndexError):
    def __init__(self, message: str):
        super().__init__(message, ErrorCode.INDEX_OUT_OF_RANGE)


# ---------------------------------------------------------------------------
# Chain anchoring (always recovered locally by the lifecycle manager)
# ---------------------------------------------------------------------------

class ChainAnchorError(VeritasorError):
    status_code = 502

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message, code or ErrorCode.CHAIN_UNAVAILABLE)


class ChainUnavailableError(ChainAnchorError):
    status_code = 503

    def __init__(self, message: str = "Chain anchor unavailable"):
        super().__init__(message, ErrorCode.CHAIN_UNAVAILABLE)


class ChainNetworkError(ChainAnchorError):
    def __init__(self, message: str):
        super().__init__(message, ErrorCode.NETWORK_ERROR)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

class PersistenceError(VeritasorError):
    status_code = 500

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message, code or ErrorCode.PERSISTENCE_ERROR)


class RevokeFailedError(PersistenceError):
    def __init__(self, message: str = "Failed to revoke attestation"):
        super().__init__(message, ErrorCode.REVOKE_FAILED)
