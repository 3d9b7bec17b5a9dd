from enum import Enum
from typing import List, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    MALFORMED_INPUT = "malformed_input"
    INVALID_TRANSITION = "invalid_transition"
    ENRICHMENT_UNAVAILABLE = "enrichment_unavailable"


class ClaimsTrackerError(Exception):
    """Base error for the claims tracker core. Every error carries a kind tag."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}


class ClaimValidationError(ClaimsTrackerError):
    """Raised at the commit boundary, or by the factory for malformed input."""

    def __init__(self, errors: List[str], kind: ErrorKind = ErrorKind.VALIDATION):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Claim validation failed.", kind=kind)

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message, "errors": self.errors}


class InvalidStatusTransition(ClaimsTrackerError):
    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, message: str, current_status: Optional[str] = None, requested_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status
        self.requested_status = requested_status
