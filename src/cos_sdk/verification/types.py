"""
Type definitions for signature verification functionality
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass, field
from enum import Enum


class VerificationStatus(str, Enum):
    """Verification result status"""
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"
    ERROR = "error"


class VerificationErrorCodes:
    """Reasons a signature is rejected"""
    MALFORMED_AUTHORIZATION = "MALFORMED_AUTHORIZATION"
    UNSUPPORTED_ALGORITHM = "UNSUPPORTED_ALGORITHM"
    UNKNOWN_SECRET_ID = "UNKNOWN_SECRET_ID"
    OUTSIDE_TIME_WINDOW = "OUTSIDE_TIME_WINDOW"
    TIMESTAMP_SKEW = "TIMESTAMP_SKEW"
    SCOPE_MISMATCH = "SCOPE_MISMATCH"
    MISSING_SIGNED_HEADER = "MISSING_SIGNED_HEADER"
    SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"
    CANONICALIZATION_FAILED = "CANONICALIZATION_FAILED"


@dataclass
class VerificationResult:
    """
    Outcome of recomputing a signature the way the server does

    Attributes:
        valid: True only when the recomputed signature matches
        status: Result status
        reason: Error code when invalid, None when valid
        details: Diagnostic fields; never contains secret material
    """
    valid: bool
    status: VerificationStatus
    reason: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, details: Optional[Dict[str, Any]] = None) -> 'VerificationResult':
        return cls(valid=True, status=VerificationStatus.VALID, details=details or {})

    @classmethod
    def failure(
        cls,
        reason: str,
        status: VerificationStatus = VerificationStatus.INVALID,
        details: Optional[Dict[str, Any]] = None
    ) -> 'VerificationResult':
        return cls(valid=False, status=status, reason=reason, details=details or {})
