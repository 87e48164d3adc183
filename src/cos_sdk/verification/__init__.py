"""
COS Python SDK - Signature Verification Module

Reference verifiers that recompute data-plane and control-plane signatures
the way the remote services do.
"""

from .types import (
    VerificationResult,
    VerificationStatus,
    VerificationErrorCodes,
)

from .verifier import (
    CosSignatureVerifier,
    TC3SignatureVerifier,
    create_verifier,
)

__all__ = [
    # Verifiers
    'CosSignatureVerifier',
    'TC3SignatureVerifier',
    'create_verifier',
    # Types
    'VerificationResult',
    'VerificationStatus',
    'VerificationErrorCodes',
]
