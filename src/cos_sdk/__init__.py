"""
COS Python SDK
Request signing for object storage and its token service
"""

from .version import __version__
from .exceptions import (
    CosSDKError,
    ConfigurationError,
    EncodingError,
    ValidationError,
    AuthenticationError,
    ServerCommunicationError,
)
from .config import (
    CosConfig,
    LoggingConfig,
    configure_logging,
    load_config,
)
from .http_client import (
    CosClient,
    PutObjectResult,
    GetObjectResult,
    HeadObjectResult,
    DeleteObjectResult,
    DeleteObjectsResult,
    ListObjectsResult,
    ObjectSummary,
    create_client,
    guess_content_type,
)
from .sts_client import (
    StsClient,
    Policy,
    Statement,
    TemporaryCredentials,
)
from .signing import (
    # Core signing functionality
    AuthorizationAssembler,
    CosSigner,
    TC3Signer,
    create_assembler,
    sign_request,
    classify_endpoint,
    derive_signing_key,
    # Canonicalization
    CanonicalRequestBuilder,
    canonical_headers,
    canonical_query,
    canonical_request,
    signed_header_names,
    # Types
    CredentialMaterial,
    EndpointClass,
    HttpMethod,
    SignableRequest,
    SignatureScheme,
    SignedRequest,
    SigningConfig,
    TimeWindow,
    # Configuration
    SigningConfigBuilder,
    SIGNING_PROFILES,
    create_signing_config,
    create_from_profile,
    # HTTP Integration
    create_signing_session,
    SigningSession,
)
from .verification import (
    CosSignatureVerifier,
    TC3SignatureVerifier,
    VerificationResult,
    VerificationStatus,
)

__all__ = [
    '__version__',
    # Exceptions
    'CosSDKError',
    'ConfigurationError',
    'EncodingError',
    'ValidationError',
    'AuthenticationError',
    'ServerCommunicationError',
    # Configuration
    'CosConfig',
    'LoggingConfig',
    'configure_logging',
    'load_config',
    # Clients
    'CosClient',
    'PutObjectResult',
    'GetObjectResult',
    'HeadObjectResult',
    'DeleteObjectResult',
    'DeleteObjectsResult',
    'ListObjectsResult',
    'ObjectSummary',
    'create_client',
    'guess_content_type',
    'StsClient',
    'Policy',
    'Statement',
    'TemporaryCredentials',
    # Signing
    'AuthorizationAssembler',
    'CosSigner',
    'TC3Signer',
    'create_assembler',
    'sign_request',
    'classify_endpoint',
    'derive_signing_key',
    'CanonicalRequestBuilder',
    'canonical_headers',
    'canonical_query',
    'canonical_request',
    'signed_header_names',
    'CredentialMaterial',
    'EndpointClass',
    'HttpMethod',
    'SignableRequest',
    'SignatureScheme',
    'SignedRequest',
    'SigningConfig',
    'TimeWindow',
    'SigningConfigBuilder',
    'SIGNING_PROFILES',
    'create_signing_config',
    'create_from_profile',
    'create_signing_session',
    'SigningSession',
    # Verification
    'CosSignatureVerifier',
    'TC3SignatureVerifier',
    'VerificationResult',
    'VerificationStatus',
]
