"""
COS Python SDK - Request Signing Module

Implements the two signature schemes the storage service speaks: the
data-plane HMAC-SHA1 ``q-sign-*`` scheme for object and bucket requests and
the control-plane TC3-HMAC-SHA256 scheme for the token service.
"""

from .types import (
    CredentialMaterial,
    CredentialScope,
    EndpointClass,
    HttpMethod,
    SignableRequest,
    SignatureScheme,
    SignedRequest,
    SigningConfig,
    SigningContext,
    SigningErrorCodes,
    SigningMaterial,
    TimeWindow,
)

from .canonical_request import (
    CanonicalRequestBuilder,
    build_canonical_request,
    canonical_headers,
    canonical_query,
    canonical_request,
    create_signing_context,
    select_signed_headers,
    signed_header_names,
    signed_param_names,
)

from .cos_signer import (
    CosSigner,
    parse_cos_authorization,
)

from .tc3_signer import (
    TC3Signer,
    derive_signing_key,
    parse_tc3_authorization,
)

from .assembler import (
    AuthorizationAssembler,
    classify_endpoint,
    create_assembler,
    sign_request,
)

from .signing_config import (
    SigningConfigBuilder,
    SigningProfile,
    SIGNING_PROFILES,
    create_signing_config,
    create_from_profile,
    validate_signing_config,
    get_signing_profile,
    list_signing_profiles,
)

from .utils import (
    generate_timestamp,
    validate_timestamp,
    format_utc_date,
    percent_encode,
    parse_url,
    normalize_header_name,
)

from .integration import (
    create_signing_session,
    SigningSession,
)

# Public API exports
__all__ = [
    # Core signing functionality
    'AuthorizationAssembler',
    'CosSigner',
    'TC3Signer',
    'create_assembler',
    'sign_request',
    'classify_endpoint',
    'derive_signing_key',
    'parse_cos_authorization',
    'parse_tc3_authorization',
    # Canonicalization
    'CanonicalRequestBuilder',
    'build_canonical_request',
    'canonical_headers',
    'canonical_query',
    'canonical_request',
    'create_signing_context',
    'select_signed_headers',
    'signed_header_names',
    'signed_param_names',
    # Types
    'CredentialMaterial',
    'CredentialScope',
    'EndpointClass',
    'HttpMethod',
    'SignableRequest',
    'SignatureScheme',
    'SignedRequest',
    'SigningConfig',
    'SigningContext',
    'SigningErrorCodes',
    'SigningMaterial',
    'TimeWindow',
    # Configuration
    'SigningConfigBuilder',
    'SigningProfile',
    'SIGNING_PROFILES',
    'create_signing_config',
    'create_from_profile',
    'validate_signing_config',
    'get_signing_profile',
    'list_signing_profiles',
    # Utilities
    'generate_timestamp',
    'validate_timestamp',
    'format_utc_date',
    'percent_encode',
    'parse_url',
    'normalize_header_name',
    # HTTP Integration
    'create_signing_session',
    'SigningSession',
]
