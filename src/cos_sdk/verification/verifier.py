"""
Server-side signature verification

Reference verifiers that recompute a signature the way the remote services
do: parse the declared fields, check the time bounds, rebuild the canonical
request from exactly the declared header and parameter lists, and compare in
constant time. Used to test the signers end to end and to diagnose
rejections without a network round trip.
"""

import hmac
import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from ..exceptions import ConfigurationError, EncodingError, ValidationError
from ..signing.types import (
    CredentialMaterial,
    SignableRequest,
    SignatureScheme,
    TC3_TERMINATOR,
    TimeWindow,
)
from ..signing.utils import format_utc_date, generate_timestamp, parse_url, percent_encode
from ..signing.canonical_request import create_signing_context
from ..signing.cos_signer import COS_ALGORITHM, COS_AUTH_FIELDS, CosSigner, parse_cos_authorization
from ..signing.tc3_signer import TC3Signer, parse_tc3_authorization
from .types import VerificationErrorCodes, VerificationResult, VerificationStatus

logger = logging.getLogger(__name__)

DEFAULT_MAX_SKEW_SECONDS = 300


class _CredentialStore:
    """Secret lookup by secret ID"""

    def __init__(self, credentials: Optional[Iterable[CredentialMaterial]] = None):
        self._credentials: Dict[str, CredentialMaterial] = {}
        for credential in credentials or []:
            self.add_credentials(credential)

    def add_credentials(self, credentials: CredentialMaterial) -> None:
        self._credentials[credentials.secret_id] = credentials

    def remove_credentials(self, secret_id: str) -> None:
        self._credentials.pop(secret_id, None)

    def _lookup(self, secret_id: str) -> Optional[CredentialMaterial]:
        return self._credentials.get(secret_id)


def _signatures_match(expected: str, provided: str) -> bool:
    return hmac.compare_digest(expected.encode('ascii'), provided.strip().lower().encode('ascii', 'replace'))


class CosSignatureVerifier(_CredentialStore):
    """
    Verifier for data-plane ``q-sign-*`` signatures
    """

    def __init__(self, credentials: Optional[Iterable[CredentialMaterial]] = None):
        super().__init__(credentials)
        self._signer = CosSigner()

    def verify(
        self,
        request: SignableRequest,
        authorization: Optional[str] = None,
        server_time: Optional[int] = None
    ) -> VerificationResult:
        """
        Verify a data-plane signature.

        Args:
            request: Request as received; presigned requests carry the
                ``q-*`` fields in the URL
            authorization: Authorization value, taken from the request when omitted
            server_time: Server clock reading, the current time when omitted

        Returns:
            VerificationResult: Verification outcome
        """
        if authorization is None:
            authorization = self._find_authorization(request)
        if not authorization:
            return VerificationResult.failure(
                VerificationErrorCodes.MALFORMED_AUTHORIZATION,
                VerificationStatus.ERROR,
                {"message": "No authorization header or presigned query parameters"}
            )

        fields = parse_cos_authorization(authorization)
        missing = [name for name in COS_AUTH_FIELDS if name not in fields]
        if missing:
            return VerificationResult.failure(
                VerificationErrorCodes.MALFORMED_AUTHORIZATION,
                VerificationStatus.ERROR,
                {"missing_fields": missing}
            )

        if fields['q-sign-algorithm'] != COS_ALGORITHM:
            return VerificationResult.failure(
                VerificationErrorCodes.UNSUPPORTED_ALGORITHM,
                details={"algorithm": fields['q-sign-algorithm']}
            )

        credentials = self._lookup(fields['q-ak'])
        if credentials is None:
            return VerificationResult.failure(
                VerificationErrorCodes.UNKNOWN_SECRET_ID,
                details={"secret_id": fields['q-ak']}
            )

        try:
            window = TimeWindow.parse(fields['q-key-time'])
        except ValidationError as e:
            return VerificationResult.failure(
                VerificationErrorCodes.MALFORMED_AUTHORIZATION,
                VerificationStatus.ERROR,
                {"message": e.message}
            )

        now = server_time if server_time is not None else generate_timestamp()
        if not window.contains(now):
            return VerificationResult.failure(
                VerificationErrorCodes.OUTSIDE_TIME_WINDOW,
                VerificationStatus.EXPIRED,
                {"key_time": window.key_time, "server_time": now}
            )

        declared_headers = [name for name in fields['q-header-list'].split(";") if name]
        declared_params = {name for name in fields['q-url-param-list'].split(";") if name}

        try:
            context = create_signing_context(request, SignatureScheme.COS_SHA1, declared_headers)
        except (EncodingError, ValidationError) as e:
            return VerificationResult.failure(
                VerificationErrorCodes.CANONICALIZATION_FAILED,
                VerificationStatus.ERROR,
                {"message": e.message}
            )

        present = {percent_encode(name).lower() for name in context.header_names}
        missing_headers = [name for name in declared_headers if name not in present]
        if missing_headers:
            return VerificationResult.failure(
                VerificationErrorCodes.MISSING_SIGNED_HEADER,
                details={"missing_headers": missing_headers}
            )

        # Only declared parameters are signed; presign fields never are
        context = replace(
            context,
            query=tuple(
                (key, value) for key, value in context.query
                if percent_encode(key).lower() in declared_params
            )
        )

        material = self._signer.sign(context, credentials, window)
        details = {
            "secret_id": credentials.secret_id,
            "signed_headers": material.signed_headers,
            "signed_params": material.signed_params,
        }

        if not _signatures_match(material.signature, fields['q-signature']):
            logger.debug("Data-plane signature mismatch for secret ID %s", credentials.secret_id)
            return VerificationResult.failure(VerificationErrorCodes.SIGNATURE_MISMATCH, details=details)

        return VerificationResult.success(details)

    def _find_authorization(self, request: SignableRequest) -> Optional[str]:
        header = request.headers.get('authorization')
        if header:
            return header

        query = dict(parse_url(request.url)['query'])
        query.update({key: str(value) for key, value in (request.params or {}).items()})
        if 'q-sign-algorithm' not in query:
            return None
        return "&".join(f"{name}={query[name]}" for name in COS_AUTH_FIELDS if name in query)


class TC3SignatureVerifier(_CredentialStore):
    """
    Verifier for control-plane TC3-HMAC-SHA256 signatures
    """

    def __init__(
        self,
        credentials: Optional[Iterable[CredentialMaterial]] = None,
        service: Optional[str] = None
    ):
        """
        Args:
            credentials: Known credentials
            service: Only accept this service in the credential scope, any when None
        """
        super().__init__(credentials)
        self.service = service

    def verify(
        self,
        request: SignableRequest,
        headers: Optional[Dict[str, str]] = None,
        server_time: Optional[int] = None,
        max_skew: int = DEFAULT_MAX_SKEW_SECONDS
    ) -> VerificationResult:
        """
        Verify a control-plane signature.

        Args:
            request: Request as received
            headers: Headers carrying ``Authorization`` and ``X-TC-Timestamp``,
                the request headers when omitted
            server_time: Server clock reading, the current time when omitted
            max_skew: Largest accepted distance between server time and the
                request timestamp, in seconds

        Returns:
            VerificationResult: Verification outcome
        """
        source = headers if headers is not None else request.headers
        lowered = {name.lower(): value for name, value in source.items()}

        authorization = lowered.get('authorization') or ""
        parsed = parse_tc3_authorization(authorization)
        if not parsed:
            return VerificationResult.failure(
                VerificationErrorCodes.UNSUPPORTED_ALGORITHM if authorization
                else VerificationErrorCodes.MALFORMED_AUTHORIZATION,
                VerificationStatus.INVALID if authorization else VerificationStatus.ERROR,
                {"algorithm": authorization.split(" ", 1)[0]} if authorization else {}
            )

        missing = [name for name in ('credential', 'signed_headers', 'signature') if name not in parsed]
        scope_parts = parsed.get('credential', "").split("/")
        if missing or len(scope_parts) != 4:
            return VerificationResult.failure(
                VerificationErrorCodes.MALFORMED_AUTHORIZATION,
                VerificationStatus.ERROR,
                {"missing_fields": missing}
            )

        try:
            timestamp = int(lowered.get('x-tc-timestamp'))
        except (TypeError, ValueError):
            return VerificationResult.failure(
                VerificationErrorCodes.MALFORMED_AUTHORIZATION,
                VerificationStatus.ERROR,
                {"message": "Missing or non-numeric X-TC-Timestamp"}
            )

        secret_id, date, service, terminator = scope_parts
        if (
            terminator != TC3_TERMINATOR
            or date != format_utc_date(timestamp)
            or (self.service is not None and service != self.service)
        ):
            return VerificationResult.failure(
                VerificationErrorCodes.SCOPE_MISMATCH,
                details={"credential_scope": "/".join(scope_parts[1:]), "timestamp": timestamp}
            )

        now = server_time if server_time is not None else generate_timestamp()
        if abs(now - timestamp) > max_skew:
            return VerificationResult.failure(
                VerificationErrorCodes.TIMESTAMP_SKEW,
                VerificationStatus.EXPIRED,
                {"timestamp": timestamp, "server_time": now, "max_skew": max_skew}
            )

        credentials = self._lookup(secret_id)
        if credentials is None:
            return VerificationResult.failure(
                VerificationErrorCodes.UNKNOWN_SECRET_ID,
                details={"secret_id": secret_id}
            )

        declared_headers: List[str] = [name for name in parsed['signed_headers'].split(";") if name]

        try:
            context = create_signing_context(request, SignatureScheme.TC3_HMAC_SHA256, declared_headers)
            if sorted(context.header_names) != sorted(declared_headers):
                return VerificationResult.failure(
                    VerificationErrorCodes.MISSING_SIGNED_HEADER,
                    details={"missing_headers": sorted(set(declared_headers) - set(context.header_names))}
                )
            material = TC3Signer(service).sign(context, credentials, timestamp)
        except (ConfigurationError, EncodingError, ValidationError) as e:
            return VerificationResult.failure(
                VerificationErrorCodes.CANONICALIZATION_FAILED,
                VerificationStatus.ERROR,
                {"message": e.message}
            )

        details = {
            "secret_id": secret_id,
            "service": service,
            "signed_headers": material.signed_headers,
        }

        if not _signatures_match(material.signature, parsed['signature']):
            logger.debug("Control-plane signature mismatch for secret ID %s", secret_id)
            return VerificationResult.failure(VerificationErrorCodes.SIGNATURE_MISMATCH, details=details)

        return VerificationResult.success(details)


def create_verifier(
    scheme: SignatureScheme,
    credentials: Optional[Iterable[CredentialMaterial]] = None,
    **kwargs
):
    """
    Create the verifier for a scheme.

    Args:
        scheme: Signature scheme to verify
        credentials: Known credentials
        **kwargs: Passed to the verifier constructor

    Returns:
        CosSignatureVerifier or TC3SignatureVerifier
    """
    if SignatureScheme(scheme) == SignatureScheme.COS_SHA1:
        return CosSignatureVerifier(credentials, **kwargs)
    return TC3SignatureVerifier(credentials, **kwargs)
