"""
Authorization assembly

Routes a request to the signature scheme its endpoint expects and attaches
the produced material: an ``Authorization`` header (or ``q-*`` query
parameters for presigned URLs) on the data plane, and the ``Authorization``,
``X-TC-Timestamp`` and ``X-TC-Token`` headers on the control plane.
"""

import copy
import logging
from typing import Dict, Optional

from ..exceptions import ConfigurationError, ValidationError
from .types import (
    CredentialMaterial,
    EndpointClass,
    SignableRequest,
    SignatureScheme,
    SignedRequest,
    SigningConfig,
    SigningErrorCodes,
    SigningMaterial,
    TimeWindow,
)
from .utils import generate_timestamp, parse_url, PerformanceTimer
from .canonical_request import create_signing_context
from .cos_signer import CosSigner
from .tc3_signer import TC3Signer
from .signing_config import validate_signing_config

logger = logging.getLogger(__name__)

CONTROL_PLANE_DOMAIN = "tencentcloudapi.com"

COS_TOKEN_HEADER = "x-cos-security-token"
TC3_TIMESTAMP_HEADER = "X-TC-Timestamp"
TC3_TOKEN_HEADER = "X-TC-Token"

SCHEME_BY_ENDPOINT = {
    EndpointClass.DATA_PLANE: SignatureScheme.COS_SHA1,
    EndpointClass.CONTROL_PLANE: SignatureScheme.TC3_HMAC_SHA256,
}


def classify_endpoint(host: str) -> EndpointClass:
    """
    Classify an endpoint by host name.

    ``tencentcloudapi.com`` and its subdomains are the control plane; every
    other host is treated as a data-plane (storage) endpoint.
    """
    hostname = host.split(":", 1)[0].lower().rstrip(".")
    if hostname == CONTROL_PLANE_DOMAIN or hostname.endswith("." + CONTROL_PLANE_DOMAIN):
        return EndpointClass.CONTROL_PLANE
    return EndpointClass.DATA_PLANE


class AuthorizationAssembler:
    """
    Signs requests with the scheme matching their endpoint

    One pure pass per request: no retries, no network access. Credentials are
    supplied per call so temporary credentials can rotate between requests.
    """

    def __init__(self, config: Optional[SigningConfig] = None):
        """
        Initialize the assembler with configuration.

        Args:
            config: Signing configuration, defaults apply when omitted

        Raises:
            ConfigurationError: If configuration is invalid
        """
        config = config or SigningConfig()
        validate_signing_config(config)
        self.config = self._copy_config(config)
        self._cos_signer = CosSigner()
        self._tc3_signer = TC3Signer(self.config.service)

    def sign(
        self,
        request: SignableRequest,
        credentials: CredentialMaterial,
        endpoint_class: Optional[EndpointClass] = None,
        timestamp: Optional[int] = None,
        presign: bool = False,
        window_seconds: Optional[int] = None
    ) -> SignedRequest:
        """
        Sign a request.

        Args:
            request: Request to sign
            credentials: Credentials to sign with
            endpoint_class: Endpoint class, classified from the URL host when omitted
            timestamp: Signing time, read from the clock when omitted
            presign: Emit query parameters instead of headers (data plane only)
            window_seconds: Override the configured data-plane signature lifetime

        Returns:
            SignedRequest: Headers or query parameters to attach

        Raises:
            ConfigurationError: If credentials are missing
            ValidationError: If the request cannot be signed as asked
            EncodingError: If a header or parameter cannot be canonicalized
        """
        if not isinstance(credentials, CredentialMaterial):
            raise ConfigurationError(
                "Credentials must be a CredentialMaterial instance",
                SigningErrorCodes.INVALID_CONFIG
            )

        timer = PerformanceTimer()

        if endpoint_class is None:
            endpoint_class = classify_endpoint(parse_url(request.url)['host'])
        scheme = SCHEME_BY_ENDPOINT[EndpointClass(endpoint_class)]

        if presign and scheme != SignatureScheme.COS_SHA1:
            raise ValidationError(
                "Presigned URLs are only supported for data-plane endpoints",
                SigningErrorCodes.INVALID_CONFIG,
                {"scheme": scheme.value}
            )

        if timestamp is None:
            timestamp_gen = self.config.timestamp_generator or generate_timestamp
            timestamp = timestamp_gen()

        context = create_signing_context(request, scheme, self.config.signed_headers)

        if scheme == SignatureScheme.COS_SHA1:
            window = TimeWindow.starting_at(
                timestamp,
                window_seconds if window_seconds is not None else self.config.window_seconds,
                self.config.window_leeway_seconds
            )
            material = self._cos_signer.sign(context, credentials, window)
            signed = self._attach_cos(material, credentials, presign)
        else:
            material = self._tc3_signer.sign(context, credentials, timestamp)
            signed = self._attach_tc3(material, credentials)

        logger.debug(
            "Signed %s %s with %s, headers=%s params=%s",
            request.method.value, context.path, scheme.value,
            material.signed_headers, material.signed_params
        )
        if self.config.log_canonical_requests:
            logger.debug("Canonical request:\n%s", material.canonical_request)
            logger.debug("String to sign:\n%s", material.string_to_sign)

        elapsed_ms = timer.elapsed_ms()
        if elapsed_ms > 10:
            logger.warning(f"Signing operation took {elapsed_ms:.2f}ms (target: <10ms)")

        return signed

    def _attach_cos(
        self,
        material: SigningMaterial,
        credentials: CredentialMaterial,
        presign: bool
    ) -> SignedRequest:
        headers: Dict[str, str] = {}
        query_params: Dict[str, str] = {}

        if presign:
            query_params.update(material.fields)
            if credentials.has_session_token:
                query_params[COS_TOKEN_HEADER] = credentials.session_token
        else:
            headers['Authorization'] = material.authorization
            if credentials.has_session_token:
                headers[COS_TOKEN_HEADER] = credentials.session_token

        return self._signed_request(material, headers, query_params)

    def _attach_tc3(self, material: SigningMaterial, credentials: CredentialMaterial) -> SignedRequest:
        headers = {
            'Authorization': material.authorization,
            TC3_TIMESTAMP_HEADER: str(material.timestamp),
        }
        if credentials.has_session_token:
            headers[TC3_TOKEN_HEADER] = credentials.session_token

        return self._signed_request(material, headers, {})

    def _signed_request(
        self,
        material: SigningMaterial,
        headers: Dict[str, str],
        query_params: Dict[str, str]
    ) -> SignedRequest:
        return SignedRequest(
            scheme=material.scheme,
            headers=headers,
            query_params=query_params,
            authorization=material.authorization,
            canonical_request=material.canonical_request,
            string_to_sign=material.string_to_sign,
            signed_headers=list(material.signed_headers),
            signed_params=list(material.signed_params)
        )

    def _copy_config(self, config: SigningConfig) -> SigningConfig:
        """
        Create a copy of signing configuration.

        Args:
            config: Original configuration

        Returns:
            SigningConfig: Copied configuration
        """
        return SigningConfig(
            window_seconds=config.window_seconds,
            window_leeway_seconds=config.window_leeway_seconds,
            signed_headers=copy.copy(config.signed_headers),
            service=config.service,
            log_canonical_requests=config.log_canonical_requests,
            timestamp_generator=config.timestamp_generator
        )


def create_assembler(config: Optional[SigningConfig] = None) -> AuthorizationAssembler:
    """
    Create a new authorization assembler.

    Args:
        config: Signing configuration

    Returns:
        AuthorizationAssembler: Configured assembler instance
    """
    return AuthorizationAssembler(config)


def sign_request(
    request: SignableRequest,
    credentials: CredentialMaterial,
    config: Optional[SigningConfig] = None,
    **kwargs
) -> SignedRequest:
    """
    Sign a request with the given configuration.

    Args:
        request: Request to sign
        credentials: Credentials to sign with
        config: Optional signing configuration
        **kwargs: Passed to ``AuthorizationAssembler.sign``

    Returns:
        SignedRequest: Signing result
    """
    return create_assembler(config).sign(request, credentials, **kwargs)
