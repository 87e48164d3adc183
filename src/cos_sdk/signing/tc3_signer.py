"""
Control-plane signature engine (TC3-HMAC-SHA256)

The signing key is derived through a four-stage HMAC-SHA256 chain scoped to
one UTC day and one service:

    SecretDate    = HMAC-SHA256("TC3" + secret_key, date)
    SecretService = HMAC-SHA256(SecretDate, service)
    SecretSigning = HMAC-SHA256(SecretService, "tc3_request")
    Signature     = hex(HMAC-SHA256(SecretSigning, StringToSign))

Every stage after the first is keyed by the raw bytes of the previous one.
"""

from ..exceptions import ConfigurationError, ValidationError
from .types import (
    CredentialMaterial,
    CredentialScope,
    SignatureScheme,
    SigningContext,
    SigningErrorCodes,
    SigningMaterial,
    TC3_KEY_PREFIX,
    TC3_TERMINATOR,
)
from .utils import hmac_digest, sha256_hex, to_hex, validate_timestamp
from .canonical_request import build_canonical_request

TC3_ALGORITHM = SignatureScheme.TC3_HMAC_SHA256.value


def derive_signing_key(secret_key: str, date: str, service: str) -> bytes:
    """
    Run the key derivation chain.

    Args:
        secret_key: Long-term or session secret key
        date: UTC date, ``YYYY-MM-DD``
        service: Service identifier

    Returns:
        bytes: Raw SecretSigning key
    """
    secret_date = hmac_digest(f"{TC3_KEY_PREFIX}{secret_key}".encode('utf-8'), date, 'sha256')
    secret_service = hmac_digest(secret_date, service, 'sha256')
    return hmac_digest(secret_service, TC3_TERMINATOR, 'sha256')


class TC3Signer:
    """
    TC3-HMAC-SHA256 signer for control-plane requests
    """

    scheme = SignatureScheme.TC3_HMAC_SHA256

    def __init__(self, service: str):
        """
        Initialize the signer for one service.

        Args:
            service: Service identifier (e.g. ``sts``)

        Raises:
            ConfigurationError: If the service is empty
        """
        if not isinstance(service, str) or not service.strip():
            raise ConfigurationError(
                "Service identifier cannot be empty",
                SigningErrorCodes.INVALID_SERVICE
            )
        self.service = service.strip()

    def build_canonical_request(self, context: SigningContext) -> str:
        return build_canonical_request(context, self.scheme)

    def build_string_to_sign(self, timestamp: int, scope: CredentialScope, canonical_request: str) -> str:
        hashed_request = sha256_hex(canonical_request.encode('utf-8'))
        return f"{TC3_ALGORITHM}\n{timestamp}\n{scope.value}\n{hashed_request}"

    def build_authorization(self, secret_id: str, scope: CredentialScope, signed_headers: str, signature: str) -> str:
        return (
            f"{TC3_ALGORITHM} "
            f"Credential={secret_id}/{scope.value}, "
            f"SignedHeaders={signed_headers}, "
            f"Signature={signature}"
        )

    def sign(
        self,
        context: SigningContext,
        credentials: CredentialMaterial,
        timestamp: int
    ) -> SigningMaterial:
        """
        Sign a normalized request.

        The credential scope date is derived from ``timestamp`` itself, so the
        ``X-TC-Timestamp`` header and the scope can never disagree.

        Args:
            context: Signing context for the request
            credentials: Credentials to sign with
            timestamp: Unix timestamp sent with the request

        Returns:
            SigningMaterial: Signature, authorization value and the canonical strings

        Raises:
            ValidationError: If the timestamp is not a plausible Unix time
        """
        if not validate_timestamp(timestamp):
            raise ValidationError(
                f"Invalid timestamp: {timestamp}",
                SigningErrorCodes.INVALID_TIMESTAMP,
                {"timestamp": timestamp}
            )

        scope = CredentialScope.from_timestamp(timestamp, self.service)
        canonical_request = self.build_canonical_request(context)
        string_to_sign = self.build_string_to_sign(timestamp, scope, canonical_request)

        signing_key = derive_signing_key(credentials.secret_key, scope.date, scope.service)
        signature = to_hex(hmac_digest(signing_key, string_to_sign, 'sha256'))

        # Same list that was hashed into the canonical request
        signed_headers = context.header_names
        authorization = self.build_authorization(
            credentials.secret_id, scope, ";".join(signed_headers), signature
        )

        return SigningMaterial(
            scheme=self.scheme,
            signature=signature,
            authorization=authorization,
            canonical_request=canonical_request,
            string_to_sign=string_to_sign,
            signed_headers=list(signed_headers),
            signed_params=sorted({key for key, _ in context.query}),
            timestamp=timestamp,
        )


def parse_tc3_authorization(authorization: str) -> dict:
    """
    Parse a TC3 authorization value.

    Returns:
        dict: ``algorithm``, ``credential``, ``signed_headers`` and ``signature``;
        empty when the value does not use the TC3 algorithm
    """
    algorithm, _, rest = authorization.strip().partition(" ")
    if algorithm != TC3_ALGORITHM:
        return {}

    parsed = {"algorithm": algorithm}
    for part in rest.split(","):
        name, _, value = part.strip().partition("=")
        if name == "Credential":
            parsed["credential"] = value
        elif name == "SignedHeaders":
            parsed["signed_headers"] = value
        elif name == "Signature":
            parsed["signature"] = value
    return parsed
