"""
Data-plane signature engine (``q-sign-algorithm=sha1``)

The object storage endpoints authenticate requests with an HMAC-SHA1 scheme
bound to a validity window (the KeyTime):

    SignKey      = hex(HMAC-SHA1(secret_key, KeyTime))
    StringToSign = "sha1\\n" + KeyTime + "\\n" + hex(SHA1(HttpString)) + "\\n"
    Signature    = hex(HMAC-SHA1(SignKey, StringToSign))

Note that the hex form of SignKey, not its raw bytes, keys the second HMAC.
"""

from typing import Dict, List

from .types import (
    CredentialMaterial,
    SignatureScheme,
    SigningContext,
    SigningMaterial,
    TimeWindow,
)
from .utils import hmac_digest, percent_encode, sha1_hex, to_hex
from .canonical_request import build_canonical_request, encode_query_pairs

COS_ALGORITHM = "sha1"

# Field order of the authorization string
COS_AUTH_FIELDS = (
    'q-sign-algorithm',
    'q-ak',
    'q-sign-time',
    'q-key-time',
    'q-header-list',
    'q-url-param-list',
    'q-signature',
)


class CosSigner:
    """
    HMAC-SHA1 signer for data-plane requests
    """

    scheme = SignatureScheme.COS_SHA1

    def derive_sign_key(self, secret_key: str, window: TimeWindow) -> str:
        """
        Derive the window-bound signing key.

        Args:
            secret_key: Long-term or session secret key
            window: Validity window

        Returns:
            str: Lowercase hex SignKey
        """
        return to_hex(hmac_digest(secret_key.encode('utf-8'), window.key_time, COS_ALGORITHM))

    def build_http_string(self, context: SigningContext) -> str:
        return build_canonical_request(context, self.scheme)

    def build_string_to_sign(self, window: TimeWindow, http_string: str) -> str:
        return f"{COS_ALGORITHM}\n{window.key_time}\n{sha1_hex(http_string)}\n"

    def header_list(self, context: SigningContext) -> List[str]:
        """Declared header names, matching the HttpString encoding and order"""
        return sorted({percent_encode(name).lower() for name in context.header_names})

    def param_list(self, context: SigningContext) -> List[str]:
        """Declared query parameter names, matching the HttpString encoding and order"""
        return sorted({key for key, _ in encode_query_pairs(context.query, lowercase_keys=True)})

    def sign(
        self,
        context: SigningContext,
        credentials: CredentialMaterial,
        window: TimeWindow
    ) -> SigningMaterial:
        """
        Sign a normalized request.

        Args:
            context: Signing context for the request
            credentials: Credentials to sign with
            window: Validity window of the signature

        Returns:
            SigningMaterial: Signature, ``q-*`` fields and the canonical strings
        """
        http_string = self.build_http_string(context)
        string_to_sign = self.build_string_to_sign(window, http_string)

        sign_key = self.derive_sign_key(credentials.secret_key, window)
        signature = to_hex(hmac_digest(sign_key.encode('utf-8'), string_to_sign, COS_ALGORITHM))

        header_list = self.header_list(context)
        param_list = self.param_list(context)

        fields: Dict[str, str] = {
            'q-sign-algorithm': COS_ALGORITHM,
            'q-ak': credentials.secret_id,
            'q-sign-time': window.key_time,
            'q-key-time': window.key_time,
            'q-header-list': ";".join(header_list),
            'q-url-param-list': ";".join(param_list),
            'q-signature': signature,
        }

        authorization = "&".join(f"{name}={fields[name]}" for name in COS_AUTH_FIELDS)

        return SigningMaterial(
            scheme=self.scheme,
            signature=signature,
            authorization=authorization,
            canonical_request=http_string,
            string_to_sign=string_to_sign,
            signed_headers=header_list,
            signed_params=param_list,
            fields=fields,
        )


def parse_cos_authorization(authorization: str) -> Dict[str, str]:
    """
    Split a ``q-*`` authorization string into its fields.

    Unknown fields are kept; missing fields are simply absent.
    """
    fields: Dict[str, str] = {}
    for part in authorization.split("&"):
        if not part:
            continue
        name, _, value = part.partition("=")
        fields[name.strip()] = value.strip()
    return fields
