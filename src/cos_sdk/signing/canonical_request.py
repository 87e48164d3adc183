"""
Canonical request construction for both signature schemes

This module turns the signable parts of a request into deterministic strings.
The remote verifier recomputes the same strings independently, so identical
logical input must always produce byte-identical output regardless of the
order headers and parameters were supplied in.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import unquote

from ..exceptions import EncodingError
from .types import (
    SignableRequest,
    SignatureScheme,
    SigningContext,
    SigningErrorCodes,
)
from .utils import (
    parse_url,
    percent_encode,
    stringify_value,
    normalize_header_name,
    normalize_header_value,
    validate_header_name,
    body_to_bytes,
    sha256_hex,
)

QueryInput = Union[Mapping[str, object], Iterable[Tuple[str, object]]]

# Headers signed by default on the data plane when present
COS_DEFAULT_SIGNED_HEADERS = (
    'host',
    'content-type',
    'content-length',
    'content-md5',
    'content-disposition',
    'content-encoding',
    'range',
)
COS_SIGNED_HEADER_PREFIX = 'x-cos-'
# Attached after signing, never part of the header list
COS_UNSIGNED_HEADERS = ('x-cos-security-token', 'authorization')

# Headers signed by default on the control plane
TC3_DEFAULT_SIGNED_HEADERS = ('content-type', 'host')

# Wildcard entry in an explicit header list
SIGN_ALL_HEADERS = "*"


def _iter_params(params: Optional[QueryInput]) -> List[Tuple[str, object]]:
    if not params:
        return []
    if isinstance(params, Mapping):
        return list(params.items())
    return list(params)


def encode_query_pairs(params: Optional[QueryInput], lowercase_keys: bool = False) -> List[Tuple[str, str]]:
    """
    Percent-encode query keys and values and sort them by encoded key.

    Args:
        params: Mapping or iterable of (key, value) pairs
        lowercase_keys: Lower-case encoded keys (data-plane rule)

    Returns:
        list: Sorted (encoded key, encoded value) pairs

    Raises:
        EncodingError: If a key or value cannot be represented
    """
    encoded = []
    for key, value in _iter_params(params):
        if not isinstance(key, str) or not key:
            raise EncodingError(
                f"Query parameter name must be a non-empty string: {key!r}",
                SigningErrorCodes.INVALID_QUERY_VALUE,
                {"parameter": repr(key)}
            )
        encoded_key = percent_encode(key)
        if lowercase_keys:
            encoded_key = encoded_key.lower()
        encoded_value = percent_encode(stringify_value(value))
        encoded.append((encoded_key, encoded_value))
    return sorted(encoded)


def canonical_query(params: Optional[QueryInput], lowercase_keys: bool = False) -> str:
    """
    Build the canonical query string.

    Each key and value is percent-encoded (RFC 3986 unreserved set), entries
    are sorted by encoded key and joined as ``key=value`` with ``&``.
    """
    return "&".join(f"{key}={value}" for key, value in encode_query_pairs(params, lowercase_keys))


def _normalized_header_items(headers: Mapping[str, object], lowercase_values: bool = False) -> List[Tuple[str, str]]:
    items: Dict[str, str] = {}
    for name, value in headers.items():
        if not validate_header_name(name):
            raise EncodingError(
                f"Invalid header name: {name!r}",
                SigningErrorCodes.INVALID_HEADER_NAME,
                {"header": repr(name)}
            )
        normalized_name = normalize_header_name(name)
        normalized_value = normalize_header_value(normalized_name, value)
        if lowercase_values:
            normalized_value = normalized_value.lower()
        items[normalized_name] = normalized_value
    return sorted(items.items())


def canonical_headers(headers: Mapping[str, object], lowercase_values: bool = False) -> str:
    """
    Build the canonical header block.

    Header names are lower-cased and sorted; each entry is emitted as
    ``name:value\\n`` with surrounding whitespace trimmed from the value.

    Args:
        headers: Headers to include (already the signed subset)
        lowercase_values: Lower-case values too (control-plane rule)

    Returns:
        str: Canonical header block
    """
    return "".join(f"{name}:{value}\n" for name, value in _normalized_header_items(headers, lowercase_values))


def cos_header_string(headers: Mapping[str, object]) -> str:
    """
    Build the data-plane header string.

    The data plane serializes headers the same way as query parameters:
    ``name=value`` pairs, percent-encoded, joined with ``&``.
    """
    pairs = sorted(
        (percent_encode(name).lower(), percent_encode(value))
        for name, value in _normalized_header_items(headers)
    )
    return "&".join(f"{name}={value}" for name, value in pairs)


def signed_header_names(headers: Mapping[str, object]) -> str:
    """Sorted, lower-cased header names joined with ``;``"""
    return ";".join(sorted(normalize_header_name(name) for name in headers))


def signed_param_names(params: Optional[QueryInput]) -> str:
    """Sorted, lower-cased, encoded query parameter names joined with ``;``"""
    return ";".join(key for key, _ in encode_query_pairs(params, lowercase_keys=True))


def canonical_request(
    method: str,
    path: str,
    query: Optional[QueryInput],
    headers: Mapping[str, object],
    payload_hash: str,
    scheme: SignatureScheme
) -> str:
    """
    Build the canonical request for a scheme.

    Data plane (the HttpString)::

        lower(method) \\n path \\n query \\n headers \\n

    Control plane::

        METHOD \\n uri \\n query \\n canonical_headers \\n signed_headers \\n payload_hash

    Args:
        method: HTTP method
        path: Request path
        query: Query parameters
        headers: Signed headers
        payload_hash: Hex SHA-256 of the body (control plane only)
        scheme: Signature scheme

    Returns:
        str: Canonical request
    """
    if scheme == SignatureScheme.COS_SHA1:
        return (
            f"{method.lower()}\n"
            f"{path}\n"
            f"{canonical_query(query, lowercase_keys=True)}\n"
            f"{cos_header_string(headers)}\n"
        )

    return (
        f"{method.upper()}\n"
        f"{path}\n"
        f"{canonical_query(query)}\n"
        f"{canonical_headers(headers, lowercase_values=True)}\n"
        f"{signed_header_names(headers)}\n"
        f"{payload_hash}"
    )


def select_signed_headers(
    headers: Mapping[str, object],
    scheme: SignatureScheme,
    explicit: Optional[List[str]] = None
) -> Dict[str, object]:
    """
    Pick the subset of request headers that get signed.

    An explicit list selects exactly those names that are present; ``*`` in
    the list selects every header present. Otherwise the scheme default
    applies: on the data plane the standard entity headers plus every
    ``x-cos-*`` header, on the control plane ``content-type`` and ``host``.
    Headers attached after signing are never selected.
    """
    lowered = {normalize_header_name(name): value for name, value in headers.items()}

    if explicit is not None:
        wanted = {normalize_header_name(name) for name in explicit}
        sign_all = SIGN_ALL_HEADERS in wanted
        return {
            name: value for name, value in lowered.items()
            if (sign_all or name in wanted) and name not in COS_UNSIGNED_HEADERS
        }

    if scheme == SignatureScheme.COS_SHA1:
        return {
            name: value for name, value in lowered.items()
            if name not in COS_UNSIGNED_HEADERS and (
                name in COS_DEFAULT_SIGNED_HEADERS or name.startswith(COS_SIGNED_HEADER_PREFIX)
            )
        }

    return {name: value for name, value in lowered.items() if name in TC3_DEFAULT_SIGNED_HEADERS}


class CanonicalRequestBuilder:
    """
    Canonical request builder for one request and one scheme
    """

    def __init__(self, context: SigningContext, scheme: SignatureScheme):
        """
        Initialize canonical request builder.

        Args:
            context: Normalized signing context
            scheme: Scheme whose field order applies
        """
        self.context = context
        self.scheme = scheme

    def build(self) -> str:
        """
        Build the canonical request for signing.

        Returns:
            str: Canonical request string
        """
        return canonical_request(
            self.context.method,
            self.context.path,
            self.context.query,
            dict(self.context.headers),
            self.context.payload_hash,
            self.scheme
        )

    @property
    def signed_headers(self) -> List[str]:
        return self.context.header_names

    @property
    def signed_params(self) -> List[str]:
        if self.scheme == SignatureScheme.COS_SHA1:
            return [key for key, _ in encode_query_pairs(self.context.query, lowercase_keys=True)]
        return [key for key, _ in encode_query_pairs(self.context.query)]


def create_signing_context(
    request: SignableRequest,
    scheme: SignatureScheme,
    signed_headers: Optional[List[str]] = None
) -> SigningContext:
    """
    Normalize a request into a frozen signing context.

    The ``host`` header is filled in from the URL when absent. The data-plane
    path is signed in its decoded form; the body is only hashed for the
    control plane.

    Args:
        request: Request to sign
        scheme: Scheme in use
        signed_headers: Explicit header selection, or None for the default

    Returns:
        SigningContext: Context for this request

    Raises:
        ValidationError: If the URL is invalid
        EncodingError: If a header, parameter or body cannot be canonicalized
    """
    url_parts = parse_url(request.url)

    headers = dict(request.headers)
    if 'host' not in headers:
        headers['host'] = url_parts['host']

    selected = select_signed_headers(headers, scheme, signed_headers)
    normalized_headers = tuple(
        _normalized_header_items(selected, lowercase_values=scheme == SignatureScheme.TC3_HMAC_SHA256)
    )

    query = [(key, stringify_value(value)) for key, value in url_parts['query']]
    query.extend((key, stringify_value(value)) for key, value in _iter_params(request.params))
    query.sort()

    if scheme == SignatureScheme.COS_SHA1:
        path = unquote(url_parts['path'])
        payload_hash = ""
    else:
        path = url_parts['path']
        payload_hash = sha256_hex(body_to_bytes(request.body))

    return SigningContext(
        method=request.method.value,
        path=path,
        query=tuple(query),
        headers=normalized_headers,
        payload_hash=payload_hash
    )


def build_canonical_request(context: SigningContext, scheme: SignatureScheme) -> str:
    """
    Build canonical request for signing.

    Args:
        context: Signing context
        scheme: Signature scheme

    Returns:
        str: Canonical request string
    """
    builder = CanonicalRequestBuilder(context, scheme)
    return builder.build()
