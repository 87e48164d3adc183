"""
Type definitions for request signing functionality

This module provides type definitions and data classes shared by the two
signature schemes: the data-plane HMAC-SHA1 scheme (``q-sign-algorithm=sha1``)
and the control-plane TC3-HMAC-SHA256 scheme.
"""

from typing import Dict, List, Optional, Tuple, Union, Callable
from dataclasses import dataclass, field
from enum import Enum

from ..exceptions import ConfigurationError, ValidationError


class HttpMethod(str, Enum):
    """HTTP methods supported for signing"""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class SignatureScheme(str, Enum):
    """Signature schemes understood by the remote services"""
    COS_SHA1 = "sha1"
    TC3_HMAC_SHA256 = "TC3-HMAC-SHA256"


class EndpointClass(str, Enum):
    """Endpoint classes, each bound to one signature scheme"""
    DATA_PLANE = "data-plane"
    CONTROL_PLANE = "control-plane"


TC3_TERMINATOR = "tc3_request"
TC3_KEY_PREFIX = "TC3"
UTC_DATE_FORMAT = "%Y-%m-%d"


# Common signing error codes
class SigningErrorCodes:
    """Standard error codes for signing operations"""

    # Configuration errors
    INVALID_CONFIG = "INVALID_CONFIG"
    MISSING_SECRET_ID = "MISSING_SECRET_ID"
    MISSING_SECRET_KEY = "MISSING_SECRET_KEY"
    INVALID_SERVICE = "INVALID_SERVICE"

    # Request errors
    INVALID_URL = "INVALID_URL"
    INVALID_METHOD = "INVALID_METHOD"
    INVALID_HEADERS = "INVALID_HEADERS"
    INVALID_HEADER_NAME = "INVALID_HEADER_NAME"
    INVALID_HEADER_VALUE = "INVALID_HEADER_VALUE"
    INVALID_QUERY_VALUE = "INVALID_QUERY_VALUE"
    INVALID_BODY = "INVALID_BODY"

    # Signing errors
    INVALID_TIMESTAMP = "INVALID_TIMESTAMP"
    INVALID_TIME_WINDOW = "INVALID_TIME_WINDOW"


@dataclass(frozen=True)
class CredentialMaterial:
    """
    Long-term or session secret pair.

    The secret key never appears in ``repr`` and is only ever fed into HMAC
    key derivation.

    Attributes:
        secret_id: Public key identifier (``q-ak`` / ``Credential``)
        secret_key: Secret used for signing
        session_token: Optional token issued with temporary credentials
    """
    secret_id: str
    secret_key: str = field(repr=False)
    session_token: Optional[str] = field(default=None, repr=False)

    def __post_init__(self):
        """Reject empty credentials before any signing happens"""
        if not isinstance(self.secret_id, str) or not self.secret_id.strip():
            raise ConfigurationError(
                "Secret ID cannot be empty",
                SigningErrorCodes.MISSING_SECRET_ID
            )

        if not isinstance(self.secret_key, str) or not self.secret_key:
            raise ConfigurationError(
                "Secret key cannot be empty",
                SigningErrorCodes.MISSING_SECRET_KEY,
                {"secret_id": self.secret_id}
            )

        if self.session_token is not None and not isinstance(self.session_token, str):
            raise ConfigurationError(
                "Session token must be a string",
                SigningErrorCodes.INVALID_CONFIG,
                {"secret_id": self.secret_id}
            )

    @property
    def has_session_token(self) -> bool:
        return bool(self.session_token)


@dataclass
class SignableRequest:
    """
    Request to be signed

    Attributes:
        method: HTTP method (GET, PUT, etc.)
        url: Complete request URL
        headers: Request headers as key-value pairs
        body: Optional request body (string or bytes)
        params: Extra query parameters merged with those in the URL
    """
    method: HttpMethod
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Union[str, bytes]] = None
    params: Optional[Dict[str, object]] = None

    def __post_init__(self):
        """Validate request after initialization"""
        if not self.url:
            raise ValidationError("Request URL cannot be empty", SigningErrorCodes.INVALID_URL)

        if not isinstance(self.headers, dict):
            raise ValidationError("Headers must be a dictionary", SigningErrorCodes.INVALID_HEADERS)

        if not isinstance(self.method, HttpMethod):
            try:
                self.method = HttpMethod(str(self.method).upper())
            except ValueError:
                raise ValidationError(
                    f"Unsupported HTTP method: {self.method}",
                    SigningErrorCodes.INVALID_METHOD,
                    {"method": str(self.method)}
                )

        # Header names are case-insensitive
        self.headers = {k.lower(): v for k, v in self.headers.items()}

        if self.params is None:
            self.params = {}


@dataclass(frozen=True)
class TimeWindow:
    """
    Validity window of a data-plane signature, in Unix seconds.

    Encoded as ``"start;end"`` (the KeyTime).
    """
    start: int
    end: int

    def __post_init__(self):
        if not isinstance(self.start, int) or not isinstance(self.end, int):
            raise ValidationError(
                "Time window bounds must be integer Unix timestamps",
                SigningErrorCodes.INVALID_TIME_WINDOW,
                {"start": self.start, "end": self.end}
            )

        if self.start < 0 or self.start > self.end:
            raise ValidationError(
                f"Invalid time window: {self.start};{self.end}",
                SigningErrorCodes.INVALID_TIME_WINDOW,
                {"start": self.start, "end": self.end}
            )

    @classmethod
    def starting_at(cls, now: int, duration: int, leeway: int = 0) -> 'TimeWindow':
        """
        Build a window covering ``[now - leeway, now + duration]``.

        Args:
            now: Current Unix timestamp
            duration: Seconds the signature stays valid after ``now``
            leeway: Seconds the start is back-dated to absorb clock skew

        Returns:
            TimeWindow: The window
        """
        return cls(start=max(0, now - leeway), end=now + duration)

    @classmethod
    def parse(cls, key_time: str) -> 'TimeWindow':
        """Parse a ``"start;end"`` string"""
        try:
            start, end = key_time.split(";")
            return cls(start=int(start), end=int(end))
        except (AttributeError, ValueError):
            raise ValidationError(
                f"Malformed key time: {key_time!r}",
                SigningErrorCodes.INVALID_TIME_WINDOW,
                {"key_time": key_time}
            )

    @property
    def key_time(self) -> str:
        return f"{self.start};{self.end}"

    def contains(self, timestamp: int) -> bool:
        return self.start <= timestamp <= self.end

    def __str__(self) -> str:
        return self.key_time


@dataclass(frozen=True)
class CredentialScope:
    """
    Scope of a control-plane signing key: one UTC day and one service.

    Attributes:
        date: UTC calendar date, ``YYYY-MM-DD``
        service: Service identifier (e.g. ``sts``)
    """
    date: str
    service: str
    terminator: str = TC3_TERMINATOR

    @classmethod
    def from_timestamp(cls, timestamp: int, service: str) -> 'CredentialScope':
        """Derive the scope from the exact timestamp sent with the request"""
        from .utils import format_utc_date
        return cls(date=format_utc_date(timestamp), service=service)

    @property
    def value(self) -> str:
        return f"{self.date}/{self.service}/{self.terminator}"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SigningContext:
    """
    Per-request signing input, already normalized.

    Attributes:
        method: HTTP method
        path: Request path
        query: Query parameters as sorted (key, value) pairs
        headers: Signed headers as sorted (lower-cased name, value) pairs
        payload_hash: Hex SHA-256 of the body, or empty for schemes that do not hash it
    """
    method: str
    path: str
    query: Tuple[Tuple[str, str], ...]
    headers: Tuple[Tuple[str, str], ...]
    payload_hash: str = ""

    @property
    def header_names(self) -> List[str]:
        return [name for name, _ in self.headers]

    @property
    def param_names(self) -> List[str]:
        return [name for name, _ in self.query]


@dataclass(frozen=True)
class SigningMaterial:
    """
    Output of a signature engine, before it is attached to a request.

    Attributes:
        scheme: Scheme that produced the signature
        signature: Lowercase hex signature
        authorization: Complete authorization value
        canonical_request: Canonical string that was hashed
        string_to_sign: String that was signed
        signed_headers: Header names declared to the server, in order
        signed_params: Query parameter names declared to the server, in order
        fields: Scheme A ``q-*`` fields, in wire order
        timestamp: Scheme B request timestamp
    """
    scheme: SignatureScheme
    signature: str
    authorization: str
    canonical_request: str
    string_to_sign: str
    signed_headers: List[str]
    signed_params: List[str] = field(default_factory=list)
    fields: Dict[str, str] = field(default_factory=dict)
    timestamp: Optional[int] = None


@dataclass
class SignedRequest:
    """
    Generated signature output, ready for the transport

    Attributes:
        scheme: Scheme used
        headers: Headers to add to the request
        query_params: Query parameters to add to the request (presign mode)
        authorization: Authorization value
        canonical_request: Canonical string that was hashed
        string_to_sign: String that was signed
        signed_headers: Declared header names
        signed_params: Declared query parameter names
    """
    scheme: SignatureScheme
    headers: Dict[str, str]
    query_params: Dict[str, str]
    authorization: str
    canonical_request: str
    string_to_sign: str
    signed_headers: List[str]
    signed_params: List[str]


@dataclass
class SigningConfig:
    """
    Configuration for request signing

    Attributes:
        window_seconds: Lifetime of a data-plane signature after signing time
        window_leeway_seconds: Seconds the data-plane window start is back-dated
        signed_headers: Header names to sign; None selects the scheme default
        service: Control-plane service identifier
        log_canonical_requests: Log canonical strings at debug level
        timestamp_generator: Optional custom timestamp generator function
    """
    window_seconds: int = 3600
    window_leeway_seconds: int = 300
    signed_headers: Optional[List[str]] = None
    service: str = "sts"
    log_canonical_requests: bool = False
    timestamp_generator: Optional[Callable[[], int]] = None

    def __post_init__(self):
        """Normalize header names to lowercase"""
        if self.signed_headers is not None:
            self.signed_headers = [h.strip().lower() for h in self.signed_headers]


# Type aliases for convenience
TimestampGenerator = Callable[[], int]
RequestBody = Optional[Union[str, bytes]]
