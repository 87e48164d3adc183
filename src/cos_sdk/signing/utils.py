"""
Utility functions for request signing

This module provides utility functions shared by both signature schemes,
including timestamp handling, RFC 3986 percent-encoding, header validation,
digest and HMAC helpers, and URL parsing.
"""

import time
import hashlib
import re
from datetime import datetime, timezone
from typing import Dict, List, Tuple
from urllib.parse import urlsplit, parse_qsl, quote

from cryptography.hazmat.primitives import hashes, hmac

from ..exceptions import EncodingError, ValidationError
from .types import (
    SigningErrorCodes,
    RequestBody,
    UTC_DATE_FORMAT,
)

# RFC 7230 token characters
HEADER_NAME_PATTERN = re.compile(r'^[!#$%&\'*+\-.0-9A-Z^_`a-z|~]+$')
FORBIDDEN_VALUE_CHARS = re.compile(r'[\r\n\x00]')

_HMAC_ALGORITHMS = {
    'sha1': hashes.SHA1,
    'sha256': hashes.SHA256,
}


def generate_timestamp() -> int:
    """
    Generate current Unix timestamp.

    Returns:
        int: Current Unix timestamp (seconds since epoch)
    """
    return int(time.time())


def validate_timestamp(timestamp: int) -> bool:
    """
    Validate timestamp (should be reasonable Unix timestamp).

    Args:
        timestamp: Unix timestamp to validate

    Returns:
        bool: True if timestamp is valid
    """
    if not isinstance(timestamp, int) or isinstance(timestamp, bool):
        return False

    # Check if it's a valid Unix timestamp (after 2000 and before 2100)
    year_2000 = 946684800  # 2000-01-01 00:00:00 UTC
    year_2100 = 4102444800  # 2100-01-01 00:00:00 UTC

    return year_2000 <= timestamp <= year_2100


def format_utc_date(timestamp: int) -> str:
    """
    Format a Unix timestamp as a UTC calendar date (``YYYY-MM-DD``).

    Never uses local time.
    """
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime(UTC_DATE_FORMAT)


def percent_encode(value: str) -> str:
    """
    Percent-encode a string per RFC 3986.

    Only unreserved characters (``A-Z a-z 0-9 - _ . ~``) are left as is;
    everything else is encoded as ``%XX`` (uppercase) over its UTF-8 bytes.

    Args:
        value: String to encode

    Returns:
        str: Encoded string

    Raises:
        EncodingError: If the string cannot be represented as UTF-8
    """
    try:
        raw = value.encode('utf-8')
    except UnicodeEncodeError as e:
        raise EncodingError(
            f"Value is not representable as UTF-8: {e.reason}",
            SigningErrorCodes.INVALID_QUERY_VALUE,
            {"position": e.start}
        )
    return quote(raw, safe='-_.~')


def stringify_value(value: object, code: str = SigningErrorCodes.INVALID_QUERY_VALUE) -> str:
    """
    Convert a header or query value to the string that gets signed.

    ``None`` becomes the empty string, booleans ``true``/``false``, numbers
    their decimal form, bytes are decoded as UTF-8.

    Raises:
        EncodingError: For unsupported types or undecodable bytes
    """
    if value is None:
        return ""

    if isinstance(value, bool):
        return "true" if value else "false"

    if isinstance(value, str):
        return value

    if isinstance(value, int):
        return str(value)

    if isinstance(value, bytes):
        try:
            return value.decode('utf-8')
        except UnicodeDecodeError as e:
            raise EncodingError(
                f"Bytes value is not valid UTF-8: {e.reason}",
                code,
                {"position": e.start}
            )

    raise EncodingError(
        f"Unsupported value type for signing: {type(value).__name__}",
        code,
        {"value_type": type(value).__name__}
    )


def normalize_header_name(name: str) -> str:
    """
    Normalize header name to lowercase for consistent processing.

    Args:
        name: Header name to normalize

    Returns:
        str: Lowercase header name
    """
    return name.lower().strip()


def validate_header_name(name: str) -> bool:
    """
    Validate header name for inclusion in signature.

    Args:
        name: Header name to validate

    Returns:
        bool: True if header name is valid
    """
    if not isinstance(name, str):
        return False

    return bool(HEADER_NAME_PATTERN.match(name))


def normalize_header_value(name: str, value: object) -> str:
    """
    Stringify a header value and trim surrounding whitespace.

    Raises:
        EncodingError: If the value contains CR, LF or NUL, or cannot be represented
    """
    text = stringify_value(value, SigningErrorCodes.INVALID_HEADER_VALUE)

    if FORBIDDEN_VALUE_CHARS.search(text):
        raise EncodingError(
            f"Header value for '{name}' contains control characters",
            SigningErrorCodes.INVALID_HEADER_VALUE,
            {"header": name}
        )

    try:
        text.encode('utf-8')
    except UnicodeEncodeError as e:
        raise EncodingError(
            f"Header value for '{name}' is not representable as UTF-8",
            SigningErrorCodes.INVALID_HEADER_VALUE,
            {"header": name, "position": e.start}
        )

    return text.strip()


def body_to_bytes(body: RequestBody) -> bytes:
    """
    Convert request body to bytes for hashing.

    Raises:
        EncodingError: If the body is neither str, bytes nor None
    """
    if body is None:
        return b""

    if isinstance(body, bytes):
        return body

    if isinstance(body, str):
        try:
            return body.encode('utf-8')
        except UnicodeEncodeError as e:
            raise EncodingError(
                "Request body is not representable as UTF-8",
                SigningErrorCodes.INVALID_BODY,
                {"position": e.start}
            )

    raise EncodingError(
        f"Body must be string, bytes, or None, got {type(body).__name__}",
        SigningErrorCodes.INVALID_BODY,
        {"body_type": type(body).__name__}
    )


def sha1_hex(data: str) -> str:
    """Lowercase hex SHA-1 of a UTF-8 string"""
    return hashlib.sha1(data.encode('utf-8')).hexdigest()


def sha256_hex(data: bytes) -> str:
    """Lowercase hex SHA-256 of raw bytes"""
    return hashlib.sha256(data).hexdigest()


def hmac_digest(key: bytes, message: str, algorithm: str) -> bytes:
    """
    Compute an HMAC over a UTF-8 message.

    Args:
        key: HMAC key bytes
        message: Message to authenticate
        algorithm: ``'sha1'`` or ``'sha256'``

    Returns:
        bytes: Raw MAC
    """
    mac = hmac.HMAC(key, _HMAC_ALGORITHMS[algorithm]())
    mac.update(message.encode('utf-8'))
    return mac.finalize()


def to_hex(data: bytes) -> str:
    """
    Convert bytes to lowercase hex string.

    Args:
        data: Bytes to convert

    Returns:
        str: Lowercase hex string
    """
    return data.hex().lower()


def parse_url(url: str) -> Dict[str, object]:
    """
    Parse URL to extract components needed for signing.

    Args:
        url: URL string to parse

    Returns:
        dict: Dictionary with parsed URL components:
            - scheme: URL scheme
            - host: netloc (host[:port])
            - path: path component (``/`` when empty)
            - query: list of (key, value) pairs, blank values kept

    Raises:
        ValidationError: If URL format is invalid
    """
    parsed = urlsplit(url)

    if not parsed.scheme or not parsed.netloc:
        raise ValidationError(
            f"Invalid URL format: {url}",
            SigningErrorCodes.INVALID_URL,
            {"url": url}
        )

    # Only allow HTTP/HTTPS schemes for signing
    if parsed.scheme not in ('http', 'https'):
        raise ValidationError(
            f"Unsupported URL scheme: {parsed.scheme}",
            SigningErrorCodes.INVALID_URL,
            {"url": url, "scheme": parsed.scheme}
        )

    query: List[Tuple[str, str]] = parse_qsl(parsed.query, keep_blank_values=True)

    return {
        "scheme": parsed.scheme,
        "host": parsed.netloc,
        "path": parsed.path or "/",
        "query": query,
    }


class PerformanceTimer:
    """Simple performance timer for monitoring signing operations."""

    def __init__(self):
        self.start_time = time.perf_counter()

    def elapsed_ms(self) -> float:
        """Get elapsed time in milliseconds."""
        return (time.perf_counter() - self.start_time) * 1000
