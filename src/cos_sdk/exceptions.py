"""
Exception classes for COS Python SDK
"""

from typing import Optional, Dict, Any, List


class CosSDKError(Exception):
    """Base exception for all COS SDK errors"""

    def __init__(self, message: str, error_code: str = "UNKNOWN_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (code: {self.error_code}, details: {self.details})"
        return f"{self.message} (code: {self.error_code})"


class ConfigurationError(CosSDKError):
    """Exception raised for missing or malformed credentials and configuration"""

    def __init__(self, message: str, error_code: str = "INVALID_CONFIG", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code, details)


class EncodingError(CosSDKError):
    """Exception raised when a header or query value cannot be canonicalized"""

    def __init__(self, message: str, error_code: str = "ENCODING_FAILED", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code, details)


class ValidationError(CosSDKError):
    """Exception raised for validation failures"""
    pass


class AuthenticationError(CosSDKError):
    """
    Exception raised when the remote service rejects a computed signature.

    Carries the scheme and the declared header/parameter lists so the request
    can be compared against the server's view. A skewed clock and a bad
    derivation look the same from here.
    """

    def __init__(
        self,
        message: str,
        scheme: str,
        signed_headers: Optional[List[str]] = None,
        signed_params: Optional[List[str]] = None,
        error_code: str = "AUTHENTICATION_FAILED",
        http_status: int = 0,
        details: Optional[Dict[str, Any]] = None
    ):
        merged = {
            "scheme": scheme,
            "signed_headers": list(signed_headers or []),
            "signed_params": list(signed_params or []),
        }
        merged.update(details or {})
        super().__init__(message, error_code, merged)
        self.scheme = scheme
        self.signed_headers = merged["signed_headers"]
        self.signed_params = merged["signed_params"]
        self.http_status = http_status


class ServerCommunicationError(CosSDKError):
    """Exception raised for server communication errors"""

    def __init__(self, message: str, error_code: str = "SERVER_ERROR",
                 http_status: int = 0, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code, details)
        self.http_status = http_status
