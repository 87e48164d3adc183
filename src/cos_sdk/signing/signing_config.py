"""
Configuration management for request signing

This module provides signing profiles, a fluent configuration builder and
validation for both signature schemes.
"""

from typing import Dict, List, Optional
from dataclasses import dataclass

from ..exceptions import ConfigurationError
from .types import (
    SigningConfig,
    SigningErrorCodes,
    TimestampGenerator,
)
from .canonical_request import SIGN_ALL_HEADERS

# Signatures older than a week are refused by the data plane regardless
MAX_WINDOW_SECONDS = 7 * 24 * 3600


@dataclass
class SigningProfile:
    """
    Signing profile for different use cases

    Attributes:
        name: Profile name
        description: Profile description
        window_seconds: Data-plane signature lifetime
        window_leeway_seconds: Back-dating of the window start
        signed_headers: Header selection, None for the scheme default
    """
    name: str
    description: str
    window_seconds: int
    window_leeway_seconds: int
    signed_headers: Optional[List[str]]


# Predefined signing profiles
SIGNING_PROFILES: Dict[str, SigningProfile] = {
    'strict': SigningProfile(
        name='Strict',
        description='Short-lived signatures covering every header present',
        window_seconds=600,
        window_leeway_seconds=0,
        signed_headers=[SIGN_ALL_HEADERS]
    ),

    'standard': SigningProfile(
        name='Standard',
        description='Default window and the scheme default header set',
        window_seconds=3600,
        window_leeway_seconds=300,
        signed_headers=None
    ),

    'minimal': SigningProfile(
        name='Minimal',
        description='Host-only signatures for simple downloads',
        window_seconds=3600,
        window_leeway_seconds=300,
        signed_headers=['host']
    )
}


class SigningConfigBuilder:
    """
    Builder for creating signing configurations with fluent API
    """

    def __init__(self):
        defaults = SigningConfig()
        self._window_seconds: int = defaults.window_seconds
        self._window_leeway_seconds: int = defaults.window_leeway_seconds
        self._signed_headers: Optional[List[str]] = None
        self._service: str = defaults.service
        self._log_canonical_requests: bool = False
        self._timestamp_generator: Optional[TimestampGenerator] = None

    def window(self, seconds: int) -> 'SigningConfigBuilder':
        """
        Set data-plane signature lifetime.

        Args:
            seconds: Seconds the signature stays valid after signing

        Returns:
            SigningConfigBuilder: Self for method chaining
        """
        self._window_seconds = seconds
        return self

    def leeway(self, seconds: int) -> 'SigningConfigBuilder':
        """
        Set how far the window start is back-dated.

        Args:
            seconds: Clock skew tolerance in seconds

        Returns:
            SigningConfigBuilder: Self for method chaining
        """
        self._window_leeway_seconds = seconds
        return self

    def headers(self, headers: List[str]) -> 'SigningConfigBuilder':
        """
        Set headers to include in signature.

        Args:
            headers: List of header names to include

        Returns:
            SigningConfigBuilder: Self for method chaining
        """
        self._signed_headers = [h.lower() for h in headers]
        return self

    def add_header(self, header: str) -> 'SigningConfigBuilder':
        """
        Add header to the explicit header selection.

        Args:
            header: Header name to add

        Returns:
            SigningConfigBuilder: Self for method chaining
        """
        if self._signed_headers is None:
            self._signed_headers = []

        header_lower = header.lower()
        if header_lower not in self._signed_headers:
            self._signed_headers.append(header_lower)

        return self

    def default_headers(self) -> 'SigningConfigBuilder':
        """Go back to the scheme default header selection"""
        self._signed_headers = None
        return self

    def service(self, service: str) -> 'SigningConfigBuilder':
        """
        Set control-plane service identifier.

        Args:
            service: Service name used in the credential scope

        Returns:
            SigningConfigBuilder: Self for method chaining
        """
        self._service = service
        return self

    def log_canonical_requests(self, enabled: bool = True) -> 'SigningConfigBuilder':
        self._log_canonical_requests = enabled
        return self

    def timestamp_generator(self, generator: TimestampGenerator) -> 'SigningConfigBuilder':
        """
        Set custom timestamp generator.

        Args:
            generator: Function that returns Unix timestamps

        Returns:
            SigningConfigBuilder: Self for method chaining
        """
        self._timestamp_generator = generator
        return self

    def profile(self, profile_name: str) -> 'SigningConfigBuilder':
        """
        Apply signing profile.

        Args:
            profile_name: Name of signing profile ('strict', 'standard', 'minimal')

        Returns:
            SigningConfigBuilder: Self for method chaining

        Raises:
            ConfigurationError: If profile name is invalid
        """
        if profile_name not in SIGNING_PROFILES:
            raise ConfigurationError(
                f"Unknown signing profile: {profile_name}",
                SigningErrorCodes.INVALID_CONFIG,
                {"available_profiles": list(SIGNING_PROFILES.keys())}
            )

        profile = SIGNING_PROFILES[profile_name]
        self._window_seconds = profile.window_seconds
        self._window_leeway_seconds = profile.window_leeway_seconds
        self._signed_headers = profile.signed_headers.copy() if profile.signed_headers is not None else None

        return self

    def build(self) -> SigningConfig:
        """
        Build the signing configuration.

        Returns:
            SigningConfig: Complete signing configuration

        Raises:
            ConfigurationError: If configuration is invalid
        """
        config = SigningConfig(
            window_seconds=self._window_seconds,
            window_leeway_seconds=self._window_leeway_seconds,
            signed_headers=self._signed_headers.copy() if self._signed_headers is not None else None,
            service=self._service,
            log_canonical_requests=self._log_canonical_requests,
            timestamp_generator=self._timestamp_generator
        )
        validate_signing_config(config)
        return config


def create_signing_config() -> SigningConfigBuilder:
    """
    Create a new signing configuration builder.

    Returns:
        SigningConfigBuilder: New configuration builder
    """
    return SigningConfigBuilder()


def create_from_profile(profile_name: str, service: Optional[str] = None) -> SigningConfig:
    """
    Create signing configuration from signing profile.

    Args:
        profile_name: Signing profile name
        service: Optional control-plane service override

    Returns:
        SigningConfig: Complete signing configuration

    Raises:
        ConfigurationError: If profile or parameters are invalid
    """
    builder = create_signing_config().profile(profile_name)
    if service is not None:
        builder.service(service)
    return builder.build()


def validate_signing_config(config: SigningConfig) -> None:
    """
    Validate signing configuration.

    Args:
        config: Signing configuration to validate

    Raises:
        ConfigurationError: If configuration is invalid
    """
    if not isinstance(config, SigningConfig):
        raise ConfigurationError(
            "Configuration must be SigningConfig instance",
            SigningErrorCodes.INVALID_CONFIG
        )

    window = config.window_seconds
    if isinstance(window, bool) or not isinstance(window, int) or not 0 < window <= MAX_WINDOW_SECONDS:
        raise ConfigurationError(
            f"Signature window must be between 1 and {MAX_WINDOW_SECONDS} seconds",
            SigningErrorCodes.INVALID_TIME_WINDOW,
            {"window_seconds": window}
        )

    leeway = config.window_leeway_seconds
    if isinstance(leeway, bool) or not isinstance(leeway, int) or leeway < 0:
        raise ConfigurationError(
            "Window leeway must be a non-negative number of seconds",
            SigningErrorCodes.INVALID_TIME_WINDOW,
            {"window_leeway_seconds": leeway}
        )

    if not isinstance(config.service, str) or not config.service.strip():
        raise ConfigurationError(
            "Service identifier cannot be empty",
            SigningErrorCodes.INVALID_SERVICE
        )

    if config.signed_headers is not None:
        if not isinstance(config.signed_headers, list):
            raise ConfigurationError(
                "Signed headers must be a list of header names",
                SigningErrorCodes.INVALID_CONFIG
            )
        for header in config.signed_headers:
            if not header:
                raise ConfigurationError(
                    "Signed header names cannot be empty",
                    SigningErrorCodes.INVALID_HEADER_NAME,
                    {"signed_headers": config.signed_headers}
                )

    if config.timestamp_generator is not None and not callable(config.timestamp_generator):
        raise ConfigurationError(
            "Timestamp generator must be callable",
            SigningErrorCodes.INVALID_CONFIG
        )


def get_signing_profile(profile_name: str) -> Optional[SigningProfile]:
    """
    Get signing profile by name.

    Args:
        profile_name: Name of the profile

    Returns:
        SigningProfile or None if not found
    """
    return SIGNING_PROFILES.get(profile_name)


def list_signing_profiles() -> List[str]:
    """
    List available signing profiles.

    Returns:
        List of profile names
    """
    return list(SIGNING_PROFILES.keys())
