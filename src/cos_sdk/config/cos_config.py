"""
Client configuration for the COS Python SDK

Loads bucket, region, credential and signing settings from dictionaries,
JSON documents, files or the environment.
"""

import json
import logging
import os
from typing import Any, Dict, Mapping, Optional, Union
from dataclasses import dataclass, field
from pathlib import Path

from ..exceptions import ConfigurationError
from ..signing.types import CredentialMaterial, SigningConfig
from ..signing.signing_config import create_signing_config, validate_signing_config

DEFAULT_STS_ENDPOINT = "sts.tencentcloudapi.com"

ENV_SECRET_ID = "COS_SECRET_ID"
ENV_SECRET_KEY = "COS_SECRET_KEY"
ENV_REGION = "COS_REGION"
ENV_BUCKET = "COS_BUCKET"
ENV_SESSION_TOKEN = "COS_SESSION_TOKEN"
ENV_DOMAIN = "COS_DOMAIN"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "WARNING"

    def __post_init__(self):
        if not isinstance(self.level, str) or logging.getLevelName(self.level.upper()) == f"Level {self.level.upper()}":
            raise ConfigurationError(
                f"Unknown log level: {self.level}",
                "INVALID_CONFIG",
                {"level": self.level}
            )
        self.level = self.level.upper()


def configure_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Configure the SDK's package logger.

    Only the ``cos_sdk`` logger is touched; the root logger and its handlers
    are left to the application.

    Args:
        config: Logging configuration, defaults when omitted

    Returns:
        logging.Logger: The package logger
    """
    config = config or LoggingConfig()
    logger = logging.getLogger("cos_sdk")
    logger.setLevel(config.level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger


@dataclass
class CosConfig:
    """
    Configuration for a bucket client

    Attributes:
        secret_id: Secret ID
        secret_key: Secret key, never shown in repr
        region: Region, e.g. ``ap-guangzhou``
        bucket: Bucket name in ``name-appid`` form
        session_token: Token issued with temporary credentials
        timeout: Request timeout in seconds
        use_https: Use HTTPS endpoints
        domain: Custom bucket domain replacing the default host
        retry_attempts: Transport retries for idempotent requests
        retry_backoff_factor: Backoff factor between retries
        sts_endpoint: Control-plane host for temporary credentials
        signing: Signing configuration
        logging: Logging configuration
    """
    secret_id: str
    secret_key: str = field(repr=False)
    region: str
    bucket: str
    session_token: Optional[str] = field(default=None, repr=False)
    timeout: int = 30
    use_https: bool = True
    domain: Optional[str] = None
    retry_attempts: int = 3
    retry_backoff_factor: float = 0.3
    sts_endpoint: str = DEFAULT_STS_ENDPOINT
    signing: SigningConfig = field(default_factory=SigningConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        """
        Validate the configuration.

        Raises:
            ConfigurationError: If a required field is empty or a value is out of range
        """
        for name in ('secret_id', 'secret_key', 'region', 'bucket'):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(
                    f"Configuration field '{name}' cannot be empty",
                    "MISSING_" + name.upper(),
                    {"field": name}
                )

        if not isinstance(self.timeout, (int, float)) or self.timeout <= 0:
            raise ConfigurationError(
                "Timeout must be a positive number of seconds",
                "INVALID_CONFIG",
                {"timeout": self.timeout}
            )

        if not isinstance(self.retry_attempts, int) or self.retry_attempts < 0:
            raise ConfigurationError(
                "Retry attempts must be a non-negative integer",
                "INVALID_CONFIG",
                {"retry_attempts": self.retry_attempts}
            )

        validate_signing_config(self.signing)

    @property
    def scheme(self) -> str:
        return "https" if self.use_https else "http"

    @property
    def app_id(self) -> Optional[str]:
        """Numeric suffix of a ``name-appid`` bucket name"""
        _, _, suffix = self.bucket.rpartition("-")
        return suffix if suffix.isdigit() else None

    def bucket_host(self) -> str:
        if self.domain:
            return self.domain
        return f"{self.bucket}.cos.{self.region}.myqcloud.com"

    def bucket_url(self) -> str:
        """Base URL of the bucket"""
        return f"{self.scheme}://{self.bucket_host()}"

    def service_url(self) -> str:
        """Base URL of the regional service endpoint (bucket listing)"""
        return f"{self.scheme}://cos.{self.region}.myqcloud.com"

    def sts_url(self) -> str:
        return f"https://{self.sts_endpoint}"

    def credentials(self) -> CredentialMaterial:
        """
        Build the credential material used for signing.

        Raises:
            ConfigurationError: If the secret ID or key is empty
        """
        return CredentialMaterial(
            secret_id=self.secret_id,
            secret_key=self.secret_key,
            session_token=self.session_token or None
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'CosConfig':
        """
        Build configuration from a dictionary.

        The optional ``signing`` section accepts a ``profile`` name plus any
        of ``window_seconds``, ``window_leeway_seconds``, ``signed_headers``,
        ``service`` and ``log_canonical_requests``.

        Raises:
            ConfigurationError: If required fields are missing or invalid
        """
        try:
            config = cls(
                secret_id=data['secret_id'],
                secret_key=data['secret_key'],
                region=data['region'],
                bucket=data['bucket'],
                session_token=data.get('session_token'),
                timeout=data.get('timeout', 30),
                use_https=data.get('use_https', True),
                domain=data.get('domain'),
                retry_attempts=data.get('retry_attempts', 3),
                retry_backoff_factor=data.get('retry_backoff_factor', 0.3),
                sts_endpoint=data.get('sts_endpoint', DEFAULT_STS_ENDPOINT),
                signing=_parse_signing_section(data.get('signing') or {}),
                logging=LoggingConfig(**(data.get('logging') or {}))
            )
        except KeyError as e:
            raise ConfigurationError(
                f"Missing required configuration field: {e.args[0]}",
                "INVALID_FORMAT",
                {"field": e.args[0]}
            )
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration format: {e}", "INVALID_FORMAT")

        config.validate()
        return config

    @classmethod
    def from_json(cls, json_string: str) -> 'CosConfig':
        """Load configuration from JSON string"""
        try:
            data = json.loads(json_string)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Failed to parse configuration JSON: {e}", "PARSE_ERROR")

        if not isinstance(data, dict):
            raise ConfigurationError("Configuration JSON must be an object", "INVALID_FORMAT")

        return cls.from_dict(data)

    @classmethod
    def from_file(cls, file_path: Union[str, Path]) -> 'CosConfig':
        """Load configuration from file"""
        try:
            path = Path(file_path)
            with open(path, 'r', encoding='utf-8') as f:
                json_string = f.read()
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file: {e}", "FILE_ERROR")
        return cls.from_json(json_string)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> 'CosConfig':
        """
        Load configuration from environment variables.

        Reads ``COS_SECRET_ID``, ``COS_SECRET_KEY``, ``COS_REGION``,
        ``COS_BUCKET`` and, when set, ``COS_SESSION_TOKEN`` and ``COS_DOMAIN``.
        Keyword overrides take precedence over the environment.
        """
        environ = os.environ if environ is None else environ
        data: Dict[str, Any] = {
            'secret_id': environ.get(ENV_SECRET_ID, ""),
            'secret_key': environ.get(ENV_SECRET_KEY, ""),
            'region': environ.get(ENV_REGION, ""),
            'bucket': environ.get(ENV_BUCKET, ""),
        }
        if environ.get(ENV_SESSION_TOKEN):
            data['session_token'] = environ[ENV_SESSION_TOKEN]
        if environ.get(ENV_DOMAIN):
            data['domain'] = environ[ENV_DOMAIN]
        data.update({key: value for key, value in overrides.items() if value is not None})
        return cls.from_dict(data)


def _parse_signing_section(section: Mapping[str, Any]) -> SigningConfig:
    builder = create_signing_config()

    if 'profile' in section:
        builder.profile(section['profile'])
    if 'window_seconds' in section:
        builder.window(section['window_seconds'])
    if 'window_leeway_seconds' in section:
        builder.leeway(section['window_leeway_seconds'])
    if section.get('signed_headers') is not None:
        builder.headers(section['signed_headers'])
    if 'service' in section:
        builder.service(section['service'])
    if 'log_canonical_requests' in section:
        builder.log_canonical_requests(bool(section['log_canonical_requests']))

    return builder.build()


def load_config(
    config_file: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None
) -> CosConfig:
    """
    Load configuration from a file when given, otherwise from the environment.
    """
    if config_file is not None:
        return CosConfig.from_file(config_file)
    return CosConfig.from_env(environ)
