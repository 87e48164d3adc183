"""
Configuration management for COS Python SDK

Bucket, region, credential, signing and logging settings loaded from
dictionaries, JSON, files or environment variables.
"""

from .cos_config import (
    CosConfig,
    LoggingConfig,
    configure_logging,
    load_config,
    DEFAULT_STS_ENDPOINT,
)

__all__ = [
    'CosConfig',
    'LoggingConfig',
    'configure_logging',
    'load_config',
    'DEFAULT_STS_ENDPOINT',
]
