"""
Temporary credentials from the token service

Calls ``GetFederationToken`` on the control plane, signed with
TC3-HMAC-SHA256, and returns credentials scoped by a policy. The returned
credentials sign data-plane requests like long-term ones, with the session
token attached as ``x-cos-security-token``.
"""

import json
import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote
from dataclasses import dataclass, field, replace

import requests

from .config import CosConfig, DEFAULT_STS_ENDPOINT
from .exceptions import AuthenticationError, ServerCommunicationError, ValidationError
from .signing.integration import SigningSession
from .signing.types import CredentialMaterial, EndpointClass, SignatureScheme, SigningConfig

logger = logging.getLogger(__name__)

STS_SERVICE = "sts"
STS_VERSION = "2018-08-13"
STS_ACTION = "GetFederationToken"
POLICY_VERSION = "2.0"

DEFAULT_DURATION_SECONDS = 1800
MAX_DURATION_SECONDS = 7200
DEFAULT_SESSION_NAME = "temp-user"

UPLOAD_ACTIONS = [
    "name/cos:PutObject",
    "name/cos:PostObject",
    "name/cos:InitiateMultipartUpload",
    "name/cos:ListMultipartUploads",
    "name/cos:ListParts",
    "name/cos:UploadPart",
    "name/cos:CompleteMultipartUpload",
]
DOWNLOAD_ACTIONS = [
    "name/cos:GetObject",
    "name/cos:HeadObject",
]
DELETE_ACTIONS = [
    "name/cos:DeleteObject",
]


@dataclass
class TemporaryCredentials:
    """
    Temporary credentials issued by the token service

    Attributes:
        tmp_secret_id: Temporary secret ID
        tmp_secret_key: Temporary secret key
        token: Session token, sent along with every signed request
        expired_time: Unix time the credentials expire
        expiration: Expiry as reported by the service (ISO 8601)
    """
    tmp_secret_id: str
    tmp_secret_key: str = field(repr=False)
    token: str = field(repr=False)
    expired_time: Optional[int] = None
    expiration: Optional[str] = None

    def to_credentials(self) -> CredentialMaterial:
        """Credential material for signing with these credentials"""
        return CredentialMaterial(
            secret_id=self.tmp_secret_id,
            secret_key=self.tmp_secret_key,
            session_token=self.token
        )

    def is_expired(self, now: Optional[int] = None) -> bool:
        if self.expired_time is None:
            return False
        now = int(time.time()) if now is None else now
        return now >= self.expired_time


@dataclass
class Statement:
    """Policy statement"""
    effect: str
    action: List[str]
    resource: List[str]
    condition: Optional[Dict[str, Dict[str, Any]]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'effect': self.effect,
            'action': list(self.action),
            'resource': list(self.resource),
        }
        if self.condition is not None:
            data['condition'] = self.condition
        return data


def _bucket_resource(bucket: str, prefix: Optional[str] = None) -> str:
    """
    Resource string covering a key prefix in a bucket.

    The app ID is the numeric suffix of a ``name-appid`` bucket name and
    ``*`` when the bucket name carries none.
    """
    name, _, suffix = bucket.rpartition("-")
    if name and suffix.isdigit():
        bucket_name, appid = name, suffix
    else:
        bucket_name, appid = bucket, "*"
    return f"qcs::cos:*:uid/{appid}:prefix//{appid}/{bucket_name}/{prefix or ''}*"


@dataclass
class Policy:
    """Access policy attached to temporary credentials"""
    version: str = POLICY_VERSION
    statement: List[Statement] = field(default_factory=list)

    def add_statement(self, statement: Statement) -> 'Policy':
        self.statement.append(statement)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.version,
            'statement': [s.to_dict() for s in self.statement],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(',', ':'))

    def encoded(self) -> str:
        """URL-encoded JSON, the form the token service expects"""
        return quote(self.to_json(), safe='')

    @classmethod
    def _allow(cls, actions: List[str], bucket: str, prefix: Optional[str]) -> 'Policy':
        return cls().add_statement(Statement(
            effect="allow",
            action=list(actions),
            resource=[_bucket_resource(bucket, prefix)]
        ))

    @classmethod
    def allow_put_object(cls, bucket: str, prefix: Optional[str] = None) -> 'Policy':
        """Upload (simple and multipart) under a prefix"""
        return cls._allow(UPLOAD_ACTIONS, bucket, prefix)

    @classmethod
    def allow_get_object(cls, bucket: str, prefix: Optional[str] = None) -> 'Policy':
        """Download and metadata reads under a prefix"""
        return cls._allow(DOWNLOAD_ACTIONS, bucket, prefix)

    @classmethod
    def allow_delete_object(cls, bucket: str, prefix: Optional[str] = None) -> 'Policy':
        return cls._allow(DELETE_ACTIONS, bucket, prefix)

    @classmethod
    def allow_read_write(cls, bucket: str, prefix: Optional[str] = None) -> 'Policy':
        """Upload, download and delete under a prefix"""
        actions = UPLOAD_ACTIONS[:2] + DOWNLOAD_ACTIONS + DELETE_ACTIONS + UPLOAD_ACTIONS[2:]
        return cls._allow(actions, bucket, prefix)


class StsClient:
    """
    Client for the token service.

    Requests are signed with TC3-HMAC-SHA256 for service ``sts``; the
    timestamp and its UTC date are taken from the same clock reading.
    """

    def __init__(
        self,
        credentials: CredentialMaterial,
        region: str,
        endpoint: str = DEFAULT_STS_ENDPOINT,
        signing_config: Optional[SigningConfig] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 30
    ):
        """
        Initialize the token service client.

        Args:
            credentials: Long-term credentials allowed to issue tokens
            region: Region sent as ``X-TC-Region``
            endpoint: Token service host
            signing_config: Signing configuration; the service is forced to ``sts``
            session: Optional requests session
            timeout: Request timeout in seconds

        Raises:
            ValidationError: If region or endpoint is empty
        """
        if not region:
            raise ValidationError("Region cannot be empty", "INVALID_REGION")
        if not endpoint:
            raise ValidationError("Token service endpoint cannot be empty", "INVALID_ENDPOINT")

        signing_config = replace(signing_config or SigningConfig(), service=STS_SERVICE)

        self.region = region
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = SigningSession(
            credentials,
            signing_config,
            session=session,
            endpoint_class=EndpointClass.CONTROL_PLANE
        )

        logger.info(f"Initialized token service client for region: {region}")

    @classmethod
    def from_config(cls, config: CosConfig) -> 'StsClient':
        """Create a client from bucket configuration"""
        config.validate()
        return cls(
            config.credentials(),
            config.region,
            endpoint=config.sts_endpoint,
            signing_config=config.signing,
            timeout=config.timeout
        )

    def get_federation_token(
        self,
        policy: Policy,
        duration_seconds: int = DEFAULT_DURATION_SECONDS,
        name: str = DEFAULT_SESSION_NAME
    ) -> TemporaryCredentials:
        """
        Request temporary credentials.

        Args:
            policy: Access policy for the credentials
            duration_seconds: Lifetime of the credentials
            name: Session name

        Returns:
            TemporaryCredentials: Issued credentials

        Raises:
            ValidationError: If the duration is out of range
            AuthenticationError: If the service rejects the signature or secret ID
            ServerCommunicationError: On other service or network errors
        """
        if not isinstance(duration_seconds, int) or not 0 < duration_seconds <= MAX_DURATION_SECONDS:
            raise ValidationError(
                f"Duration must be between 1 and {MAX_DURATION_SECONDS} seconds",
                "INVALID_DURATION",
                {"duration_seconds": duration_seconds}
            )

        payload = {
            'Name': name,
            'Policy': policy.encoded(),
            'DurationSeconds': duration_seconds,
        }
        headers = {
            'Content-Type': 'application/json; charset=utf-8',
            'X-TC-Action': STS_ACTION,
            'X-TC-Version': STS_VERSION,
            'X-TC-Region': self.region,
        }

        data = self._make_request(json.dumps(payload), headers)
        return self._parse_credentials(data)

    def _make_request(self, body: str, headers: Dict[str, str]) -> Dict[str, Any]:
        url = f"https://{self.endpoint}/"
        try:
            logger.debug(f"Making POST request to {url} ({headers['X-TC-Action']})")
            response = self.session.post(url, data=body, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise ServerCommunicationError(f"Request timeout after {self.timeout} seconds", "TIMEOUT")
        except requests.exceptions.ConnectionError as e:
            raise ServerCommunicationError(f"Connection error: {e}", "CONNECTION_ERROR")
        except requests.exceptions.RequestException as e:
            raise ServerCommunicationError(f"Request failed: {e}", "REQUEST_FAILED")

        try:
            data = response.json()
        except ValueError:
            raise ServerCommunicationError(
                f"Invalid JSON response (HTTP {response.status_code})",
                "INVALID_RESPONSE",
                http_status=response.status_code
            )

        if not isinstance(data, dict) or not isinstance(data.get('Response'), dict):
            raise ServerCommunicationError(
                "Response is missing the 'Response' object",
                "INVALID_RESPONSE",
                http_status=response.status_code
            )

        self._raise_for_error(data['Response'], response.status_code)

        if not response.ok:
            raise ServerCommunicationError(
                f"Server request failed: HTTP {response.status_code}",
                "HTTP_ERROR",
                http_status=response.status_code
            )

        return data['Response']

    def _raise_for_error(self, body: Dict[str, Any], http_status: int) -> None:
        error = body.get('Error')
        if not error:
            return

        code = error.get('Code', 'UNKNOWN_ERROR')
        message = error.get('Message', '')
        details = {'code': code, 'request_id': body.get('RequestId')}

        if code.startswith('AuthFailure'):
            signed = self.session.last_signed
            logger.error(f"Token service rejected signature ({code})")
            raise AuthenticationError(
                f"Token service rejected request: {code} - {message}",
                scheme=signed.scheme.value if signed else SignatureScheme.TC3_HMAC_SHA256.value,
                signed_headers=signed.signed_headers if signed else None,
                signed_params=signed.signed_params if signed else None,
                error_code=code,
                http_status=http_status,
                details=details
            )

        raise ServerCommunicationError(
            f"Token service error: {code} - {message}",
            code,
            http_status=http_status,
            details=details
        )

    def _parse_credentials(self, body: Dict[str, Any]) -> TemporaryCredentials:
        credentials = body.get('Credentials')
        if not isinstance(credentials, dict):
            raise ServerCommunicationError("No credentials in response", "INVALID_RESPONSE")

        try:
            return TemporaryCredentials(
                tmp_secret_id=credentials['TmpSecretId'],
                tmp_secret_key=credentials['TmpSecretKey'],
                token=credentials['Token'],
                expired_time=body.get('ExpiredTime', credentials.get('ExpiredTime')),
                expiration=body.get('Expiration')
            )
        except KeyError as e:
            raise ServerCommunicationError(
                f"Credentials missing field: {e.args[0]}",
                "INVALID_RESPONSE"
            )

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
