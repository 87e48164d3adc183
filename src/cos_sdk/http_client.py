"""
HTTP client for bucket and object operations

Every request is signed with the data-plane scheme right before it is sent.
Transport retries live here, in the urllib3 retry policy mounted on the
session; the signer itself never retries.
"""

import base64
import hashlib
import logging
import mimetypes
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Union
from urllib.parse import quote, urlencode
from dataclasses import dataclass, field

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import CosConfig
from .exceptions import AuthenticationError, ServerCommunicationError, ValidationError
from .signing.assembler import AuthorizationAssembler
from .signing.types import CredentialMaterial, EndpointClass, SignableRequest, SignedRequest
from .signing.utils import stringify_value
from .version import __version__

logger = logging.getLogger(__name__)

USER_AGENT = f"cos-python-sdk/{__version__}"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
MAX_KEYS_LIMIT = 1000
MAX_DELETE_KEYS = 1000

# Error codes meaning the server did not accept the signature itself
SIGNATURE_ERROR_CODES = frozenset([
    "SignatureDoesNotMatch",
    "InvalidAccessKeyId",
    "RequestTimeTooSkewed",
    "AccessDenied.SignatureExpired",
    "InvalidAuthorization",
    "ExpiredToken",
    "InvalidToken",
])


@dataclass
class PutObjectResult:
    """Result of an object upload."""
    etag: str
    version_id: Optional[str] = None


@dataclass
class HeadObjectResult:
    """Object metadata."""
    content_length: int
    content_type: str
    etag: str
    last_modified: Optional[str] = None


@dataclass
class GetObjectResult:
    """Object content and metadata."""
    data: bytes
    content_length: int
    content_type: str
    etag: str
    last_modified: Optional[str] = None


@dataclass
class DeleteObjectResult:
    """Result of an object deletion."""
    version_id: Optional[str] = None
    delete_marker: bool = False


@dataclass
class ObjectSummary:
    """One entry of an object listing."""
    key: str
    size: int
    etag: str
    last_modified: Optional[str] = None
    storage_class: Optional[str] = None


@dataclass
class ListObjectsResult:
    """
    One page of an object listing.

    ``next_marker`` (or ``next_continuation_token`` for the v2 listing) is
    what the caller passes back to fetch the following page.
    """
    name: str
    prefix: str
    max_keys: int
    is_truncated: bool
    contents: List[ObjectSummary] = field(default_factory=list)
    common_prefixes: List[str] = field(default_factory=list)
    marker: Optional[str] = None
    next_marker: Optional[str] = None
    key_count: Optional[int] = None
    continuation_token: Optional[str] = None
    next_continuation_token: Optional[str] = None


@dataclass
class DeleteError:
    """A key the batch delete could not remove."""
    key: str
    code: str
    message: str


@dataclass
class DeleteObjectsResult:
    """Result of a batch delete."""
    deleted: List[str] = field(default_factory=list)
    errors: List[DeleteError] = field(default_factory=list)


def guess_content_type(filename: str) -> str:
    """
    Guess the content type of a file from its extension.

    Returns:
        str: MIME type, ``application/octet-stream`` when unknown
    """
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or DEFAULT_CONTENT_TYPE


def _local_name(element: ET.Element) -> str:
    return element.tag.rsplit('}', 1)[-1]


def _children(element: ET.Element, name: str) -> List[ET.Element]:
    return [child for child in element if _local_name(child) == name]


def _child_text(element: ET.Element, name: str, default: Optional[str] = None) -> Optional[str]:
    matches = _children(element, name)
    if not matches:
        return default
    return (matches[0].text or "").strip()


def _parse_xml(content: Union[str, bytes]) -> ET.Element:
    try:
        return ET.fromstring(content)
    except ET.ParseError as e:
        raise ServerCommunicationError(f"Invalid XML response: {e}", "INVALID_RESPONSE")


def _parse_error_body(text: str) -> Dict[str, str]:
    """Extract Code, Message and RequestId from an XML error document"""
    try:
        root = ET.fromstring(text)
    except ET.ParseError:
        return {}

    error = {}
    for child in root:
        tag = _local_name(child)
        if tag in ('Code', 'Message', 'RequestId') and child.text:
            error[tag] = child.text.strip()
    return error


def _parse_listing(root: ET.Element) -> ListObjectsResult:
    """Parse a ListBucketResult document, v1 or v2"""
    contents = [
        ObjectSummary(
            key=_child_text(item, 'Key', ''),
            size=int(_child_text(item, 'Size', '0') or 0),
            etag=_child_text(item, 'ETag', ''),
            last_modified=_child_text(item, 'LastModified'),
            storage_class=_child_text(item, 'StorageClass')
        )
        for item in _children(root, 'Contents')
    ]
    common_prefixes = [
        _child_text(item, 'Prefix', '')
        for item in _children(root, 'CommonPrefixes')
    ]
    key_count = _child_text(root, 'KeyCount')

    return ListObjectsResult(
        name=_child_text(root, 'Name', ''),
        prefix=_child_text(root, 'Prefix', ''),
        max_keys=int(_child_text(root, 'MaxKeys', '0') or 0),
        is_truncated=_child_text(root, 'IsTruncated', 'false').lower() == 'true',
        contents=contents,
        common_prefixes=common_prefixes,
        marker=_child_text(root, 'Marker'),
        next_marker=_child_text(root, 'NextMarker'),
        key_count=int(key_count) if key_count else None,
        continuation_token=_child_text(root, 'ContinuationToken'),
        next_continuation_token=_child_text(root, 'NextContinuationToken')
    )


def _validate_max_keys(max_keys: Optional[int]) -> None:
    if max_keys is None:
        return
    if isinstance(max_keys, bool) or not isinstance(max_keys, int) or not 1 <= max_keys <= MAX_KEYS_LIMIT:
        raise ValidationError(
            f"max_keys must be an integer between 1 and {MAX_KEYS_LIMIT}",
            "INVALID_MAX_KEYS",
            {"max_keys": max_keys}
        )


class CosClient:
    """
    Client for one bucket.

    Provides object upload, download, metadata, single and batch deletion,
    object and bucket listings, bucket management and presigned URLs, with
    retry logic and error mapping.
    """

    def __init__(self, config: CosConfig, session: Optional[requests.Session] = None):
        """
        Initialize the client.

        Args:
            config: Bucket, credential and signing configuration
            session: Optional pre-configured session (retry policy is not added to it)

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        config.validate()
        self.config = config
        self.credentials = config.credentials()
        self.assembler = AuthorizationAssembler(config.signing)
        self.session = session or self._create_session()

        logger.info(f"Initialized COS client for bucket: {config.bucket} ({config.region})")

    def _create_session(self) -> requests.Session:
        """Create HTTP session with retry logic."""
        session = requests.Session()

        # POST is left out: it is not idempotent
        retry_strategy = Retry(
            total=self.config.retry_attempts,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "PUT", "DELETE", "OPTIONS"],
            backoff_factor=self.config.retry_backoff_factor,
            raise_on_status=False,
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update({'User-Agent': USER_AGENT})

        return session

    def update_credentials(self, credentials: CredentialMaterial) -> None:
        """Sign subsequent requests with new (e.g. temporary) credentials."""
        self.credentials = credentials
        logger.info(f"Updated credentials for bucket client: {credentials.secret_id}")

    def object_url(self, key: str) -> str:
        """URL of an object, with the key percent-encoded"""
        if not key or not key.strip('/'):
            raise ValidationError("Object key cannot be empty", "INVALID_KEY", {"key": key})
        return f"{self.config.bucket_url()}/{quote(key.lstrip('/'), safe='/-_.~')}"

    def _make_request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Union[str, bytes]] = None,
        params: Optional[Dict[str, object]] = None
    ) -> requests.Response:
        """
        Sign and send a request with error handling.

        Args:
            method: HTTP method
            url: Full request URL
            headers: Extra request headers
            data: Request body
            params: Query parameters

        Returns:
            requests.Response: Successful response

        Raises:
            AuthenticationError: If the server rejects the signature
            ServerCommunicationError: On HTTP or network errors
        """
        headers = dict(headers or {})
        params = dict(params or {})

        signable = SignableRequest(method=method, url=url, headers=headers, body=data, params=params)
        signed = self.assembler.sign(signable, self.credentials, endpoint_class=EndpointClass.DATA_PLANE)
        headers.update(signed.headers)

        try:
            logger.debug(f"Making {method} request to {url}")
            response = self.session.request(
                method,
                url,
                headers=headers,
                data=data,
                params=self._encode_params(params),
                timeout=self.config.timeout
            )
        except requests.exceptions.Timeout:
            raise ServerCommunicationError(f"Request timeout after {self.config.timeout} seconds", "TIMEOUT")
        except requests.exceptions.ConnectionError as e:
            raise ServerCommunicationError(f"Connection error: {e}", "CONNECTION_ERROR")
        except requests.exceptions.RequestException as e:
            raise ServerCommunicationError(f"Request failed: {e}", "REQUEST_FAILED")

        if not response.ok:
            self._raise_for_response(response, signed)

        return response

    def _encode_params(self, params: Dict[str, object]) -> Optional[str]:
        """Serialize query parameters with the same encoding that was signed"""
        if not params:
            return None
        pairs = [(key, stringify_value(value)) for key, value in params.items()]
        return urlencode(pairs, quote_via=quote, safe='-_.~')

    def _raise_for_response(self, response: requests.Response, signed: SignedRequest) -> None:
        error = _parse_error_body(response.text) if response.text else {}
        code = error.get('Code', 'HTTP_ERROR')
        message = error.get('Message') or f"HTTP {response.status_code}: {response.reason}"
        details = {'status_code': response.status_code, 'code': code}
        if 'RequestId' in error:
            details['request_id'] = error['RequestId']

        if response.status_code == 401 or (response.status_code == 403 and code in SIGNATURE_ERROR_CODES):
            logger.error(
                f"Signature rejected ({code}) for scheme {signed.scheme.value}, "
                f"signed headers: {signed.signed_headers}"
            )
            raise AuthenticationError(
                f"Server rejected request signature: {message}",
                scheme=signed.scheme.value,
                signed_headers=signed.signed_headers,
                signed_params=signed.signed_params,
                error_code=code if code != 'HTTP_ERROR' else "AUTHENTICATION_FAILED",
                http_status=response.status_code,
                details=details
            )

        raise ServerCommunicationError(
            f"Server request failed: {message}",
            code,
            http_status=response.status_code,
            details=details
        )

    def put_object(
        self,
        key: str,
        data: Union[str, bytes],
        content_type: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> PutObjectResult:
        """
        Upload an object.

        Args:
            key: Object key
            data: Object content
            content_type: MIME type, guessed from the key when omitted
            headers: Extra headers such as ``x-cos-meta-*``

        Returns:
            PutObjectResult: ETag and version ID
        """
        body = data.encode('utf-8') if isinstance(data, str) else data
        request_headers = dict(headers or {})
        request_headers['Content-Type'] = content_type or guess_content_type(key)
        request_headers['Content-Length'] = str(len(body))

        response = self._make_request('PUT', self.object_url(key), headers=request_headers, data=body)
        return PutObjectResult(
            etag=response.headers.get('ETag', ''),
            version_id=response.headers.get('x-cos-version-id')
        )

    def put_object_from_file(self, key: str, file_path: str, content_type: Optional[str] = None) -> PutObjectResult:
        """Upload a local file; the content type is guessed from the file name."""
        with open(file_path, 'rb') as f:
            data = f.read()
        return self.put_object(key, data, content_type or guess_content_type(file_path))

    def get_object(self, key: str) -> GetObjectResult:
        """
        Download an object.

        Args:
            key: Object key

        Returns:
            GetObjectResult: Content and metadata
        """
        response = self._make_request('GET', self.object_url(key))
        return GetObjectResult(
            data=response.content,
            content_length=int(response.headers.get('Content-Length', len(response.content))),
            content_type=response.headers.get('Content-Type', DEFAULT_CONTENT_TYPE),
            etag=response.headers.get('ETag', ''),
            last_modified=response.headers.get('Last-Modified')
        )

    def get_object_to_file(self, key: str, file_path: str) -> GetObjectResult:
        """Download an object and write its content to a local file."""
        result = self.get_object(key)
        with open(file_path, 'wb') as f:
            f.write(result.data)
        logger.debug(f"Wrote {len(result.data)} bytes of {key} to {file_path}")
        return result

    def head_object(self, key: str) -> HeadObjectResult:
        """Fetch object metadata."""
        response = self._make_request('HEAD', self.object_url(key))
        return HeadObjectResult(
            content_length=int(response.headers.get('Content-Length', 0)),
            content_type=response.headers.get('Content-Type', DEFAULT_CONTENT_TYPE),
            etag=response.headers.get('ETag', ''),
            last_modified=response.headers.get('Last-Modified')
        )

    def object_exists(self, key: str) -> bool:
        """
        Check whether an object exists.

        Only a 404 means "absent"; authentication and other server errors
        propagate.
        """
        try:
            self.head_object(key)
        except ServerCommunicationError as e:
            if e.http_status == 404:
                return False
            raise
        return True

    def delete_object(self, key: str) -> DeleteObjectResult:
        """Delete an object."""
        response = self._make_request('DELETE', self.object_url(key))
        return DeleteObjectResult(
            version_id=response.headers.get('x-cos-version-id'),
            delete_marker=response.headers.get('x-cos-delete-marker', '').lower() == 'true'
        )

    def delete_objects(self, keys: List[str], quiet: bool = False) -> DeleteObjectsResult:
        """
        Delete several objects in one request.

        The key list is posted as an XML document to ``?delete``; the service
        requires its ``Content-MD5``, which is signed with the request.

        Args:
            keys: Object keys, at most 1000
            quiet: Only report failures in the response

        Returns:
            DeleteObjectsResult: Deleted keys and per-key errors

        Raises:
            ValidationError: If the key list is empty, too long or holds an empty key
        """
        if not keys or len(keys) > MAX_DELETE_KEYS:
            raise ValidationError(
                f"Batch delete takes between 1 and {MAX_DELETE_KEYS} keys",
                "INVALID_KEYS",
                {"count": len(keys or [])}
            )

        root = ET.Element('Delete')
        ET.SubElement(root, 'Quiet').text = 'true' if quiet else 'false'
        for key in keys:
            if not key or not key.strip('/'):
                raise ValidationError("Object key cannot be empty", "INVALID_KEY", {"key": key})
            ET.SubElement(ET.SubElement(root, 'Object'), 'Key').text = key.lstrip('/')
        body = ET.tostring(root, encoding='utf-8')

        headers = {
            'Content-Type': 'application/xml',
            'Content-Length': str(len(body)),
            'Content-MD5': base64.b64encode(hashlib.md5(body).digest()).decode('ascii'),
        }
        response = self._make_request(
            'POST', f"{self.config.bucket_url()}/", headers=headers, data=body, params={'delete': None}
        )

        result_root = _parse_xml(response.content)
        return DeleteObjectsResult(
            deleted=[_child_text(item, 'Key', '') for item in _children(result_root, 'Deleted')],
            errors=[
                DeleteError(
                    key=_child_text(item, 'Key', ''),
                    code=_child_text(item, 'Code', ''),
                    message=_child_text(item, 'Message', '')
                )
                for item in _children(result_root, 'Error')
            ]
        )

    def list_objects(
        self,
        prefix: Optional[str] = None,
        delimiter: Optional[str] = None,
        marker: Optional[str] = None,
        max_keys: Optional[int] = None
    ) -> ListObjectsResult:
        """
        List one page of objects in the bucket.

        Args:
            prefix: Only keys starting with this prefix
            delimiter: Group keys sharing a prefix up to this character
            marker: Start after this key
            max_keys: Page size, 1 to 1000

        Returns:
            ListObjectsResult: Objects, common prefixes and the next marker
        """
        _validate_max_keys(max_keys)
        params = {
            'prefix': prefix,
            'delimiter': delimiter,
            'marker': marker,
            'max-keys': max_keys,
        }
        return self._list(params)

    def list_objects_v2(
        self,
        prefix: Optional[str] = None,
        delimiter: Optional[str] = None,
        continuation_token: Optional[str] = None,
        start_after: Optional[str] = None,
        max_keys: Optional[int] = None
    ) -> ListObjectsResult:
        """
        List one page of objects with the v2 listing (``list-type=2``).

        Returns:
            ListObjectsResult: Objects, common prefixes, key count and the next
            continuation token
        """
        _validate_max_keys(max_keys)
        params = {
            'list-type': 2,
            'prefix': prefix,
            'delimiter': delimiter,
            'continuation-token': continuation_token,
            'start-after': start_after,
            'max-keys': max_keys,
        }
        return self._list(params)

    def _list(self, params: Dict[str, object]) -> ListObjectsResult:
        params = {key: value for key, value in params.items() if value is not None}
        response = self._make_request('GET', f"{self.config.bucket_url()}/", params=params)
        return _parse_listing(_parse_xml(response.content))

    def create_bucket(self) -> None:
        """Create the configured bucket in the configured region."""
        self._make_request('PUT', f"{self.config.bucket_url()}/")
        logger.info(f"Created bucket: {self.config.bucket}")

    def delete_bucket(self) -> None:
        """Delete the configured bucket; it must be empty."""
        self._make_request('DELETE', f"{self.config.bucket_url()}/")
        logger.info(f"Deleted bucket: {self.config.bucket}")

    def get_bucket_location(self) -> str:
        """Region the bucket lives in, e.g. ``ap-beijing``."""
        response = self._make_request('GET', f"{self.config.bucket_url()}/", params={'location': None})
        return (_parse_xml(response.content).text or "").strip()

    def bucket_exists(self) -> bool:
        """Check whether the configured bucket exists."""
        try:
            self._make_request('HEAD', f"{self.config.bucket_url()}/")
        except ServerCommunicationError as e:
            if e.http_status == 404:
                return False
            raise
        return True

    def list_buckets(self) -> List[str]:
        """
        List bucket names owned by the credentials.

        Returns:
            list: Bucket names

        Raises:
            ServerCommunicationError: If the listing cannot be parsed
        """
        response = self._make_request('GET', f"{self.config.service_url()}/")
        root = _parse_xml(response.content)

        return [
            _child_text(element, 'Name')
            for element in root.iter()
            if _local_name(element) == 'Bucket' and _child_text(element, 'Name')
        ]

    def presigned_url(
        self,
        method: str,
        key: str,
        expires: int = 3600,
        params: Optional[Dict[str, object]] = None
    ) -> str:
        """
        Build a presigned URL for an object.

        The signature and, with temporary credentials, the session token travel
        in the query string. Only ``host`` is signed by default, so the URL
        works from any HTTP client.

        Args:
            method: HTTP method the URL is valid for
            key: Object key
            expires: Seconds the URL stays valid
            params: Extra query parameters to sign

        Returns:
            str: Presigned URL

        Raises:
            ValidationError: If expires is not a positive integer
        """
        if isinstance(expires, bool) or not isinstance(expires, int) or expires <= 0:
            raise ValidationError(
                "expires must be a positive number of seconds",
                "INVALID_EXPIRES",
                {"expires": expires}
            )

        url = self.object_url(key)
        params = dict(params or {})

        signable = SignableRequest(method=method, url=url, params=params)
        signed = self.assembler.sign(
            signable,
            self.credentials,
            endpoint_class=EndpointClass.DATA_PLANE,
            presign=True,
            window_seconds=expires
        )

        query = dict(params)
        query.update(signed.query_params)
        return f"{url}?{self._encode_params(query)}"

    def close(self):
        """Close the HTTP session."""
        self.session.close()
        logger.debug("HTTP session closed")

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def create_client(config: CosConfig) -> CosClient:
    """
    Create a COS client.

    Args:
        config: Client configuration

    Returns:
        CosClient: Configured client
    """
    return CosClient(config)
