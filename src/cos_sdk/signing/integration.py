"""
HTTP client integration for request signing

This module wraps a ``requests.Session`` so that every outbound request is
signed at dispatch time with the scheme its endpoint expects.
"""

import json
import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

import requests

from .types import (
    CredentialMaterial,
    EndpointClass,
    SignableRequest,
    SignedRequest,
    SigningConfig,
)
from .assembler import AuthorizationAssembler
from .canonical_request import canonical_query
from .utils import parse_url

logger = logging.getLogger(__name__)


class SigningSession:
    """
    HTTP session wrapper with automatic request signing.

    Signing failures propagate to the caller; an unsigned request is never
    sent in place of a signed one.
    """

    def __init__(
        self,
        credentials: CredentialMaterial,
        signing_config: Optional[SigningConfig] = None,
        session: Optional[requests.Session] = None,
        endpoint_class: Optional[EndpointClass] = None,
        presign: bool = False
    ):
        """
        Initialize signing session.

        Args:
            credentials: Credentials to sign with
            signing_config: Optional signing configuration
            session: Optional existing requests session to wrap
            endpoint_class: Force an endpoint class instead of classifying by host
            presign: Put the signature in the query string instead of headers
        """
        self.session = session or requests.Session()
        self.credentials = credentials
        self.assembler = AuthorizationAssembler(signing_config)
        self.endpoint_class = endpoint_class
        self.presign = presign
        self.last_signed: Optional[SignedRequest] = None

    def update_credentials(self, credentials: CredentialMaterial) -> None:
        """Swap in new credentials, e.g. after temporary credentials rotate"""
        self.credentials = credentials
        logger.info(f"Updated signing credentials for secret ID: {credentials.secret_id}")

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Sign and send a request.

        Args:
            method: HTTP method
            url: Request URL
            **kwargs: Additional arguments for requests

        Returns:
            requests.Response: HTTP response

        Raises:
            ConfigurationError, ValidationError, EncodingError: If signing fails
        """
        url, kwargs = self._prepare_request(method, url, **kwargs)
        return self.session.request(method, url, **kwargs)

    def _prepare_request(self, method: str, url: str, **kwargs) -> Tuple[str, Dict[str, Any]]:
        """
        Sign request and modify kwargs to include the signature.

        A ``json`` argument is serialized here so the exact bytes that were
        hashed are the bytes that get sent. The query string (URL query,
        ``params`` and any presign fields) is sent pre-encoded in canonical
        order, since the control plane hashes the query as it arrives.

        Args:
            method: HTTP method
            url: Request URL
            **kwargs: Original request arguments

        Returns:
            tuple: URL without its query, and kwargs with signature headers
            and the encoded query string
        """
        headers = dict(kwargs.get('headers') or {})
        params = dict(kwargs.get('params') or {})
        body = kwargs.get('data')

        if kwargs.get('json') is not None:
            body = json.dumps(kwargs.pop('json'))
            kwargs['data'] = body
            if 'content-type' not in {k.lower() for k in headers}:
                headers['Content-Type'] = 'application/json'

        signable_request = SignableRequest(
            method=method,
            url=url,
            headers=headers,
            body=body if isinstance(body, (str, bytes)) else None,
            params=params
        )

        signed = self.assembler.sign(
            signable_request,
            self.credentials,
            endpoint_class=self.endpoint_class,
            presign=self.presign
        )
        self.last_signed = signed

        headers.update(signed.headers)
        kwargs['headers'] = headers

        query = list(parse_url(url)['query'])
        query.extend(params.items())
        query.extend(signed.query_params.items())
        kwargs.pop('params', None)
        if query:
            kwargs['params'] = canonical_query(query)
            url = urlunsplit(urlsplit(url)._replace(query=''))

        logger.debug(f"Signed {method} request to {url}")
        return url, kwargs

    def get(self, url: str, **kwargs) -> requests.Response:
        """Make GET request."""
        return self.request('GET', url, **kwargs)

    def post(self, url: str, **kwargs) -> requests.Response:
        """Make POST request."""
        return self.request('POST', url, **kwargs)

    def put(self, url: str, **kwargs) -> requests.Response:
        """Make PUT request."""
        return self.request('PUT', url, **kwargs)

    def delete(self, url: str, **kwargs) -> requests.Response:
        """Make DELETE request."""
        return self.request('DELETE', url, **kwargs)

    def head(self, url: str, **kwargs) -> requests.Response:
        """Make HEAD request."""
        return self.request('HEAD', url, **kwargs)

    def close(self) -> None:
        """Close the underlying session."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def create_signing_session(
    credentials: CredentialMaterial,
    signing_config: Optional[SigningConfig] = None,
    **kwargs
) -> SigningSession:
    """
    Create a new signing session.

    Args:
        credentials: Credentials to sign with
        signing_config: Optional signing configuration
        **kwargs: Passed to ``SigningSession``

    Returns:
        SigningSession: Configured signing session
    """
    return SigningSession(credentials, signing_config, **kwargs)
