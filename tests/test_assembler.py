"""
Test suite for authorization assembly

Covers endpoint routing, header and presign attachment, session tokens and
logging of signing details.
"""

import logging

import pytest

from cos_sdk.signing import (
    AuthorizationAssembler,
    CredentialMaterial,
    EndpointClass,
    SignableRequest,
    SignatureScheme,
    SigningConfig,
    classify_endpoint,
    create_assembler,
    parse_cos_authorization,
    sign_request,
)
from cos_sdk.verification import CosSignatureVerifier, TC3SignatureVerifier
from cos_sdk.exceptions import ConfigurationError, ValidationError

NOW = 1700000000
BUCKET_URL = "https://examplebucket-1250000000.cos.ap-beijing.myqcloud.com"
STS_URL = "https://sts.tencentcloudapi.com/"


@pytest.fixture
def credentials():
    return CredentialMaterial(secret_id="AKIDtest", secret_key="assembler-secret")


@pytest.fixture
def session_credentials():
    return CredentialMaterial(secret_id="AKIDtmp", secret_key="tmp-secret", session_token="session-token-1")


@pytest.fixture
def put_request():
    return SignableRequest(
        method="PUT",
        url=f"{BUCKET_URL}/photos/cat.jpg",
        headers={'Content-Type': 'image/jpeg', 'x-cos-meta-owner': 'me'},
        body=b"jpeg-bytes"
    )


class TestClassifyEndpoint:
    """Test endpoint classification"""

    def test_control_plane(self):
        """Test the API domain and its subdomains"""
        assert classify_endpoint("sts.tencentcloudapi.com") == EndpointClass.CONTROL_PLANE
        assert classify_endpoint("tencentcloudapi.com") == EndpointClass.CONTROL_PLANE
        assert classify_endpoint("STS.TencentCloudAPI.com:443") == EndpointClass.CONTROL_PLANE

    def test_data_plane(self):
        """Test everything else is the data plane"""
        assert classify_endpoint("examplebucket-1250000000.cos.ap-beijing.myqcloud.com") == EndpointClass.DATA_PLANE
        assert classify_endpoint("eviltencentcloudapi.com") == EndpointClass.DATA_PLANE
        assert classify_endpoint("cdn.example.com") == EndpointClass.DATA_PLANE


class TestDataPlaneSigning:
    """Test header-mode and presign-mode data-plane signing"""

    def test_authorization_header(self, put_request, credentials):
        """Test the Authorization header carries all q-* fields"""
        signed = AuthorizationAssembler().sign(put_request, credentials, timestamp=NOW)

        assert signed.scheme == SignatureScheme.COS_SHA1
        assert signed.query_params == {}
        assert list(signed.headers) == ['Authorization']

        fields = parse_cos_authorization(signed.headers['Authorization'])
        assert fields['q-ak'] == "AKIDtest"
        assert fields['q-key-time'] == f"{NOW - 300};{NOW + 3600}"
        assert fields['q-sign-time'] == fields['q-key-time']
        assert fields['q-header-list'] == "content-type;host;x-cos-meta-owner"
        assert signed.signed_headers == ['content-type', 'host', 'x-cos-meta-owner']

    def test_verifies(self, put_request, credentials):
        """Test the produced header verifies like the server would check it"""
        signed = AuthorizationAssembler().sign(put_request, credentials, timestamp=NOW)
        put_request.headers.update({k.lower(): v for k, v in signed.headers.items()})

        result = CosSignatureVerifier([credentials]).verify(put_request, server_time=NOW)
        assert result.valid, result.reason

    def test_session_token_header(self, put_request, session_credentials):
        """Test the token is attached but not signed"""
        signed = AuthorizationAssembler().sign(put_request, session_credentials, timestamp=NOW)

        assert signed.headers['x-cos-security-token'] == "session-token-1"
        assert 'x-cos-security-token' not in signed.signed_headers

    def test_presign(self, credentials):
        """Test presign mode emits query parameters and no headers"""
        request = SignableRequest(method="GET", url=f"{BUCKET_URL}/photos/cat.jpg")
        signed = AuthorizationAssembler().sign(request, credentials, timestamp=NOW, presign=True)

        assert signed.headers == {}
        assert list(signed.query_params) == [
            'q-sign-algorithm', 'q-ak', 'q-sign-time', 'q-key-time',
            'q-header-list', 'q-url-param-list', 'q-signature',
        ]
        assert signed.query_params['q-header-list'] == "host"

    def test_presign_session_token(self, session_credentials):
        """Test presign mode carries the token as a query parameter"""
        request = SignableRequest(method="GET", url=f"{BUCKET_URL}/a.txt")
        signed = AuthorizationAssembler().sign(request, session_credentials, timestamp=NOW, presign=True)
        assert signed.query_params['x-cos-security-token'] == "session-token-1"

    def test_window_override(self, credentials):
        """Test per-call window length"""
        request = SignableRequest(method="GET", url=f"{BUCKET_URL}/a.txt")
        signed = AuthorizationAssembler().sign(request, credentials, timestamp=NOW, presign=True, window_seconds=60)
        assert signed.query_params['q-key-time'] == f"{NOW - 300};{NOW + 60}"

    def test_timestamp_generator(self, credentials):
        """Test the configured clock is used when no timestamp is given"""
        config = SigningConfig(window_leeway_seconds=0, timestamp_generator=lambda: NOW)
        request = SignableRequest(method="GET", url=f"{BUCKET_URL}/a.txt")
        signed = AuthorizationAssembler(config).sign(request, credentials)

        fields = parse_cos_authorization(signed.authorization)
        assert fields['q-key-time'] == f"{NOW};{NOW + 3600}"

    def test_explicit_endpoint_class(self, credentials):
        """Test an explicit class overrides host classification"""
        request = SignableRequest(method="POST", url="https://cos-proxy.internal/", headers={'Content-Type': 'application/json'})
        signed = AuthorizationAssembler().sign(
            request, credentials, endpoint_class=EndpointClass.CONTROL_PLANE, timestamp=NOW
        )
        assert signed.scheme == SignatureScheme.TC3_HMAC_SHA256


class TestControlPlaneSigning:
    """Test control-plane header attachment"""

    def test_headers(self, credentials):
        """Test Authorization and X-TC-Timestamp are attached"""
        request = SignableRequest(
            method="POST",
            url=STS_URL,
            headers={'Content-Type': 'application/json; charset=utf-8'},
            body='{"Name":"temp-user"}'
        )
        signed = AuthorizationAssembler().sign(request, credentials, timestamp=NOW)

        assert signed.scheme == SignatureScheme.TC3_HMAC_SHA256
        assert signed.headers['Authorization'].startswith(
            "TC3-HMAC-SHA256 Credential=AKIDtest/2023-11-14/sts/tc3_request, SignedHeaders=content-type;host, "
        )
        assert signed.headers['X-TC-Timestamp'] == str(NOW)
        assert 'X-TC-Token' not in signed.headers

        request.headers.update(signed.headers)
        result = TC3SignatureVerifier([credentials], service="sts").verify(request, server_time=NOW)
        assert result.valid, result.reason

    def test_session_token(self, session_credentials):
        """Test X-TC-Token is attached with temporary credentials"""
        request = SignableRequest(method="POST", url=STS_URL, headers={'Content-Type': 'application/json'})
        signed = AuthorizationAssembler().sign(request, session_credentials, timestamp=NOW)
        assert signed.headers['X-TC-Token'] == "session-token-1"

    def test_presign_rejected(self, credentials):
        """Test presigned URLs are data-plane only"""
        request = SignableRequest(method="GET", url=STS_URL)
        with pytest.raises(ValidationError):
            AuthorizationAssembler().sign(request, credentials, timestamp=NOW, presign=True)


class TestAssemblerConfiguration:
    """Test configuration handling"""

    def test_invalid_credentials(self, put_request):
        """Test credentials must be CredentialMaterial"""
        with pytest.raises(ConfigurationError):
            AuthorizationAssembler().sign(put_request, ("AKIDtest", "secret"))

    def test_invalid_config(self):
        """Test invalid configuration is rejected at construction"""
        with pytest.raises(ConfigurationError):
            AuthorizationAssembler(SigningConfig(window_seconds=0))

    def test_config_copied(self, put_request, credentials):
        """Test later changes to the config object do not leak in"""
        config = SigningConfig(signed_headers=['host'])
        assembler = AuthorizationAssembler(config)
        config.signed_headers.append('content-type')

        signed = assembler.sign(put_request, credentials, timestamp=NOW)
        assert signed.signed_headers == ['host']

    def test_sign_request_helper(self, put_request, credentials):
        """Test the convenience wrapper matches the assembler"""
        direct = create_assembler().sign(put_request, credentials, timestamp=NOW)
        helper = sign_request(put_request, credentials, timestamp=NOW)
        assert helper.authorization == direct.authorization


class TestSigningLogs:
    """Test what gets logged"""

    def test_canonical_request_not_logged_by_default(self, put_request, credentials, caplog):
        """Test canonical strings stay out of logs unless enabled"""
        caplog.set_level(logging.DEBUG, logger="cos_sdk")
        AuthorizationAssembler().sign(put_request, credentials, timestamp=NOW)

        assert "Signed PUT /photos/cat.jpg" in caplog.text
        assert "Canonical request" not in caplog.text

    def test_canonical_request_logged(self, put_request, credentials, caplog):
        """Test canonical strings are logged at debug when enabled"""
        caplog.set_level(logging.DEBUG, logger="cos_sdk")
        AuthorizationAssembler(SigningConfig(log_canonical_requests=True)).sign(
            put_request, credentials, timestamp=NOW
        )

        assert "Canonical request" in caplog.text
        assert "put\n/photos/cat.jpg\n" in caplog.text

    def test_secret_never_logged(self, put_request, session_credentials, caplog):
        """Test secret material never reaches the logs"""
        caplog.set_level(logging.DEBUG, logger="cos_sdk")
        AuthorizationAssembler(SigningConfig(log_canonical_requests=True)).sign(
            put_request, session_credentials, timestamp=NOW
        )
        assert "tmp-secret" not in caplog.text
