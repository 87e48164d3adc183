"""
Test suite for server-side signature verification
"""

import pytest

from cos_sdk.signing import (
    AuthorizationAssembler,
    CredentialMaterial,
    SignableRequest,
    SignatureScheme,
    SigningConfig,
)
from cos_sdk.verification import (
    CosSignatureVerifier,
    TC3SignatureVerifier,
    VerificationErrorCodes,
    VerificationStatus,
    create_verifier,
)

NOW = 1700000000
BUCKET_URL = "https://examplebucket-1250000000.cos.ap-beijing.myqcloud.com"
STS_URL = "https://sts.tencentcloudapi.com/"


@pytest.fixture
def credentials():
    return CredentialMaterial(secret_id="AKIDverify", secret_key="verify-secret")


def _signed_cos_request(credentials, **sign_kwargs):
    request = SignableRequest(
        method="PUT",
        url=f"{BUCKET_URL}/docs/report.pdf",
        headers={'Content-Type': 'application/pdf', 'Content-Length': '4'},
        body=b"%PDF"
    )
    signed = AuthorizationAssembler().sign(request, credentials, timestamp=NOW, **sign_kwargs)
    request.headers.update({name.lower(): value for name, value in signed.headers.items()})
    return request


def _signed_tc3_request(credentials, service="sts", timestamp=NOW):
    request = SignableRequest(
        method="POST",
        url=STS_URL,
        headers={'Content-Type': 'application/json; charset=utf-8', 'X-TC-Action': 'GetFederationToken'},
        body='{"DurationSeconds":1800}'
    )
    signed = AuthorizationAssembler(SigningConfig(service=service)).sign(request, credentials, timestamp=timestamp)
    request.headers.update({name.lower(): value for name, value in signed.headers.items()})
    return request


class TestCosSignatureVerifier:
    """Test data-plane verification"""

    def test_valid(self, credentials):
        """Test a freshly signed request verifies"""
        request = _signed_cos_request(credentials)
        result = CosSignatureVerifier([credentials]).verify(request, server_time=NOW)

        assert result.valid
        assert result.status == VerificationStatus.VALID
        assert result.details['signed_headers'] == ['content-length', 'content-type', 'host']

    def test_tampered_header(self, credentials):
        """Test changing a signed header breaks the signature"""
        request = _signed_cos_request(credentials)
        request.headers['content-type'] = 'text/html'

        result = CosSignatureVerifier([credentials]).verify(request, server_time=NOW)
        assert not result.valid
        assert result.reason == VerificationErrorCodes.SIGNATURE_MISMATCH

    def test_tampered_path(self, credentials):
        """Test the signature is bound to the path"""
        request = _signed_cos_request(credentials)
        request.url = f"{BUCKET_URL}/docs/other.pdf"

        result = CosSignatureVerifier([credentials]).verify(request, server_time=NOW)
        assert result.reason == VerificationErrorCodes.SIGNATURE_MISMATCH

    def test_unsigned_header_ignored(self, credentials):
        """Test headers outside the declared list do not matter"""
        request = _signed_cos_request(credentials)
        request.headers['user-agent'] = 'something-else'

        assert CosSignatureVerifier([credentials]).verify(request, server_time=NOW).valid

    def test_missing_signed_header(self, credentials):
        """Test a declared header that is absent"""
        request = _signed_cos_request(credentials)
        del request.headers['content-length']

        result = CosSignatureVerifier([credentials]).verify(request, server_time=NOW)
        assert result.reason == VerificationErrorCodes.MISSING_SIGNED_HEADER
        assert result.details['missing_headers'] == ['content-length']

    def test_expired(self, credentials):
        """Test server time outside the window"""
        request = _signed_cos_request(credentials)

        result = CosSignatureVerifier([credentials]).verify(request, server_time=NOW + 3601)
        assert result.status == VerificationStatus.EXPIRED
        assert result.reason == VerificationErrorCodes.OUTSIDE_TIME_WINDOW

    def test_leeway_accepted(self, credentials):
        """Test a server clock slightly behind the signer is accepted"""
        request = _signed_cos_request(credentials)
        assert CosSignatureVerifier([credentials]).verify(request, server_time=NOW - 200).valid

    def test_unknown_secret_id(self, credentials):
        """Test credentials the verifier does not know"""
        request = _signed_cos_request(credentials)
        result = CosSignatureVerifier().verify(request, server_time=NOW)
        assert result.reason == VerificationErrorCodes.UNKNOWN_SECRET_ID

    def test_wrong_secret(self, credentials):
        """Test the same secret ID with a different key"""
        request = _signed_cos_request(credentials)
        verifier = CosSignatureVerifier([CredentialMaterial("AKIDverify", "other-secret")])
        assert verifier.verify(request, server_time=NOW).reason == VerificationErrorCodes.SIGNATURE_MISMATCH

    def test_missing_authorization(self):
        """Test a request without any authorization"""
        request = SignableRequest(method="GET", url=f"{BUCKET_URL}/a.txt")
        result = CosSignatureVerifier().verify(request, server_time=NOW)

        assert result.status == VerificationStatus.ERROR
        assert result.reason == VerificationErrorCodes.MALFORMED_AUTHORIZATION

    def test_malformed_authorization(self, credentials):
        """Test an authorization value with fields missing"""
        request = SignableRequest(method="GET", url=f"{BUCKET_URL}/a.txt")
        result = CosSignatureVerifier([credentials]).verify(
            request, authorization="q-sign-algorithm=sha1&q-ak=AKIDverify", server_time=NOW
        )
        assert result.reason == VerificationErrorCodes.MALFORMED_AUTHORIZATION
        assert 'q-signature' in result.details['missing_fields']

    def test_unsupported_algorithm(self, credentials):
        """Test another q-sign-algorithm"""
        request = _signed_cos_request(credentials)
        request.headers['authorization'] = request.headers['authorization'].replace(
            "q-sign-algorithm=sha1", "q-sign-algorithm=md5"
        )
        result = CosSignatureVerifier([credentials]).verify(request, server_time=NOW)
        assert result.reason == VerificationErrorCodes.UNSUPPORTED_ALGORITHM

    def test_presigned_url(self, credentials):
        """Test presigned query parameters verify"""
        request = SignableRequest(method="GET", url=f"{BUCKET_URL}/a.txt", params={'versionId': '7'})
        signed = AuthorizationAssembler().sign(request, credentials, timestamp=NOW, presign=True)

        received = SignableRequest(method="GET", url=f"{BUCKET_URL}/a.txt", params={'versionId': '7', **signed.query_params})
        assert CosSignatureVerifier([credentials]).verify(received, server_time=NOW).valid

        received.params['versionId'] = '8'
        assert not CosSignatureVerifier([credentials]).verify(received, server_time=NOW).valid

    def test_remove_credentials(self, credentials):
        """Test credentials can be withdrawn"""
        request = _signed_cos_request(credentials)
        verifier = CosSignatureVerifier([credentials])
        verifier.remove_credentials("AKIDverify")
        assert verifier.verify(request, server_time=NOW).reason == VerificationErrorCodes.UNKNOWN_SECRET_ID


class TestTC3SignatureVerifier:
    """Test control-plane verification"""

    def test_valid(self, credentials):
        """Test a freshly signed request verifies"""
        request = _signed_tc3_request(credentials)
        result = TC3SignatureVerifier([credentials], service="sts").verify(request, server_time=NOW)

        assert result.valid
        assert result.details['service'] == "sts"
        assert result.details['signed_headers'] == ['content-type', 'host']

    def test_tampered_body(self, credentials):
        """Test the payload hash binds the body"""
        request = _signed_tc3_request(credentials)
        request.body = '{"DurationSeconds":7200}'

        result = TC3SignatureVerifier([credentials]).verify(request, server_time=NOW)
        assert result.reason == VerificationErrorCodes.SIGNATURE_MISMATCH

    def test_timestamp_skew(self, credentials):
        """Test server time too far from the request timestamp"""
        request = _signed_tc3_request(credentials)

        result = TC3SignatureVerifier([credentials]).verify(request, server_time=NOW + 301)
        assert result.status == VerificationStatus.EXPIRED
        assert result.reason == VerificationErrorCodes.TIMESTAMP_SKEW

        assert TC3SignatureVerifier([credentials]).verify(request, server_time=NOW + 300).valid

    def test_service_mismatch(self, credentials):
        """Test a scope for another service"""
        request = _signed_tc3_request(credentials, service="cvm")
        result = TC3SignatureVerifier([credentials], service="sts").verify(request, server_time=NOW)
        assert result.reason == VerificationErrorCodes.SCOPE_MISMATCH

    def test_date_mismatch(self, credentials):
        """Test a timestamp header that disagrees with the scope date"""
        request = _signed_tc3_request(credentials)
        request.headers['x-tc-timestamp'] = str(NOW + 86400)

        result = TC3SignatureVerifier([credentials]).verify(request, server_time=NOW + 86400)
        assert result.reason == VerificationErrorCodes.SCOPE_MISMATCH

    def test_unknown_secret_id(self, credentials):
        """Test credentials the verifier does not know"""
        request = _signed_tc3_request(credentials)
        result = TC3SignatureVerifier().verify(request, server_time=NOW)
        assert result.reason == VerificationErrorCodes.UNKNOWN_SECRET_ID

    def test_missing_timestamp(self, credentials):
        """Test a request without X-TC-Timestamp"""
        request = _signed_tc3_request(credentials)
        del request.headers['x-tc-timestamp']

        result = TC3SignatureVerifier([credentials]).verify(request, server_time=NOW)
        assert result.status == VerificationStatus.ERROR
        assert result.reason == VerificationErrorCodes.MALFORMED_AUTHORIZATION

    def test_other_algorithm(self, credentials):
        """Test a data-plane authorization sent to the control plane"""
        request = _signed_tc3_request(credentials)
        request.headers['authorization'] = "q-sign-algorithm=sha1&q-ak=AKIDverify"

        result = TC3SignatureVerifier([credentials]).verify(request, server_time=NOW)
        assert result.reason == VerificationErrorCodes.UNSUPPORTED_ALGORITHM

    def test_separate_headers(self, credentials):
        """Test authorization headers passed separately from the request"""
        request = _signed_tc3_request(credentials)
        headers = {
            'Authorization': request.headers.pop('authorization'),
            'X-TC-Timestamp': request.headers.pop('x-tc-timestamp'),
        }
        assert TC3SignatureVerifier([credentials]).verify(request, headers=headers, server_time=NOW).valid


class TestCreateVerifier:
    """Test verifier factory"""

    def test_by_scheme(self, credentials):
        """Test the scheme selects the verifier"""
        assert isinstance(create_verifier(SignatureScheme.COS_SHA1, [credentials]), CosSignatureVerifier)
        verifier = create_verifier("TC3-HMAC-SHA256", [credentials], service="sts")
        assert isinstance(verifier, TC3SignatureVerifier)
        assert verifier.service == "sts"
