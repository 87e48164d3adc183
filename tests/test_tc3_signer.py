"""
Test suite for the control-plane TC3-HMAC-SHA256 signature engine
"""

import pytest

from cos_sdk.signing import (
    AuthorizationAssembler,
    CredentialMaterial,
    CredentialScope,
    SignableRequest,
    SignatureScheme,
    SigningConfig,
    TC3Signer,
    create_signing_context,
    derive_signing_key,
    format_utc_date,
    parse_tc3_authorization,
)
from cos_sdk.signing.utils import hmac_digest
from cos_sdk.exceptions import ConfigurationError, ValidationError

# Published example request for the TC3 scheme
EXAMPLE_SECRET_ID = "AKIDz8krbsJ5yKBZQpn74WFkmLPx3EXAMPLE"
EXAMPLE_SECRET_KEY = "Gu5t9xGARNpq86cd98joQYCN3EXAMPLE"
EXAMPLE_TIMESTAMP = 1551113065
EXAMPLE_PAYLOAD = r'{"Limit": 1, "Filters": [{"Values": ["\u672a\u547d\u540d"], "Name": "instance-name"}]}'
EXAMPLE_CR_HASH = "5ffe6a04c0664d6b969fab9a13bdab201d63ee709638e2749d62a09ca18d7031"
EXAMPLE_SIGNATURE = "72e494ea809ad7a8c8f7a4507b9bddcbaa8e581f516e8da2f66e2c5a96525168"


@pytest.fixture
def example_credentials():
    return CredentialMaterial(EXAMPLE_SECRET_ID, EXAMPLE_SECRET_KEY)


@pytest.fixture
def example_request():
    return SignableRequest(
        method="POST",
        url="https://cvm.tencentcloudapi.com/",
        headers={
            'Content-Type': 'application/json; charset=utf-8',
            'Host': 'cvm.tencentcloudapi.com',
        },
        body=EXAMPLE_PAYLOAD
    )


class TestKeyDerivation:
    """Test the HMAC-SHA256 key chain"""

    def test_secret_date(self):
        """Test first stage is keyed by TC3 + secret key"""
        secret_date = hmac_digest(b"TC3test_secret_key", "2024-01-01", 'sha256')
        assert secret_date.hex() == "c81e4bc822cad079a06ee9c5ac4929e6d360fe14aa42d60bc5220bcfccccb01a"

    def test_secret_service(self):
        """Test second stage is keyed by raw bytes of the first"""
        secret_date = hmac_digest(b"TC3test_secret_key", "2024-01-01", 'sha256')
        secret_service = hmac_digest(secret_date, "sts", 'sha256')
        assert secret_service.hex() == "49289a83300f22ee8b5431a2543bf835db4819a65945e845f459da2df1155e78"

    def test_signing_key(self):
        """Test full chain"""
        key = derive_signing_key("test_secret_key", "2024-01-01", "sts")
        assert isinstance(key, bytes)
        assert key.hex() == "db3fcbe125712c928d3e08ffb736e2d038c5a16797c6ba53d87a7f8b5a733a3d"

    def test_scope_changes_key(self):
        """Test date and service both change the key"""
        base = derive_signing_key("test_secret_key", "2024-01-01", "sts")
        assert derive_signing_key("test_secret_key", "2024-01-02", "sts") != base
        assert derive_signing_key("test_secret_key", "2024-01-01", "cvm") != base


class TestCredentialScope:
    """Test scope derivation from the request timestamp"""

    def test_from_timestamp(self):
        """Test scope value layout"""
        scope = CredentialScope.from_timestamp(EXAMPLE_TIMESTAMP, "cvm")
        assert scope.value == "2019-02-25/cvm/tc3_request"

    def test_utc_day_boundary(self):
        """Test the date is the UTC date, not local time"""
        assert format_utc_date(1704067199) == "2023-12-31"
        assert format_utc_date(1704067200) == "2024-01-01"
        assert CredentialScope.from_timestamp(1704067199, "sts").date == "2023-12-31"


class TestTC3Signer:
    """Test signing against the published example"""

    def test_reference_signature(self, example_request, example_credentials):
        """Test canonical request, string to sign and signature"""
        context = create_signing_context(example_request, SignatureScheme.TC3_HMAC_SHA256)
        material = TC3Signer("cvm").sign(context, example_credentials, EXAMPLE_TIMESTAMP)

        assert material.string_to_sign == (
            "TC3-HMAC-SHA256\n"
            "1551113065\n"
            "2019-02-25/cvm/tc3_request\n"
            f"{EXAMPLE_CR_HASH}"
        )
        assert material.signature == EXAMPLE_SIGNATURE
        assert material.authorization == (
            "TC3-HMAC-SHA256 "
            f"Credential={EXAMPLE_SECRET_ID}/2019-02-25/cvm/tc3_request, "
            "SignedHeaders=content-type;host, "
            f"Signature={EXAMPLE_SIGNATURE}"
        )
        assert material.signed_headers == ['content-type', 'host']
        assert material.timestamp == EXAMPLE_TIMESTAMP

    def test_reference_via_assembler(self, example_request, example_credentials):
        """Test the assembler attaches the example signature and timestamp"""
        assembler = AuthorizationAssembler(SigningConfig(service="cvm"))
        signed = assembler.sign(example_request, example_credentials, timestamp=EXAMPLE_TIMESTAMP)

        assert signed.scheme == SignatureScheme.TC3_HMAC_SHA256
        assert signed.headers['Authorization'].endswith(f"Signature={EXAMPLE_SIGNATURE}")
        assert signed.headers['X-TC-Timestamp'] == "1551113065"
        assert 'X-TC-Token' not in signed.headers

    def test_header_values_lowercased(self, example_request, example_credentials):
        """Test header value case does not change the signature"""
        example_request.headers['content-type'] = 'Application/JSON; Charset=UTF-8'
        context = create_signing_context(example_request, SignatureScheme.TC3_HMAC_SHA256)
        material = TC3Signer("cvm").sign(context, example_credentials, EXAMPLE_TIMESTAMP)
        assert material.signature == EXAMPLE_SIGNATURE

    def test_body_changes_signature(self, example_request, example_credentials):
        """Test the payload hash binds the body"""
        example_request.body = EXAMPLE_PAYLOAD.replace("1", "2")
        context = create_signing_context(example_request, SignatureScheme.TC3_HMAC_SHA256)
        material = TC3Signer("cvm").sign(context, example_credentials, EXAMPLE_TIMESTAMP)
        assert material.signature != EXAMPLE_SIGNATURE

    def test_bytes_body(self, example_request, example_credentials):
        """Test bytes and str bodies hash the same"""
        example_request.body = EXAMPLE_PAYLOAD.encode('utf-8')
        context = create_signing_context(example_request, SignatureScheme.TC3_HMAC_SHA256)
        material = TC3Signer("cvm").sign(context, example_credentials, EXAMPLE_TIMESTAMP)
        assert material.signature == EXAMPLE_SIGNATURE

    def test_empty_service(self):
        """Test an empty service is rejected"""
        with pytest.raises(ConfigurationError) as exc_info:
            TC3Signer("")
        assert exc_info.value.error_code == "INVALID_SERVICE"

    def test_invalid_timestamp(self, example_request, example_credentials):
        """Test implausible timestamps are rejected"""
        context = create_signing_context(example_request, SignatureScheme.TC3_HMAC_SHA256)
        for timestamp in (0, -1, True, "1551113065"):
            with pytest.raises(ValidationError):
                TC3Signer("cvm").sign(context, example_credentials, timestamp)


class TestParseTC3Authorization:
    """Test authorization parsing"""

    def test_parse(self):
        """Test all parts are extracted"""
        parsed = parse_tc3_authorization(
            "TC3-HMAC-SHA256 Credential=AKID/2019-02-25/cvm/tc3_request, "
            "SignedHeaders=content-type;host, Signature=abc"
        )
        assert parsed == {
            'algorithm': 'TC3-HMAC-SHA256',
            'credential': 'AKID/2019-02-25/cvm/tc3_request',
            'signed_headers': 'content-type;host',
            'signature': 'abc',
        }

    def test_other_algorithm(self):
        """Test values of other schemes are not parsed"""
        assert parse_tc3_authorization("q-sign-algorithm=sha1&q-ak=AKID") == {}
        assert parse_tc3_authorization("") == {}
