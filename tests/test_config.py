"""
Test suite for client configuration loading
"""

import json
import logging

import pytest

from cos_sdk import CosConfig, LoggingConfig, configure_logging, load_config
from cos_sdk.config import DEFAULT_STS_ENDPOINT
from cos_sdk.exceptions import ConfigurationError

BASE_CONFIG = {
    'secret_id': 'AKIDconfig',
    'secret_key': 'config-secret',
    'region': 'ap-guangzhou',
    'bucket': 'examplebucket-1250000000',
}


class TestCosConfig:
    """Test configuration values and derived URLs"""

    def test_from_dict_defaults(self):
        """Test defaults for optional fields"""
        config = CosConfig.from_dict(BASE_CONFIG)

        assert config.timeout == 30
        assert config.use_https is True
        assert config.retry_attempts == 3
        assert config.sts_endpoint == DEFAULT_STS_ENDPOINT
        assert config.signing.window_seconds == 3600
        assert config.logging.level == "WARNING"

    def test_urls(self):
        """Test bucket and service URLs"""
        config = CosConfig.from_dict(BASE_CONFIG)

        assert config.app_id == "1250000000"
        assert config.bucket_host() == "examplebucket-1250000000.cos.ap-guangzhou.myqcloud.com"
        assert config.bucket_url() == "https://examplebucket-1250000000.cos.ap-guangzhou.myqcloud.com"
        assert config.service_url() == "https://cos.ap-guangzhou.myqcloud.com"
        assert config.sts_url() == "https://sts.tencentcloudapi.com"

    def test_http_and_domain(self):
        """Test plain HTTP and custom domains"""
        config = CosConfig.from_dict({**BASE_CONFIG, 'use_https': False, 'domain': 'static.example.com'})
        assert config.bucket_url() == "http://static.example.com"

    def test_credentials(self):
        """Test credential material from configuration"""
        credentials = CosConfig.from_dict({**BASE_CONFIG, 'session_token': 'tok'}).credentials()
        assert credentials.secret_id == 'AKIDconfig'
        assert credentials.session_token == 'tok'

    def test_repr_hides_secrets(self):
        """Test secrets stay out of repr"""
        text = repr(CosConfig.from_dict({**BASE_CONFIG, 'session_token': 'tok-secret'}))
        assert 'AKIDconfig' in text
        assert 'config-secret' not in text
        assert 'tok-secret' not in text

    def test_signing_section(self):
        """Test profile and overrides in the signing section"""
        config = CosConfig.from_dict({
            **BASE_CONFIG,
            'signing': {'profile': 'strict', 'window_seconds': 120, 'log_canonical_requests': True},
        })
        assert config.signing.signed_headers == ['*']
        assert config.signing.window_seconds == 120
        assert config.signing.log_canonical_requests is True

    def test_invalid_signing_section(self):
        """Test invalid signing settings"""
        with pytest.raises(ConfigurationError):
            CosConfig.from_dict({**BASE_CONFIG, 'signing': {'profile': 'unknown'}})

        with pytest.raises(ConfigurationError):
            CosConfig.from_dict({**BASE_CONFIG, 'signing': {'window_seconds': 0}})

    @pytest.mark.parametrize("field", ['secret_id', 'secret_key', 'region', 'bucket'])
    def test_empty_required_field(self, field):
        """Test empty required fields"""
        with pytest.raises(ConfigurationError) as exc_info:
            CosConfig.from_dict({**BASE_CONFIG, field: ''})
        assert exc_info.value.error_code == f"MISSING_{field.upper()}"

    def test_missing_required_field(self):
        """Test absent required fields"""
        data = dict(BASE_CONFIG)
        del data['region']
        with pytest.raises(ConfigurationError) as exc_info:
            CosConfig.from_dict(data)
        assert exc_info.value.error_code == "INVALID_FORMAT"
        assert exc_info.value.details['field'] == 'region'

    def test_invalid_values(self):
        """Test range checks"""
        with pytest.raises(ConfigurationError):
            CosConfig.from_dict({**BASE_CONFIG, 'timeout': 0})

        with pytest.raises(ConfigurationError):
            CosConfig.from_dict({**BASE_CONFIG, 'retry_attempts': -1})

        with pytest.raises(ConfigurationError):
            CosConfig.from_dict({**BASE_CONFIG, 'logging': {'level': 'LOUD'}})

        with pytest.raises(ConfigurationError) as exc_info:
            CosConfig.from_dict({**BASE_CONFIG, 'logging': {'colour': True}})
        assert exc_info.value.error_code == "INVALID_FORMAT"


class TestConfigLoading:
    """Test JSON, file and environment loading"""

    def test_from_json(self):
        """Test JSON documents"""
        config = CosConfig.from_json(json.dumps({**BASE_CONFIG, 'logging': {'level': 'debug'}}))
        assert config.logging.level == "DEBUG"

    def test_from_json_invalid(self):
        """Test malformed JSON"""
        with pytest.raises(ConfigurationError) as exc_info:
            CosConfig.from_json("{not json")
        assert exc_info.value.error_code == "PARSE_ERROR"

        with pytest.raises(ConfigurationError) as exc_info:
            CosConfig.from_json("[1, 2]")
        assert exc_info.value.error_code == "INVALID_FORMAT"

    def test_from_file(self, tmp_path):
        """Test configuration files"""
        path = tmp_path / "cos.json"
        path.write_text(json.dumps(BASE_CONFIG), encoding='utf-8')

        assert CosConfig.from_file(path).bucket == 'examplebucket-1250000000'
        assert load_config(str(path)).region == 'ap-guangzhou'

    def test_from_file_missing(self, tmp_path):
        """Test unreadable files"""
        with pytest.raises(ConfigurationError) as exc_info:
            CosConfig.from_file(tmp_path / "missing.json")
        assert exc_info.value.error_code == "FILE_ERROR"

    def test_from_env(self):
        """Test environment variables and overrides"""
        environ = {
            'COS_SECRET_ID': 'AKIDenv',
            'COS_SECRET_KEY': 'env-secret',
            'COS_REGION': 'ap-chengdu',
            'COS_BUCKET': 'envbucket-1250000000',
            'COS_SESSION_TOKEN': 'env-token',
        }
        config = CosConfig.from_env(environ, region='ap-chongqing', timeout=None)

        assert config.secret_id == 'AKIDenv'
        assert config.region == 'ap-chongqing'
        assert config.timeout == 30
        assert config.session_token == 'env-token'
        assert load_config(environ=environ).region == 'ap-chengdu'

    def test_from_env_missing(self):
        """Test an empty environment"""
        with pytest.raises(ConfigurationError) as exc_info:
            CosConfig.from_env({})
        assert exc_info.value.error_code == "MISSING_SECRET_ID"


class TestLoggingConfig:
    """Test logging setup"""

    def test_level_normalized(self):
        """Test level names are upper-cased"""
        assert LoggingConfig("info").level == "INFO"

    def test_configure_logging(self):
        """Test only the package logger is configured"""
        logger = logging.getLogger("cos_sdk")
        handlers = list(logger.handlers)
        level = logger.level
        root_handlers = list(logging.getLogger().handlers)

        try:
            configured = configure_logging(LoggingConfig("DEBUG"))
            assert configured is logger
            assert logger.level == logging.DEBUG
            assert len(logger.handlers) >= 1

            count = len(logger.handlers)
            configure_logging(LoggingConfig("INFO"))
            assert len(logger.handlers) == count
            assert logger.level == logging.INFO
            assert logging.getLogger().handlers == root_handlers
        finally:
            logger.handlers = handlers
            logger.setLevel(level)
