"""
Unit tests for configuration loader (schedule_board/config/settings.py)

Tests covering:
- YAML loading and schema validation
- Environment overrides
- API token resolution (env, local secrets file, Secrets Manager)
- SecretRedactionFilter for logging
"""

import json
import logging

import boto3
import pytest
from moto import mock_aws

from schedule_board.config.settings import (
    ConfigurationError,
    SecretRedactionFilter,
    Settings,
    setup_logging_redaction,
)

SECRET_ID = "schedule-board/api-credentials"

BASE_CONFIG = """
api:
  base_url: "https://api.example.test/api/v1"
  timeout_seconds: 7
board:
  timezone: "Europe/London"
  max_sessions_per_cell: 4
"""

CONFIG_WITH_SECRET = BASE_CONFIG.replace(
    "timeout_seconds: 7", f'timeout_seconds: 7\n  token_secret_id: "{SECRET_ID}"'
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep configuration-related environment variables out of every test."""
    for key in (
        "SCHEDULE_API_BASE_URL",
        "SCHEDULE_API_TOKEN",
        "SCHEDULE_BOARD_TIMEZONE",
        "SCHEDULE_BOARD_CONFIG",
        "USE_LOCAL_SECRETS_FILE",
        "LOCAL_SECRETS_FILE_PATH",
        "AWS_REGION",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fixture for AWS credentials."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-west-2")


@pytest.fixture
def config_file(tmp_path):
    def write(text=BASE_CONFIG):
        path = tmp_path / "board.yaml"
        path.write_text(text, encoding="utf-8")
        return str(path)

    return write


class TestLoading:
    def test_loads_values_and_defaults(self, config_file):
        settings = Settings(config_path=config_file())

        assert settings.api_base_url == "https://api.example.test/api/v1"
        assert settings.api_timeout_seconds == 7
        assert settings.max_sessions_per_cell == 4
        assert settings.max_range_days == 93
        assert settings.booking_status_filter == "confirmed"
        assert settings.booking_fetch_limit == 1000
        assert settings.token_secret_id is None

    def test_repository_config_is_valid(self):
        """Test: The shipped config/board.yaml passes its own schema"""
        settings = Settings()
        assert settings.max_sessions_per_cell == 5
        assert settings.timezone == "Europe/London"

    def test_config_path_from_env(self, config_file, monkeypatch):
        monkeypatch.setenv("SCHEDULE_BOARD_CONFIG", config_file())
        assert Settings().api_timeout_seconds == 7

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            Settings(config_path=str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, config_file):
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            Settings(config_path=config_file("api: [unclosed"))

    def test_empty_file(self, config_file):
        with pytest.raises(ConfigurationError, match="Empty"):
            Settings(config_path=config_file(""))

    def test_schema_violation(self, config_file):
        bad = BASE_CONFIG.replace("max_sessions_per_cell: 4", "max_sessions_per_cell: 0")
        with pytest.raises(ConfigurationError, match="validation failed"):
            Settings(config_path=config_file(bad))

    def test_missing_base_url(self, config_file):
        with pytest.raises(ConfigurationError):
            Settings(config_path=config_file("api:\n  timeout_seconds: 5\n"))

    def test_unknown_timezone(self, config_file):
        bad = BASE_CONFIG.replace("Europe/London", "Mars/Olympus_Mons")
        with pytest.raises(ConfigurationError, match="timezone"):
            Settings(config_path=config_file(bad))


class TestEnvOverrides:
    def test_base_url_and_timezone(self, config_file, monkeypatch):
        monkeypatch.setenv("SCHEDULE_API_BASE_URL", "https://override.test/api")
        monkeypatch.setenv("SCHEDULE_BOARD_TIMEZONE", "America/New_York")

        settings = Settings(config_path=config_file())

        assert settings.api_base_url == "https://override.test/api"
        assert settings.timezone == "America/New_York"


class TestTokenResolution:
    def test_env_token_wins(self, config_file, monkeypatch):
        monkeypatch.setenv("SCHEDULE_API_TOKEN", "env-token")
        assert Settings(config_path=config_file()).get_api_token() == "env-token"

    def test_no_sources_means_no_token(self, config_file):
        assert Settings(config_path=config_file()).get_api_token() is None

    def test_local_secrets_file(self, config_file, tmp_path, monkeypatch):
        secrets_path = tmp_path / "secrets.json"
        secrets_path.write_text(json.dumps({"schedule_api": {"api_token": "local-token"}}))
        monkeypatch.setenv("USE_LOCAL_SECRETS_FILE", "true")
        monkeypatch.setenv("LOCAL_SECRETS_FILE_PATH", str(secrets_path))

        assert Settings(config_path=config_file()).get_api_token() == "local-token"

    def test_local_secrets_file_missing(self, config_file, tmp_path, monkeypatch):
        monkeypatch.setenv("USE_LOCAL_SECRETS_FILE", "true")
        monkeypatch.setenv("LOCAL_SECRETS_FILE_PATH", str(tmp_path / "nope.json"))

        with pytest.raises(RuntimeError, match="Local secrets file not found"):
            Settings(config_path=config_file()).get_api_token()

    @mock_aws
    def test_secrets_manager_token(self, config_file, aws_credentials):
        client = boto3.client("secretsmanager", region_name="eu-west-2")
        client.create_secret(Name=SECRET_ID, SecretString=json.dumps({"api_token": "sm-token"}))

        settings = Settings(config_path=config_file(CONFIG_WITH_SECRET))

        assert settings.get_api_token() == "sm-token"
        assert settings.get_api_token() == "sm-token"

    @mock_aws
    def test_secret_not_found(self, config_file, aws_credentials):
        settings = Settings(config_path=config_file())
        with pytest.raises(RuntimeError, match="not found"):
            settings._get_secret_value("missing-secret")

    @mock_aws
    def test_secret_invalid_json(self, config_file, aws_credentials):
        client = boto3.client("secretsmanager", region_name="eu-west-2")
        client.create_secret(Name="bad-secret", SecretString="not-json-{invalid}")

        settings = Settings(config_path=config_file())
        with pytest.raises(RuntimeError, match="invalid JSON"):
            settings._get_secret_value("bad-secret")

    @mock_aws
    def test_secret_missing_token_key(self, config_file, aws_credentials):
        client = boto3.client("secretsmanager", region_name="eu-west-2")
        client.create_secret(Name=SECRET_ID, SecretString=json.dumps({"other": "value"}))

        settings = Settings(config_path=config_file(CONFIG_WITH_SECRET))
        with pytest.raises(RuntimeError, match="missing required key"):
            settings.get_api_token()


class TestSecretRedactionFilter:
    def test_redacts_message(self):
        filter_obj = SecretRedactionFilter({"api_token": "secret-token-123"})
        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname="",
            lineno=0,
            msg="Calling API with secret-token-123",
            args=(),
            exc_info=None,
        )
        assert filter_obj.filter(record) is True
        assert "secret-token-123" not in record.msg
        assert "***REDACTED***" in record.msg

    def test_redacts_args(self):
        filter_obj = SecretRedactionFilter({"api_token": "key123"})
        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname="",
            lineno=0,
            msg="Token %s",
            args=("key123",),
            exc_info=None,
        )
        filter_obj.filter(record)
        assert record.args[0] == "***REDACTED***"

    def test_short_values_ignored(self):
        assert SecretRedactionFilter({"x": "abc"}).redacted_values == set()

    def test_setup_logging_redaction_installs_on_root(self, config_file, monkeypatch):
        monkeypatch.setenv("SCHEDULE_API_TOKEN", "root-token-999")
        root = logging.getLogger()
        installed = setup_logging_redaction(Settings(config_path=config_file()))
        try:
            assert installed in root.filters
            assert "root-token-999" in installed.redacted_values
        finally:
            root.removeFilter(installed)
            for handler in root.handlers:
                handler.removeFilter(installed)
