"""
Configuration loader for the schedule board.

Reads config/board.yaml (validated against config/board.schema.json), applies
environment overrides and resolves the API bearer token from the environment,
a local secrets file or AWS Secrets Manager, with exponential backoff and
logging redaction.
"""

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

import boto3
import jsonschema
import pytz
import yaml
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

_REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = _REPO_ROOT / "config" / "board.yaml"
DEFAULT_SCHEMA_PATH = _REPO_ROOT / "config" / "board.schema.json"

DEFAULT_REGION = "eu-west-2"
DEFAULT_LOCAL_SECRETS_FILE = ".local/secrets.json"
LOCAL_SECRETS_SECTION = "schedule_api"
TOKEN_KEY = "api_token"  # nosec B105

DEFAULTS: Dict[str, Any] = {
    "api": {"timeout_seconds": 10},
    "board": {
        "timezone": "Europe/London",
        "max_sessions_per_cell": 5,
        "max_range_days": 93,
        "booking_status_filter": "confirmed",
        "booking_fetch_limit": 1000,
    },
}


class ConfigurationError(Exception):
    """Exception raised for configuration-related errors."""

    pass


def _use_local_secrets() -> bool:
    return os.getenv("USE_LOCAL_SECRETS_FILE", "false").lower() == "true"


def _local_secrets_path() -> str:
    return os.getenv("LOCAL_SECRETS_FILE_PATH", DEFAULT_LOCAL_SECRETS_FILE)


class SecretRedactionFilter(logging.Filter):
    """
    Logging filter that redacts secret values from log records.
    Replaces secret substrings with ***REDACTED*** to prevent accidental leakage.
    """

    def __init__(self, secrets: Optional[Dict[str, Any]] = None):
        super().__init__()
        self.secrets = secrets or {}
        self.redacted_values: set = set()
        if self.secrets:
            self._extract_secret_values(self.secrets)

    def _extract_secret_values(self, obj: Any, max_depth: int = 5) -> None:
        """Recursively extract all secret values from nested structures."""
        if max_depth <= 0:
            return

        if isinstance(obj, dict):
            for value in obj.values():
                self._extract_secret_values(value, max_depth - 1)
        elif isinstance(obj, (list, tuple)):
            for item in obj:
                self._extract_secret_values(item, max_depth - 1)
        elif isinstance(obj, str) and len(obj) > 3:
            self.redacted_values.add(obj)

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self._redact_string(str(record.msg))
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._redact_string(str(v)) for k, v in record.args.items()}
            elif isinstance(record.args, (list, tuple)):
                record.args = tuple(self._redact_string(str(arg)) for arg in record.args)
        return True

    def _redact_string(self, text: str) -> str:
        for secret in self.redacted_values:
            if secret in text:
                text = text.replace(secret, "***REDACTED***")
        return text


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Settings:
    """
    Board configuration.

    Environment overrides:
        SCHEDULE_BOARD_CONFIG: Path of the YAML config file
        SCHEDULE_API_BASE_URL: Overrides api.base_url
        SCHEDULE_BOARD_TIMEZONE: Overrides board.timezone
        SCHEDULE_API_TOKEN: Bearer token; skips secret lookups entirely
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        schema_path: Optional[str] = None,
        region_name: Optional[str] = None,
    ):
        """
        Load and validate configuration.

        Raises:
            ConfigurationError: If the file is missing, unparseable or invalid
        """
        self.config_path = Path(
            config_path or os.getenv("SCHEDULE_BOARD_CONFIG") or DEFAULT_CONFIG_PATH
        )
        self.schema_path = Path(schema_path or DEFAULT_SCHEMA_PATH)
        self.region_name = (
            region_name
            or os.getenv("AWS_REGION")
            or os.getenv("AWS_DEFAULT_REGION")
            or DEFAULT_REGION
        )
        self.secrets_client = None
        self._token_cache: Optional[str] = None
        self._token_resolved = False

        self.config = self._load_config()
        self._apply_env_overrides()
        self._validate_timezone()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load_config(self) -> Dict[str, Any]:
        try:
            with open(self.schema_path, "r", encoding="utf-8") as f:
                schema = json.load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(f"Config schema file not found: {self.schema_path}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {self.schema_path}: {e}") from e

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(f"Configuration file not found: {self.config_path}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e

        if raw is None:
            raise ConfigurationError(f"Empty configuration: {self.config_path}")

        try:
            jsonschema.validate(instance=raw, schema=schema)
        except jsonschema.ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e.message}") from e
        except jsonschema.SchemaError as e:
            raise ConfigurationError(f"Configuration schema is invalid: {e.message}") from e

        logger.info(f"Loaded board configuration from {self.config_path}")
        return _merge(DEFAULTS, raw)

    def _apply_env_overrides(self) -> None:
        base_url = os.getenv("SCHEDULE_API_BASE_URL")
        if base_url:
            self.config["api"]["base_url"] = base_url
        tz_name = os.getenv("SCHEDULE_BOARD_TIMEZONE")
        if tz_name:
            self.config["board"]["timezone"] = tz_name

    def _validate_timezone(self) -> None:
        try:
            pytz.timezone(self.timezone)
        except pytz.UnknownTimeZoneError as e:
            raise ConfigurationError(f"Unknown board timezone: {self.timezone}") from e

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    @property
    def api_base_url(self) -> str:
        return self.config["api"]["base_url"]

    @property
    def api_timeout_seconds(self) -> float:
        return self.config["api"]["timeout_seconds"]

    @property
    def token_secret_id(self) -> Optional[str]:
        return self.config["api"].get("token_secret_id")

    @property
    def timezone(self) -> str:
        return self.config["board"]["timezone"]

    @property
    def max_sessions_per_cell(self) -> int:
        return self.config["board"]["max_sessions_per_cell"]

    @property
    def max_range_days(self) -> int:
        return self.config["board"]["max_range_days"]

    @property
    def booking_status_filter(self) -> str:
        return self.config["board"]["booking_status_filter"]

    @property
    def booking_fetch_limit(self) -> int:
        return self.config["board"]["booking_fetch_limit"]

    # ------------------------------------------------------------------
    # Secrets
    # ------------------------------------------------------------------

    def get_api_token(self) -> Optional[str]:
        """
        Resolve the API bearer token.

        Order: SCHEDULE_API_TOKEN, then the local secrets file when
        USE_LOCAL_SECRETS_FILE=true, then Secrets Manager when
        api.token_secret_id is configured. Returns None if none apply.

        Raises:
            RuntimeError: If a configured source cannot supply the token
        """
        if self._token_resolved:
            return self._token_cache

        token = os.getenv("SCHEDULE_API_TOKEN")
        if not token and _use_local_secrets():
            section = self._load_from_local_file(_local_secrets_path()).get(LOCAL_SECRETS_SECTION, {})
            token = section.get(TOKEN_KEY)
            if not token:
                raise RuntimeError(
                    f"Local secrets file has no '{LOCAL_SECRETS_SECTION}.{TOKEN_KEY}' entry"
                )
        if not token and self.token_secret_id:
            secret = self._get_secret_value(self.token_secret_id)
            token = secret.get(TOKEN_KEY)
            if not token:
                raise RuntimeError(
                    f"Secret '{self.token_secret_id}' missing required key '{TOKEN_KEY}'. "
                    f"Got: {sorted(secret.keys())}"
                )

        self._token_cache = token or None
        self._token_resolved = True
        return self._token_cache

    def _get_secrets_client(self):
        """Lazy initialize Secrets Manager client."""
        if self.secrets_client is None:
            self.secrets_client = boto3.client("secretsmanager", region_name=self.region_name)
        return self.secrets_client

    def _get_secret_value(
        self, secret_id: str, max_retries: int = 3, base_wait: float = 1.0
    ) -> Dict[str, Any]:
        """
        Fetch secret from Secrets Manager with exponential backoff.

        Args:
            secret_id: Secret identifier in Secrets Manager
            max_retries: Maximum number of retry attempts
            base_wait: Base wait time in seconds for exponential backoff

        Returns:
            Parsed secret JSON as dictionary

        Raises:
            RuntimeError: If secret cannot be retrieved after retries
        """
        client = self._get_secrets_client()

        for attempt in range(max_retries):
            try:
                response = client.get_secret_value(SecretId=secret_id)
                secret_string = response.get("SecretString")
                if not secret_string:
                    raise RuntimeError(f"Secret '{secret_id}' has empty value")
                return json.loads(secret_string)
            except ClientError as e:
                error_code = e.response["Error"]["Code"]
                if error_code == "ResourceNotFoundException":
                    raise RuntimeError(
                        f"Secret '{secret_id}' not found in Secrets Manager. "
                        f"Please verify the secret exists in region {self.region_name}"
                    ) from e
                elif error_code in ["AccessDeniedException", "UnauthorizedOperation"]:
                    raise RuntimeError(
                        f"Access denied to secret '{secret_id}'. "
                        f"Verify the board's role has secretsmanager:GetSecretValue permission"
                    ) from e
                elif error_code == "DecryptionFailure":
                    raise RuntimeError(
                        f"Failed to decrypt secret '{secret_id}'. Verify KMS key permissions"
                    ) from e
                elif attempt < max_retries - 1:
                    wait_time = base_wait * (2**attempt)
                    logger.warning(
                        f"Transient error fetching secret {secret_id}: {error_code}. "
                        f"Retrying in {wait_time}s (attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(wait_time)
                else:
                    raise RuntimeError(
                        f"Failed to retrieve secret '{secret_id}' after {max_retries} attempts: {error_code}"
                    ) from e
            except json.JSONDecodeError as e:
                raise RuntimeError(f"Secret '{secret_id}' contains invalid JSON: {str(e)}") from e

        raise RuntimeError(f"Failed to retrieve secret '{secret_id}' - exhausted all retry attempts")

    @staticmethod
    def _load_from_local_file(filepath: str) -> Dict[str, Any]:
        """
        Load secrets from local JSON file (for development/testing).

        Raises:
            RuntimeError: If file cannot be read or contains invalid JSON
        """
        try:
            with open(filepath, "r") as f:
                return json.load(f)
        except FileNotFoundError:
            raise RuntimeError(
                f"Local secrets file not found: {filepath}. "
                f"Use SCHEDULE_API_TOKEN, Secrets Manager, or set LOCAL_SECRETS_FILE_PATH"
            )
        except json.JSONDecodeError as e:
            raise RuntimeError(f"Local secrets file contains invalid JSON: {str(e)}")

    def setup_redaction_filter(self, logger_instance: logging.Logger) -> SecretRedactionFilter:
        """
        Attach a redaction filter for the API token to a logger and its handlers.

        A token that cannot be resolved leaves the filter empty.
        """
        secrets: Dict[str, Any] = {}
        try:
            token = self.get_api_token()
            if token:
                secrets[TOKEN_KEY] = token
        except RuntimeError as e:
            logger.warning(f"Redaction filter installed without token: {e}")

        redaction_filter = SecretRedactionFilter(secrets)
        logger_instance.addFilter(redaction_filter)
        for handler in logger_instance.handlers:
            handler.addFilter(redaction_filter)
        return redaction_filter


def setup_logging_redaction(settings: Optional[Settings] = None) -> SecretRedactionFilter:
    """
    Install token redaction on the root logger and on the board's own loggers.

    The board's structured loggers own their handlers, so the filter is added
    to those handlers as well.
    """
    settings = settings or Settings()
    redaction_filter = settings.setup_redaction_filter(logging.getLogger())
    for name, candidate in logging.Logger.manager.loggerDict.items():
        if name.startswith("schedule_board") and isinstance(candidate, logging.Logger):
            for handler in candidate.handlers:
                handler.addFilter(redaction_filter)
    return redaction_filter
