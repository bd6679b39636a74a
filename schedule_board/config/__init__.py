"""Board configuration."""

from .settings import ConfigurationError, SecretRedactionFilter, Settings, setup_logging_redaction

__all__ = ["ConfigurationError", "SecretRedactionFilter", "Settings", "setup_logging_redaction"]
