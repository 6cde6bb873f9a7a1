# config.py
"""Lead generation worker configuration.

Settings are loaded from a ``.env`` file (if present) and then from
environment variables. Provider credentials and storage settings are
optional at load time; the components that need them raise ``ConfigError``
when they are used without them.
"""

import logging
import os
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


def _running_serverless() -> bool:
    """Check the environment for signs of a read-only serverless runtime."""
    return (
        bool(os.environ.get("VERCEL"))
        or bool(os.environ.get("VERCEL_ENV"))
        or bool(os.environ.get("AWS_LAMBDA_FUNCTION_NAME"))
        or os.getcwd() == "/var/task"
    )


class LeadgenConfig:
    """Lead generation configuration class that loads settings from environment variables."""

    def __init__(self):
        """Initialize the configuration with environment variables."""
        self.logger = logging.getLogger(__name__)

        # Application environment
        self.APP_ENV = self._get_required("APP_ENV", "dev")
        self.LOG_LEVEL = self._get_optional("LOG_LEVEL", "INFO")

        # Apollo people search
        self.APOLLO_API_KEY = self._get_optional("APOLLO_API_KEY").strip()
        self.APOLLO_BASE_URL = self._get_optional(
            "APOLLO_BASE_URL", "https://api.apollo.io/api/v1"
        ).rstrip("/")
        self.APOLLO_TIMEOUT_SECONDS = float(
            self._get_optional("APOLLO_TIMEOUT_SECONDS", "20")
        )
        self.APOLLO_MAX_RETRIES = self._get_int("APOLLO_MAX_RETRIES", 3)
        self.APOLLO_RETRY_DELAY_SECONDS = float(
            self._get_optional("APOLLO_RETRY_DELAY_SECONDS", "1.0")
        )

        # Worker limits
        self.LEADGEN_PER_PAGE = self._get_int("LEADGEN_PER_PAGE", 100)
        self.LEADGEN_TARGET_LEADS = self._get_int("LEADGEN_TARGET_LEADS", 100)
        self.LEADGEN_MAX_RUNTIME_MS = self._get_int("LEADGEN_MAX_RUNTIME_MS", 45000)
        self.LEADGEN_PREVIEW_SIZE = self._get_int("LEADGEN_PREVIEW_SIZE", 50)

        # S3-compatible object storage (MinIO)
        self.MINIO_ENDPOINT = self._normalize_endpoint(
            self._get_optional("MINIO_ENDPOINT")
        )
        self.MINIO_BUCKET = self._get_optional("MINIO_BUCKET").strip()
        self.MINIO_ACCESS_KEY = self._get_optional("MINIO_ACCESS_KEY").strip()
        self.MINIO_SECRET_KEY = self._get_optional("MINIO_SECRET_KEY").strip()
        self.MINIO_REGION = self._get_optional("MINIO_REGION", "us-east-1")
        self.MINIO_DEMO_PREFIX = self._get_optional("MINIO_DEMO_PREFIX").strip().strip("/")
        self.MINIO_LEADGEN_CSV_PREFIX = (
            self._get_optional("MINIO_LEADGEN_CSV_PREFIX").strip().strip("/")
        )
        self.PRESIGN_TTL_SECONDS = self._get_int("PRESIGN_TTL_SECONDS", 60 * 15)

        # Job store side-channel persistence, decided once here
        serverless = _running_serverless()
        if "JOB_STORE_PERSIST" in os.environ:
            self.JOB_STORE_PERSIST = self._get_bool("JOB_STORE_PERSIST")
        else:
            self.JOB_STORE_PERSIST = not serverless
        default_dir = (
            os.path.join("/tmp", ".leadgen-jobs")
            if serverless
            else os.path.join(os.getcwd(), ".leadgen-jobs")
        )
        self.JOB_STORE_DIR = self._get_optional("JOB_STORE_DIR", default_dir)

    def _get_required(self, name: str, default: Optional[str] = None) -> str:
        """Get a required configuration value from environment variables.

        Args:
            name: The name of the environment variable
            default: Optional default value if not found

        Returns:
            The value of the environment variable or default if provided

        Raises:
            ConfigError: If the environment variable is not found and no default is provided
        """
        if name in os.environ:
            return os.environ[name]
        if default is not None:
            self.logger.warning(
                "Environment variable %s not found, using default value", name
            )
            return default
        raise ConfigError(
            f"Environment variable {name} not found and no default provided"
        )

    def _get_optional(self, name: str, default: str = "") -> str:
        """Get an optional configuration value from environment variables.

        Args:
            name: The name of the environment variable
            default: Default value if not found (default: "")

        Returns:
            The value of the environment variable or the default value
        """
        if name in os.environ:
            return os.environ[name]
        return default

    def _get_bool(self, name: str) -> bool:
        """Get a boolean configuration value from environment variables.

        Returns:
            True if the environment variable exists and is set to 'true' or '1', False otherwise
        """
        return name in os.environ and os.environ[name].lower() in ["true", "1"]

    def _get_int(self, name: str, default: int) -> int:
        """Get an integer value, falling back to the default on bad input."""
        raw = self._get_optional(name)
        if not raw.strip():
            return default
        try:
            return int(raw)
        except ValueError:
            self.logger.warning(
                "Environment variable %s is not an integer (%r), using %d",
                name,
                raw,
                default,
            )
            return default

    @staticmethod
    def _normalize_endpoint(url: str) -> str:
        """Strip trailing slashes; return "" unless the value is an http(s) URL."""
        trimmed = (url or "").strip().rstrip("/")
        if not trimmed:
            return ""
        parsed = urlparse(trimmed)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return ""
        return trimmed

    def is_storage_configured(self) -> bool:
        """Check that every setting needed to reach object storage is present."""
        return bool(
            self.MINIO_ENDPOINT
            and self.MINIO_BUCKET
            and self.MINIO_ACCESS_KEY
            and self.MINIO_SECRET_KEY
        )

    def validate_for_search(self) -> None:
        """Validate configuration required for Apollo people search.

        Raises:
            ConfigError: If the Apollo API key is missing.
        """
        if not self.APOLLO_API_KEY:
            raise ConfigError("APOLLO_API_KEY is not set")

    def validate_for_storage(self) -> None:
        """Validate configuration required for object storage.

        Raises:
            ConfigError: If any storage setting is missing.
        """
        if not self.is_storage_configured():
            raise ConfigError(
                "Object storage is not configured. Set MINIO_ENDPOINT, "
                "MINIO_BUCKET, MINIO_ACCESS_KEY and MINIO_SECRET_KEY"
            )

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.APP_ENV.lower() in ["dev", "development"]


# Create a global instance of LeadgenConfig
config = LeadgenConfig()
