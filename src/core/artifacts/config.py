"""
Artifact Storage Configuration

Centralized configuration for the artifact backends and their logging and
tracing, read from the environment (and a .env file when present).
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from ..observability.logging import log_level_is_valid

# Load environment variables from .env file
load_dotenv()

ACCESS_KEY_ENV = "ARTIFACT_S3_ACCESS_KEY_ID"
SECRET_KEY_ENV = "ARTIFACT_S3_SECRET_ACCESS_KEY"
REQUEST_TIMEOUT_ENV = "ARTIFACT_S3_REQUEST_TIMEOUT"

DEFAULT_REQUEST_TIMEOUT = 60.0
DEFAULT_STORAGE_PATH = "./.artifacts"

_BACKENDS = ("memory", "s3", "local")
_TRUE_VALUES = ("1", "true", "yes", "on")


class ArtifactStorageConfig:
    """Configuration for the artifact storage layer."""

    def __init__(self) -> None:
        # Backend selection
        self.BACKEND: str = os.getenv("ARTIFACT_STORAGE_BACKEND", "memory").strip().lower()

        # Local filesystem backend
        self.STORAGE_PATH: Path = Path(os.getenv("ARTIFACT_STORAGE_PATH", DEFAULT_STORAGE_PATH))

        # S3-compatible backend
        self.S3_BUCKET: Optional[str] = os.getenv("ARTIFACT_S3_BUCKET") or None
        self.S3_ENDPOINT_URL: Optional[str] = os.getenv("ARTIFACT_S3_ENDPOINT_URL") or None
        self.S3_REGION: str = os.getenv("ARTIFACT_S3_REGION", "us-east-1")
        self.S3_ACCESS_KEY_ID: Optional[str] = os.getenv(ACCESS_KEY_ENV) or None
        self.S3_SECRET_ACCESS_KEY: Optional[str] = os.getenv(SECRET_KEY_ENV) or None

        # Unparseable values keep the default; validate() reports them
        self._raw_request_timeout: Optional[str] = os.getenv(REQUEST_TIMEOUT_ENV) or None
        self.S3_REQUEST_TIMEOUT: float = DEFAULT_REQUEST_TIMEOUT
        if self._raw_request_timeout is not None:
            try:
                self.S3_REQUEST_TIMEOUT = float(self._raw_request_timeout)
            except ValueError:
                pass
            else:
                self._raw_request_timeout = None

        # Logging and tracing
        self.LOG_LEVEL: str = os.getenv("ARTIFACT_LOG_LEVEL", "INFO").strip().upper()
        self.LOG_JSON: bool = os.getenv("ARTIFACT_LOG_JSON", "true").strip().lower() in _TRUE_VALUES
        self.OTLP_ENDPOINT: Optional[str] = os.getenv("ARTIFACT_OTLP_ENDPOINT") or None

    @classmethod
    def from_env(cls) -> "ArtifactStorageConfig":
        """Build a config from the current environment."""
        return cls()

    def validate(self) -> List[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if self.BACKEND not in _BACKENDS:
            issues.append(
                f"ERROR: Unknown backend '{self.BACKEND}' (ARTIFACT_STORAGE_BACKEND), "
                f"expected one of {', '.join(_BACKENDS)}"
            )

        if self.BACKEND == "s3":
            if not self.S3_BUCKET:
                issues.append("ERROR: No bucket configured (ARTIFACT_S3_BUCKET)")
            if not (self.S3_ACCESS_KEY_ID and self.S3_SECRET_ACCESS_KEY):
                issues.append(
                    f"WARNING: No credentials configured ({ACCESS_KEY_ENV}, {SECRET_KEY_ENV}); "
                    "falling back to the default boto3 credential chain"
                )

        if self._raw_request_timeout is not None:
            issues.append(
                f"WARNING: {REQUEST_TIMEOUT_ENV}='{self._raw_request_timeout}' is not a number; "
                f"using {DEFAULT_REQUEST_TIMEOUT:g}s"
            )
        elif self.S3_REQUEST_TIMEOUT <= 0:
            issues.append(f"ERROR: {REQUEST_TIMEOUT_ENV} must be positive")

        if not log_level_is_valid(self.LOG_LEVEL):
            issues.append(f"WARNING: Unknown log level '{self.LOG_LEVEL}' (ARTIFACT_LOG_LEVEL); using INFO")

        return issues
