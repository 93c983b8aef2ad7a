"""
Artifact Service Factory

Builds artifact services from configuration, wires them into a registry and
sets up logging and tracing.

The in-memory backend is the default. Select another with
ARTIFACT_STORAGE_BACKEND ("local" or "s3") or by passing the backend name.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

from ..observability import configure_logging, init_tracing
from .base import ArtifactService, StorageBackend
from .config import ArtifactStorageConfig
from .errors import ConfigurationError
from .inmemory import InMemoryArtifactService
from .local import LocalFilesystemArtifactService
from .registry import ArtifactServiceRegistry, get_default_registry

logger = logging.getLogger(__name__)


def create_artifact_service(
    backend: Optional[Union[str, StorageBackend]] = None,
    *,
    config: Optional[ArtifactStorageConfig] = None,
    **kwargs: Any,
) -> ArtifactService:
    """
    Create an ArtifactService instance.

    Args:
        backend: Backend to use: "memory", "local" or "s3". If not provided,
                 uses ARTIFACT_STORAGE_BACKEND, defaulting to "memory".
        config: Configuration to read defaults from (default: environment).
        **kwargs: Backend-specific options, passed to the service constructor.

    Returns:
        ArtifactService instance

    Raises:
        ConfigurationError: If the backend name is unknown or its
                            configuration is incomplete.

    Examples:
        service = create_artifact_service()
        service = create_artifact_service("local", base_path="/tmp/artifacts")
        service = create_artifact_service("s3", bucket="my-bucket")
    """
    config = config or ArtifactStorageConfig.from_env()

    name = backend.value if isinstance(backend, StorageBackend) else (backend or config.BACKEND)
    try:
        backend_type = StorageBackend(name.strip().lower())
    except ValueError:
        raise ConfigurationError(
            f"Unknown artifact storage backend '{name}', expected one of "
            f"{', '.join(b.value for b in StorageBackend)}"
        ) from None

    if backend_type == StorageBackend.MEMORY:
        service: ArtifactService = InMemoryArtifactService()
    elif backend_type == StorageBackend.LOCAL:
        kwargs.setdefault("base_path", config.STORAGE_PATH)
        service = LocalFilesystemArtifactService(**kwargs)
    else:
        # Imported here so boto3 is only needed when S3 is used
        from .s3 import S3ArtifactService

        service = S3ArtifactService(config=config, **kwargs)

    logger.info(f"Created {type(service).__name__} ({backend_type.value})")
    return service


def configure_observability(config: Optional[ArtifactStorageConfig] = None) -> None:
    """
    Set up logging and tracing from configuration.

    Installs the artifact log handler at ARTIFACT_LOG_LEVEL (JSON lines unless
    ARTIFACT_LOG_JSON is false) and, when ARTIFACT_OTLP_ENDPOINT is set,
    exports traces to that OTLP collector.
    """
    config = config or ArtifactStorageConfig.from_env()

    configure_logging(level=config.LOG_LEVEL, structured=config.LOG_JSON)
    if config.OTLP_ENDPOINT:
        init_tracing(otlp_endpoint=config.OTLP_ENDPOINT)


def register_configured_service(
    registry: Optional[ArtifactServiceRegistry] = None,
    *,
    name: Optional[str] = None,
    config: Optional[ArtifactStorageConfig] = None,
    observability: bool = True,
) -> ArtifactService:
    """
    Create the configured backend and register it as the default.

    Args:
        registry: Registry to populate (default: the process-wide registry).
        name: Registry name (default: the backend name).
        config: Configuration to read (default: environment).
        observability: Also set up logging and tracing from the configuration.

    Returns:
        The registered service
    """
    registry = registry if registry is not None else get_default_registry()
    config = config or ArtifactStorageConfig.from_env()

    if observability:
        configure_observability(config)

    for issue in config.validate():
        logger.warning(f"Artifact storage config: {issue}")

    service = create_artifact_service(config=config)
    registry.register(name or service.backend_type.value, service, is_default=True)
    return service
