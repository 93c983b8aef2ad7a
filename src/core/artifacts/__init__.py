# Artifact Service Layer
#
# Versioned artifact storage keyed by application / user / session:
# - InMemoryArtifactService (default, process-local)
# - LocalFilesystemArtifactService (files under a base directory)
# - S3ArtifactService (S3-compatible object storage)

from .base import Artifact, ArtifactService, SessionInfo, StorageBackend
from .errors import (
    ArtifactError,
    BackendError,
    ConfigurationError,
    DuplicateServiceError,
    InvalidVersionError,
    ObjectNotFoundError,
    RegistryError,
    ServiceNotFoundError,
)
from .inmemory import InMemoryArtifactService
from .local import LocalFilesystemArtifactService
from .registry import ArtifactServiceRegistry, get_default_registry, reset_default_registry
from .factory import configure_observability, create_artifact_service, register_configured_service

__all__ = [
    "Artifact",
    "ArtifactService",
    "SessionInfo",
    "StorageBackend",
    "ArtifactError",
    "BackendError",
    "ConfigurationError",
    "DuplicateServiceError",
    "InvalidVersionError",
    "ObjectNotFoundError",
    "RegistryError",
    "ServiceNotFoundError",
    "InMemoryArtifactService",
    "LocalFilesystemArtifactService",
    "ArtifactServiceRegistry",
    "get_default_registry",
    "reset_default_registry",
    "configure_observability",
    "create_artifact_service",
    "register_configured_service",
]
