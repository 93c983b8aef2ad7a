"""
Artifact Service Registry

Named catalog of artifact backends with one default selection.

A registry is an ordinary value: build it once at startup, register the
backends, and hand it to whatever needs artifact storage. For code that has no
registry passed in, get_default_registry() returns a process-wide instance.

Usage:
    registry = ArtifactServiceRegistry()
    registry.register("memory", InMemoryArtifactService())
    registry.register("s3", S3ArtifactService(bucket="artifacts"), is_default=True)

    service = registry.get_default()
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from .base import ArtifactService
from .errors import DuplicateServiceError, ServiceNotFoundError
from .locks import ReadWriteLock

logger = logging.getLogger(__name__)


class ArtifactServiceRegistry:
    """
    Thread-safe mapping of names to artifact services.

    The first service ever registered becomes the default, whatever its
    is_default flag says. While the registry is non-empty exactly one entry
    is the default; an empty registry has none.
    """

    def __init__(self) -> None:
        self._services: Dict[str, ArtifactService] = {}
        self._default: Optional[str] = None
        self._lock = ReadWriteLock()

    def register(self, name: str, service: ArtifactService, is_default: bool = False) -> None:
        """
        Register a service under a name.

        Raises:
            DuplicateServiceError: If the name is already registered
        """
        with self._lock.write_locked():
            if name in self._services:
                raise DuplicateServiceError(name)

            self._services[name] = service
            if self._default is None or is_default:
                self._default = name
            default = self._default

        logger.info(
            f"Registered artifact service '{name}' ({service.backend_type.value}), "
            f"default='{default}'"
        )

    def get(self, name: str) -> ArtifactService:
        """
        Get a service by name.

        Raises:
            ServiceNotFoundError: If the name is not registered
        """
        with self._lock.read_locked():
            service = self._services.get(name)
        if service is None:
            raise ServiceNotFoundError(name)
        return service

    def get_default(self) -> ArtifactService:
        """
        Get the default service.

        Raises:
            ServiceNotFoundError: If the registry is empty
        """
        with self._lock.read_locked():
            if self._default is None:
                raise ServiceNotFoundError()
            return self._services[self._default]

    @property
    def default_name(self) -> Optional[str]:
        """Name of the default service, or None if the registry is empty."""
        with self._lock.read_locked():
            return self._default

    def set_default(self, name: str) -> None:
        """
        Make a registered service the default.

        Raises:
            ServiceNotFoundError: If the name is not registered
        """
        with self._lock.write_locked():
            if name not in self._services:
                raise ServiceNotFoundError(name)
            self._default = name

        logger.info(f"Default artifact service set to '{name}'")

    def unregister(self, name: str) -> None:
        """
        Remove a service.

        If it was the default, one of the remaining services (no particular
        one) becomes the default; an emptied registry has no default.

        Raises:
            ServiceNotFoundError: If the name is not registered
        """
        with self._lock.write_locked():
            if name not in self._services:
                raise ServiceNotFoundError(name)

            del self._services[name]
            if self._default == name:
                self._default = next(iter(self._services), None)
            default = self._default

        logger.info(f"Unregistered artifact service '{name}', default='{default}'")

    def list(self) -> List[str]:
        """Names of all registered services, in no particular order."""
        with self._lock.read_locked():
            return list(self._services)

    def __contains__(self, name: object) -> bool:
        with self._lock.read_locked():
            return name in self._services

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._services)


# Process-wide instance, created on first use
_default_registry: Optional[ArtifactServiceRegistry] = None
_default_registry_lock = threading.Lock()


def get_default_registry() -> ArtifactServiceRegistry:
    """
    Get the process-wide registry.

    Prefer passing an ArtifactServiceRegistry explicitly; this accessor is for
    callers that cannot be given one.
    """
    global _default_registry
    with _default_registry_lock:
        if _default_registry is None:
            _default_registry = ArtifactServiceRegistry()
        return _default_registry


def reset_default_registry() -> None:
    """
    Drop the process-wide registry.

    Useful for testing or when configuration changes.
    """
    global _default_registry
    with _default_registry_lock:
        _default_registry = None
