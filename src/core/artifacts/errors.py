"""
Artifact Service Exceptions

Error taxonomy shared by every artifact backend and the registry.

Absent data is never an exception: loading the latest version of a missing
artifact returns None, and deleting a missing artifact is a no-op.
"""

from typing import Optional


class ArtifactError(Exception):
    """Base exception for artifact service operations."""

    pass


class InvalidVersionError(ArtifactError):
    """
    An explicitly requested version does not exist.

    Raised only when the caller names a version; latest-version resolution
    of a missing artifact yields None instead.
    """

    def __init__(self, version: int, filename: Optional[str] = None):
        self.version = version
        self.filename = filename
        message = f"version {version} does not exist"
        if filename:
            message = f"{message} for artifact '{filename}'"
        super().__init__(message)


class BackendError(ArtifactError):
    """
    Transport or storage failure, wrapped with the operation that failed.

    The original exception is chained as __cause__.
    """

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        message = f"failed to {operation}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class ConfigurationError(ArtifactError):
    """Invalid backend configuration or client construction."""

    pass


class ObjectNotFoundError(ArtifactError):
    """Raised by object store clients when a named object does not exist."""

    def __init__(self, object_name: str):
        self.object_name = object_name
        super().__init__(f"object not found: {object_name}")


class RegistryError(ArtifactError):
    """Base exception for registry operations."""

    pass


class DuplicateServiceError(RegistryError):
    """A service is already registered under the given name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"artifact service '{name}' is already registered")


class ServiceNotFoundError(RegistryError):
    """No service is registered under the given name."""

    def __init__(self, name: Optional[str] = None):
        self.name = name
        if name is None:
            message = "no default artifact service is registered"
        else:
            message = f"artifact service '{name}' is not registered"
        super().__init__(message)
