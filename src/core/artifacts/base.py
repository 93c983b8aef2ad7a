"""
ArtifactService Abstract Base Class

Defines the tenant context, the artifact snapshot and the five-operation
contract every artifact backend implements.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union


DEFAULT_MIME_TYPE = "application/octet-stream"


class StorageBackend(str, Enum):
    """Supported artifact backend types."""

    MEMORY = "memory"
    S3 = "s3"
    LOCAL = "local"


@dataclass(frozen=True)
class SessionInfo:
    """Tenant context identifying one session of one user of an application."""

    app_name: str
    user_id: str
    session_id: str


@dataclass(frozen=True)
class Artifact:
    """
    A binary payload with its MIME type and display name.

    Artifacts are immutable snapshots. Payloads given as bytearray or
    memoryview are copied into bytes on construction, so a saved artifact
    never shares a buffer with the caller.
    """

    data: bytes
    mime_type: str = DEFAULT_MIME_TYPE
    name: str = ""
    url: Optional[str] = None

    def __post_init__(self) -> None:
        data: Union[bytes, bytearray, memoryview] = self.data
        if not isinstance(data, bytes):
            object.__setattr__(self, "data", bytes(data))

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (payload excluded) for logging or JSON."""
        return {
            "name": self.name,
            "mime_type": self.mime_type,
            "url": self.url,
            "size_bytes": self.size_bytes,
        }


class ArtifactService(ABC):
    """
    Abstract base class for artifact backends.

    All backends must provide these operations:
    - save_artifact: Store a new version, returning its number
    - load_artifact: Fetch a version (latest when version is None)
    - list_artifact_keys: Filenames visible to a session
    - delete_artifact: Remove every version of a filename
    - list_versions: Version numbers stored for a filename

    Versions start at 0 and increase by one per save. Only whole artifacts
    are deleted, so the stored versions always form the range 0..N-1.
    """

    @property
    @abstractmethod
    def backend_type(self) -> StorageBackend:
        """Return the storage backend type."""
        ...

    @abstractmethod
    def save_artifact(
        self,
        session_info: SessionInfo,
        filename: str,
        artifact: Artifact,
    ) -> int:
        """
        Store an artifact as the next version of a filename.

        Args:
            session_info: Tenant context
            filename: Artifact filename ("user:" prefix for the user namespace)
            artifact: Payload to store

        Returns:
            The version assigned to the stored artifact

        Raises:
            BackendError: If the backend fails
        """
        ...

    @abstractmethod
    def load_artifact(
        self,
        session_info: SessionInfo,
        filename: str,
        version: Optional[int] = None,
    ) -> Optional[Artifact]:
        """
        Load an artifact.

        Args:
            session_info: Tenant context
            filename: Artifact filename
            version: Version to load, or None for the latest

        Returns:
            The artifact, or None if nothing is stored under the filename

        Raises:
            InvalidVersionError: If an explicit version does not exist
            BackendError: If the backend fails
        """
        ...

    @abstractmethod
    def list_artifact_keys(self, session_info: SessionInfo) -> List[str]:
        """
        List filenames visible to a session.

        Returns:
            Sorted, de-duplicated session-scoped and user-namespaced filenames
        """
        ...

    @abstractmethod
    def delete_artifact(self, session_info: SessionInfo, filename: str) -> None:
        """
        Delete every version of an artifact.

        Deleting a filename that has no versions is not an error.
        """
        ...

    @abstractmethod
    def list_versions(self, session_info: SessionInfo, filename: str) -> List[int]:
        """
        List the versions stored for a filename.

        Returns:
            Version numbers, or an empty list if the filename is unknown
        """
        ...
