"""
In-Memory Artifact Service

Reference backend keeping every version in a process-local dictionary.
Intended for development and tests; nothing survives a restart.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Optional

from .base import Artifact, ArtifactService, SessionInfo, StorageBackend
from .errors import InvalidVersionError
from .keys import (
    build_artifact_path,
    build_session_prefix,
    build_user_namespace_prefix,
)
from .locks import ReadWriteLock
from .telemetry import artifact_span, log_extra

logger = logging.getLogger(__name__)


class InMemoryArtifactService(ArtifactService):
    """
    In-memory implementation of ArtifactService.

    Artifacts are kept as:

        {artifact_path} -> [version 0, version 1, ...]

    so a version number is simply the list index.

    One readers-writer lock guards the whole mapping. Saves to different
    paths therefore serialize on the same lock: contention grows with total
    traffic rather than per-path traffic. Sharding the lock by path would lift
    this, but is not needed for a development backend.
    """

    def __init__(self) -> None:
        self._artifacts: Dict[str, List[Artifact]] = {}
        self._lock = ReadWriteLock()

    @property
    def backend_type(self) -> StorageBackend:
        return StorageBackend.MEMORY

    def save_artifact(
        self,
        session_info: SessionInfo,
        filename: str,
        artifact: Artifact,
    ) -> int:
        """Append the artifact to the version list of its path."""
        path = build_artifact_path(session_info, filename)
        snapshot = replace(artifact)

        with artifact_span(self.backend_type, "save_artifact", session_info, filename) as span:
            with self._lock.write_locked():
                versions = self._artifacts.setdefault(path, [])
                versions.append(snapshot)
                version = len(versions) - 1
            span.set_attribute("artifact.version", version)

        logger.debug(
            f"Saved artifact ({snapshot.size_bytes} bytes)",
            extra=log_extra(session_info, filename, version),
        )
        return version

    def load_artifact(
        self,
        session_info: SessionInfo,
        filename: str,
        version: Optional[int] = None,
    ) -> Optional[Artifact]:
        path = build_artifact_path(session_info, filename)

        with artifact_span(self.backend_type, "load_artifact", session_info, filename):
            with self._lock.read_locked():
                versions = self._artifacts.get(path)
                if not versions:
                    if version is None:
                        return None
                    raise InvalidVersionError(version, filename)

                if version is None:
                    return replace(versions[-1])

                if version < 0 or version >= len(versions):
                    raise InvalidVersionError(version, filename)
                return replace(versions[version])

    def list_artifact_keys(self, session_info: SessionInfo) -> List[str]:
        session_prefix = build_session_prefix(session_info)
        user_prefix = build_user_namespace_prefix(session_info)

        filenames = set()
        with artifact_span(self.backend_type, "list_artifact_keys", session_info):
            with self._lock.read_locked():
                for path in self._artifacts:
                    if path.startswith(session_prefix):
                        filenames.add(path[len(session_prefix):])
                    elif path.startswith(user_prefix):
                        filenames.add(path[len(user_prefix):])

        return sorted(filenames)

    def delete_artifact(self, session_info: SessionInfo, filename: str) -> None:
        path = build_artifact_path(session_info, filename)

        with artifact_span(self.backend_type, "delete_artifact", session_info, filename) as span:
            with self._lock.write_locked():
                removed = self._artifacts.pop(path, None)
            span.set_attribute("artifact.deleted_versions", len(removed or ()))

        if removed is not None:
            logger.debug(
                f"Deleted artifact ({len(removed)} versions)",
                extra=log_extra(session_info, filename),
            )

    def list_versions(self, session_info: SessionInfo, filename: str) -> List[int]:
        path = build_artifact_path(session_info, filename)

        with artifact_span(self.backend_type, "list_versions", session_info, filename):
            with self._lock.read_locked():
                count = len(self._artifacts.get(path, ()))

        return list(range(count))
