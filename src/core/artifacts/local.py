"""
Local Filesystem Artifact Service

Artifact backend writing every version to the local filesystem, using the
same layout as the object store backend:

    {base_path}/
    └── {app_name}/
        └── {user_id}/
            ├── {session_id}/
            │   └── {filename}/
            │       ├── 0
            │       ├── 0.meta.json
            │       └── 1 ...
            └── user/
                └── user:{filename}/
                    └── 0 ...

Every segment of an artifact path must be a literal name: "", "." and ".."
segments are rejected, so a filename can never address a directory outside
its own tenant folder.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from .base import DEFAULT_MIME_TYPE, Artifact, ArtifactService, SessionInfo, StorageBackend
from .config import ArtifactStorageConfig
from .errors import ArtifactError, BackendError, InvalidVersionError
from .keys import (
    build_artifact_path,
    build_session_prefix,
    build_user_namespace_prefix,
    has_user_namespace,
    parse_version,
)
from .telemetry import artifact_span, log_extra

logger = logging.getLogger(__name__)

META_SUFFIX = ".meta.json"

_RESERVED_SEGMENTS = frozenset(("", ".", ".."))


class LocalFilesystemArtifactService(ArtifactService):
    """
    Local filesystem implementation of ArtifactService.

    Each version is a file named after its number, with a JSON sidecar
    holding the MIME type, display name and origin URL. Files are written to
    a temporary name and moved into place, so a version file is never seen
    half-written.

    Saves and deletes are serialized by a lock held by this instance.
    Several processes writing to the same base path are not coordinated.

    Filenames with "", "." or ".." path segments raise ArtifactError on every
    operation. The other backends store such names as opaque keys.

    Environment Variables:
        ARTIFACT_STORAGE_PATH: Base path for storage (default: ./.artifacts)
    """

    def __init__(
        self,
        base_path: Optional[Union[str, Path]] = None,
        *,
        create_dirs: bool = True,
    ):
        """
        Initialize local filesystem storage.

        Args:
            base_path: Base directory for storage. If not provided, uses
                       ARTIFACT_STORAGE_PATH.
            create_dirs: If True, create base directory if it doesn't exist.
        """
        if base_path is None:
            base_path = ArtifactStorageConfig.from_env().STORAGE_PATH

        self._base_path = Path(base_path).resolve()
        self._lock = threading.Lock()

        if create_dirs:
            self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def backend_type(self) -> StorageBackend:
        return StorageBackend.LOCAL

    @property
    def base_path(self) -> Path:
        """Get the base storage path."""
        return self._base_path

    def _resolve_dir(self, key: str) -> Path:
        """Resolve a key to a directory, refusing anything outside base_path."""
        if any(segment in _RESERVED_SEGMENTS for segment in key.split("/")):
            raise ArtifactError(f"Invalid artifact path: {key}")

        path = (self._base_path / key).resolve()
        if self._base_path not in path.parents:
            raise ArtifactError(f"Invalid artifact path: {key}")
        return path

    def _artifact_dir(self, session_info: SessionInfo, filename: str) -> Path:
        """Resolve the directory of an artifact, which must sit in its tenant folder."""
        if has_user_namespace(filename):
            prefix = build_user_namespace_prefix(session_info)
        else:
            prefix = build_session_prefix(session_info)

        tenant_root = self._resolve_dir(prefix.rstrip("/"))
        key = build_artifact_path(session_info, filename)
        directory = self._resolve_dir(key)
        # Symlinks inside the tree can still point elsewhere
        if tenant_root not in directory.parents:
            raise ArtifactError(f"Invalid artifact path: {key}")
        return directory

    @staticmethod
    def _versions_in(directory: Path) -> List[int]:
        if not directory.is_dir():
            return []
        versions = []
        for item in directory.iterdir():
            version = parse_version(item.name)
            if version is not None and item.is_file():
                versions.append(version)
        return sorted(versions)

    @staticmethod
    def _write_atomic(path: Path, content: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def save_artifact(
        self,
        session_info: SessionInfo,
        filename: str,
        artifact: Artifact,
    ) -> int:
        directory = self._artifact_dir(session_info, filename)
        meta = {
            "mime_type": artifact.mime_type or DEFAULT_MIME_TYPE,
            "name": artifact.name,
            "url": artifact.url,
        }

        with artifact_span(self.backend_type, "save_artifact", session_info, filename) as span:
            with self._lock:
                try:
                    directory.mkdir(parents=True, exist_ok=True)
                    versions = self._versions_in(directory)
                    version = versions[-1] + 1 if versions else 0

                    # Sidecar first: a visible version file always has its metadata
                    self._write_atomic(
                        directory / f"{version}{META_SUFFIX}",
                        json.dumps(meta).encode("utf-8"),
                    )
                    self._write_atomic(directory / str(version), artifact.data)
                except OSError as e:
                    logger.warning(
                        f"Writing artifact to {directory} failed: {e}",
                        extra=log_extra(session_info, filename),
                    )
                    raise BackendError("write artifact", e) from e
            span.set_attribute("artifact.version", version)

        logger.debug(
            f"Saved artifact ({artifact.size_bytes} bytes)",
            extra=log_extra(session_info, filename, version),
        )
        return version

    def load_artifact(
        self,
        session_info: SessionInfo,
        filename: str,
        version: Optional[int] = None,
    ) -> Optional[Artifact]:
        directory = self._artifact_dir(session_info, filename)

        with artifact_span(self.backend_type, "load_artifact", session_info, filename) as span:
            versions = self._versions_in(directory)
            latest_requested = version is None

            if version is None:
                if not versions:
                    return None
                version = versions[-1]
            elif version not in versions:
                raise InvalidVersionError(version, filename)
            span.set_attribute("artifact.version", version)

            data_path = directory / str(version)
            meta_path = directory / f"{version}{META_SUFFIX}"
            try:
                data = data_path.read_bytes()
                meta: Dict[str, Optional[str]] = {}
                if meta_path.exists():
                    meta = json.loads(meta_path.read_text(encoding="utf-8"))
            except FileNotFoundError:
                # Deleted between listing and reading
                if latest_requested:
                    return None
                raise InvalidVersionError(version, filename)
            except (OSError, ValueError) as e:
                raise BackendError("read artifact", e) from e

        return Artifact(
            data=data,
            mime_type=meta.get("mime_type") or DEFAULT_MIME_TYPE,
            name=meta.get("name") or filename,
            url=meta.get("url"),
        )

    def _filenames_under(self, prefix: str) -> List[str]:
        root = self._resolve_dir(prefix.rstrip("/"))
        if not root.is_dir():
            return []

        filenames = []
        for item in root.rglob("*"):
            if item.is_file() and parse_version(item.name) is not None:
                filenames.append(item.parent.relative_to(root).as_posix())
        return filenames

    def list_artifact_keys(self, session_info: SessionInfo) -> List[str]:
        with artifact_span(self.backend_type, "list_artifact_keys", session_info):
            try:
                filenames = set(self._filenames_under(build_session_prefix(session_info)))
                filenames.update(self._filenames_under(build_user_namespace_prefix(session_info)))
            except OSError as e:
                raise BackendError("list artifacts", e) from e
        return sorted(filenames)

    def delete_artifact(self, session_info: SessionInfo, filename: str) -> None:
        directory = self._artifact_dir(session_info, filename)

        with artifact_span(self.backend_type, "delete_artifact", session_info, filename) as span:
            with self._lock:
                versions = self._versions_in(directory)
                for version in versions:
                    for path in (directory / str(version), directory / f"{version}{META_SUFFIX}"):
                        try:
                            path.unlink()
                        except FileNotFoundError:
                            continue
                        except OSError as e:
                            raise BackendError(f"delete artifact version {version}", e) from e

                # Nested filenames may still live below this directory
                try:
                    directory.rmdir()
                except OSError:
                    pass
            span.set_attribute("artifact.deleted_versions", len(versions))

        if versions:
            logger.debug(
                f"Deleted artifact ({len(versions)} versions)",
                extra=log_extra(session_info, filename),
            )

    def list_versions(self, session_info: SessionInfo, filename: str) -> List[int]:
        directory = self._artifact_dir(session_info, filename)

        with artifact_span(self.backend_type, "list_versions", session_info, filename):
            return self._versions_in(directory)
