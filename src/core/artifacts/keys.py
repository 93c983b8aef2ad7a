"""
Artifact Key Builder

Derives backend addresses from tenant context and filename.

Key Convention:
    Session-scoped:  {app_name}/{user_id}/{session_id}/{filename}
    User namespace:  {app_name}/{user_id}/user/{filename}

Object names append the decimal version:
    {artifact_path}/{version}

Filenames starting with "user:" live in the user namespace and are shared by
every session of that user. The filename is used verbatim in both forms; the
marker is not stripped. Objects written by other tools rely on this layout,
so it must not change.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .base import SessionInfo

USER_NAMESPACE_MARKER = "user:"


def has_user_namespace(filename: str) -> bool:
    """Return True if the filename belongs to the user namespace."""
    return filename.startswith(USER_NAMESPACE_MARKER)


def build_session_prefix(session_info: "SessionInfo") -> str:
    """Prefix of every session-scoped artifact: {app}/{user}/{session}/"""
    return f"{session_info.app_name}/{session_info.user_id}/{session_info.session_id}/"


def build_user_namespace_prefix(session_info: "SessionInfo") -> str:
    """Prefix of every user-namespaced artifact: {app}/{user}/user/"""
    return f"{session_info.app_name}/{session_info.user_id}/user/"


def build_artifact_path(session_info: "SessionInfo", filename: str) -> str:
    """Build the artifact path for a filename in the given session."""
    if has_user_namespace(filename):
        return build_user_namespace_prefix(session_info) + filename
    return build_session_prefix(session_info) + filename


def build_object_name(session_info: "SessionInfo", filename: str, version: int) -> str:
    """Build the object name addressing one version of an artifact."""
    return f"{build_artifact_path(session_info, filename)}/{version}"


def build_object_name_prefix(session_info: "SessionInfo", filename: str) -> str:
    """Build the prefix under which all versions of an artifact are stored."""
    return build_artifact_path(session_info, filename) + "/"


def parse_version(object_name: str) -> Optional[int]:
    """
    Extract the version from an object name.

    Returns None when the trailing segment is not a decimal integer, so
    foreign objects under an artifact prefix are ignored.
    """
    segment = object_name.rsplit("/", 1)[-1]
    if not (segment.isascii() and segment.isdigit()):
        return None
    return int(segment)


def filename_from_object_name(object_name: str) -> Optional[str]:
    """
    Extract the filename from an object name.

    The filename is the segment immediately preceding the version. Keys with
    fewer than four segments cannot be artifact objects.
    """
    parts = object_name.split("/")
    if len(parts) < 4:
        return None
    return parts[-2]
