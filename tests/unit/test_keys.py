"""
Tests for artifact key derivation.
"""

import pytest

from core.artifacts import SessionInfo
from core.artifacts.keys import (
    USER_NAMESPACE_MARKER,
    build_artifact_path,
    build_object_name,
    build_object_name_prefix,
    build_session_prefix,
    build_user_namespace_prefix,
    filename_from_object_name,
    has_user_namespace,
    parse_version,
)


@pytest.fixture
def info():
    return SessionInfo(app_name="app", user_id="alice", session_id="s1")


class TestPrefixes:
    """Tests for session and user-namespace prefixes."""

    def test_session_prefix(self, info):
        assert build_session_prefix(info) == "app/alice/s1/"

    def test_user_namespace_prefix(self, info):
        assert build_user_namespace_prefix(info) == "app/alice/user/"

    def test_user_namespace_prefix_ignores_session(self, info):
        other = SessionInfo(app_name="app", user_id="alice", session_id="s2")
        assert build_user_namespace_prefix(info) == build_user_namespace_prefix(other)


class TestArtifactPath:
    """Tests for artifact paths and object names."""

    def test_marker(self):
        assert USER_NAMESPACE_MARKER == "user:"
        assert has_user_namespace("user:profile.txt") is True
        assert has_user_namespace("profile.txt") is False
        assert has_user_namespace("profile-user:.txt") is False

    def test_session_scoped_path(self, info):
        assert build_artifact_path(info, "report.pdf") == "app/alice/s1/report.pdf"

    def test_user_namespaced_path_keeps_marker(self, info):
        """The marker stays in the filename segment."""
        assert build_artifact_path(info, "user:profile.txt") == "app/alice/user/user:profile.txt"

    def test_object_name(self, info):
        assert build_object_name(info, "report.pdf", 0) == "app/alice/s1/report.pdf/0"
        assert build_object_name(info, "report.pdf", 12) == "app/alice/s1/report.pdf/12"
        assert build_object_name(info, "user:a.txt", 3) == "app/alice/user/user:a.txt/3"

    def test_object_name_prefix(self, info):
        assert build_object_name_prefix(info, "report.pdf") == "app/alice/s1/report.pdf/"
        assert build_object_name(info, "report.pdf", 7).startswith(
            build_object_name_prefix(info, "report.pdf")
        )


class TestParsing:
    """Tests for recovering versions and filenames from object names."""

    def test_parse_version(self):
        assert parse_version("app/alice/s1/report.pdf/0") == 0
        assert parse_version("app/alice/s1/report.pdf/42") == 42

    def test_parse_version_rejects_non_numeric(self):
        assert parse_version("app/alice/s1/report.pdf/latest") is None
        assert parse_version("app/alice/s1/report.pdf/-1") is None
        assert parse_version("app/alice/s1/report.pdf/") is None
        assert parse_version("app/alice/s1/report.pdf/0.meta.json") is None

    def test_filename_from_object_name(self):
        assert filename_from_object_name("app/alice/s1/report.pdf/0") == "report.pdf"
        assert filename_from_object_name("app/alice/user/user:a.txt/3") == "user:a.txt"

    def test_filename_from_short_key(self):
        assert filename_from_object_name("app/alice/0") is None
