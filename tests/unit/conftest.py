"""
Unit Test Fixtures

Shared tenant contexts and an in-memory object store client for the S3
artifact service.
"""

from io import BytesIO
from typing import Dict, List, Optional, Tuple

import pytest

from core.artifacts import SessionInfo
from core.artifacts.errors import ObjectNotFoundError
from core.artifacts.s3 import S3ArtifactService


class FakeObjectStoreClient:
    """
    Dict-backed object store.

    Set `failures["put"]` (or "list", "get", "delete") to an exception to make
    the next calls of that primitive raise it. `timeouts` records the per-call
    timeout each primitive received.
    """

    def __init__(self):
        self.objects: Dict[str, Tuple[bytes, Optional[str]]] = {}
        self.failures: Dict[str, Exception] = {}
        self.calls: List[Tuple[str, str]] = []
        self.missing_on_delete: set = set()
        self.timeouts: List[Tuple[str, Optional[float]]] = []

    def _record(self, op: str, name: str, timeout: Optional[float]) -> None:
        self.calls.append((op, name))
        self.timeouts.append((op, timeout))
        if op in self.failures:
            raise self.failures[op]

    def list_objects(self, prefix: str, *, timeout: Optional[float] = None) -> List[str]:
        self._record("list", prefix, timeout)
        return sorted(name for name in self.objects if name.startswith(prefix))

    def put_object(
        self, name: str, data: bytes, content_type: str, *, timeout: Optional[float] = None
    ) -> None:
        self._record("put", name, timeout)
        self.objects[name] = (bytes(data), content_type)

    def get_object(self, name: str, *, timeout: Optional[float] = None):
        self._record("get", name, timeout)
        if name not in self.objects:
            raise ObjectNotFoundError(name)
        data, content_type = self.objects[name]
        headers = {"Content-Type": content_type} if content_type else {}
        return BytesIO(data), headers

    def delete_object(self, name: str, *, timeout: Optional[float] = None) -> None:
        self._record("delete", name, timeout)
        if name in self.missing_on_delete or name not in self.objects:
            self.objects.pop(name, None)
            raise ObjectNotFoundError(name)
        del self.objects[name]


@pytest.fixture
def session_info():
    """Tenant context used by most tests."""
    return SessionInfo(app_name="testapp", user_id="user123", session_id="session456")


@pytest.fixture
def other_session(session_info):
    """Another session of the same user."""
    return SessionInfo(
        app_name=session_info.app_name,
        user_id=session_info.user_id,
        session_id="session789",
    )


@pytest.fixture
def fake_client():
    """Empty in-memory object store client."""
    return FakeObjectStoreClient()


@pytest.fixture
def s3_service(fake_client):
    """S3 artifact service over the fake client."""
    return S3ArtifactService(client=fake_client)
