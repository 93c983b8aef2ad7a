"""
Tests for InMemoryArtifactService and its readers-writer lock.
"""

import threading
import time

import pytest

from core.artifacts import (
    Artifact,
    InMemoryArtifactService,
    InvalidVersionError,
    StorageBackend,
)
from core.artifacts.locks import ReadWriteLock


class TestInMemoryArtifactService:
    """Tests for InMemoryArtifactService."""

    @pytest.fixture
    def service(self):
        return InMemoryArtifactService()

    def test_backend_type(self, service):
        assert service.backend_type == StorageBackend.MEMORY

    def test_scenario(self, service, session_info):
        """Three saves, loads by version, invalid version, delete."""
        payloads = [b"P0", b"P1", b"P2"]
        versions = [
            service.save_artifact(session_info, "a.txt", Artifact(data=p, mime_type="text/plain"))
            for p in payloads
        ]
        assert versions == [0, 1, 2]

        assert service.load_artifact(session_info, "a.txt").data == b"P2"
        assert service.load_artifact(session_info, "a.txt", 1).data == b"P1"

        with pytest.raises(InvalidVersionError, match="5"):
            service.load_artifact(session_info, "a.txt", 5)

        service.delete_artifact(session_info, "a.txt")
        assert service.list_versions(session_info, "a.txt") == []

    def test_invalid_version_message(self, service, session_info):
        service.save_artifact(session_info, "test.txt", Artifact(data=b"x"))

        with pytest.raises(InvalidVersionError) as exc_info:
            service.load_artifact(session_info, "test.txt", 999)

        assert "version 999 does not exist" in str(exc_info.value)
        assert exc_info.value.version == 999

    def test_negative_version(self, service, session_info):
        service.save_artifact(session_info, "test.txt", Artifact(data=b"x"))

        with pytest.raises(InvalidVersionError, match="-1"):
            service.load_artifact(session_info, "test.txt", -1)

    def test_explicit_version_of_missing_artifact(self, service, session_info):
        with pytest.raises(InvalidVersionError):
            service.load_artifact(session_info, "nonexistent.txt", 0)

    def test_loaded_artifact_equals_saved(self, service, session_info):
        saved = Artifact(data=b"test data", mime_type="text/plain", name="test.txt")
        service.save_artifact(session_info, "test.txt", saved)

        assert service.load_artifact(session_info, "test.txt") == saved
        assert service.load_artifact(session_info, "test.txt", 0) == saved

    def test_keeps_display_name_and_url(self, service, session_info):
        service.save_artifact(
            session_info,
            "chart.png",
            Artifact(
                data=b"\x89PNG",
                mime_type="image/png",
                name="Quarterly chart",
                url="https://example.com/chart.png",
            ),
        )

        loaded = service.load_artifact(session_info, "chart.png")

        assert loaded.name == "Quarterly chart"
        assert loaded.url == "https://example.com/chart.png"

    def test_snapshot_independent_of_caller_buffer(self, service, session_info):
        buffer = bytearray(b"original")
        service.save_artifact(session_info, "a.bin", Artifact(data=buffer))

        buffer[:] = b"mutated!"

        assert service.load_artifact(session_info, "a.bin").data == b"original"

    def test_concurrent_saves_get_distinct_versions(self, service, session_info):
        """Saves from many threads never collide."""
        results = []
        results_lock = threading.Lock()

        def worker(n):
            for i in range(25):
                version = service.save_artifact(
                    session_info, "shared.log", Artifact(data=f"{n}-{i}".encode())
                )
                with results_lock:
                    results.append(version)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(results) == list(range(200))
        assert service.list_versions(session_info, "shared.log") == list(range(200))


class TestReadWriteLock:
    """Tests for ReadWriteLock."""

    def test_readers_share(self):
        lock = ReadWriteLock()
        inside = threading.Barrier(2, timeout=5)

        def reader():
            with lock.read_locked():
                # Both readers must be inside at once to pass the barrier
                inside.wait()

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert not any(t.is_alive() for t in threads)

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        events = []

        lock.acquire_write()

        def reader():
            with lock.read_locked():
                events.append("read")

        t = threading.Thread(target=reader)
        t.start()
        time.sleep(0.05)
        events.append("write-done")
        lock.release_write()
        t.join(timeout=5)

        assert events == ["write-done", "read"]

    def test_write_released_on_error(self):
        lock = ReadWriteLock()

        with pytest.raises(RuntimeError):
            with lock.write_locked():
                raise RuntimeError("boom")

        with lock.read_locked():
            pass
