"""
Tests for ArtifactServiceRegistry.
"""

import threading

import pytest

from core.artifacts import (
    ArtifactServiceRegistry,
    DuplicateServiceError,
    InMemoryArtifactService,
    RegistryError,
    ServiceNotFoundError,
    get_default_registry,
    reset_default_registry,
)


@pytest.fixture
def registry():
    return ArtifactServiceRegistry()


class TestRegister:
    """Registration and default selection."""

    def test_first_registration_becomes_default(self, registry):
        first = InMemoryArtifactService()

        registry.register("first", first, is_default=False)

        assert registry.default_name == "first"
        assert registry.get_default() is first

    def test_later_registration_keeps_default(self, registry):
        registry.register("first", InMemoryArtifactService())
        registry.register("second", InMemoryArtifactService())

        assert registry.default_name == "first"

    def test_later_registration_with_flag_becomes_default(self, registry):
        second = InMemoryArtifactService()
        registry.register("first", InMemoryArtifactService())
        registry.register("second", second, is_default=True)

        assert registry.default_name == "second"
        assert registry.get_default() is second

    def test_duplicate_name_fails(self, registry):
        registry.register("memory", InMemoryArtifactService())

        with pytest.raises(DuplicateServiceError, match="memory"):
            registry.register("memory", InMemoryArtifactService())

    def test_duplicate_does_not_replace(self, registry):
        original = InMemoryArtifactService()
        registry.register("memory", original)

        with pytest.raises(RegistryError):
            registry.register("memory", InMemoryArtifactService(), is_default=True)

        assert registry.get("memory") is original


class TestLookup:
    """Get, list and membership."""

    def test_get(self, registry):
        service = InMemoryArtifactService()
        registry.register("memory", service)

        assert registry.get("memory") is service

    def test_get_missing(self, registry):
        with pytest.raises(ServiceNotFoundError, match="non-existent"):
            registry.get("non-existent")

    def test_get_default_when_empty(self, registry):
        assert registry.default_name is None

        with pytest.raises(ServiceNotFoundError):
            registry.get_default()

    def test_list(self, registry):
        registry.register("a", InMemoryArtifactService())
        registry.register("b", InMemoryArtifactService())

        assert sorted(registry.list()) == ["a", "b"]
        assert len(registry) == 2
        assert "a" in registry
        assert "c" not in registry


class TestSetDefault:
    """Changing the default."""

    def test_set_default(self, registry):
        registry.register("a", InMemoryArtifactService())
        registry.register("b", InMemoryArtifactService())

        registry.set_default("b")

        assert registry.default_name == "b"

    def test_set_default_missing(self, registry):
        registry.register("a", InMemoryArtifactService())

        with pytest.raises(ServiceNotFoundError):
            registry.set_default("missing")

        assert registry.default_name == "a"


class TestUnregister:
    """Removal and default promotion."""

    def test_unregister(self, registry):
        registry.register("a", InMemoryArtifactService())
        registry.register("b", InMemoryArtifactService())

        registry.unregister("b")

        assert registry.list() == ["a"]
        with pytest.raises(ServiceNotFoundError):
            registry.get("b")

    def test_unregister_missing(self, registry):
        with pytest.raises(ServiceNotFoundError):
            registry.unregister("non-existent")

    def test_unregister_default_promotes_remaining(self, registry):
        registry.register("a", InMemoryArtifactService())
        registry.register("b", InMemoryArtifactService())
        registry.register("c", InMemoryArtifactService())

        registry.unregister("a")

        assert registry.default_name in {"b", "c"}
        assert registry.get_default() is registry.get(registry.default_name)

    def test_unregister_last_clears_default(self, registry):
        registry.register("a", InMemoryArtifactService())

        registry.unregister("a")

        assert registry.default_name is None
        assert len(registry) == 0

    def test_register_after_emptying_becomes_default(self, registry):
        registry.register("a", InMemoryArtifactService())
        registry.unregister("a")

        registry.register("b", InMemoryArtifactService())

        assert registry.default_name == "b"

    def test_unregister_non_default_keeps_default(self, registry):
        registry.register("a", InMemoryArtifactService())
        registry.register("b", InMemoryArtifactService())

        registry.unregister("b")

        assert registry.default_name == "a"


class TestConcurrency:
    """Concurrent registration."""

    def test_concurrent_registration(self, registry):
        errors = []

        def worker(n):
            try:
                registry.register(f"svc-{n}", InMemoryArtifactService())
            except RegistryError as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(registry) == 20
        assert registry.default_name in registry


class TestDefaultRegistry:
    """Tests for the process-wide registry accessor."""

    @pytest.fixture(autouse=True)
    def reset_registry(self):
        reset_default_registry()
        yield
        reset_default_registry()

    def test_singleton(self):
        assert get_default_registry() is get_default_registry()

    def test_reset(self):
        registry = get_default_registry()
        registry.register("memory", InMemoryArtifactService())

        reset_default_registry()

        assert get_default_registry() is not registry
        assert len(get_default_registry()) == 0
