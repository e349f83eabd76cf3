"""Unit tests for the correlation registry."""

import pytest

from nrepl_link.errors import DuplicateRequestError
from nrepl_link.registry import CorrelationRegistry


def noop(frame):
    pass


class TestCorrelationRegistry:
    def test_empty(self):
        registry = CorrelationRegistry()

        assert len(registry) == 0
        assert registry.lookup_evaluation("a") is None
        assert registry.lookup_service("a") is None

    def test_register_evaluation(self):
        registry = CorrelationRegistry()
        registry.register_evaluation("a", "seg1")

        assert registry.lookup_evaluation("a") == "seg1"
        assert registry.lookup_service("a") is None
        assert "a" in registry
        assert list(registry.evaluation_ids) == ["a"]

    def test_register_service(self):
        registry = CorrelationRegistry()
        registry.register_service("b", noop)

        assert registry.lookup_service("b") is noop
        assert registry.lookup_evaluation("b") is None
        assert list(registry.service_ids) == ["b"]

    def test_tables_are_independent(self):
        registry = CorrelationRegistry()
        registry.register_evaluation("a", "seg1")
        registry.register_service("b", noop)

        registry.remove_evaluation("a")

        assert "a" not in registry
        assert registry.lookup_service("b") is noop
        assert len(registry) == 1

    def test_id_lives_in_one_table_only(self):
        """Registering an id already present in either table is rejected."""
        registry = CorrelationRegistry()
        registry.register_evaluation("a", "seg1")

        with pytest.raises(DuplicateRequestError):
            registry.register_service("a", noop)
        with pytest.raises(DuplicateRequestError):
            registry.register_evaluation("a", "seg2")

        assert registry.lookup_evaluation("a") == "seg1"

    def test_remove_absent_is_noop(self):
        registry = CorrelationRegistry()

        registry.remove_evaluation("missing")
        registry.remove_service("missing")

        assert len(registry) == 0

    def test_id_can_be_reused_after_removal(self):
        registry = CorrelationRegistry()
        registry.register_service("a", noop)
        registry.remove_service("a")

        registry.register_evaluation("a", "seg1")

        assert registry.lookup_evaluation("a") == "seg1"
