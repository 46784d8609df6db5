"""Tests for the nullifier registry."""

import json
import logging
import threading

import pytest

from shadowpay.crypto.nullifier import NullifierRegistry
from shadowpay.exceptions import ReplayError


class TestNullifierRegistry:
    """Tests for double-spend prevention."""

    def test_register(self):
        registry = NullifierRegistry()
        record = registry.register(1, 10, session_id="s1")

        assert registry.is_spent(1)
        assert registry.size == 1
        assert registry.get_record(1) is record
        assert json.loads(record.serialize())["session_id"] == "s1"

    def test_check_unspent(self):
        NullifierRegistry().check(5)

    def test_replay(self):
        registry = NullifierRegistry()
        registry.register(1, 10)
        with pytest.raises(ReplayError) as exc_info:
            registry.check(1)
        assert exc_info.value.nullifier == 1
        with pytest.raises(ReplayError):
            registry.register(1, 11)
        assert registry.size == 1

    def test_concurrent_registration(self):
        """Exactly one of many concurrent registrations succeeds."""
        registry = NullifierRegistry()
        outcomes = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            try:
                registry.register(42, 1)
                outcomes.append("ok")
            except ReplayError:
                outcomes.append("replay")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("replay") == 7

    def test_persisted(self, store):
        """Registered nullifiers survive a new registry on the same store."""
        NullifierRegistry(store).register(77, 1)

        reloaded = NullifierRegistry(store)
        assert reloaded.is_spent(77)
        with pytest.raises(ReplayError):
            reloaded.check(77)

    def test_store_failure_keeps_nullifier(self, store, caplog):
        """A broken store is logged; the nullifier is still accepted."""
        registry = NullifierRegistry(store)
        store.drop_tables()

        with caplog.at_level(logging.WARNING, logger="shadowpay"):
            record = registry.register(5, 50)

        assert record.nullifier == 5
        assert registry.is_spent(5)
        assert "Failed to persist nullifier" in caplog.text

    def test_stored_duplicate_is_replay(self, store):
        """A nullifier another registry already stored is a replay."""
        registry = NullifierRegistry(store)
        store.add_nullifier(9, 90)

        with pytest.raises(ReplayError):
            registry.register(9, 90)
