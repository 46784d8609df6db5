"""Tests for database storage layer."""

import pytest

from shadowpay.exceptions import ReplayError
from shadowpay.storage.database import PaymentRecord, PaymentStore


def add(store, index):
    return store.add_payment(
        session_id=f"session-{index}",
        commitment=10**70 + index,
        nullifier=2 * 10**70 + index,
        amount=1000 + index,
        token="SOL",
        recipient="Merchant",
        signature=f"sig-{index}",
        settlement_time=index,
    )


class TestPaymentStore:
    """Test store initialization."""

    def test_database_creation(self, store):
        assert store.engine is not None
        assert store.SessionLocal is not None

    def test_get_session(self, store):
        session = store.get_session()
        assert session is not None
        session.close()


class TestPaymentHistory:
    """Test payment history operations."""

    def test_add_and_get(self, store):
        add(store, 1)
        record = store.get_payment("session-1")

        assert isinstance(record, PaymentRecord)
        assert int(record.commitment) == 10**70 + 1
        assert record.amount == 1001
        assert record.to_dict()["signature"] == "sig-1"

    def test_missing(self, store):
        assert store.get_payment("nope") is None

    def test_history_newest_first(self, store):
        for index in range(3):
            add(store, index)
        history = store.get_payment_history()
        assert [record.session_id for record in history] == ["session-2", "session-1", "session-0"]

    def test_history_limit_argument(self, store):
        for index in range(3):
            add(store, index)
        assert len(store.get_payment_history(limit=2)) == 2

    def test_history_pruned(self, store):
        """Only the newest history_limit records are kept."""
        for index in range(store.history_limit + 3):
            add(store, index)
        history = store.get_payment_history()

        assert len(history) == store.history_limit
        assert history[0].session_id == f"session-{store.history_limit + 2}"
        assert store.get_payment("session-0") is None


class TestNullifierStorage:
    """Test spent nullifier operations."""

    def test_add_nullifier(self, store):
        store.add_nullifier(123, 456)
        assert store.is_nullifier_spent(123)
        assert not store.is_nullifier_spent(124)

    def test_duplicate_nullifier(self, store):
        store.add_nullifier(123, 456)
        with pytest.raises(ReplayError):
            store.add_nullifier(123, 789)

    def test_load_nullifiers(self, store):
        big = 2**253 + 7
        store.add_nullifier(big, 1)
        store.add_nullifier(5, 1)
        assert sorted(store.load_nullifiers()) == [5, big]


def test_drop_tables(tmp_path):
    store = PaymentStore(f"sqlite:///{tmp_path / 'drop.db'}")
    store.create_tables()
    store.add_nullifier(1, 2)
    store.drop_tables()
    store.create_tables()
    assert store.load_nullifiers() == []
