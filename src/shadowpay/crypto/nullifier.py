"""Append-only registry of accepted payment nullifiers.

A nullifier is a one-time tag; the union of all accepted nullifiers only
ever grows. The authority keeps the authoritative set, this registry is
the local mirror the orchestrator consults before authorizing, so a
replayed nullifier is rejected without a round trip.

Warning:
    Nullifier uniqueness is what prevents double-spending. A collision is
    a hard rejection and must never be retried with the same nullifier.
"""

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Dict, Optional, Set, TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from shadowpay.exceptions import ReplayError

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from shadowpay.storage.database import PaymentStore


@dataclass
class NullifierRecord:
    """
    Record of an accepted nullifier.

    Tracks when and for which commitment it was accepted.
    """

    nullifier: int
    commitment: int
    accepted_at: str
    session_id: Optional[str] = None

    def serialize(self) -> str:
        """Serialize to JSON."""
        return json.dumps(
            {
                "nullifier": str(self.nullifier),
                "commitment": str(self.commitment),
                "accepted_at": self.accepted_at,
                "session_id": self.session_id,
            }
        )


class NullifierRegistry:
    """
    Thread-safe, append-only set of accepted nullifiers.

    When a PaymentStore is supplied, accepted nullifiers are also written
    to its spent_nullifiers table and previously stored ones are loaded
    on construction.
    """

    def __init__(self, store: Optional["PaymentStore"] = None):
        self.nullifiers: Set[int] = set()
        self.records: Dict[int, NullifierRecord] = {}
        self.store = store
        self._lock = threading.Lock()

        if store is not None:
            self.nullifiers.update(store.load_nullifiers())

    def is_spent(self, nullifier: int) -> bool:
        """Check if a nullifier has been accepted."""
        with self._lock:
            return nullifier in self.nullifiers

    def check(self, nullifier: int) -> None:
        """
        Raises:
            ReplayError: If the nullifier was already accepted
        """
        if self.is_spent(nullifier):
            raise ReplayError("Nullifier already used", nullifier=nullifier)

    def register(
        self, nullifier: int, commitment: int, session_id: Optional[str] = None
    ) -> NullifierRecord:
        """
        Register a nullifier as accepted.

        A store failure other than a duplicate row is logged and the
        nullifier stays accepted in memory; the authority holds the
        authoritative set.

        Raises:
            ReplayError: If already registered (double-spend)
        """
        with self._lock:
            if nullifier in self.nullifiers:
                raise ReplayError("Nullifier already used", nullifier=nullifier)

            record = NullifierRecord(
                nullifier=nullifier,
                commitment=commitment,
                accepted_at=datetime.now(UTC).isoformat(),
                session_id=session_id,
            )
            self.nullifiers.add(nullifier)
            self.records[nullifier] = record

        if self.store is not None:
            try:
                self.store.add_nullifier(nullifier, commitment)
            except SQLAlchemyError as e:
                logger.warning(f"Failed to persist nullifier {str(nullifier)[:16]}...: {e}")

        return record

    def get_record(self, nullifier: int) -> Optional[NullifierRecord]:
        """Get the acceptance record for a nullifier."""
        with self._lock:
            return self.records.get(nullifier)

    @property
    def size(self) -> int:
        """Number of accepted nullifiers."""
        with self._lock:
            return len(self.nullifiers)
