"""
In-memory mint store with atomic compare-and-set.

One process, one lock. reserve() is the idempotency check: it either
creates the record for a key or hands back the one that already exists,
so a retried client call never triggers a second ledger submission.
"""

import threading
from dataclasses import replace
from typing import Any, Callable, Dict, Optional, Tuple

from echomint.logger import get_logger
from echomint.minting.models import ALLOWED_TRANSITIONS, MintRecord, MintStatus, utcnow

logger = get_logger(__name__)


class InvalidTransition(RuntimeError):
    pass


class MintStore:
    """Records indexed by idempotency key, request id and token id."""

    def __init__(self):
        self._lock = threading.Lock()
        self._by_key: Dict[str, MintRecord] = {}
        self._by_request: Dict[str, MintRecord] = {}
        self._by_token: Dict[str, MintRecord] = {}

    def reserve(self, key: str, factory: Callable[[], MintRecord]) -> Tuple[MintRecord, bool]:
        """
        Return (record, created). Only the first caller for a key creates it.
        """
        with self._lock:
            existing = self._by_key.get(key)
            if existing is not None:
                return replace(existing), False
            record = factory()
            self._by_key[key] = record
            self._by_request[record.request_id] = record
            return replace(record), True

    def transition(
        self,
        request_id: str,
        expected: MintStatus,
        new: MintStatus,
        **changes: Any,
    ) -> Optional[MintRecord]:
        """
        Move a record from `expected` to `new` and apply field changes.

        Returns a snapshot of the updated record, or None when the record is
        no longer in `expected` (another caller got there first).
        """
        if new not in ALLOWED_TRANSITIONS[expected]:
            raise InvalidTransition(f"{expected.value} → {new.value}")

        with self._lock:
            record = self._by_request[request_id]
            if record.status != expected:
                return None
            for name, value in changes.items():
                setattr(record, name, value)
            record.status = new
            record.updated_at = utcnow()
            if record.token_id:
                self._by_token[record.token_id] = record
            logger.debug(f"Mint {request_id}: {expected.value} → {new.value}")
            return replace(record)

    def get(self, key: str) -> Optional[MintRecord]:
        """Look up by token id, request id or idempotency key."""
        with self._lock:
            record = (
                self._by_token.get(key)
                or self._by_request.get(key)
                or self._by_key.get(key)
            )
            return replace(record) if record is not None else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_key)
