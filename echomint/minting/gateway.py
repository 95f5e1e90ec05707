"""
Minting Gateway

Drives one logical mint through pending → uploading → submitted →
confirmed | failed. The idempotency key is reserved before any external
call, so concurrent or retried requests for the same mint observe the
first call's record instead of starting their own. Failures are recorded
on the record and never retried.
"""

import asyncio
from typing import Optional

from echomint.errors import MintError, MintNotFoundError, SubmissionFailure
from echomint.logger import get_logger
from echomint.minting.ledger import LedgerClient
from echomint.minting.models import ContentRef, MintRecord, MintRequest, MintStatus
from echomint.minting.storage import StorageClient
from echomint.minting.store import MintStore

logger = get_logger(__name__)


class MintGateway:
    """
    Coordinates storage upload, ledger submission and confirmation.

    Example:
        gateway = MintGateway(StorageClient(), LedgerClient(), MintStore())
        record = await gateway.mint(request, idempotency_key="conv-42")
    """

    def __init__(
        self,
        storage: StorageClient,
        ledger: LedgerClient,
        store: MintStore,
        confirm_polls: int = 3,
        poll_interval_s: float = 1.0,
    ):
        self._storage = storage
        self._ledger = ledger
        self._store = store
        self._confirm_polls = confirm_polls
        self._poll_interval_s = poll_interval_s

    async def mint(self, request: MintRequest, idempotency_key: Optional[str] = None) -> MintRecord:
        """
        Mint once per idempotency key.

        Returns the record in its latest state. A failed mint is returned
        with status FAILED rather than raised.
        """
        key = idempotency_key or request.idempotency_key or request.derive_idempotency_key()
        record, created = self._store.reserve(key, lambda: MintRecord.new(key, request))

        if not created:
            logger.info(f"Mint {record.request_id} already recorded for key, status={record.status.value}")
            if record.status == MintStatus.SUBMITTED:
                return await self._refresh(record)
            return record

        logger.info(f"Mint {record.request_id} started for {record.requester}")
        record = self._store.transition(record.request_id, MintStatus.PENDING, MintStatus.UPLOADING)

        content_ref = None
        try:
            content_ref = await self._storage.upload(request.storage_document())
            submission = await self._ledger.submit(content_ref.url, request.recipient, key)
        except MintError as e:
            logger.error(f"Mint {record.request_id} failed: {e.kind}: {e}")
            return self._store.transition(
                record.request_id,
                MintStatus.UPLOADING,
                MintStatus.FAILED,
                failure_kind=e.kind,
                failure_reason=e.reason,
                content_ref=content_ref,
            )
        except asyncio.CancelledError:
            # Caller went away mid-flight; the broadcast outcome is unknown.
            logger.error(f"Mint {record.request_id} cancelled during upload or submission")
            self._fail_unexpected(record.request_id, content_ref)
            raise
        except Exception as e:
            logger.exception(f"Mint {record.request_id} failed unexpectedly: {e}")
            return self._fail_unexpected(record.request_id, content_ref)

        record = self._store.transition(
            record.request_id,
            MintStatus.UPLOADING,
            MintStatus.SUBMITTED,
            content_ref=content_ref,
            transaction_hash=submission.transaction_hash,
            token_id=submission.token_id,
        )
        return await self._await_confirmation(record)

    async def status(self, key: str) -> MintRecord:
        """
        Current state of a mint, looked up by token id, request id or idempotency key.

        Raises:
            MintNotFoundError: No mint matches the key
        """
        record = self._store.get(key)
        if record is None:
            raise MintNotFoundError(key)
        if record.status == MintStatus.SUBMITTED:
            return await self._refresh(record)
        return record

    def _fail_unexpected(self, request_id: str, content_ref: Optional[ContentRef]) -> Optional[MintRecord]:
        return self._store.transition(
            request_id,
            MintStatus.UPLOADING,
            MintStatus.FAILED,
            failure_kind=SubmissionFailure.kind,
            failure_reason=SubmissionFailure.reason,
            content_ref=content_ref,
        )

    async def _await_confirmation(self, record: MintRecord) -> MintRecord:
        for attempt in range(self._confirm_polls):
            if attempt:
                await asyncio.sleep(self._poll_interval_s)
            record = await self._refresh(record)
            if record.status.is_terminal:
                break
        return record

    async def _refresh(self, record: MintRecord) -> MintRecord:
        """Poll the ledger once and apply a terminal outcome if there is one."""
        try:
            ledger_status = await self._ledger.transaction_status(record.transaction_hash)
        except SubmissionFailure as e:
            logger.warning(f"Mint {record.request_id} status lookup failed: {e}")
            return record

        if ledger_status.status == "confirmed":
            updated = self._store.transition(
                record.request_id,
                MintStatus.SUBMITTED,
                MintStatus.CONFIRMED,
                token_id=ledger_status.token_id or record.token_id,
            )
            if updated is not None:
                logger.info(f"Mint {record.request_id} confirmed: token_id={updated.token_id}")
        elif ledger_status.status == "failed":
            updated = self._store.transition(
                record.request_id,
                MintStatus.SUBMITTED,
                MintStatus.FAILED,
                failure_kind="ledger_rejected",
                failure_reason=ledger_status.reason or "contract_revert",
            )
            if updated is not None:
                logger.error(f"Mint {record.request_id} failed on ledger: {updated.failure_reason}")
        else:
            return record

        return self._store.get(record.request_id) or record
