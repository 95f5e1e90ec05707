"""
Mint request models and the mint state machine.

    pending → uploading → submitted → confirmed
        \\          \\          \\
         → failed    → failed   → failed

`failed` and `confirmed` are terminal. A failed mint is never resubmitted.
"""

import hashlib
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

DEFAULT_REQUESTER = "default-recipient-address"


class MintStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (MintStatus.CONFIRMED, MintStatus.FAILED)


ALLOWED_TRANSITIONS = {
    MintStatus.PENDING: {MintStatus.UPLOADING, MintStatus.FAILED},
    MintStatus.UPLOADING: {MintStatus.SUBMITTED, MintStatus.FAILED},
    MintStatus.SUBMITTED: {MintStatus.CONFIRMED, MintStatus.FAILED},
    MintStatus.CONFIRMED: set(),
    MintStatus.FAILED: set(),
}


class MintMetadata(BaseModel):
    """Finalized conversation metadata to record on the ledger."""
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    content_ref: Optional[str] = Field(
        default=None, description="Link to the conversation asset (e.g. stored audio URL)"
    )


class MintRequest(BaseModel):
    metadata: MintMetadata
    requester: Optional[str] = None
    idempotency_key: Optional[str] = Field(default=None, max_length=128)

    @property
    def recipient(self) -> str:
        return self.requester or DEFAULT_REQUESTER

    def derive_idempotency_key(self) -> str:
        """Stable key for clients that do not send one: same requester + metadata, same key."""
        canonical = json.dumps(
            {"requester": self.recipient, "metadata": self.metadata.model_dump()},
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def storage_document(self) -> Dict[str, Any]:
        """Metadata document pushed to decentralized storage."""
        return {
            "name": self.metadata.title,
            "description": self.metadata.description,
            "asset_url": self.metadata.content_ref,
            "requester": self.recipient,
        }


@dataclass(frozen=True)
class ContentRef:
    """Where the uploaded metadata lives."""
    cid: str
    url: str


@dataclass(frozen=True)
class Submission:
    transaction_hash: str
    token_id: Optional[str] = None


@dataclass(frozen=True)
class LedgerStatus:
    status: str  # pending, confirmed, failed
    token_id: Optional[str] = None
    reason: Optional[str] = None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MintRecord:
    """
    Tracked state of one logical mint.

    Only MintStore mutates records, under its lock.
    """
    request_id: str
    idempotency_key: str
    requester: str
    status: MintStatus = MintStatus.PENDING
    content_ref: Optional[ContentRef] = None
    transaction_hash: Optional[str] = None
    token_id: Optional[str] = None
    failure_kind: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def new(cls, idempotency_key: str, request: MintRequest) -> "MintRecord":
        return cls(
            request_id=uuid.uuid4().hex,
            idempotency_key=idempotency_key,
            requester=request.recipient,
        )

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "request_id": self.request_id,
            "status": self.status.value,
            "requester": self.requester,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if self.token_id is not None:
            body["token_id"] = self.token_id
        if self.transaction_hash is not None:
            body["transaction_hash"] = self.transaction_hash
        if self.content_ref is not None:
            body["content_ref"] = {"cid": self.content_ref.cid, "url": self.content_ref.url}
        if self.status == MintStatus.FAILED:
            body["kind"] = self.failure_kind
            body["reason"] = self.failure_reason
        return body
