"""
Minting Gateway Package

- Models: mint request, record and state machine
- Storage: decentralized storage upload
- Ledger: transaction submission and status
- Store: idempotency-keyed record store
- Gateway: drives a mint through its states
"""

from echomint.minting.gateway import MintGateway
from echomint.minting.ledger import LedgerClient
from echomint.minting.models import MintMetadata, MintRecord, MintRequest, MintStatus
from echomint.minting.storage import StorageClient
from echomint.minting.store import MintStore

__all__ = [
    "MintGateway",
    "LedgerClient",
    "MintMetadata",
    "MintRecord",
    "MintRequest",
    "MintStatus",
    "StorageClient",
    "MintStore",
]
