"""
Ledger minting RPC client.

Contract with the ledger service:

    POST {LEDGER_RPC_URL}/mint      {metadata_url, recipient, idempotency_key}
        → {tx_hash, token_id?}
    GET  {LEDGER_RPC_URL}/tx/{hash}
        → {status: pending|confirmed|failed, token_id?, reason?}

The idempotency key is forwarded so the ledger service can also drop
duplicates. Nothing here retries: a failed submission may or may not have
been broadcast, so resubmitting could mint twice.
"""

import asyncio
from typing import Any, Dict, Optional, Tuple

import aiohttp

from echomint.config import MintConfig, settings
from echomint.errors import LedgerRejected, SubmissionFailure
from echomint.logger import get_logger
from echomint.minting.models import LedgerStatus, Submission

logger = get_logger(__name__)


def classify_rejection(status: int, text: str) -> Exception:
    """Map a non-2xx ledger answer to a mint error."""
    lowered = text.lower()
    if status == 402 or "insufficient funds" in lowered:
        return LedgerRejected("Ledger rejected the transaction", detail=text[:200], reason="insufficient_funds")
    if status in (401, 403):
        return SubmissionFailure("Ledger rejected credentials", detail=text[:200], reason="unauthorized")
    if "revert" in lowered or 400 <= status < 500:
        return LedgerRejected("Ledger rejected the transaction", detail=text[:200], reason="contract_revert")
    return SubmissionFailure(f"Ledger error ({status})", detail=text[:200], reason="network_error")


class LedgerClient:
    """HTTP client for the ledger minting service."""

    def __init__(self, config: Optional[MintConfig] = None):
        self._config = config or settings.mint

    @property
    def _base(self) -> str:
        return self._config.ledger_rpc_url.rstrip("/")

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.ledger_api_key}",
            "Content-Type": "application/json",
        }

    async def submit(self, metadata_url: str, recipient: str, idempotency_key: str) -> Submission:
        """
        Broadcast a mint transaction.

        Raises:
            LedgerRejected: insufficient funds or contract revert
            SubmissionFailure: network error, timeout or auth failure
        """
        body = {
            "metadata_url": metadata_url,
            "recipient": recipient,
            "idempotency_key": idempotency_key,
        }
        status, data, text = await self._request("POST", f"{self._base}/mint", json=body)
        if not 200 <= status < 300:
            raise classify_rejection(status, text)

        if not isinstance(data, dict):
            raise SubmissionFailure("Ledger answered with a non-object body", detail=text[:200], reason="network_error")

        tx_hash = data.get("tx_hash") or data.get("transaction_hash")
        if not tx_hash:
            raise SubmissionFailure("Ledger response did not contain a transaction hash", reason="network_error")

        token_id = data.get("token_id")
        logger.info(f"Submitted mint transaction {tx_hash}")
        return Submission(transaction_hash=str(tx_hash), token_id=str(token_id) if token_id else None)

    async def transaction_status(self, tx_hash: str) -> LedgerStatus:
        """
        Look up a submitted transaction.

        Raises:
            SubmissionFailure: the ledger could not be queried
        """
        status, data, text = await self._request("GET", f"{self._base}/tx/{tx_hash}")
        if not 200 <= status < 300 or not isinstance(data, dict):
            raise SubmissionFailure(f"Ledger status lookup failed ({status})", detail=text[:200])

        state = str(data.get("status", "pending")).lower()
        if state not in ("pending", "confirmed", "failed"):
            state = "pending"
        token_id = data.get("token_id")
        return LedgerStatus(
            status=state,
            token_id=str(token_id) if token_id else None,
            reason=data.get("reason"),
        )

    async def _request(self, method: str, url: str, json: Any = None) -> Tuple[int, Any, str]:
        timeout = aiohttp.ClientTimeout(total=self._config.timeout_s)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(method, url, headers=self._headers, json=json) as response:
                    text = await response.text()
                    try:
                        data = await response.json(content_type=None)
                    except ValueError:
                        data = None
                    return response.status, data, text
        except asyncio.TimeoutError:
            raise SubmissionFailure("Ledger call timed out", reason="network_error")
        except aiohttp.ClientError as e:
            raise SubmissionFailure("Ledger unreachable", detail=str(e), reason="network_error")
