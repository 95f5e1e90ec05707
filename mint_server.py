"""
Minting Gateway Server

Records finalized conversation metadata on a ledger: metadata is pushed to
IPFS-compatible storage, then a mint transaction referencing it is
submitted. One mint per idempotency key.
"""

import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from echomint.config import settings
from echomint.context import REQUEST_ID_HEADER
from echomint.errors import EchomintError, ServiceNotReadyError
from echomint.logger import get_logger, init_logging
from echomint.middleware import RequestContextMiddleware, get_context
from echomint.minting import LedgerClient, MintGateway, MintRequest, MintStatus, MintStore, StorageClient
from echomint.responses import STATUS_BY_KIND, handle_echomint_error, handle_validation_error

logger = get_logger(__name__)


# Global minting gateway instance
minter: Optional[MintGateway] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup resources."""
    global minter

    init_logging("mint")
    settings.mint.validate()

    minter = MintGateway(
        StorageClient(settings.mint),
        LedgerClient(settings.mint),
        MintStore(),
        confirm_polls=settings.mint.confirm_polls,
        poll_interval_s=settings.mint.poll_interval_s,
    )
    logger.info(f"Minting gateway ready: ledger={settings.mint.ledger_rpc_url}")

    yield

    minter = None


app = FastAPI(
    title="Minting Gateway",
    description="Records conversation metadata on a ledger",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_exception_handler(EchomintError, handle_echomint_error)
app.add_exception_handler(RequestValidationError, handle_validation_error)


def get_minter() -> MintGateway:
    """Get the minting gateway instance."""
    if minter is None:
        raise ServiceNotReadyError("Minting gateway")
    return minter


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.post("/mint")
async def mint(
    body: MintRequest,
    request: Request,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key", max_length=128),
):
    """Mint once per idempotency key. Failed mints answer 502 with the record."""
    ctx = get_context(request)
    record = await get_minter().mint(body, idempotency_key=idempotency_key)

    status_code = 200
    if record.status == MintStatus.FAILED:
        status_code = STATUS_BY_KIND.get(record.failure_kind or "", 502)
    logger.info(f"[{ctx.request_id}] Mint {record.request_id}: {record.status.value}")
    return JSONResponse(
        status_code=status_code,
        content=record.to_dict(),
        headers={REQUEST_ID_HEADER: ctx.request_id},
    )


@app.get("/status/{token_id}")
async def mint_status(token_id: str):
    """Mint state by token id, request id or idempotency key."""
    record = await get_minter().status(token_id)
    return record.to_dict()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mint_server:app",
        host="0.0.0.0",
        port=8081,
    )
