"""
Dispatcher Server

JSON-RPC 2.0 endpoint exposing the agent catalog and text processing to
the request gateway.

Supported methods:
- list_agents: Returns all available agents
- process_text: Processes user text through a specified agent
"""

import json
import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from echomint.agents import AgentRegistry
from echomint.config import settings
from echomint.core.llm import CompletionClient
from echomint.errors import PARSE_ERROR, EchomintError, ServiceNotReadyError
from echomint.logger import get_logger, init_logging
from echomint.middleware import RequestContextMiddleware, get_context
from echomint.responses import handle_echomint_error
from echomint.rpc.dispatcher import Dispatcher
from echomint.rpc.models import error_response

logger = get_logger(__name__)


# Global dispatcher instance
dispatcher: Optional[Dispatcher] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the registry and completion client. Bad configuration aborts startup."""
    global dispatcher

    init_logging("dispatcher")
    registry = AgentRegistry.from_settings(settings.agents_file)
    settings.completion.validate(list(registry.models))
    dispatcher = Dispatcher(registry, CompletionClient(settings.completion))

    logger.info(f"Dispatcher ready: {len(registry)} agents")
    logger.info(f"Supported JSON-RPC methods: {', '.join(dispatcher.methods)}")

    yield

    dispatcher = None


app = FastAPI(
    title="Agent Dispatcher",
    description="JSON-RPC dispatcher routing utterances to LLM-backed agents",
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


def get_dispatcher() -> Dispatcher:
    """Get the dispatcher instance."""
    if dispatcher is None:
        raise ServiceNotReadyError("Dispatcher")
    return dispatcher


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.post("/")
async def handle_jsonrpc(request: Request):
    """Single JSON-RPC endpoint. Always answers with an envelope."""
    rpc = get_dispatcher()
    ctx = get_context(request)

    raw = await request.body()
    try:
        payload = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        logger.warning(f"[{ctx.request_id}] Unparseable JSON-RPC body: {e}")
        return JSONResponse(content=error_response(None, PARSE_ERROR, "Parse error"))

    response = await rpc.dispatch(payload, ctx)
    return JSONResponse(content=response)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "rpc_server:app",
        host="0.0.0.0",
        port=3000,
    )
