"""
Request Gateway Server

Public REST surface for text and voice conversations with the agents.
Text and audio input are forwarded to the dispatcher over JSON-RPC;
voice replies are synthesized, stored, and served back by id.
"""

import asyncio
import os
import sys
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, Field

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from echomint.config import settings
from echomint.core.artifacts import ArtifactStore
from echomint.core.speech import AzureSpeechProvider, SpeechBridge
from echomint.errors import EchomintError, ServiceNotReadyError
from echomint.gateway.pipeline import RequestGateway
from echomint.logger import get_logger, init_logging
from echomint.middleware import RequestContextMiddleware, get_context
from echomint.responses import handle_echomint_error, handle_validation_error
from echomint.rpc.client import RpcClient
from echomint.rpc.models import ConversationTurn

logger = get_logger(__name__)


# Pydantic models for API
class TextInputRequest(BaseModel):
    agent_id: str = Field(min_length=1)
    user_text: str = Field(min_length=1)
    voice_reply: bool = False
    conversation_history: List[ConversationTurn] = Field(default_factory=list)


# Global gateway instance
gateway: Optional[RequestGateway] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup resources."""
    global gateway

    init_logging("gateway")
    settings.speech.validate()

    speech = SpeechBridge(AzureSpeechProvider(settings.speech))
    artifacts = ArtifactStore(settings.gateway.artifact_path, settings.gateway.public_base_url)
    rpc = RpcClient(settings.gateway.dispatcher_url, settings.gateway.dispatcher_timeout_s)
    await rpc.start()

    gateway = RequestGateway(rpc, speech, artifacts)
    logger.info(
        f"Gateway ready: dispatcher={settings.gateway.dispatcher_url}, "
        f"artifacts={artifacts.directory}"
    )

    yield

    gateway = None
    await rpc.close()


app = FastAPI(
    title="Voice Agent Gateway",
    description="REST API for text and voice conversations with AI agents",
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


def get_gateway() -> RequestGateway:
    """Get the gateway instance."""
    if gateway is None:
        raise ServiceNotReadyError("Gateway")
    return gateway


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/agents")
async def list_agents(request: Request):
    """Agent catalog, as reported by the dispatcher."""
    agents = await get_gateway().list_agents(get_context(request))
    return {"agents": agents}


@app.post("/input/text")
async def text_input(body: TextInputRequest, request: Request):
    """Send a text utterance to an agent."""
    ctx = get_context(request)
    logger.info(f"[{ctx.request_id}] Text input for {body.agent_id} ({len(body.user_text)} chars)")

    result = await get_gateway().handle_text(
        body.agent_id,
        body.user_text,
        voice_reply=body.voice_reply,
        ctx=ctx,
        history=[turn.model_dump() for turn in body.conversation_history],
    )
    logger.info(f"[{ctx.request_id}] Replied in {ctx.elapsed_ms}ms")
    return result.to_dict()


@app.post("/input/audio")
async def audio_input(
    request: Request,
    agent_id: Optional[str] = Query(default=None, min_length=1),
    voice_reply: bool = Query(default=True),
):
    """
    Send a spoken utterance to an agent.

    The request body is a 16-bit PCM WAV file. Without an agent_id the
    configured default agent answers.
    """
    ctx = get_context(request)
    audio_bytes = await request.body()
    target = agent_id or settings.gateway.default_agent_id
    logger.info(f"[{ctx.request_id}] Audio input for {target} ({len(audio_bytes)} bytes)")

    result = await get_gateway().handle_audio(
        audio_bytes,
        target,
        voice_reply=voice_reply,
        ctx=ctx,
    )
    logger.info(f"[{ctx.request_id}] Replied in {ctx.elapsed_ms}ms")
    return result.to_dict()


@app.get("/public/audio/{artifact_id}")
async def get_audio(artifact_id: str):
    """Serve a stored voice reply."""
    data, mime_type = await asyncio.to_thread(get_gateway().artifacts.open, artifact_id)
    return Response(content=data, media_type=mime_type)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api_server:app",
        host="0.0.0.0",
        port=8000,
    )
