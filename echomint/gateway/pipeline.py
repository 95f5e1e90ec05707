"""
Request Gateway Pipeline

Sequences one inbound call through explicit async stages:

    check agent + transcribe (audio only) → process_text (dispatcher) → synthesize → store

Each stage returns a typed result. A failure short-circuits the remaining
stages, so nothing is written to the artifact store unless synthesis
produced audio. Transcription failure aborts the request; synthesis or
storage failure degrades to a text-only reply with a warning.

Known limitation: if the HTTP client disconnects mid-request, stages
already awaiting a provider are not cancelled. The provider call may still
complete and be billed; its result is discarded.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from echomint.context import RequestContext
from echomint.core.artifacts import ArtifactStore
from echomint.core.speech import SpeechBridge
from echomint.errors import AgentNotFoundError, SpeechError
from echomint.logger import get_logger
from echomint.messages import msg
from echomint.rpc.client import RpcClient

logger = get_logger(__name__)


@dataclass(frozen=True)
class Transcript:
    text: str


@dataclass(frozen=True)
class AgentReply:
    agent_id: str
    reply_text: str
    metadata: Dict[str, Any]


@dataclass(frozen=True)
class SynthesizedAudio:
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class StoredAudio:
    artifact_id: str
    url: str
    mime_type: str


@dataclass
class GatewayReply:
    """Unified response of the gateway."""
    reply: AgentReply
    transcript: Optional[Transcript] = None
    audio: Optional[StoredAudio] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "agent_id": self.reply.agent_id,
            "reply_text": self.reply.reply_text,
            "metadata": self.reply.metadata,
            "warnings": list(self.warnings),
        }
        if self.transcript is not None:
            body["transcript"] = self.transcript.text
        if self.audio is not None:
            body["artifact_id"] = self.audio.artifact_id
            body["audio_url"] = self.audio.url
        return body


class RequestGateway:
    """
    Orchestrates speech, dispatch and artifact storage for one request.

    Example:
        gateway = RequestGateway(rpc_client, speech_bridge, artifact_store)
        reply = await gateway.handle_text("agent_002", "What is a blockchain?", voice_reply=True)
    """

    def __init__(
        self,
        rpc: RpcClient,
        speech: Optional[SpeechBridge],
        artifacts: ArtifactStore,
    ):
        self._rpc = rpc
        self._speech = speech
        self._artifacts = artifacts

    @property
    def artifacts(self) -> ArtifactStore:
        return self._artifacts

    async def list_agents(self, ctx: Optional[RequestContext] = None) -> List[Dict[str, Any]]:
        return await self._rpc.list_agents(ctx)

    async def handle_text(
        self,
        agent_id: str,
        user_text: str,
        voice_reply: bool = False,
        ctx: Optional[RequestContext] = None,
        history: Optional[List[Dict[str, str]]] = None,
    ) -> GatewayReply:
        """Text in, text (and optionally audio) out. `history` is forwarded as given."""
        ctx = ctx or RequestContext()
        reply = await self._dispatch(agent_id, user_text, ctx, history)
        result = GatewayReply(reply=reply)
        if voice_reply:
            await self._attach_audio(result, ctx)
        return result

    async def handle_audio(
        self,
        audio_bytes: bytes,
        agent_id: str,
        voice_reply: bool = True,
        ctx: Optional[RequestContext] = None,
    ) -> GatewayReply:
        """
        Audio in, transcript plus reply out.

        The agent id is checked against the catalog first so an unknown
        agent never costs a transcription.

        Raises:
            AgentNotFoundError: agent_id is not in the catalog
            UnsupportedAudioFormatError / SpeechProviderError: transcription failed
        """
        ctx = ctx or RequestContext()
        await self._check_agent(agent_id, ctx)
        transcript = await self._transcribe(audio_bytes, ctx)
        reply = await self._dispatch(agent_id, transcript.text, ctx)
        result = GatewayReply(reply=reply, transcript=transcript)
        if voice_reply:
            await self._attach_audio(result, ctx)
        return result

    async def _check_agent(self, agent_id: str, ctx: RequestContext) -> None:
        agents = await self._rpc.list_agents(ctx)
        if not any(agent.get("id") == agent_id for agent in agents):
            raise AgentNotFoundError(agent_id)

    async def _transcribe(self, audio_bytes: bytes, ctx: RequestContext) -> Transcript:
        if self._speech is None:
            raise SpeechError("Speech is not configured")
        text = await self._speech.transcribe(audio_bytes, ctx)
        logger.info(f"[{ctx.request_id}] Transcribed {len(audio_bytes)} bytes to {len(text)} chars")
        return Transcript(text=text)

    async def _dispatch(
        self,
        agent_id: str,
        user_text: str,
        ctx: RequestContext,
        history: Optional[List[Dict[str, str]]] = None,
    ) -> AgentReply:
        result = await self._rpc.process_text(agent_id, user_text, ctx, history=history)
        return AgentReply(
            agent_id=result["agent_id"],
            reply_text=result["reply_text"],
            metadata=result["metadata"],
        )

    async def _synthesize(self, text: str, ctx: RequestContext) -> SynthesizedAudio:
        if self._speech is None:
            raise SpeechError("Speech is not configured")
        data = await self._speech.synthesize(text, ctx)
        return SynthesizedAudio(data=data, mime_type=self._speech.mime_type)

    async def _store(self, audio: SynthesizedAudio) -> StoredAudio:
        artifact = await asyncio.to_thread(self._artifacts.store, audio.data, audio.mime_type)
        return StoredAudio(
            artifact_id=artifact.artifact_id,
            url=self._artifacts.url_for(artifact.artifact_id),
            mime_type=artifact.mime_type,
        )

    async def _attach_audio(self, result: GatewayReply, ctx: RequestContext) -> None:
        try:
            audio = await self._synthesize(result.reply.reply_text, ctx)
        except SpeechError as e:
            logger.warning(f"[{ctx.request_id}] Synthesis failed, returning text only: {e}")
            result.warnings.append(msg("warning.synthesis_failed"))
            return

        try:
            result.audio = await self._store(audio)
        except OSError as e:
            logger.error(f"[{ctx.request_id}] Artifact write failed: {e}")
            result.warnings.append(msg("warning.artifact_write_failed"))
