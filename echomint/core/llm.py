"""
Completion Client Module

Adapts an agent and a user utterance into one call to an external
language-model provider and normalizes the answer.

Architecture:
- CompletionProvider: Abstract base class for one provider wire format
- OpenAICompatibleProvider: Chat completions API (Groq, OpenAI, Azure-style proxies)
- GeminiProvider: Google generateContent API
- CompletionClient: Picks the provider from agent.model, times the call,
  and maps HTTP/transport failures onto the ProviderError family

Calls are made exactly once. Provider calls are billable and not
idempotent, so there is no retry loop here; callers own retry policy.

Usage:
    from echomint.core.llm import CompletionClient

    client = CompletionClient()
    completion = await client.complete(agent, "What is a blockchain?")
    print(completion.reply_text, completion.tokens_used)
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiohttp

from echomint.agents import Agent
from echomint.config import CompletionConfig, settings
from echomint.context import RequestContext
from echomint.errors import (
    ProviderAuthError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    ProviderTransportError,
)
from echomint.logger import get_logger

logger = get_logger(__name__)

FALLBACK_REPLY = "Sorry, I couldn't generate a response."

GEMINI_ROLES = {"user": "user", "assistant": "model"}


@dataclass
class Message:
    """Chat message for the provider."""
    role: str  # system, user, assistant
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class Completion:
    """
    Normalized provider answer.

    Attributes:
        reply_text: Generated text
        tokens_used: Total tokens reported by the provider, 0 when absent
        processing_time_ms: Wall-clock span of the outbound call
        model: Model identifier of the agent
    """
    reply_text: str
    tokens_used: int
    processing_time_ms: int
    model: str


@dataclass
class ProviderRequest:
    """A fully built outbound request."""
    url: str
    headers: Dict[str, str]
    body: Dict[str, Any]


class CompletionProvider(ABC):
    """
    One provider wire format.

    Implementations only build requests and parse successful responses;
    transport and status handling live in CompletionClient.
    """

    name = "provider"

    @abstractmethod
    def build_request(
        self,
        agent: Agent,
        user_text: str,
        history: Optional[Sequence[Message]] = None,
    ) -> ProviderRequest:
        pass

    @abstractmethod
    def parse_response(self, data: Dict[str, Any]) -> Tuple[str, int]:
        """Return (reply_text, tokens_used)."""
        pass


def _non_negative_int(value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return 0
    return max(number, 0)


class OpenAICompatibleProvider(CompletionProvider):
    """
    OpenAI-compatible chat completions (Groq by default).

    The agent's system prompt becomes the system message, followed by any
    earlier turns and then the user text.
    """

    name = "openai_compatible"

    def __init__(self, config: CompletionConfig):
        self._config = config

    def build_request(
        self,
        agent: Agent,
        user_text: str,
        history: Optional[Sequence[Message]] = None,
    ) -> ProviderRequest:
        body = {
            "model": self._config.model_override or agent.model,
            "messages": [m.to_dict() for m in build_messages(agent, user_text, history)],
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self._config.groq_api_key}",
            "Content-Type": "application/json",
        }
        return ProviderRequest(url=self._config.chat_url, headers=headers, body=body)

    def parse_response(self, data: Dict[str, Any]) -> Tuple[str, int]:
        choices = data.get("choices") or []
        reply = ""
        if choices:
            reply = (choices[0].get("message") or {}).get("content") or ""
        tokens = _non_negative_int((data.get("usage") or {}).get("total_tokens"))
        return reply or FALLBACK_REPLY, tokens


class GeminiProvider(CompletionProvider):
    """
    Google Gemini generateContent API with a system instruction.

    Earlier assistant turns are sent with Gemini's "model" role.
    """

    name = "gemini"

    def __init__(self, config: CompletionConfig):
        self._config = config

    def build_request(
        self,
        agent: Agent,
        user_text: str,
        history: Optional[Sequence[Message]] = None,
    ) -> ProviderRequest:
        contents = [
            {"role": GEMINI_ROLES[m.role], "parts": [{"text": m.content}]}
            for m in history or []
            if m.role in GEMINI_ROLES
        ]
        contents.append({"role": "user", "parts": [{"text": user_text}]})
        body = {
            "contents": contents,
            "system_instruction": {"parts": [{"text": agent.system_prompt}]},
            "generationConfig": {
                "temperature": self._config.temperature,
                "maxOutputTokens": self._config.max_tokens,
            },
        }
        headers = {
            "x-goog-api-key": self._config.gemini_api_key,
            "Content-Type": "application/json",
        }
        return ProviderRequest(url=self._config.gemini_url(agent.model), headers=headers, body=body)

    def parse_response(self, data: Dict[str, Any]) -> Tuple[str, int]:
        reply = ""
        candidates = data.get("candidates") or []
        if candidates:
            parts = (candidates[0].get("content") or {}).get("parts") or []
            if parts:
                reply = parts[0].get("text") or ""
        tokens = _non_negative_int((data.get("usageMetadata") or {}).get("totalTokenCount"))
        return reply or FALLBACK_REPLY, tokens


class CompletionClient:
    """
    Single-attempt completion client with bounded timeout.

    Features:
    - Provider selection from the agent's model identifier
    - Wall-clock timing of the provider round trip
    - Distinct error kinds for auth, rate limit, timeout and transport failures

    Example:
        client = CompletionClient()
        completion = await client.complete(agent, "Hello!")
    """

    def __init__(self, config: Optional[CompletionConfig] = None):
        self._config = config or settings.completion
        self._openai = OpenAICompatibleProvider(self._config)
        self._gemini = GeminiProvider(self._config)

        logger.info(
            f"Initialized CompletionClient: base_url={self._config.groq_base_url}, "
            f"timeout={self._config.timeout_s}s"
        )

    def provider_for(self, agent: Agent) -> CompletionProvider:
        """Select the provider from the agent's model identifier."""
        if agent.model.startswith("gemini"):
            return self._gemini
        return self._openai

    async def complete(
        self,
        agent: Agent,
        user_text: str,
        ctx: Optional[RequestContext] = None,
        history: Optional[Sequence[Message]] = None,
    ) -> Completion:
        """
        Run one completion for the agent.

        Args:
            agent: Agent whose prompt and model parameterize the call
            user_text: The user's turn
            ctx: Per-call context used for log correlation
            history: Earlier turns supplied by the caller, oldest first

        Returns:
            Completion with reply text and usage metadata

        Raises:
            ProviderAuthError: 401/403 from the provider
            ProviderRateLimitError: 429 from the provider
            ProviderTimeoutError: No answer within the configured timeout
            ProviderTransportError: Connection failure, other non-2xx, bad body
        """
        ctx = ctx or RequestContext()
        provider = self.provider_for(agent)
        request = provider.build_request(agent, user_text, history)

        start_time = time.perf_counter()
        try:
            status, headers, data = await self._post(request)
        except asyncio.TimeoutError:
            elapsed = int((time.perf_counter() - start_time) * 1000)
            logger.error(f"[{ctx.request_id}] {provider.name} timed out after {elapsed}ms")
            raise ProviderTimeoutError(
                f"Provider did not answer within {self._config.timeout_s}s",
                detail=provider.name,
            )
        except aiohttp.ClientError as e:
            logger.error(f"[{ctx.request_id}] {provider.name} transport failure: {e}")
            raise ProviderTransportError("Provider request failed", detail=str(e))
        processing_time_ms = int((time.perf_counter() - start_time) * 1000)

        self._raise_for_status(provider, status, headers, data, ctx)

        if not isinstance(data, dict):
            raise ProviderTransportError(
                "Provider returned an unreadable body", detail=provider.name, status=status
            )

        reply_text, tokens_used = provider.parse_response(data)
        logger.info(
            f"[{ctx.request_id}] {provider.name} completed for {agent.id}: "
            f"tokens={tokens_used}, time={processing_time_ms}ms"
        )
        return Completion(
            reply_text=reply_text,
            tokens_used=tokens_used,
            processing_time_ms=max(processing_time_ms, 0),
            model=agent.model,
        )

    async def _post(self, request: ProviderRequest) -> Tuple[int, Dict[str, str], Any]:
        """
        POST the request and return (status, headers, parsed JSON or None).

        Raises asyncio.TimeoutError or aiohttp.ClientError.
        """
        timeout = aiohttp.ClientTimeout(total=self._config.timeout_s)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(
                request.url,
                headers=request.headers,
                json=request.body,
            ) as response:
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    data = None
                return response.status, dict(response.headers), data

    def _raise_for_status(
        self,
        provider: CompletionProvider,
        status: int,
        headers: Dict[str, str],
        data: Any,
        ctx: RequestContext,
    ) -> None:
        if 200 <= status < 300:
            return

        detail = _error_detail(data) or f"HTTP {status}"
        logger.error(f"[{ctx.request_id}] {provider.name} error response ({status}): {detail}")

        if status in (401, 403):
            raise ProviderAuthError("Provider rejected credentials", detail=detail, status=status)
        if status == 429:
            retry_after = headers.get("Retry-After") or headers.get("retry-after")
            raise ProviderRateLimitError(
                "Provider rate limit exceeded",
                detail=detail,
                retry_after=_non_negative_int(retry_after) if retry_after else None,
            )
        raise ProviderTransportError(f"Provider error ({status})", detail=detail, status=status)


def _error_detail(data: Any) -> str:
    """Pull a short message out of a provider error body."""
    if not isinstance(data, dict):
        return ""
    error = data.get("error")
    if isinstance(error, dict):
        return str(error.get("message", ""))[:200]
    if isinstance(error, str):
        return error[:200]
    return ""


def build_messages(
    agent: Agent,
    user_text: str,
    history: Optional[Sequence[Message]] = None,
) -> List[Message]:
    """System prompt, earlier turns, then the user turn, as sent to chat-style providers."""
    messages = [Message(role="system", content=agent.system_prompt)]
    for turn in history or []:
        if turn.role in ("user", "assistant"):
            messages.append(Message(role=turn.role, content=turn.content))
    messages.append(Message(role="user", content=user_text))
    return messages
