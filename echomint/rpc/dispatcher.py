"""
Remote-Procedure Dispatcher

Each call runs one pass of Received → Validated → Routed → Executed →
Formatted. Protocol errors (bad envelope, unknown method, bad params) are
reported with the standard JSON-RPC codes; application errors (unknown
agent, provider failures) use the -320xx range so callers can tell them
apart. Exactly one of `result` / `error` is produced and the request `id`
is echoed unchanged.

There are no retries here. The completion client makes a single attempt
and the caller decides whether to try again.
"""

from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError

from echomint.agents import AgentRegistry
from echomint.context import RequestContext
from echomint.core.llm import CompletionClient, Message
from echomint.errors import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    EchomintError,
    ProtocolError,
    ProviderRateLimitError,
    code_for_error,
)
from echomint.logger import get_logger
from echomint.rpc.models import (
    JSONRPC_VERSION,
    PLACEHOLDER_CONFIDENCE,
    ListAgentsResult,
    ProcessingMetadata,
    ProcessTextParams,
    ProcessTextResult,
    error_response,
    success_response,
)

logger = get_logger(__name__)

Handler = Callable[[Dict[str, Any], RequestContext], Awaitable[Dict[str, Any]]]


class Dispatcher:
    """
    Validates, routes and formats remote-procedure calls.

    Example:
        dispatcher = Dispatcher(AgentRegistry.default(), CompletionClient())
        response = await dispatcher.dispatch(
            {"jsonrpc": "2.0", "method": "list_agents", "params": {}, "id": 1}
        )
    """

    def __init__(self, registry: AgentRegistry, completion: CompletionClient):
        self._registry = registry
        self._completion = completion
        self._handlers: Dict[str, Handler] = {
            "list_agents": self._list_agents,
            "process_text": self._process_text,
        }

    @property
    def methods(self):
        return tuple(self._handlers)

    async def dispatch(self, payload: Any, ctx: Optional[RequestContext] = None) -> Dict[str, Any]:
        """
        Handle one envelope and return the response envelope.

        Never raises for request-scoped failures.
        """
        ctx = ctx or RequestContext()
        request_id = payload.get("id") if isinstance(payload, dict) else None

        try:
            method, params = self._validate_envelope(payload)
            handler = self._handlers[method]
            logger.info(f"[{ctx.request_id}] JSON-RPC request: method={method}, id={request_id!r}")
            result = await handler(params, ctx)
            return success_response(request_id, result)
        except EchomintError as e:
            code = code_for_error(e)
            logger.warning(f"[{ctx.request_id}] JSON-RPC error {code}: {e.message}")
            return error_response(request_id, code, e.message, _error_data(e))
        except Exception as e:
            logger.error(f"[{ctx.request_id}] Unhandled dispatch error: {e}", exc_info=True)
            return error_response(
                request_id,
                INTERNAL_ERROR,
                "Internal error",
                {"kind": EchomintError.kind},
            )

    def _validate_envelope(self, payload: Any):
        if not isinstance(payload, dict):
            raise ProtocolError(INVALID_REQUEST, "Invalid Request: envelope must be an object")
        if payload.get("jsonrpc") != JSONRPC_VERSION:
            raise ProtocolError(INVALID_REQUEST, f"Invalid Request: jsonrpc must be '{JSONRPC_VERSION}'")

        method = payload.get("method")
        if not isinstance(method, str) or not method:
            raise ProtocolError(INVALID_REQUEST, "Invalid Request: method is required")
        if method not in self._handlers:
            raise ProtocolError(METHOD_NOT_FOUND, f"Method not found: {method}")

        params = payload.get("params")
        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise ProtocolError(INVALID_PARAMS, "Invalid params: params must be an object")
        return method, params

    async def _list_agents(self, params: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
        agents = [agent.to_summary() for agent in self._registry.list()]
        return ListAgentsResult.model_validate({"agents": agents}).model_dump()

    async def _process_text(self, params: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
        try:
            parsed = ProcessTextParams.model_validate(params)
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
            raise ProtocolError(
                INVALID_PARAMS,
                "Invalid params for process_text",
                detail=fields or None,
            )

        agent = self._registry.find(parsed.agent_id)
        history = [Message(role=turn.role, content=turn.content) for turn in parsed.conversation_history]
        completion = await self._completion.complete(agent, parsed.user_text, ctx, history=history)

        result = ProcessTextResult(
            agent_id=agent.id,
            reply_text=completion.reply_text,
            metadata=ProcessingMetadata(
                model=agent.model,
                tokens_used=max(completion.tokens_used, 0),
                processing_time_ms=max(completion.processing_time_ms, 0),
                confidence=PLACEHOLDER_CONFIDENCE,
            ),
        )
        return result.model_dump()


def _error_data(error: EchomintError) -> Dict[str, Any]:
    data: Dict[str, Any] = {"kind": error.kind}
    if error.detail:
        data["detail"] = error.detail
    if isinstance(error, ProviderRateLimitError) and error.retry_after is not None:
        data["retry_after"] = error.retry_after
    return data
