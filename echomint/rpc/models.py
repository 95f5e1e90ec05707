"""
Remote-procedure envelope and payload models.

JSON-RPC 2.0 over HTTP POST. Requests carry `jsonrpc`, `method`, `params`
and an optional `id`; responses carry exactly one of `result` / `error`
and echo the request `id` verbatim.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

JSONRPC_VERSION = "2.0"

# Not derived from the provider. Callers must not treat it as a probability.
PLACEHOLDER_CONFIDENCE = 0.95


class ConversationTurn(BaseModel):
    """One earlier turn supplied by the caller. Not stored server-side."""
    role: Literal["user", "assistant"]
    content: str = Field(min_length=1)


class ProcessTextParams(BaseModel):
    agent_id: str = Field(min_length=1)
    user_text: str = Field(min_length=1)
    conversation_history: List[ConversationTurn] = Field(default_factory=list)

    @field_validator("agent_id", "user_text")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class AgentSummary(BaseModel):
    id: str
    name: str
    description: str
    model: str


class ListAgentsResult(BaseModel):
    agents: List[AgentSummary]


class ProcessingMetadata(BaseModel):
    model: str
    tokens_used: int = Field(ge=0)
    processing_time_ms: int = Field(ge=0)
    confidence: float = Field(default=PLACEHOLDER_CONFIDENCE, ge=0.0, le=1.0)


class ProcessTextResult(BaseModel):
    agent_id: str
    reply_text: str
    metadata: ProcessingMetadata


class RpcError(BaseModel):
    code: int
    message: str
    data: Optional[Dict[str, Any]] = None


def success_response(request_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "result": result, "id": request_id}


def error_response(
    request_id: Any,
    code: int,
    message: str,
    data: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    error = RpcError(code=code, message=message, data=data).model_dump(exclude_none=True)
    return {"jsonrpc": JSONRPC_VERSION, "error": error, "id": request_id}
