"""
Error Taxonomy

Every failure the services can report is an EchomintError subclass with a
stable `kind` string. REST and JSON-RPC layers translate these into their
own error bodies; nothing below them formats responses.
"""

from typing import Any, Dict, Optional


class EchomintError(Exception):
    """Base class for all application errors."""

    kind = "internal_error"

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.detail:
            data["detail"] = self.detail
        return data


class ConfigurationError(EchomintError, ValueError):
    """Missing or invalid configuration. Fatal at startup only."""

    kind = "configuration"


# ---------------------------------------------------------------------------
# Remote-procedure layer
# ---------------------------------------------------------------------------

class ProtocolError(EchomintError):
    """Malformed envelope, unknown method or invalid params."""

    kind = "protocol_error"

    def __init__(self, code: int, message: str, detail: Optional[str] = None):
        super().__init__(message, detail)
        self.code = code


class AgentNotFoundError(EchomintError):
    """The requested agent id is not in the registry."""

    kind = "agent_not_found"

    def __init__(self, agent_id: str):
        super().__init__(f"Agent not found: {agent_id}")
        self.agent_id = agent_id


# ---------------------------------------------------------------------------
# Completion provider
# ---------------------------------------------------------------------------

class ProviderError(EchomintError):
    """The language-model provider call failed."""

    kind = "provider_error"

    def __init__(self, message: str, detail: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message, detail)
        self.status = status


class ProviderAuthError(ProviderError):
    kind = "provider_auth"


class ProviderRateLimitError(ProviderError):
    kind = "provider_rate_limit"

    def __init__(self, message: str, detail: Optional[str] = None,
                 status: Optional[int] = 429, retry_after: Optional[int] = None):
        super().__init__(message, detail, status)
        self.retry_after = retry_after


class ProviderTimeoutError(ProviderError):
    kind = "provider_timeout"


class ProviderTransportError(ProviderError):
    kind = "provider_transport"


# ---------------------------------------------------------------------------
# Speech
# ---------------------------------------------------------------------------

class SpeechError(EchomintError):
    """Speech provider or input failure."""

    kind = "speech_error"


class UnsupportedAudioFormatError(SpeechError):
    kind = "unsupported_format"


class SpeechProviderError(SpeechError):
    kind = "speech_provider_failure"


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

class ArtifactNotFoundError(EchomintError):
    kind = "artifact_not_found"

    def __init__(self, artifact_id: str):
        super().__init__(f"Artifact not found: {artifact_id}")
        self.artifact_id = artifact_id


class UpstreamUnavailableError(EchomintError):
    """The dispatcher could not be reached or did not answer with an envelope."""

    kind = "upstream_unavailable"


class ServiceNotReadyError(EchomintError):
    """The service is still starting up or already shutting down."""

    kind = "service_not_ready"

    def __init__(self, service: str):
        super().__init__(f"{service} is not ready")


class RpcCallError(EchomintError):
    """The dispatcher answered with a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Optional[Dict[str, Any]] = None):
        data = data or {}
        super().__init__(message, data.get("detail"))
        self.code = code
        self.data = data
        self.kind = data.get("kind") or kind_for_code(code)


# ---------------------------------------------------------------------------
# Minting
# ---------------------------------------------------------------------------

class MintError(EchomintError):
    """A mint step failed. Never retried automatically."""

    kind = "mint_error"
    reason = "unknown"

    def __init__(self, message: str, detail: Optional[str] = None, reason: Optional[str] = None):
        super().__init__(message, detail)
        if reason:
            self.reason = reason


class UploadFailure(MintError):
    kind = "upload_failure"
    reason = "upload_failure"


class SubmissionFailure(MintError):
    kind = "submission_failure"
    reason = "network_error"


class LedgerRejected(MintError):
    kind = "ledger_rejected"
    reason = "contract_revert"


class MintNotFoundError(EchomintError):
    kind = "mint_not_found"

    def __init__(self, key: str):
        super().__init__(f"Mint not found: {key}")
        self.key = key


# JSON-RPC codes. Standard codes for protocol errors, -320xx for application errors.
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
AGENT_NOT_FOUND = -32004
PROVIDER_AUTH = -32010
PROVIDER_RATE_LIMIT = -32011
PROVIDER_TIMEOUT = -32012
PROVIDER_TRANSPORT = -32013

PROTOCOL_CODES = frozenset({PARSE_ERROR, INVALID_REQUEST, METHOD_NOT_FOUND, INVALID_PARAMS})

_KIND_BY_CODE = {
    AGENT_NOT_FOUND: AgentNotFoundError.kind,
    PROVIDER_AUTH: ProviderAuthError.kind,
    PROVIDER_RATE_LIMIT: ProviderRateLimitError.kind,
    PROVIDER_TIMEOUT: ProviderTimeoutError.kind,
    PROVIDER_TRANSPORT: ProviderTransportError.kind,
    INTERNAL_ERROR: EchomintError.kind,
}


def kind_for_code(code: int) -> str:
    """Map a JSON-RPC error code back to an error kind."""
    if code in PROTOCOL_CODES:
        return ProtocolError.kind
    return _KIND_BY_CODE.get(code, EchomintError.kind)


def code_for_error(error: Exception) -> int:
    """Map an exception raised during dispatch to its JSON-RPC code."""
    if isinstance(error, ProtocolError):
        return error.code
    if isinstance(error, AgentNotFoundError):
        return AGENT_NOT_FOUND
    if isinstance(error, ProviderAuthError):
        return PROVIDER_AUTH
    if isinstance(error, ProviderRateLimitError):
        return PROVIDER_RATE_LIMIT
    if isinstance(error, ProviderTimeoutError):
        return PROVIDER_TIMEOUT
    if isinstance(error, ProviderError):
        return PROVIDER_TRANSPORT
    return INTERNAL_ERROR
