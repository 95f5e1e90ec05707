"""Simple message lookup for API responses.

User-facing text for REST error bodies, keyed by error kind.
"""

from __future__ import annotations

_MESSAGES: dict[str, str] = {
    "error.protocol_error": "The request was malformed.",
    "error.agent_not_found": "That agent does not exist.",
    "error.provider_auth": "The language provider rejected our credentials.",
    "error.provider_rate_limit": "The language provider is busy. Please try again shortly.",
    "error.provider_timeout": "The language provider took too long to answer.",
    "error.provider_transport": "The language provider could not be reached.",
    "error.unsupported_format": "Unsupported audio format. Please send 16-bit PCM WAV.",
    "error.speech_provider_failure": "Speech recognition failed. Please try again.",
    "error.upstream_unavailable": "The agent service is unavailable. Please try again in a moment.",
    "error.artifact_not_found": "Audio not found.",
    "error.upload_failure": "Uploading the mint metadata failed.",
    "error.submission_failure": "Submitting the mint transaction failed.",
    "error.ledger_rejected": "The ledger rejected the mint transaction.",
    "error.mint_not_found": "No mint matches that identifier.",
    "error.internal_error": "Something went wrong. Please try again.",
    "error.service_not_ready": "Service is starting up. Please try again in a moment.",
    "warning.synthesis_failed": "Voice reply unavailable; returning text only.",
    "warning.artifact_write_failed": "Voice reply could not be saved; returning text only.",
}


def msg(key: str) -> str:
    """Return a message by key, or the key itself if not found."""
    return _MESSAGES.get(key, key)


def error_msg(kind: str) -> str:
    """Return the user-facing message for an error kind."""
    return _MESSAGES.get(f"error.{kind}", _MESSAGES["error.internal_error"])
