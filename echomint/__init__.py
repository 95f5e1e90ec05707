"""
echomint - Source Package

Voice-enabled AI agents with optional on-chain minting of conversations.

This package provides:
- A JSON-RPC dispatcher routing utterances to agents backed by LLM providers
- A REST gateway sequencing speech recognition, dispatch and synthesis
- A minting gateway uploading metadata and submitting ledger transactions
"""

__version__ = "1.0.0"

from echomint.config import settings

__all__ = ["settings", "__version__"]
