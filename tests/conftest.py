"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import io
import os
import sys
import tempfile
import time
import wave
import pytest
from pathlib import Path
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set test environment
os.environ["APP_ENV"] = "test"
os.environ["GROQ_API_KEY"] = "test-groq-key"
os.environ["GEMINI_API_KEY"] = "test-gemini-key"
os.environ["AZURE_SPEECH_API_KEY"] = "test-speech-key"
os.environ["AZURE_SPEECH_REGION"] = "eastus"
os.environ["IPFS_API_URL"] = "http://ipfs.test/api/v0/add"
os.environ["LEDGER_RPC_URL"] = "http://ledger.test"
os.environ["LEDGER_API_KEY"] = "test-ledger-key"
os.environ["ARTIFACT_DIR"] = tempfile.mkdtemp(prefix="echomint-artifacts-")
os.environ["PUBLIC_BASE_URL"] = "http://gateway.test"

from echomint.core.speech import SpeechProvider  # noqa: E402


def make_wav(
    frames: bytes = b"\x10\x00" * 1600,
    channels: int = 1,
    sample_width: int = 2,
    sample_rate: int = 16000,
) -> bytes:
    """Build an in-memory WAV file."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(sample_width)
        wav.setframerate(sample_rate)
        wav.writeframes(frames)
    return buffer.getvalue()


class FakeSpeechProvider(SpeechProvider):
    """Speech backend returning canned results."""

    def __init__(
        self,
        transcript: Optional[str] = "What is a blockchain?",
        audio: bytes = b"ID3\x03\x00fake-mp3",
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.transcript = transcript
        self.audio = audio
        self.error = error
        self.delay = delay
        self.recognize_calls = 0
        self.synthesize_calls = 0

    def recognize(self, audio):
        self.recognize_calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return self.transcript

    def synthesize(self, text):
        self.synthesize_calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return self.audio


@pytest.fixture
def wav_bytes():
    """Valid 16-bit mono PCM WAV."""
    return make_wav()


@pytest.fixture
def registry():
    """Built-in agent catalog."""
    from echomint.agents import AgentRegistry

    return AgentRegistry.default()


@pytest.fixture
def completion():
    """Mock completion client."""
    from echomint.core.llm import Completion

    client = MagicMock()
    client.complete = AsyncMock(return_value=Completion(
        reply_text="A blockchain is a shared ledger.",
        tokens_used=42,
        processing_time_ms=120,
        model="mixtral-8x7b-32768",
    ))
    return client


@pytest.fixture
def speech_provider():
    return FakeSpeechProvider()


@pytest.fixture
def artifact_store(tmp_path):
    """Artifact store in a temporary directory."""
    from echomint.core.artifacts import ArtifactStore

    return ArtifactStore(tmp_path / "audio", public_base_url="http://gateway.test")


@pytest.fixture
def rpc_client():
    """Mock dispatcher client answering process_text for any agent."""
    client = MagicMock()
    client.list_agents = AsyncMock(return_value=[
        {"id": agent_id, "name": name, "description": "", "model": "mixtral-8x7b-32768"}
        for agent_id, name in (
            ("agent_001", "General Assistant"),
            ("agent_002", "Web3 Expert"),
            ("agent_003", "Voice Specialist"),
            ("agent_004", "Code Assistant"),
        )
    ])

    async def process_text(agent_id, user_text, ctx=None, history=None):
        return {
            "agent_id": agent_id,
            "reply_text": f"Reply to: {user_text}",
            "metadata": {
                "model": "mixtral-8x7b-32768",
                "tokens_used": 12,
                "processing_time_ms": 80,
                "confidence": 0.95,
            },
        }

    client.process_text = AsyncMock(side_effect=process_text)
    return client
