"""
Core Module Package

This package contains the provider adapters and storage used by the services:
- LLM: Completion client for the external language-model providers
- Speech: Speech-to-text and text-to-speech bridge
- Artifacts: Write-once storage for synthesized audio
"""

from echomint.core.llm import CompletionClient, Completion
from echomint.core.speech import SpeechBridge, SpeechProvider, AzureSpeechProvider
from echomint.core.artifacts import ArtifactStore, AudioArtifact

__all__ = [
    "CompletionClient",
    "Completion",
    "SpeechBridge",
    "SpeechProvider",
    "AzureSpeechProvider",
    "ArtifactStore",
    "AudioArtifact",
]
