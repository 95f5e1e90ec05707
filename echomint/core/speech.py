"""
Speech Bridge Module

Provides speech-to-text (STT) and text-to-speech (TTS) for the request
gateway using Azure Cognitive Services Speech SDK.

Architecture:
- SpeechProvider: Abstract base class for a blocking speech backend
- AzureSpeechProvider: Azure Speech SDK implementation
- SpeechBridge: Async façade that validates input, runs the blocking SDK
  call in a worker thread, applies the timeout and maps failures onto
  UnsupportedAudioFormatError / SpeechProviderError

Neither operation retries. The gateway decides whether a failure is fatal.

Usage:
    from echomint.core.speech import SpeechBridge, AzureSpeechProvider

    bridge = SpeechBridge(AzureSpeechProvider())
    text = await bridge.transcribe(wav_bytes)
    audio = await bridge.synthesize("Hello, how can I help?")
"""

import asyncio
import io
import wave
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import azure.cognitiveservices.speech as speechsdk

from echomint.config import SpeechConfig, settings
from echomint.context import RequestContext
from echomint.errors import SpeechProviderError, UnsupportedAudioFormatError
from echomint.logger import get_logger

logger = get_logger(__name__)

SYNTHESIS_MIME_TYPE = "audio/mpeg"


@dataclass(frozen=True)
class PcmAudio:
    """Decoded PCM payload of a WAV upload."""
    frames: bytes
    sample_rate: int
    bits_per_sample: int
    channels: int


def decode_wav(audio_bytes: bytes) -> PcmAudio:
    """
    Parse a RIFF/WAVE container holding 16-bit mono PCM.

    Raises:
        UnsupportedAudioFormatError: For any other container or encoding
    """
    if not audio_bytes:
        raise UnsupportedAudioFormatError("Empty audio payload")
    if audio_bytes[:4] != b"RIFF" or audio_bytes[8:12] != b"WAVE":
        raise UnsupportedAudioFormatError(
            "Audio must be a WAV file", detail=f"header={audio_bytes[:12]!r}"
        )
    try:
        with wave.open(io.BytesIO(audio_bytes), "rb") as wav:
            channels = wav.getnchannels()
            sample_width = wav.getsampwidth()
            sample_rate = wav.getframerate()
            frames = wav.readframes(wav.getnframes())
    except (wave.Error, EOFError) as e:
        raise UnsupportedAudioFormatError("Audio is not PCM WAV", detail=str(e))

    if sample_width != 2 or channels != 1:
        raise UnsupportedAudioFormatError(
            "Audio must be 16-bit mono PCM",
            detail=f"channels={channels}, bits={sample_width * 8}",
        )
    if not frames:
        raise UnsupportedAudioFormatError("Audio contains no samples")
    return PcmAudio(frames=frames, sample_rate=sample_rate, bits_per_sample=16, channels=1)


class SpeechProvider(ABC):
    """
    Blocking speech backend.

    Implementations raise SpeechProviderError on provider-side failure and
    return None from recognize() when no speech was found.
    """

    @abstractmethod
    def recognize(self, audio: PcmAudio) -> Optional[str]:
        pass

    @abstractmethod
    def synthesize(self, text: str) -> bytes:
        pass


class AzureSpeechProvider(SpeechProvider):
    """
    Azure Speech Services backend.

    Recognition pushes decoded PCM into a PushAudioInputStream; synthesis
    captures MP3 in memory (no speaker output).
    """

    def __init__(self, config: Optional[SpeechConfig] = None):
        self._config = config or settings.speech
        self._config.validate()

        self._speech_config = speechsdk.SpeechConfig(
            subscription=self._config.api_key,
            region=self._config.region
        )
        self._speech_config.speech_recognition_language = self._config.language
        self._speech_config.speech_synthesis_voice_name = self._config.voice_name
        self._speech_config.set_speech_synthesis_output_format(
            speechsdk.SpeechSynthesisOutputFormat.Audio16Khz32KBitRateMonoMp3
        )

        logger.info(
            f"Speech provider initialized: region={self._config.region}, "
            f"language={self._config.language}, voice={self._config.voice_name}"
        )

    def recognize(self, audio: PcmAudio) -> Optional[str]:
        stream_format = speechsdk.audio.AudioStreamFormat(
            samples_per_second=audio.sample_rate,
            bits_per_sample=audio.bits_per_sample,
            channels=audio.channels,
        )
        push_stream = speechsdk.audio.PushAudioInputStream(stream_format=stream_format)
        push_stream.write(audio.frames)
        push_stream.close()

        recognizer = speechsdk.SpeechRecognizer(
            speech_config=self._speech_config,
            audio_config=speechsdk.audio.AudioConfig(stream=push_stream)
        )
        result = recognizer.recognize_once_async().get()

        if result is None:
            raise SpeechProviderError("Recognition returned no result")

        if result.reason == speechsdk.ResultReason.RecognizedSpeech:
            return result.text

        if result.reason == speechsdk.ResultReason.NoMatch:
            logger.debug(f"No speech recognized: {result.no_match_details.reason}")
            return None

        if result.reason == speechsdk.ResultReason.Canceled:
            cancellation = result.cancellation_details
            logger.warning(f"Recognition canceled: {cancellation.reason}")
            raise SpeechProviderError(
                "Recognition canceled", detail=str(cancellation.error_details or cancellation.reason)
            )

        raise SpeechProviderError(f"Unexpected recognition result: {result.reason}")

    def synthesize(self, text: str) -> bytes:
        synthesizer = speechsdk.SpeechSynthesizer(
            speech_config=self._speech_config,
            audio_config=None  # No audio output, we capture the stream
        )
        result = synthesizer.speak_text_async(text).get()

        if result is None:
            raise SpeechProviderError("Synthesis returned no result")

        if result.reason == speechsdk.ResultReason.SynthesizingAudioCompleted:
            return result.audio_data

        if result.reason == speechsdk.ResultReason.Canceled:
            cancellation = result.cancellation_details
            logger.warning(f"Synthesis canceled: {cancellation.reason}")
            raise SpeechProviderError(
                "Synthesis canceled", detail=str(cancellation.error_details or cancellation.reason)
            )

        raise SpeechProviderError(f"Unexpected synthesis result: {result.reason}")


class SpeechBridge:
    """
    Async speech operations with input validation and timeouts.

    The blocking SDK call runs via asyncio.to_thread. On timeout the worker
    thread is abandoned, not interrupted, so the provider may still finish.
    """

    mime_type = SYNTHESIS_MIME_TYPE

    def __init__(self, provider: SpeechProvider, timeout_s: Optional[float] = None):
        self._provider = provider
        self._timeout_s = timeout_s if timeout_s is not None else settings.speech.timeout_s

    async def transcribe(self, audio_bytes: bytes, ctx: Optional[RequestContext] = None) -> str:
        """
        Convert WAV audio to text.

        Raises:
            UnsupportedAudioFormatError: Input is not 16-bit mono PCM WAV
            SpeechProviderError: Provider failure, timeout or no speech found
        """
        ctx = ctx or RequestContext()
        audio = decode_wav(audio_bytes)

        text = await self._run(self._provider.recognize, audio, operation="transcription", ctx=ctx)
        if not text or not text.strip():
            raise SpeechProviderError("No speech recognized")

        logger.debug(f"[{ctx.request_id}] Recognized: {text[:50]}")
        return text.strip()

    async def synthesize(self, text: str, ctx: Optional[RequestContext] = None) -> bytes:
        """
        Convert text to MP3 audio.

        Raises:
            SpeechProviderError: Provider failure, timeout or empty audio
        """
        ctx = ctx or RequestContext()
        if not text:
            raise SpeechProviderError("Nothing to synthesize")

        audio = await self._run(self._provider.synthesize, text, operation="synthesis", ctx=ctx)
        if not audio:
            raise SpeechProviderError("Synthesis produced no audio")
        return audio

    async def _run(self, func, arg, operation: str, ctx: RequestContext):
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, arg), timeout=self._timeout_s)
        except asyncio.TimeoutError:
            logger.error(f"[{ctx.request_id}] Speech {operation} timed out after {self._timeout_s}s")
            raise SpeechProviderError(f"Speech {operation} timed out")
        except SpeechProviderError:
            raise
        except Exception as e:
            logger.error(f"[{ctx.request_id}] Speech {operation} error: {e}")
            raise SpeechProviderError(f"Speech {operation} failed", detail=str(e))
