"""
Voice capabilities: speech-to-text input and text-to-speech output.

Whisper and ElevenLabs back the real implementations; the null variants keep
voice chat usable (text only) when no credentials are configured.
"""

import base64
import io
from typing import Optional, Protocol

import httpx
import openai
from loguru import logger

from northpole.config import Settings
from northpole.services.santa_service import is_real_api_key


class VoiceInput(Protocol):
    async def transcribe(self, audio: bytes) -> str:
        ...


class VoiceOutput(Protocol):
    async def synthesize(self, text: str) -> bytes:
        ...


class NullVoiceInput:
    async def transcribe(self, audio: bytes) -> str:
        return ""


class NullVoiceOutput:
    async def synthesize(self, text: str) -> bytes:
        return b""


class WhisperVoiceInput:
    """OpenAI Whisper transcription."""

    def __init__(self, settings: Settings, client=None):
        self.model = settings.WHISPER_MODEL
        self._client = client or openai.AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            timeout=settings.OPENAI_TIMEOUT,
        )

    async def transcribe(self, audio: bytes) -> str:
        if not audio:
            return ""
        try:
            audio_file = io.BytesIO(audio)
            audio_file.name = "audio.webm"
            transcript = await self._client.audio.transcriptions.create(
                model=self.model, file=audio_file, language="en",
            )
            text = transcript.text.strip()
            logger.info(f"STT transcription: '{text[:80]}'")
            return text
        except Exception as e:
            logger.error(f"STT error: {e}")
            return ""


class ElevenLabsVoiceOutput:
    """ElevenLabs text-to-speech, returns MP3 bytes."""

    API_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = settings.ELEVENLABS_API_KEY
        self.voice_id = settings.ELEVENLABS_VOICE_ID
        self._transport = transport

    async def synthesize(self, text: str) -> bytes:
        if not text:
            return b""
        try:
            headers = {
                "xi-api-key": self.api_key,
                "Content-Type": "application/json",
                "Accept": "audio/mpeg",
            }
            payload = {
                "text": text,
                "model_id": "eleven_multilingual_v2",
                "voice_settings": {
                    "stability": 0.5,
                    "similarity_boost": 0.75,
                    "style": 0.6,
                    "use_speaker_boost": True,
                },
            }
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                response = await client.post(
                    self.API_URL.format(voice_id=self.voice_id), headers=headers, json=payload,
                )
                response.raise_for_status()
                logger.info(f"TTS synthesized {len(response.content)} bytes")
                return response.content
        except Exception as e:
            logger.error(f"TTS error: {e}")
            return b""


def encode_audio(audio: bytes) -> str:
    """Base64 audio for JSON transport; empty string when there is none."""
    if audio:
        return base64.b64encode(audio).decode("utf-8")
    return ""


def build_voice_input(settings: Settings) -> VoiceInput:
    if is_real_api_key(settings.OPENAI_API_KEY):
        return WhisperVoiceInput(settings)
    logger.warning("OPENAI_API_KEY not set — voice input disabled")
    return NullVoiceInput()


def build_voice_output(settings: Settings) -> VoiceOutput:
    if settings.ELEVENLABS_API_KEY:
        return ElevenLabsVoiceOutput(settings)
    logger.warning("ELEVENLABS_API_KEY not set — voice output disabled")
    return NullVoiceOutput()
