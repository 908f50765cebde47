"""
ElevenLabs Service - streaming text-to-speech gateway.

This service:
1. Builds a synthesis request (text + voice identity + fixed voice settings)
2. Opens a streaming POST to ElevenLabs
3. Returns a SynthesisResult carrying either the audio stream or the HTTP
   status the /tts endpoint must answer with

Status mapping (terminal, never retried):
- 400: missing/blank text
- 500: ELEVENLABS_API_KEY not configured, or unexpected exception
- 502: upstream non-2xx, or upstream answered with no audio body

Python 3.9 compatible - uses typing.Dict, typing.Optional
"""

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from .config import Settings

logger = logging.getLogger(__name__)

ELEVENLABS_BASE_URL = "https://api.elevenlabs.io"

# Fixed voice-quality parameters
VOICE_SETTINGS: Dict[str, Any] = {
    "stability": 0.5,
    "similarity_boost": 0.75,
    "style": 0.2,
    "use_speaker_boost": True,
}

# Maximum chars of an upstream error body to log
MAX_ERROR_LOG_CHARS = 1200


@dataclass(frozen=True)
class SynthesisRequest:
    """Text to speak with a given ElevenLabs voice."""
    text: str
    voice_id: str


@dataclass
class SynthesisResult:
    """Outcome of opening a synthesis stream."""
    status_code: int
    detail: str = ""
    audio: Optional[AsyncIterator[bytes]] = None
    content_type: str = "audio/mpeg"
    _upstream: Optional[httpx.Response] = None

    @property
    def ok(self) -> bool:
        return self.status_code == 200 and self.audio is not None

    async def aclose(self) -> None:
        """Release the upstream connection (safe to call twice)."""
        if self._upstream is not None:
            await self._upstream.aclose()


class ElevenLabsService:
    """Service for streaming speech from ElevenLabs."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        """Initialize the HTTP client.

        Does NOT crash if ElevenLabs is not configured - /tts answers 500.

        Args:
            settings: Process configuration
            http_client: Pre-built client (tests inject a MockTransport)
        """
        self.api_key = settings.elevenlabs_api_key
        self.default_voice_id = settings.elevenlabs_voice_id
        self.model_id = settings.elevenlabs_model_id
        self._http = http_client or httpx.AsyncClient(timeout=settings.tts_timeout_seconds)

        if not self.api_key:
            logger.warning("ElevenLabsService: ELEVENLABS_API_KEY not configured - /tts will return 500")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def build_request(self, text: str, voice_id: Optional[str] = None) -> SynthesisRequest:
        """Build a SynthesisRequest, falling back to the configured voice."""
        return SynthesisRequest(text=text, voice_id=(voice_id or self.default_voice_id))

    def _payload(self, request: SynthesisRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "text": request.text,
            "voice_settings": dict(VOICE_SETTINGS),
        }
        if self.model_id:
            payload["model_id"] = self.model_id
        return payload

    async def open_stream(self, request: SynthesisRequest) -> SynthesisResult:
        """Open a streaming synthesis for the request.

        The upstream response is held open until the returned audio
        iterator is exhausted or SynthesisResult.aclose() is called.

        Returns:
            SynthesisResult - ok with an audio iterator, or an error status
        """
        if not request.text or not request.text.strip():
            return SynthesisResult(status_code=400, detail="Missing text")

        if not self.api_key:
            logger.error("open_stream: ELEVENLABS_API_KEY missing")
            return SynthesisResult(status_code=500, detail="Missing ELEVENLABS_API_KEY")

        url = f"{ELEVENLABS_BASE_URL}/v1/text-to-speech/{request.voice_id}/stream"
        headers = {
            "xi-api-key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "audio/mpeg",
        }

        upstream: Optional[httpx.Response] = None
        try:
            http_request = self._http.build_request(
                "POST",
                url,
                params={"optimize_streaming_latency": 3},
                headers=headers,
                json=self._payload(request),
            )
            upstream = await self._http.send(http_request, stream=True)

            if not upstream.is_success:
                error_body = await upstream.aread()
                await upstream.aclose()
                logger.error(
                    f"ElevenLabs error {upstream.status_code}: "
                    f"{error_body.decode('utf-8', errors='replace')[:MAX_ERROR_LOG_CHARS]}"
                )
                return SynthesisResult(status_code=502, detail="TTS upstream error")

            chunks = upstream.aiter_bytes()
            try:
                first_chunk = await chunks.__anext__()
            except StopAsyncIteration:
                first_chunk = b""

            if not first_chunk:
                await upstream.aclose()
                logger.error("ElevenLabs returned no audio body")
                return SynthesisResult(status_code=502, detail="TTS upstream error")

        except Exception as e:
            if upstream is not None:
                await upstream.aclose()
            logger.error(f"TTS synthesis error: {type(e).__name__}: {e}")
            return SynthesisResult(status_code=500, detail="TTS error")

        async def _audio() -> AsyncIterator[bytes]:
            try:
                yield first_chunk
                async for chunk in chunks:
                    yield chunk
            finally:
                await upstream.aclose()

        logger.info(f"Streaming TTS audio: voice={request.voice_id}, chars={len(request.text)}")
        return SynthesisResult(
            status_code=200,
            audio=_audio(),
            content_type="audio/mpeg",
            _upstream=upstream,
        )

    async def close(self) -> None:
        await self._http.aclose()
