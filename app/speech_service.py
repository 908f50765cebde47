"""
Speech renderer - turns reply text into something Twilio can play.

Two strategies, chosen once per deployment (SPEECH_STRATEGY):
- gateway:  <Play> of our own /tts endpoint, which streams ElevenLabs audio
- provider: <Say> with Twilio's built-in voice

Both append to the same VoiceResponse, so the controller builds one
document whichever strategy is active.
"""

import logging
from abc import ABC, abstractmethod
from urllib.parse import quote

from twilio.twiml.voice_response import VoiceResponse

from .config import SPEECH_STRATEGY_GATEWAY, SPEECH_STRATEGY_PROVIDER, Settings
from .twilio_service import TTS_PATH, TwimlBuilder

logger = logging.getLogger(__name__)


def build_tts_url(base_url: str, text: str) -> str:
    """Build the fetchable /tts URL for a reply."""
    return f"{base_url.rstrip('/')}{TTS_PATH}?text={quote(text, safe='')}"


class SpeechRenderer(ABC):
    """Base class for speech rendering strategies."""

    strategy = ""

    def __init__(self, twiml: TwimlBuilder):
        self.twiml = twiml

    @abstractmethod
    def render(self, response: VoiceResponse, text: str, base_url: str) -> None:
        """Append the spoken reply to the response."""


class GatewaySpeechRenderer(SpeechRenderer):
    """Plays audio synthesized by the ElevenLabs gateway."""

    strategy = SPEECH_STRATEGY_GATEWAY

    def render(self, response: VoiceResponse, text: str, base_url: str) -> None:
        response.play(build_tts_url(base_url, text))


class ProviderVoiceRenderer(SpeechRenderer):
    """Speaks with Twilio's own text-to-speech voice."""

    strategy = SPEECH_STRATEGY_PROVIDER

    def render(self, response: VoiceResponse, text: str, base_url: str) -> None:
        self.twiml.say(response, text)


def build_speech_renderer(settings: Settings, twiml: TwimlBuilder) -> SpeechRenderer:
    """Get the renderer for the configured strategy."""
    if settings.speech_strategy == SPEECH_STRATEGY_GATEWAY:
        if not settings.tts_configured:
            # /tts answers 500 until a key is configured
            logger.warning("SPEECH_STRATEGY=gateway but ELEVENLABS_API_KEY is missing")
        return GatewaySpeechRenderer(twiml)
    return ProviderVoiceRenderer(twiml)
