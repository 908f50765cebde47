"""
Twilio Service - builds the TwiML documents returned to Twilio.

Every document is built with twilio.twiml.voice_response.VoiceResponse so
text is always XML-escaped and the output is always well-formed.

Verbs used: Gather (speech), Say, Play, Pause, Redirect, Dial.

Python 3.9 compatible - uses typing.Optional
"""

import logging
from typing import Optional

from twilio.twiml.voice_response import VoiceResponse

from engine.turns import CLOSING, ESCALATION_NOTICE, GREETING, REPROMPT, TECHNICAL_FAILURE

from .config import Settings

logger = logging.getLogger(__name__)

TURN_START_PATH = "/voice"
TURN_CONTINUE_PATH = "/ai"
TTS_PATH = "/tts"

PAUSE_SECONDS = 1


class TwimlBuilder:
    """Builds TwiML with the configured Twilio voice and locale."""

    def __init__(self, settings: Settings):
        self.voice = settings.twilio_voice
        self.language = settings.twilio_language
        self.transfer_number = settings.transfer_number

    def new_response(self) -> VoiceResponse:
        return VoiceResponse()

    def say(self, response, text: str) -> None:
        """Append a Say verb (works on VoiceResponse and Gather)."""
        response.say(text, voice=self.voice, language=self.language)

    def pause(self, response: VoiceResponse, length: int = PAUSE_SECONDS) -> None:
        response.pause(length=length)

    def greeting(self, continue_url: str, start_url: str) -> str:
        """Greeting inside a speech Gather, then redirect back to turn-start.

        The redirect only fires when Twilio captured no speech before its
        timeout; Twilio's own limits bound that loop.
        """
        response = self.new_response()
        gather = response.gather(
            input="speech",
            language=self.language,
            speech_timeout="auto",
            action=continue_url,
            method="POST",
        )
        self.say(gather, GREETING)
        response.redirect(start_url, method="POST")
        return str(response)

    def reprompt(self, start_url: str) -> str:
        """Ask the caller to repeat and go back to the greeting."""
        response = self.new_response()
        self.say(response, REPROMPT)
        response.redirect(start_url, method="POST")
        return str(response)

    def escalation(self, response: VoiceResponse) -> None:
        """Append the escalation notice, and the transfer when one is configured."""
        self.pause(response)
        self.say(response, ESCALATION_NOTICE)
        if self.transfer_number:
            logger.info(f"Escalation: dialing transfer number {self.transfer_number}")
            response.dial(self.transfer_number)
        else:
            logger.info("Escalation: no TRANSFER_NUMBER configured, notice only")

    def closing(self, response: VoiceResponse) -> None:
        self.pause(response)
        self.say(response, CLOSING)

    def failure(self, reason: Optional[str] = None) -> str:
        """Apology document for a turn that could not be orchestrated."""
        logger.debug(f"Building failure TwiML: {reason or '(no reason)'}")
        response = self.new_response()
        self.say(response, TECHNICAL_FAILURE)
        return str(response)
