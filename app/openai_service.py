"""
OpenAI service - generates the spoken reply for one call turn.

RESILIENCE DESIGN:
- NEVER raises: every failure (timeout, API error, malformed or empty
  response, missing credential) returns the fixed fallback phrase
- The failure is kept in GenerationResult so the controller can report it
- One system message + one user message per request, no history

Python 3.9 compatible - uses typing.Any, typing.Optional
"""

import asyncio
import logging
import time
from typing import Any, Optional

from openai import AsyncOpenAI

from engine.turns import FALLBACK_REPLY, GenerationResult

from .config import Settings

logger = logging.getLogger(__name__)

# Maximum chars of the utterance / reply to log
MAX_LOG_CHARS = 100


class ResponseGenerator:
    """Service for calling OpenAI to answer a caller utterance.

    GUARANTEE: generate_reply() NEVER raises.
    """

    def __init__(self, settings: Settings, client: Optional[Any] = None):
        """Initialize the OpenAI client.

        Does NOT crash if OpenAI is not configured - every reply then
        degrades to the fallback phrase.

        Args:
            settings: Process configuration
            client: Pre-built AsyncOpenAI-compatible client (tests)
        """
        self.model = settings.openai_model
        self.temperature = settings.llm_temperature
        self.max_tokens = settings.llm_max_tokens
        self.timeout_seconds = settings.llm_timeout_seconds

        if client is not None:
            self.client = client
        elif settings.openai_api_key:
            self.client = AsyncOpenAI(api_key=settings.openai_api_key)
            logger.info(f"ResponseGenerator configured with model: {self.model}")
        else:
            self.client = None
            logger.warning("ResponseGenerator: OPENAI_API_KEY not configured - replies will use the fallback phrase")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def generate_reply(self, system_prompt: str, utterance: str) -> GenerationResult:
        """Generate a grounded reply to the caller's utterance.

        Args:
            system_prompt: Prompt built from the knowledge base
            utterance: What the caller just said (sent verbatim)

        Returns:
            GenerationResult with the reply, or the fallback phrase and the
            error when the call failed
        """
        if self.client is None:
            return self._fallback("OpenAI not configured", started=None)

        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": utterance},
                    ],
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            return self._fallback(f"OpenAI timed out after {self.timeout_seconds}s", started)
        except Exception as e:
            return self._fallback(f"OpenAI request failed: {type(e).__name__}: {e}", started)

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            return self._fallback(f"Malformed OpenAI response: {e}", started)

        if not isinstance(content, str) or not content.strip():
            return self._fallback("Empty response from OpenAI", started)

        # Clean up response (remove quotes if present)
        reply = content.strip().strip('"').strip()
        if not reply:
            return self._fallback("Empty response from OpenAI", started)

        latency_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"Reply generated in {latency_ms}ms: {reply[:MAX_LOG_CHARS]}")
        return GenerationResult(text=reply, ok=True, latency_ms=latency_ms)

    def _fallback(self, error: str, started: Optional[float]) -> GenerationResult:
        latency_ms = int((time.monotonic() - started) * 1000) if started is not None else None
        logger.debug(f"generate_reply failed, using fallback phrase: {error}")
        return GenerationResult(text=FALLBACK_REPLY, ok=False, error=error, latency_ms=latency_ms)
