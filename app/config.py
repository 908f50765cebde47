"""
Configuration for the voice receptionist.

Settings are read from the environment ONCE, at startup, into an immutable
object that is passed to every service. No service reads os.environ itself.

Python 3.9 compatible - uses typing.Optional, typing.Tuple
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple

import phonenumbers
from dotenv import load_dotenv
from phonenumbers import NumberParseException

from engine.urgency import DEFAULT_URGENCY_LEXICON, build_lexicon
from knowledge.base import KnowledgeBase, load_knowledge_base

logger = logging.getLogger(__name__)

DEFAULT_VOICE_ID = "21m00Tcm4TlvDq8ikWAM"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"

SPEECH_STRATEGY_GATEWAY = "gateway"
SPEECH_STRATEGY_PROVIDER = "provider"
SPEECH_STRATEGIES = (SPEECH_STRATEGY_GATEWAY, SPEECH_STRATEGY_PROVIDER)


class ConfigurationError(RuntimeError):
    """A configuration value is missing or invalid."""


def load_environment() -> None:
    """Load .env from the project root or the current working directory."""
    env_paths = [
        Path(__file__).parent.parent / ".env",
        Path.cwd() / ".env",
    ]
    for env_path in env_paths:
        if env_path.exists():
            load_dotenv(env_path)
            return
    load_dotenv()


def normalize_transfer_number(raw: Optional[str], default_region: str = "FR") -> Optional[str]:
    """
    Normalize a human-transfer number to E.164.

    Returns None when no number is configured.

    Raises:
        ConfigurationError: If the number cannot be parsed or is not valid.
    """
    if not raw or not raw.strip():
        return None
    try:
        parsed = phonenumbers.parse(raw.strip(), default_region)
    except NumberParseException as e:
        raise ConfigurationError(f"TRANSFER_NUMBER is not a phone number: {raw!r} ({e})") from e
    if not phonenumbers.is_valid_number(parsed):
        raise ConfigurationError(f"TRANSFER_NUMBER is not a valid phone number: {raw!r}")
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    """Process-wide, read-only configuration."""
    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False

    # Language model
    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    llm_temperature: float = 0.3
    llm_max_tokens: int = 150
    llm_timeout_seconds: float = 8.0

    # Speech synthesis gateway
    elevenlabs_api_key: Optional[str] = None
    elevenlabs_voice_id: str = DEFAULT_VOICE_ID
    elevenlabs_model_id: Optional[str] = None
    tts_timeout_seconds: float = 10.0
    speech_strategy: str = SPEECH_STRATEGY_PROVIDER

    # Telephony
    webhook_base_url: Optional[str] = None
    twilio_voice: str = "alice"
    twilio_language: str = "fr-FR"
    transfer_number: Optional[str] = None

    # Turn policy
    urgency_lexicon: Tuple[str, ...] = DEFAULT_URGENCY_LEXICON
    knowledge_base_path: Optional[str] = None

    @property
    def llm_configured(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def tts_configured(self) -> bool:
        return bool(self.elevenlabs_api_key)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build Settings from environment variables.

        Args:
            env: Mapping to read from (defaults to os.environ)

        Raises:
            ConfigurationError: If a value is present but invalid.
        """
        if env is None:
            env = os.environ

        port_raw = env.get("PORT", "3000")
        try:
            port = int(port_raw)
        except ValueError as e:
            raise ConfigurationError(f"PORT must be an integer, got {port_raw!r}") from e

        elevenlabs_key = _blank_to_none(env.get("ELEVENLABS_API_KEY"))

        strategy = (env.get("SPEECH_STRATEGY") or "").strip().lower()
        if not strategy:
            strategy = SPEECH_STRATEGY_GATEWAY if elevenlabs_key else SPEECH_STRATEGY_PROVIDER
        if strategy not in SPEECH_STRATEGIES:
            raise ConfigurationError(
                f"SPEECH_STRATEGY must be one of {list(SPEECH_STRATEGIES)}, got {strategy!r}"
            )

        extra_keywords = [kw for kw in (env.get("URGENCY_KEYWORDS") or "").split(",") if kw.strip()]
        base_url = _blank_to_none(env.get("WEBHOOK_BASE_URL"))

        return cls(
            host=env.get("HOST", "0.0.0.0"),
            port=port,
            debug=(env.get("DEBUG", "false").lower() == "true"),
            openai_api_key=_blank_to_none(env.get("OPENAI_API_KEY")),
            openai_model=env.get("OPENAI_MODEL") or DEFAULT_OPENAI_MODEL,
            llm_timeout_seconds=_float(env, "LLM_TIMEOUT_SECONDS", 8.0),
            elevenlabs_api_key=elevenlabs_key,
            elevenlabs_voice_id=_blank_to_none(env.get("ELEVENLABS_VOICE_ID")) or DEFAULT_VOICE_ID,
            elevenlabs_model_id=_blank_to_none(env.get("ELEVENLABS_MODEL_ID")),
            tts_timeout_seconds=_float(env, "TTS_TIMEOUT_SECONDS", 10.0),
            speech_strategy=strategy,
            webhook_base_url=base_url.rstrip("/") if base_url else None,
            twilio_voice=env.get("TWILIO_VOICE") or "alice",
            twilio_language=env.get("TWILIO_LANGUAGE") or "fr-FR",
            transfer_number=normalize_transfer_number(env.get("TRANSFER_NUMBER")),
            urgency_lexicon=build_lexicon(extra_keywords),
            knowledge_base_path=_blank_to_none(env.get("KNOWLEDGE_BASE_PATH")),
        )

    def load_knowledge_base(self) -> KnowledgeBase:
        """
        Load the KnowledgeBase configured for this deployment.

        Raises:
            ConfigurationError: If the configured file is invalid.
        """
        try:
            return load_knowledge_base(self.knowledge_base_path)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e


def mask_key(key: Optional[str]) -> str:
    """Mask API key showing only last 4 chars."""
    if not key:
        return "(not set)"
    if len(key) <= 4:
        return "****"
    return f"****{key[-4:]}"
