"""
Tests for Settings and knowledge base loading.

Settings are built from an explicit mapping. The import test sets variables
through monkeypatch, which restores os.environ afterwards.
"""

import importlib
import json
import os

import pytest

import app.main
from app.config import (
    DEFAULT_VOICE_ID,
    ConfigurationError,
    Settings,
    mask_key,
    normalize_transfer_number,
)
from knowledge.base import CABINET_SANTE_ACTIVE, KnowledgeBase, load_knowledge_base


class TestSettingsFromEnv:
    """Tests for Settings.from_env()."""

    def test_defaults(self):
        settings = Settings.from_env({})

        assert settings.port == 3000
        assert settings.openai_api_key is None
        assert settings.openai_model == "gpt-4o-mini"
        assert settings.elevenlabs_voice_id == DEFAULT_VOICE_ID
        assert settings.speech_strategy == "provider"
        assert settings.transfer_number is None
        assert settings.llm_configured is False
        assert settings.tts_configured is False

    def test_values_are_read(self):
        settings = Settings.from_env({
            "PORT": "8080",
            "OPENAI_API_KEY": "sk-test",
            "OPENAI_MODEL": "gpt-4.1-mini",
            "ELEVENLABS_API_KEY": "el-test",
            "ELEVENLABS_VOICE_ID": "voice-42",
            "WEBHOOK_BASE_URL": "https://receptionist.example.com/",
            "LLM_TIMEOUT_SECONDS": "5.5",
            "DEBUG": "TRUE",
        })

        assert settings.port == 8080
        assert settings.openai_api_key == "sk-test"
        assert settings.openai_model == "gpt-4.1-mini"
        assert settings.elevenlabs_voice_id == "voice-42"
        assert settings.webhook_base_url == "https://receptionist.example.com"
        assert settings.llm_timeout_seconds == 5.5
        assert settings.debug is True

    def test_blank_voice_id_uses_default(self):
        assert Settings.from_env({"ELEVENLABS_VOICE_ID": "  "}).elevenlabs_voice_id == DEFAULT_VOICE_ID

    def test_gateway_chosen_when_tts_key_present(self):
        assert Settings.from_env({"ELEVENLABS_API_KEY": "el"}).speech_strategy == "gateway"

    def test_explicit_strategy_wins(self):
        settings = Settings.from_env({"ELEVENLABS_API_KEY": "el", "SPEECH_STRATEGY": "Provider"})
        assert settings.speech_strategy == "provider"

    def test_invalid_strategy_raises(self):
        with pytest.raises(ConfigurationError):
            Settings.from_env({"SPEECH_STRATEGY": "polly"})

    @pytest.mark.parametrize("env", [
        {"PORT": "http"},
        {"LLM_TIMEOUT_SECONDS": "soon"},
        {"TTS_TIMEOUT_SECONDS": "0"},
    ])
    def test_invalid_numbers_raise(self, env):
        with pytest.raises(ConfigurationError):
            Settings.from_env(env)

    def test_urgency_keywords_extend_lexicon(self):
        settings = Settings.from_env({"URGENCY_KEYWORDS": "Incendie, chute ,"})
        assert "incendie" in settings.urgency_lexicon
        assert "chute" in settings.urgency_lexicon
        assert "douleur" in settings.urgency_lexicon

    def test_settings_are_immutable(self):
        settings = Settings.from_env({})
        with pytest.raises(AttributeError):
            settings.openai_api_key = "changed"


class TestTransferNumber:
    """Tests for normalize_transfer_number()."""

    @pytest.mark.parametrize("raw", ["+33 6 12 34 56 78", "06 12 34 56 78", "+33612345678"])
    def test_normalized_to_e164(self, raw):
        assert normalize_transfer_number(raw) == "+33612345678"

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_absent_is_none(self, raw):
        assert normalize_transfer_number(raw) is None

    @pytest.mark.parametrize("raw", ["not-a-number", "+33 1"])
    def test_invalid_raises(self, raw):
        with pytest.raises(ConfigurationError):
            normalize_transfer_number(raw)

    def test_from_env(self):
        assert Settings.from_env({"TRANSFER_NUMBER": "06 12 34 56 78"}).transfer_number == "+33612345678"


class TestKnowledgeBaseLoading:
    """Tests for load_knowledge_base() and Settings.load_knowledge_base()."""

    def test_default_without_path(self):
        assert load_knowledge_base(None) is CABINET_SANTE_ACTIVE
        assert Settings().load_knowledge_base() is CABINET_SANTE_ACTIVE

    def test_load_from_json(self, tmp_path):
        data = {
            "name": "Garage Dupont",
            "address": "3 avenue Jean-Jaurès, 69007 Lyon",
            "phone": "04 78 00 00 00",
            "hours": "Mardi-Vendredi 8h-18h",
            "pricing": "Vidange: 79€",
            "policies": "Devis gratuit.",
        }
        path = tmp_path / "kb.json"
        path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")

        kb = Settings(knowledge_base_path=str(path)).load_knowledge_base()

        assert kb == KnowledgeBase(**data)

    def test_missing_field_raises(self, tmp_path):
        path = tmp_path / "kb.json"
        path.write_text(json.dumps({"name": "Garage Dupont"}), encoding="utf-8")

        with pytest.raises(ConfigurationError):
            Settings(knowledge_base_path=str(path)).load_knowledge_base()

    def test_unreadable_file_raises(self, tmp_path):
        with pytest.raises(ConfigurationError):
            Settings(knowledge_base_path=str(tmp_path / "missing.json")).load_knowledge_base()

    def test_non_object_raises(self, tmp_path):
        path = tmp_path / "kb.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ValueError):
            load_knowledge_base(path)


class TestMaskKey:
    def test_mask(self):
        assert mask_key(None) == "(not set)"
        assert mask_key("abc") == "****"
        assert mask_key("sk-1234567890") == "****7890"


class TestAppModuleImport:
    """Importing app.main must not read the process environment."""

    def test_invalid_env_does_not_break_import(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TRANSFER_NUMBER", "not-a-number")
        monkeypatch.delenv("OPENAI_MODEL", raising=False)
        (tmp_path / ".env").write_text("OPENAI_MODEL=from-dotenv\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)

        module = importlib.reload(app.main)
        built = module.create_app(Settings(openai_api_key="k"))

        assert built.title == "Voice Receptionist"
        assert not hasattr(module, "app")
        assert "OPENAI_MODEL" not in os.environ
