"""Configuration validation tests."""
import pytest

from configs import settings
from configs.settings import ConfigurationError, _provider_of, validate_configuration


@pytest.fixture
def models(monkeypatch):
    def _set(*ids):
        monkeypatch.setattr(settings, "LLM_MODELS", list(ids))
    return _set


def test_provider_prefix():
    assert _provider_of("gemini/gemini-2.0-flash") == "gemini"
    assert _provider_of("openrouter/meta-llama/llama-3.3-70b-instruct:free") == "openrouter"
    assert _provider_of("gpt-4o-mini") == "openai"


def test_every_missing_key_is_reported(models, monkeypatch):
    models("gemini/gemini-2.0-flash", "groq/llama-3.1-8b-instant", "gemini/gemini-1.5-pro")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("GROQ_API_KEY", "your_groq_api_key_here")

    with pytest.raises(ConfigurationError) as exc_info:
        validate_configuration()

    message = str(exc_info.value)
    assert message.count("GEMINI_API_KEY is not configured") == 1
    assert "GROQ_API_KEY is not configured" in message


def test_configured_keys_pass(models, monkeypatch):
    models("gemini/gemini-2.0-flash", "ollama/llama3")
    monkeypatch.setenv("GEMINI_API_KEY", "real-key")

    config = validate_configuration()

    assert config["llm_models"] == ["gemini/gemini-2.0-flash", "ollama/llama3"]
    assert config["database_type"] in ("sqlite", "postgres")


def test_api_check_can_be_skipped(models, monkeypatch):
    models("openai/gpt-4o-mini")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    assert validate_configuration(skip_api_check=True)["llm_models"] == ["openai/gpt-4o-mini"]


def test_empty_model_list(models):
    models()
    with pytest.raises(ConfigurationError, match="LLM_MODELS"):
        validate_configuration(skip_api_check=True)


class TestTargetDialect:

    def test_dialect_follows_sqlite_sink_when_unset(self, monkeypatch):
        monkeypatch.delenv("DEFAULT_TARGET_DIALECT", raising=False)
        monkeypatch.setattr(settings, "DATABASE_URL", "")
        assert settings.default_target_dialect() == "sqlite"

    def test_dialect_follows_postgres_sink_when_unset(self, monkeypatch):
        monkeypatch.delenv("DEFAULT_TARGET_DIALECT", raising=False)
        monkeypatch.setattr(settings, "DATABASE_URL", "postgresql://user:pw@db/lake")
        assert settings.default_target_dialect() == "postgres"

    def test_explicit_dialect_wins(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_TARGET_DIALECT", "MySQL")
        monkeypatch.setattr(settings, "DATABASE_URL", "")
        assert settings.default_target_dialect() == "mysql"

    def test_database_argument_decides(self, monkeypatch):
        monkeypatch.setattr(settings, "DEFAULT_TARGET_DIALECT", "mysql")
        assert settings.dialect_for_database("postgres://db/lake") == "postgres"
        assert settings.dialect_for_database("./out.db") == "sqlite"
        assert settings.dialect_for_database(None) == "mysql"
