"""Tests for configuration validation."""
import pytest
from src.config import Config


@pytest.fixture
def configured(monkeypatch):
    monkeypatch.setattr(Config, "SUPABASE_URL", "https://project.supabase.co")
    monkeypatch.setattr(Config, "SUPABASE_SERVICE_ROLE_KEY", "service-role")
    monkeypatch.setattr(Config, "SEARCH_PROVIDER", "mistral")
    monkeypatch.setattr(Config, "MISTRAL_API_KEY", "mistral-key")
    monkeypatch.setattr(Config, "PERPLEXITY_API_KEY", None)


def test_validate_ok(configured):
    Config.validate()


def test_validate_missing_supabase(configured, monkeypatch):
    monkeypatch.setattr(Config, "SUPABASE_URL", None)
    with pytest.raises(ValueError) as exc_info:
        Config.validate()
    assert "SUPABASE_URL is required" in str(exc_info.value)


def test_validate_missing_provider_key(configured, monkeypatch):
    monkeypatch.setattr(Config, "SEARCH_PROVIDER", "perplexity")
    with pytest.raises(ValueError) as exc_info:
        Config.validate()
    assert "PERPLEXITY_API_KEY is required" in str(exc_info.value)
    Config.validate(require_provider=False)


def test_validate_unknown_provider(configured, monkeypatch):
    monkeypatch.setattr(Config, "SEARCH_PROVIDER", "openai")
    with pytest.raises(ValueError):
        Config.validate()
