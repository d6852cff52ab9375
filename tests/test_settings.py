"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest

from chartgen import settings as settings_module
from chartgen.prompting import DEFAULT_TEMPLATE_PATH
from chartgen.settings import Settings

ENV_VARS = (
    "CHARTGEN_LOG_LEVEL",
    "CHARTGEN_SYSTEM_PROMPT_PATH",
    "CHARTGEN_PROVIDER",
    "CHARTGEN_MODEL",
    "CHARTGEN_API_KEY",
    "CHARTGEN_BASE_URL",
    "GEMINI_API_KEY",
    "GEMINI_MODEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_module_documents_its_rationale() -> None:
    assert "Rationale:" in (settings_module.__doc__ or "")


def test_defaults_without_environment() -> None:
    settings = Settings.from_env()
    assert settings.log_level == "INFO"
    assert settings.system_prompt_path == DEFAULT_TEMPLATE_PATH
    assert settings.default_provider_config() is None


def test_explicit_provider(monkeypatch) -> None:
    monkeypatch.setenv("CHARTGEN_PROVIDER", "OPENAI_COMPATIBLE")
    monkeypatch.setenv("CHARTGEN_MODEL", "llama3")
    monkeypatch.setenv("CHARTGEN_BASE_URL", "https://llm.example.com/v1")
    monkeypatch.setenv("CHARTGEN_LOG_LEVEL", "debug")

    settings = Settings.from_env()
    assert settings.log_level == "DEBUG"
    assert settings.default_provider_config() == {
        "provider": "OPENAI_COMPATIBLE",
        "model": "llama3",
        "apiKey": None,
        "baseUrl": "https://llm.example.com/v1",
    }


def test_gemini_variables_are_a_fallback(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "g-key")
    monkeypatch.setenv("GEMINI_MODEL", "gemini-2.0-flash")

    config = Settings.from_env().default_provider_config()
    assert config["provider"] == "GOOGLE"
    assert config["model"] == "gemini-2.0-flash"
    assert config["apiKey"] == "g-key"


def test_gemini_key_ignored_for_other_providers(monkeypatch) -> None:
    monkeypatch.setenv("CHARTGEN_PROVIDER", "OPENAI")
    monkeypatch.setenv("CHARTGEN_MODEL", "gpt-4o-mini")
    monkeypatch.setenv("GEMINI_API_KEY", "g-key")

    config = Settings.from_env().default_provider_config()
    assert config["provider"] == "OPENAI"
    assert config["apiKey"] is None
