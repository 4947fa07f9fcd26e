"""
Tests for settings validation, the provider registry and the provider factory.
"""

import pytest
from pydantic import ValidationError

from ai.demo_provider import DemoVisionClient
from ai.ocr_service import RemoteOcrClient
from ai.openai_provider import OpenAIProvider
from ai.provider_factory import (
    create_ai_provider, create_grading_clients, create_vision_client, get_available_providers
)
from config.providers import ProviderConfig, get_provider_config
from config.settings import Settings, get_settings, reload_settings
from conversation.factory import build_services
from core.exceptions import MissingAPIKeyError


def make_settings(**values):
    return Settings(_env_file=None, **values)


# ==================== Settings ====================

def test_defaults():
    """Test default settings in demo mode."""
    settings = make_settings(demo_mode=True)

    assert settings.ai_provider == "openai"
    assert settings.workflow == "cbse"
    assert settings.grading_max_attempts == 3
    assert settings.grading_base_delay == 2.0
    assert settings.ocr_max_attempts == 2
    assert settings.max_upload_bytes == 10 * 1024 * 1024


def test_values_are_normalised():
    """Test case-insensitive enum-like settings."""
    settings = make_settings(demo_mode=True, ai_provider="GLM", workflow="Simple", ocr_backend="REMOTE")

    assert settings.ai_provider == "glm"
    assert settings.workflow == "simple"
    assert settings.ocr_backend == "remote"


@pytest.mark.parametrize("field, value", [
    ("ai_provider", "claude"),
    ("backup_provider", "gemini"),
    ("workflow", "ielts"),
    ("ocr_backend", "tesseract"),
    ("grading_max_attempts", 0),
    ("max_upload_mb", 0),
])
def test_invalid_values(field, value):
    """Test that unsupported values are rejected."""
    with pytest.raises(ValidationError):
        make_settings(demo_mode=True, **{field: value})


def test_api_key_required_outside_demo_mode():
    """Test that the active provider needs a key."""
    with pytest.raises(ValidationError, match="SUPERTEACHER_OPENAI_API_KEY"):
        make_settings(openai_api_key="")

    assert make_settings(openai_api_key="sk-test").ai_provider == "openai"


def test_backup_provider_needs_key():
    """Test that a configured backup also needs its key."""
    with pytest.raises(ValidationError, match="SUPERTEACHER_GLM_API_KEY"):
        make_settings(openai_api_key="sk-test", backup_provider="glm")


def test_reload_settings(monkeypatch):
    """Test that settings are re-read from the environment."""
    monkeypatch.setenv("SUPERTEACHER_DEMO_MODE", "true")
    monkeypatch.setenv("SUPERTEACHER_WORKFLOW", "simple")

    try:
        settings = reload_settings()
        assert settings.workflow == "simple"
        assert get_settings() is settings
    finally:
        get_settings.cache_clear()


# ==================== Provider registry ====================

def test_provider_config_defaults():
    """Test registry defaults when settings name no model."""
    settings = make_settings(demo_mode=True, glm_api_key="glm-key")

    config = get_provider_config("glm", settings)

    assert config.api_key == "glm-key"
    assert config.model == "glm-4.5v"
    assert config.base_url == "https://api.z.ai/api/paas/v4"
    assert config.effective_vision_model == "glm-4.5v"


def test_provider_config_overrides():
    """Test model overrides and extra headers."""
    settings = make_settings(demo_mode=True, openrouter_model="anthropic/claude-3.5-sonnet")

    config = get_provider_config("openrouter", settings)

    assert config.model == "anthropic/claude-3.5-sonnet"
    assert config.extra_headers == {"X-Title": "SuperTeacher"}
    assert get_provider_config("openrouter", settings, model="x/y").model == "x/y"


def test_provider_config_vision_model():
    """Test that an explicit vision model wins."""
    config = ProviderConfig(name="openai", model="gpt-4o-mini", vision_model="gpt-4o")

    assert config.effective_vision_model == "gpt-4o"


def test_provider_config_unknown():
    """Test unknown provider names."""
    with pytest.raises(ValueError):
        get_provider_config("nope", make_settings(demo_mode=True))


# ==================== Provider factory ====================

def test_create_ai_provider():
    """Test creating a configured provider."""
    settings = make_settings(openai_api_key="sk-test")

    provider = create_ai_provider(settings=settings)

    assert isinstance(provider, OpenAIProvider)
    assert provider.name == "openai/gpt-4o"
    assert provider.vision_model == "gpt-4o"


def test_create_ai_provider_missing_key():
    """Test that a provider without a key is refused."""
    settings = make_settings(demo_mode=True)

    with pytest.raises(MissingAPIKeyError):
        create_ai_provider("openai", settings=settings)


def test_create_ai_provider_unknown():
    """Test that unknown providers are refused."""
    with pytest.raises(ValueError):
        create_ai_provider("gemini", settings=make_settings(demo_mode=True))


def test_available_providers():
    """Test listing providers that have keys."""
    settings = make_settings(demo_mode=True, openai_api_key="sk-test", openrouter_api_key="or-key")

    assert get_available_providers(settings) == ["openai", "openrouter"]


def test_demo_mode_clients():
    """Test that demo mode needs no collaborators."""
    settings = make_settings(demo_mode=True)

    assert isinstance(create_vision_client(settings), DemoVisionClient)
    assert create_grading_clients(settings) == (None, None)


def test_remote_ocr_backend():
    """Test selecting the OCR service."""
    settings = make_settings(openai_api_key="sk-test", ocr_backend="remote", ocr_endpoint="https://ocr.test/x")

    client = create_vision_client(settings)

    assert isinstance(client, RemoteOcrClient)
    assert client.endpoint == "https://ocr.test/x"


def test_vision_backend_uses_provider():
    """Test that the default OCR backend is the LLM vision model."""
    settings = make_settings(openai_api_key="sk-test")

    assert isinstance(create_vision_client(settings), OpenAIProvider)


def test_grading_clients_with_backup():
    """Test primary and backup grading endpoints."""
    settings = make_settings(
        openai_api_key="sk-test",
        glm_api_key="glm-key",
        backup_provider="glm",
        backup_model="glm-4-plus",
    )

    primary, backup = create_grading_clients(settings)

    assert primary.name == "openai/gpt-4o"
    assert backup.name == "glm/glm-4-plus"
    assert backup.base_url == "https://api.z.ai/api/paas/v4"


# ==================== Engine services ====================

def test_services_structure_papers_with_primary_grader(tmp_path):
    """Test that the primary grading provider also structures question papers."""
    services = build_services(make_settings(openai_api_key="sk-test", data_dir=str(tmp_path)))

    assert isinstance(services.structurer, OpenAIProvider)
    assert services.structurer is services.orchestrator.primary
    assert services.structure_timeout == 60.0


def test_services_without_structurer(tmp_path):
    """Test demo mode and the opt-out setting."""
    demo = build_services(make_settings(demo_mode=True, data_dir=str(tmp_path)))
    opted_out = build_services(make_settings(
        openai_api_key="sk-test", structure_question_papers=False, data_dir=str(tmp_path)
    ))

    assert demo.structurer is None
    assert opted_out.structurer is None
