"""
Factory for creating AI provider instances.

Uses registry-based configuration for easy extensibility.
"""

from typing import List, Optional, Tuple

from loguru import logger

from ai.base_provider import GradingClient, VisionClient
from ai.demo_provider import DemoVisionClient
from ai.ocr_service import RemoteOcrClient
from ai.openai_provider import OpenAIProvider
from config.settings import Settings, get_settings
from config.providers import get_provider_config, PROVIDER_REGISTRY
from core.exceptions import MissingAPIKeyError


def create_ai_provider(
    provider_type: Optional[str] = None,
    model: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> OpenAIProvider:
    """
    Create an AI provider instance.

    Args:
        provider_type: Provider name (default: from settings)
        model: Override model name
        settings: Settings to read keys and models from

    Returns:
        Provider instance

    Raises:
        MissingAPIKeyError: if the provider has no API key configured
    """
    settings = settings or get_settings()
    provider_type = (provider_type or settings.ai_provider).lower()

    if provider_type not in PROVIDER_REGISTRY:
        raise ValueError(f"Unknown provider: {provider_type}. Available: {list(PROVIDER_REGISTRY.keys())}")

    config = get_provider_config(provider_type, settings, model=model)

    if not config.api_key:
        raise MissingAPIKeyError(
            f"API key required for {provider_type}. Set SUPERTEACHER_{provider_type.upper()}_API_KEY",
            {"provider": provider_type},
        )

    # All providers use the OpenAI-compatible API
    return OpenAIProvider(
        api_key=config.api_key,
        base_url=config.base_url,
        model=config.model,
        vision_model=config.effective_vision_model,
        name=f"{provider_type}/{config.model}",
        extra_headers=config.extra_headers,
    )


def get_available_providers(settings: Optional[Settings] = None) -> List[str]:
    """Get providers with configured API keys."""
    settings = settings or get_settings()
    return [
        name for name in PROVIDER_REGISTRY
        if get_provider_config(name, settings).api_key
    ]


def create_vision_client(settings: Optional[Settings] = None) -> VisionClient:
    """OCR collaborator: demo, remote OCR service, or an LLM vision model."""
    settings = settings or get_settings()
    if settings.demo_mode:
        logger.info("Demo mode: using canned OCR output")
        return DemoVisionClient()
    if settings.ocr_backend == "remote":
        return RemoteOcrClient(settings.ocr_endpoint)
    return create_ai_provider(settings=settings)


def create_grading_clients(
    settings: Optional[Settings] = None,
) -> Tuple[Optional[GradingClient], Optional[GradingClient]]:
    """
    Primary and backup grading collaborators.

    Demo mode returns ``(None, None)`` so the orchestrator grades locally.
    """
    settings = settings or get_settings()
    if settings.demo_mode:
        return None, None

    primary = create_ai_provider(settings=settings)
    backup = None
    if settings.backup_provider:
        backup = create_ai_provider(settings.backup_provider, model=settings.backup_model, settings=settings)
    logger.info(f"Grading via {primary.name}" + (f", backup {backup.name}" if backup else ""))
    return primary, backup
