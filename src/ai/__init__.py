"""
AI collaborators for the grading assistant.

Supports any OpenAI-compatible backend (OpenAI, GLM, OpenRouter) for vision
and grading (plus question-paper structuring), a remote OCR service and a
demo vision client.

Usage:
    from ai import create_vision_client, create_grading_clients

    vision = create_vision_client()
    primary, backup = create_grading_clients()
"""

from ai.base_provider import GradingClient, PaperStructurer, VisionClient, APIErrorContext
from ai.openai_provider import OpenAIProvider
from ai.ocr_service import RemoteOcrClient
from ai.demo_provider import DemoVisionClient
from ai.provider_factory import (
    create_ai_provider,
    create_grading_clients,
    create_vision_client,
    get_available_providers,
)

__all__ = [
    "GradingClient",
    "PaperStructurer",
    "VisionClient",
    "APIErrorContext",
    "OpenAIProvider",
    "RemoteOcrClient",
    "DemoVisionClient",
    "create_ai_provider",
    "create_grading_clients",
    "create_vision_client",
    "get_available_providers",
]
