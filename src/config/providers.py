"""
OpenAI-compatible endpoints the grading assistant can talk to.

Each entry names the settings fields (``<name>_api_key``, ``<name>_model``,
``<name>_vision_model``) and the endpoint defaults for one backend.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass(frozen=True)
class ProviderSpec:
    """Static endpoint facts for one backend."""
    default_model: str
    base_url: Optional[str] = None
    extra_headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderConfig:
    """A backend resolved against the current settings."""
    name: str
    api_key: str = ""
    base_url: Optional[str] = None
    model: Optional[str] = None
    vision_model: Optional[str] = None
    extra_headers: Dict[str, str] = field(default_factory=dict)

    @property
    def effective_vision_model(self) -> Optional[str]:
        return self.vision_model or self.model


PROVIDER_REGISTRY: Dict[str, ProviderSpec] = {
    "openai": ProviderSpec(default_model="gpt-4o"),
    "glm": ProviderSpec(default_model="glm-4.5v", base_url="https://api.z.ai/api/paas/v4"),
    "openrouter": ProviderSpec(
        default_model="openai/gpt-4o",
        base_url="https://openrouter.ai/api/v1",
        extra_headers={"X-Title": "SuperTeacher"},
    ),
}


def get_provider_config(provider_name: str, settings, model: Optional[str] = None) -> ProviderConfig:
    """
    Resolve a backend's key and models from settings.

    Raises:
        ValueError: for a name missing from PROVIDER_REGISTRY
    """
    name = provider_name.lower()
    spec = PROVIDER_REGISTRY.get(name)
    if spec is None:
        raise ValueError(f"Unknown provider: {provider_name}. Available: {sorted(PROVIDER_REGISTRY)}")

    return ProviderConfig(
        name=name,
        api_key=getattr(settings, f"{name}_api_key", "") or "",
        base_url=spec.base_url,
        model=model or getattr(settings, f"{name}_model", None) or spec.default_model,
        vision_model=getattr(settings, f"{name}_vision_model", None),
        extra_headers=dict(spec.extra_headers),
    )
