"""
Engine assembly from settings.

Fails fast on configuration errors (missing keys, unknown providers) so
they never surface inside a conversation turn.
"""

from pathlib import Path
from typing import Optional

from loguru import logger

from ai.base_provider import PaperStructurer
from ai.provider_factory import create_grading_clients, create_vision_client
from config.constants import UPLOADS_DIR
from config.settings import Settings, get_settings
from core.models import WorkflowKind
from conversation.context import EngineServices
from conversation.engine import ConversationEngine
from conversation.workflows import get_workflow
from extraction.marks import MarkExtractor
from grading.orchestrator import GradingOrchestrator
from storage.object_store import LocalObjectStore
from storage.session_store import InMemorySessionStore, SessionStore
from utils.retry import RetryPolicy


def build_services(settings: Settings) -> EngineServices:
    """Create the collaborators an engine needs."""
    primary, backup = create_grading_clients(settings)
    orchestrator = GradingOrchestrator(
        primary,
        backup,
        retry_policy=RetryPolicy(
            max_attempts=settings.grading_max_attempts,
            base_delay=settings.grading_base_delay,
            max_delay=settings.grading_max_delay,
        ),
        attempt_timeout=settings.grading_attempt_timeout,
    )
    structurer = primary if isinstance(primary, PaperStructurer) and settings.structure_question_papers else None
    return EngineServices(
        extractor=MarkExtractor(),
        orchestrator=orchestrator,
        vision=create_vision_client(settings),
        object_store=LocalObjectStore(Path(settings.data_dir) / UPLOADS_DIR),
        ocr_policy=RetryPolicy(
            max_attempts=settings.ocr_max_attempts,
            base_delay=settings.grading_base_delay,
            max_delay=settings.grading_max_delay,
        ),
        ocr_timeout=settings.ocr_attempt_timeout,
        structurer=structurer,
        structure_timeout=settings.structure_attempt_timeout,
    )


def build_engine(
    settings: Optional[Settings] = None,
    store: Optional[SessionStore] = None,
    services: Optional[EngineServices] = None,
) -> ConversationEngine:
    """
    Build a ConversationEngine for the configured workflow.

    Raises:
        MissingAPIKeyError: if a required provider has no API key
    """
    settings = settings or get_settings()
    kind = WorkflowKind(settings.workflow)
    engine = ConversationEngine(
        store=store or InMemorySessionStore(kind),
        descriptor=get_workflow(kind),
        services=services or build_services(settings),
    )
    logger.info(
        f"Conversation engine ready: workflow={kind.value}, demo_mode={settings.demo_mode}, "
        f"vision={engine.services.vision.name}, "
        f"structurer={getattr(engine.services.structurer, 'name', None)}"
    )
    return engine
