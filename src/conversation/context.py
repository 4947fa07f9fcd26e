"""
Per-turn context handed to step handlers.

A handler never writes to the store: it moves ``ctx.session`` forward with
``advance``/``update`` and the engine commits the final session once the
turn ends. Every ``advance`` is checked against the workflow descriptor.
"""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from ai.base_provider import ImageSource, PaperStructurer, VisionClient
from core.exceptions import ObjectStoreError, ProviderError
from core.models import ConversationStep, Session
from core.workflow import WorkflowDescriptor
from extraction.marks import ExtractionResult, MarkExtractor
from extraction.structured import parse_structured_paper
from grading.orchestrator import GradingOrchestrator
from storage.object_store import ObjectStore
from utils.retry import RetryPolicy


@dataclass(frozen=True)
class ImagePayload:
    """An inbound image: raw bytes, a URL reference, or both."""
    data: Optional[bytes] = None
    ref: Optional[str] = None
    filename: Optional[str] = None

    def __post_init__(self):
        if self.data is None and not self.ref:
            raise ValueError("an image needs bytes or a reference")

    @property
    def hint(self) -> str:
        return self.filename or self.ref or ""


@dataclass
class EngineServices:
    """Collaborators a turn may use."""
    extractor: MarkExtractor
    orchestrator: GradingOrchestrator
    vision: VisionClient
    object_store: Optional[ObjectStore] = None
    ocr_policy: RetryPolicy = field(default_factory=lambda: RetryPolicy(max_attempts=2))
    ocr_timeout: float = 60.0
    structurer: Optional[PaperStructurer] = None
    structure_timeout: float = 60.0


class TurnContext:
    """Mutable working copy of a session for the duration of one turn."""

    def __init__(self, session: Session, descriptor: WorkflowDescriptor, services: EngineServices):
        self.session = session
        self.descriptor = descriptor
        self.services = services
        self.trail: List[ConversationStep] = [session.step]

    @property
    def step(self) -> ConversationStep:
        return self.session.step

    def advance(self, step: ConversationStep, **changes) -> Session:
        """
        Move to ``step``, applying ``changes``.

        Raises:
            SessionStateError: if the workflow declares no such edge
        """
        self.descriptor.check_transition(self.session.step, step)
        self.session = self.session.with_updates(step=step, **changes)
        if self.trail[-1] != step:
            self.trail.append(step)
        return self.session

    def update(self, **changes) -> Session:
        """Apply ``changes`` without changing step."""
        self.session = self.session.with_updates(**changes)
        return self.session

    def restart(self) -> Session:
        """Reset the session and move to the workflow's entry step."""
        self.session = self.session.reset()
        self.trail.append(self.session.step)
        return self.advance(self.descriptor.entry_step)

    def recover(self) -> Session:
        """
        Rebuild a valid session at the entry step.

        Works from any stored value, including one that no longer validates
        against its workflow. History is kept.
        """
        broken = self.session
        self.session = Session.initial(
            broken.user_id,
            self.descriptor.kind,
            grading_history=tuple(getattr(broken, "grading_history", ()) or ()),
            last_interaction=getattr(broken, "last_interaction", None),
        )
        self.session = self.session.with_updates(step=self.descriptor.entry_step)
        self.trail.append(self.session.step)
        return self.session

    async def read_image(self, image: ImagePayload, prompt: str) -> str:
        """
        OCR an image under the shared retry policy.

        Bytes are stored first so the vision collaborator gets a durable
        reference; if storing fails the bytes are sent directly.

        Raises:
            ProviderError | asyncio.TimeoutError: once every attempt failed
        """
        source: ImageSource = image.data if image.data is not None else image.ref
        if image.data is not None and self.services.object_store is not None:
            try:
                source = await self.services.object_store.store(image.data, image.filename)
            except ObjectStoreError as e:
                logger.warning(f"Upload not stored, sending bytes to OCR directly: {e}")
        ref = source if isinstance(source, str) else image.ref
        if ref:
            self.update(image_ref=ref)

        vision = self.services.vision

        async def attempt(number: int) -> str:
            return await asyncio.wait_for(
                vision.extract_text(source, hint=prompt),
                timeout=self.services.ocr_timeout,
            )

        text = await self.services.ocr_policy.run(attempt, description=f"OCR via {vision.name}")
        logger.debug(f"OCR read {len(text)} chars for user {self.session.user_id}")
        return text

    async def structure_paper(self, paper_text: str) -> Optional[ExtractionResult]:
        """
        Ask the structuring collaborator for the paper's questions and marks.

        One attempt; None when no structurer is configured, the call fails,
        or its answer does not validate.
        """
        structurer = self.services.structurer
        if structurer is None:
            return None
        try:
            payload = await asyncio.wait_for(
                structurer.structure_paper(paper_text),
                timeout=self.services.structure_timeout,
            )
        except (ProviderError, asyncio.TimeoutError) as e:
            logger.warning(f"Paper structuring via {structurer.name} failed, using text extraction: {e}")
            return None
        result = parse_structured_paper(payload, paper_text)
        if result is None:
            logger.warning(f"{structurer.name} returned an unusable paper structure, using text extraction")
        return result
