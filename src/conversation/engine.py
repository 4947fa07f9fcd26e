"""
Conversation engine.

One engine per workflow descriptor. Each inbound message is one turn: the
session is loaded under the store's per-user lock, classified, routed to the
handler for the current step, and the resulting session is committed once.
A turn never raises to the caller.
"""

from typing import Awaitable, Callable, Optional, Union

from loguru import logger
from pydantic import ValidationError

from core.exceptions import SessionStateError
from core.models import ConversationStep, Intent, Session
from core.workflow import WorkflowDescriptor
from conversation import messages
from conversation.context import EngineServices, ImagePayload, TurnContext
from conversation.intent import IntentClassifier
from storage.session_store import SessionStore

Turn = Callable[[TurnContext], Awaitable[str]]


class ConversationEngine:
    """
    Drives sessions through a workflow.

    Usage:
        engine = ConversationEngine(store, CBSE_WORKFLOW, services)
        reply = await engine.handle_text("user-1", "Class 10")
    """

    def __init__(
        self,
        store: SessionStore,
        descriptor: WorkflowDescriptor,
        services: EngineServices,
        classifier: Optional[IntentClassifier] = None,
    ):
        self.store = store
        self.descriptor = descriptor
        self.services = services
        self.classifier = classifier or IntentClassifier()

    @property
    def workflow(self):
        return self.descriptor.kind

    async def get_session(self, user_id: str) -> Session:
        return await self.store.get(user_id)

    # ==================== Public surface ====================

    async def handle_text(self, user_id: str, text: str) -> str:
        """Process a text message and return the reply."""
        async def turn(ctx: TurnContext) -> str:
            return await self._text_turn(ctx, text or "")
        return await self._run_turn(user_id, turn, "text")

    async def handle_image(
        self,
        user_id: str,
        image: Union[bytes, str, ImagePayload],
        filename: Optional[str] = None,
    ) -> str:
        """
        Process an uploaded image (bytes) or image reference (URL).

        An image is never dropped: the current step's image handler either
        uses it or answers with guidance.
        """
        if isinstance(image, ImagePayload):
            payload = image
        elif isinstance(image, bytes):
            payload = ImagePayload(data=image, filename=filename)
        else:
            payload = ImagePayload(ref=image, filename=filename)

        async def turn(ctx: TurnContext) -> str:
            handler = self.descriptor.image_handler(ctx.step)
            return await handler(ctx, payload)
        return await self._run_turn(user_id, turn, "image")

    async def greet(self, user_id: str) -> str:
        """Start a fresh conversation (history kept) and return the greeting."""
        async def turn(ctx: TurnContext) -> str:
            ctx.restart()
            return self.descriptor.greeting
        return await self._run_turn(user_id, turn, "greeting")

    # ==================== Turn handling ====================

    async def _text_turn(self, ctx: TurnContext, text: str) -> str:
        if not text.strip():
            return messages.EMPTY_MESSAGE + messages.step_prompt(ctx.session)

        intent, rule = self.classifier.explain(text, ctx.session)
        logger.debug(f"Intent {intent.value} (rule {rule}) at step {ctx.step.value}")

        if intent is Intent.NEW_SESSION:
            ctx.restart()
            return "Okay, let's start over. " + self.descriptor.greeting
        if intent is Intent.GREETING:
            if ctx.step in (ConversationStep.INITIAL, self.descriptor.entry_step):
                ctx.restart()
                return self.descriptor.greeting
            return "Hi again! " + messages.step_prompt(ctx.session)
        if intent is Intent.HELP:
            return f"{messages.help_text(self.workflow)}\n\n{messages.step_prompt(ctx.session)}"

        handler = self.descriptor.text_handler(ctx.step)
        return await handler(ctx, intent, text)

    def _is_usable(self, session: Session) -> bool:
        return (
            isinstance(session, Session)
            and getattr(session, "workflow", None) == self.descriptor.kind
            and self.descriptor.knows(getattr(session, "step", None))
        )

    def _recover(self, ctx: TurnContext, reason: str) -> str:
        logger.warning(f"Recovering session for user {ctx.session.user_id}: {reason}")
        ctx.recover()
        return messages.RECOVERY + messages.step_prompt(ctx.session)

    async def _run_turn(self, user_id: str, turn: Turn, kind: str) -> str:
        with logger.contextualize(user_id=user_id):
            async with self.store.transaction(user_id) as txn:
                ctx = TurnContext(txn.session, self.descriptor, self.services)
                before = getattr(txn.session, "step", None)

                if not self._is_usable(ctx.session):
                    reply = self._recover(ctx, f"unknown step {before!r} for the {self.workflow.value} workflow")
                else:
                    try:
                        reply = await turn(ctx)
                    except (SessionStateError, ValidationError) as e:
                        reply = self._recover(ctx, str(e))
                    except Exception:
                        logger.exception(f"Unhandled error in {kind} turn for user {user_id}")
                        ctx.session = txn.original
                        reply = messages.GENERIC_ERROR

                try:
                    txn.session = ctx.session.touch()
                except ValidationError as e:
                    reply = self._recover(ctx, str(e))
                    txn.session = ctx.session.touch()

            logger.info(
                f"{kind} turn for user {user_id}: {getattr(before, 'value', before)} -> "
                f"{txn.session.step.value} (via {', '.join(s.value for s in ctx.trail[1:]) or 'no change'})"
            )
            return reply
