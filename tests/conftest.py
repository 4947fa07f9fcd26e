"""
Shared fixtures: stub collaborators and engine builders.
"""

import pytest

from ai.base_provider import GradingClient, PaperStructurer, VisionClient, image_hint
from core.exceptions import APIConnectionError
from conversation.context import EngineServices
from conversation.engine import ConversationEngine
from conversation.workflows import get_workflow
from core.models import WorkflowKind
from extraction.marks import MarkExtractor
from grading.orchestrator import GradingOrchestrator
from prompts.ocr import is_question_paper_prompt
from storage.session_store import InMemorySessionStore
from utils.retry import RetryPolicy


TABLE_PAPER = """CLASS X SOCIAL SCIENCE
QUESTIONS | MARKS
1. What is X?   2
2. Define Y.   2
3. State the law of demand.   2
4. Name two rivers.   2
5. What is a map?   2"""

VALID_PAYLOAD = {
    "score": 7,
    "feedback": "Clear and mostly complete answer.",
    "strengths": ["Correct definition"],
    "areas_for_improvement": ["Add an example"],
    "suggested_points": ["Mention the role of sunlight"],
    "is_relevant": True,
}


class StubVision(VisionClient):
    """Returns ``paper`` for question-paper prompts and ``answer`` otherwise."""

    name = "stub-vision"

    def __init__(self, paper: str = TABLE_PAPER, answer: str = "A plant makes food from sunlight.",
                 failures: int = 0):
        self.paper = paper
        self.answer = answer
        self.failures = failures
        self.calls = []

    async def extract_text(self, image, hint=None) -> str:
        self.calls.append((image_hint(image), hint))
        if self.failures:
            self.failures -= 1
            raise APIConnectionError("vision endpoint unreachable")
        return self.paper if is_question_paper_prompt(hint) else self.answer


class StubGrader(GradingClient):
    """Replays ``outcomes`` in order; exceptions are raised, anything else returned."""

    def __init__(self, *outcomes, name: str = "stub-grader"):
        self.outcomes = list(outcomes)
        self.name = name
        self.requests = []

    async def grade(self, request):
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class StubStructurer(PaperStructurer):
    """Returns ``payload`` (or raises it) for every paper."""

    name = "stub-structurer"

    def __init__(self, payload):
        self.payload = payload
        self.papers = []

    async def structure_paper(self, paper_text):
        self.papers.append(paper_text)
        if isinstance(self.payload, BaseException):
            raise self.payload
        return self.payload


class RecordingSleep:
    """Stands in for asyncio.sleep so backoff delays are recorded, not waited."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def vision():
    return StubVision()


@pytest.fixture
def grader():
    return StubGrader(dict(VALID_PAYLOAD))


def make_engine(workflow=WorkflowKind.CBSE, vision=None, grader=None, sleep=None, store=None, structurer=None):
    policy_sleep = sleep or RecordingSleep()
    services = EngineServices(
        extractor=MarkExtractor(),
        orchestrator=GradingOrchestrator(
            grader,
            retry_policy=RetryPolicy(max_attempts=3, sleep=policy_sleep),
        ),
        vision=vision or StubVision(),
        ocr_policy=RetryPolicy(max_attempts=2, sleep=policy_sleep),
        structurer=structurer,
    )
    return ConversationEngine(store or InMemorySessionStore(workflow), get_workflow(workflow), services)


@pytest.fixture
def cbse_engine(vision, grader, sleep):
    return make_engine(WorkflowKind.CBSE, vision, grader, sleep)


@pytest.fixture
def simple_engine(vision, grader, sleep):
    return make_engine(WorkflowKind.SIMPLE, vision, grader, sleep)
