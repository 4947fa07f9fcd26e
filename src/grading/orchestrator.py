"""
Grading orchestration.

Wraps the call to the grading collaborator with the shared retry policy,
a per-attempt timeout, an optional backup endpoint on the final attempt,
and a deterministic local fallback. ``grade`` never raises.
"""

import asyncio
from typing import Optional

from loguru import logger

from ai.base_provider import GradingClient
from core.exceptions import ProviderError
from core.models import GradingRequest, GradingResult
from grading.fallback import build_fallback_result
from grading.response_parser import parse_grading_payload
from utils.retry import RetryPolicy

DEFAULT_ATTEMPT_TIMEOUT = 60.0


class GradingOrchestrator:
    """
    Produces a GradingResult for every request.

    Attempt ``n`` goes to the primary client, except the final attempt which
    goes to the backup client when one is configured. A failed attempt is a
    transport error, a timeout, or a payload missing required fields.
    """

    def __init__(
        self,
        primary: Optional[GradingClient],
        backup: Optional[GradingClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
        attempt_timeout: float = DEFAULT_ATTEMPT_TIMEOUT,
    ):
        self.primary = primary
        self.backup = backup
        self.retry_policy = retry_policy or RetryPolicy()
        self.attempt_timeout = attempt_timeout

    def client_for(self, attempt: int) -> GradingClient:
        if self.backup is not None and self.retry_policy.is_final(attempt):
            return self.backup
        return self.primary

    async def grade(self, request: GradingRequest) -> GradingResult:
        """
        Grade a student answer.

        Args:
            request: Question context, answer text, instruction and max marks

        Returns:
            A GradingResult with ``0 <= score <= max_marks``; a fallback
            result when the collaborator cannot provide one
        """
        if self.primary is None and self.backup is None:
            logger.info("No grading client configured, using local fallback grading")
            return build_fallback_result(request)

        async def attempt(number: int) -> GradingResult:
            client = self.client_for(number) or self.backup
            logger.debug(f"Grading attempt {number} via {getattr(client, 'name', type(client).__name__)}")
            payload = await asyncio.wait_for(client.grade(request), timeout=self.attempt_timeout)
            return parse_grading_payload(payload, request)

        try:
            result = await self.retry_policy.run(attempt, description="grading")
        except (ProviderError, asyncio.TimeoutError) as e:
            logger.warning(
                f"Grading failed after {self.retry_policy.max_attempts} attempts "
                f"({type(e).__name__}: {e}), using local fallback grading"
            )
            return build_fallback_result(request)
        except Exception:
            logger.exception("Unexpected grading error, using local fallback grading")
            return build_fallback_result(request)

        logger.info(f"Graded answer: {result.score}/{result.out_of} (relevant={result.is_relevant})")
        return result
