"""
Explanation Service
Orchestrates quota checks, question lookup, generation and analytics for AI explanations
"""
from dataclasses import dataclass
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from redis.exceptions import RedisError

from practice_api.core.errors import (
    DependencyError,
    NotFoundError,
    PracticeServiceError,
    RateLimitError
)
from practice_api.models.explanation import ExplanationDocument, ExplanationRequest
from practice_api.models.question import QuestionModel
from practice_api.services.analytics import EXPLANATION_REQUESTED
from practice_api.services.rate_limiter import AiQuotaResult

logger = logging.getLogger(__name__)


DEFAULT_LOCALE = "en"


@dataclass
class ExplanationDependencies:
    """
    Swappable collaborators, fixed once at startup

    Tests substitute plain async callables for each of these.
    """
    fetch_question: Callable[[str], Awaitable[Optional[QuestionModel]]]
    generate: Callable[[ExplanationRequest], Awaitable[ExplanationDocument]]
    rate_limit: Callable[[str], Awaitable[AiQuotaResult]]
    track: Optional[Callable[[str, str, Dict[str, Any]], Awaitable[None]]] = None


@dataclass
class ExplanationResult:
    explanation: ExplanationDocument
    rate_limit: AiQuotaResult


class ExplanationService:
    """Entry point used by the explanation API route"""

    def __init__(self, dependencies: Optional[ExplanationDependencies]):
        self.dependencies = dependencies

    async def request_explanation(
        self,
        question_id: str,
        selected_choice_ids: List[str],
        user_id: str,
        locale: Optional[str] = None,
        rate_limit_identity: Optional[str] = None
    ) -> ExplanationResult:
        """
        Produce an explanation for one question / answer pair

        Raises:
            DependencyError: collaborator missing or unreachable
            RateLimitError: per-minute or per-day quota exhausted
            NotFoundError: question id unknown to the catalog
        """
        deps = self.dependencies
        if deps is None:
            raise DependencyError("AI explanation service not configured")

        identity = rate_limit_identity or user_id
        if not identity:
            raise DependencyError("Rate limit identifier missing")

        locale = locale or DEFAULT_LOCALE

        try:
            quota = await deps.rate_limit(identity)
        except RedisError as e:
            logger.error(f"❌ Rate limiter unavailable: {e}")
            raise DependencyError(f"Rate limiter unavailable: {e}")

        if not quota.allowed:
            logger.info(
                f"🚫 Explanation quota exhausted for {identity} "
                f"(raw remaining {quota.raw_remaining})"
            )
            raise RateLimitError(
                "Too many explanation requests",
                remaining=quota.remaining,
                retry_after_seconds=quota.retry_after_seconds
            )

        question = await self._fetch_question(deps, question_id)

        explanation = await deps.generate(
            ExplanationRequest(
                question=question,
                selectedChoiceIds=list(selected_choice_ids),
                userId=user_id,
                locale=locale
            )
        )

        await self._track(deps, user_id, question.id, quota.remaining, locale)

        logger.info(
            f"✅ Explanation served - Question: {question.id}, "
            f"User: {user_id}, Remaining: {quota.remaining}"
        )
        return ExplanationResult(explanation=explanation, rate_limit=quota)

    async def _fetch_question(self, deps: ExplanationDependencies, question_id: str) -> QuestionModel:
        try:
            question = await deps.fetch_question(question_id)
        except PracticeServiceError:
            raise
        except Exception as e:
            logger.error(f"❌ Question lookup failed for {question_id}: {e}")
            raise DependencyError(f"Question lookup failed: {e}")

        if question is None:
            raise NotFoundError(f"Question {question_id} not found", code="QUESTION_NOT_FOUND")
        return question

    async def _track(
        self,
        deps: ExplanationDependencies,
        user_id: str,
        question_id: str,
        remaining: int,
        locale: str
    ) -> None:
        if deps.track is None:
            return

        try:
            await deps.track(
                EXPLANATION_REQUESTED,
                user_id,
                {
                    "questionId": question_id,
                    "rateRemaining": remaining,
                    "locale": locale
                }
            )
        except Exception as e:
            logger.warning(f"⚠️ Analytics tracking failed for {question_id}: {e}")
