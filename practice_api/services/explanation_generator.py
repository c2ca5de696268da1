"""
Explanation Cache & Generator
Content-addressed Redis cache in front of a structured OpenAI completion
"""
import hashlib
import json
import logging
import math
from typing import List, Optional

import openai
from pydantic import ValidationError
from redis.exceptions import RedisError

from practice_api.core.errors import DependencyError
from practice_api.models.explanation import (
    ExplanationAuditRecord,
    ExplanationDocument,
    ExplanationRequest
)
from practice_api.prompts.explanation_prompt import (
    EXPLANATION_SYSTEM_PROMPT,
    EXPLANATION_TOOL,
    EXPLANATION_TOOL_NAME,
    build_explanation_prompt
)

logger = logging.getLogger(__name__)


DEFAULT_MODEL = "gpt-4-turbo"
DEFAULT_TTL_SECONDS = 60 * 60 * 24 * 7
DEFAULT_CENTS_PER_TOKEN = 0.002
TEMPERATURE = 0.3


def hash_answers(choice_ids: List[str]) -> str:
    """Order-independent digest of the selected option ids"""
    joined = ",".join(sorted(choice_ids))
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()[:16]


def build_cache_key(question_id: str, answer_hash: str, model: str, locale: str) -> str:
    return f"ai:explanation:{question_id}:{answer_hash}:{model}:{locale}"


def estimate_cost_cents(total_tokens: int, cents_per_token: float) -> int:
    """Round half up to whole cents; zero when usage is unknown"""
    if total_tokens <= 0:
        return 0
    return int(math.floor(total_tokens * cents_per_token + 0.5))


class ExplanationGenerator:
    """
    Returns a cached explanation or generates, caches and audits a new one

    Dependencies:
        cache: async Redis client (get / setex)
        completion_client: openai.AsyncOpenAI (or anything exposing
            `chat.completions.create`)
        explanation_repository: durable audit store with `save_explanation`

    Concurrent misses on the same key may both call the provider; the
    later cache write wins.
    """

    def __init__(
        self,
        cache,
        completion_client,
        explanation_repository=None,
        model_name: str = DEFAULT_MODEL,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        cents_per_token: float = DEFAULT_CENTS_PER_TOKEN,
        audit_required: bool = False
    ):
        self.cache = cache
        self.completion_client = completion_client
        self.explanation_repository = explanation_repository
        self.model_name = model_name
        self.ttl_seconds = ttl_seconds
        self.cents_per_token = cents_per_token
        self.audit_required = audit_required

    async def generate(self, request: ExplanationRequest) -> ExplanationDocument:
        question = request.question
        locale = request.locale or "en"
        answer_hash = hash_answers(request.selectedChoiceIds)
        cache_key = build_cache_key(question.id, answer_hash, self.model_name, locale)

        cached = await self._read_cache(cache_key)
        if cached is not None:
            logger.info(f"✅ Explanation cache hit - Question: {question.id}, Hash: {answer_hash}")
            return cached

        logger.info(
            f"🤖 Generating explanation via {self.model_name} - "
            f"Question: {question.id}, Hash: {answer_hash}, Locale: {locale}"
        )

        prompt = build_explanation_prompt(question, request.selectedChoiceIds)
        response = await self._complete(prompt)
        explanation = self._parse_response(response)

        await self._write_cache(cache_key, explanation)

        total_tokens = self._total_tokens(response)
        await self._save_audit_record(
            ExplanationAuditRecord(
                questionId=question.id,
                questionVersionId=question.currentVersionId,
                answerHash=answer_hash,
                model=self.model_name,
                language=locale,
                contentMarkdown=explanation.model_dump_json(exclude_none=True),
                tokensTotal=total_tokens,
                costCents=estimate_cost_cents(total_tokens, self.cents_per_token)
            )
        )

        return explanation

    async def _read_cache(self, cache_key: str) -> Optional[ExplanationDocument]:
        try:
            raw = await self.cache.get(cache_key)
        except RedisError as e:
            logger.error(f"❌ Explanation cache read failed: {e}")
            raise DependencyError(f"Explanation cache unavailable: {e}")

        if not raw:
            return None

        try:
            return ExplanationDocument.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"⚠️ Discarding undecodable cache entry {cache_key}: {e}")
            return None

    async def _write_cache(self, cache_key: str, explanation: ExplanationDocument) -> None:
        try:
            await self.cache.setex(
                cache_key,
                self.ttl_seconds,
                explanation.model_dump_json(exclude_none=True)
            )
        except RedisError as e:
            logger.error(f"❌ Explanation cache write failed: {e}")
            raise DependencyError(f"Explanation cache unavailable: {e}")

    async def _complete(self, prompt: str):
        if self.completion_client is None:
            raise DependencyError("Completion provider not configured")

        try:
            return await self.completion_client.chat.completions.create(
                model=self.model_name,
                messages=[
                    {"role": "system", "content": EXPLANATION_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt}
                ],
                tools=[EXPLANATION_TOOL],
                tool_choice={"type": "function", "function": {"name": EXPLANATION_TOOL_NAME}},
                temperature=TEMPERATURE
            )
        except openai.OpenAIError as e:
            logger.error(f"❌ OpenAI API error: {e}")
            raise DependencyError(f"Completion provider error: {e}")

    def _parse_response(self, response) -> ExplanationDocument:
        try:
            message = response.choices[0].message
            tool_calls = message.tool_calls or []
            arguments = tool_calls[0].function.arguments if tool_calls else None
        except (AttributeError, IndexError) as e:
            raise DependencyError(f"Malformed completion response: {e}")

        if not arguments:
            logger.error("❌ No structured tool call in completion response")
            raise DependencyError("No structured explanation in completion response")

        try:
            return ExplanationDocument.model_validate(json.loads(arguments))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"❌ Structured explanation failed validation: {e}")
            raise DependencyError(f"Invalid structured explanation: {e}")

    @staticmethod
    def _total_tokens(response) -> int:
        usage = getattr(response, "usage", None)
        total = getattr(usage, "total_tokens", None) if usage is not None else None
        return total if isinstance(total, int) and total > 0 else 0

    async def _save_audit_record(self, record: ExplanationAuditRecord) -> None:
        if self.explanation_repository is None:
            if self.audit_required:
                raise DependencyError("Explanation repository not configured")
            logger.warning("⚠️ Explanation repository not configured, skipping audit write")
            return

        try:
            await self.explanation_repository.save_explanation(record)
        except Exception as e:
            if self.audit_required:
                logger.error(f"❌ Explanation audit write failed: {e}")
                raise DependencyError(f"Failed to persist explanation: {e}")
            logger.warning(
                f"⚠️ Explanation audit write failed for {record.questionId}, "
                f"returning cached explanation anyway: {e}"
            )


class StubExplanationGenerator:
    """Deterministic generator used when no completion provider key is configured"""

    async def generate(self, request: ExplanationRequest) -> ExplanationDocument:
        question = request.question
        selected = [
            option.label for option in question.options
            if option.id in request.selectedChoiceIds
        ]
        correct = [
            option.label for option in question.options
            if option.id in question.correctChoiceIds
        ]
        is_correct = bool(selected) and set(request.selectedChoiceIds) == set(question.correctChoiceIds)

        if is_correct:
            summary = f"Correct: option {', '.join(correct)} is the expected answer."
        else:
            summary = (
                f"Selected answer ({', '.join(selected) or 'none'}) differs from "
                f"the expected answer ({', '.join(correct) or 'unknown'})."
            )

        key_points = [question.explanationMarkdown] if question.explanationMarkdown else []
        key_points.append(f"Correct option(s): {', '.join(correct) or 'not configured'}")

        return ExplanationDocument(
            summary=summary,
            keyPoints=key_points,
            steps=[
                "Re-read the question stem and identify what is being asked.",
                "Compare each option against the stem.",
                "Confirm the correct option and note why the others fail."
            ],
            relatedConcepts=[question.subjectSlug] if question.subjectSlug else None,
            confidence="medium"
        )
