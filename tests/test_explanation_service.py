"""Tests for the explanation orchestrator."""

import pytest

from practice_api.core.errors import DependencyError, NotFoundError, RateLimitError
from practice_api.models.explanation import ExplanationDocument
from practice_api.services.analytics import EXPLANATION_REQUESTED
from practice_api.services.explanation_service import (
    ExplanationDependencies,
    ExplanationService,
)
from practice_api.services.rate_limiter import RateLimiter
from tests.fakes import make_question


DOCUMENT = ExplanationDocument(summary="Because.", confidence="medium")


def build_service(fake_redis, questions=None, track=None, generate=None):
    catalog = {q.id: q for q in (questions or [make_question("q1")])}
    generated = []

    async def fetch_question(question_id):
        return catalog.get(question_id)

    async def default_generate(request):
        generated.append(request)
        return DOCUMENT

    service = ExplanationService(
        ExplanationDependencies(
            fetch_question=fetch_question,
            generate=generate or default_generate,
            rate_limit=RateLimiter(fake_redis).check_ai_explanation_quota,
            track=track,
        )
    )
    return service, generated


class TestRequestExplanation:
    """Tests for request_explanation."""

    async def test_remaining_decreases_per_request(self, fake_redis):
        service, _ = build_service(fake_redis)

        first = await service.request_explanation("q1", ["q1-a"], "learner")
        second = await service.request_explanation("q1", ["q1-a"], "learner")

        assert first.explanation == DOCUMENT
        assert first.rate_limit.remaining == 4
        assert second.rate_limit.remaining == 3

    async def test_sixth_request_in_a_minute_is_rate_limited(self, fake_redis):
        service, generated = build_service(fake_redis)
        for _ in range(5):
            await service.request_explanation("q1", ["q1-a"], "learner")

        with pytest.raises(RateLimitError) as excinfo:
            await service.request_explanation("q1", ["q1-a"], "learner")

        assert excinfo.value.remaining == 0
        assert excinfo.value.retry_after_seconds == 60
        assert len(generated) == 5

    async def test_rate_limit_identity_overrides_user(self, fake_redis):
        service, _ = build_service(fake_redis)
        await service.request_explanation("q1", ["q1-a"], "learner", rate_limit_identity="10.0.0.1")

        assert "ratelimit:ai:explanation:10.0.0.1:minute" in fake_redis.values
        assert "ratelimit:ai:explanation:learner:minute" not in fake_redis.values

    async def test_unknown_question_is_not_found(self, fake_redis):
        service, generated = build_service(fake_redis)

        with pytest.raises(NotFoundError) as excinfo:
            await service.request_explanation("missing", ["x"], "learner")

        assert excinfo.value.code == "QUESTION_NOT_FOUND"
        assert generated == []

    async def test_default_locale_is_english(self, fake_redis):
        service, generated = build_service(fake_redis)
        await service.request_explanation("q1", ["q1-a"], "learner")

        assert generated[0].locale == "en"

    async def test_limiter_outage_is_dependency_error(self, fake_redis):
        service, _ = build_service(fake_redis)
        fake_redis.fail = True

        with pytest.raises(DependencyError):
            await service.request_explanation("q1", ["q1-a"], "learner")

    async def test_unconfigured_service_is_dependency_error(self):
        with pytest.raises(DependencyError):
            await ExplanationService(None).request_explanation("q1", [], "learner")

    async def test_generation_errors_propagate(self, fake_redis):
        async def failing_generate(request):
            raise DependencyError("provider down")

        service, _ = build_service(fake_redis, generate=failing_generate)

        with pytest.raises(DependencyError):
            await service.request_explanation("q1", ["q1-a"], "learner")


class TestAnalytics:
    """Tests for the analytics side effect."""

    async def test_event_is_tracked(self, fake_redis):
        events = []

        async def track(name, user_id, properties):
            events.append((name, user_id, properties))

        service, _ = build_service(fake_redis, track=track)
        await service.request_explanation("q1", ["q1-a"], "learner", locale="fr")

        assert events == [
            (EXPLANATION_REQUESTED, "learner", {"questionId": "q1", "rateRemaining": 4, "locale": "fr"})
        ]

    async def test_tracking_failure_does_not_fail_request(self, fake_redis):
        async def track(name, user_id, properties):
            raise RuntimeError("analytics down")

        service, _ = build_service(fake_redis, track=track)
        result = await service.request_explanation("q1", ["q1-a"], "learner")

        assert result.explanation == DOCUMENT
