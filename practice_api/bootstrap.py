"""
Composition root
Builds every client and service once at startup; routes read them from app.state
"""
from dataclasses import dataclass
import logging
from typing import Any, Optional

from openai import AsyncOpenAI

from practice_api.core.config import Settings
from practice_api.db.mongodb import close_mongo_connection, connect_to_mongo, get_database
from practice_api.db.redis_client import close_redis_connection, connect_to_redis
from practice_api.models.question import QuestionModel
from practice_api.services.analytics import AnalyticsTracker
from practice_api.services.explanation_generator import (
    ExplanationGenerator,
    StubExplanationGenerator
)
from practice_api.services.explanation_service import (
    ExplanationDependencies,
    ExplanationService
)
from practice_api.services.practice_session_service import PracticeSessionRepository
from practice_api.services.question_catalog import ExplanationRepository, QuestionCatalog
from practice_api.services.rate_limiter import RateLimiter
from practice_api.services.sample_question import SAMPLE_QUESTION
from practice_api.services.sample_session_service import SampleSessionService
from practice_api.services.sample_snapshot import FileSnapshotStorage, LocalSnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    rate_limiter: RateLimiter
    sessions: PracticeSessionRepository
    samples: SampleSessionService
    explanations: ExplanationService
    mongo_client: Any = None
    redis_client: Any = None
    provider_configured: bool = False


def make_question_fetcher(catalog: QuestionCatalog, is_production: bool):
    """Catalog lookup that resolves unknown ids to the built-in sample outside production"""

    async def fetch_question(question_id: str) -> Optional[QuestionModel]:
        question = await catalog.fetch_question(question_id)
        if question is None and not is_production:
            logger.info(f"ℹ️ Using built-in sample question for unknown id: {question_id}")
            return SAMPLE_QUESTION
        return question

    return fetch_question


def build_services(
    settings: Settings,
    db,
    redis_client,
    completion_client: Optional[Any] = None
) -> ServiceContainer:
    """
    Wire services over already-connected stores

    Without a completion client (and no API key) the deterministic stub
    generator is used.
    """
    catalog = QuestionCatalog(db)
    rate_limiter = RateLimiter(
        redis_client,
        minute_limit=settings.ai_quota_minute_limit,
        minute_window=settings.ai_quota_minute_window,
        day_limit=settings.ai_quota_day_limit,
        day_window=settings.ai_quota_day_window
    )

    if completion_client is None and settings.openai_api_key:
        completion_client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.openai_timeout
        )

    if completion_client is not None:
        generator = ExplanationGenerator(
            cache=redis_client,
            completion_client=completion_client,
            explanation_repository=ExplanationRepository(db),
            model_name=settings.openai_model,
            ttl_seconds=settings.explanation_ttl_seconds,
            cents_per_token=settings.explanation_cents_per_token,
            audit_required=settings.explanation_audit_required
        )
    else:
        logger.warning("⚠️ No completion provider key configured, using stub explanations")
        generator = StubExplanationGenerator()

    explanations = ExplanationService(
        ExplanationDependencies(
            fetch_question=make_question_fetcher(catalog, settings.is_production),
            generate=generator.generate,
            rate_limit=rate_limiter.check_ai_explanation_quota,
            track=AnalyticsTracker(db).track
        )
    )

    return ServiceContainer(
        settings=settings,
        rate_limiter=rate_limiter,
        sessions=PracticeSessionRepository(
            db, catalog, question_limit=settings.session_question_limit
        ),
        samples=SampleSessionService(
            catalog,
            LocalSnapshotStore(FileSnapshotStorage(settings.snapshot_dir)),
            limit=settings.sample_question_limit
        ),
        explanations=explanations,
        redis_client=redis_client,
        provider_configured=completion_client is not None
    )


async def build_container(settings: Settings) -> ServiceContainer:
    """Connect to MongoDB and Redis, then wire the services"""
    mongo_client = await connect_to_mongo(settings)
    try:
        redis_client = await connect_to_redis(settings)
    except Exception:
        close_mongo_connection(mongo_client)
        raise

    container = build_services(settings, get_database(mongo_client, settings), redis_client)
    container.mongo_client = mongo_client
    logger.info("✓ All services initialized")
    return container


async def close_container(container: ServiceContainer) -> None:
    if container.redis_client is not None:
        await close_redis_connection(container.redis_client)
    if container.mongo_client is not None:
        close_mongo_connection(container.mongo_client)
