"""
Shared API dependencies
"""
import logging

from fastapi import HTTPException, Request, status
from redis.exceptions import RedisError

from practice_api.bootstrap import ServiceContainer
from practice_api.core.errors import (
    DependencyError,
    NotFoundError,
    OperationValidationError,
    PracticeServiceError,
    RateLimitError
)
from practice_api.services.explanation_service import ExplanationService
from practice_api.services.practice_session_service import PracticeSessionRepository
from practice_api.services.sample_session_service import SampleSessionService

logger = logging.getLogger(__name__)


def get_container(request: Request) -> ServiceContainer:
    """Dependency to get the service container built during startup"""
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Services are not initialized"
        )
    return container


def get_session_repository(request: Request) -> PracticeSessionRepository:
    return get_container(request).sessions


def get_sample_service(request: Request) -> SampleSessionService:
    return get_container(request).samples


def get_explanation_service(request: Request) -> ExplanationService:
    return get_container(request).explanations


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def api_throttle(request: Request) -> None:
    """
    Per-IP fixed-window throttle shared by all /api routes

    Fails open when Redis is unreachable; the AI quota has its own
    fail-closed check.
    """
    container = get_container(request)
    settings = container.settings
    ip = client_ip(request)

    try:
        result = await container.rate_limiter.consume(
            f"api:{ip}", settings.api_rate_limit, settings.api_rate_window
        )
    except RedisError as e:
        logger.warning(f"⚠️ API throttle unavailable, allowing request from {ip}: {e}")
        return

    if not result.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests",
            headers={"Retry-After": str(result.retry_after_seconds)}
        )


def http_error_for(error: PracticeServiceError) -> HTTPException:
    """Translate a service-layer error into an HTTPException with a JSON detail body"""
    detail = {"error": error.code, "message": str(error)}

    if isinstance(error, RateLimitError):
        detail["remaining"] = error.remaining
        detail["retryAfterSeconds"] = error.retry_after_seconds
        headers = None
        if error.retry_after_seconds is not None:
            headers = {"Retry-After": str(error.retry_after_seconds)}
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            headers=headers
        )

    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

    if isinstance(error, OperationValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

    if isinstance(error, DependencyError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)

    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
