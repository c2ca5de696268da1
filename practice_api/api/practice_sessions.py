"""
Practice Session API Routes
Server-authoritative sessions plus the offline sample-mode session
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Path, Request, Response, status

from practice_api.api.deps import (
    api_throttle,
    get_sample_service,
    get_session_repository,
    http_error_for
)
from practice_api.core.errors import PracticeServiceError
from practice_api.models.operations import parse_operation
from practice_api.models.practice_session import (
    PracticeSessionApiResponse,
    PracticeSessionData,
    StartSessionRequest
)
from practice_api.services.practice_session_service import PracticeSessionRepository
from practice_api.services.sample_session_service import SampleSessionService
from practice_api.services.session_mapper import to_wire_format

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/practice", dependencies=[Depends(api_throttle)])


async def _read_payload(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "INVALID_PAYLOAD", "message": "Request body must be JSON"}
        )


# ============================================================================
# SERVER SESSIONS
# ============================================================================

@router.post(
    "/sessions",
    response_model=PracticeSessionApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a practice session",
    responses={
        404: {"description": "Exam has no questions"},
        503: {"description": "Session store unavailable"}
    }
)
async def start_practice_session(
    request: StartSessionRequest,
    repository: PracticeSessionRepository = Depends(get_session_repository)
) -> PracticeSessionApiResponse:
    """
    Start a new practice session over the exam's catalog questions

    Example:
        POST /api/practice/sessions
        {"examSlug": "a-level-math", "userId": "demo-user"}
    """
    try:
        session = await repository.start_session(
            user_id=request.userId or "anonymous",
            exam_slug=request.examSlug.strip(),
            remaining_seconds=request.remainingSeconds
        )
        return to_wire_format(session)

    except PracticeServiceError as e:
        raise http_error_for(e)

    except Exception as e:
        logger.error(f"Unexpected error starting practice session: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while starting the session"
        )


@router.get(
    "/sessions/{session_id}",
    response_model=PracticeSessionApiResponse,
    summary="Get a practice session"
)
async def get_practice_session(
    session_id: str = Path(..., description="Practice session ID"),
    repository: PracticeSessionRepository = Depends(get_session_repository)
) -> PracticeSessionApiResponse:
    session = await repository.get_session(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "SESSION_NOT_FOUND", "message": f"Practice session {session_id} was not found"}
        )
    return to_wire_format(session)


@router.patch(
    "/sessions/{session_id}",
    response_model=PracticeSessionApiResponse,
    summary="Apply an operation to a practice session",
    responses={
        400: {"description": "Malformed or rejected operation"},
        404: {"description": "Session not found"}
    }
)
async def update_practice_session(
    request: Request,
    session_id: str = Path(..., description="Practice session ID"),
    repository: PracticeSessionRepository = Depends(get_session_repository)
) -> PracticeSessionApiResponse:
    """
    Apply one operation envelope, e.g. {"operation": "toggle-flag", "questionId": "q1"}

    Operations are idempotent, so clients may retry on network failure.
    """
    payload = await _read_payload(request)

    try:
        operation = parse_operation(payload)
        session = await repository.apply_operation(session_id, operation)
        return to_wire_format(session)

    except PracticeServiceError as e:
        logger.warning(f"⚠️ Operation rejected for session {session_id}: {e}")
        raise http_error_for(e)


@router.delete(
    "/sessions/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a practice session"
)
async def delete_practice_session(
    session_id: str = Path(..., description="Practice session ID"),
    repository: PracticeSessionRepository = Depends(get_session_repository)
) -> Response:
    deleted = await repository.delete_session(session_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "SESSION_NOT_FOUND", "message": f"Practice session {session_id} was not found"}
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# SAMPLE SESSIONS
# ============================================================================

@router.get(
    "/sample/{exam_slug}",
    response_model=PracticeSessionData,
    summary="Load the sample practice session for an exam"
)
async def get_sample_session(
    exam_slug: str = Path(..., description="Exam slug"),
    service: SampleSessionService = Depends(get_sample_service)
) -> PracticeSessionData:
    """Synthesized session reconciled with the locally stored snapshot"""
    return await service.load(exam_slug)


@router.patch(
    "/sample/{exam_slug}",
    response_model=PracticeSessionData,
    summary="Apply an operation to the sample session"
)
async def update_sample_session(
    request: Request,
    exam_slug: str = Path(..., description="Exam slug"),
    service: SampleSessionService = Depends(get_sample_service)
) -> PracticeSessionData:
    payload = await _read_payload(request)

    try:
        return await service.apply(exam_slug, payload)

    except PracticeServiceError as e:
        logger.warning(f"⚠️ Sample operation rejected for {exam_slug}: {e}")
        raise http_error_for(e)


@router.delete(
    "/sample/{exam_slug}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Reset the sample session"
)
async def reset_sample_session(
    exam_slug: str = Path(..., description="Exam slug"),
    service: SampleSessionService = Depends(get_sample_service)
) -> Response:
    service.reset(exam_slug)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
