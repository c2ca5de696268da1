"""
AI Explanation API Routes
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from practice_api.api.deps import api_throttle, get_explanation_service, http_error_for
from practice_api.core.errors import PracticeServiceError
from practice_api.models.explanation import ExplanationResponse, RequestExplanationBody
from practice_api.services.explanation_service import ExplanationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", dependencies=[Depends(api_throttle)])


@router.post(
    "/explanations",
    response_model=ExplanationResponse,
    summary="Explain a question for the selected answer",
    responses={
        404: {"description": "Question not found"},
        429: {"description": "Explanation quota exhausted"},
        503: {"description": "Cache, store or completion provider unavailable"}
    }
)
async def request_explanation(
    body: RequestExplanationBody,
    x_user_id: Optional[str] = Header(default=None),
    x_rate_limit_id: Optional[str] = Header(default=None),
    service: ExplanationService = Depends(get_explanation_service)
) -> ExplanationResponse:
    """
    Cached, rate-limited explanation of one question/answer pair

    Identity comes from `x-user-id` (default `anonymous`); `x-rate-limit-id`
    overrides the identity the quota is counted against.
    """
    user_id = (x_user_id or "").strip() or "anonymous"

    try:
        result = await service.request_explanation(
            question_id=body.questionId,
            selected_choice_ids=body.selectedChoiceIds,
            user_id=user_id,
            locale=body.locale,
            rate_limit_identity=(x_rate_limit_id or "").strip() or None
        )

    except PracticeServiceError as e:
        logger.error(f"❌ Explanation request failed ({e.code}): {e}")
        raise http_error_for(e)

    except Exception as e:
        logger.error(f"Unexpected error generating explanation: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while generating the explanation"
        )

    return ExplanationResponse(
        explanation=result.explanation,
        rateLimitRemaining=result.rate_limit.remaining
    )
