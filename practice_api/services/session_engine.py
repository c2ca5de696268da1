"""
Session Transition Engine
Applies one operation to a practice session aggregate and returns the updated copy

Every operation only touches the fields it owns and is idempotent when
replayed with the same input (explicit flag/bookmark values assumed).
"""
import logging
import math
from datetime import datetime
from typing import List, Optional, Tuple

from practice_api.core.errors import OperationValidationError
from practice_api.models.operations import (
    AdvanceOperation,
    CompleteSessionOperation,
    RecordAnswerOperation,
    RevealAnswerOperation,
    SessionOperation,
    SubmitAnswerOperation,
    ToggleBookmarkOperation,
    ToggleFlagOperation,
    UpdateTimerOperation
)
from practice_api.models.practice_session import PracticeSession, QuestionAttempt
from practice_api.models.question import QuestionModel

logger = logging.getLogger(__name__)


def evaluate_correctness(question: QuestionModel, selected_answers: List[int]) -> Optional[bool]:
    """
    Exact-set comparison of selected option indices against the correct ones

    Returns None when the question has no usable correct options configured,
    so a content error is not reported as a wrong answer.
    """
    correct_indices = {
        index for index, option in enumerate(question.options)
        if option.id in question.correctChoiceIds
    }
    if not correct_indices:
        return None
    return set(selected_answers) == correct_indices


def find_attempt(session: PracticeSession, question_id: str) -> Tuple[int, QuestionAttempt]:
    for index, attempt in enumerate(session.questions):
        if attempt.questionId == question_id:
            return index, attempt
    raise OperationValidationError(
        f"Question {question_id} is not part of session {session.id}",
        code="QUESTION_NOT_IN_SESSION"
    )


def _with_membership(ids: List[str], question_id: str, member: bool) -> List[str]:
    remaining = [value for value in ids if value != question_id]
    if member:
        remaining.append(question_id)
    return remaining


def _dedupe(values: List[int]) -> List[int]:
    seen: List[int] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def apply_operation(session: PracticeSession, operation: SessionOperation) -> PracticeSession:
    """
    Apply `operation` to a copy of `session`

    Raises:
        OperationValidationError: unknown question id, out-of-range index,
            non-finite timer, timer update on a completed session, or an
            attempt to change answers after submission
    """
    updated = session.model_copy(deep=True)

    if isinstance(operation, ToggleFlagOperation):
        find_attempt(updated, operation.questionId)
        flagged = operation.flagged
        if flagged is None:
            flagged = operation.questionId not in updated.flaggedQuestionIds
        updated.flaggedQuestionIds = _with_membership(
            updated.flaggedQuestionIds, operation.questionId, flagged
        )

    elif isinstance(operation, ToggleBookmarkOperation):
        find_attempt(updated, operation.questionId)
        bookmarked = operation.bookmarked
        if bookmarked is None:
            bookmarked = operation.questionId not in updated.bookmarkedQuestionIds
        updated.bookmarkedQuestionIds = _with_membership(
            updated.bookmarkedQuestionIds, operation.questionId, bookmarked
        )

    elif isinstance(operation, RecordAnswerOperation):
        _, attempt = find_attempt(updated, operation.questionId)
        selected = _dedupe(operation.selectedAnswers)
        if attempt.isSubmitted and selected != attempt.selectedAnswers:
            raise OperationValidationError(
                f"Question {operation.questionId} is already submitted",
                code="QUESTION_ALREADY_SUBMITTED"
            )
        attempt.selectedAnswers = selected
        if operation.timeSpentSeconds is not None:
            attempt.timeSpentSeconds = operation.timeSpentSeconds

    elif isinstance(operation, SubmitAnswerOperation):
        _, attempt = find_attempt(updated, operation.questionId)
        attempt.isSubmitted = True
        attempt.isCorrect = evaluate_correctness(attempt.question, attempt.selectedAnswers)
        updated.submittedQuestionIds = _with_membership(
            updated.submittedQuestionIds, operation.questionId, True
        )

    elif isinstance(operation, RevealAnswerOperation):
        _, attempt = find_attempt(updated, operation.questionId)
        attempt.hasRevealedAnswer = True
        updated.revealedQuestionIds = _with_membership(
            updated.revealedQuestionIds, operation.questionId, True
        )

    elif isinstance(operation, UpdateTimerOperation):
        if updated.status != "in_progress":
            raise OperationValidationError(
                f"Session {updated.id} is {updated.status}",
                code="SESSION_NOT_IN_PROGRESS"
            )
        if not math.isfinite(operation.remainingSeconds):
            raise OperationValidationError("remainingSeconds must be finite")
        updated.remainingSeconds = max(0, int(operation.remainingSeconds))

    elif isinstance(operation, AdvanceOperation):
        total = len(updated.questions)
        if not 0 <= operation.currentQuestionIndex < total:
            raise OperationValidationError(
                f"Question index {operation.currentQuestionIndex} outside 0..{total - 1}",
                code="INDEX_OUT_OF_RANGE"
            )
        updated.currentQuestionIndex = operation.currentQuestionIndex

    elif isinstance(operation, CompleteSessionOperation):
        if updated.status != "completed":
            updated.status = "completed"
            updated.completedAt = datetime.utcnow()

    else:
        raise OperationValidationError(f"Unsupported operation: {operation!r}")

    logger.debug(f"🔁 Applied {operation.operation} to session {session.id}")
    return updated
