"""
Practice Session Service
MongoDB-backed store for server-authoritative practice sessions
"""
from datetime import datetime
import logging
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from practice_api.core.errors import NotFoundError
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
from practice_api.services.question_catalog import QuestionCatalog
from practice_api.services.session_engine import apply_operation, find_attempt

logger = logging.getLogger(__name__)


DEFAULT_QUESTION_LIMIT = 24


def _membership_update(field: str, question_id: str, member: bool) -> Dict[str, Any]:
    if member:
        return {"$addToSet": {field: question_id}}
    return {"$pull": {field: question_id}}


def build_update(
    updated: PracticeSession,
    operation: SessionOperation
) -> Dict[str, Any]:
    """
    Mongo update document limited to the fields `operation` owns

    Concurrent operations on the same session then only collide when they
    write the same field (last write wins).
    """
    now = datetime.utcnow()

    if isinstance(operation, ToggleFlagOperation):
        update = _membership_update(
            "flaggedQuestionIds",
            operation.questionId,
            operation.questionId in updated.flaggedQuestionIds
        )
        update["$set"] = {}

    elif isinstance(operation, ToggleBookmarkOperation):
        update = _membership_update(
            "bookmarkedQuestionIds",
            operation.questionId,
            operation.questionId in updated.bookmarkedQuestionIds
        )
        update["$set"] = {}

    elif isinstance(operation, RecordAnswerOperation):
        _, attempt = find_attempt(updated, operation.questionId)
        fields = {"questions.$.selectedAnswers": attempt.selectedAnswers}
        if operation.timeSpentSeconds is not None:
            fields["questions.$.timeSpentSeconds"] = attempt.timeSpentSeconds
        update = {"$set": fields}

    elif isinstance(operation, SubmitAnswerOperation):
        _, attempt = find_attempt(updated, operation.questionId)
        update = {
            "$set": {
                "questions.$.isSubmitted": True,
                "questions.$.isCorrect": attempt.isCorrect
            },
            "$addToSet": {"submittedQuestionIds": operation.questionId}
        }

    elif isinstance(operation, RevealAnswerOperation):
        update = {
            "$set": {"questions.$.hasRevealedAnswer": True},
            "$addToSet": {"revealedQuestionIds": operation.questionId}
        }

    elif isinstance(operation, UpdateTimerOperation):
        update = {"$set": {"remainingSeconds": updated.remainingSeconds}}

    elif isinstance(operation, AdvanceOperation):
        update = {"$set": {"currentQuestionIndex": updated.currentQuestionIndex}}

    elif isinstance(operation, CompleteSessionOperation):
        update = {"$set": {"status": updated.status, "completedAt": updated.completedAt}}

    else:
        raise ValueError(f"No update mapping for operation: {operation!r}")

    update["$set"]["updatedAt"] = now
    return update


class PracticeSessionRepository:
    """Service class for practice session persistence and transitions"""

    COLLECTION_NAME = "practice_sessions"

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        catalog: QuestionCatalog,
        question_limit: int = DEFAULT_QUESTION_LIMIT
    ):
        """
        Initialize practice session repository

        Args:
            db: MongoDB database instance
            catalog: Question/exam lookups used when starting sessions
            question_limit: Maximum questions per session
        """
        self.collection = db[self.COLLECTION_NAME]
        self.catalog = catalog
        self.question_limit = question_limit

    async def start_session(
        self,
        user_id: str,
        exam_slug: str,
        remaining_seconds: Optional[int] = None
    ) -> PracticeSession:
        """
        Create a new in-progress session over the exam's catalog questions

        Raises:
            NotFoundError: The exam has no questions
        """
        exam = await self.catalog.find_exam(exam_slug)
        page = await self.catalog.find_by_exam(exam_slug, limit=self.question_limit)

        if not page.data:
            logger.error(f"❌ No questions found for exam: {exam_slug}")
            raise NotFoundError(
                f"No questions found for exam {exam_slug}",
                code="NO_QUESTIONS_FOR_EXAM"
            )

        if remaining_seconds is None and exam and exam.durationMinutes:
            remaining_seconds = exam.durationMinutes * 60

        session = PracticeSession(
            userId=user_id,
            examSlug=exam_slug,
            exam=exam,
            questions=[
                QuestionAttempt(questionId=question.id, orderIndex=order, question=question)
                for order, question in enumerate(page.data)
            ],
            remainingSeconds=remaining_seconds
        )

        await self.collection.insert_one(session.model_dump())
        logger.info(
            f"✅ Created practice session: {session.id} for exam: {exam_slug} "
            f"({len(session.questions)} questions)"
        )
        return session

    async def get_session(self, session_id: str) -> Optional[PracticeSession]:
        """Retrieve a practice session by ID"""
        doc = await self.collection.find_one({"id": session_id})
        if not doc:
            logger.warning(f"⚠️ Session not found: {session_id}")
            return None

        doc.pop("_id", None)
        return PracticeSession(**doc)

    async def apply_operation(
        self,
        session_id: str,
        operation: SessionOperation
    ) -> PracticeSession:
        """
        Run one transition and persist the fields it changed

        Raises:
            NotFoundError: Unknown session
            OperationValidationError: Operation rejected by the transition engine
        """
        session = await self.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Practice session {session_id} was not found", code="SESSION_NOT_FOUND")

        updated = apply_operation(session, operation)

        query: Dict[str, Any] = {"id": session_id}
        question_id = getattr(operation, "questionId", None)
        if isinstance(operation, (RecordAnswerOperation, SubmitAnswerOperation, RevealAnswerOperation)):
            query["questions.questionId"] = question_id

        result = await self.collection.update_one(query, build_update(updated, operation))
        if result.matched_count == 0:
            raise NotFoundError(f"Practice session {session_id} was not found", code="SESSION_NOT_FOUND")

        logger.info(f"✅ Applied {operation.operation} to session {session_id}")
        return updated

    async def delete_session(self, session_id: str) -> bool:
        result = await self.collection.delete_one({"id": session_id})
        if result.deleted_count > 0:
            logger.info(f"✅ Deleted session: {session_id}")
            return True

        logger.warning(f"⚠️ Session not found for deletion: {session_id}")
        return False
