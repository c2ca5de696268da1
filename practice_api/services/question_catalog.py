"""
Content Catalog Access
MongoDB lookups for questions and exams, plus the durable explanation audit store
"""
from datetime import datetime
import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from practice_api.models.explanation import ExplanationAuditRecord
from practice_api.models.question import ExamRecord, QuestionModel, QuestionPage

logger = logging.getLogger(__name__)


class QuestionCatalog:
    """Read-only view over the `questions` and `exams` collections"""

    QUESTIONS_COLLECTION = "questions"
    EXAMS_COLLECTION = "exams"

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.questions = db[self.QUESTIONS_COLLECTION]
        self.exams = db[self.EXAMS_COLLECTION]

    async def fetch_question(self, question_id: str) -> Optional[QuestionModel]:
        """Retrieve a question by id, or None"""
        doc = await self.questions.find_one({"id": question_id})
        if not doc:
            logger.warning(f"⚠️ Question not found: {question_id}")
            return None

        doc.pop("_id", None)
        return QuestionModel(**doc)

    async def find_by_exam(self, exam_slug: str, limit: int = 24) -> QuestionPage:
        """First `limit` questions of an exam in catalog order"""
        query = {"examSlug": exam_slug}
        total = await self.questions.count_documents(query)
        cursor = self.questions.find(query).sort("createdAt", 1).limit(limit)

        data = []
        async for doc in cursor:
            doc.pop("_id", None)
            data.append(QuestionModel(**doc))

        logger.info(f"✅ Retrieved {len(data)}/{total} questions for exam: {exam_slug}")
        return QuestionPage(data=data, totalCount=total)

    async def find_exam(self, exam_slug: str) -> Optional[ExamRecord]:
        doc = await self.exams.find_one({"slug": exam_slug})
        if not doc:
            return None

        doc.pop("_id", None)
        return ExamRecord(**doc)


class ExplanationRepository:
    """Durable copy of generated explanations (audit / cost accounting)"""

    COLLECTION_NAME = "question_explanations"

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[self.COLLECTION_NAME]

    async def save_explanation(self, record: ExplanationAuditRecord) -> None:
        document = record.model_dump()
        document["createdAt"] = datetime.utcnow()

        await self.collection.update_one(
            {
                "questionId": record.questionId,
                "questionVersionId": record.questionVersionId,
                "answerHash": record.answerHash
            },
            {"$set": document},
            upsert=True
        )
        logger.info(
            f"✅ Stored explanation for question {record.questionId} "
            f"({record.tokensTotal} tokens, {record.costCents}¢)"
        )
