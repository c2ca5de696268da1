"""
Practice Session Models
Session aggregate (server-authoritative record), wire response and client view model
"""
from datetime import datetime
from typing import List, Literal, Optional
import uuid

from pydantic import BaseModel, Field

from practice_api.models.question import ExamRecord, QuestionModel, TaxonomyRef


SessionStatus = Literal["in_progress", "completed"]


# ============================================================================
# AGGREGATE
# ============================================================================

class QuestionAttempt(BaseModel):
    """
    Per-question mutable state nested under a session

    isSubmitted / hasRevealedAnswer are monotonic: no operation resets them.
    """
    questionId: str = Field(..., description="Question ID reference")
    orderIndex: int = Field(..., ge=0, description="Position in the exam (authoritative)")
    selectedAnswers: List[int] = Field(default_factory=list, description="Selected option indices")
    isSubmitted: bool = False
    hasRevealedAnswer: bool = False
    isCorrect: Optional[bool] = Field(default=None, description="None until evaluated")
    timeSpentSeconds: Optional[int] = Field(default=None, ge=0)
    question: QuestionModel


class PracticeSession(BaseModel):
    """Aggregate root for one learner's attempt at one exam"""
    id: str = Field(
        default_factory=lambda: f"session_{uuid.uuid4().hex[:12]}",
        description="Unique session identifier"
    )
    userId: str = Field(..., description="Owner identity")
    examSlug: str = Field(..., description="Exam reference")
    status: SessionStatus = "in_progress"
    exam: Optional[ExamRecord] = None
    questions: List[QuestionAttempt] = Field(default_factory=list)

    flaggedQuestionIds: List[str] = Field(default_factory=list)
    bookmarkedQuestionIds: List[str] = Field(default_factory=list)
    submittedQuestionIds: List[str] = Field(default_factory=list)
    revealedQuestionIds: List[str] = Field(default_factory=list)

    currentQuestionIndex: int = Field(default=0, ge=0)
    remainingSeconds: Optional[int] = Field(default=None, description="None means untimed")
    fromSample: bool = Field(default=False, description="Client-local fallback session")

    startedAt: datetime = Field(default_factory=datetime.utcnow)
    completedAt: Optional[datetime] = None
    updatedAt: datetime = Field(default_factory=datetime.utcnow)


# ============================================================================
# WIRE FORMAT
# ============================================================================

class PracticeExamInfo(BaseModel):
    """Exam summary shown alongside a session"""
    slug: str
    title: str
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    durationMinutes: Optional[int] = None
    passingScore: Optional[str] = None
    difficultyMix: Optional[str] = None
    attemptsAllowed: Optional[str] = None
    totalQuestions: int
    category: Optional[TaxonomyRef] = None
    subcategory: Optional[TaxonomyRef] = None


class PracticeSessionQuestionState(BaseModel):
    """Flattened per-question flags consumed by rendering"""
    questionId: str
    orderIndex: int
    selectedAnswers: List[int] = Field(default_factory=list)
    isFlagged: bool = False
    isBookmarked: bool = False
    isSubmitted: bool = False
    hasRevealedAnswer: bool = False
    isCorrect: Optional[bool] = None
    timeSpentSeconds: Optional[int] = None


class PracticeSessionApiQuestion(PracticeSessionQuestionState):
    """Question state plus the embedded question snapshot"""
    question: QuestionModel


class SessionSummary(BaseModel):
    """Session block of the wire response"""
    id: str
    status: SessionStatus
    currentQuestionIndex: int
    totalQuestions: int
    remainingSeconds: Optional[int] = None
    flaggedQuestionIds: List[str] = Field(default_factory=list)
    bookmarkedQuestionIds: List[str] = Field(default_factory=list)
    submittedQuestionIds: List[str] = Field(default_factory=list)
    revealedQuestionIds: List[str] = Field(default_factory=list)


class PracticeSessionApiResponse(BaseModel):
    """Wire representation of a session returned by the session API"""
    session: SessionSummary
    exam: PracticeExamInfo
    questions: List[PracticeSessionApiQuestion] = Field(default_factory=list)


# ============================================================================
# CLIENT VIEW MODEL
# ============================================================================

class PracticeProgressInfo(BaseModel):
    questionIndex: int = Field(..., description="1-based position of the active question")
    totalQuestions: int
    timeRemainingSeconds: Optional[int] = None


class PracticeSessionData(BaseModel):
    """In-memory view model consumed by rendering logic"""
    sessionId: str
    sessionStatus: SessionStatus
    exam: PracticeExamInfo
    questions: List[PracticeSessionApiQuestion]
    currentQuestionIndex: int
    question: QuestionModel
    questionState: PracticeSessionQuestionState
    progress: PracticeProgressInfo
    flaggedQuestionIds: List[str] = Field(default_factory=list)
    bookmarkedQuestionIds: List[str] = Field(default_factory=list)
    submittedQuestionIds: List[str] = Field(default_factory=list)
    revealedQuestionIds: List[str] = Field(default_factory=list)
    fromSample: bool = False


class StartSessionRequest(BaseModel):
    """Request model for starting a practice session"""
    examSlug: str = Field(..., min_length=1, description="Exam to practice")
    userId: Optional[str] = Field(default=None, description="Owner identity")
    remainingSeconds: Optional[int] = Field(default=None, ge=0)

    class Config:
        json_schema_extra = {
            "example": {
                "examSlug": "a-level-math",
                "userId": "demo-user"
            }
        }
