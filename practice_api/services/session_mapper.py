"""
Session Mapper
Pure conversions between the session aggregate, its wire format and the client view model
"""
import logging
from typing import List, Optional

from practice_api.core.errors import PracticeServiceError
from practice_api.models.practice_session import (
    PracticeExamInfo,
    PracticeProgressInfo,
    PracticeSession,
    PracticeSessionApiQuestion,
    PracticeSessionApiResponse,
    PracticeSessionData,
    PracticeSessionQuestionState,
    QuestionAttempt,
    SessionSummary
)
from practice_api.models.question import (
    DIFFICULTY_ORDER,
    ExamRecord,
    ExamSubject,
    QuestionModel,
    QuestionPage,
    TaxonomyRef
)
from practice_api.services.sample_question import SAMPLE_QUESTION

logger = logging.getLogger(__name__)


SAMPLE_SESSION_ID = "sample-session"
SAMPLE_USER_ID = "sample-user"
DEFAULT_SAMPLE_LIMIT = 24

DEFAULT_PRACTICE_INFO = PracticeExamInfo(
    slug="sample-exam",
    title="A-Level Mathematics Mock Paper",
    description="Timed practice session covering differentiation, integration, and applied mechanics.",
    tags=["Timed", "STEM", "Adaptive"],
    durationMinutes=45,
    passingScore="75%",
    difficultyMix="E • M • H",
    attemptsAllowed="Unlimited",
    totalQuestions=24,
    category=TaxonomyRef(slug="academic", name="Academic", type="academic"),
    subcategory=TaxonomyRef(slug="algebra", name="Algebra"),
)


def clamp_index(index: int, total: int) -> int:
    """Clamp into [0, total - 1]; 0 for an empty question set"""
    if total <= 0:
        return 0
    return min(max(index, 0), total - 1)


def derive_difficulty_mix(questions: List[QuestionModel]) -> Optional[str]:
    """One initial per difficulty present, in severity order, e.g. 'E • H'"""
    present = {question.difficulty for question in questions}
    letters = [level[0] for level in DIFFICULTY_ORDER if level in present]
    return " • ".join(letters) if letters else None


def _metadata_text(metadata: dict, field: str, fallback: Optional[str]) -> Optional[str]:
    value = metadata.get(field)
    if isinstance(value, str) and value.strip():
        return value
    return fallback


def build_practice_exam_info(
    exam: Optional[ExamRecord],
    total_questions: int,
    questions: List[QuestionModel],
    exam_slug: Optional[str] = None
) -> PracticeExamInfo:
    """
    Exam summary with fixed defaults for absent records or metadata

    The fetched question count wins over the catalog's declared target.
    """
    fallback = DEFAULT_PRACTICE_INFO
    difficulty_mix = derive_difficulty_mix(questions)

    if exam is None:
        return fallback.model_copy(update={
            "slug": exam_slug or fallback.slug,
            "difficultyMix": difficulty_mix,
            "totalQuestions": total_questions or fallback.totalQuestions
        })

    metadata = exam.metadata or {}
    raw_tags = metadata.get("tags")
    tags = [tag for tag in raw_tags if isinstance(tag, str)] if isinstance(raw_tags, list) else []

    if total_questions > 0:
        resolved_total = total_questions
    elif exam.questionTarget and exam.questionTarget > 0:
        resolved_total = exam.questionTarget
    else:
        resolved_total = fallback.totalQuestions

    category = None
    subcategory = None
    if exam.subject and exam.subject.categorySlug:
        category = TaxonomyRef(
            slug=exam.subject.categorySlug,
            name=exam.subject.categoryName or exam.subject.categorySlug,
            type=exam.subject.categoryType
        )
    if exam.subject and exam.subject.subcategorySlug:
        subcategory = TaxonomyRef(
            slug=exam.subject.subcategorySlug,
            name=exam.subject.subcategoryName or exam.subject.subcategorySlug
        )

    return PracticeExamInfo(
        slug=exam.slug,
        title=exam.title,
        description=exam.description or fallback.description,
        tags=tags or list(fallback.tags),
        durationMinutes=exam.durationMinutes or fallback.durationMinutes,
        passingScore=_metadata_text(metadata, "passingScore", fallback.passingScore),
        difficultyMix=difficulty_mix,
        attemptsAllowed=_metadata_text(metadata, "attemptsAllowed", fallback.attemptsAllowed),
        totalQuestions=resolved_total,
        category=category,
        subcategory=subcategory
    )


def build_practice_progress(
    exam: PracticeExamInfo,
    question_index: int,
    total_questions: int,
    remaining_seconds: Optional[int] = None
) -> PracticeProgressInfo:
    """Progress block; untimed sessions fall back to the exam duration"""
    if remaining_seconds is not None:
        resolved = max(0, remaining_seconds)
    else:
        duration_seconds = (exam.durationMinutes or 0) * 60
        resolved = duration_seconds if duration_seconds > 0 else None

    return PracticeProgressInfo(
        questionIndex=question_index,
        totalQuestions=total_questions,
        timeRemainingSeconds=resolved
    )


def to_wire_format(session: PracticeSession) -> PracticeSessionApiResponse:
    """Flatten the aggregate into the session API response"""
    ordered = sorted(session.questions, key=lambda attempt: attempt.orderIndex)
    present_ids = [attempt.questionId for attempt in ordered]

    def in_session(ids: List[str]) -> List[str]:
        wanted = set(ids)
        return [question_id for question_id in present_ids if question_id in wanted]

    flagged = in_session(session.flaggedQuestionIds)
    bookmarked = in_session(session.bookmarkedQuestionIds)
    submitted = in_session(session.submittedQuestionIds)
    revealed = in_session(session.revealedQuestionIds)

    questions = [
        PracticeSessionApiQuestion(
            questionId=attempt.questionId,
            orderIndex=attempt.orderIndex,
            selectedAnswers=list(attempt.selectedAnswers),
            isFlagged=attempt.questionId in flagged,
            isBookmarked=attempt.questionId in bookmarked,
            isSubmitted=attempt.isSubmitted or attempt.questionId in submitted,
            hasRevealedAnswer=attempt.hasRevealedAnswer or attempt.questionId in revealed,
            isCorrect=attempt.isCorrect,
            timeSpentSeconds=attempt.timeSpentSeconds,
            question=attempt.question
        )
        for attempt in ordered
    ]

    exam_info = build_practice_exam_info(
        session.exam,
        len(questions),
        [attempt.question for attempt in ordered],
        exam_slug=session.examSlug
    )

    return PracticeSessionApiResponse(
        session=SessionSummary(
            id=session.id,
            status=session.status,
            currentQuestionIndex=clamp_index(session.currentQuestionIndex, len(questions)),
            totalQuestions=len(questions),
            remainingSeconds=session.remainingSeconds,
            flaggedQuestionIds=flagged,
            bookmarkedQuestionIds=bookmarked,
            submittedQuestionIds=submitted,
            revealedQuestionIds=revealed
        ),
        exam=exam_info,
        questions=questions
    )


def question_state_of(question: PracticeSessionApiQuestion) -> PracticeSessionQuestionState:
    return PracticeSessionQuestionState(
        questionId=question.questionId,
        orderIndex=question.orderIndex,
        selectedAnswers=list(question.selectedAnswers),
        isFlagged=question.isFlagged,
        isBookmarked=question.isBookmarked,
        isSubmitted=question.isSubmitted,
        hasRevealedAnswer=question.hasRevealedAnswer,
        isCorrect=question.isCorrect,
        timeSpentSeconds=question.timeSpentSeconds
    )


def to_view_model(
    response: PracticeSessionApiResponse,
    from_sample: bool = False
) -> PracticeSessionData:
    """
    Build the client view model, selecting the active question by clamped index

    Raises:
        PracticeServiceError: the response carries no questions
    """
    session, exam, questions = response.session, response.exam, response.questions
    if not questions:
        raise PracticeServiceError(
            "Practice session response is missing questions",
            code="EMPTY_SESSION"
        )

    index = clamp_index(session.currentQuestionIndex, len(questions))
    active = questions[index]

    return PracticeSessionData(
        sessionId=session.id,
        sessionStatus=session.status,
        exam=exam,
        questions=[question.model_copy(deep=True) for question in questions],
        currentQuestionIndex=index,
        question=active.question,
        questionState=question_state_of(active),
        progress=build_practice_progress(
            exam, index + 1, session.totalQuestions, session.remainingSeconds
        ),
        flaggedQuestionIds=list(session.flaggedQuestionIds),
        bookmarkedQuestionIds=list(session.bookmarkedQuestionIds),
        submittedQuestionIds=list(session.submittedQuestionIds),
        revealedQuestionIds=list(session.revealedQuestionIds),
        fromSample=from_sample
    )


def _sample_questions(page: Optional[QuestionPage], limit: int, fallback_count: int) -> List[QuestionModel]:
    questions = list(page.data[:limit]) if page else []
    if questions:
        return questions

    copies = max(1, fallback_count)
    logger.info(f"ℹ️ Catalog returned no questions, using {copies} built-in sample question(s)")
    return [
        SAMPLE_QUESTION if i == 0 else SAMPLE_QUESTION.model_copy(
            update={"id": f"{SAMPLE_QUESTION.id}-copy-{i}"}
        )
        for i in range(copies)
    ]


def synthesize_sample_session(
    exam_slug: str,
    catalog_page: Optional[QuestionPage],
    exam: Optional[ExamRecord] = None,
    limit: int = DEFAULT_SAMPLE_LIMIT,
    fallback_count: int = 1
) -> PracticeSessionData:
    """
    Offline session built from up to `limit` catalog questions

    Always holds at least one question: an empty catalog page falls back
    to the built-in sample question.
    """
    questions = _sample_questions(catalog_page, limit, fallback_count)
    exam_info = build_practice_exam_info(exam, len(questions), questions, exam_slug=exam_slug)
    duration = (exam_info.durationMinutes or 0) * 60

    session = PracticeSession(
        id=SAMPLE_SESSION_ID,
        userId=SAMPLE_USER_ID,
        examSlug=exam_slug,
        exam=exam,
        questions=[
            QuestionAttempt(questionId=question.id, orderIndex=order, question=question)
            for order, question in enumerate(questions)
        ],
        remainingSeconds=duration if duration > 0 else None,
        fromSample=True
    )
    return to_view_model(to_wire_format(session), from_sample=True)


def session_from_view(data: PracticeSessionData, exam_slug: str) -> PracticeSession:
    """Rebuild an aggregate from a sample-mode view so operations can be applied to it"""
    category, subcategory = data.exam.category, data.exam.subcategory
    exam = ExamRecord(
        slug=data.exam.slug,
        title=data.exam.title,
        description=data.exam.description,
        durationMinutes=data.exam.durationMinutes,
        questionTarget=data.exam.totalQuestions,
        metadata={
            "tags": list(data.exam.tags),
            "passingScore": data.exam.passingScore,
            "attemptsAllowed": data.exam.attemptsAllowed
        },
        subject=ExamSubject(
            categorySlug=category.slug if category else None,
            categoryName=category.name if category else None,
            categoryType=category.type if category else None,
            subcategorySlug=subcategory.slug if subcategory else None,
            subcategoryName=subcategory.name if subcategory else None
        )
    )

    return PracticeSession(
        id=data.sessionId,
        userId=SAMPLE_USER_ID,
        examSlug=exam_slug,
        status=data.sessionStatus,
        exam=exam,
        questions=[
            QuestionAttempt(
                questionId=question.questionId,
                orderIndex=question.orderIndex,
                selectedAnswers=list(question.selectedAnswers),
                isSubmitted=question.isSubmitted,
                hasRevealedAnswer=question.hasRevealedAnswer,
                isCorrect=question.isCorrect,
                timeSpentSeconds=question.timeSpentSeconds,
                question=question.question
            )
            for question in data.questions
        ],
        flaggedQuestionIds=list(data.flaggedQuestionIds),
        bookmarkedQuestionIds=list(data.bookmarkedQuestionIds),
        submittedQuestionIds=list(data.submittedQuestionIds),
        revealedQuestionIds=list(data.revealedQuestionIds),
        currentQuestionIndex=data.currentQuestionIndex,
        remainingSeconds=data.progress.timeRemainingSeconds,
        fromSample=data.fromSample
    )
