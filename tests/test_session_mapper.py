"""Tests for aggregate / wire / view conversions."""

import pytest

from practice_api.core.errors import PracticeServiceError
from practice_api.models.practice_session import PracticeSession, QuestionAttempt
from practice_api.models.question import ExamSubject, QuestionPage
from practice_api.services.sample_question import SAMPLE_QUESTION
from practice_api.services.session_mapper import (
    DEFAULT_PRACTICE_INFO,
    build_practice_exam_info,
    clamp_index,
    derive_difficulty_mix,
    session_from_view,
    synthesize_sample_session,
    to_view_model,
    to_wire_format,
)
from tests.fakes import make_exam, make_question


def make_session(question_ids, **overrides) -> PracticeSession:
    fields = dict(
        id="session-1",
        userId="learner",
        examSlug="a-level-math",
        exam=make_exam(),
        questions=[
            QuestionAttempt(questionId=qid, orderIndex=i, question=make_question(qid))
            for i, qid in enumerate(question_ids)
        ],
    )
    fields.update(overrides)
    return PracticeSession(**fields)


class TestHelpers:
    def test_clamp_index(self):
        assert clamp_index(-3, 4) == 0
        assert clamp_index(9, 4) == 3
        assert clamp_index(2, 4) == 2
        assert clamp_index(5, 0) == 0

    def test_difficulty_mix_in_severity_order(self):
        questions = [
            make_question("q1", difficulty="HARD"),
            make_question("q2", difficulty="EASY"),
            make_question("q3", difficulty="HARD"),
        ]
        assert derive_difficulty_mix(questions) == "E • H"

    def test_difficulty_mix_empty(self):
        assert derive_difficulty_mix([]) is None


class TestExamInfo:
    def test_missing_exam_uses_defaults(self):
        info = build_practice_exam_info(None, 0, [], exam_slug="physics")
        assert info.slug == "physics"
        assert info.title == DEFAULT_PRACTICE_INFO.title
        assert info.durationMinutes == 45
        assert info.totalQuestions == 24

    def test_fetched_count_wins_over_target(self):
        info = build_practice_exam_info(make_exam(), 3, [make_question("q1")])
        assert info.totalQuestions == 3
        assert info.passingScore == "70%"
        assert info.attemptsAllowed == DEFAULT_PRACTICE_INFO.attemptsAllowed
        assert info.tags == ["Timed"]

    def test_taxonomy_passes_through(self):
        exam = make_exam().model_copy(update={
            "subject": ExamSubject(categorySlug="stem", categoryName="STEM", subcategorySlug="calculus")
        })
        info = build_practice_exam_info(exam, 1, [])
        assert info.category.name == "STEM"
        assert info.subcategory.name == "calculus"


class TestWireFormat:
    def test_sets_are_restricted_to_session_questions(self):
        session = make_session(
            ["Q1", "Q2"],
            flaggedQuestionIds=["Q2", "ghost"],
            currentQuestionIndex=7,
        )
        wire = to_wire_format(session)

        assert wire.session.flaggedQuestionIds == ["Q2"]
        assert wire.session.currentQuestionIndex == 1
        assert [q.isFlagged for q in wire.questions] == [False, True]

    def test_questions_ordered_by_order_index(self):
        session = make_session(["Q1", "Q2"])
        session.questions.reverse()
        wire = to_wire_format(session)
        assert [q.questionId for q in wire.questions] == ["Q1", "Q2"]


class TestViewModel:
    def test_progress_is_one_based(self):
        view = to_view_model(to_wire_format(make_session(["Q1", "Q2"], currentQuestionIndex=1, remainingSeconds=90)))

        assert view.question.id == "Q2"
        assert view.questionState.questionId == "Q2"
        assert view.progress.questionIndex == 2
        assert view.progress.totalQuestions == 2
        assert view.progress.timeRemainingSeconds == 90

    def test_untimed_session_uses_exam_duration(self):
        view = to_view_model(to_wire_format(make_session(["Q1"])))
        assert view.progress.timeRemainingSeconds == 30 * 60

    def test_empty_session_is_rejected(self):
        with pytest.raises(PracticeServiceError):
            to_view_model(to_wire_format(make_session([])))


class TestSampleSession:
    def test_empty_catalog_falls_back_to_sample_question(self):
        view = synthesize_sample_session("a-level-math", QuestionPage())

        assert [q.questionId for q in view.questions] == [SAMPLE_QUESTION.id]
        assert view.sessionId == "sample-session"
        assert view.fromSample is True
        assert view.progress.timeRemainingSeconds == 45 * 60

    def test_catalog_page_is_limited(self):
        page = QuestionPage(data=[make_question(f"q{i}") for i in range(5)], totalCount=5)
        view = synthesize_sample_session("a-level-math", page, limit=3)
        assert len(view.questions) == 3

    def test_fallback_copies_get_distinct_ids(self):
        view = synthesize_sample_session("a-level-math", None, fallback_count=3)
        ids = [q.questionId for q in view.questions]
        assert len(set(ids)) == 3

    def test_view_round_trips_to_aggregate(self):
        view = to_view_model(
            to_wire_format(make_session(["Q1", "Q2"], flaggedQuestionIds=["Q1"], remainingSeconds=120)),
            from_sample=True,
        )
        session = session_from_view(view, "a-level-math")

        assert session.flaggedQuestionIds == ["Q1"]
        assert session.remainingSeconds == 120
        assert to_wire_format(session).exam.title == view.exam.title
