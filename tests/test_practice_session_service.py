"""Tests for the MongoDB-backed practice session repository."""

import pytest

from practice_api.core.errors import NotFoundError, OperationValidationError
from practice_api.models.operations import parse_operation
from practice_api.services.practice_session_service import PracticeSessionRepository, build_update
from practice_api.services.question_catalog import QuestionCatalog
from tests.fakes import make_exam, make_question, seed_catalog


@pytest.fixture
def repository(fake_db):
    seed_catalog(
        fake_db,
        [make_question("Q1", created_day=1), make_question("Q2", created_day=2)],
        exam=make_exam(duration_minutes=20),
    )
    return PracticeSessionRepository(fake_db, QuestionCatalog(fake_db))


class TestStartSession:
    async def test_builds_session_from_catalog(self, repository, fake_db):
        session = await repository.start_session("learner", "a-level-math")

        assert [q.questionId for q in session.questions] == ["Q1", "Q2"]
        assert [q.orderIndex for q in session.questions] == [0, 1]
        assert session.remainingSeconds == 20 * 60
        assert session.status == "in_progress"
        assert len(fake_db["practice_sessions"].docs) == 1

    async def test_explicit_timer_wins(self, repository):
        session = await repository.start_session("learner", "a-level-math", remaining_seconds=90)
        assert session.remainingSeconds == 90

    async def test_exam_without_questions(self, repository):
        with pytest.raises(NotFoundError) as excinfo:
            await repository.start_session("learner", "physics")
        assert excinfo.value.code == "NO_QUESTIONS_FOR_EXAM"


class TestApplyOperation:
    async def test_operations_persist(self, repository):
        session = await repository.start_session("learner", "a-level-math")
        for raw in (
            {"operation": "record-answer", "questionId": "Q1", "selectedAnswers": [0], "timeSpentSeconds": 12},
            {"operation": "submit-answer", "questionId": "Q1"},
            {"operation": "toggle-flag", "questionId": "Q1", "flagged": True},
            {"operation": "advance", "currentQuestionIndex": 1},
            {"operation": "update-timer", "remainingSeconds": 300.4},
        ):
            await repository.apply_operation(session.id, parse_operation(raw))

        stored = await repository.get_session(session.id)
        assert stored.questions[0].selectedAnswers == [0]
        assert stored.questions[0].timeSpentSeconds == 12
        assert stored.questions[0].isCorrect is True
        assert stored.submittedQuestionIds == ["Q1"]
        assert stored.flaggedQuestionIds == ["Q1"]
        assert stored.currentQuestionIndex == 1
        assert stored.remainingSeconds == 300

    async def test_unflag_pulls_membership(self, repository):
        session = await repository.start_session("learner", "a-level-math")
        await repository.apply_operation(session.id, parse_operation({"operation": "toggle-flag", "questionId": "Q2", "flagged": True}))
        await repository.apply_operation(session.id, parse_operation({"operation": "toggle-flag", "questionId": "Q2", "flagged": False}))

        stored = await repository.get_session(session.id)
        assert stored.flaggedQuestionIds == []

    async def test_unknown_session(self, repository):
        with pytest.raises(NotFoundError):
            await repository.apply_operation("nope", parse_operation({"operation": "complete-session"}))

    async def test_rejected_operation_writes_nothing(self, repository):
        session = await repository.start_session("learner", "a-level-math")
        with pytest.raises(OperationValidationError):
            await repository.apply_operation(session.id, parse_operation({"operation": "advance", "currentQuestionIndex": 5}))

        stored = await repository.get_session(session.id)
        assert stored.currentQuestionIndex == 0

    async def test_delete(self, repository):
        session = await repository.start_session("learner", "a-level-math")
        assert await repository.delete_session(session.id) is True
        assert await repository.get_session(session.id) is None
        assert await repository.delete_session(session.id) is False


class TestBuildUpdate:
    """Each operation writes only the fields it owns."""

    async def test_flag_update_leaves_answers_alone(self, repository):
        session = await repository.start_session("learner", "a-level-math")
        operation = parse_operation({"operation": "toggle-flag", "questionId": "Q1", "flagged": True})
        session.flaggedQuestionIds = ["Q1"]

        update = build_update(session, operation)

        assert update["$addToSet"] == {"flaggedQuestionIds": "Q1"}
        assert set(update["$set"]) == {"updatedAt"}

    async def test_record_answer_targets_matched_question(self, repository):
        session = await repository.start_session("learner", "a-level-math")
        session.questions[1].selectedAnswers = [2]
        operation = parse_operation({"operation": "record-answer", "questionId": "Q2", "selectedAnswers": [2]})

        update = build_update(session, operation)

        assert update["$set"]["questions.$.selectedAnswers"] == [2]
        assert "questions.$.timeSpentSeconds" not in update["$set"]
        assert "flaggedQuestionIds" not in update.get("$addToSet", {})
