"""Tests for sample snapshot persistence and reconciliation."""

import json

from practice_api.models.question import QuestionPage
from practice_api.services.sample_snapshot import (
    STORAGE_VERSION,
    FileSnapshotStorage,
    LocalSnapshotStore,
    build_snapshot,
    merge_snapshot,
)
from practice_api.services.session_mapper import synthesize_sample_session
from tests.fakes import FakeClock, make_question


def baseline(*question_ids):
    page = QuestionPage(data=[make_question(qid) for qid in question_ids], totalCount=len(question_ids))
    return synthesize_sample_session("a-level-math", page)


def raw_snapshot(updated_at_ms, **data):
    return {"version": STORAGE_VERSION, "updatedAt": updated_at_ms, "data": data}


class TestMergeSnapshot:
    """Tests for merge_snapshot."""

    def test_missing_snapshot_returns_baseline(self):
        base = baseline("Q1")
        assert merge_snapshot(base, None) is base

    def test_version_mismatch_returns_baseline(self):
        base = baseline("Q1")
        stale = {"version": STORAGE_VERSION + 1, "updatedAt": 1, "data": {"currentQuestionIndex": 0}}
        assert merge_snapshot(base, stale) is base

    def test_malformed_snapshot_returns_baseline(self):
        base = baseline("Q1")
        assert merge_snapshot(base, "{not json") is base
        assert merge_snapshot(base, {"version": STORAGE_VERSION, "updatedAt": 0, "data": {}}) is base

    def test_timer_decays_by_elapsed_time(self):
        now = 1_700_000_000.0
        snapshot = raw_snapshot(int((now - 30) * 1000), timeRemainingSeconds=100)

        merged = merge_snapshot(baseline("Q1"), snapshot, now=now)
        assert merged.progress.timeRemainingSeconds == 70

    def test_timer_never_negative(self):
        now = 1_700_000_000.0
        snapshot = raw_snapshot(int((now - 500) * 1000), timeRemainingSeconds=100)

        merged = merge_snapshot(baseline("Q1"), snapshot, now=now)
        assert merged.progress.timeRemainingSeconds == 0

    def test_absent_timer_keeps_baseline(self):
        base = baseline("Q1")
        merged = merge_snapshot(base, raw_snapshot(1_000, currentQuestionIndex=0), now=2.0)
        assert merged.progress.timeRemainingSeconds == base.progress.timeRemainingSeconds

    def test_index_is_clamped_and_progress_follows(self):
        merged = merge_snapshot(baseline("Q1", "Q2"), raw_snapshot(1_000, currentQuestionIndex=9), now=2.0)

        assert merged.currentQuestionIndex == 1
        assert merged.question.id == "Q2"
        assert merged.progress.questionIndex == 2

    def test_flags_and_unknown_ids(self):
        snapshot = raw_snapshot(
            1_000,
            flaggedQuestionIds=["Q2", "gone"],
            submittedQuestionIds=["Q1"],
        )
        merged = merge_snapshot(baseline("Q1", "Q2"), snapshot, now=2.0)

        assert merged.flaggedQuestionIds == ["Q2"]
        assert merged.submittedQuestionIds == ["Q1"]
        assert merged.questions[0].isSubmitted is True
        assert merged.fromSample is True

    def test_explicit_null_differs_from_absent(self):
        snapshot = raw_snapshot(
            1_000,
            questionStates={
                "Q1": {"isCorrect": None, "selectedAnswers": [2]},
                "Q2": {"selectedAnswers": [1]},
            },
        )
        base = baseline("Q1", "Q2")
        base.questions[0].isCorrect = True
        base.questions[1].isCorrect = False

        merged = merge_snapshot(base, snapshot, now=2.0)

        assert merged.questions[0].isCorrect is None
        assert merged.questions[0].selectedAnswers == [2]
        assert merged.questions[1].isCorrect is False

    def test_null_selected_answers_keeps_baseline(self):
        snapshot = raw_snapshot(1_000, questionStates={"Q1": {"selectedAnswers": None}})
        base = baseline("Q1")
        base.questions[0].selectedAnswers = [1]

        merged = merge_snapshot(base, snapshot, now=2.0)
        assert merged.questions[0].selectedAnswers == [1]

    def test_progress_follows_position_when_ids_change(self):
        previous = baseline("old-1", "old-2").model_copy(update={
            "flaggedQuestionIds": ["old-2"],
            "submittedQuestionIds": ["old-1"],
        })
        previous.questions[0].selectedAnswers = [0]
        previous.questions[0].isSubmitted = True
        previous.questions[1].isFlagged = True
        snapshot = build_snapshot(previous, now=1.0)

        merged = merge_snapshot(baseline("new-1", "new-2"), snapshot, now=2.0)

        assert merged.flaggedQuestionIds == ["new-2"]
        assert merged.submittedQuestionIds == ["new-1"]
        assert merged.questions[0].selectedAnswers == [0]
        assert merged.questions[1].isFlagged is True

    def test_id_match_wins_over_position(self):
        snapshot = raw_snapshot(
            1_000,
            questionStates={"Q1": {"selectedAnswers": [3]}},
            questionStatesByOrder={"0": {"selectedAnswers": [1]}},
        )
        merged = merge_snapshot(baseline("Q1"), snapshot, now=2.0)

        assert merged.questions[0].selectedAnswers == [3]

    def test_invalid_order_indexes_are_dropped(self):
        snapshot = raw_snapshot(1_000, flaggedOrderIndexes=[-1, "0", True, 1, 1])
        merged = merge_snapshot(baseline("Q1", "Q2"), snapshot, now=2.0)

        assert merged.flaggedQuestionIds == ["Q2"]


class TestBuildSnapshot:
    def test_override_timer_is_floored(self):
        snapshot = build_snapshot(baseline("Q1"), override_remaining_seconds=41.7, now=10.0)

        assert snapshot.version == STORAGE_VERSION
        assert snapshot.updatedAt == 10_000
        assert snapshot.data.timeRemainingSeconds == 41

    def test_records_state_by_position(self):
        session = baseline("Q1", "Q2").model_copy(update={"bookmarkedQuestionIds": ["Q2"]})
        session.questions[1].isBookmarked = True

        data = build_snapshot(session, now=10.0).data

        assert data.bookmarkedOrderIndexes == [1]
        assert data.flaggedOrderIndexes == []
        assert set(data.questionStatesByOrder) == {"0", "1"}
        assert data.questionStatesByOrder["1"].isBookmarked is True


class TestLocalSnapshotStore:
    """Tests for the file-backed store."""

    def test_persist_and_resume(self, tmp_path):
        clock = FakeClock()
        store = LocalSnapshotStore(FileSnapshotStorage(tmp_path), clock=clock)
        session = baseline("Q1", "Q2").model_copy(update={"flaggedQuestionIds": ["Q1"]})
        session.questions[0].isFlagged = True

        store.persist("a-level-math", session, override_remaining_seconds=100)
        clock.advance(30)
        merged = store.merge(baseline("Q1", "Q2"), store.load("a-level-math"))

        assert merged.flaggedQuestionIds == ["Q1"]
        assert merged.progress.timeRemainingSeconds == 70

    def test_persist_skips_server_sessions(self, tmp_path):
        store = LocalSnapshotStore(FileSnapshotStorage(tmp_path))
        session = baseline("Q1").model_copy(update={"fromSample": False})

        store.persist("a-level-math", session)
        assert list(tmp_path.iterdir()) == []

    def test_corrupt_file_is_discarded(self, tmp_path):
        storage = FileSnapshotStorage(tmp_path)
        storage.set_item(LocalSnapshotStore.storage_key("a-level-math"), "{broken")
        store = LocalSnapshotStore(storage)

        assert store.load("a-level-math") is None

    def test_clear_removes_snapshot(self, tmp_path):
        store = LocalSnapshotStore(FileSnapshotStorage(tmp_path))
        store.persist("a-level-math", baseline("Q1"))
        store.clear("a-level-math")

        assert store.load("a-level-math") is None

    def test_key_is_namespaced_by_exam(self, tmp_path):
        storage = FileSnapshotStorage(tmp_path)
        store = LocalSnapshotStore(storage)
        store.persist("a-level-math", baseline("Q1"))

        raw = storage.get_item("practice:sample:a-level-math")
        assert json.loads(raw)["version"] == STORAGE_VERSION
        assert storage.get_item("practice:sample:physics") is None

    def test_undecodable_file_is_discarded(self, tmp_path):
        storage = FileSnapshotStorage(tmp_path)
        storage.set_item(LocalSnapshotStore.storage_key("a-level-math"), "{}")
        path = next(tmp_path.iterdir())
        path.write_bytes(b"\xff\xfe{bad")
        store = LocalSnapshotStore(storage)

        assert store.load("a-level-math") is None

    def test_distinct_keys_use_distinct_files(self, tmp_path):
        storage = FileSnapshotStorage(tmp_path)
        storage.set_item("practice:sample:a/b", "slash")
        storage.set_item("practice:sample:a_b", "underscore")

        assert storage.get_item("practice:sample:a/b") == "slash"
        assert storage.get_item("practice:sample:a_b") == "underscore"
        assert len(list(tmp_path.iterdir())) == 2
