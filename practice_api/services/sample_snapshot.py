"""
Local Snapshot Store & Reconciler
Persists sample-mode sessions between reloads and merges them back into a fresh baseline

Snapshots are one JSON blob per exam slug. Anything unreadable (bad JSON,
wrong shape, stale version, invalid timestamp) is discarded so a corrupted
snapshot never blocks resuming practice.
"""
import logging
import math
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Union
from urllib.parse import quote

from pydantic import ValidationError

from practice_api.models.practice_session import (
    PracticeSessionApiQuestion,
    PracticeSessionData
)
from practice_api.models.snapshot import (
    SampleQuestionSnapshot,
    SampleSessionSnapshot,
    SampleSessionState,
    normalise_id_list
)
from practice_api.services.session_mapper import clamp_index, question_state_of

logger = logging.getLogger(__name__)


STORAGE_PREFIX = "practice:sample"
STORAGE_VERSION = 1


class FileSnapshotStorage:
    """Key/value storage with one file per key, replaced atomically on write"""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        safe = quote(key, safe="")
        return self.directory / f"{safe}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_path, self._path(key))
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()


def _question_snapshot(question: PracticeSessionApiQuestion) -> SampleQuestionSnapshot:
    return SampleQuestionSnapshot(
        selectedAnswers=list(question.selectedAnswers),
        isFlagged=question.isFlagged,
        isBookmarked=question.isBookmarked,
        isSubmitted=question.isSubmitted,
        hasRevealedAnswer=question.hasRevealedAnswer,
        isCorrect=question.isCorrect,
        timeSpentSeconds=question.timeSpentSeconds
    )


def _order_indexes(session: PracticeSessionData, ids: List[str]) -> List[int]:
    members = set(ids)
    return sorted(q.orderIndex for q in session.questions if q.questionId in members)


def build_snapshot(
    session: PracticeSessionData,
    override_remaining_seconds: Optional[float] = None,
    now: Optional[float] = None
) -> SampleSessionSnapshot:
    """Capture the reconcilable state of a sample session"""
    if override_remaining_seconds is not None:
        remaining = max(0, int(math.floor(override_remaining_seconds)))
    else:
        remaining = session.progress.timeRemainingSeconds

    timestamp = time.time() if now is None else now

    return SampleSessionSnapshot(
        version=STORAGE_VERSION,
        updatedAt=int(timestamp * 1000),
        data=SampleSessionState(
            sessionStatus=session.sessionStatus,
            currentQuestionIndex=session.currentQuestionIndex,
            flaggedQuestionIds=normalise_id_list(session.flaggedQuestionIds),
            bookmarkedQuestionIds=normalise_id_list(session.bookmarkedQuestionIds),
            submittedQuestionIds=normalise_id_list(session.submittedQuestionIds),
            revealedQuestionIds=normalise_id_list(session.revealedQuestionIds),
            timeRemainingSeconds=remaining,
            questionStates={
                question.questionId: _question_snapshot(question)
                for question in session.questions
            },
            questionStatesByOrder={
                str(question.orderIndex): _question_snapshot(question)
                for question in session.questions
            },
            flaggedOrderIndexes=_order_indexes(session, session.flaggedQuestionIds),
            bookmarkedOrderIndexes=_order_indexes(session, session.bookmarkedQuestionIds),
            submittedOrderIndexes=_order_indexes(session, session.submittedQuestionIds),
            revealedOrderIndexes=_order_indexes(session, session.revealedQuestionIds)
        )
    )


def _validate_snapshot(raw: Any) -> Optional[SampleSessionSnapshot]:
    if raw is None:
        return None

    try:
        if isinstance(raw, SampleSessionSnapshot):
            snapshot = raw
        elif isinstance(raw, (str, bytes)):
            snapshot = SampleSessionSnapshot.model_validate_json(raw)
        else:
            snapshot = SampleSessionSnapshot.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"⚠️ Discarding malformed sample snapshot: {e.error_count()} error(s)")
        return None

    if snapshot.version != STORAGE_VERSION:
        logger.info(f"ℹ️ Ignoring sample snapshot version {snapshot.version} (expected {STORAGE_VERSION})")
        return None

    if snapshot.updatedAt <= 0:
        return None

    return snapshot


def _pick(override: Optional[SampleQuestionSnapshot], field: str, baseline: Any, nullable: bool) -> Any:
    """Override value when the snapshot stored the field; explicit null only counts for nullable fields"""
    if override is None or field not in override.model_fields_set:
        return baseline
    value = getattr(override, field)
    if value is None and not nullable:
        return baseline
    return value


def derive_remaining_seconds(
    fallback: Optional[int],
    snapshot: SampleSessionSnapshot,
    now: float
) -> Optional[int]:
    """Stored remaining time decayed by wall-clock seconds since the snapshot was written"""
    stored = snapshot.data.timeRemainingSeconds
    if stored is None:
        return fallback

    elapsed = max(0, int(math.floor((now * 1000 - snapshot.updatedAt) / 1000)))
    return max(0, stored - elapsed)


def merge_snapshot(
    baseline: PracticeSessionData,
    snapshot: Union[SampleSessionSnapshot, Dict[str, Any], str, None],
    now: Optional[float] = None
) -> PracticeSessionData:
    """
    Reconcile a freshly synthesized baseline with a previously persisted snapshot

    Returns `baseline` itself when the snapshot is missing or unusable.
    """
    validated = _validate_snapshot(snapshot)
    if validated is None or not baseline.questions:
        return baseline

    now = time.time() if now is None else now
    data = validated.data
    index = clamp_index(data.currentQuestionIndex, len(baseline.questions))

    flagged = set(data.flaggedQuestionIds)
    bookmarked = set(data.bookmarkedQuestionIds)
    submitted = set(data.submittedQuestionIds)
    revealed = set(data.revealedQuestionIds)

    flagged_orders = set(data.flaggedOrderIndexes)
    bookmarked_orders = set(data.bookmarkedOrderIndexes)
    submitted_orders = set(data.submittedOrderIndexes)
    revealed_orders = set(data.revealedOrderIndexes)

    def member(question: PracticeSessionApiQuestion, ids: Set[str], orders: Set[int]) -> bool:
        return question.questionId in ids or question.orderIndex in orders

    questions = []
    for question in baseline.questions:
        # Ids can change between catalog loads; positions are the fallback
        override = (
            data.questionStates.get(question.questionId)
            or data.questionStatesByOrder.get(str(question.orderIndex))
        )
        is_submitted = _pick(override, "isSubmitted", question.isSubmitted, nullable=False)
        has_revealed = _pick(override, "hasRevealedAnswer", question.hasRevealedAnswer, nullable=False)

        questions.append(question.model_copy(update={
            "selectedAnswers": list(_pick(override, "selectedAnswers", question.selectedAnswers, nullable=False)),
            "isFlagged": member(question, flagged, flagged_orders),
            "isBookmarked": member(question, bookmarked, bookmarked_orders),
            "isSubmitted": bool(is_submitted) or member(question, submitted, submitted_orders),
            "hasRevealedAnswer": bool(has_revealed) or member(question, revealed, revealed_orders),
            "isCorrect": _pick(override, "isCorrect", question.isCorrect, nullable=True),
            "timeSpentSeconds": _pick(override, "timeSpentSeconds", question.timeSpentSeconds, nullable=True)
        }))

    active = questions[index]
    remaining = derive_remaining_seconds(baseline.progress.timeRemainingSeconds, validated, now)

    return baseline.model_copy(update={
        "sessionStatus": data.sessionStatus or baseline.sessionStatus,
        "questions": questions,
        "currentQuestionIndex": index,
        "question": active.question,
        "questionState": question_state_of(active),
        "progress": baseline.progress.model_copy(update={
            "questionIndex": index + 1,
            "timeRemainingSeconds": remaining
        }),
        "flaggedQuestionIds": [q.questionId for q in questions if q.isFlagged],
        "bookmarkedQuestionIds": [q.questionId for q in questions if q.isBookmarked],
        "submittedQuestionIds": [q.questionId for q in questions if q.isSubmitted],
        "revealedQuestionIds": [q.questionId for q in questions if q.hasRevealedAnswer],
        "fromSample": True
    })


class LocalSnapshotStore:
    """Versioned snapshot persistence for sample-mode sessions"""

    def __init__(self, storage, clock: Callable[[], float] = time.time):
        self.storage = storage
        self.clock = clock

    @staticmethod
    def storage_key(exam_slug: str) -> str:
        return f"{STORAGE_PREFIX}:{exam_slug}"

    def persist(
        self,
        exam_slug: str,
        session: PracticeSessionData,
        override_remaining_seconds: Optional[float] = None
    ) -> None:
        """Write the session's snapshot; no-op for server-backed sessions"""
        if not session.fromSample:
            return

        snapshot = build_snapshot(session, override_remaining_seconds, now=self.clock())
        try:
            self.storage.set_item(
                self.storage_key(exam_slug),
                snapshot.model_dump_json()
            )
            logger.debug(f"💾 Persisted sample snapshot for {exam_slug}")
        except OSError as e:
            logger.warning(f"⚠️ Unable to persist sample snapshot for {exam_slug}: {e}")

    def load(self, exam_slug: str) -> Optional[SampleSessionSnapshot]:
        try:
            raw = self.storage.get_item(self.storage_key(exam_slug))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"⚠️ Unable to read sample snapshot for {exam_slug}: {e}")
            return None

        if not raw:
            return None
        return _validate_snapshot(raw)

    def clear(self, exam_slug: str) -> None:
        try:
            self.storage.remove_item(self.storage_key(exam_slug))
            logger.info(f"🗑️ Cleared sample snapshot for {exam_slug}")
        except OSError as e:
            logger.warning(f"⚠️ Unable to clear sample snapshot for {exam_slug}: {e}")

    def merge(
        self,
        baseline: PracticeSessionData,
        snapshot: Union[SampleSessionSnapshot, Dict[str, Any], str, None]
    ) -> PracticeSessionData:
        return merge_snapshot(baseline, snapshot, now=self.clock())
