"""
Sample Session Service
Offline practice sessions synthesized from the catalog and resumed from local snapshots
"""
import logging
from typing import Any, Optional, Tuple

from practice_api.models.operations import SessionOperation, UpdateTimerOperation, parse_operation
from practice_api.models.practice_session import PracticeSessionData
from practice_api.models.question import ExamRecord, QuestionPage
from practice_api.services.question_catalog import QuestionCatalog
from practice_api.services.sample_snapshot import LocalSnapshotStore
from practice_api.services.session_engine import apply_operation
from practice_api.services.session_mapper import (
    DEFAULT_SAMPLE_LIMIT,
    session_from_view,
    synthesize_sample_session,
    to_view_model,
    to_wire_format
)

logger = logging.getLogger(__name__)


class SampleSessionService:
    """
    Sample-mode counterpart of the practice session repository

    State lives only in the snapshot store; every call rebuilds the baseline
    from the catalog and reconciles it with the stored snapshot.
    """

    def __init__(
        self,
        catalog: Optional[QuestionCatalog],
        snapshot_store: LocalSnapshotStore,
        limit: int = DEFAULT_SAMPLE_LIMIT
    ):
        self.catalog = catalog
        self.snapshot_store = snapshot_store
        self.limit = limit

    async def _catalog_page(self, exam_slug: str) -> Tuple[Optional[QuestionPage], bool]:
        """Catalog page plus whether the catalog answered"""
        if self.catalog is None:
            return None, True
        try:
            return await self.catalog.find_by_exam(exam_slug, limit=self.limit), True
        except Exception as e:
            logger.warning(f"⚠️ Catalog unavailable for sample session {exam_slug}: {e}")
            return None, False

    async def _exam(self, exam_slug: str) -> Optional[ExamRecord]:
        if self.catalog is None:
            return None
        try:
            return await self.catalog.find_exam(exam_slug)
        except Exception as e:
            logger.warning(f"⚠️ Exam lookup failed for sample session {exam_slug}: {e}")
            return None

    async def _hydrate(self, exam_slug: str) -> Tuple[PracticeSessionData, bool]:
        page, catalog_ok = await self._catalog_page(exam_slug)
        exam = await self._exam(exam_slug)

        baseline = synthesize_sample_session(exam_slug, page, exam=exam, limit=self.limit)
        session = self.snapshot_store.merge(baseline, self.snapshot_store.load(exam_slug))
        return session, catalog_ok

    async def load(self, exam_slug: str) -> PracticeSessionData:
        """Baseline session merged with any stored snapshot; never writes the snapshot"""
        session, _ = await self._hydrate(exam_slug)
        logger.info(
            f"✅ Loaded sample session for {exam_slug} "
            f"({len(session.questions)} questions, index {session.currentQuestionIndex})"
        )
        return session

    async def apply(self, exam_slug: str, raw_operation: Any) -> PracticeSessionData:
        """
        Apply one operation to the sample session and persist the result

        While the catalog is unreachable the result is returned but not
        persisted, so the stored snapshot keeps the real question set.

        Raises:
            OperationValidationError: malformed or rejected operation
        """
        operation: SessionOperation = parse_operation(raw_operation)
        current, catalog_ok = await self._hydrate(exam_slug)

        updated = apply_operation(session_from_view(current, exam_slug), operation)
        session = to_view_model(to_wire_format(updated), from_sample=True)

        if not catalog_ok:
            logger.warning(f"⚠️ Not persisting sample session {exam_slug} built without the catalog")
            return session

        override = None
        if isinstance(operation, UpdateTimerOperation):
            override = operation.remainingSeconds
        self.snapshot_store.persist(exam_slug, session, override_remaining_seconds=override)

        logger.info(f"✅ Applied {operation.operation} to sample session {exam_slug}")
        return session

    def reset(self, exam_slug: str) -> None:
        self.snapshot_store.clear(exam_slug)
