"""
Local Snapshot Models
Versioned copy of an in-flight sample session, persisted between page loads
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from practice_api.models.practice_session import SessionStatus


def normalise_order_list(orders: Any) -> List[int]:
    """Deduplicate, keeping only non-negative integers in first-seen order"""
    if not isinstance(orders, (list, tuple, set)):
        return []
    seen: List[int] = []
    for value in orders:
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0 and value not in seen:
            seen.append(value)
    return seen


def normalise_id_list(ids: Any) -> List[str]:
    """Deduplicate, keeping only non-empty strings in first-seen order"""
    if not isinstance(ids, (list, tuple, set)):
        return []
    seen: List[str] = []
    for value in ids:
        if isinstance(value, str) and value and value not in seen:
            seen.append(value)
    return seen


class SampleQuestionSnapshot(BaseModel):
    """
    Per-question override

    Fields left out of the stored JSON stay unset (see `model_fields_set`)
    so reconciliation can tell "absent" from an explicit null.
    """
    selectedAnswers: Optional[List[int]] = None
    isFlagged: Optional[bool] = None
    isBookmarked: Optional[bool] = None
    isSubmitted: Optional[bool] = None
    hasRevealedAnswer: Optional[bool] = None
    isCorrect: Optional[bool] = None
    timeSpentSeconds: Optional[int] = None


class SampleSessionState(BaseModel):
    sessionStatus: Optional[SessionStatus] = None
    currentQuestionIndex: int = 0
    flaggedQuestionIds: List[str] = Field(default_factory=list)
    bookmarkedQuestionIds: List[str] = Field(default_factory=list)
    submittedQuestionIds: List[str] = Field(default_factory=list)
    revealedQuestionIds: List[str] = Field(default_factory=list)
    timeRemainingSeconds: Optional[int] = None
    questionStates: Dict[str, SampleQuestionSnapshot] = Field(default_factory=dict)

    # Keyed by orderIndex; used when a question id is missing from the maps above
    questionStatesByOrder: Dict[str, SampleQuestionSnapshot] = Field(default_factory=dict)
    flaggedOrderIndexes: List[int] = Field(default_factory=list)
    bookmarkedOrderIndexes: List[int] = Field(default_factory=list)
    submittedOrderIndexes: List[int] = Field(default_factory=list)
    revealedOrderIndexes: List[int] = Field(default_factory=list)

    @field_validator(
        "flaggedQuestionIds",
        "bookmarkedQuestionIds",
        "submittedQuestionIds",
        "revealedQuestionIds",
        mode="before"
    )
    @classmethod
    def clean_id_lists(cls, v):
        return normalise_id_list(v)

    @field_validator(
        "flaggedOrderIndexes",
        "bookmarkedOrderIndexes",
        "submittedOrderIndexes",
        "revealedOrderIndexes",
        mode="before"
    )
    @classmethod
    def clean_order_lists(cls, v):
        return normalise_order_list(v)


class SampleSessionSnapshot(BaseModel):
    version: int
    updatedAt: int = Field(..., gt=0, description="Wall-clock write time (epoch ms)")
    data: SampleSessionState
