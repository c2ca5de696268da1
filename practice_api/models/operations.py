"""
Session Operation Envelopes
Tagged union of the mutations accepted by PATCH /api/practice/sessions/{id}
"""
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError
from typing_extensions import Annotated

from practice_api.core.errors import OperationValidationError


class ToggleFlagOperation(BaseModel):
    """Set flag membership; omitting `flagged` inverts the current value"""
    operation: Literal["toggle-flag"]
    questionId: str = Field(..., min_length=1)
    flagged: Optional[bool] = None


class ToggleBookmarkOperation(BaseModel):
    """Set bookmark membership; omitting `bookmarked` inverts the current value"""
    operation: Literal["toggle-bookmark"]
    questionId: str = Field(..., min_length=1)
    bookmarked: Optional[bool] = None


class RecordAnswerOperation(BaseModel):
    operation: Literal["record-answer"]
    questionId: str = Field(..., min_length=1)
    selectedAnswers: List[Annotated[int, Field(ge=0)]] = Field(default_factory=list)
    timeSpentSeconds: Optional[int] = Field(default=None, ge=0)


class SubmitAnswerOperation(BaseModel):
    operation: Literal["submit-answer"]
    questionId: str = Field(..., min_length=1)


class RevealAnswerOperation(BaseModel):
    operation: Literal["reveal-answer"]
    questionId: str = Field(..., min_length=1)


class UpdateTimerOperation(BaseModel):
    operation: Literal["update-timer"]
    remainingSeconds: float


class AdvanceOperation(BaseModel):
    operation: Literal["advance"]
    currentQuestionIndex: int


class CompleteSessionOperation(BaseModel):
    operation: Literal["complete-session"]


SessionOperation = Annotated[
    Union[
        ToggleFlagOperation,
        ToggleBookmarkOperation,
        RecordAnswerOperation,
        SubmitAnswerOperation,
        RevealAnswerOperation,
        UpdateTimerOperation,
        AdvanceOperation,
        CompleteSessionOperation,
    ],
    Field(discriminator="operation"),
]

_operation_adapter: TypeAdapter = TypeAdapter(SessionOperation)


def parse_operation(raw: Any) -> SessionOperation:
    """
    Validate an untyped operation payload

    Raises:
        OperationValidationError: unknown discriminator or malformed fields
    """
    try:
        return _operation_adapter.validate_python(raw)
    except ValidationError as e:
        raise OperationValidationError(
            f"Invalid session operation: {e.errors(include_url=False)}",
            code="INVALID_PAYLOAD"
        )
