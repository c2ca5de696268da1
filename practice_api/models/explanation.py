"""
AI Explanation Models
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from practice_api.models.question import QuestionModel


class ExplanationDocument(BaseModel):
    """Structured explanation produced by the completion provider"""
    summary: str = Field(..., description="One-paragraph explanation")
    keyPoints: List[str] = Field(default_factory=list)
    steps: List[str] = Field(default_factory=list)
    relatedConcepts: Optional[List[str]] = None
    confidence: Literal["low", "medium", "high"]


class ExplanationRequest(BaseModel):
    """Input handed to an explanation generator"""
    question: QuestionModel
    selectedChoiceIds: List[str] = Field(default_factory=list)
    userId: str
    locale: str = "en"


class ExplanationAuditRecord(BaseModel):
    """Durable copy of a generated explanation (audit / analytics only)"""
    questionId: str
    questionVersionId: Optional[str] = None
    answerHash: str
    model: str
    language: str
    contentMarkdown: str = Field(..., description="Serialized explanation document")
    tokensTotal: int = 0
    costCents: int = 0


class RequestExplanationBody(BaseModel):
    """Request body for POST /api/ai/explanations"""
    questionId: str = Field(..., min_length=1)
    selectedChoiceIds: List[str] = Field(default_factory=list)
    locale: Optional[str] = Field(default=None, max_length=16)

    class Config:
        json_schema_extra = {
            "example": {
                "questionId": "q_12345",
                "selectedChoiceIds": ["choice-b"],
                "locale": "en"
            }
        }


class ExplanationResponse(BaseModel):
    explanation: ExplanationDocument
    rateLimitRemaining: int = Field(..., ge=0)
