"""
Content Catalog Models
Read-only question and exam records owned by the content catalog
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


Difficulty = Literal["EASY", "MEDIUM", "HARD", "EXPERT"]

# Severity order used when summarising a question set
DIFFICULTY_ORDER: List[str] = ["EASY", "MEDIUM", "HARD", "EXPERT"]


class QuestionOption(BaseModel):
    """A single answer option"""
    id: str = Field(..., description="Stable option identifier")
    label: str = Field(..., description="Display label (A, B, C, ...)")
    contentMarkdown: str = Field(..., description="Option body in markdown")


class QuestionModel(BaseModel):
    """Denormalized question snapshot embedded in a practice session"""
    id: str = Field(..., description="Question identifier")
    examSlug: Optional[str] = Field(default=None, description="Owning exam")
    subjectSlug: Optional[str] = Field(default=None, description="Subject slug")
    type: Literal["single", "multi"] = Field(default="single", description="Answer mode")
    difficulty: Difficulty = Field(default="MEDIUM", description="Question difficulty")
    stemMarkdown: str = Field(..., description="Question stem in markdown")
    hasKatex: bool = False
    options: List[QuestionOption] = Field(default_factory=list)
    correctChoiceIds: List[str] = Field(
        default_factory=list,
        description="Ids of the officially correct options"
    )
    explanationMarkdown: Optional[str] = None
    source: Optional[str] = None
    year: Optional[int] = None
    currentVersionId: Optional[str] = Field(
        default=None,
        description="Version id recorded with durable explanations"
    )
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "id": "q_12345",
                "examSlug": "a-level-math",
                "subjectSlug": "mathematics",
                "type": "single",
                "difficulty": "MEDIUM",
                "stemMarkdown": "What is the derivative of $x^3$?",
                "options": [
                    {"id": "choice-a", "label": "A", "contentMarkdown": "$3x^2$"},
                    {"id": "choice-b", "label": "B", "contentMarkdown": "$x^2$"}
                ],
                "correctChoiceIds": ["choice-a"],
                "currentVersionId": "q_12345-v1"
            }
        }


class TaxonomyRef(BaseModel):
    """Category / subcategory reference carried on exam info"""
    slug: str
    name: str
    type: Optional[str] = None


class ExamSubject(BaseModel):
    """Subject placement of an exam inside the taxonomy"""
    slug: Optional[str] = None
    categorySlug: Optional[str] = None
    categoryName: Optional[str] = None
    categoryType: Optional[str] = None
    subcategorySlug: Optional[str] = None
    subcategoryName: Optional[str] = None


class ExamRecord(BaseModel):
    """Exam record as stored by the content catalog"""
    slug: str
    title: str
    description: Optional[str] = None
    durationMinutes: Optional[int] = None
    questionTarget: Optional[int] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    subject: Optional[ExamSubject] = None


class QuestionPage(BaseModel):
    """A page of questions returned by the catalog"""
    data: List[QuestionModel] = Field(default_factory=list)
    totalCount: int = 0
