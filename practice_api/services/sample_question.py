"""
Built-in sample question used by offline/demo practice sessions
"""
from datetime import datetime, timezone

from practice_api.models.question import QuestionModel, QuestionOption


SAMPLE_EXAM_SLUG = "a-level-math"

SAMPLE_QUESTION = QuestionModel(
    id="sample-question-1",
    examSlug=SAMPLE_EXAM_SLUG,
    subjectSlug="mathematics",
    type="single",
    difficulty="MEDIUM",
    stemMarkdown="What is the derivative of $f(x) = x^3$?",
    hasKatex=True,
    options=[
        QuestionOption(id="choice-a", label="A", contentMarkdown="$3x^2$"),
        QuestionOption(id="choice-b", label="B", contentMarkdown="$x^2$"),
        QuestionOption(id="choice-c", label="C", contentMarkdown="$3x$"),
        QuestionOption(id="choice-d", label="D", contentMarkdown="$x^3$"),
    ],
    correctChoiceIds=["choice-a"],
    explanationMarkdown="Differentiate using the power rule: f'(x) = 3x^2.",
    source="Demo fixture",
    year=2024,
    currentVersionId="sample-question-1-v1",
    createdAt=datetime(2024, 1, 1, tzinfo=timezone.utc),
    updatedAt=datetime(2024, 1, 1, tzinfo=timezone.utc),
)
