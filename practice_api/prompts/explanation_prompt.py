from typing import List

from practice_api.models.question import QuestionModel


EXPLANATION_SYSTEM_PROMPT = """You are a concise, rigorous exam tutor. Explain answers step by step using only the provided question, choices, and correct answer.
Prefer formulas, definitions, and contrasts. Keep under 180 words. Use KaTeX-compatible LaTeX for math.
If the user-selected answer is wrong, briefly contrast with the correct one. If context is insufficient, say so and stop."""


EXPLANATION_TOOL_NAME = "provide_explanation"

EXPLANATION_TOOL = {
    "type": "function",
    "function": {
        "name": EXPLANATION_TOOL_NAME,
        "description": "Generate a structured explanation for an exam question.",
        "parameters": {
            "type": "object",
            "properties": {
                "summary": {"type": "string"},
                "keyPoints": {"type": "array", "items": {"type": "string"}},
                "steps": {"type": "array", "items": {"type": "string"}},
                "relatedConcepts": {"type": "array", "items": {"type": "string"}},
                "confidence": {
                    "type": "string",
                    "enum": ["low", "medium", "high"]
                }
            },
            "required": ["summary", "keyPoints", "steps", "confidence"]
        }
    }
}


def build_explanation_prompt(question: QuestionModel, selected_choice_ids: List[str]) -> str:
    """
    Build the user prompt describing the question and the learner's selection.

    Args:
        question: The question being explained
        selected_choice_ids: Option ids the learner picked

    Returns:
        A formatted prompt string for the LLM
    """
    selected_labels = [
        option.label for option in question.options
        if option.id in selected_choice_ids
    ]
    correct_labels = [
        option.label for option in question.options
        if option.id in question.correctChoiceIds
    ]
    choices = "\n".join(
        f"{option.label}. {option.contentMarkdown}" for option in question.options
    )

    prompt = f"""Context:
- Question: {question.stemMarkdown}
- Choices:
{choices}
- User selected: {", ".join(selected_labels) or "nothing"}
- Correct answer(s): {", ".join(correct_labels)}
- Subject: {question.subjectSlug or "general"}
- Difficulty: {question.difficulty}

Task:
Explain the correct answer and reasoning. If user is wrong, contrast succinctly."""

    return prompt
