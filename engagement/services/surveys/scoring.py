"""
Survey answer validation and scoring.

Score: mean of the normalized scorable answers x 100, rounded. Scale answers
normalize to (value - min) / (max - min), booleans to 1 or 0. Choice and
text answers are not scored; a response with nothing scorable has no score.
"""

from typing import Any, Dict, List, Optional

MAX_TEXT_ANSWER = 2000


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip()) or value == []


def validate_answers(questions: List[Dict[str, Any]], answers: Dict[str, Any]) -> List[Dict[str, str]]:
    """
    Check answers against the survey's questions.

    Returns:
        List of ``{questionId, message}`` problems, empty when valid
    """
    errors = []

    for question in questions:
        qid = question["id"]
        value = answers.get(qid)

        if _is_blank(value):
            if question.get("required", True):
                errors.append({"questionId": qid, "message": f"Answer required for question: {question['question']}"})
            continue

        qtype = question["type"]
        if qtype == "scale":
            scale = question.get("scale") or {}
            low, high = scale.get("min", 1), scale.get("max", 5)
            if not _is_number(value) or not low <= value <= high:
                errors.append({"questionId": qid, "message": f"Answer must be a number between {low} and {high}"})
        elif qtype == "boolean":
            if not isinstance(value, bool):
                errors.append({"questionId": qid, "message": "Answer must be true or false"})
        elif qtype == "multiple_choice":
            if value not in question.get("options", []):
                errors.append({"questionId": qid, "message": "Answer must be one of the options"})
        elif qtype == "checkbox":
            options = question.get("options", [])
            if not isinstance(value, list) or any(v not in options for v in value):
                errors.append({"questionId": qid, "message": "Answers must be chosen from the options"})
        elif qtype == "text":
            if not isinstance(value, str) or len(value) > MAX_TEXT_ANSWER:
                errors.append({"questionId": qid, "message": f"Answer must be text up to {MAX_TEXT_ANSWER} characters"})

    return errors


def score_answers(questions: List[Dict[str, Any]], answers: Dict[str, Any]) -> Optional[int]:
    """Normalized 0-100 score of the scorable answers, or None."""
    normalized = []

    for question in questions:
        value = answers.get(question["id"])
        if question["type"] == "scale" and _is_number(value):
            scale = question.get("scale") or {}
            low, high = scale.get("min", 1), scale.get("max", 5)
            if high > low:
                normalized.append((value - low) / (high - low))
        elif question["type"] == "boolean" and isinstance(value, bool):
            normalized.append(1.0 if value else 0.0)

    if not normalized:
        return None
    return round(sum(normalized) / len(normalized) * 100)
