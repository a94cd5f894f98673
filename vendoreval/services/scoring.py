"""
Progress and score aggregation for a vendor's evaluation responses.

Pure functions; they accept ORM rows, ResponseRecord objects or plain dicts.
"""
from typing import Any, Dict, Iterable, List, Optional


def _get(obj: Any, name: str, default=None):
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _is_answered(response: Any) -> bool:
    value = _get(response, "response_value")
    return isinstance(value, str) and value.strip() != ""


def _answered_question_ids(responses: Iterable[Any]) -> set:
    return {_get(r, "question_id") for r in responses if _is_answered(r)}


def completion_percentage(required_question_ids: Iterable[str], responses: Iterable[Any]) -> int:
    """
    Share of required questions with a non-empty response value.

    Returns:
        Integer 0-100; 100 when the evaluation has no required questions.
    """
    required = set(required_question_ids)
    if not required:
        return 100

    answered = _answered_question_ids(responses) & required
    return round(100 * len(answered) / len(required))


def required_question_ids(questions: Iterable[Any]) -> List[str]:
    """Ids of questions flagged as required (a missing flag counts as optional)."""
    return [_get(q, "id") for q in questions if _get(q, "is_required")]


def can_submit(questions: Iterable[Any], responses: Iterable[Any]) -> bool:
    """Final submission is only accepted at 100% completion."""
    return completion_percentage(required_question_ids(questions), responses) == 100


def category_progress(questions: Iterable[Any], responses: Iterable[Any]) -> Dict[str, Dict[str, int]]:
    """Per-category totals over all questions: {category: {total, completed, progress}}."""
    answered = _answered_question_ids(responses)
    summary: Dict[str, Dict[str, int]] = {}

    for question in questions:
        category = _get(question, "category") or "General"
        entry = summary.setdefault(category, {"total": 0, "completed": 0, "progress": 0})
        entry["total"] += 1
        if _get(question, "id") in answered:
            entry["completed"] += 1

    for entry in summary.values():
        total = entry["total"]
        entry["progress"] = round(100 * entry["completed"] / total) if total > 0 else 0

    return summary


def weighted_score(questions: Iterable[Any], responses: Iterable[Any]) -> Optional[float]:
    """
    Weighted average of response scores.

    Only responses with a score on a question of positive weight count.

    Returns:
        Score rounded to 2 decimals, 0 when no scored response has weight,
        None when nothing has been scored yet.
    """
    scored = [r for r in responses if _get(r, "score") is not None]
    if not scored:
        return None

    weights = {_get(q, "id"): (_get(q, "weight") or 0) for q in questions}
    total_weighted = 0.0
    total_weight = 0.0

    for response in scored:
        weight = weights.get(_get(response, "question_id"), 0)
        if weight > 0:
            total_weighted += _get(response, "score") * weight
            total_weight += weight

    if total_weight == 0:
        return 0.0
    return round(total_weighted / total_weight, 2)
