"""
Response submission: persists a vendor's answers before reconciliation runs.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from vendoreval.core.logging import get_logger
from vendoreval.db.models import (
    AssignmentStatus, EvaluationQuestion, EvaluationVendor, Question, Response,
)
from vendoreval.services.reconciliation.contracts import Answer, ResponseRecord

logger = get_logger(__name__)


class UnknownQuestionError(ValueError):
    """A submitted question is not part of the evaluation."""

    def __init__(self, question_id: str):
        self.question_id = question_id
        super().__init__(f"Question {question_id} is not part of this evaluation")


def get_assignment(db: Session, evaluation_id: str, vendor_id: str) -> Optional[EvaluationVendor]:
    return db.query(EvaluationVendor).filter(
        EvaluationVendor.evaluation_id == evaluation_id,
        EvaluationVendor.vendor_id == vendor_id,
    ).first()


def get_evaluation_questions(db: Session, evaluation_id: str) -> List[Question]:
    return db.query(Question).join(
        EvaluationQuestion, EvaluationQuestion.question_id == Question.id
    ).filter(
        EvaluationQuestion.evaluation_id == evaluation_id
    ).order_by(Question.order_index, Question.id).all()


def get_vendor_responses(db: Session, evaluation_id: str, vendor_id: str) -> List[Response]:
    return db.query(Response).filter(
        Response.evaluation_id == evaluation_id,
        Response.vendor_id == vendor_id,
    ).all()


def save_responses(
    db: Session,
    evaluation_id: str,
    vendor_id: str,
    submissions: List[Mapping[str, Any]],
) -> List[ResponseRecord]:
    """
    Insert or update one response row per submitted question.

    Submissions without a question id or value are ignored. The yes/no answer
    is only set when the value is exactly Yes, No or N/A. Changes are flushed,
    not committed.

    Raises:
        UnknownQuestionError: a question is not attached to the evaluation
    """
    allowed = {q.id for q in get_evaluation_questions(db, evaluation_id)}
    existing: Dict[str, Response] = {
        r.question_id: r for r in get_vendor_responses(db, evaluation_id, vendor_id)
    }
    now = datetime.now(timezone.utc)
    saved: List[Response] = []

    for submission in submissions:
        question_id = submission.get("question_id")
        response_value = submission.get("response_value")
        if not question_id or not response_value:
            logger.debug(f"Skipping incomplete submission for question {question_id}")
            continue
        if question_id not in allowed:
            raise UnknownQuestionError(question_id)

        answer = Answer.parse(response_value)
        response = existing.get(question_id)
        if response is None:
            response = Response(
                evaluation_id=evaluation_id,
                vendor_id=vendor_id,
                question_id=question_id,
            )
            db.add(response)
            existing[question_id] = response
        else:
            response.updated_at = now

        response.response_value = response_value
        response.answer = answer.to_db()
        response.notes = submission.get("notes")
        response.evidence_urls = submission.get("evidence_urls")
        saved.append(response)

    db.flush()

    return [
        ResponseRecord(
            response_id=r.id,
            evaluation_id=r.evaluation_id,
            vendor_id=r.vendor_id,
            question_id=r.question_id,
            answer=Answer.parse(r.answer),
            response_value=r.response_value,
        )
        for r in saved
    ]


def update_assignment_status(
    db: Session,
    evaluation_id: str,
    vendor_id: str,
    submit_final: bool,
) -> Optional[EvaluationVendor]:
    """completed on final submission, in_progress otherwise. None if the pair is not assigned."""
    assignment = get_assignment(db, evaluation_id, vendor_id)
    if assignment is None:
        return None

    if submit_final:
        assignment.status = AssignmentStatus.COMPLETED.value
        assignment.completed_at = datetime.now(timezone.utc)
    else:
        assignment.status = AssignmentStatus.IN_PROGRESS.value
        assignment.completed_at = None
    return assignment
