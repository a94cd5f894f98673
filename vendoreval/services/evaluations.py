"""
Evaluation administration: questionnaires and vendor assignments.
"""
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from vendoreval.core.logging import get_logger
from vendoreval.db.models import (
    AssignmentStatus, Evaluation, EvaluationQuestion, EvaluationStatus, EvaluationVendor,
    Question, Vendor,
)
from vendoreval.services.reconciliation.contracts import normalize_remediation_text

logger = get_logger(__name__)


class EvaluationNotFoundError(LookupError):
    pass


class UnknownVendorsError(ValueError):
    """Some vendor ids do not exist."""

    def __init__(self, vendor_ids: Sequence[str]):
        self.vendor_ids = list(vendor_ids)
        super().__init__(f"Unknown vendor ids: {', '.join(self.vendor_ids)}")


def get_evaluation(db: Session, evaluation_id: str) -> Evaluation:
    evaluation = db.query(Evaluation).filter(Evaluation.id == evaluation_id).first()
    if evaluation is None:
        raise EvaluationNotFoundError(f"Evaluation {evaluation_id} not found")
    return evaluation


def create_evaluation(
    db: Session,
    title: str,
    questions: List[Mapping[str, Any]],
    description: Optional[str] = None,
    evaluator_id: Optional[str] = None,
    vendor_ids: Sequence[str] = (),
) -> Evaluation:
    """
    Create a draft evaluation with its questions, optionally assigned to vendors.

    Each question mapping takes `question_text` plus optional `category`,
    `description`, `weight`, `is_required`, `order_index` and
    `recommendation_text` (the remediation shown for a No or N/A answer).
    Order defaults to the position in the list. Nothing is committed if a
    vendor id is unknown.

    Raises:
        UnknownVendorsError: a vendor id does not exist
    """
    evaluation = Evaluation(
        title=title,
        description=description,
        evaluator_id=evaluator_id,
        status=EvaluationStatus.DRAFT.value,
        progress=0,
    )
    db.add(evaluation)
    db.flush()

    for position, item in enumerate(questions):
        question = Question(
            question_text=item["question_text"],
            description=item.get("description"),
            category=item.get("category") or "General",
            weight=1.0 if item.get("weight") is None else item["weight"],
            is_required=item.get("is_required", True),
            order_index=position if item.get("order_index") is None else item["order_index"],
            recommendation_text=normalize_remediation_text(item.get("recommendation_text")),
        )
        db.add(question)
        db.flush()
        db.add(EvaluationQuestion(evaluation_id=evaluation.id, question_id=question.id))

    try:
        _add_assignments(db, evaluation.id, vendor_ids, evaluator_id)
    except UnknownVendorsError:
        db.rollback()
        raise

    db.commit()
    db.refresh(evaluation)
    logger.info(f"Evaluation {evaluation.id} created with {len(questions)} questions")
    return evaluation


def assign_vendors(
    db: Session,
    evaluation_id: str,
    vendor_ids: Sequence[str],
    assigned_by: Optional[str] = None,
) -> Dict[str, List[str]]:
    """
    Assign vendors to an evaluation with status pending.

    Existing assignments are left as they are, so progress already made by a
    vendor survives a repeated call.

    Returns:
        {"assigned": newly assigned ids, "already_assigned": ids that were assigned}

    Raises:
        EvaluationNotFoundError: no such evaluation
        UnknownVendorsError: a vendor id does not exist; nothing is assigned
    """
    get_evaluation(db, evaluation_id)
    result = _add_assignments(db, evaluation_id, vendor_ids, assigned_by)
    db.commit()
    logger.info(
        f"Evaluation {evaluation_id}: assigned {len(result['assigned'])} vendor(s), "
        f"{len(result['already_assigned'])} already assigned"
    )
    return result


def list_assignments(db: Session, evaluation_id: str) -> List[Dict[str, Any]]:
    """Vendors assigned to an evaluation, by vendor name."""
    get_evaluation(db, evaluation_id)
    rows = db.query(EvaluationVendor, Vendor).join(
        Vendor, Vendor.id == EvaluationVendor.vendor_id
    ).filter(
        EvaluationVendor.evaluation_id == evaluation_id
    ).order_by(Vendor.name, Vendor.id).all()

    return [
        {
            "id": assignment.id,
            "vendor_id": vendor.id,
            "name": vendor.name,
            "contact_email": vendor.contact_email,
            "contact_phone": vendor.contact_phone,
            "status": assignment.status or AssignmentStatus.PENDING.value,
            "assigned_at": assignment.assigned_at,
            "assigned_by": assignment.assigned_by,
            "completed_at": assignment.completed_at,
        }
        for assignment, vendor in rows
    ]


def _add_assignments(
    db: Session,
    evaluation_id: str,
    vendor_ids: Sequence[str],
    assigned_by: Optional[str],
) -> Dict[str, List[str]]:
    requested = list(dict.fromkeys(vendor_ids))
    if not requested:
        return {"assigned": [], "already_assigned": []}

    known = {row[0] for row in db.query(Vendor.id).filter(Vendor.id.in_(requested)).all()}
    unknown = [vid for vid in requested if vid not in known]
    if unknown:
        raise UnknownVendorsError(unknown)

    existing = {
        row[0] for row in db.query(EvaluationVendor.vendor_id).filter(
            EvaluationVendor.evaluation_id == evaluation_id,
            EvaluationVendor.vendor_id.in_(requested),
        ).all()
    }

    assigned = []
    for vendor_id in requested:
        if vendor_id in existing:
            continue
        db.add(EvaluationVendor(
            evaluation_id=evaluation_id,
            vendor_id=vendor_id,
            status=AssignmentStatus.PENDING.value,
            assigned_by=assigned_by,
        ))
        assigned.append(vendor_id)

    db.flush()
    return {"assigned": assigned, "already_assigned": [vid for vid in requested if vid in existing]}
