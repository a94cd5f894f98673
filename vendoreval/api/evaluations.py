"""
Evaluation API routes for suppliers: answering questionnaires and progress.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from vendoreval.core.logging import audit_logger, get_logger
from vendoreval.core.rbac import require_supplier
from vendoreval.db.session import get_db
from vendoreval.services import scoring
from vendoreval.services.reconciliation.sql import build_sql_engine
from vendoreval.services.responses import (
    UnknownQuestionError, get_assignment, get_evaluation_questions, get_vendor_responses,
    save_responses, update_assignment_status,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/evaluations", tags=["Evaluations"])


# ============= SCHEMAS =============

class ResponseSubmission(BaseModel):
    question_id: Optional[str] = None
    response_value: Optional[str] = None
    notes: Optional[str] = None
    evidence_urls: Optional[List[str]] = None


class RespondRequest(BaseModel):
    responses: List[ResponseSubmission]
    submit_final: bool = False


class RespondResult(BaseModel):
    evaluation_id: str
    vendor_id: str
    saved: int
    progress: int
    status: str
    message: str
    reconciliation: Dict[str, Any]
    summary: Dict[str, Any]


class CategoryProgress(BaseModel):
    total: int
    completed: int
    progress: int


class ProgressResponse(BaseModel):
    evaluation_id: str
    vendor_id: str
    status: str
    progress: int
    can_submit: bool
    categories: Dict[str, CategoryProgress]
    weighted_score: Optional[float] = None


def _require_assignment(db: Session, evaluation_id: str, vendor_id: str):
    assignment = get_assignment(db, evaluation_id, vendor_id)
    if assignment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Evaluation is not assigned to this vendor",
        )
    return assignment


# ============= ROUTES =============

@router.post("/{evaluation_id}/respond", response_model=RespondResult)
async def respond(
    evaluation_id: str,
    payload: RespondRequest,
    user_context: dict = Depends(require_supplier),
    db: Session = Depends(get_db)
):
    """
    Save a supplier's answers, then reconcile recommendations for them.

    A final submission is refused unless every required question has a value.
    Recommendation failures never fail the request; they are reported in
    `reconciliation.skipped_errors`.
    """
    vendor_id = user_context["vendor_id"]
    _require_assignment(db, evaluation_id, vendor_id)

    try:
        records = save_responses(
            db, evaluation_id, vendor_id, [s.model_dump() for s in payload.responses]
        )
    except UnknownQuestionError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    questions = get_evaluation_questions(db, evaluation_id)
    responses = get_vendor_responses(db, evaluation_id, vendor_id)
    progress = scoring.completion_percentage(scoring.required_question_ids(questions), responses)

    if payload.submit_final and progress < 100:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot submit: evaluation is {progress}% complete",
        )

    db.commit()

    result = build_sql_engine(db).reconcile(evaluation_id, vendor_id, records)

    assignment = update_assignment_status(db, evaluation_id, vendor_id, payload.submit_final)
    db.commit()

    if result.outcome == "complete":
        message = "Responses saved"
    else:
        message = (
            f"Responses saved; {result.created_count + result.updated_count} of "
            f"{result.attempted_count} recommendations saved"
        )

    audit_logger.log(
        action="evaluation_responses_submitted",
        user_id=user_context["user_id"],
        vendor_id=vendor_id,
        evaluation_id=evaluation_id,
        entity_type="evaluation",
        entity_id=evaluation_id,
        details={"saved": len(records), "final": payload.submit_final, "progress": progress},
    )
    audit_logger.reconciliation(result, user_context["user_id"], trigger="respond")

    return RespondResult(
        evaluation_id=evaluation_id,
        vendor_id=vendor_id,
        saved=len(records),
        progress=progress,
        status=assignment.status,
        message=message,
        reconciliation=result.to_dict(),
        summary=result.summary(),
    )


@router.get("/{evaluation_id}/progress", response_model=ProgressResponse)
async def get_progress(
    evaluation_id: str,
    user_context: dict = Depends(require_supplier),
    db: Session = Depends(get_db)
):
    """Completion, per-category progress and weighted score for the caller's vendor."""
    vendor_id = user_context["vendor_id"]
    assignment = _require_assignment(db, evaluation_id, vendor_id)

    questions = get_evaluation_questions(db, evaluation_id)
    responses = get_vendor_responses(db, evaluation_id, vendor_id)
    progress = scoring.completion_percentage(scoring.required_question_ids(questions), responses)

    return ProgressResponse(
        evaluation_id=evaluation_id,
        vendor_id=vendor_id,
        status=assignment.status,
        progress=progress,
        can_submit=progress == 100,
        categories=scoring.category_progress(questions, responses),
        weighted_score=scoring.weighted_score(questions, responses),
    )
