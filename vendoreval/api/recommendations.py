"""
Recommendation API routes.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from vendoreval.core.logging import audit_logger, context_extra, get_logger
from vendoreval.core.rbac import Role, get_current_user_context, require_admin, require_reviewer
from vendoreval.db.models import EvaluationVendor
from vendoreval.db.session import get_db
from vendoreval.services import recommendations as workflow
from vendoreval.services.reconciliation import InvalidScopeError
from vendoreval.services.reconciliation.sql import SqlResponseStore, build_sql_engine

logger = get_logger(__name__)

router = APIRouter(prefix="/api/recommendations", tags=["Recommendations"])


# ============= SCHEMAS =============

class RecommendationOut(BaseModel):
    id: str
    response_id: str
    question_id: str
    question_text: Optional[str] = None
    category: Optional[str] = None
    recommendation_text: str
    status: str
    priority: Optional[int] = None
    assigned_to: Optional[str] = None
    due_date: Optional[datetime] = None
    action_plan: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EvaluationRecommendations(BaseModel):
    evaluation_id: str
    evaluation_title: str
    recommendations: List[RecommendationOut]


class ResponseIn(BaseModel):
    """A stored response named by id; question and answer are read from the database."""
    response_id: str
    evaluation_id: Optional[str] = None
    vendor_id: Optional[str] = None


class ReconcileRequest(BaseModel):
    evaluation_id: str
    vendor_id: str
    responses: Optional[List[ResponseIn]] = None  # None reconciles every stored response


class ReconcileResult(BaseModel):
    created: List[Dict[str, str]]
    updated: List[Dict[str, str]]
    skipped_no_text: List[str]
    skipped_not_negative: List[str]
    skipped_errors: List[Dict[str, str]]
    summary: Dict[str, Any]


class StatusUpdate(BaseModel):
    status: str


class AssignRequest(BaseModel):
    profile_id: str


def _backfill(db: Session, vendor_id: str) -> None:
    """Reconcile stored responses of every evaluation assigned to the vendor."""
    evaluation_ids = [
        row[0] for row in db.query(EvaluationVendor.evaluation_id).filter(
            EvaluationVendor.vendor_id == vendor_id
        ).all()
    ]
    engine = build_sql_engine(db)
    store = SqlResponseStore(db)
    for evaluation_id in evaluation_ids:
        result = engine.reconcile_from_store(evaluation_id, vendor_id, store)
        if result.skipped_errors:
            logger.warning(
                f"Backfill left {result.error_count} response(s) without recommendation",
                extra=context_extra(evaluation_id=evaluation_id, vendor_id=vendor_id),
            )


# ============= ROUTES =============

@router.get("", response_model=List[EvaluationRecommendations])
async def list_recommendations(
    vendor_id: Optional[str] = Query(None, description="Vendor (admin and evaluator only)"),
    user_context: dict = Depends(get_current_user_context),
    db: Session = Depends(get_db)
):
    """
    Recommendations grouped by evaluation.

    Suppliers always see their own vendor. Missing recommendations for
    responses stored earlier are created before listing.
    """
    if user_context["role"] == Role.SUPPLIER:
        vendor_id = user_context["vendor_id"]
        if not vendor_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User is not linked to a vendor")
    elif not vendor_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="vendor_id is required")

    _backfill(db, vendor_id)
    return workflow.list_for_vendor(db, vendor_id)


@router.post("/reconcile", response_model=ReconcileResult)
async def reconcile(
    payload: ReconcileRequest,
    user_context: dict = Depends(require_reviewer),
    db: Session = Depends(get_db)
):
    """
    Run reconciliation for one evaluation/vendor pair.

    Named responses must be stored under that pair; their stored question and
    answer are used.
    """
    engine = build_sql_engine(db)
    try:
        if payload.responses is None:
            result = engine.reconcile_from_store(
                payload.evaluation_id, payload.vendor_id, SqlResponseStore(db)
            )
        else:
            result = engine.reconcile_stored(
                payload.evaluation_id,
                payload.vendor_id,
                [r.model_dump() for r in payload.responses],
                SqlResponseStore(db),
            )
    except InvalidScopeError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Responses outside the requested scope", "violations": e.violations},
        )

    audit_logger.reconciliation(
        result, user_context["user_id"], trigger="manual",
        from_store=payload.responses is None,
    )

    return ReconcileResult(**result.to_dict(), summary=result.summary())


@router.put("/{recommendation_id}/status", response_model=RecommendationOut)
async def update_recommendation_status(
    recommendation_id: str,
    payload: StatusUpdate,
    user_context: dict = Depends(get_current_user_context),
    db: Session = Depends(get_db)
):
    """Suppliers move their own vendor's recommendations; admins any."""
    try:
        recommendation = workflow.get_recommendation(db, recommendation_id)
    except workflow.RecommendationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    role = user_context["role"]
    if role == Role.SUPPLIER:
        if workflow.owning_vendor_id(db, recommendation) != user_context["vendor_id"]:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Recommendation belongs to another vendor")
    elif role != Role.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")

    try:
        recommendation = workflow.update_status(db, recommendation_id, payload.status)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid status: {payload.status}")

    audit_logger.log(
        action="recommendation_status_updated",
        user_id=user_context["user_id"],
        vendor_id=user_context["vendor_id"],
        entity_type="recommendation",
        entity_id=recommendation_id,
        details={"status": recommendation.status},
    )
    return workflow.serialize_recommendation(recommendation)


@router.put("/{recommendation_id}/assign", response_model=RecommendationOut)
async def assign_recommendation(
    recommendation_id: str,
    payload: AssignRequest,
    user_context: dict = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Reassign a recommendation to another profile."""
    try:
        recommendation = workflow.assign(db, recommendation_id, payload.profile_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    audit_logger.log(
        action="recommendation_assigned",
        user_id=user_context["user_id"],
        entity_type="recommendation",
        entity_id=recommendation_id,
        details={"assigned_to": payload.profile_id},
    )
    return workflow.serialize_recommendation(recommendation)
