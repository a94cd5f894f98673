"""
Administration API routes: questionnaires, vendor assignments and the
cross-vendor recommendation overview.
"""
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from vendoreval.api.recommendations import RecommendationOut
from vendoreval.core.logging import audit_logger, get_logger
from vendoreval.core.rbac import require_admin, require_reviewer
from vendoreval.db.session import get_db
from vendoreval.services import evaluations as admin
from vendoreval.services import recommendations as workflow

logger = get_logger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


# ============= SCHEMAS =============

class QuestionCreate(BaseModel):
    question_text: str = Field(..., min_length=1)
    category: Optional[str] = None
    description: Optional[str] = None
    weight: Optional[float] = Field(None, ge=0)
    is_required: bool = True
    order_index: Optional[int] = None
    recommendation_text: Optional[str] = None


class EvaluationCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    questions: List[QuestionCreate] = Field(..., min_length=1)
    vendor_ids: List[str] = []


class EvaluationOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    status: str
    question_count: int
    vendor_ids: List[str]
    created_at: Optional[datetime] = None


class VendorAssignmentRequest(BaseModel):
    vendor_ids: List[str]


class VendorAssignmentResult(BaseModel):
    assigned: List[str]
    already_assigned: List[str]
    message: str


class AssignedVendor(BaseModel):
    id: str
    vendor_id: str
    name: str
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    status: str
    assigned_at: Optional[datetime] = None
    assigned_by: Optional[str] = None
    completed_at: Optional[datetime] = None


class VendorRecommendations(BaseModel):
    evaluation_id: str
    evaluation_title: str
    vendor_id: str
    vendor_name: str
    assignment_status: Optional[str] = None
    open_count: int
    recommendations: List[RecommendationOut]


class RecommendationOverviewSummary(BaseModel):
    evaluations: int
    vendors: int
    recommendations: int
    by_status: Dict[str, int]


class RecommendationOverview(BaseModel):
    groups: List[VendorRecommendations]
    summary: RecommendationOverviewSummary


# ============= EVALUATION ROUTES =============

@router.post("/evaluations", response_model=EvaluationOut, status_code=status.HTTP_201_CREATED)
async def create_evaluation(
    payload: EvaluationCreate,
    user_context: dict = Depends(require_reviewer),
    db: Session = Depends(get_db)
):
    """Create a draft evaluation with its questions and optional vendor assignments."""
    try:
        evaluation = admin.create_evaluation(
            db,
            title=payload.title,
            description=payload.description,
            questions=[q.model_dump() for q in payload.questions],
            evaluator_id=user_context["user_id"],
            vendor_ids=payload.vendor_ids,
        )
    except admin.UnknownVendorsError as e:
        logger.warning(f"Evaluation not created: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    audit_logger.log(
        action="evaluation_created",
        user_id=user_context["user_id"],
        evaluation_id=evaluation.id,
        entity_type="evaluation",
        entity_id=evaluation.id,
        details={"questions": len(payload.questions), "vendors": len(payload.vendor_ids)},
    )

    return EvaluationOut(
        id=evaluation.id,
        title=evaluation.title,
        description=evaluation.description,
        status=evaluation.status,
        question_count=len(evaluation.questions),
        vendor_ids=[a.vendor_id for a in evaluation.assignments],
        created_at=evaluation.created_at,
    )


@router.get("/evaluations/{evaluation_id}/vendors", response_model=List[AssignedVendor])
async def list_evaluation_vendors(
    evaluation_id: str,
    user_context: dict = Depends(require_reviewer),
    db: Session = Depends(get_db)
):
    """Vendors assigned to an evaluation with their answering status."""
    try:
        return admin.list_assignments(db, evaluation_id)
    except admin.EvaluationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/evaluations/{evaluation_id}/vendors", response_model=VendorAssignmentResult)
async def assign_evaluation_vendors(
    evaluation_id: str,
    payload: VendorAssignmentRequest,
    user_context: dict = Depends(require_reviewer),
    db: Session = Depends(get_db)
):
    """Assign vendors (status pending); existing assignments are kept."""
    try:
        result = admin.assign_vendors(db, evaluation_id, payload.vendor_ids, user_context["user_id"])
    except admin.EvaluationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except admin.UnknownVendorsError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    audit_logger.log(
        action="evaluation_vendors_assigned",
        user_id=user_context["user_id"],
        evaluation_id=evaluation_id,
        entity_type="evaluation",
        entity_id=evaluation_id,
        details=result,
    )

    return VendorAssignmentResult(
        **result,
        message=f"{len(result['assigned'])} vendor(s) assigned",
    )


# ============= RECOMMENDATION OVERVIEW =============

@router.get("/recommendations", response_model=RecommendationOverview)
async def list_all_recommendations(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by recommendation status"),
    evaluation_id: Optional[str] = Query(None, description="Filter by evaluation"),
    user_context: dict = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Recommendations of every vendor, grouped by evaluation and vendor."""
    try:
        return workflow.list_all(db, status=status_filter, evaluation_id=evaluation_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid status: {status_filter}")
