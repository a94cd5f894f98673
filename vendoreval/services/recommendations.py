"""
Recommendation workflow: listing, status changes and reassignment.

Reconciliation creates recommendations; everything after that (status,
owner, completion) is driven from here.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from vendoreval.core.logging import get_logger
from vendoreval.db.models import (
    Evaluation, EvaluationVendor, Profile, Question, Recommendation, RecommendationStatus, Response,
    Vendor,
)

logger = get_logger(__name__)


class RecommendationNotFoundError(LookupError):
    pass


class ProfileNotFoundError(LookupError):
    pass


def get_recommendation(db: Session, recommendation_id: str) -> Recommendation:
    recommendation = db.query(Recommendation).filter(Recommendation.id == recommendation_id).first()
    if recommendation is None:
        raise RecommendationNotFoundError(f"Recommendation {recommendation_id} not found")
    return recommendation


def owning_vendor_id(db: Session, recommendation: Recommendation) -> Optional[str]:
    row = db.query(Response.vendor_id).filter(Response.id == recommendation.response_id).first()
    return row[0] if row else None


def serialize_recommendation(rec: Recommendation, question: Optional[Question] = None) -> Dict[str, Any]:
    return {
        "id": rec.id,
        "response_id": rec.response_id,
        "question_id": rec.question_id,
        "question_text": question.question_text if question else None,
        "category": question.category if question else None,
        "recommendation_text": rec.recommendation_text,
        "status": rec.status,
        "priority": rec.priority,
        "assigned_to": rec.assigned_to,
        "due_date": rec.due_date,
        "action_plan": rec.action_plan,
        "completed_at": rec.completed_at,
        "created_at": rec.created_at,
        "updated_at": rec.updated_at,
    }


def list_for_vendor(db: Session, vendor_id: str) -> List[Dict[str, Any]]:
    """
    Recommendations of a vendor grouped by evaluation.

    Groups are ordered by evaluation title; inside a group by priority
    (No before N/A), then creation time.
    """
    rows = db.query(Recommendation, Response.evaluation_id, Evaluation.title, Question).join(
        Response, Response.id == Recommendation.response_id
    ).join(
        Evaluation, Evaluation.id == Response.evaluation_id
    ).join(
        Question, Question.id == Recommendation.question_id
    ).filter(
        Response.vendor_id == vendor_id
    ).order_by(
        Evaluation.title, Recommendation.priority, Recommendation.created_at, Recommendation.id
    ).all()

    groups: Dict[str, Dict[str, Any]] = {}
    for rec, evaluation_id, title, question in rows:
        group = groups.setdefault(evaluation_id, {
            "evaluation_id": evaluation_id,
            "evaluation_title": title,
            "recommendations": [],
        })
        group["recommendations"].append(serialize_recommendation(rec, question))

    return list(groups.values())


def list_all(
    db: Session,
    status: Optional[str] = None,
    evaluation_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Recommendations across every vendor, grouped by (evaluation, vendor).

    Groups are ordered by the number of open recommendations (pending or
    in progress), most first.

    Raises:
        ValueError: unknown status filter
    """
    query = db.query(Recommendation, Response, Evaluation.title, Vendor.name, Question).join(
        Response, Response.id == Recommendation.response_id
    ).join(
        Evaluation, Evaluation.id == Response.evaluation_id
    ).join(
        Vendor, Vendor.id == Response.vendor_id
    ).join(
        Question, Question.id == Recommendation.question_id
    )
    if status is not None:
        query = query.filter(Recommendation.status == RecommendationStatus(status).value)
    if evaluation_id is not None:
        query = query.filter(Response.evaluation_id == evaluation_id)

    rows = query.order_by(
        Evaluation.title, Vendor.name, Recommendation.priority, Recommendation.created_at, Recommendation.id
    ).all()

    assignments = db.query(EvaluationVendor)
    if evaluation_id is not None:
        assignments = assignments.filter(EvaluationVendor.evaluation_id == evaluation_id)
    assignment_status = {(a.evaluation_id, a.vendor_id): a.status for a in assignments.all()}

    groups: Dict[tuple, Dict[str, Any]] = {}
    by_status: Dict[str, int] = {s.value: 0 for s in RecommendationStatus}
    for rec, response, title, vendor_name, question in rows:
        key = (response.evaluation_id, response.vendor_id)
        group = groups.setdefault(key, {
            "evaluation_id": response.evaluation_id,
            "evaluation_title": title,
            "vendor_id": response.vendor_id,
            "vendor_name": vendor_name,
            "assignment_status": assignment_status.get(key),
            "open_count": 0,
            "recommendations": [],
        })
        group["recommendations"].append(serialize_recommendation(rec, question))
        if rec.status in (RecommendationStatus.PENDING.value, RecommendationStatus.IN_PROGRESS.value):
            group["open_count"] += 1
        by_status[rec.status] = by_status.get(rec.status, 0) + 1

    ordered = sorted(groups.values(), key=lambda g: -g["open_count"])
    return {
        "groups": ordered,
        "summary": {
            "evaluations": len({g["evaluation_id"] for g in ordered}),
            "vendors": len({g["vendor_id"] for g in ordered}),
            "recommendations": len(rows),
            "by_status": by_status,
        },
    }


def update_status(db: Session, recommendation_id: str, status: str) -> Recommendation:
    """
    Move a recommendation through its workflow.

    Raises:
        ValueError: unknown status
        RecommendationNotFoundError: no such recommendation
    """
    new_status = RecommendationStatus(status)
    recommendation = get_recommendation(db, recommendation_id)

    recommendation.status = new_status.value
    now = datetime.now(timezone.utc)
    recommendation.completed_at = now if new_status == RecommendationStatus.IMPLEMENTED else None
    recommendation.updated_at = now

    db.commit()
    db.refresh(recommendation)
    logger.info(f"Recommendation {recommendation_id} moved to {new_status.value}")
    return recommendation


def assign(db: Session, recommendation_id: str, profile_id: str) -> Recommendation:
    """Hand a recommendation to another profile."""
    recommendation = get_recommendation(db, recommendation_id)

    profile = db.query(Profile).filter(Profile.id == profile_id).first()
    if profile is None:
        raise ProfileNotFoundError(f"Profile {profile_id} not found")

    recommendation.assigned_to = profile.id
    recommendation.updated_at = datetime.now(timezone.utc)

    db.commit()
    db.refresh(recommendation)
    logger.info(f"Recommendation {recommendation_id} assigned to profile {profile_id}")
    return recommendation
