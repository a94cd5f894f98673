"""
SQLAlchemy ORM models for VendorEval.
Identifiers are string UUIDs so they travel unchanged through the JSON contracts.
"""
import enum
import uuid
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Float,
    ForeignKey, JSON, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from vendoreval.db.session import Base


# ============= ENUMS =============
# Stored as plain strings; the enums below are the allowed values.

class EvaluationStatus(str, enum.Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    PENDING_REVIEW = "pending_review"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class AssignmentStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class RecommendationStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    IMPLEMENTED = "implemented"
    REJECTED = "rejected"


def new_id() -> str:
    return str(uuid.uuid4())


# ============= PEOPLE =============

class Profile(Base):
    """Person who can own recommendations."""
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    first_name = Column(String(255))
    last_name = Column(String(255))
    contact_email = Column(String(255))
    department = Column(String(255))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class User(Base):
    """Login account; suppliers are linked to the vendor they answer for."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(String(20), nullable=False, default="supplier")  # admin, evaluator, supplier
    vendor_id = Column(String(36), ForeignKey("vendors.id"), nullable=True, index=True)
    profile_id = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_sign_in_at = Column(DateTime(timezone=True))

    vendor = relationship("Vendor", back_populates="users")
    profile = relationship("Profile")


class Vendor(Base):
    """Vendor under evaluation."""
    __tablename__ = "vendors"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    contact_email = Column(String(255))
    contact_phone = Column(String(50))
    country = Column(String(100))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    users = relationship("User", back_populates="vendor")
    assignments = relationship("EvaluationVendor", back_populates="vendor")


# ============= EVALUATIONS =============

class Evaluation(Base):
    """Questionnaire defined by an administrator."""
    __tablename__ = "evaluations"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(500), nullable=False)
    description = Column(Text)
    evaluator_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    status = Column(String(20), default=EvaluationStatus.DRAFT.value)
    progress = Column(Integer, default=0)
    total_score = Column(Float)
    start_date = Column(DateTime(timezone=True))
    end_date = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    questions = relationship("EvaluationQuestion", back_populates="evaluation")
    assignments = relationship("EvaluationVendor", back_populates="evaluation")


class Question(Base):
    """Questionnaire item with optional remediation text for negative answers."""
    __tablename__ = "questions"

    id = Column(String(36), primary_key=True, default=new_id)
    question_text = Column(Text, nullable=False)
    description = Column(Text)
    category = Column(String(255), nullable=False, default="General")
    subcategory = Column(String(255))
    weight = Column(Float, default=1.0)
    is_required = Column(Boolean, default=True)
    order_index = Column(Integer, default=0)
    options = Column(JSON, default={})  # older rows keep recommendation_text here
    recommendation_text = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class EvaluationQuestion(Base):
    """Questions attached to an evaluation."""
    __tablename__ = "evaluation_questions"

    id = Column(String(36), primary_key=True, default=new_id)
    evaluation_id = Column(String(36), ForeignKey("evaluations.id"), nullable=False)
    question_id = Column(String(36), ForeignKey("questions.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    evaluation = relationship("Evaluation", back_populates="questions")
    question = relationship("Question")

    __table_args__ = (
        UniqueConstraint('evaluation_id', 'question_id', name='uq_evaluation_question'),
    )


class EvaluationVendor(Base):
    """Assignment of an evaluation to a vendor."""
    __tablename__ = "evaluation_vendors"

    id = Column(String(36), primary_key=True, default=new_id)
    evaluation_id = Column(String(36), ForeignKey("evaluations.id"), nullable=False)
    vendor_id = Column(String(36), ForeignKey("vendors.id"), nullable=False)
    status = Column(String(20), default=AssignmentStatus.PENDING.value)
    assigned_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True))

    evaluation = relationship("Evaluation", back_populates="assignments")
    vendor = relationship("Vendor", back_populates="assignments")

    __table_args__ = (
        UniqueConstraint('evaluation_id', 'vendor_id', name='uq_evaluation_vendor'),
    )


# ============= RESPONSES & RECOMMENDATIONS =============

class Response(Base):
    """A vendor's answer to one question of one evaluation."""
    __tablename__ = "responses"

    id = Column(String(36), primary_key=True, default=new_id)
    evaluation_id = Column(String(36), ForeignKey("evaluations.id"), nullable=False)
    vendor_id = Column(String(36), ForeignKey("vendors.id"), nullable=False)
    question_id = Column(String(36), ForeignKey("questions.id"), nullable=False)
    answer = Column(String(10))  # Yes, No, N/A or NULL for free text
    response_value = Column(Text, nullable=False, default="")
    notes = Column(Text)
    evidence_urls = Column(JSON)
    score = Column(Float)
    reviewed_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    review_date = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    recommendation = relationship("Recommendation", back_populates="response", uselist=False)

    __table_args__ = (
        UniqueConstraint('evaluation_id', 'vendor_id', 'question_id', name='uq_response_eval_vendor_question'),
        Index('ix_responses_eval_vendor', 'evaluation_id', 'vendor_id'),
    )


class Recommendation(Base):
    """Remediation item derived from a negative response. At most one per response."""
    __tablename__ = "recommendations"

    id = Column(String(36), primary_key=True, default=new_id)
    response_id = Column(String(36), ForeignKey("responses.id"), nullable=False)
    question_id = Column(String(36), ForeignKey("questions.id"), nullable=False)
    recommendation_text = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default=RecommendationStatus.PENDING.value)
    priority = Column(Integer)  # 1 = No, 2 = N/A
    assigned_to = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    due_date = Column(DateTime(timezone=True))
    action_plan = Column(Text)
    completed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    response = relationship("Response", back_populates="recommendation")
    question = relationship("Question")

    __table_args__ = (
        UniqueConstraint('response_id', name='uq_recommendation_response'),
        Index('ix_recommendations_status', 'status'),
    )
