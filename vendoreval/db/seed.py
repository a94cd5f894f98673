"""
Demo data for local development (SEED_DEMO=true).
"""
from sqlalchemy.orm import Session

from vendoreval.core.logging import get_logger
from vendoreval.db.models import (
    Evaluation, EvaluationQuestion, EvaluationStatus, EvaluationVendor, Profile,
    Question, User, Vendor,
)

logger = get_logger(__name__)


QUESTIONS = [
    # (category, text, weight, recommendation_text)
    ("Security", "Do you enforce multi-factor authentication for all staff?", 3.0,
     "Roll out MFA for every account with access to customer data."),
    ("Security", "Are production secrets stored in a managed vault?", 2.0,
     "Move credentials out of configuration files into a secrets manager."),
    ("Security", "Do you run an annual external penetration test?", 2.0,
     "Commission an external penetration test and track findings to closure."),
    ("Compliance", "Do you hold a current ISO 27001 or SOC 2 report?", 2.0,
     "Start an ISO 27001 or SOC 2 readiness assessment."),
    ("Compliance", "Is there a documented data retention policy?", 1.0,
     "Publish a retention schedule covering every data category you process."),
    ("Operations", "Is a business continuity plan tested at least yearly?", 1.5,
     "Run a tabletop exercise against the continuity plan and record the gaps."),
    ("Operations", "Do you notify customers of incidents within 72 hours?", 1.0, None),
]


def seed_demo_data(db: Session) -> None:
    """Create a demo vendor, its supplier account and one assigned evaluation."""
    if db.query(Vendor).first():
        logger.info("Database already seeded, skipping demo data")
        return

    logger.info("Seeding demo data")

    vendor = Vendor(name="Northwind Hosting", contact_email="security@northwind.example", country="Germany")
    admin_profile = Profile(first_name="Ada", last_name="Admin", contact_email="admin@vendoreval.example")
    supplier_profile = Profile(
        first_name="Sam", last_name="Supplier", contact_email="sam@northwind.example", department="IT"
    )
    db.add_all([vendor, admin_profile, supplier_profile])
    db.flush()

    admin = User(email="admin@vendoreval.example", role="admin", profile_id=admin_profile.id)
    supplier = User(
        email="sam@northwind.example", role="supplier", vendor_id=vendor.id, profile_id=supplier_profile.id
    )
    db.add_all([admin, supplier])
    db.flush()

    evaluation = Evaluation(
        title="Annual Security Review",
        description="Baseline security and compliance questionnaire",
        evaluator_id=admin.id,
        status=EvaluationStatus.IN_PROGRESS.value,
    )
    db.add(evaluation)
    db.flush()

    for index, (category, text, weight, recommendation) in enumerate(QUESTIONS):
        question = Question(
            question_text=text,
            category=category,
            weight=weight,
            is_required=True,
            order_index=index,
            options={"choices": ["Yes", "No", "N/A"]},
            recommendation_text=recommendation,
        )
        db.add(question)
        db.flush()
        db.add(EvaluationQuestion(evaluation_id=evaluation.id, question_id=question.id))

    db.add(EvaluationVendor(evaluation_id=evaluation.id, vendor_id=vendor.id, assigned_by=admin.id))
    db.flush()

    logger.info(f"Seeded vendor {vendor.id}, evaluation {evaluation.id} with {len(QUESTIONS)} questions")


if __name__ == "__main__":
    from vendoreval.core.logging import setup_logging
    from vendoreval.db.session import get_db_context

    setup_logging()
    with get_db_context() as session:
        seed_demo_data(session)
