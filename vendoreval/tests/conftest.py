"""
Shared fixtures: in-memory collaborators, SQLite session, API client.
"""
import os

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef0123456789abcdef")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vendoreval.db import models
from vendoreval.db.session import Base
from vendoreval.tests.fakes import FakeCatalog, FakeDirectory, FakeStore


# ============= IN-MEMORY COLLABORATORS =============

@pytest.fixture
def catalog():
    return FakeCatalog({
        "q-mfa": "Enable MFA for all accounts.",
        "q-vault": "Store secrets in a vault.",
        "q-pentest": "Run an annual penetration test.",
        "q-blank": "   ",
        "q-none": None,
    })


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def store():
    return FakeStore()


def _make_response(response_id, answer, question_id="q-mfa", evaluation_id="eval-1", vendor_id="vendor-1"):
    return {
        "response_id": response_id,
        "evaluation_id": evaluation_id,
        "vendor_id": vendor_id,
        "question_id": question_id,
        "answer": answer,
        "response_value": answer,
    }


# ============= DATABASE =============

@pytest.fixture
def db_session():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs explicit BEGIN for SAVEPOINT to work
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def seeded(db_session):
    """One vendor with an owner profile, an assigned evaluation and four questions."""
    vendor = models.Vendor(name="Northwind Hosting")
    owner = models.Profile(first_name="Sam", last_name="Supplier")
    db_session.add_all([vendor, owner])
    db_session.flush()

    supplier = models.User(email="sam@northwind.test", role="supplier", vendor_id=vendor.id, profile_id=owner.id)
    evaluation = models.Evaluation(title="Annual Security Review")
    db_session.add_all([supplier, evaluation])
    db_session.flush()

    questions = {
        "mfa": models.Question(question_text="MFA enforced?", category="Security", weight=3.0,
                               order_index=0, recommendation_text="  Enable MFA for all accounts.  "),
        "vault": models.Question(question_text="Secrets in a vault?", category="Security", weight=1.0,
                                 order_index=1, options={"recommendation_text": "Store secrets in a vault."}),
        "retention": models.Question(question_text="Retention policy?", category="Compliance", weight=1.0,
                                     order_index=2, recommendation_text=""),
        "notes": models.Question(question_text="Anything else?", category="Compliance", weight=0,
                                 order_index=3, is_required=False),
    }
    db_session.add_all(questions.values())
    db_session.flush()

    for question in questions.values():
        db_session.add(models.EvaluationQuestion(evaluation_id=evaluation.id, question_id=question.id))
    db_session.add(models.EvaluationVendor(evaluation_id=evaluation.id, vendor_id=vendor.id))
    db_session.commit()

    return {
        "vendor": vendor,
        "owner": owner,
        "supplier": supplier,
        "evaluation": evaluation,
        "questions": questions,
    }


def _add_response(db, seeded, key, value):
    response = models.Response(
        evaluation_id=seeded["evaluation"].id,
        vendor_id=seeded["vendor"].id,
        question_id=seeded["questions"][key].id,
        answer=value if value in ("Yes", "No", "N/A") else None,
        response_value=value,
    )
    db.add(response)
    db.commit()
    return response


# ============= API =============

@pytest.fixture
def client(db_session):
    from fastapi.testclient import TestClient
    from vendoreval.db.session import get_db
    from vendoreval.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _auth_headers(role="supplier", vendor_id=None, profile_id=None, sub="user-1"):
    from vendoreval.core.security import create_access_token

    token = create_access_token(sub, role, vendor_id=vendor_id, profile_id=profile_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_response():
    return _make_response


@pytest.fixture
def add_response(db_session, seeded):
    def _add(key, value):
        return _add_response(db_session, seeded, key, value)
    return _add


@pytest.fixture
def auth_headers():
    return _auth_headers
