"""
SQLAlchemy implementations of the reconciliation ports.
"""
import json
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vendoreval.core.logging import get_logger
from vendoreval.db.models import (
    Question, Recommendation, RecommendationStatus, Response, User, new_id,
)

from .contracts import (
    Answer, ExistingRecommendation, RecommendationDraft, ResponseRecord, WriteOutcome,
    normalize_remediation_text,
)
from .engine import RecommendationEngine
from .errors import RecommendationStoreError
from .ports import AssignmentDirectory, QuestionCatalog, RecommendationStore, ResponseStore

logger = get_logger(__name__)


def _legacy_option_text(options) -> Optional[str]:
    """recommendation_text stored inside the question's options JSON."""
    if isinstance(options, str):
        try:
            options = json.loads(options)
        except ValueError:
            return None
    if isinstance(options, dict):
        value = options.get("recommendation_text")
        return value if isinstance(value, str) else None
    return None


class SqlQuestionCatalog(QuestionCatalog):

    def __init__(self, db: Session):
        self.db = db

    def get_recommendation_texts(self, question_ids: Iterable[str]) -> Dict[str, Optional[str]]:
        ids = list(question_ids)
        if not ids:
            return {}

        rows = self.db.query(
            Question.id, Question.recommendation_text, Question.options
        ).filter(Question.id.in_(ids)).all()

        texts = {}
        for question_id, text, options in rows:
            if normalize_remediation_text(text) is None:
                text = _legacy_option_text(options)
            texts[question_id] = text
        return texts


class SqlResponseStore(ResponseStore):

    def __init__(self, db: Session):
        self.db = db

    def list_responses(self, evaluation_id: str, vendor_id: str) -> List[ResponseRecord]:
        rows = self.db.query(Response).filter(
            Response.evaluation_id == evaluation_id,
            Response.vendor_id == vendor_id,
        ).order_by(Response.created_at, Response.id).all()

        return [self._to_record(r) for r in rows]

    def get_responses(self, response_ids: Iterable[str]) -> Dict[str, ResponseRecord]:
        ids = list(response_ids)
        if not ids:
            return {}

        rows = self.db.query(Response).filter(Response.id.in_(ids)).all()
        return {r.id: self._to_record(r) for r in rows}

    @staticmethod
    def _to_record(row: Response) -> ResponseRecord:
        return ResponseRecord(
            response_id=row.id,
            evaluation_id=row.evaluation_id,
            vendor_id=row.vendor_id,
            question_id=row.question_id,
            answer=Answer.parse(row.answer),
            response_value=row.response_value or "",
        )


class SqlAssignmentDirectory(AssignmentDirectory):

    def __init__(self, db: Session):
        self.db = db

    def resolve_owner(self, vendor_id: str) -> Optional[str]:
        """Profile of the vendor's longest-standing active user."""
        row = self.db.query(User.profile_id).filter(
            User.vendor_id == vendor_id,
            User.profile_id.isnot(None),
            User.is_active == True,
        ).order_by(User.created_at, User.id).first()
        return row[0] if row else None


class SqlRecommendationStore(RecommendationStore):
    """
    Upserts against the unique constraint on recommendations.response_id.

    Two concurrent reconciliations of the same response both end in one row:
    the losing INSERT turns into the text/updated_at UPDATE.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_by_response_ids(self, response_ids: Iterable[str]) -> Dict[str, ExistingRecommendation]:
        ids = list(response_ids)
        if not ids:
            return {}

        rows = self.db.query(
            Recommendation.id, Recommendation.response_id, Recommendation.recommendation_text
        ).filter(Recommendation.response_id.in_(ids)).all()

        return {
            response_id: ExistingRecommendation(rec_id, response_id, text)
            for rec_id, response_id, text in rows
        }

    def write(self, drafts: List[RecommendationDraft]) -> List[WriteOutcome]:
        if not drafts:
            return []

        try:
            with self.db.begin_nested():
                written = self._upsert(drafts)
            outcomes = [self._outcome(d, written) for d in drafts]
        except SQLAlchemyError as e:
            logger.warning(f"Batch upsert of {len(drafts)} recommendations failed, retrying one by one: {e}")
            outcomes = [self._write_one(d) for d in drafts]

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RecommendationStoreError(f"Commit failed: {e}") from e

        return outcomes

    def _write_one(self, draft: RecommendationDraft) -> WriteOutcome:
        try:
            with self.db.begin_nested():
                written = self._upsert([draft])
            return self._outcome(draft, written)
        except SQLAlchemyError as e:
            reason = str(getattr(e, "orig", None) or e)
            return WriteOutcome(draft, error=reason[:500])

    @staticmethod
    def _outcome(draft: RecommendationDraft, written: Dict[str, Tuple[str, bool]]) -> WriteOutcome:
        if draft.response_id not in written:
            return WriteOutcome(draft)
        rec_id, inserted = written[draft.response_id]
        return WriteOutcome(draft, recommendation_id=rec_id, inserted=inserted)

    def _upsert(self, drafts: List[RecommendationDraft]) -> Dict[str, Tuple[str, bool]]:
        """
        Map response id to (recommendation id, inserted).

        A planned create was inserted only if the surviving row carries the id
        generated for it; otherwise a concurrent writer got there first.
        """
        insert = self._dialect_insert()
        generated = {d.response_id: d.recommendation_id or new_id() for d in drafts}
        rows = [
            {
                "id": generated[d.response_id],
                "response_id": d.response_id,
                "question_id": d.question_id,
                "recommendation_text": d.recommendation_text,
                "status": RecommendationStatus.PENDING.value,
                "priority": d.priority,
                "assigned_to": d.assigned_to,
                "created_at": d.timestamp,
                "updated_at": d.timestamp,
            }
            for d in drafts
        ]

        stmt = insert(Recommendation).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["response_id"],
            set_={
                "recommendation_text": stmt.excluded.recommendation_text,
                "updated_at": stmt.excluded.updated_at,
            },
        ).returning(Recommendation.id, Recommendation.response_id)

        planned_new = {d.response_id for d in drafts if d.is_new}
        result = self.db.execute(stmt)
        return {
            response_id: (rec_id, response_id in planned_new and rec_id == generated[response_id])
            for rec_id, response_id in result
        }

    def _dialect_insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise RecommendationStoreError(f"Upsert not supported for dialect: {dialect}")
        return insert


def build_sql_engine(db: Session, batch_size: Optional[int] = None) -> RecommendationEngine:
    """Engine wired to the database behind this session."""
    return RecommendationEngine(
        catalog=SqlQuestionCatalog(db),
        directory=SqlAssignmentDirectory(db),
        store=SqlRecommendationStore(db),
        batch_size=batch_size,
    )
