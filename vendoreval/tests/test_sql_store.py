"""
Tests for the SQLAlchemy reconciliation adapters against SQLite.
"""
from datetime import datetime, timezone

from vendoreval.db.models import Recommendation, User


def recommendations(db):
    return {r.response_id: r for r in db.query(Recommendation).all()}


class TestSqlQuestionCatalog:

    def test_texts_with_legacy_options_fallback(self, db_session, seeded):
        from vendoreval.services.reconciliation.sql import SqlQuestionCatalog

        q = seeded["questions"]
        catalog = SqlQuestionCatalog(db_session)

        texts = catalog.get_recommendation_texts([q["mfa"].id, q["vault"].id, q["retention"].id, "missing"])

        assert texts[q["mfa"].id] == "  Enable MFA for all accounts.  "
        assert texts[q["vault"].id] == "Store secrets in a vault."
        assert texts[q["retention"].id] is None
        assert "missing" not in texts

    def test_legacy_options_stored_as_json_string(self):
        from vendoreval.services.reconciliation.sql import _legacy_option_text

        assert _legacy_option_text('{"recommendation_text": "Patch monthly."}') == "Patch monthly."
        assert _legacy_option_text("not json") is None
        assert _legacy_option_text(["recommendation_text"]) is None


class TestSqlAssignmentDirectory:

    def test_owner_is_oldest_active_user_with_profile(self, db_session, seeded):
        from vendoreval.services.reconciliation.sql import SqlAssignmentDirectory

        directory = SqlAssignmentDirectory(db_session)

        assert directory.resolve_owner(seeded["vendor"].id) == seeded["owner"].id
        assert directory.resolve_owner("unknown-vendor") is None

    def test_inactive_users_are_ignored(self, db_session, seeded):
        from vendoreval.services.reconciliation.sql import SqlAssignmentDirectory

        db_session.query(User).update({User.is_active: False})
        db_session.commit()

        assert SqlAssignmentDirectory(db_session).resolve_owner(seeded["vendor"].id) is None


class TestSqlReconciliation:
    """Engine wired to the SQL adapters, end to end."""

    def test_backfill_creates_recommendations(self, db_session, seeded, add_response):
        from vendoreval.services.reconciliation.sql import SqlResponseStore, build_sql_engine

        mfa = add_response("mfa", "No")
        vault = add_response("vault", "N/A")
        retention = add_response("retention", "No")
        notes = add_response("notes", "We also run a bug bounty")

        result = build_sql_engine(db_session).reconcile_from_store(
            seeded["evaluation"].id, seeded["vendor"].id, SqlResponseStore(db_session)
        )

        assert sorted(ref.response_id for ref in result.created) == sorted([mfa.id, vault.id])
        assert result.skipped_no_text == [retention.id]
        assert result.skipped_not_negative == [notes.id]

        rows = recommendations(db_session)
        assert rows[mfa.id].recommendation_text == "Enable MFA for all accounts."
        assert rows[mfa.id].priority == 1
        assert rows[vault.id].recommendation_text == "Store secrets in a vault."
        assert rows[vault.id].priority == 2
        assert {r.status for r in rows.values()} == {"pending"}
        assert {r.assigned_to for r in rows.values()} == {seeded["owner"].id}
        assert {r.id for r in rows.values()} == set(result.recommendation_ids)

    def test_rerun_is_idempotent(self, db_session, seeded, add_response):
        from vendoreval.services.reconciliation.sql import SqlResponseStore, build_sql_engine

        add_response("mfa", "No")
        add_response("vault", "No")
        engine = build_sql_engine(db_session, batch_size=1)
        args = (seeded["evaluation"].id, seeded["vendor"].id, SqlResponseStore(db_session))

        engine.reconcile_from_store(*args)
        second = engine.reconcile_from_store(*args)

        assert second.created == []
        assert second.updated == []
        assert len(second.unchanged) == 2
        assert db_session.query(Recommendation).count() == 2

    def test_text_change_keeps_workflow_fields(self, db_session, seeded, add_response):
        from vendoreval.services.reconciliation.sql import SqlResponseStore, build_sql_engine

        mfa = add_response("mfa", "No")
        args = (seeded["evaluation"].id, seeded["vendor"].id, SqlResponseStore(db_session))
        build_sql_engine(db_session).reconcile_from_store(*args)

        rec = recommendations(db_session)[mfa.id]
        rec.status = "in_progress"
        rec.assigned_to = None
        rec.action_plan = "Rollout in Q3"
        seeded["questions"]["mfa"].recommendation_text = "Enforce hardware keys."
        db_session.commit()

        result = build_sql_engine(db_session).reconcile_from_store(*args)

        assert [ref.recommendation_id for ref in result.updated] == [rec.id]
        db_session.expire_all()
        rec = recommendations(db_session)[mfa.id]
        assert rec.recommendation_text == "Enforce hardware keys."
        assert rec.status == "in_progress"
        assert rec.assigned_to is None
        assert rec.action_plan == "Rollout in Q3"
        assert rec.priority == 1


class TestSqlRecommendationStore:

    def _draft(self, response_id, question_id, text="Fix it.", is_new=True):
        from vendoreval.services.reconciliation.contracts import RecommendationDraft

        return RecommendationDraft(
            response_id=response_id,
            question_id=question_id,
            recommendation_text=text,
            priority=1,
            assigned_to=None,
            timestamp=datetime(2024, 3, 1, tzinfo=timezone.utc),
            is_new=is_new,
        )

    def test_failing_row_falls_back_to_single_writes(self, db_session, seeded, add_response):
        from vendoreval.services.reconciliation.sql import SqlRecommendationStore

        good = add_response("mfa", "No")
        bad = add_response("vault", "No")
        store = SqlRecommendationStore(db_session)

        outcomes = store.write([
            self._draft(good.id, seeded["questions"]["mfa"].id),
            self._draft(bad.id, None),
        ])

        assert outcomes[0].ok
        assert not outcomes[1].ok
        assert outcomes[1].error
        assert list(recommendations(db_session)) == [good.id]

    def test_concurrent_insert_becomes_update(self, db_session, seeded, add_response):
        from vendoreval.services.reconciliation.sql import SqlRecommendationStore

        mfa = add_response("mfa", "No")
        question_id = seeded["questions"]["mfa"].id
        store = SqlRecommendationStore(db_session)
        first = store.write([self._draft(mfa.id, question_id, "First text.")])[0]

        db_session.query(Recommendation).update({Recommendation.status: "implemented"})
        db_session.commit()

        # a second writer that did not see the first row
        second = store.write([self._draft(mfa.id, question_id, "Second text.")])[0]

        assert first.inserted is True
        assert second.recommendation_id == first.recommendation_id
        assert second.inserted is False
        db_session.expire_all()
        rows = db_session.query(Recommendation).all()
        assert len(rows) == 1
        assert rows[0].recommendation_text == "Second text."
        assert rows[0].status == "implemented"

    def test_find_by_response_ids(self, db_session, seeded, add_response):
        from vendoreval.services.reconciliation.sql import SqlRecommendationStore

        mfa = add_response("mfa", "No")
        store = SqlRecommendationStore(db_session)
        store.write([self._draft(mfa.id, seeded["questions"]["mfa"].id)])

        found = store.find_by_response_ids([mfa.id, "other"])

        assert list(found) == [mfa.id]
        assert found[mfa.id].recommendation_text == "Fix it."
        assert store.find_by_response_ids([]) == {}

    def test_planned_update_is_not_reported_as_insert(self, db_session, seeded, add_response):
        from vendoreval.services.reconciliation.sql import SqlRecommendationStore

        mfa = add_response("mfa", "No")
        question_id = seeded["questions"]["mfa"].id
        store = SqlRecommendationStore(db_session)
        first = store.write([self._draft(mfa.id, question_id)])[0]

        refresh = self._draft(mfa.id, question_id, "Refreshed.", is_new=False)
        refresh.recommendation_id = first.recommendation_id
        outcome = store.write([refresh])[0]

        assert outcome.ok
        assert outcome.inserted is False


class TestSqlResponseStore:

    def test_get_responses_ignores_scope(self, db_session, seeded, add_response):
        from vendoreval.db.models import Response, Vendor
        from vendoreval.services.reconciliation import Answer
        from vendoreval.services.reconciliation.sql import SqlResponseStore

        mine = add_response("mfa", "No")
        other_vendor = Vendor(name="Other Corp")
        db_session.add(other_vendor)
        db_session.flush()
        theirs = Response(
            evaluation_id=seeded["evaluation"].id,
            vendor_id=other_vendor.id,
            question_id=seeded["questions"]["vault"].id,
            answer="Yes",
            response_value="Yes",
        )
        db_session.add(theirs)
        db_session.commit()

        found = SqlResponseStore(db_session).get_responses([mine.id, theirs.id, "ghost"])

        assert set(found) == {mine.id, theirs.id}
        assert found[theirs.id].vendor_id == other_vendor.id
        assert found[theirs.id].answer is Answer.YES
        assert SqlResponseStore(db_session).get_responses([]) == {}


class TestSqlRaceReporting:
    """A create planned from a stale lookup is reported as an update."""

    def test_stale_lookup_reports_update(self, db_session, seeded, add_response):
        from unittest.mock import patch
        from vendoreval.services.reconciliation.sql import SqlRecommendationStore, SqlResponseStore, build_sql_engine

        add_response("mfa", "No")
        eval_id, vendor_id = seeded["evaluation"].id, seeded["vendor"].id
        engine = build_sql_engine(db_session)
        first = engine.reconcile_from_store(eval_id, vendor_id, SqlResponseStore(db_session))

        seeded["questions"]["mfa"].recommendation_text = "Enforce MFA everywhere."
        db_session.commit()

        with patch.object(SqlRecommendationStore, "find_by_response_ids", return_value={}):
            second = engine.reconcile_from_store(eval_id, vendor_id, SqlResponseStore(db_session))

        assert first.created_count == 1
        assert second.created_count == 0
        assert second.updated_count == 1
        assert second.recommendation_ids == first.recommendation_ids
        db_session.expire_all()
        rows = db_session.query(Recommendation).all()
        assert len(rows) == 1
        assert rows[0].recommendation_text == "Enforce MFA everywhere."
