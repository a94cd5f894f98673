"""
Recommendation reconciliation engine.

Derives remediation recommendations from a vendor's responses:

- Only negative answers (No, N/A) on questions carrying remediation text
  produce a recommendation.
- Each response gets at most one recommendation. A rerun only refreshes the
  text of existing rows; status, priority and owner belong to the vendor's
  workflow and are never reset.
- Recommendations are never deleted here, even when the answer later turns
  to Yes.

Every per-response problem ends up in the returned ReconciliationResult.
The only exception raised is InvalidScopeError, before anything is written.
"""
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from vendoreval.core.config import settings
from vendoreval.core.logging import context_extra, get_logger

from .contracts import (
    RecommendationDraft, RecommendationRef, ReconciliationResult,
    ResponseRecord, SkippedError, WriteOutcome, normalize_remediation_text,
)
from .errors import InvalidScopeError
from .ports import AssignmentDirectory, QuestionCatalog, RecommendationStore, ResponseStore

logger = get_logger(__name__)

ResponseInput = Union[ResponseRecord, Mapping[str, Any]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecommendationEngine:
    """Creates or refreshes one recommendation per qualifying response."""

    def __init__(
        self,
        catalog: QuestionCatalog,
        directory: AssignmentDirectory,
        store: RecommendationStore,
        batch_size: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.catalog = catalog
        self.directory = directory
        self.store = store
        self.batch_size = settings.RECOMMENDATION_BATCH_SIZE if batch_size is None else batch_size
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.clock = clock

    def reconcile(
        self,
        evaluation_id: str,
        vendor_id: str,
        responses: Iterable[ResponseInput],
    ) -> ReconciliationResult:
        """
        Reconcile recommendations for one (evaluation, vendor) pair.

        Args:
            evaluation_id: Evaluation the responses belong to
            vendor_id: Vendor that answered
            responses: ResponseRecord objects or dicts in the response JSON shape

        Returns:
            ReconciliationResult listing created, updated and skipped responses

        Raises:
            InvalidScopeError: a response belongs to another evaluation or vendor
        """
        records = self._collect(evaluation_id, vendor_id, responses)
        result = ReconciliationResult(evaluation_id=evaluation_id, vendor_id=vendor_id)
        log_extra = context_extra(evaluation_id=evaluation_id, vendor_id=vendor_id)

        logger.info(f"Reconciling {len(records)} responses", extra=log_extra)

        negatives: List[ResponseRecord] = []
        for record in records:
            if record.answer.is_negative:
                negatives.append(record)
            else:
                result.skipped_not_negative.append(record.response_id)

        qualifying = self._resolve_texts(negatives, result)
        drafts = self._plan(qualifying, vendor_id, result)

        for start in range(0, len(drafts), self.batch_size):
            chunk = drafts[start:start + self.batch_size]
            for outcome in self._write_chunk(chunk):
                self._record_outcome(outcome, result)

        logger.info(
            f"Reconciliation finished: created={result.created_count} "
            f"updated={result.updated_count} unchanged={len(result.unchanged)} "
            f"skipped_no_text={result.skipped_no_text_count} "
            f"skipped_not_negative={result.skipped_not_negative_count} "
            f"errors={result.error_count}",
            extra=log_extra,
        )
        return result

    def reconcile_from_store(
        self,
        evaluation_id: str,
        vendor_id: str,
        response_store: ResponseStore,
    ) -> ReconciliationResult:
        """Reconcile every stored response of the pair (backfill)."""
        responses = response_store.list_responses(evaluation_id, vendor_id)
        return self.reconcile(evaluation_id, vendor_id, responses)

    def reconcile_stored(
        self,
        evaluation_id: str,
        vendor_id: str,
        submitted: Iterable[Union[str, Mapping[str, Any]]],
        response_store: ResponseStore,
    ) -> ReconciliationResult:
        """
        Reconcile responses named by an untrusted caller.

        Only `response_id` is read from each submitted item; question and
        answer come from the stored row.

        Raises:
            InvalidScopeError: an id is unknown, stored under another pair, or
                declared for another pair
        """
        items = [{"response_id": item} if isinstance(item, str) else item for item in submitted]
        response_ids = list(dict.fromkeys(str(item["response_id"]) for item in items))
        stored = response_store.get_responses(response_ids)

        violations: List[str] = []
        for item in items:
            response_id = str(item["response_id"])
            record = stored.get(response_id)
            declared = (item.get("evaluation_id") or evaluation_id, item.get("vendor_id") or vendor_id)
            in_scope = (
                record is not None
                and (record.evaluation_id, record.vendor_id) == (evaluation_id, vendor_id)
                and declared == (evaluation_id, vendor_id)
            )
            if not in_scope and response_id not in violations:
                violations.append(response_id)

        if violations:
            logger.warning(
                f"Rejecting batch: {len(violations)} submitted response(s) unknown or outside scope",
                extra=context_extra(evaluation_id=evaluation_id, vendor_id=vendor_id),
            )
            raise InvalidScopeError(evaluation_id, vendor_id, violations)

        return self.reconcile(evaluation_id, vendor_id, [stored[rid] for rid in response_ids])

    # ============= Private Helpers =============

    def _collect(
        self,
        evaluation_id: str,
        vendor_id: str,
        responses: Iterable[ResponseInput],
    ) -> List[ResponseRecord]:
        """Parse, scope-check and de-duplicate the input (last copy of an id wins)."""
        by_id: Dict[str, ResponseRecord] = {}
        violations: List[str] = []

        for item in responses:
            record = item if isinstance(item, ResponseRecord) else ResponseRecord.from_dict(item)
            if record.evaluation_id != evaluation_id or record.vendor_id != vendor_id:
                violations.append(record.response_id)
                continue
            by_id[record.response_id] = record

        if violations:
            logger.warning(
                f"Rejecting batch: {len(violations)} response(s) outside scope",
                extra=context_extra(evaluation_id=evaluation_id, vendor_id=vendor_id),
            )
            raise InvalidScopeError(evaluation_id, vendor_id, violations)

        return list(by_id.values())

    def _resolve_texts(self, negatives: List[ResponseRecord], result: ReconciliationResult):
        """Pair each negative response with its normalized remediation text."""
        if not negatives:
            return []

        question_ids = sorted({r.question_id for r in negatives})
        try:
            texts = self.catalog.get_recommendation_texts(question_ids)
        except Exception as e:
            logger.error(f"Question catalog lookup failed: {e}", exc_info=True)
            for record in negatives:
                result.skipped_errors.append(SkippedError(record.response_id, f"catalog_error: {e}"))
            return []

        qualifying = []
        for record in negatives:
            if record.question_id not in texts:
                logger.warning(
                    f"Question {record.question_id} not found for response {record.response_id}",
                    extra=context_extra(response_id=record.response_id),
                )
                result.skipped_errors.append(
                    SkippedError(record.response_id, f"question_not_found: {record.question_id}")
                )
                continue

            text = normalize_remediation_text(texts[record.question_id])
            if text is None:
                result.skipped_no_text.append(record.response_id)
                continue

            qualifying.append((record, text))

        return qualifying

    def _plan(self, qualifying, vendor_id: str, result: ReconciliationResult) -> List[RecommendationDraft]:
        """Decide create, update or nothing for every qualifying response."""
        if not qualifying:
            return []

        try:
            existing = self.store.find_by_response_ids([r.response_id for r, _ in qualifying])
        except Exception as e:
            logger.error(f"Recommendation lookup failed: {e}", exc_info=True)
            for record, _ in qualifying:
                result.skipped_errors.append(SkippedError(record.response_id, f"storage_error: {e}"))
            return []

        now = self.clock()
        owner_resolved = False
        owner: Optional[str] = None
        drafts: List[RecommendationDraft] = []

        for record, text in qualifying:
            current = existing.get(record.response_id)

            if current is not None and current.recommendation_text == text:
                result.unchanged.append(RecommendationRef(current.recommendation_id, record.response_id))
                continue

            if current is None and not owner_resolved:
                owner = self._resolve_owner(vendor_id)
                owner_resolved = True

            drafts.append(RecommendationDraft(
                response_id=record.response_id,
                question_id=record.question_id,
                recommendation_text=text,
                priority=record.answer.priority,
                assigned_to=owner if current is None else None,
                timestamp=now,
                is_new=current is None,
                recommendation_id=current.recommendation_id if current else None,
            ))

        return drafts

    def _resolve_owner(self, vendor_id: str) -> Optional[str]:
        try:
            return self.directory.resolve_owner(vendor_id)
        except Exception as e:
            logger.warning(
                f"Owner lookup failed, recommendations stay unassigned: {e}",
                extra=context_extra(vendor_id=vendor_id),
            )
            return None

    def _write_chunk(self, chunk: List[RecommendationDraft]) -> List[WriteOutcome]:
        try:
            outcomes = self.store.write(chunk)
        except Exception as e:
            logger.error(f"Recommendation write failed for {len(chunk)} item(s): {e}", exc_info=True)
            return [WriteOutcome(draft=d, error=str(e)) for d in chunk]

        if len(outcomes) != len(chunk):
            logger.error(f"Store returned {len(outcomes)} outcomes for {len(chunk)} drafts")
            returned = {o.draft.response_id: o for o in outcomes}
            return [
                returned.get(d.response_id) or WriteOutcome(draft=d, error="no outcome returned")
                for d in chunk
            ]
        return outcomes

    def _record_outcome(self, outcome: WriteOutcome, result: ReconciliationResult) -> None:
        draft = outcome.draft
        if not outcome.ok:
            logger.error(
                f"Failed to persist recommendation for response {draft.response_id}: {outcome.error}",
                extra=context_extra(response_id=draft.response_id),
            )
            result.skipped_errors.append(SkippedError(draft.response_id, f"storage_error: {outcome.error}"))
            return

        ref = RecommendationRef(outcome.recommendation_id, draft.response_id)
        if draft.is_new and not outcome.created:
            logger.info(
                f"Recommendation for response {draft.response_id} was created concurrently; refreshed instead",
                extra=context_extra(response_id=draft.response_id, recommendation_id=outcome.recommendation_id),
            )
        if outcome.created:
            result.created.append(ref)
        else:
            result.updated.append(ref)
