"""
Data contracts exchanged by the reconciliation engine and its collaborators.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional


class Answer(str, enum.Enum):
    """Tri-state answer of a yes/no question, plus the free-text case."""
    YES = "Yes"
    NO = "No"
    NOT_APPLICABLE = "N/A"
    UNANSWERED = ""

    @classmethod
    def parse(cls, raw: Optional[str]) -> "Answer":
        if isinstance(raw, cls):
            return raw
        if raw is None:
            return cls.UNANSWERED
        try:
            return cls(raw.strip())
        except ValueError:
            return cls.UNANSWERED

    @property
    def is_negative(self) -> bool:
        return self in (Answer.NO, Answer.NOT_APPLICABLE)

    @property
    def priority(self) -> Optional[int]:
        """1 for an active deficiency, 2 for inapplicability."""
        if self is Answer.NO:
            return 1
        if self is Answer.NOT_APPLICABLE:
            return 2
        return None

    def to_db(self) -> Optional[str]:
        return self.value or None


def normalize_remediation_text(raw: Optional[str]) -> Optional[str]:
    """Empty or whitespace-only remediation text means no remediation text."""
    if raw is None or not isinstance(raw, str):
        return None
    text = raw.strip()
    return text or None


@dataclass(frozen=True)
class ResponseRecord:
    response_id: str
    evaluation_id: str
    vendor_id: str
    question_id: str
    answer: Answer = Answer.UNANSWERED
    response_value: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResponseRecord":
        return cls(
            response_id=str(data["response_id"]),
            evaluation_id=str(data["evaluation_id"]),
            vendor_id=str(data["vendor_id"]),
            question_id=str(data["question_id"]),
            answer=Answer.parse(data.get("answer")),
            response_value=data.get("response_value") or "",
        )


@dataclass(frozen=True)
class ExistingRecommendation:
    recommendation_id: str
    response_id: str
    recommendation_text: str


@dataclass
class RecommendationDraft:
    """One row the engine wants written; `is_new` decides create vs update."""
    response_id: str
    question_id: str
    recommendation_text: str
    priority: int
    assigned_to: Optional[str]
    timestamp: datetime
    is_new: bool = True
    recommendation_id: Optional[str] = None


@dataclass
class WriteOutcome:
    """
    Result of one draft write.

    `inserted` is what the store observed: False when a row for the response
    already existed, even if the draft was planned as new. None when the store
    cannot tell, in which case the draft's plan is trusted.
    """
    draft: RecommendationDraft
    recommendation_id: Optional[str] = None
    error: Optional[str] = None
    inserted: Optional[bool] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.recommendation_id is not None

    @property
    def created(self) -> bool:
        return self.draft.is_new if self.inserted is None else self.inserted


@dataclass(frozen=True)
class RecommendationRef:
    recommendation_id: str
    response_id: str

    def to_dict(self) -> Dict[str, str]:
        return {"recommendation_id": self.recommendation_id, "response_id": self.response_id}


@dataclass(frozen=True)
class SkippedError:
    response_id: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {"response_id": self.response_id, "reason": self.reason}


@dataclass
class ReconciliationResult:
    evaluation_id: str
    vendor_id: str
    created: List[RecommendationRef] = field(default_factory=list)
    updated: List[RecommendationRef] = field(default_factory=list)
    skipped_no_text: List[str] = field(default_factory=list)
    skipped_not_negative: List[str] = field(default_factory=list)
    skipped_errors: List[SkippedError] = field(default_factory=list)
    unchanged: List[RecommendationRef] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def updated_count(self) -> int:
        return len(self.updated)

    @property
    def skipped_no_text_count(self) -> int:
        return len(self.skipped_no_text)

    @property
    def skipped_not_negative_count(self) -> int:
        return len(self.skipped_not_negative)

    @property
    def error_count(self) -> int:
        return len(self.skipped_errors)

    @property
    def recommendation_ids(self) -> List[str]:
        return [ref.recommendation_id for ref in self.created + self.updated]

    @property
    def processed_count(self) -> int:
        """Responses that reached a final state, counting errors."""
        return (
            self.created_count + self.updated_count + len(self.unchanged)
            + self.skipped_no_text_count + self.skipped_not_negative_count
            + self.error_count
        )

    @property
    def attempted_count(self) -> int:
        """Recommendations the call tried to save: written ones plus errors."""
        return self.created_count + self.updated_count + self.error_count

    @property
    def outcome(self) -> str:
        """complete, partial or failed over attempted writes; drives "saved N of M"."""
        if not self.skipped_errors:
            return "complete"
        if self.created_count + self.updated_count == 0:
            return "failed"
        return "partial"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created": [ref.to_dict() for ref in self.created],
            "updated": [ref.to_dict() for ref in self.updated],
            "skipped_no_text": list(self.skipped_no_text),
            "skipped_not_negative": list(self.skipped_not_negative),
            "skipped_errors": [err.to_dict() for err in self.skipped_errors],
        }

    def summary(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome,
            "created": self.created_count,
            "updated": self.updated_count,
            "unchanged": len(self.unchanged),
            "skipped_no_text": self.skipped_no_text_count,
            "skipped_not_negative": self.skipped_not_negative_count,
            "errors": self.error_count,
        }
