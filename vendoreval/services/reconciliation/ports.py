"""
Interfaces the reconciliation engine depends on.

The engine never talks to the database directly; it receives implementations
of these classes (SQL-backed in production, in-memory in tests).
"""
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from .contracts import ExistingRecommendation, RecommendationDraft, ResponseRecord, WriteOutcome


class QuestionCatalog(ABC):
    """Read-only access to question remediation text."""

    @abstractmethod
    def get_recommendation_texts(self, question_ids: Iterable[str]) -> Dict[str, Optional[str]]:
        """
        Look up remediation text for several questions.

        Returns:
            Mapping of question id to raw remediation text (possibly None or
            blank). Unknown question ids are absent from the mapping.
        """
        pass


class ResponseStore(ABC):
    """Read access to persisted responses."""

    @abstractmethod
    def list_responses(self, evaluation_id: str, vendor_id: str) -> List[ResponseRecord]:
        pass

    @abstractmethod
    def get_responses(self, response_ids: Iterable[str]) -> Dict[str, ResponseRecord]:
        """Stored responses by id, whatever pair they belong to; unknown ids are absent."""
        pass


class AssignmentDirectory(ABC):
    """Vendor ownership lookups."""

    @abstractmethod
    def resolve_owner(self, vendor_id: str) -> Optional[str]:
        """Profile id responsible for the vendor's recommendations, or None."""
        pass


class RecommendationStore(ABC):
    """Persistence for recommendation rows keyed by response id."""

    @abstractmethod
    def find_by_response_ids(self, response_ids: Iterable[str]) -> Dict[str, ExistingRecommendation]:
        pass

    @abstractmethod
    def write(self, drafts: List[RecommendationDraft]) -> List[WriteOutcome]:
        """
        Insert-or-update the drafts, keyed by response id.

        New rows get status pending plus the draft's priority and owner. On an
        existing row only recommendation_text and updated_at change.

        Returns:
            One WriteOutcome per draft, in order. A failed row carries an error
            message and must not affect the other rows.

        Raises:
            RecommendationStoreError if the whole call failed.
        """
        pass
