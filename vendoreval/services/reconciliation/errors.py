"""
Exceptions raised around recommendation reconciliation.

Only InvalidScopeError leaves RecommendationEngine.reconcile(); the others are
raised by collaborators and turned into entries of the result.
"""
from typing import List


class ReconciliationError(Exception):
    """Base class for reconciliation errors."""


class InvalidScopeError(ReconciliationError):
    """Responses in the batch belong to another evaluation/vendor pair."""

    def __init__(self, evaluation_id: str, vendor_id: str, violations: List[str]):
        self.evaluation_id = evaluation_id
        self.vendor_id = vendor_id
        self.violations = list(violations)
        super().__init__(
            f"{len(self.violations)} response(s) outside scope "
            f"evaluation={evaluation_id} vendor={vendor_id}: {', '.join(self.violations)}"
        )


class DirectoryLookupError(ReconciliationError):
    """The assignment directory could not resolve a vendor."""


class RecommendationStoreError(ReconciliationError):
    """A recommendation write failed."""
