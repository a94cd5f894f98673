"""
Recommendation reconciliation.
Turns negative vendor responses into remediation recommendations.
"""
from .contracts import (
    Answer, ReconciliationResult, RecommendationRef, ResponseRecord, SkippedError,
    normalize_remediation_text,
)
from .engine import RecommendationEngine
from .errors import (
    InvalidScopeError, DirectoryLookupError,
    RecommendationStoreError, ReconciliationError,
)
from .ports import AssignmentDirectory, QuestionCatalog, RecommendationStore, ResponseStore

__all__ = [
    "Answer",
    "ReconciliationResult",
    "RecommendationRef",
    "ResponseRecord",
    "SkippedError",
    "normalize_remediation_text",
    "RecommendationEngine",
    "InvalidScopeError",
    "DirectoryLookupError",
    "RecommendationStoreError",
    "ReconciliationError",
    "AssignmentDirectory",
    "QuestionCatalog",
    "RecommendationStore",
    "ResponseStore",
]
