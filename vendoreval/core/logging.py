"""
Structured JSON logging for VendorEval.

Every entry is one JSON object on stdout. Vendor, evaluation and response
identifiers travel as top-level keys so a reconciliation run can be followed
across modules; tokens and secrets are redacted before anything is written.
"""
import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from vendoreval.core.config import settings

_REDACTED = "***REDACTED***"

_SENSITIVE_PATTERNS = re.compile(
    r'(password|secret|token|authorization|credential)'
    r'[\"\']?\s*[:=]\s*[\"\']?[^\s,;\"\'}{]+',
    re.IGNORECASE,
)

_SENSITIVE_KEYS = frozenset({
    "password", "secret", "secret_key", "token", "access_token", "authorization", "credential",
})

CONTEXT_FIELDS = (
    "user_id", "vendor_id", "evaluation_id", "response_id", "recommendation_id",
    "action", "entity_type", "entity_id",
)


def _redact(obj):
    if isinstance(obj, dict):
        return {k: _REDACTED if k.lower() in _SENSITIVE_KEYS else _redact(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_redact(i) for i in obj]
    return obj


def _redact_text(message: str) -> str:
    return _SENSITIVE_PATTERNS.sub(rf'\1={_REDACTED}', message)


def context_extra(**fields: Any) -> Dict[str, Any]:
    """`extra=` payload limited to the known context fields, without None values."""
    return {k: v for k, v in fields.items() if k in CONTEXT_FIELDS and v is not None}


class StructuredFormatter(logging.Formatter):
    """Formats records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": _redact_text(record.getMessage()),
        }
        entry.update(context_extra(**{f: getattr(record, f, None) for f in CONTEXT_FIELDS}))

        if record.exc_info:
            entry["exception"] = _redact_text(self.formatException(record.exc_info))

        return json.dumps(entry, default=str)


def setup_logging(level: Optional[str] = None):
    """Install the JSON handler on the root logger once."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    level = level or settings.LOG_LEVEL or ("DEBUG" if settings.DEBUG else "INFO")
    root_logger.setLevel(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class AuditLogger:
    """AUDIT lines for state changes made through the API."""

    def __init__(self):
        self.logger = get_logger("audit")

    def log(
        self,
        action: str,
        user_id: Optional[str] = None,
        vendor_id: Optional[str] = None,
        evaluation_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        message = f"AUDIT: {action}"
        if entity_type and entity_id:
            message += f" on {entity_type}:{entity_id}"
        if details:
            message += f" - {json.dumps(_redact(details), default=str)}"

        self.logger.info(message, extra=context_extra(
            action=action,
            user_id=user_id,
            vendor_id=vendor_id,
            evaluation_id=evaluation_id,
            entity_type=entity_type,
            entity_id=entity_id,
        ))

    def reconciliation(self, result, user_id: Optional[str], trigger: str, **details):
        """Record a reconciliation run with its summary counts."""
        self.log(
            action=f"recommendations_reconciled:{trigger}",
            user_id=user_id,
            vendor_id=result.vendor_id,
            evaluation_id=result.evaluation_id,
            details={**details, **result.summary()},
        )


audit_logger = AuditLogger()
