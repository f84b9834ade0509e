"""
Domain error taxonomy.

Every error carries a human-readable message plus a machine-readable
``code`` and a ``context`` dict naming the entity/block involved, so the
API layer can turn it into a structured response body.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class FarmtraceError(Exception):
    code = "farmtrace_error"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_detail(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.context}


class NotFoundError(FarmtraceError):
    """Entity (or referenced batch) absent."""

    code = "not_found"


class InvalidInputError(FarmtraceError):
    """Malformed block payload, missing/duplicate identifiers."""

    code = "invalid_input"


class IntegrityViolationError(FarmtraceError):
    """
    Chain verification found a broken hash link.
    Surfaced to the caller, never repaired.
    """

    code = "integrity_violation"


class ExternalServiceError(FarmtraceError):
    """
    Text-generation call failed (status, timeout, transport, bad body).
    The insight path always absorbs this one.
    """

    code = "external_service_failure"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if status_code is not None:
            ctx["upstreamStatus"] = status_code
        super().__init__(message, ctx)
        self.status_code = status_code


class EmptyDatasetError(FarmtraceError):
    """Fleet aggregation requested with zero entities."""

    code = "empty_dataset"
