"""Error taxonomy for the aggregation layer and the handler that turns
unexpected failures into a user-facing payload.

Not-found, validation, referential-conflict and permission errors are
surfaced to callers as-is. Store failures (`DatastoreError` and its
subclasses) and anything unexpected go through `ErrorHandler`, which logs
the traceback and returns a generic message.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class BackOfficeError(Exception):
    """Base class for all errors raised by this package."""


class NotFoundError(BackOfficeError):
    def __init__(self, collection: str, key: str, message: Optional[str] = None) -> None:
        self.collection = collection
        self.key = key
        super().__init__(message or f"{collection} record '{key}' not found")


@dataclass
class FormValidationError(BackOfficeError):
    """Raised before any write when a submission fails validation.

    Attributes:
        field_errors: mapping of field name -> human-readable error message.
        message: optional top-level message.
    """

    field_errors: Dict[str, str] = field(default_factory=dict)
    message: str = "Validation failed"

    def __str__(self) -> str:
        return self.message


class ReferentialConflictError(BackOfficeError):
    """A delete was refused because another record still points at the target."""

    def __init__(self, collection: str, key: str, referenced_by: str, message: Optional[str] = None) -> None:
        self.collection = collection
        self.key = key
        self.referenced_by = referenced_by
        super().__init__(
            message
            or f"{collection} record '{key}' is linked to existing {referenced_by} and cannot be deleted."
        )


class PermissionDeniedError(BackOfficeError):
    def __init__(self, role: Optional[str], action: str) -> None:
        self.role = role
        self.action = action
        super().__init__(f"Role '{role or 'none'}' may not {action}")


# --------------------------------------------------------------------------- #
# Datastore failures
# --------------------------------------------------------------------------- #
class DatastoreError(BackOfficeError):
    """Transport or datastore-level failure."""


class InvalidQueryError(DatastoreError):
    """The store cannot execute the query as composed."""


class DocumentExistsError(DatastoreError):
    def __init__(self, collection: str, key: str) -> None:
        self.collection = collection
        self.key = key
        super().__init__(f"Document {collection}/{key} already exists")


class DocumentMissingError(DatastoreError):
    def __init__(self, collection: str, key: str) -> None:
        self.collection = collection
        self.key = key
        super().__init__(f"Document {collection}/{key} does not exist")


class UniqueConstraintViolation(DatastoreError):
    def __init__(self, constraint: str, value: Any) -> None:
        self.constraint = constraint
        self.value = value
        super().__init__(f"Unique constraint '{constraint}' violated for {value!r}")


class ErrorHandler:
    GENERIC_MESSAGE = "The request could not be completed. Please try again later."

    def handle_exception(self, exc: Exception, context: Dict[str, Any] = None) -> Dict[str, Any]:
        logger.error("Unhandled exception in back-office request: %s", exc, exc_info=True)
        return {
            "message": self.GENERIC_MESSAGE,
            "fallback": True,
            "metadata": {"error": str(exc), "error_type": type(exc).__name__, "context": context or {}},
        }
