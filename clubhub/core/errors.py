"""
Domain error taxonomy shared by the roster, feedback and analytics services.

Every error carries a stable machine-readable ``kind``, a human message and a
``context`` dict (event/feedback id, violated constraint) so callers can decide
whether to retry or fix their input.
"""

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class for recoverable errors raised by the services"""

    kind = "domain_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "context": self.context}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, {self.context!r})"


class NotFoundError(DomainError):
    kind = "not_found"

    def __init__(self, resource: str, resource_id: Optional[str] = None, **context: Any):
        super().__init__(f"{resource} not found", resource=resource, id=resource_id, **context)


class ValidationError(DomainError):
    kind = "validation_error"

    def __init__(self, message: str, errors: Optional[list] = None, **context: Any):
        super().__init__(message, errors=errors, **context)
        self.errors = errors or []


class ForbiddenError(DomainError):
    kind = "forbidden"


class ConflictError(DomainError):
    kind = "conflict"


class UnavailableError(DomainError):
    """The action is not possible right now.

    ``retryable`` distinguishes transient store contention (retry later) from
    a state that will not change on its own (deadline passed, event closed).
    """

    kind = "unavailable"

    def __init__(self, message: str, retryable: bool = False, **context: Any):
        super().__init__(message, **context)
        self.retryable = retryable
        self.context["retryable"] = retryable


class StoreError(Exception):
    """Unrecoverable infrastructure failure of the persistence store"""

    kind = "infrastructure"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
