"""
Exception -> HTTP problem mapping.

The handler layer (not part of this package) turns a raised LicenseIQError
into a response with ``problem_for``.  Missing and forbidden resources
produce the same 403 body so ids cannot be probed.
"""

from dataclasses import dataclass
from typing import Any

from licenseiq_kernel.exceptions import (
    ACCESS_DENIED_MESSAGE,
    AccessError,
    InputValidationError,
    NotFoundError,
    StateTransitionError,
)
from licenseiq_kernel.logging_config import get_logger

logger = get_logger("problems")

INTERNAL_ERROR_MESSAGE = "Internal server error"


@dataclass(frozen=True)
class Problem:
    """Problem-details style error body."""

    status: int
    code: str
    title: str
    detail: str | None = None
    errors: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "status": self.status,
            "code": self.code,
            "title": self.title,
        }
        if self.detail is not None:
            body["detail"] = self.detail
        if self.errors:
            body["errors"] = list(self.errors)
        return body


def problem_for(exc: BaseException) -> Problem:
    """Map any exception to the public error contract."""
    if isinstance(exc, (AccessError, NotFoundError)):
        return Problem(status=403, code="ACCESS_DENIED", title=ACCESS_DENIED_MESSAGE)

    if isinstance(exc, (InputValidationError, StateTransitionError)):
        errors = tuple(getattr(exc, "errors", ()) or ())
        return Problem(
            status=400,
            code=exc.code,
            title="Invalid request",
            detail=str(exc),
            errors=errors,
        )

    logger.error("unhandled_error", exc_info=exc)
    return Problem(status=500, code="INTERNAL_ERROR", title=INTERNAL_ERROR_MESSAGE)
