"""
Shared value objects that cross package boundaries.

ValidationError is the data form of a problem found while validating input
(mapping rules, transformed rows, filter conditions).  It is never raised;
exceptions.InputValidationError is the raised form.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ValidationError:
    """
    A single validation error.

    Contract:
        Carries a machine-readable code, human-readable message, optional
        field path, and optional details dict.

    Non-goals:
        - Does NOT raise exceptions -- it IS the error representation.
    """

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.field is not None:
            data["field"] = self.field
        if self.details:
            data["details"] = dict(self.details)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ValidationError":
        return cls(
            code=data["code"],
            message=data["message"],
            field=data.get("field"),
            details=data.get("details"),
        )
