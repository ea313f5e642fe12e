"""
Mapping engine: pure transformation from a raw source row to a target record.

Runs the rules of a MappingContent against one row. String values coming
from ERP extracts are coerced to the rule's field type. ZERO I/O.

The produced target record is JSON-safe (Decimal and dates as strings) so
it can be stored as-is on the ImportedRecord.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from licenseiq_kernel.domain.dtos import ValidationError
from licenseiq_mapping.domain.types import (
    ConcatRule,
    ConstantRule,
    DirectRule,
    FieldRule,
    FieldType,
    LookupRule,
    MappingContent,
    RangeRule,
    Transform,
    TransformRule,
)

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%d/%m/%Y")


# -----------------------------------------------------------------------------
# Result types
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class CoercionResult:
    """Result of coercing a value to a field type."""

    success: bool
    value: Any = None
    error: ValidationError | None = None


@dataclass(frozen=True)
class MappingResult:
    """Result of applying mapping rules to a raw row."""

    target: dict[str, Any] = field(default_factory=dict)
    errors: tuple[ValidationError, ...] = ()

    @property
    def success(self) -> bool:
        return not self.errors


# -----------------------------------------------------------------------------
# Transforms (pure)
# -----------------------------------------------------------------------------


def apply_transform(value: Any, transform: Transform) -> Any:
    """Apply a named transform. Values a transform cannot handle pass through."""
    if value is None:
        return None
    if transform == Transform.STRIP:
        return value.strip() if isinstance(value, str) else value
    if transform == Transform.UPPER:
        return value.upper() if isinstance(value, str) else value
    if transform == Transform.LOWER:
        return value.lower() if isinstance(value, str) else value
    if transform == Transform.TO_DECIMAL:
        if isinstance(value, (Decimal, int)) and not isinstance(value, bool):
            return Decimal(value)
        s = value.strip() if isinstance(value, str) else str(value)
        try:
            return Decimal(s.replace(",", ""))
        except InvalidOperation:
            return value  # coercion reports the error
    if transform == Transform.NORMALIZE_DATE:
        if isinstance(value, datetime):
            return value.date().isoformat()
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, str):
            for fmt in _DATE_FORMATS:
                try:
                    return datetime.strptime(value.strip(), fmt).date().isoformat()
                except ValueError:
                    continue
        return value
    return value


# -----------------------------------------------------------------------------
# Coercion
# -----------------------------------------------------------------------------


def _fail(code: str, message: str, target: str) -> CoercionResult:
    return CoercionResult(
        success=False, error=ValidationError(code=code, message=message, field=target)
    )


def coerce_value(value: Any, field_type: FieldType, target: str = "") -> CoercionResult:
    """
    Coerce ``value`` to ``field_type``. Pure function.

    Accepts strings (the usual ERP extract shape) as well as already-typed
    values.
    """
    if field_type == FieldType.STRING:
        if isinstance(value, str):
            return CoercionResult(success=True, value=value.strip())
        return CoercionResult(success=True, value=str(value))

    if isinstance(value, bool) and field_type != FieldType.BOOLEAN:
        return _fail("INVALID_TYPE", f"Boolean not accepted as {field_type.value}", target)

    s = value.strip() if isinstance(value, str) else value

    if field_type == FieldType.INTEGER:
        try:
            number = Decimal(str(s).replace(",", ""))
            if not number.is_finite() or number != number.to_integral_value():
                raise InvalidOperation
            return CoercionResult(success=True, value=int(number))
        except (InvalidOperation, ValueError):
            return _fail("INVALID_INTEGER", f"Cannot coerce to integer: {value!r}", target)

    if field_type == FieldType.DECIMAL:
        try:
            number = Decimal(str(s).replace(",", ""))
            if not number.is_finite():
                raise InvalidOperation
            return CoercionResult(success=True, value=number)
        except (InvalidOperation, ValueError):
            return _fail("INVALID_DECIMAL", f"Cannot coerce to decimal: {value!r}", target)

    if field_type == FieldType.BOOLEAN:
        if isinstance(s, bool):
            return CoercionResult(success=True, value=s)
        low = str(s).lower()
        if low in ("true", "yes", "y", "1", "on"):
            return CoercionResult(success=True, value=True)
        if low in ("false", "no", "n", "0", "off"):
            return CoercionResult(success=True, value=False)
        return _fail("INVALID_BOOLEAN", f"Cannot coerce to boolean: {value!r}", target)

    if field_type == FieldType.DATE:
        if isinstance(s, datetime):
            return CoercionResult(success=True, value=s.date())
        if isinstance(s, date):
            return CoercionResult(success=True, value=s)
        for fmt in _DATE_FORMATS:
            try:
                return CoercionResult(success=True, value=datetime.strptime(str(s), fmt).date())
            except ValueError:
                continue
        return _fail("INVALID_DATE_FORMAT", f"Cannot parse date: {value!r}", target)

    if field_type == FieldType.DATETIME:
        if isinstance(s, datetime):
            return CoercionResult(success=True, value=s)
        try:
            return CoercionResult(
                success=True, value=datetime.fromisoformat(str(s).replace("Z", "+00:00"))
            )
        except ValueError:
            return _fail("INVALID_DATETIME_FORMAT", f"Cannot parse datetime: {value!r}", target)

    return _fail("UNSUPPORTED_TYPE", f"Unsupported field_type: {field_type}", target)


def to_json_safe(obj: Any) -> Any:
    """Convert values to JSON-serializable form (Decimal -> str, etc.)."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, dict):
        return {k: to_json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_json_safe(v) for v in obj]
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    return obj


# -----------------------------------------------------------------------------
# Apply mapping (pure)
# -----------------------------------------------------------------------------


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _apply_rule(rule: FieldRule, row: dict[str, Any]) -> tuple[bool, Any, ValidationError | None]:
    """(has_value, value, error) for one rule."""
    if isinstance(rule, ConstantRule):
        return True, rule.value, None

    if isinstance(rule, ConcatRule):
        parts = [str(row[s]).strip() for s in rule.sources if not _is_blank(row.get(s))]
        if not parts:
            return False, None, None
        return True, rule.separator.join(parts), None

    raw = row.get(rule.source)

    if isinstance(rule, (DirectRule, TransformRule)):
        if _is_blank(raw):
            if rule.required:
                return False, None, ValidationError(
                    code="MISSING_REQUIRED_FIELD",
                    message=f"Required field {rule.source!r} is missing",
                    field=rule.target,
                )
            default = getattr(rule, "default", None)
            if default is not None:
                return True, default, None
            return False, None, None
        value = apply_transform(raw, rule.transform) if isinstance(rule, TransformRule) else raw
        coerced = coerce_value(value, rule.field_type, rule.target)
        if not coerced.success:
            return False, None, coerced.error
        return True, coerced.value, None

    if isinstance(rule, LookupRule):
        if _is_blank(raw):
            return rule.default is not None, rule.default, None
        mapped = rule.lookup(str(raw))
        return mapped is not None, mapped, None

    if isinstance(rule, RangeRule):
        if _is_blank(raw):
            return rule.default is not None, rule.default, None
        coerced = coerce_value(raw, FieldType.DECIMAL, rule.target)
        if not coerced.success:
            return False, None, coerced.error
        label = rule.label_for(coerced.value)
        return label is not None, label, None

    return False, None, ValidationError(
        code="UNSUPPORTED_RULE", message=f"Unsupported rule: {rule!r}", field=None
    )


def apply_mapping(content: MappingContent, row: dict[str, Any]) -> MappingResult:
    """
    Apply every rule of ``content`` to ``row``. Pure function.

    Errors are collected rather than raised; a row with errors still carries
    whatever targets could be produced.
    """
    if not isinstance(row, dict):
        return MappingResult(errors=(ValidationError(
            code="INVALID_ROW", message="Source row must be an object", field=None,
        ),))

    target: dict[str, Any] = {}
    errors: list[ValidationError] = []
    for rule in content.rules:
        has_value, value, error = _apply_rule(rule, row)
        if error is not None:
            errors.append(error)
        elif has_value:
            target[rule.target] = value

    return MappingResult(target=to_json_safe(target), errors=tuple(errors))
