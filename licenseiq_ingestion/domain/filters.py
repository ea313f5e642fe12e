"""
Pre-import filter engine: declarative row predicates evaluated before staging.

A FilterConfig is a list of conditions combined with a single AND/OR logic.
Evaluation is pure; rows are plain dicts as delivered by the caller.

Comparison rules:
    text     trimmed and lowercased on both sides
    number   parsed after stripping ',', '$' and whitespace; unparseable -> no match
    date     ISO and common US/EU formats; equality compares the calendar day
    boolean  true/1/yes/y/on are true, anything else is false
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable

from licenseiq_kernel.exceptions import FilterConfigError


class FilterOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"
    BETWEEN = "between"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    IN = "in"
    NOT_IN = "not_in"


class FilterDataType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"


class FilterLogic(str, Enum):
    AND = "AND"
    OR = "OR"


_TRUE_VALUES = frozenset({"true", "1", "yes", "y", "on"})
_DETECT_BOOL_VALUES = frozenset({"true", "false", "yes", "no", "1", "0"})
_NUMBER_NOISE = re.compile(r"[,$\s]")
_DATE_SHAPE = re.compile(r"\d{4}[-/]\d{1,2}[-/]\d{1,2}|\d{1,2}[-/]\d{1,2}[-/]\d{4}")
_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%d/%m/%Y")


@dataclass(frozen=True)
class FilterCondition:
    field: str
    operator: FilterOperator
    value: Any = None
    value_end: Any = None
    data_type: FilterDataType = FilterDataType.TEXT


@dataclass(frozen=True)
class FilterConfig:
    conditions: tuple[FilterCondition, ...] = ()
    logic: FilterLogic = FilterLogic.AND
    api_query_params: dict[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.conditions


@dataclass(frozen=True)
class FilterStats:
    total_records: int
    matched_records: int
    filtered_out_records: int
    conditions_applied: int


@dataclass(frozen=True)
class FilterOutcome:
    matched: list[dict[str, Any]]
    stats: FilterStats


@dataclass(frozen=True)
class DetectedField:
    name: str
    detected_type: FilterDataType


# -----------------------------------------------------------------------------
# Value parsing (pure)
# -----------------------------------------------------------------------------


def _normalize(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def _parse_number(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, Decimal)):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    cleaned = _NUMBER_NOISE.sub("", str(value))
    if not cleaned:
        return None
    try:
        number = Decimal(cleaned)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def _parse_date(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _is_true(value: Any) -> bool:
    return _normalize(value) in _TRUE_VALUES


def _split_list(value: Any) -> list[str]:
    return [part.strip().lower() for part in str(value).split(",")]


# -----------------------------------------------------------------------------
# Condition evaluation
# -----------------------------------------------------------------------------


def _compare_ordered(condition: FilterCondition, field_value: Any) -> bool:
    op = condition.operator
    parse = _parse_date if condition.data_type == FilterDataType.DATE else _parse_number
    left = parse(field_value)
    right = parse(condition.value)
    if left is None or right is None:
        return False
    if op == FilterOperator.GREATER_THAN:
        return left > right
    if op == FilterOperator.LESS_THAN:
        return left < right
    if op == FilterOperator.GREATER_THAN_OR_EQUAL:
        return left >= right
    if op == FilterOperator.LESS_THAN_OR_EQUAL:
        return left <= right
    end = parse(condition.value_end)
    if end is None:
        return False
    return right <= left <= end


def _equals(condition: FilterCondition, field_value: Any) -> bool | None:
    """None means "unparseable" for typed comparisons."""
    if condition.data_type == FilterDataType.NUMBER:
        left, right = _parse_number(field_value), _parse_number(condition.value)
        if left is None or right is None:
            return None
        return left == right
    if condition.data_type == FilterDataType.DATE:
        left, right = _parse_date(field_value), _parse_date(condition.value)
        if left is None or right is None:
            return None
        return left.date() == right.date()
    if condition.data_type == FilterDataType.BOOLEAN:
        return _is_true(field_value) == _is_true(condition.value)
    return _normalize(field_value) == _normalize(condition.value)


def evaluate_condition(row: dict[str, Any], condition: FilterCondition) -> bool:
    """Evaluate one condition against one row. Pure function."""
    field_value = row.get(condition.field)
    op = condition.operator

    if op == FilterOperator.EQUALS:
        return _equals(condition, field_value) is True
    if op == FilterOperator.NOT_EQUALS:
        return _equals(condition, field_value) is not True

    if op == FilterOperator.CONTAINS:
        return _normalize(condition.value) in _normalize(field_value)
    if op == FilterOperator.NOT_CONTAINS:
        return _normalize(condition.value) not in _normalize(field_value)
    if op == FilterOperator.STARTS_WITH:
        return _normalize(field_value).startswith(_normalize(condition.value))
    if op == FilterOperator.ENDS_WITH:
        return _normalize(field_value).endswith(_normalize(condition.value))

    if op == FilterOperator.IS_EMPTY:
        return field_value is None or str(field_value).strip() == ""
    if op == FilterOperator.IS_NOT_EMPTY:
        return field_value is not None and str(field_value).strip() != ""

    if op == FilterOperator.IN:
        return _normalize(field_value) in _split_list(condition.value)
    if op == FilterOperator.NOT_IN:
        return _normalize(field_value) not in _split_list(condition.value)

    return _compare_ordered(condition, field_value)


def row_matches(row: dict[str, Any], config: FilterConfig) -> bool:
    if config.is_empty:
        return True
    results = (evaluate_condition(row, c) for c in config.conditions)
    if config.logic == FilterLogic.OR:
        return any(results)
    return all(results)


def filter_rows(
    rows: Iterable[dict[str, Any]],
    config: FilterConfig | dict[str, Any] | None,
) -> FilterOutcome:
    """
    Apply ``config`` to ``rows``, keeping input order.

    A None or condition-free config matches every row.
    """
    rows = list(rows)
    if config is not None and not isinstance(config, FilterConfig):
        config = parse_filter_config(config)
    if config is None or config.is_empty:
        return FilterOutcome(
            matched=rows,
            stats=FilterStats(
                total_records=len(rows),
                matched_records=len(rows),
                filtered_out_records=0,
                conditions_applied=0,
            ),
        )

    matched = [row for row in rows if row_matches(row, config)]
    return FilterOutcome(
        matched=matched,
        stats=FilterStats(
            total_records=len(rows),
            matched_records=len(matched),
            filtered_out_records=len(rows) - len(matched),
            conditions_applied=len(config.conditions),
        ),
    )


# -----------------------------------------------------------------------------
# Config validation and parsing
# -----------------------------------------------------------------------------


_OPERATOR_VALUES = {op.value for op in FilterOperator}
_DATA_TYPE_VALUES = {dt.value for dt in FilterDataType}


def validate_filter_config(data: Any) -> list[str]:
    """Return every problem in a raw filter config; empty list when valid."""
    if data is None:
        return []
    if not isinstance(data, dict):
        return ["filter config must be an object"]

    errors: list[str] = []
    conditions = data.get("conditions")
    if conditions is not None and not isinstance(conditions, list):
        errors.append("conditions must be an array")

    logic = data.get("logic")
    if logic is not None and logic not in (FilterLogic.AND.value, FilterLogic.OR.value):
        errors.append('logic must be either "AND" or "OR"')

    params = data.get("api_query_params")
    if params is not None and not isinstance(params, dict):
        errors.append("api_query_params must be an object")

    if isinstance(conditions, list):
        for i, condition in enumerate(conditions, start=1):
            if not isinstance(condition, dict):
                errors.append(f"Condition {i}: must be an object")
                continue
            if not condition.get("field"):
                errors.append(f"Condition {i}: field is required")
            operator = condition.get("operator")
            if not operator:
                errors.append(f"Condition {i}: operator is required")
            elif operator not in _OPERATOR_VALUES:
                errors.append(f'Condition {i}: invalid operator "{operator}"')
            data_type = condition.get("data_type")
            if data_type is not None and data_type not in _DATA_TYPE_VALUES:
                errors.append(f'Condition {i}: invalid data_type "{data_type}"')
            if operator == FilterOperator.BETWEEN.value and condition.get("value_end") is None:
                errors.append(f'Condition {i}: "between" operator requires value_end')

    return errors


def parse_filter_config(data: Any) -> FilterConfig | None:
    """
    Validate and build a FilterConfig.

    Raises:
        FilterConfigError: listing every problem found.
    """
    errors = validate_filter_config(data)
    if errors:
        raise FilterConfigError(errors)
    if data is None:
        return None

    conditions = tuple(
        FilterCondition(
            field=c["field"],
            operator=FilterOperator(c["operator"]),
            value=c.get("value"),
            value_end=c.get("value_end"),
            data_type=FilterDataType(c.get("data_type") or FilterDataType.TEXT.value),
        )
        for c in data.get("conditions") or []
    )
    return FilterConfig(
        conditions=conditions,
        logic=FilterLogic(data.get("logic") or FilterLogic.AND.value),
        api_query_params={str(k): str(v) for k, v in (data.get("api_query_params") or {}).items()},
    )


def filter_config_to_dict(config: FilterConfig | None) -> dict[str, Any] | None:
    """JSON-safe stored form."""
    if config is None:
        return None
    data: dict[str, Any] = {
        "logic": config.logic.value,
        "conditions": [
            {
                "field": c.field,
                "operator": c.operator.value,
                "value": c.value,
                "value_end": c.value_end,
                "data_type": c.data_type.value,
            }
            for c in config.conditions
        ],
    }
    if config.api_query_params:
        data["api_query_params"] = dict(config.api_query_params)
    return data


# -----------------------------------------------------------------------------
# Helpers for pull-based sources
# -----------------------------------------------------------------------------


def build_api_query_params(
    config: FilterConfig | None,
    base_params: dict[str, str] | None = None,
) -> dict[str, str]:
    """
    Translate conditions into common query-string pushdown hints.

    Explicit ``api_query_params`` win over base params; conditions add
    ``field=value``, ``field_from`` / ``field_to`` style keys.
    """
    params = dict(base_params or {})
    if config is None:
        return params
    params.update(config.api_query_params)

    for c in config.conditions:
        if c.operator == FilterOperator.EQUALS and c.value is not None:
            params[c.field] = str(c.value)
        elif c.operator == FilterOperator.GREATER_THAN and c.data_type == FilterDataType.DATE:
            params[f"{c.field}_from"] = str(c.value)
            params[f"{c.field}_after"] = str(c.value)
        elif c.operator == FilterOperator.LESS_THAN and c.data_type == FilterDataType.DATE:
            params[f"{c.field}_to"] = str(c.value)
            params[f"{c.field}_before"] = str(c.value)
        elif c.operator == FilterOperator.BETWEEN:
            params[f"{c.field}_from"] = str(c.value)
            params[f"{c.field}_to"] = str(c.value_end)
        elif c.operator == FilterOperator.IN and c.value:
            params[c.field] = str(c.value)
    return params


def _detect_type(values: list[Any]) -> FilterDataType:
    if not values:
        return FilterDataType.TEXT
    if all(_normalize(v) in _DETECT_BOOL_VALUES for v in values):
        return FilterDataType.BOOLEAN
    if all(_DATE_SHAPE.search(str(v)) and _parse_date(v) is not None for v in values):
        return FilterDataType.DATE
    if all(_parse_number(v) is not None for v in values):
        return FilterDataType.NUMBER
    return FilterDataType.TEXT


def extract_fields_from_data(
    rows: list[dict[str, Any]],
    sample_size: int = 10,
) -> list[DetectedField]:
    """Field names in first-seen order over a sample, with a guessed type."""
    sample = rows[:sample_size]
    names: dict[str, None] = {}
    for row in sample:
        for key in row:
            names.setdefault(key, None)

    fields = []
    for name in names:
        values = [
            row[name] for row in sample
            if row.get(name) is not None and row.get(name) != ""
        ]
        fields.append(DetectedField(name=name, detected_type=_detect_type(values)))
    return fields
