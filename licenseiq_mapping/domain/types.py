"""
Mapping domain types: field rules, mapping content, version DTOs.

Every transformation kind is its own frozen dataclass (a tagged variant);
``FieldRule`` is the union.  Content is parsed and validated when written
(licenseiq_mapping.domain.content), so stored content is always one of
these shapes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum, unique
from typing import Any, ClassVar, Union
from uuid import UUID

from licenseiq_kernel.domain.org_context import OrgScope
from licenseiq_mapping.lifecycle import MappingStatus


@unique
class RuleKind(str, Enum):
    DIRECT = "direct"
    TRANSFORM = "transform"
    CONSTANT = "constant"
    CONCAT = "concat"
    LOOKUP = "lookup"
    RANGE = "range"


@unique
class FieldType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"


@unique
class Transform(str, Enum):
    STRIP = "strip"
    UPPER = "upper"
    LOWER = "lower"
    TO_DECIMAL = "to_decimal"
    NORMALIZE_DATE = "normalize_date"


@dataclass(frozen=True)
class DirectRule:
    """Copy ``source`` to ``target``, coerced to ``field_type``."""

    kind: ClassVar[RuleKind] = RuleKind.DIRECT

    source: str
    target: str
    field_type: FieldType = FieldType.STRING
    required: bool = False
    default: Any = None


@dataclass(frozen=True)
class TransformRule:
    """Apply a named transform to ``source`` before coercion."""

    kind: ClassVar[RuleKind] = RuleKind.TRANSFORM

    source: str
    target: str
    transform: Transform
    field_type: FieldType = FieldType.STRING
    required: bool = False


@dataclass(frozen=True)
class ConstantRule:
    """Write a fixed value to ``target``."""

    kind: ClassVar[RuleKind] = RuleKind.CONSTANT

    target: str
    value: Any


@dataclass(frozen=True)
class ConcatRule:
    """Join several source fields (skipping empty ones) into ``target``."""

    kind: ClassVar[RuleKind] = RuleKind.CONCAT

    sources: tuple[str, ...]
    target: str
    separator: str = " "


@dataclass(frozen=True)
class LookupRule:
    """
    Translate source values through a table (equals-mapping).

    Keys are compared trimmed and case-insensitively.
    """

    kind: ClassVar[RuleKind] = RuleKind.LOOKUP

    source: str
    target: str
    table: tuple[tuple[str, str], ...]
    default: str | None = None

    def lookup(self, value: str) -> str | None:
        needle = value.strip().lower()
        for key, mapped in self.table:
            if key.strip().lower() == needle:
                return mapped
        return self.default


@dataclass(frozen=True)
class RangeBand:
    """Half-open numeric interval [low, high); None is unbounded."""

    label: str
    low: Decimal | None = None
    high: Decimal | None = None

    def contains(self, value: Decimal) -> bool:
        if self.low is not None and value < self.low:
            return False
        if self.high is not None and value >= self.high:
            return False
        return True


@dataclass(frozen=True)
class RangeRule:
    """Label a numeric source value by the first band containing it."""

    kind: ClassVar[RuleKind] = RuleKind.RANGE

    source: str
    target: str
    bands: tuple[RangeBand, ...]
    default: str | None = None

    def label_for(self, value: Decimal) -> str | None:
        for band in self.bands:
            if band.contains(value):
                return band.label
        return self.default


FieldRule = Union[DirectRule, TransformRule, ConstantRule, ConcatRule, LookupRule, RangeRule]


@dataclass(frozen=True)
class MappingContent:
    """How rows of one ERP entity become rows of one LicenseIQ entity."""

    erp_system: str
    entity_type: str
    target_entity: str
    rules: tuple[FieldRule, ...]

    @property
    def targets(self) -> tuple[str, ...]:
        return tuple(rule.target for rule in self.rules)


@dataclass(frozen=True)
class MappingPatch:
    """Fields a new version may override on top of its parent."""

    mapping_name: str | None = None
    content: MappingContent | dict[str, Any] | None = None
    notes: str | None = None


@dataclass(frozen=True)
class MappingVersion:
    """Immutable snapshot of one mapping version row."""

    id: UUID
    mapping_name: str
    version: int
    status: MappingStatus
    content: MappingContent
    scope: OrgScope
    created_by_id: UUID
    parent_mapping_id: UUID | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    notes: str | None = None
    created_at: datetime | None = None

    @property
    def erp_system(self) -> str:
        return self.content.erp_system

    @property
    def entity_type(self) -> str:
        return self.content.entity_type

    @property
    def target_entity(self) -> str:
        return self.content.target_entity
