"""Mapping domain: rule variants, content codec, version DTOs."""

from licenseiq_mapping.domain.content import (
    coerce_content,
    content_to_dict,
    parse_mapping_content,
)
from licenseiq_mapping.domain.types import (
    ConcatRule,
    ConstantRule,
    DirectRule,
    FieldRule,
    FieldType,
    LookupRule,
    MappingContent,
    MappingPatch,
    MappingVersion,
    RangeBand,
    RangeRule,
    RuleKind,
    Transform,
    TransformRule,
)

__all__ = [
    "ConcatRule",
    "ConstantRule",
    "DirectRule",
    "FieldRule",
    "FieldType",
    "LookupRule",
    "MappingContent",
    "MappingPatch",
    "MappingVersion",
    "RangeBand",
    "RangeRule",
    "RuleKind",
    "Transform",
    "TransformRule",
    "coerce_content",
    "content_to_dict",
    "parse_mapping_content",
]
