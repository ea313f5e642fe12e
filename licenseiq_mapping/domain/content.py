"""
Mapping content codec: JSON-shaped dict <-> MappingContent.

``parse_mapping_content`` is the write-time gate.  It collects every
problem it finds and raises one MappingContentError listing them all, so a
caller can fix a rule set in one round trip.

Stored form::

    {
      "erp_system": "sap",
      "entity_type": "sales_order",
      "target_entity": "sales_record",
      "rules": [
        {"kind": "direct", "source": "VBELN", "target": "order_number",
         "field_type": "string", "required": true},
        {"kind": "range", "source": "NETWR", "target": "tier",
         "bands": [{"label": "small", "high": "1000"},
                   {"label": "large", "low": "1000"}]}
      ]
    }
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from licenseiq_kernel.exceptions import MappingContentError
from licenseiq_mapping.domain.types import (
    ConcatRule,
    ConstantRule,
    DirectRule,
    FieldRule,
    FieldType,
    LookupRule,
    MappingContent,
    RangeBand,
    RangeRule,
    RuleKind,
    Transform,
    TransformRule,
)

_REQUIRED_HEADER = ("erp_system", "entity_type", "target_entity")

_ALLOWED_KEYS: dict[RuleKind, frozenset[str]] = {
    RuleKind.DIRECT: frozenset({"kind", "source", "target", "field_type", "required", "default"}),
    RuleKind.TRANSFORM: frozenset({"kind", "source", "target", "transform", "field_type", "required"}),
    RuleKind.CONSTANT: frozenset({"kind", "target", "value"}),
    RuleKind.CONCAT: frozenset({"kind", "sources", "target", "separator"}),
    RuleKind.LOOKUP: frozenset({"kind", "source", "target", "table", "default"}),
    RuleKind.RANGE: frozenset({"kind", "source", "target", "bands", "default"}),
}


class _Collector:
    def __init__(self) -> None:
        self.errors: list[str] = []

    def add(self, where: str, message: str) -> None:
        self.errors.append(f"{where}: {message}")


def _text(raw: dict[str, Any], key: str, where: str, errs: _Collector) -> str | None:
    value = raw.get(key)
    if not isinstance(value, str) or not value.strip():
        errs.add(where, f"'{key}' must be a non-empty string")
        return None
    return value.strip()


def _enum(enum_cls: type, raw: dict[str, Any], key: str, default: Any, where: str, errs: _Collector):
    value = raw.get(key, default)
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(m.value for m in enum_cls)
        errs.add(where, f"'{key}' must be one of: {choices}")
        return None


def _decimal(value: Any, where: str, key: str, errs: _Collector) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, bool):
        errs.add(where, f"'{key}' must be a number")
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        errs.add(where, f"'{key}' must be a number")
        return None


def _parse_bands(raw: Any, where: str, errs: _Collector) -> tuple[RangeBand, ...]:
    if not isinstance(raw, list) or not raw:
        errs.add(where, "'bands' must be a non-empty list")
        return ()
    bands: list[RangeBand] = []
    for j, item in enumerate(raw):
        band_where = f"{where}.bands[{j}]"
        if not isinstance(item, dict):
            errs.add(band_where, "band must be an object")
            continue
        label = _text(item, "label", band_where, errs)
        low = _decimal(item.get("low"), band_where, "low", errs)
        high = _decimal(item.get("high"), band_where, "high", errs)
        if low is not None and high is not None and low >= high:
            errs.add(band_where, "'low' must be less than 'high'")
            continue
        if label is not None:
            bands.append(RangeBand(label=label, low=low, high=high))

    ordered = sorted(
        bands, key=lambda b: (b.low is not None, b.low if b.low is not None else 0)
    )
    for prev, nxt in zip(ordered, ordered[1:]):
        if prev.high is None or nxt.low is None or nxt.low < prev.high:
            errs.add(where, f"bands '{prev.label}' and '{nxt.label}' overlap")
    return tuple(bands)


def _parse_rule(raw: Any, where: str, errs: _Collector) -> FieldRule | None:
    if not isinstance(raw, dict):
        errs.add(where, "rule must be an object")
        return None
    kind = _enum(RuleKind, raw, "kind", None, where, errs)
    if kind is None:
        return None

    unknown = sorted(set(raw) - _ALLOWED_KEYS[kind])
    if unknown:
        errs.add(where, f"unknown keys for {kind.value} rule: {', '.join(unknown)}")

    before = len(errs.errors)
    target = _text(raw, "target", where, errs)

    if kind == RuleKind.CONSTANT:
        if "value" not in raw:
            errs.add(where, "'value' is required")
        if len(errs.errors) > before:
            return None
        return ConstantRule(target=target, value=raw["value"])

    if kind == RuleKind.CONCAT:
        sources = raw.get("sources")
        if (
            not isinstance(sources, list)
            or len(sources) < 2
            or not all(isinstance(s, str) and s.strip() for s in sources)
        ):
            errs.add(where, "'sources' must list at least two field names")
        separator = raw.get("separator", " ")
        if not isinstance(separator, str):
            errs.add(where, "'separator' must be a string")
        if len(errs.errors) > before:
            return None
        return ConcatRule(
            sources=tuple(s.strip() for s in sources), target=target, separator=separator
        )

    source = _text(raw, "source", where, errs)
    required = raw.get("required", False)
    if not isinstance(required, bool):
        errs.add(where, "'required' must be a boolean")

    if kind == RuleKind.DIRECT:
        field_type = _enum(FieldType, raw, "field_type", FieldType.STRING.value, where, errs)
        if len(errs.errors) > before:
            return None
        return DirectRule(
            source=source,
            target=target,
            field_type=field_type,
            required=required,
            default=raw.get("default"),
        )

    if kind == RuleKind.TRANSFORM:
        transform = _enum(Transform, raw, "transform", None, where, errs)
        field_type = _enum(FieldType, raw, "field_type", FieldType.STRING.value, where, errs)
        if len(errs.errors) > before:
            return None
        return TransformRule(
            source=source,
            target=target,
            transform=transform,
            field_type=field_type,
            required=required,
        )

    default = raw.get("default")
    if default is not None and not isinstance(default, str):
        errs.add(where, "'default' must be a string")

    if kind == RuleKind.LOOKUP:
        table = raw.get("table")
        if (
            not isinstance(table, dict)
            or not table
            or not all(isinstance(k, str) and isinstance(v, str) for k, v in table.items())
        ):
            errs.add(where, "'table' must be a non-empty object of string to string")
        elif len({k.strip().lower() for k in table}) != len(table):
            errs.add(where, "'table' has keys that collide when trimmed and lowercased")
        if len(errs.errors) > before:
            return None
        return LookupRule(
            source=source,
            target=target,
            table=tuple(sorted(table.items())),
            default=default,
        )

    bands = _parse_bands(raw.get("bands"), where, errs)
    if len(errs.errors) > before:
        return None
    return RangeRule(source=source, target=target, bands=bands, default=default)


def parse_mapping_content(data: Any) -> MappingContent:
    """
    Validate and parse stored/submitted mapping content.

    Raises:
        MappingContentError: listing every problem found.
    """
    errs = _Collector()
    if not isinstance(data, dict):
        raise MappingContentError(["content: must be an object"])

    header: dict[str, str | None] = {
        key: _text(data, key, "content", errs) for key in _REQUIRED_HEADER
    }

    raw_rules = data.get("rules")
    rules: list[FieldRule] = []
    if not isinstance(raw_rules, list) or not raw_rules:
        errs.add("content", "'rules' must be a non-empty list")
    else:
        seen_targets: dict[str, int] = {}
        for i, raw in enumerate(raw_rules):
            where = f"rules[{i}]"
            rule = _parse_rule(raw, where, errs)
            if rule is None:
                continue
            if rule.target in seen_targets:
                errs.add(where, f"target '{rule.target}' already written by rules[{seen_targets[rule.target]}]")
                continue
            seen_targets[rule.target] = i
            rules.append(rule)

    if errs.errors:
        raise MappingContentError(errs.errors)

    return MappingContent(
        erp_system=header["erp_system"],
        entity_type=header["entity_type"],
        target_entity=header["target_entity"],
        rules=tuple(rules),
    )


def _rule_to_dict(rule: FieldRule) -> dict[str, Any]:
    data: dict[str, Any] = {"kind": rule.kind.value, "target": rule.target}
    if isinstance(rule, DirectRule):
        data.update(source=rule.source, field_type=rule.field_type.value, required=rule.required)
        if rule.default is not None:
            data["default"] = rule.default
    elif isinstance(rule, TransformRule):
        data.update(
            source=rule.source,
            transform=rule.transform.value,
            field_type=rule.field_type.value,
            required=rule.required,
        )
    elif isinstance(rule, ConstantRule):
        data["value"] = rule.value
    elif isinstance(rule, ConcatRule):
        data.update(sources=list(rule.sources), separator=rule.separator)
    elif isinstance(rule, LookupRule):
        data.update(source=rule.source, table=dict(rule.table))
        if rule.default is not None:
            data["default"] = rule.default
    elif isinstance(rule, RangeRule):
        bands = []
        for band in rule.bands:
            item: dict[str, Any] = {"label": band.label}
            if band.low is not None:
                item["low"] = str(band.low)
            if band.high is not None:
                item["high"] = str(band.high)
            bands.append(item)
        data.update(source=rule.source, bands=bands)
        if rule.default is not None:
            data["default"] = rule.default
    return data


def content_to_dict(content: MappingContent) -> dict[str, Any]:
    """JSON-safe stored form of ``content``."""
    return {
        "erp_system": content.erp_system,
        "entity_type": content.entity_type,
        "target_entity": content.target_entity,
        "rules": [_rule_to_dict(rule) for rule in content.rules],
    }


def coerce_content(content: MappingContent | dict[str, Any]) -> MappingContent:
    """Accept either form; dicts are validated."""
    if isinstance(content, MappingContent):
        return content
    return parse_mapping_content(content)
