"""Tests for the mapping lifecycle table and the mapping content codec."""

from decimal import Decimal

import pytest

from licenseiq_kernel.exceptions import MappingContentError
from licenseiq_mapping.domain.content import (
    coerce_content,
    content_to_dict,
    parse_mapping_content,
)
from licenseiq_mapping.domain.types import (
    ConcatRule,
    DirectRule,
    FieldType,
    LookupRule,
    RangeRule,
)
from licenseiq_mapping.lifecycle import MappingStatus, validate_transition


class TestLifecycle:
    @pytest.mark.parametrize(
        "current,target,allowed",
        [
            (MappingStatus.DRAFT, MappingStatus.APPROVED, True),
            (MappingStatus.DRAFT, MappingStatus.DEPRECATED, True),
            (MappingStatus.APPROVED, MappingStatus.DEPRECATED, True),
            (MappingStatus.APPROVED, MappingStatus.DRAFT, False),
            (MappingStatus.DEPRECATED, MappingStatus.APPROVED, False),
            (MappingStatus.DEPRECATED, MappingStatus.DRAFT, False),
            (MappingStatus.APPROVED, MappingStatus.APPROVED, False),
        ],
    )
    def test_transitions(self, current, target, allowed):
        assert validate_transition(current, target) is allowed

    def test_accepts_plain_strings(self):
        assert validate_transition("draft", "approved")


class TestParseMappingContent:
    def test_parses_every_rule_kind(self, mapping_content):
        mapping_content["rules"].extend([
            {"kind": "concat", "sources": ["FIRST", "LAST"], "target": "licensee"},
            {
                "kind": "range", "source": "NETWR", "target": "tier",
                "bands": [{"label": "small", "high": "1000"}, {"label": "large", "low": "1000"}],
            },
        ])
        content = parse_mapping_content(mapping_content)

        assert content.erp_system == "sap"
        assert content.target_entity == "sales_record"
        kinds = [type(r) for r in content.rules]
        assert kinds[0] is DirectRule and kinds[-1] is RangeRule
        assert isinstance(content.rules[-2], ConcatRule)
        assert content.rules[1].field_type == FieldType.INTEGER

    def test_lookup_is_case_insensitive(self, mapping_content):
        content = parse_mapping_content(mapping_content)
        lookup = next(r for r in content.rules if isinstance(r, LookupRule))
        assert lookup.lookup(" na ") == "North America"
        assert lookup.lookup("APAC") == "Other"

    def test_range_bands_half_open(self):
        content = parse_mapping_content({
            "erp_system": "sap", "entity_type": "sales_order", "target_entity": "sales_record",
            "rules": [{
                "kind": "range", "source": "NETWR", "target": "tier",
                "bands": [{"label": "small", "high": "1000"}, {"label": "large", "low": "1000"}],
            }],
        })
        rule = content.rules[0]
        assert rule.label_for(Decimal("999.99")) == "small"
        assert rule.label_for(Decimal("1000")) == "large"

    def test_collects_every_problem(self):
        with pytest.raises(MappingContentError) as exc_info:
            parse_mapping_content({
                "erp_system": "",
                "entity_type": "sales_order",
                "rules": [
                    {"kind": "direct", "target": "a"},
                    {"kind": "teleport", "source": "x", "target": "b"},
                    {"kind": "constant", "target": "c"},
                ],
            })
        errors = exc_info.value.errors
        assert len(errors) >= 5
        assert any("erp_system" in e for e in errors)
        assert any("target_entity" in e for e in errors)
        assert any(e.startswith("rules[1]") for e in errors)

    def test_duplicate_targets_rejected(self, mapping_content):
        mapping_content["rules"].append({"kind": "constant", "target": "currency", "value": "EUR"})
        with pytest.raises(MappingContentError) as exc_info:
            parse_mapping_content(mapping_content)
        assert any("currency" in e for e in exc_info.value.errors)

    def test_unknown_rule_keys_rejected(self, mapping_content):
        mapping_content["rules"][0]["expression"] = "1 + 1"
        with pytest.raises(MappingContentError):
            parse_mapping_content(mapping_content)

    def test_overlapping_bands_rejected(self):
        with pytest.raises(MappingContentError):
            parse_mapping_content({
                "erp_system": "sap", "entity_type": "e", "target_entity": "t",
                "rules": [{
                    "kind": "range", "source": "v", "target": "tier",
                    "bands": [{"label": "a", "high": "10"}, {"label": "b", "low": "5"}],
                }],
            })

    def test_empty_rules_rejected(self):
        with pytest.raises(MappingContentError):
            parse_mapping_content(
                {"erp_system": "sap", "entity_type": "e", "target_entity": "t", "rules": []}
            )

    def test_non_object_rejected(self):
        with pytest.raises(MappingContentError):
            parse_mapping_content(["rules"])


class TestContentToDict:
    def test_stored_form_parses_back_to_same_content(self, mapping_content):
        content = parse_mapping_content(mapping_content)
        assert parse_mapping_content(content_to_dict(content)) == content

    def test_coerce_passes_parsed_content_through(self, mapping_content):
        content = parse_mapping_content(mapping_content)
        assert coerce_content(content) is content
