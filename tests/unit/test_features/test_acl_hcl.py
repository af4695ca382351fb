"""Tests for HCL policy rule parsing."""

from __future__ import annotations

import pytest

from consee.features.acl.hcl import HCLRuleError, parse_rules
from consee.features.acl.schemas import ParsedRule
from consee.features.acl.service import ACLService

RULES = """
key_prefix "app/" {
  policy = "write"
}

key "app/config" {
  policy = "read"
}

service_prefix "web" {
  policy = "read"
}

acl = "read"
"""


def test_parse_and_sort():
    rules = parse_rules(RULES)

    assert rules == [
        ParsedRule(rtype="acl", access="read"),
        ParsedRule(rtype="key", match="exact", param="app/config", access="read"),
        ParsedRule(rtype="key", match="prefix", param="app/", access="write"),
        ParsedRule(rtype="service", match="prefix", param="web", access="read"),
    ]


def test_sorted_by_param_within_type():
    rules = parse_rules('key "a" {\n  policy = "deny"\n}\nkey "b" {\n  policy = "read"\n}\n')

    assert [rule.param for rule in rules] == ["a", "b"]


def test_empty_document():
    assert parse_rules("") == []
    assert parse_rules("   \n") == []


def test_unknown_rule_types_ignored():
    assert parse_rules('foo "bar" {\n  policy = "read"\n}\n') == []


def test_missing_policy_argument():
    with pytest.raises(HCLRuleError, match="policy"):
        parse_rules('key "a" {\n}\n')


def test_invalid_hcl():
    with pytest.raises(HCLRuleError):
        parse_rules('key_prefix "app/" {\n  policy = \n')


def test_single_value_rule_serialized_without_match():
    assert ParsedRule(rtype="operator", access="write").model_dump() == {"rtype": "operator", "access": "write"}
    assert ParsedRule(rtype="key", match="exact", param="a", access="read").model_dump() == {
        "rtype": "key",
        "access": "read",
        "match": "exact",
        "param": "a",
    }


def test_validate_hcl_rules_never_raises():
    bad = ACLService.validate_hcl_rules("key {")
    good = ACLService.validate_hcl_rules('node_prefix "" {\n  policy = "read"\n}\n')

    assert not bad.valid
    assert bad.unparsed == "key {"
    assert bad.error
    assert good.valid
    assert good.parsed[0].rtype == "node"
