"""Parsing of Consul ACL policy rules written in HCL.

The HCL grammar itself is handled by ``python-hcl2``; this module only maps
the decoded document onto a flat, sorted list of ``ParsedRule``.

Example:
    >>> parse_rules('key_prefix "app/" { policy = "write" }\\nacl = "read"')
    [ParsedRule(rtype='acl', match='', param='', access='read'),
     ParsedRule(rtype='key', match='prefix', param='app/', access='write')]
"""

from __future__ import annotations

from typing import Any

import hcl2

from .schemas import SINGLE_VALUE_RULE_TYPES, ParsedRule

# Rule types carried as labeled blocks: key "foo" { policy = "read" }
LABELED_RULE_TYPES = frozenset(
    {"agent", "event", "identity", "key", "node", "query", "service", "session"}
)

_MATCH_ORDER = {"": 0, "exact": 0, "prefix": 1, "all": 2}
_ACCESS_ORDER = {"read": 0, "list": 1, "write": 2, "deny": 3}


class HCLRuleError(ValueError):
    """Raised when a rule document cannot be parsed."""


def _unquote(value: Any) -> Any:
    # Recent python-hcl2 releases keep the surrounding quotes of strings
    if isinstance(value, str) and len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def _is_meta(key: str) -> bool:
    return key.startswith("__")


def _blocks(value: Any) -> list[tuple[str, dict[str, Any]]]:
    """Flatten ``[{label: body}, ...]`` into ``(label, body)`` pairs."""
    items = value if isinstance(value, list) else [value]
    pairs: list[tuple[str, dict[str, Any]]] = []
    for item in items:
        if not isinstance(item, dict):
            raise HCLRuleError("expected a labeled block")
        for label, body in item.items():
            if _is_meta(label):
                continue
            if isinstance(body, list):
                body = body[0] if body else {}
            if not isinstance(body, dict):
                raise HCLRuleError(f"block {label} has no body")
            pairs.append((str(_unquote(label)), body))
    return pairs


def _access(body: dict[str, Any], rtype: str, label: str) -> str:
    if "policy" not in body:
        raise HCLRuleError(f'missing required argument "policy" in {rtype} "{label}"')
    access = _unquote(body["policy"])
    if not isinstance(access, str):
        raise HCLRuleError(f'argument "policy" in {rtype} "{label}" must be a string')
    return access


def sort_key(rule: ParsedRule) -> tuple[str, int, str, int]:
    """Order by type, exact before prefix, then parameter, then read < write < deny."""
    return (
        rule.rtype,
        _MATCH_ORDER.get(rule.match, 1),
        rule.param,
        _ACCESS_ORDER.get(rule.access, 2),
    )


def parse_rules(text: str) -> list[ParsedRule]:
    """Parse a policy rule document into a sorted list of rules.

    Unknown top-level attributes and blocks are ignored.

    Args:
        text: HCL source of the policy rules.

    Returns:
        Sorted rules; empty for an empty document.

    Raises:
        HCLRuleError: If the document is not valid HCL or a known rule is malformed.
    """
    if not text.strip():
        return []
    try:
        document = hcl2.loads(text)
    except Exception as e:  # the grammar library raises assorted lark errors
        raise HCLRuleError(str(e)) from e

    rules: list[ParsedRule] = []
    for raw_key, value in document.items():
        if _is_meta(raw_key):
            continue
        key = str(_unquote(raw_key))
        if key in SINGLE_VALUE_RULE_TYPES:
            access = _unquote(value[0] if isinstance(value, list) and value else value)
            if not isinstance(access, str):
                raise HCLRuleError(f'argument "{key}" must be a string')
            rules.append(ParsedRule(rtype=key, access=access))
            continue

        base, _, suffix = key.partition("_")
        if base not in LABELED_RULE_TYPES or suffix not in ("", "prefix"):
            continue
        match = "prefix" if suffix else "exact"
        for label, body in _blocks(value):
            rules.append(ParsedRule(rtype=base, match=match, param=label, access=_access(body, key, label)))

    rules.sort(key=sort_key)
    return rules
