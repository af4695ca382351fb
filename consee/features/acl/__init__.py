"""ACL feature: tokens, policies, roles and HCL rule parsing."""

from __future__ import annotations

from .hcl import HCLRuleError, parse_rules
from .service import ACLService

__all__ = ["ACLService", "HCLRuleError", "parse_rules"]
