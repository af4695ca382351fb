"""Pydantic schemas for tokens, policies and roles."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, model_serializer

from consee.features.admin.schemas import TokenMetadata

# Rule types carried as a plain attribute: acl = "write"
SINGLE_VALUE_RULE_TYPES = frozenset({"acl", "keyring", "mesh", "operator", "peering"})


class ACLLink(BaseModel):
    """Identifier/name pair referencing a token, policy or role."""

    id: str = ""
    name: str = ""


class PolicyMode(StrEnum):
    DEFAULT = ""
    COMMON = "common"
    EXCLUSIVE = "exclusive"


class ParsedRule(BaseModel):
    """One rule of a policy, e.g. ``key_prefix "app/" { policy = "read" }``.

    ``match`` is ``exact`` or ``prefix`` for labeled rule types and empty for
    single-value types such as ``acl``, which are serialized without
    ``match`` and ``param``.
    """

    rtype: str
    match: str = ""
    param: str = ""
    access: str = ""

    @model_serializer
    def _serialize(self) -> dict[str, Any]:
        if self.rtype in SINGLE_VALUE_RULE_TYPES:
            return {"rtype": self.rtype, "access": self.access}
        return {"rtype": self.rtype, "access": self.access, "match": self.match, "param": self.param}


# ──────────────────────────────────────────────────────────────
# Tokens
# ──────────────────────────────────────────────────────────────


class CreateTokenRequest(BaseModel):
    """Token creation payload.

    ``policy_mode`` selects between binding existing policies (``common``,
    also the default) and creating a policy owned by the token from
    ``rules`` (``exclusive``). The mode is validated by the service.
    """

    accessor_id: str = ""
    secret_id: str = ""
    name: str = ""
    policy_mode: str = ""
    rules: str = ""
    policies: list[str] = Field(default_factory=list)
    roles: list[str] = Field(default_factory=list)


class UpdateTokenRequest(BaseModel):
    policies: list[str] = Field(default_factory=list)
    roles: list[str] = Field(default_factory=list)


class ReadTokenResponse(BaseModel):
    accessor_id: str
    secret_id: str
    policies: list[ACLLink] = Field(default_factory=list)
    roles: list[ACLLink] = Field(default_factory=list)
    name: str = ""
    metadata: TokenMetadata | None = None


class TokenApplicationRequest(BaseModel):
    accessor_id: str = ""
    secret_id: str = ""
    name: str = ""
    identifier: str = ""
    rules: str = ""


class TokenApplicationResponse(BaseModel):
    accessor_id: str = ""
    secret_id: str = ""
    name: str = ""


class HandleTokenApplicationRequest(BaseModel):
    result: str = Field(default="", description='"accept" or "reject"')
    reason: str = ""


# ──────────────────────────────────────────────────────────────
# Policies
# ──────────────────────────────────────────────────────────────


class CreatePolicyRequest(BaseModel):
    name: str = ""
    description: str = ""
    rules: str = ""


class UpdatePolicyRuleRequest(BaseModel):
    rules: str = ""


class ReadPolicyResponse(BaseModel):
    id: str
    name: str
    description: str = ""
    parsed_rules: list[ParsedRule] = Field(default_factory=list)
    rules: str = ""
    tokens: list[ACLLink] = Field(default_factory=list)


class ValidateHCLRulesRequest(BaseModel):
    rules: str = ""


class ValidateHCLRulesResponse(BaseModel):
    valid: bool
    parsed: list[ParsedRule] = Field(default_factory=list)
    unparsed: str = ""
    error: str = ""


# ──────────────────────────────────────────────────────────────
# Roles
# ──────────────────────────────────────────────────────────────


class CreateRoleRequest(BaseModel):
    name: str = ""
    description: str = ""
    policies: list[str] = Field(default_factory=list)


class UpdateRoleRequest(BaseModel):
    policies: list[str] = Field(default_factory=list)


class ReadRoleResponse(BaseModel):
    id: str
    name: str
    description: str = ""
    policies: list[ACLLink] = Field(default_factory=list)
