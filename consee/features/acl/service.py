"""ACL service: tokens, policies and roles with Consee's bookkeeping rules.

Rules enforced on top of Consul:
- Every token managed here has a unique name, stored as an id/name mapping
  plus a metadata record (see ``AdminService``).
- A token created in ``exclusive`` mode owns a policy named
  ``--<accessorId>``. That policy is created and deleted with the token and
  can not be created, updated, deleted or attached through the normal
  policy and token operations.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
import uuid

from consee.core.constants import (
    POLICY_NAME_GLOBAL_MANAGEMENT,
    TOKEN_ID_NAME_PREFIX,
    exclusive_policy_name,
    is_exclusive_policy_name,
)
from consee.core.exceptions import (
    DomainError,
    DomainErrorCode,
    admin_permission_denied,
    already_exists,
    failed_to_parse,
    invalid_input,
    not_found,
    not_implemented,
    permission_denied,
    unknown_error,
)
from consee.core.responses import call_consul, ensure_ok, is_missing
from consee.features.admin.schemas import TokenMetadata
from consee.infra.consul import ACLLink as ConsulLink
from consee.infra.consul import ACLPolicy, ACLRole, ACLToken, ConsulTransportError, TokenFilter

from .hcl import HCLRuleError, parse_rules
from .schemas import (
    ACLLink,
    CreatePolicyRequest,
    CreateRoleRequest,
    CreateTokenRequest,
    HandleTokenApplicationRequest,
    PolicyMode,
    ReadPolicyResponse,
    ReadRoleResponse,
    ReadTokenResponse,
    TokenApplicationRequest,
    TokenApplicationResponse,
    UpdateRoleRequest,
    UpdateTokenRequest,
    ValidateHCLRulesResponse,
)

if TYPE_CHECKING:
    from consee.core.repositories import ACLRepository
    from consee.features.admin.service import AdminService

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_NAME_PREFIX = "consee-token-"


def _links(links: list[ConsulLink]) -> list[ACLLink]:
    return [ACLLink(id=link.id, name=link.name) for link in links]


def owns_exclusive_policy(policies: list[ConsulLink] | list[ACLLink]) -> bool:
    """True when the only attached policy is an exclusive one."""
    return len(policies) == 1 and is_exclusive_policy_name(policies[0].name)


class ACLService:
    """Token, policy and role operations on behalf of one caller.

    Args:
        acl: ACL repository bound to the caller's token.
        admin: Metadata service used for names and metadata.
    """

    def __init__(self, acl: ACLRepository, admin: AdminService) -> None:
        self._acl = acl
        self._admin = admin

    # ──────────────────────────────────────────────────────────────
    # Caller checks
    # ──────────────────────────────────────────────────────────────

    async def _read_self(self, action: str) -> ACLToken:
        resp = await call_consul(self._acl.read_self(), action)
        if is_missing(resp):
            raise not_found("token not found")
        if resp.status == 403:
            raise permission_denied()
        if resp.error is not None or resp.body is None:
            logger.error("Failed to parse self token response", extra={"action": action, "error": resp.error})
            raise failed_to_parse()
        return resp.body

    async def validate_token(self) -> ACLToken:
        """Check that the caller's token exists and return it."""
        return await self._read_self("read self during token validation")

    async def check_admin(self) -> ACLToken:
        """Check that the caller's token holds the global-management policy.

        Raises:
            DomainError: NOT_FOUND for an unknown token, PERMISSION_DENIED
                when the policy is not attached.
        """
        token = await self._read_self("read self during admin check")
        if any(p.name == POLICY_NAME_GLOBAL_MANAGEMENT for p in token.policies):
            return token
        raise permission_denied()

    async def _actor(self) -> str:
        """Describe the caller as ``<accessorId> (<name>)`` for metadata."""
        resp = await call_consul(self._acl.read_self(), "read self")
        if resp.status != 200 or resp.body is None:
            raise unknown_error()
        accessor_id = resp.body.accessor_id
        try:
            name = await self._admin.get_token_name(accessor_id)
        except DomainError:
            name = ""
        return f"{accessor_id} ({name or 'unknown'})"

    # ──────────────────────────────────────────────────────────────
    # Tokens
    # ──────────────────────────────────────────────────────────────

    async def list_tokens(self) -> list[ACLLink]:
        """List the tokens managed by Consee, from the id/name mapping."""
        resp = await call_consul(self._admin.repository.kv.list(TOKEN_ID_NAME_PREFIX), "list tokens")
        if resp.status == 404:
            return []
        ensure_ok(resp, forbidden=admin_permission_denied())
        return [
            ACLLink(id=pair.key[len(TOKEN_ID_NAME_PREFIX) :], name=pair.value.decode())
            for pair in resp.body or []
        ]

    async def fetch_token(self, accessor_id: str) -> ACLToken:
        resp = await call_consul(self._acl.read_token(accessor_id), "read token", accessor_id=accessor_id)
        ensure_ok(resp, missing="token not found")
        if resp.body is None:
            raise failed_to_parse()
        return resp.body

    async def read_token(self, accessor_id: str) -> ReadTokenResponse:
        token = await self.fetch_token(accessor_id)
        name = await self._admin.get_token_name(accessor_id)
        metadata = await self._admin.get_token_metadata(accessor_id)
        return ReadTokenResponse(
            accessor_id=token.accessor_id,
            secret_id=token.secret_id,
            policies=_links(token.policies),
            roles=_links(token.roles),
            name=name,
            metadata=metadata,
        )

    async def _ensure_token_is_new(self, req: CreateTokenRequest) -> None:
        if req.accessor_id:
            try:
                if await self._admin.get_token_name(req.accessor_id):
                    raise already_exists("token accessor id already exists")
            except DomainError as e:
                if e.code == DomainErrorCode.ALREADY_EXISTS:
                    raise
        if req.name:
            try:
                if await self._admin.get_token_id_by_name(req.name):
                    raise already_exists("token name already exists")
            except DomainError as e:
                if e.code == DomainErrorCode.ALREADY_EXISTS:
                    raise
        if req.secret_id:
            resp = await call_consul(self._acl.read_self_with(req.secret_id), "check secret id")
            if resp.status == 200 or resp.body is not None:
                raise already_exists("token secret id already exists")

    async def fetch_policy(self, name: str) -> ACLPolicy:
        resp = await call_consul(self._acl.read_policy_by_name(name), "read policy", policy=name)
        ensure_ok(resp, missing="policy not found")
        if resp.body is None:
            raise failed_to_parse()
        return resp.body

    async def create_token(self, req: CreateTokenRequest) -> ACLLink:
        """Create a token, its id/name mapping and its metadata.

        Raises:
            DomainError: ALREADY_EXISTS for a taken accessor id, name or
                secret id; INVALID_INPUT for an unknown policy mode or an
                exclusive policy requested in common mode.
        """
        await self._ensure_token_is_new(req)
        if req.policy_mode not in {m.value for m in PolicyMode}:
            raise invalid_input("invalid policy mode")

        actor = await self._actor()
        accessor_id = req.accessor_id or str(uuid.uuid4())
        secret_id = req.secret_id or str(uuid.uuid4())

        if req.policy_mode == PolicyMode.EXCLUSIVE:
            await self._create_exclusive_token(accessor_id, secret_id, req.rules)
        else:
            for name in req.policies:
                policy = await self.fetch_policy(name)
                if is_exclusive_policy_name(policy.name):
                    raise invalid_input(f"policy {policy.name} is exclusive")
            token = ACLToken(
                accessor_id=accessor_id,
                secret_id=secret_id,
                policies=[ConsulLink(name=name) for name in req.policies],
                roles=[ConsulLink(id=role_id) for role_id in req.roles],
            )
            resp = await call_consul(self._acl.create_token(token), "create token")
            ensure_ok(resp)

        name = req.name or DEFAULT_TOKEN_NAME_PREFIX + accessor_id
        await self._admin.write_id_name_mapping(accessor_id, name)
        await self._admin.write_token_metadata(accessor_id, TokenMetadata.fresh(actor))
        logger.info("Token created", extra={"accessor_id": accessor_id, "token_name": name, "mode": req.policy_mode})
        return ACLLink(id=accessor_id, name=name)

    async def _create_exclusive_token(self, accessor_id: str, secret_id: str, rules: str) -> None:
        policy = ACLPolicy(
            name=exclusive_policy_name(accessor_id),
            description="exclusive policy of token" + accessor_id,
            rules=rules,
        )
        resp = await call_consul(self._acl.create_policy(policy), "create exclusive policy")
        ensure_ok(resp)
        if resp.body is None:
            raise unknown_error()
        created = resp.body

        token = ACLToken(accessor_id=accessor_id, secret_id=secret_id, policies=[ConsulLink(id=created.id)])
        token_resp = await call_consul(self._acl.create_token(token), "create token")
        if token_resp.status != 200:
            # Do not leave an exclusive policy without its token
            try:
                await self._acl.delete_policy(created.id)
            except ConsulTransportError as e:
                logger.warning(
                    "Failed to remove orphaned exclusive policy",
                    extra={"policy_id": created.id, "error": str(e)},
                )
        ensure_ok(token_resp)

    async def update_token(self, accessor_id: str, req: UpdateTokenRequest) -> None:
        """Replace the policies and roles of a common token.

        Raises:
            DomainError: PERMISSION_DENIED when the token owns an exclusive
                policy or an exclusive policy is requested.
        """
        token = await self.fetch_token(accessor_id)
        if owns_exclusive_policy(token.policies):
            raise DomainError(DomainErrorCode.PERMISSION_DENIED, "token has an exclusive policy")
        for name in req.policies:
            policy = await self.fetch_policy(name)
            if is_exclusive_policy_name(policy.name):
                raise DomainError(DomainErrorCode.PERMISSION_DENIED, f"policy {policy.name} is exclusive")

        updated = ACLToken(
            accessor_id=accessor_id,
            description=token.description,
            policies=[ConsulLink(name=name) for name in req.policies],
            roles=[ConsulLink(id=role_id) for role_id in req.roles],
        )
        resp = await call_consul(self._acl.update_token(updated), "update token", accessor_id=accessor_id)
        ensure_ok(resp)

        metadata = await self._admin.get_token_metadata(accessor_id)
        await self._admin.write_token_metadata(accessor_id, metadata.touched(await self._actor()))

    async def delete_token(self, accessor_id: str) -> None:
        """Delete a token with its bookkeeping and its exclusive policy."""
        current = await self.read_token(accessor_id)
        resp = await call_consul(self._acl.delete_token(accessor_id), "delete token", accessor_id=accessor_id)
        ensure_ok(resp)
        await self._admin.delete_token_metadata(current.accessor_id, current.name)
        if owns_exclusive_policy(current.policies):
            policy_id = current.policies[0].id
            try:
                await self._acl.delete_policy(policy_id)
            except ConsulTransportError as e:
                logger.warning("Failed to delete exclusive policy", extra={"policy_id": policy_id, "error": str(e)})
        logger.info("Token deleted", extra={"accessor_id": accessor_id})

    async def create_token_application_request(self, req: TokenApplicationRequest) -> TokenApplicationResponse:
        raise not_implemented()

    async def review_token_application_request(self, request_id: str, req: HandleTokenApplicationRequest) -> None:
        raise not_implemented()

    # ──────────────────────────────────────────────────────────────
    # Policies
    # ──────────────────────────────────────────────────────────────

    @staticmethod
    def validate_hcl_rules(rules: str) -> ValidateHCLRulesResponse:
        """Parse rules without touching Consul; never raises."""
        try:
            parsed = parse_rules(rules)
        except HCLRuleError as e:
            return ValidateHCLRulesResponse(valid=False, unparsed=rules, error=str(e))
        return ValidateHCLRulesResponse(valid=True, parsed=parsed)

    async def list_policies(self, exclusive: str = "") -> list[ACLLink]:
        """List policies sorted by name.

        Args:
            exclusive: ``"1"`` for exclusive policies only, ``"0"`` for the
                others, anything else for all of them.
        """
        resp = await call_consul(self._acl.list_policies(), "list policies")
        ensure_ok(resp)
        policies = []
        for policy in resp.body or []:
            is_exclusive = is_exclusive_policy_name(policy.name)
            if (exclusive == "0" and is_exclusive) or (exclusive == "1" and not is_exclusive):
                continue
            policies.append(ACLLink(id=policy.id, name=policy.name))
        return sorted(policies, key=lambda link: link.name)

    async def _policy_tokens(self, policy_id: str) -> list[ACLLink]:
        resp = await call_consul(
            self._acl.list_tokens(TokenFilter(policy=policy_id)), "list policy tokens", policy_id=policy_id
        )
        ensure_ok(resp)
        tokens = []
        for token in resp.body or []:
            try:
                name = await self._admin.get_token_name(token.accessor_id)
            except DomainError as e:
                # Tokens created outside Consee have no recorded name
                if not e.is_not_found:
                    raise
                name = ""
            tokens.append(ACLLink(id=token.accessor_id, name=name))
        return tokens

    async def read_policy(self, name: str) -> ReadPolicyResponse:
        """Read a policy by name with its parsed rules and the tokens using it."""
        policy = await self.fetch_policy(name)
        try:
            parsed = parse_rules(policy.rules)
        except HCLRuleError as e:
            logger.error("Failed to parse policy rules", extra={"policy": name, "error": str(e)})
            parsed = []
        return ReadPolicyResponse(
            id=policy.id,
            name=policy.name,
            description=policy.description,
            parsed_rules=parsed,
            rules=policy.rules,
            tokens=await self._policy_tokens(policy.id),
        )

    async def create_policy(self, req: CreatePolicyRequest) -> ACLLink:
        if is_exclusive_policy_name(req.name):
            raise invalid_input("exclusive policy can not be created separately")
        if not req.name:
            raise invalid_input("policy name is required")
        try:
            parse_rules(req.rules)
        except HCLRuleError as e:
            raise invalid_input(f"invalid HCL rules: {e}") from e

        existing = await call_consul(self._acl.read_policy_by_name(req.name), "read policy", policy=req.name)
        if existing.status == 403 and not is_missing(existing):
            raise permission_denied()
        if existing.body is not None:
            raise already_exists("policy name already exists")

        policy = ACLPolicy(name=req.name, description=req.description, rules=req.rules)
        resp = await call_consul(self._acl.create_policy(policy), "create policy", policy=req.name)
        ensure_ok(resp)
        if resp.body is None:
            raise unknown_error()
        logger.info("Policy created", extra={"policy": req.name})
        return ACLLink(id=resp.body.id, name=resp.body.name)

    async def update_policy_rule(self, name: str, rules: str) -> None:
        """Replace the rules of a policy after validating them."""
        policy = await self.fetch_policy(name)
        if is_exclusive_policy_name(policy.name):
            raise DomainError(DomainErrorCode.PERMISSION_DENIED, "exclusive policy can not be updated separately")
        try:
            parse_rules(rules)
        except HCLRuleError as e:
            raise invalid_input(f"invalid HCL rules: {e}") from e

        policy.rules = rules
        resp = await call_consul(self._acl.update_policy(policy), "update policy", policy=name)
        ensure_ok(resp, missing="policy not found during update")

    async def delete_policy(self, name: str) -> None:
        policy = await self.fetch_policy(name)
        if is_exclusive_policy_name(policy.name):
            raise DomainError(DomainErrorCode.PERMISSION_DENIED, "exclusive policy can not be deleted separately")
        resp = await call_consul(self._acl.delete_policy(policy.id), "delete policy", policy=name)
        ensure_ok(resp, missing="policy not found")
        logger.info("Policy deleted", extra={"policy": name})

    # ──────────────────────────────────────────────────────────────
    # Roles
    # ──────────────────────────────────────────────────────────────

    async def _role(self, name: str) -> ACLRole:
        resp = await call_consul(self._acl.read_role_by_name(name), "read role", role=name)
        ensure_ok(resp, missing="role not found")
        if resp.body is None:
            raise failed_to_parse()
        return resp.body

    async def _common_policy_links(self, names: list[str]) -> list[ConsulLink]:
        for name in names:
            if is_exclusive_policy_name(name):
                raise invalid_input(f"policy {name} is exclusive")
        return [ConsulLink(name=name) for name in names]

    async def list_roles(self) -> list[ACLLink]:
        resp = await call_consul(self._acl.list_roles(), "list roles")
        ensure_ok(resp)
        return sorted((ACLLink(id=r.id, name=r.name) for r in resp.body or []), key=lambda link: link.name)

    async def read_role(self, name: str) -> ReadRoleResponse:
        role = await self._role(name)
        return ReadRoleResponse(
            id=role.id,
            name=role.name,
            description=role.description,
            policies=_links(role.policies),
        )

    async def create_role(self, req: CreateRoleRequest) -> ACLLink:
        if not req.name:
            raise invalid_input("role name is required")
        existing = await call_consul(self._acl.read_role_by_name(req.name), "read role", role=req.name)
        if existing.body is not None:
            raise already_exists("role name already exists")

        role = ACLRole(
            name=req.name,
            description=req.description,
            policies=await self._common_policy_links(req.policies),
        )
        resp = await call_consul(self._acl.create_role(role), "create role", role=req.name)
        ensure_ok(resp)
        if resp.body is None:
            raise unknown_error()
        return ACLLink(id=resp.body.id, name=resp.body.name)

    async def update_role(self, name: str, req: UpdateRoleRequest) -> None:
        role = await self._role(name)
        role.policies = await self._common_policy_links(req.policies)
        resp = await call_consul(self._acl.update_role(role), "update role", role=name)
        ensure_ok(resp, missing="role not found")

    async def delete_role(self, name: str) -> None:
        role = await self._role(name)
        resp = await call_consul(self._acl.delete_role(role.id), "delete role", role=name)
        ensure_ok(resp, missing="role not found")
