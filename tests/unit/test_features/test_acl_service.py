"""Tests for the ACL service, exclusive policies included."""

from __future__ import annotations

import pytest

from consee.core.constants import TOKEN_METADATA_PREFIX, exclusive_policy_name
from consee.core.exceptions import DomainError, DomainErrorCode
from consee.features.acl.schemas import (
    CreatePolicyRequest,
    CreateRoleRequest,
    CreateTokenRequest,
    UpdateRoleRequest,
    UpdateTokenRequest,
)

WEB_RULES = 'key_prefix "web/" {\n  policy = "read"\n}\n'
NEW_ACCESSOR = "12345678-1234-1234-1234-123456789abc"


@pytest.fixture
async def web_policy(acl_service):
    return await acl_service.create_policy(CreatePolicyRequest(name="web", description="web keys", rules=WEB_RULES))


@pytest.fixture
async def exclusive_token(acl_service):
    return await acl_service.create_token(
        CreateTokenRequest(accessor_id=NEW_ACCESSOR, name="solo", policy_mode="exclusive", rules=WEB_RULES)
    )


@pytest.mark.unit
class TestCallerChecks:
    async def test_validate_token(self, acl_service, admin_secret):
        token = await acl_service.validate_token()
        assert token.secret_id == admin_secret

    async def test_unknown_token(self, make_services):
        acl = make_services("00000000-0000-0000-0000-0000000000ff")[1]
        with pytest.raises(DomainError) as info:
            await acl.validate_token()
        assert info.value.code == DomainErrorCode.NOT_FOUND
        assert info.value.message == "token not found"

    async def test_token_read_refused(self, make_services, consul):
        consul.status_overrides["acl.token_read_self"] = 403
        with pytest.raises(DomainError) as info:
            await make_services()[1].validate_token()
        assert info.value.code == DomainErrorCode.PERMISSION_DENIED

    async def test_missing_token(self, make_services, consul):
        consul.status_overrides["acl.token_read_self"] = 404
        with pytest.raises(DomainError) as info:
            await make_services()[1].validate_token()
        assert info.value.message == "token not found"

    async def test_check_admin(self, acl_service, make_services, user_token):
        await acl_service.check_admin()
        with pytest.raises(DomainError) as info:
            await make_services(user_token)[1].check_admin()
        assert info.value.code == DomainErrorCode.PERMISSION_DENIED


@pytest.mark.unit
class TestTokens:
    async def test_create_common_token(self, acl_service, web_policy, consul):
        link = await acl_service.create_token(
            CreateTokenRequest(name="ci", policy_mode="common", policies=["web"])
        )

        token = await acl_service.read_token(link.id)
        assert token.name == "ci"
        assert [p.name for p in token.policies] == ["web"]
        assert token.metadata.created_by.endswith("(unknown)")
        assert TOKEN_METADATA_PREFIX + link.id in consul.kv

    async def test_default_name(self, acl_service):
        link = await acl_service.create_token(CreateTokenRequest(accessor_id=NEW_ACCESSOR))
        assert link.name == "consee-token-" + NEW_ACCESSOR

    async def test_metadata_names_initialized_actor(self, transfer_service, acl_service):
        link = await acl_service.create_token(CreateTokenRequest(name="ci"))
        token = await acl_service.read_token(link.id)
        assert token.metadata.created_by.endswith("(consee-admin)")

    async def test_duplicate_name(self, acl_service):
        await acl_service.create_token(CreateTokenRequest(name="ci"))
        with pytest.raises(DomainError) as info:
            await acl_service.create_token(CreateTokenRequest(name="ci"))
        assert info.value.message == "token name already exists"

    async def test_duplicate_accessor_id(self, acl_service):
        await acl_service.create_token(CreateTokenRequest(accessor_id=NEW_ACCESSOR, name="a"))
        with pytest.raises(DomainError) as info:
            await acl_service.create_token(CreateTokenRequest(accessor_id=NEW_ACCESSOR, name="b"))
        assert info.value.code == DomainErrorCode.ALREADY_EXISTS

    async def test_duplicate_secret_id(self, acl_service, admin_secret):
        with pytest.raises(DomainError) as info:
            await acl_service.create_token(CreateTokenRequest(secret_id=admin_secret, name="copy"))
        assert info.value.message == "token secret id already exists"

    async def test_invalid_policy_mode(self, acl_service):
        with pytest.raises(DomainError) as info:
            await acl_service.create_token(CreateTokenRequest(name="x", policy_mode="shared"))
        assert info.value.code == DomainErrorCode.INVALID_INPUT

    async def test_update_token_policies(self, acl_service, web_policy):
        link = await acl_service.create_token(CreateTokenRequest(name="ci"))
        await acl_service.update_token(link.id, UpdateTokenRequest(policies=["web"]))

        token = await acl_service.read_token(link.id)
        assert [p.name for p in token.policies] == ["web"]
        assert token.metadata.version >= token.metadata.created_at

    async def test_delete_token_removes_bookkeeping(self, acl_service, consul):
        link = await acl_service.create_token(CreateTokenRequest(name="ci"))
        await acl_service.delete_token(link.id)

        assert link.id not in consul.tokens
        assert await acl_service.list_tokens() == []

    async def test_list_tokens(self, acl_service):
        await acl_service.create_token(CreateTokenRequest(accessor_id=NEW_ACCESSOR, name="ci"))
        tokens = await acl_service.list_tokens()
        assert [(t.id, t.name) for t in tokens] == [(NEW_ACCESSOR, "ci")]

    async def test_read_missing_token(self, acl_service):
        with pytest.raises(DomainError) as info:
            await acl_service.read_token(NEW_ACCESSOR)
        assert info.value.message == "token not found"

    async def test_token_application_not_implemented(self, acl_service):
        from consee.features.acl.schemas import TokenApplicationRequest

        with pytest.raises(DomainError) as info:
            await acl_service.create_token_application_request(TokenApplicationRequest())
        assert info.value.code == DomainErrorCode.NOT_IMPLEMENTED


@pytest.mark.unit
class TestExclusivePolicies:
    async def test_create_exclusive_token(self, acl_service, exclusive_token, consul):
        policy = consul.policy_by_name(exclusive_policy_name(NEW_ACCESSOR))

        assert policy is not None
        assert policy.rules == WEB_RULES
        assert [p.id for p in consul.tokens[NEW_ACCESSOR].policies] == [policy.id]

    async def test_listed_separately(self, acl_service, exclusive_token, web_policy):
        exclusive = await acl_service.list_policies("1")
        common = await acl_service.list_policies("0")
        everything = await acl_service.list_policies()

        assert [p.name for p in exclusive] == [exclusive_policy_name(NEW_ACCESSOR)]
        assert exclusive_policy_name(NEW_ACCESSOR) not in [p.name for p in common]
        assert len(everything) == len(exclusive) + len(common)

    async def test_can_not_create_exclusive_name(self, acl_service):
        with pytest.raises(DomainError) as info:
            await acl_service.create_policy(CreatePolicyRequest(name=exclusive_policy_name(NEW_ACCESSOR)))
        assert info.value.code == DomainErrorCode.INVALID_INPUT

    async def test_can_not_update_or_delete(self, acl_service, exclusive_token):
        name = exclusive_policy_name(NEW_ACCESSOR)
        with pytest.raises(DomainError) as update_info:
            await acl_service.update_policy_rule(name, WEB_RULES)
        with pytest.raises(DomainError) as delete_info:
            await acl_service.delete_policy(name)

        assert update_info.value.code == DomainErrorCode.PERMISSION_DENIED
        assert delete_info.value.code == DomainErrorCode.PERMISSION_DENIED

    async def test_can_not_attach_to_common_token(self, acl_service, exclusive_token):
        with pytest.raises(DomainError) as info:
            await acl_service.create_token(
                CreateTokenRequest(name="thief", policies=[exclusive_policy_name(NEW_ACCESSOR)])
            )
        assert info.value.code == DomainErrorCode.INVALID_INPUT

    async def test_exclusive_token_policies_frozen(self, acl_service, exclusive_token, web_policy):
        with pytest.raises(DomainError) as info:
            await acl_service.update_token(NEW_ACCESSOR, UpdateTokenRequest(policies=["web"]))
        assert info.value.message == "token has an exclusive policy"

    async def test_deleted_with_token(self, acl_service, exclusive_token, consul):
        await acl_service.delete_token(NEW_ACCESSOR)
        assert consul.policy_by_name(exclusive_policy_name(NEW_ACCESSOR)) is None

    async def test_orphan_policy_removed_when_token_fails(self, acl_service, consul):
        consul.status_overrides["acl.token_create"] = 500
        with pytest.raises(DomainError):
            await acl_service.create_token(
                CreateTokenRequest(accessor_id=NEW_ACCESSOR, name="solo", policy_mode="exclusive", rules=WEB_RULES)
            )
        assert consul.policy_by_name(exclusive_policy_name(NEW_ACCESSOR)) is None

    async def test_roles_reject_exclusive(self, acl_service, exclusive_token):
        with pytest.raises(DomainError) as info:
            await acl_service.create_role(
                CreateRoleRequest(name="r", policies=[exclusive_policy_name(NEW_ACCESSOR)])
            )
        assert info.value.code == DomainErrorCode.INVALID_INPUT


@pytest.mark.unit
class TestPolicies:
    async def test_read_policy(self, acl_service, web_policy):
        link = await acl_service.create_token(CreateTokenRequest(name="ci", policies=["web"]))
        policy = await acl_service.read_policy("web")

        assert policy.description == "web keys"
        assert policy.parsed_rules[0].param == "web/"
        assert [(t.id, t.name) for t in policy.tokens] == [(link.id, "ci")]

    async def test_policy_tokens_created_elsewhere(self, acl_service, web_policy, consul):
        from consee.infra.consul import ACLLink

        consul.add_token("00000000-0000-0000-0000-0000000000cc", policies=[ACLLink(web_policy.id, "web")])
        policy = await acl_service.read_policy("web")
        assert [t.name for t in policy.tokens] == [""]

    async def test_duplicate_policy(self, acl_service, web_policy):
        with pytest.raises(DomainError) as info:
            await acl_service.create_policy(CreatePolicyRequest(name="web", rules=WEB_RULES))
        assert info.value.code == DomainErrorCode.ALREADY_EXISTS

    async def test_invalid_rules_rejected(self, acl_service, web_policy):
        with pytest.raises(DomainError) as create_info:
            await acl_service.create_policy(CreatePolicyRequest(name="bad", rules="key {"))
        with pytest.raises(DomainError) as update_info:
            await acl_service.update_policy_rule("web", "key {")

        assert create_info.value.code == DomainErrorCode.INVALID_INPUT
        assert update_info.value.code == DomainErrorCode.INVALID_INPUT

    async def test_update_rules(self, acl_service, web_policy, consul):
        await acl_service.update_policy_rule("web", 'key "web/a" {\n  policy = "write"\n}\n')
        assert "web/a" in consul.policy_by_name("web").rules

    async def test_delete_policy(self, acl_service, web_policy, consul):
        await acl_service.delete_policy("web")
        assert consul.policy_by_name("web") is None

    async def test_missing_policy(self, acl_service):
        with pytest.raises(DomainError) as info:
            await acl_service.read_policy("ghost")
        assert info.value.message == "policy not found"

    async def test_plain_user_can_not_list(self, make_services, user_token):
        with pytest.raises(DomainError) as info:
            await make_services(user_token)[1].list_policies()
        assert info.value.code == DomainErrorCode.PERMISSION_DENIED


@pytest.mark.unit
class TestRoles:
    async def test_role_lifecycle(self, acl_service, web_policy):
        link = await acl_service.create_role(CreateRoleRequest(name="readers", policies=["web"]))
        assert [r.name for r in await acl_service.list_roles()] == ["readers"]

        await acl_service.update_role("readers", UpdateRoleRequest(policies=[]))
        role = await acl_service.read_role("readers")
        assert role.id == link.id
        assert role.policies == []

        await acl_service.delete_role("readers")
        with pytest.raises(DomainError) as info:
            await acl_service.read_role("readers")
        assert info.value.message == "role not found"

    async def test_duplicate_role(self, acl_service):
        await acl_service.create_role(CreateRoleRequest(name="readers"))
        with pytest.raises(DomainError) as info:
            await acl_service.create_role(CreateRoleRequest(name="readers"))
        assert info.value.code == DomainErrorCode.ALREADY_EXISTS
