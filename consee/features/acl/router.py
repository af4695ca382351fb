"""API router for tokens, policies and roles.

Policy and role names travel in paths as standard base64. Token requests and
HCL rule parsing are open to callers whose token is not validated yet.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status

from consee.core.dependencies import (
    ACLServiceDep,
    NamePathDep,
    UserTokenDep,
    check_admin_token,
    check_user_token,
)
from consee.core.exceptions import StatusError

from .schemas import (
    ACLLink,
    CreatePolicyRequest,
    CreateRoleRequest,
    CreateTokenRequest,
    HandleTokenApplicationRequest,
    ParsedRule,
    ReadPolicyResponse,
    ReadRoleResponse,
    ReadTokenResponse,
    TokenApplicationRequest,
    TokenApplicationResponse,
    UpdatePolicyRuleRequest,
    UpdateRoleRequest,
    UpdateTokenRequest,
)
from .service import ACLService

router = APIRouter(prefix="/acl", tags=["acl"])
protected = APIRouter(dependencies=[Depends(check_user_token)])


def _no_content() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ──────────────────────────────────────────────────────────────
# Open routes
# ──────────────────────────────────────────────────────────────


@router.post(
    "/token-request",
    status_code=status.HTTP_201_CREATED,
    response_model=TokenApplicationResponse,
    summary="Request a token",
)
async def create_token_request(
    body: TokenApplicationRequest, token: UserTokenDep, acl: ACLServiceDep
) -> TokenApplicationResponse:
    if token != body.secret_id:
        raise StatusError(403, "invalid token")
    return await acl.create_token_application_request(body)


@router.post("/hcl-rule", response_model=list[ParsedRule], summary="Parse HCL policy rules")
async def parse_hcl_rule(request: Request) -> list[ParsedRule]:
    rules = (await request.body()).decode(errors="replace")
    result = ACLService.validate_hcl_rules(rules)
    if not result.valid:
        raise StatusError(400, result.error, process="parsing rule")
    return result.parsed


# ──────────────────────────────────────────────────────────────
# Tokens
# ──────────────────────────────────────────────────────────────


@protected.put(
    "/token-request/{request_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_admin_token)],
    summary="Accept or reject a token request",
)
async def review_token_request(request_id: str, body: HandleTokenApplicationRequest, acl: ACLServiceDep) -> Response:
    await acl.review_token_application_request(request_id, body)
    return _no_content()


@protected.get("/tokens", response_model=list[ACLLink], summary="List tokens")
async def list_tokens(acl: ACLServiceDep) -> list[ACLLink]:
    return await acl.list_tokens()


@protected.get("/token/{accessor_id}", response_model=ReadTokenResponse, summary="Read a token")
async def read_token(accessor_id: str, acl: ACLServiceDep) -> ReadTokenResponse:
    return await acl.read_token(accessor_id)


@protected.post("/token", status_code=status.HTTP_201_CREATED, response_model=ACLLink, summary="Create a token")
async def create_token(body: CreateTokenRequest, acl: ACLServiceDep) -> ACLLink:
    return await acl.create_token(body)


@protected.put("/token/{accessor_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Update token policies")
async def update_token(accessor_id: str, body: UpdateTokenRequest, acl: ACLServiceDep) -> Response:
    await acl.update_token(accessor_id, body)
    return _no_content()


@protected.delete("/token/{accessor_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a token")
async def delete_token(accessor_id: str, acl: ACLServiceDep) -> Response:
    await acl.delete_token(accessor_id)
    return _no_content()


# ──────────────────────────────────────────────────────────────
# Policies
# ──────────────────────────────────────────────────────────────


@protected.get(
    "/policies",
    response_model=list[ACLLink],
    summary="List policies",
    description="`?exclusive` or `?exclusive=1` lists exclusive policies only; any other value hides them.",
)
async def list_policies(request: Request, acl: ACLServiceDep) -> list[ACLLink]:
    exclusive = ""
    if "exclusive" in request.query_params:
        exclusive = "1" if request.query_params["exclusive"] in ("", "1") else "0"
    return await acl.list_policies(exclusive)


@protected.post("/policy", status_code=status.HTTP_201_CREATED, response_model=ACLLink, summary="Create a policy")
async def create_policy(body: CreatePolicyRequest, acl: ACLServiceDep) -> ACLLink:
    return await acl.create_policy(body)


@protected.get("/policy/{b64name:path}", response_model=ReadPolicyResponse, summary="Read a policy")
async def read_policy(name: NamePathDep, acl: ACLServiceDep) -> ReadPolicyResponse:
    return await acl.read_policy(name)


@protected.put("/policy/{b64name:path}", status_code=status.HTTP_204_NO_CONTENT, summary="Replace policy rules")
async def update_policy(name: NamePathDep, body: UpdatePolicyRuleRequest, acl: ACLServiceDep) -> Response:
    await acl.update_policy_rule(name, body.rules)
    return _no_content()


@protected.delete("/policy/{b64name:path}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a policy")
async def delete_policy(name: NamePathDep, acl: ACLServiceDep) -> Response:
    await acl.delete_policy(name)
    return _no_content()


# ──────────────────────────────────────────────────────────────
# Roles
# ──────────────────────────────────────────────────────────────


@protected.get("/roles", response_model=list[ACLLink], summary="List roles")
async def list_roles(acl: ACLServiceDep) -> list[ACLLink]:
    return await acl.list_roles()


@protected.post("/role", status_code=status.HTTP_201_CREATED, response_model=ACLLink, summary="Create a role")
async def create_role(body: CreateRoleRequest, acl: ACLServiceDep) -> ACLLink:
    return await acl.create_role(body)


@protected.get("/role/{b64name:path}", response_model=ReadRoleResponse, summary="Read a role")
async def read_role(name: NamePathDep, acl: ACLServiceDep) -> ReadRoleResponse:
    return await acl.read_role(name)


@protected.put("/role/{b64name:path}", status_code=status.HTTP_204_NO_CONTENT, summary="Replace role policies")
async def update_role(name: NamePathDep, body: UpdateRoleRequest, acl: ACLServiceDep) -> Response:
    await acl.update_role(name, body)
    return _no_content()


@protected.delete("/role/{b64name:path}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a role")
async def delete_role(name: NamePathDep, acl: ACLServiceDep) -> Response:
    await acl.delete_role(name)
    return _no_content()


router.include_router(protected)
