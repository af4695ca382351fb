"""API router for token authentication."""

from __future__ import annotations

import logging

from fastapi import APIRouter

from consee.core.dependencies import ACLServiceDep, AdminServiceDep
from consee.core.exceptions import DomainError, StatusError

from .schemas import AuthenticateResult

router = APIRouter(tags=["auth"])

logger = logging.getLogger(__name__)


@router.post(
    "/authenticate",
    response_model=AuthenticateResult,
    response_model_exclude_none=True,
    summary="Check a token",
    description="Tells whether the token exists, whether it is an admin token "
    "and, for admins, how many notifications are open.",
)
async def authenticate(acl: ACLServiceDep, admin: AdminServiceDep) -> AuthenticateResult:
    try:
        await acl.validate_token()
    except DomainError as e:
        logger.info("Authentication refused", extra={"reason": e.message})
        raise StatusError(401, "invalid token", process="authentication") from e

    try:
        await acl.check_admin()
    except DomainError:
        return AuthenticateResult(valid=1, admin=0)

    try:
        count = await admin.get_open_notifications_count()
    except DomainError:
        return AuthenticateResult(valid=1, admin=1)
    return AuthenticateResult(valid=1, admin=1, n=count or None)
