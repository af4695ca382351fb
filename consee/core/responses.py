"""Helpers turning Consul responses into domain errors."""

from __future__ import annotations

from collections.abc import Awaitable
import logging
from typing import TYPE_CHECKING, Any, TypeVar

from consee.core.exceptions import (
    failed_to_connect_consul,
    failed_to_parse,
    not_found,
    permission_denied,
    unknown_error,
)
from consee.infra.consul import ConsulTransportError

if TYPE_CHECKING:
    from consee.core.exceptions import DomainError
    from consee.infra.consul import ConsulResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Consul answers 403 with this body when the token or object does not exist
ACL_NOT_FOUND_BODY = b"ACL not found"


async def call_consul(call: Awaitable[ConsulResponse[T]], action: str, **context: Any) -> ConsulResponse[T]:
    """Await a repository call, converting transport failures.

    Raises:
        DomainError: INTERNAL_ERROR "failed to connect to consul" when Consul
            could not be reached.
    """
    try:
        return await call
    except ConsulTransportError as e:
        logger.error("Failed to %s", action, extra={**context, "error": str(e)})
        raise failed_to_connect_consul() from e


def is_missing(resp: ConsulResponse[Any]) -> bool:
    """True for a 404, or a 403 whose body says the ACL object does not exist."""
    if resp.status == 404:
        return True
    return resp.status == 403 and ACL_NOT_FOUND_BODY in resp.raw_body


def ensure_ok(
    resp: ConsulResponse[Any],
    *,
    missing: str | None = None,
    forbidden: DomainError | None = None,
) -> None:
    """Raise the domain error matching a non-successful response.

    Args:
        resp: Response to check.
        missing: NOT_FOUND message used when the object does not exist; when
            omitted a missing object is an unknown error.
        forbidden: Error raised on 403; defaults to "permission denied".
    """
    if missing is not None and is_missing(resp):
        raise not_found(missing)
    if resp.status == 403:
        raise forbidden if forbidden is not None else permission_denied()
    if resp.status != 200:
        logger.warning(
            "Unexpected Consul response",
            extra={"status_code": resp.status, "response": resp.raw_body[:200].decode(errors="replace")},
        )
        raise unknown_error()
    if resp.error is not None:
        logger.error("Failed to parse Consul response", extra={"error": resp.error})
        raise failed_to_parse()
