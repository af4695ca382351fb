"""Token header checks.

Every protected route reads the caller's Consul token from the
``G-Consee-Token`` header. The token must be a UUID; it is then checked
against Consul by a self-read (see ``check_user_token``).

Example:
    router = APIRouter(prefix="/kv", dependencies=[Depends(check_user_token)])
"""

from __future__ import annotations

from typing import Annotated
import uuid

from fastapi import Depends, Header

from consee.core.constants import TOKEN_HEADER
from consee.core.exceptions import StatusError

FUZZ_WIDTH = 8


def fuzz(text: str) -> str:
    """Mask a secret for error messages, keeping two characters at each end.

    Example:
        >>> fuzz("0123456789")
        '01****89'
    """
    if len(text) <= FUZZ_WIDTH:
        return text
    return text[:2] + "*" * (FUZZ_WIDTH - 4) + text[-2:]


def get_user_token(
    token: Annotated[str | None, Header(alias=TOKEN_HEADER)] = None,
) -> str:
    """Return the caller's token after checking its shape.

    Raises:
        StatusError: 400 when the header is missing, empty or not a UUID.
    """
    if not token:
        raise StatusError(400, "token is empty")
    try:
        uuid.UUID(token)
    except ValueError as e:
        raise StatusError(400, f"invalid token {fuzz(token)} (should be a valid uuid)") from e
    return token


UserTokenDep = Annotated[str, Depends(get_user_token)]
