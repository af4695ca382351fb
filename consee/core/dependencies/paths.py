"""Path parameters carried as standard base64."""

from __future__ import annotations

import base64
import binascii
from typing import Annotated

from fastapi import Depends

from consee.core.exceptions import StatusError


def decode_b64(value: str, what: str) -> str:
    """Decode a base64 path segment.

    Raises:
        StatusError: 400 when the segment is not valid base64 text.
    """
    try:
        return base64.b64decode(value, validate=True).decode()
    except (binascii.Error, UnicodeDecodeError) as e:
        raise StatusError(400, f"invalid base64 value {value!r}", process=f"decoding {what}") from e


def get_key(b64key: str) -> str:
    return decode_b64(b64key, "b64key")


def get_name(b64name: str) -> str:
    return decode_b64(b64name, "b64name")


KeyPathDep = Annotated[str, Depends(get_key)]
NamePathDep = Annotated[str, Depends(get_name)]
