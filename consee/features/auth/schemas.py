"""Pydantic schemas for authentication."""

from __future__ import annotations

from pydantic import BaseModel


class AuthenticateResult(BaseModel):
    """Result of ``POST /authenticate``; flags are 0 or 1 for the web UI."""

    valid: int
    admin: int
    n: int | None = None
