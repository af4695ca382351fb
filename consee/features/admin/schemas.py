"""Pydantic schemas for the internal bookkeeping records."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from consee.core.constants import DATETIME_FORMAT


def now_string() -> str:
    """Current local time in the metadata timestamp layout."""
    return datetime.now().strftime(DATETIME_FORMAT)


class TokenMetadata(BaseModel):
    """Bookkeeping stored alongside every token Consee manages.

    Timestamps use the ``YYYY-MM-DD hh:mm:ss`` layout; ``version`` is the
    timestamp of the last write and ``from`` the version a token was copied
    from, if any.
    """

    created_at: str = ""
    created_by: str = ""
    last_updated_at: str = ""
    last_updated_by: str = ""
    version: str = ""
    from_: str = Field(default="", alias="from")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def fresh(cls, actor: str, origin: str = "") -> TokenMetadata:
        """Metadata of a token created right now by ``actor``."""
        now = now_string()
        return cls(
            created_at=now,
            created_by=actor,
            last_updated_at=now,
            last_updated_by=actor,
            version=now,
            from_=origin,
        )

    def touched(self, actor: str) -> TokenMetadata:
        """Copy refreshed for an update by ``actor``; creation fields are kept."""
        now = now_string()
        return self.model_copy(update={"last_updated_at": now, "last_updated_by": actor, "version": now})

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class NotificationType(StrEnum):
    TOKEN_APPLICATION = "token_application"
    OTHER = "other"


class NotificationOp(StrEnum):
    OK = "ok"
    ACCEPT_REJECT = "accept_reject"


class Notification(BaseModel):
    id: str
    type: NotificationType
    data: bytes = b""
    operation: NotificationOp = NotificationOp.OK
    operation_args: dict[str, Any] | None = None
    created_at: str = ""
    created_by: str = ""


class ArchivedNotification(BaseModel):
    id: str
    type: NotificationType
    origin_data: Any = None
    reason: str = ""
    created_at: str = ""
    created_by: str = ""
    archived_at: str = ""
    archived_by: str = ""


class ListNotificationsResponse(BaseModel):
    open: list[Notification] = Field(default_factory=list)
    archived: list[ArchivedNotification] = Field(default_factory=list)
