"""Metadata service: bookkeeping stored under the internal key prefix.

All calls use the admin repository. A 403 from Consul here means the fixed
admin credentials were refused, which is reported as an internal error
rather than a permission problem of the caller.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from consee.core.constants import (
    DEFAULT_VALUE_TYPE,
    TOKEN_ID_NAME_PREFIX,
    TOKEN_METADATA_PREFIX,
    TOKEN_NAME_ID_PREFIX,
    VALUE_TYPE_PREFIX,
)
from consee.core.exceptions import (
    admin_permission_denied,
    failed_to_connect_consul,
    failed_to_parse,
    internal_error,
    not_found,
    not_implemented,
)
from consee.infra.consul import ConsulTransportError

from .schemas import ListNotificationsResponse, Notification, TokenMetadata

if TYPE_CHECKING:
    from consee.core.repositories import AdminRepository
    from consee.infra.consul import ConsulResponse, KVPair

logger = logging.getLogger(__name__)


class AdminService:
    """Reads and writes Consee's own records with the admin credentials."""

    def __init__(self, admin: AdminRepository) -> None:
        self._admin = admin

    @property
    def repository(self) -> AdminRepository:
        """Admin repository; only initialization should use it directly."""
        return self._admin

    async def _read(self, key: str, what: str, **context: str) -> ConsulResponse[KVPair]:
        try:
            resp = await self._admin.kv.get(key)
        except ConsulTransportError as e:
            logger.error("Failed to read %s", what, extra={**context, "error": str(e)})
            raise failed_to_connect_consul() from e
        if resp.status == 403:
            raise admin_permission_denied()
        return resp

    async def _write(self, key: str, value: str, what: str, **context: str) -> None:
        try:
            resp = await self._admin.kv.put(key, value.encode())
        except ConsulTransportError as e:
            logger.error("Failed to write %s", what, extra={**context, "error": str(e)})
            raise failed_to_connect_consul() from e
        if resp.status == 403:
            raise admin_permission_denied()
        if resp.error is not None:
            logger.error("Failed to parse %s write response", what, extra={**context, "error": resp.error})
            raise failed_to_parse()

    async def _delete(self, key: str, what: str, **context: str) -> None:
        try:
            resp = await self._admin.kv.delete(key)
        except ConsulTransportError as e:
            logger.error("Failed to delete %s", what, extra={**context, "error": str(e)})
            raise failed_to_connect_consul() from e
        if resp.status == 403:
            raise admin_permission_denied()

    # ──────────────────────────────────────────────────────────────
    # Value types
    # ──────────────────────────────────────────────────────────────

    async def get_value_type(self, b64key: str) -> str:
        """Return the value type recorded for a key.

        Raises:
            DomainError: NOT_FOUND when no value type is recorded.
        """
        resp = await self._read(VALUE_TYPE_PREFIX + b64key, "value type", b64key=b64key)
        if resp.status == 404 or resp.body is None or not resp.body.value:
            raise not_found("value type not found")
        return resp.body.value.decode()

    async def write_value_type(self, b64key: str, value_type: str) -> None:
        await self._write(
            VALUE_TYPE_PREFIX + b64key,
            value_type or DEFAULT_VALUE_TYPE,
            "value type",
            b64key=b64key,
            value_type=value_type,
        )

    async def delete_value_type(self, b64key: str) -> None:
        await self._delete(VALUE_TYPE_PREFIX + b64key, "value type", b64key=b64key)

    # ──────────────────────────────────────────────────────────────
    # History and notifications
    # ──────────────────────────────────────────────────────────────

    async def get_kv_history(self, b64key: str) -> list[str]:
        raise not_implemented()

    async def add_history_version(self, b64key: str, version: str, value: bytes) -> None:
        raise not_implemented()

    async def get_kv_history_value(self, b64key: str, version: str) -> bytes:
        raise not_implemented()

    async def list_notifications(self) -> ListNotificationsResponse:
        raise not_implemented()

    async def get_open_notifications_count(self) -> int:
        raise not_implemented()

    async def write_notification(self, notification: Notification) -> None:
        raise not_implemented()

    # ──────────────────────────────────────────────────────────────
    # Token bookkeeping
    # ──────────────────────────────────────────────────────────────

    async def get_token_metadata(self, accessor_id: str) -> TokenMetadata:
        resp = await self._read(TOKEN_METADATA_PREFIX + accessor_id, "token metadata", accessor_id=accessor_id)
        if resp.status == 404:
            raise internal_error("metadata not found")
        if resp.error is not None or resp.body is None:
            logger.error(
                "Failed to parse token metadata response",
                extra={"accessor_id": accessor_id, "error": resp.error},
            )
            raise failed_to_parse()
        try:
            return TokenMetadata.model_validate_json(resp.body.value)
        except ValidationError as e:
            logger.error("Failed to decode token metadata", extra={"accessor_id": accessor_id, "error": str(e)})
            raise failed_to_parse() from e

    async def get_token_name(self, accessor_id: str) -> str:
        resp = await self._read(TOKEN_ID_NAME_PREFIX + accessor_id, "token name", accessor_id=accessor_id)
        return self._mapping_value(resp, accessor_id=accessor_id)

    async def get_token_id_by_name(self, name: str) -> str:
        resp = await self._read(TOKEN_NAME_ID_PREFIX + name, "token id", token_name=name)
        return self._mapping_value(resp, token_name=name)

    @staticmethod
    def _mapping_value(resp: ConsulResponse[KVPair], **context: str) -> str:
        if resp.status == 404:
            raise not_found("token not found")
        if resp.error is not None:
            logger.error("Failed to parse token mapping response", extra={**context, "error": resp.error})
            raise failed_to_parse()
        if resp.body is None:
            return ""
        return resp.body.value.decode()

    async def write_id_name_mapping(self, accessor_id: str, name: str) -> None:
        """Write both the id to name and the name to id mapping."""
        await self._write(TOKEN_ID_NAME_PREFIX + accessor_id, name, "id-name mapping", accessor_id=accessor_id)
        await self._write(TOKEN_NAME_ID_PREFIX + name, accessor_id, "name-id mapping", token_name=name)

    async def write_token_metadata(self, accessor_id: str, metadata: TokenMetadata) -> None:
        await self._write(
            TOKEN_METADATA_PREFIX + accessor_id,
            metadata.to_json(),
            "token metadata",
            accessor_id=accessor_id,
        )

    async def delete_token_metadata(self, accessor_id: str, name: str) -> None:
        """Remove every record kept for a token, ignoring failures."""
        for key in (
            TOKEN_ID_NAME_PREFIX + accessor_id,
            TOKEN_NAME_ID_PREFIX + name,
            TOKEN_METADATA_PREFIX + accessor_id,
        ):
            try:
                await self._admin.kv.delete(key)
            except ConsulTransportError as e:
                logger.warning("Failed to delete token record", extra={"key": key, "error": str(e)})
