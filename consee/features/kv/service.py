"""KV service: key CRUD with value-type bookkeeping.

Keys under the internal prefix are never listed. The value type of a key is
stored by the metadata service under the standard base64 form of the key;
folders (keys ending with ``/``) carry no value type.
"""

from __future__ import annotations

import base64
from collections.abc import Awaitable, Callable
import logging
from typing import TYPE_CHECKING

from consee.core.constants import INTERNAL_KEY_PREFIX, OPEN_NOTIFICATIONS_PREFIX
from consee.core.exceptions import (
    DomainError,
    DomainErrorCode,
    failed_to_parse,
    invalid_input,
    not_found,
    unknown_error,
)
from consee.core.responses import call_consul, ensure_ok

from .schemas import BatchUpdateRequest, CreateKeyValueRequest, GetValueResponse

if TYPE_CHECKING:
    from consee.core.repositories import KVRepository
    from consee.features.admin.service import AdminService
    from consee.infra.consul import ConsulResponse, ConsulTransportError

logger = logging.getLogger(__name__)


def b64key(key: str) -> str:
    """Standard base64 form of a key, as used in URLs and archive paths."""
    return base64.b64encode(key.encode()).decode()


def _valid_key(key: str) -> str:
    if not key or key.startswith("/"):
        raise invalid_input("invalid key: keys must be non-empty and must not begin with '/'")
    return key


class KVService:
    """Key/value operations on behalf of one caller.

    Args:
        kv: KV repository bound to the caller's token.
        admin: Metadata service used for value types.
    """

    def __init__(self, kv: KVRepository, admin: AdminService) -> None:
        self._kv = kv
        self._admin = admin

    async def list_keys(self) -> list[str]:
        """List every key visible to the caller, internal keys excluded."""
        resp = await call_consul(self._kv.keys(""), "list keys")
        if resp.status == 404:
            return []
        ensure_ok(resp)
        return [k for k in resp.body or [] if not k.startswith(INTERNAL_KEY_PREFIX)]

    async def get_value(self, key: str) -> bytes:
        """Return the raw value of a key.

        Raises:
            DomainError: NOT_FOUND when the key does not exist.
        """
        resp = await call_consul(self._kv.get(key), "read key", key=key)
        ensure_ok(resp, missing="key not found")
        if resp.body is None:
            raise not_found("key not found")
        return resp.body.value

    async def get(self, key: str, version: str = "") -> GetValueResponse:
        """Read a key; ``version`` selects a history version instead."""
        value = await self.get_value(key)
        if version:
            value = await self._admin.get_kv_history_value(b64key(key), version)
        return GetValueResponse(key=key, value=value.decode(errors="replace"))

    async def get_type(self, key: str) -> str:
        """Return the recorded value type of a key."""
        return await self._admin.get_value_type(b64key(key))

    async def exists(self, key: str) -> bool:
        resp = await call_consul(self._kv.get(key), "read key", key=key)
        if resp.status == 404:
            return False
        ensure_ok(resp)
        return resp.body is not None

    async def _put(self, key: str, value: bytes) -> None:
        resp = await call_consul(self._kv.put(key, value), "write key", key=key)
        ensure_ok(resp)
        if not resp.body:
            raise unknown_error()

    async def create(self, req: CreateKeyValueRequest) -> None:
        await self.create_raw(req.key, req.value.encode(), req.value_type)

    async def create_raw(self, key: str, value: bytes, value_type: str = "") -> None:
        """Create a key with its value type.

        Raises:
            DomainError: ALREADY_EXISTS when the key exists.
        """
        _valid_key(key)
        if await self.exists(key):
            raise DomainError(DomainErrorCode.ALREADY_EXISTS, "key already exists")
        await self._put(key, value)
        if not key.endswith("/"):
            await self._admin.write_value_type(b64key(key), value_type)
        logger.debug("Key created", extra={"key": key})

    async def update(self, key: str, value: str | bytes) -> None:
        """Overwrite the value of an existing key.

        Raises:
            DomainError: NOT_FOUND when the key does not exist.
        """
        _valid_key(key)
        if not await self.exists(key):
            raise not_found("key not found")
        await self._put(key, value.encode() if isinstance(value, str) else value)

    async def update_type(self, key: str, value_type: str) -> None:
        """Record a new value type for an existing key."""
        resp = await call_consul(self._kv.keys(key), "list keys", key=key)
        if resp.status == 404 or not resp.body:
            raise not_found("key not found")
        ensure_ok(resp)
        if key.endswith("/"):
            return
        await self._admin.write_value_type(b64key(key), value_type)

    async def batch_update(self, req: BatchUpdateRequest) -> None:
        """Update several keys; failures are collected into one error.

        Raises:
            DomainError: MULTIPLE_ERRORS_OCCURED listing every failed key.
        """
        failures: list[tuple[str, DomainError]] = []
        for item in req.kvs:
            try:
                await self.update(item.key, item.value)
            except DomainError as e:
                failures.append((item.key, e))
        if not failures:
            return
        details = "; ".join(f"{key}: {error.message}" for key, error in failures)
        raise DomainError(
            DomainErrorCode.MULTIPLE_ERRORS_OCCURED,
            f"{len(failures)} errors occured during batch update: {details}.",
        )

    async def delete(self, key: str) -> None:
        """Delete a key, or a whole folder for keys ending with ``/``."""
        _valid_key(key)
        resp = await call_consul(self._kv.delete(key), "delete key", key=key)
        ensure_ok(resp)
        try:
            await self._admin.delete_value_type(b64key(key))
        except DomainError as e:
            logger.warning("Failed to delete value type", extra={"key": key, "error": e.message})

    async def watch_open_notifications_count(self, callback: Callable[[int], Awaitable[bool | None]]) -> None:
        """Call ``callback`` with the open notification count on every change.

        Runs until the callback returns True or the task is cancelled.
        """

        async def on_change(resp: ConsulResponse[list[str]] | None, error: ConsulTransportError | None) -> bool:
            if resp is None:
                logger.warning("Watch on open notifications failed", extra={"error": str(error)})
                return False
            if resp.status not in (200, 404):
                logger.warning("Watch on open notifications refused", extra={"status_code": resp.status})
                return False
            if resp.error is not None:
                raise failed_to_parse()
            count = len(resp.body or [])
            logger.debug("Open notifications count changed", extra={"count": count})
            return bool(await callback(count))

        await self._kv.watch(OPEN_NOTIFICATIONS_PREFIX, on_change)
