"""Tests for the KV service."""

from __future__ import annotations

import asyncio

import pytest

from consee.core.constants import INTERNAL_KEY_PREFIX, OPEN_NOTIFICATIONS_PREFIX, VALUE_TYPE_PREFIX
from consee.core.exceptions import DomainError, DomainErrorCode
from consee.features.kv import b64key
from consee.features.kv.schemas import BatchUpdateRequest, CreateKeyValueRequest, KeyValue
from consee.infra.consul import WriteOptions


def test_b64key():
    assert b64key("app/config") == "YXBwL2NvbmZpZw=="


async def test_list_keys_hides_internal(kv_service, consul):
    consul.kv.update({"app/a": b"1", INTERNAL_KEY_PREFIX + "x": b"", "b": b""})

    assert await kv_service.list_keys() == ["app/a", "b"]


async def test_list_keys_empty(kv_service):
    assert await kv_service.list_keys() == []


async def test_create_records_value_type(kv_service, consul):
    await kv_service.create(CreateKeyValueRequest(key="app/conf", value='{"a": 1}', value_type="json"))

    assert consul.kv["app/conf"] == b'{"a": 1}'
    assert await kv_service.get_type("app/conf") == "json"


async def test_create_folder_has_no_value_type(kv_service, consul):
    await kv_service.create(CreateKeyValueRequest(key="app/", value="", value_type="json"))

    assert "app/" in consul.kv
    assert VALUE_TYPE_PREFIX + b64key("app/") not in consul.kv


async def test_create_existing_key(kv_service, consul):
    consul.kv["a"] = b"1"

    with pytest.raises(DomainError) as info:
        await kv_service.create(CreateKeyValueRequest(key="a", value="2"))
    assert info.value.code == DomainErrorCode.ALREADY_EXISTS
    assert consul.kv["a"] == b"1"


@pytest.mark.parametrize("key", ["", "/abs"])
async def test_invalid_keys(kv_service, key):
    with pytest.raises(DomainError) as info:
        await kv_service.create_raw(key, b"")
    assert info.value.code == DomainErrorCode.INVALID_INPUT


async def test_get(kv_service, consul):
    consul.kv["a"] = "héllo".encode()

    resp = await kv_service.get("a")
    assert resp.key == "a"
    assert resp.value == "héllo"


async def test_get_missing(kv_service):
    with pytest.raises(DomainError) as info:
        await kv_service.get("ghost")
    assert info.value.message == "key not found"


async def test_get_history_version_not_implemented(kv_service, consul):
    consul.kv["a"] = b"1"

    with pytest.raises(DomainError) as info:
        await kv_service.get("a", version="2024-01-01 00:00:00")
    assert info.value.code == DomainErrorCode.NOT_IMPLEMENTED


async def test_update(kv_service, consul):
    consul.kv["a"] = b"1"
    await kv_service.update("a", "2")
    assert consul.kv["a"] == b"2"


async def test_update_missing(kv_service, consul):
    with pytest.raises(DomainError) as info:
        await kv_service.update("ghost", "2")
    assert info.value.code == DomainErrorCode.NOT_FOUND
    assert "ghost" not in consul.kv


async def test_update_type(kv_service, consul):
    consul.kv["a"] = b"1"
    await kv_service.update_type("a", "yaml")
    assert await kv_service.get_type("a") == "yaml"


async def test_update_type_missing(kv_service):
    with pytest.raises(DomainError) as info:
        await kv_service.update_type("ghost", "yaml")
    assert info.value.code == DomainErrorCode.NOT_FOUND


async def test_batch_update_collects_errors(kv_service, consul):
    consul.kv.update({"a": b"1", "b": b"1"})

    with pytest.raises(DomainError) as info:
        await kv_service.batch_update(
            BatchUpdateRequest(
                kvs=[KeyValue(key="a", value="2"), KeyValue(key="x", value="2"), KeyValue(key="b", value="2")]
            )
        )

    assert info.value.code == DomainErrorCode.MULTIPLE_ERRORS_OCCURED
    assert info.value.message == "1 errors occured during batch update: x: key not found."
    assert consul.kv["a"] == b"2"
    assert consul.kv["b"] == b"2"


async def test_batch_update_all_good(kv_service, consul):
    consul.kv["a"] = b"1"
    await kv_service.batch_update(BatchUpdateRequest(kvs=[KeyValue(key="a", value="3")]))
    assert consul.kv["a"] == b"3"


async def test_delete_removes_value_type(kv_service, consul):
    await kv_service.create(CreateKeyValueRequest(key="a", value="1", value_type="json"))
    await kv_service.delete("a")

    assert "a" not in consul.kv
    assert VALUE_TYPE_PREFIX + b64key("a") not in consul.kv


async def test_delete_folder(kv_service, consul):
    consul.kv.update({"app/": b"", "app/a": b"1", "other": b"1"})
    await kv_service.delete("app/")

    assert list(consul.kv) == ["other"]


async def test_plain_user_can_read_not_write(make_services, user_token, consul):
    consul.kv["a"] = b"1"
    kv = make_services(user_token)[0]

    assert (await kv.get("a")).value == "1"
    with pytest.raises(DomainError) as info:
        await kv.update("a", "2")
    assert info.value.code == DomainErrorCode.PERMISSION_DENIED


async def test_watch_open_notifications_count(kv_service, consul, admin_secret):
    counts: list[int] = []

    async def on_count(count: int) -> bool:
        counts.append(count)
        if count == 0:
            await consul.kv_put(OPEN_NOTIFICATIONS_PREFIX + "n1", b"{}", WriteOptions(token=admin_secret))
        return count == 1

    await asyncio.wait_for(kv_service.watch_open_notifications_count(on_count), timeout=2.0)

    assert counts == [0, 1]
