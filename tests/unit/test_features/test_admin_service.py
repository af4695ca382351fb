"""Tests for the metadata service."""

from __future__ import annotations

import pytest

from consee.core.constants import TOKEN_ID_NAME_PREFIX, TOKEN_METADATA_PREFIX, TOKEN_NAME_ID_PREFIX, VALUE_TYPE_PREFIX
from consee.core.exceptions import DomainError, DomainErrorCode
from consee.features.admin import TokenMetadata


async def test_value_type_roundtrip(admin_service, consul):
    await admin_service.write_value_type("YQ==", "json")

    assert consul.kv[VALUE_TYPE_PREFIX + "YQ=="] == b"json"
    assert await admin_service.get_value_type("YQ==") == "json"


async def test_empty_value_type_defaults_to_plaintext(admin_service):
    await admin_service.write_value_type("YQ==", "")

    assert await admin_service.get_value_type("YQ==") == "plaintext"


async def test_missing_value_type(admin_service):
    with pytest.raises(DomainError) as info:
        await admin_service.get_value_type("bm9uZQ==")
    assert info.value.code == DomainErrorCode.NOT_FOUND


async def test_id_name_mapping(admin_service, consul):
    await admin_service.write_id_name_mapping("acc-1", "ci-bot")

    assert consul.kv[TOKEN_ID_NAME_PREFIX + "acc-1"] == b"ci-bot"
    assert consul.kv[TOKEN_NAME_ID_PREFIX + "ci-bot"] == b"acc-1"
    assert await admin_service.get_token_name("acc-1") == "ci-bot"
    assert await admin_service.get_token_id_by_name("ci-bot") == "acc-1"


async def test_missing_token_name(admin_service):
    with pytest.raises(DomainError) as info:
        await admin_service.get_token_name("ghost")
    assert info.value.message == "token not found"


async def test_token_metadata(admin_service, consul):
    metadata = TokenMetadata.fresh("alice", origin="2024-01-01 00:00:00")
    await admin_service.write_token_metadata("acc-1", metadata)

    stored = consul.kv[TOKEN_METADATA_PREFIX + "acc-1"]
    assert b'"from":"2024-01-01 00:00:00"' in stored
    assert await admin_service.get_token_metadata("acc-1") == metadata


async def test_missing_metadata_is_internal(admin_service):
    with pytest.raises(DomainError) as info:
        await admin_service.get_token_metadata("ghost")
    assert info.value.code == DomainErrorCode.INTERNAL_ERROR


async def test_corrupt_metadata(admin_service, consul):
    consul.kv[TOKEN_METADATA_PREFIX + "acc-1"] = b"{not json"

    with pytest.raises(DomainError) as info:
        await admin_service.get_token_metadata("acc-1")
    assert info.value.message == "failed to parse value"


async def test_delete_token_metadata(admin_service, consul):
    await admin_service.write_id_name_mapping("acc-1", "ci-bot")
    await admin_service.write_token_metadata("acc-1", TokenMetadata.fresh("alice"))

    await admin_service.delete_token_metadata("acc-1", "ci-bot")

    assert not [key for key in consul.kv if "acc-1" in key or "ci-bot" in key]


async def test_refused_admin_token_is_internal(admin_service, consul):
    consul.status_overrides["kv.get"] = 403

    with pytest.raises(DomainError) as info:
        await admin_service.get_token_name("acc-1")
    assert info.value.code == DomainErrorCode.INTERNAL_ERROR


async def test_unreachable_consul(admin_service, consul):
    consul.fail_next_call = True

    with pytest.raises(DomainError) as info:
        await admin_service.write_value_type("YQ==", "json")
    assert info.value.message == "failed to connect to consul"


@pytest.mark.parametrize(
    "call",
    [
        lambda admin: admin.get_kv_history("YQ=="),
        lambda admin: admin.get_kv_history_value("YQ==", "v1"),
        lambda admin: admin.add_history_version("YQ==", "v1", b""),
        lambda admin: admin.list_notifications(),
        lambda admin: admin.get_open_notifications_count(),
    ],
)
async def test_unimplemented_operations(admin_service, call):
    with pytest.raises(DomainError) as info:
        await call(admin_service)
    assert info.value.code == DomainErrorCode.NOT_IMPLEMENTED


def test_metadata_touched_keeps_creation():
    metadata = TokenMetadata.fresh("alice")
    touched = metadata.touched("bob")

    assert touched.created_by == "alice"
    assert touched.last_updated_by == "bob"
