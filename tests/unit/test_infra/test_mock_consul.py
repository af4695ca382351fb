"""Tests for the in-memory Consul client used across the suite."""

from __future__ import annotations

import asyncio

import pytest

from consee.infra.consul import (
    ACLLink,
    ACLPolicy,
    ACLToken,
    ConsulClientProtocol,
    ConsulTransportError,
    MockConsulClient,
    QueryOptions,
    WriteOptions,
)

SECRET = "00000000-0000-0000-0000-00000000000b"


@pytest.fixture
def mock_consul() -> MockConsulClient:
    client = MockConsulClient()
    client.bootstrap(SECRET)
    return client


def test_satisfies_protocol(mock_consul):
    assert isinstance(mock_consul, ConsulClientProtocol)


async def test_put_and_get(mock_consul):
    resp = await mock_consul.kv_put("a", b"1", WriteOptions(token=SECRET))
    assert resp.body is True
    assert mock_consul.kv["a"] == b"1"

    got = await mock_consul.kv_get("a", QueryOptions(token=SECRET))
    assert got.body.value == b"1"


async def test_unknown_token_refused(mock_consul):
    resp = await mock_consul.kv_get("a", QueryOptions(token="nobody"))
    assert resp.status == 403
    assert resp.raw_body == b"ACL not found"


async def test_plain_token_can_not_write(mock_consul):
    mock_consul.add_token("plain")
    resp = await mock_consul.kv_put("a", b"1", WriteOptions(token="plain"))
    assert resp.status == 403
    assert resp.raw_body == b"Permission denied"
    assert "a" not in mock_consul.kv


async def test_keys_fold_on_separator(mock_consul):
    for key in ("app/a", "app/b/c", "top"):
        mock_consul.kv[key] = b""
    resp = await mock_consul.kv_keys("app/", QueryOptions(token=SECRET), separator="/")
    assert resp.body == ["app/a", "app/b/"]


async def test_empty_listing_is_404(mock_consul):
    resp = await mock_consul.kv_keys("none/", QueryOptions(token=SECRET))
    assert resp.status == 404


async def test_fail_next_call(mock_consul):
    mock_consul.fail_next_call = True
    with pytest.raises(ConsulTransportError):
        await mock_consul.kv_get("a", QueryOptions(token=SECRET))
    assert (await mock_consul.kv_get("a", QueryOptions(token=SECRET))).status == 404


async def test_status_override(mock_consul):
    mock_consul.status_overrides["kv.get"] = 500
    resp = await mock_consul.kv_get("a", QueryOptions(token=SECRET))
    assert resp.status == 500
    assert mock_consul.get_calls("kv.get")[0].status == 500


async def test_token_create_resolves_policy_names(mock_consul):
    write = WriteOptions(token=SECRET)
    policy = (await mock_consul.policy_create(ACLPolicy(name="web"), write)).body
    resp = await mock_consul.token_create(ACLToken(policies=[ACLLink(name="web")]), write)

    assert resp.body.policies == [ACLLink(policy.id, "web")]
    assert resp.body.accessor_id in mock_consul.tokens


async def test_token_create_unknown_policy(mock_consul):
    resp = await mock_consul.token_create(ACLToken(policies=[ACLLink(name="ghost")]), WriteOptions(token=SECRET))
    assert resp.status == 400


async def test_policy_delete_detaches_from_tokens(mock_consul):
    write = WriteOptions(token=SECRET)
    policy = (await mock_consul.policy_create(ACLPolicy(name="web"), write)).body
    token = (await mock_consul.token_create(ACLToken(policies=[ACLLink(id=policy.id)]), write)).body

    await mock_consul.policy_delete(policy.id, write)

    assert mock_consul.tokens[token.accessor_id].policies == []


async def test_blocking_read_wakes_on_write(mock_consul):
    mock_consul.watch_wait = 5.0
    query = QueryOptions(token=SECRET)
    first = await mock_consul.kv_keys("n/", query)

    async def write_later() -> None:
        await asyncio.sleep(0.01)
        await mock_consul.kv_put("n/1", b"", WriteOptions(token=SECRET))

    writer = asyncio.create_task(write_later())
    resp = await asyncio.wait_for(mock_consul.kv_keys("n/", query.with_wait(first.index, 5.0)), timeout=2.0)
    await writer

    assert resp.body == ["n/1"]
    assert resp.index > first.index
