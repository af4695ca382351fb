"""Consul KV and ACL client infrastructure.

This package provides:
- An async httpx client for the KV and ACL HTTP APIs
- OpenTelemetry tracing and Prometheus metrics for every call
- Explicit per-call request options (no hidden request context)
- Mock client for testing

Testing:
    from consee.infra.consul import MockConsulClient, QueryOptions

    mock_client = MockConsulClient()
    mock_client.bootstrap("secret")
    resp = await mock_client.token_read_self(QueryOptions(token="secret"))
    assert resp.ok
"""

from consee.infra.consul.client import ConsulClient, WatchCallback
from consee.infra.consul.mock_client import MockConsulClient
from consee.infra.consul.models import (
    ACLLink,
    ACLPolicy,
    ACLRole,
    ACLToken,
    ConsulResponse,
    ConsulTransportError,
    KVPair,
    QueryOptions,
    TokenFilter,
    WriteOptions,
)
from consee.infra.consul.protocols import ConsulClientProtocol

__all__ = [
    "ACLLink",
    "ACLPolicy",
    "ACLRole",
    "ACLToken",
    "ConsulClient",
    "ConsulClientProtocol",
    "ConsulResponse",
    "ConsulTransportError",
    "KVPair",
    "MockConsulClient",
    "QueryOptions",
    "TokenFilter",
    "WatchCallback",
    "WriteOptions",
]
