"""Protocol definitions for Consul client abstraction.

This module defines the ConsulClientProtocol that allows for:
- Unit testing with MockConsulClient
- Dependency injection of the client into the repositories
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from consee.infra.consul.client import WatchCallback
    from consee.infra.consul.models import (
        ACLPolicy,
        ACLRole,
        ACLToken,
        ConsulResponse,
        KVPair,
        QueryOptions,
        TokenFilter,
        WriteOptions,
    )


@runtime_checkable
class ConsulClientProtocol(Protocol):
    """Protocol for Consul KV and ACL operations.

    Every call answers with a ``ConsulResponse`` whatever the HTTP status;
    implementations raise ``ConsulTransportError`` only when no answer was
    received at all.
    """

    async def kv_keys(
        self, prefix: str, query: QueryOptions, separator: str = ""
    ) -> ConsulResponse[list[str]]: ...

    async def kv_get(self, key: str, query: QueryOptions) -> ConsulResponse[KVPair]: ...

    async def kv_list(self, prefix: str, query: QueryOptions) -> ConsulResponse[list[KVPair]]: ...

    async def kv_put(self, key: str, value: bytes, write: WriteOptions) -> ConsulResponse[bool]: ...

    async def kv_delete(self, key: str, write: WriteOptions) -> ConsulResponse[bool]: ...

    async def kv_delete_tree(self, prefix: str, write: WriteOptions) -> ConsulResponse[bool]: ...

    async def watch_keys(
        self, prefix: str, query: QueryOptions, callback: WatchCallback
    ) -> None:
        """Run a blocking-query loop on ``prefix`` until the callback returns True."""
        ...

    async def token_read_self(self, query: QueryOptions) -> ConsulResponse[ACLToken]: ...

    async def token_list(
        self, query: QueryOptions, token_filter: TokenFilter | None = None
    ) -> ConsulResponse[list[ACLToken]]: ...

    async def token_read(self, accessor_id: str, query: QueryOptions) -> ConsulResponse[ACLToken]: ...

    async def token_create(self, token: ACLToken, write: WriteOptions) -> ConsulResponse[ACLToken]: ...

    async def token_update(self, token: ACLToken, write: WriteOptions) -> ConsulResponse[ACLToken]: ...

    async def token_delete(self, accessor_id: str, write: WriteOptions) -> ConsulResponse[bool]: ...

    async def policy_list(self, query: QueryOptions) -> ConsulResponse[list[ACLPolicy]]: ...

    async def policy_read(self, policy_id: str, query: QueryOptions) -> ConsulResponse[ACLPolicy]: ...

    async def policy_read_by_name(self, name: str, query: QueryOptions) -> ConsulResponse[ACLPolicy]: ...

    async def policy_create(self, policy: ACLPolicy, write: WriteOptions) -> ConsulResponse[ACLPolicy]: ...

    async def policy_update(self, policy: ACLPolicy, write: WriteOptions) -> ConsulResponse[ACLPolicy]: ...

    async def policy_delete(self, policy_id: str, write: WriteOptions) -> ConsulResponse[bool]: ...

    async def role_list(self, query: QueryOptions) -> ConsulResponse[list[ACLRole]]: ...

    async def role_read(self, role_id: str, query: QueryOptions) -> ConsulResponse[ACLRole]: ...

    async def role_read_by_name(self, name: str, query: QueryOptions) -> ConsulResponse[ACLRole]: ...

    async def role_create(self, role: ACLRole, write: WriteOptions) -> ConsulResponse[ACLRole]: ...

    async def role_update(self, role: ACLRole, write: WriteOptions) -> ConsulResponse[ACLRole]: ...

    async def role_delete(self, role_id: str, write: WriteOptions) -> ConsulResponse[bool]: ...

    async def close(self) -> None:
        """Close the client and release resources."""
        ...
