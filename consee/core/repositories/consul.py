"""Consul-backed repositories.

Each repository is bound at construction to the ``QueryOptions`` and
``WriteOptions`` it sends with every call: per request for repositories
acting on behalf of a user, fixed admin credentials for ``AdminRepository``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from consee.infra.consul import QueryOptions, WriteOptions

if TYPE_CHECKING:
    from consee.core.settings.consul import ConsulSettings
    from consee.infra.consul import (
        ACLPolicy,
        ACLRole,
        ACLToken,
        ConsulClientProtocol,
        ConsulResponse,
        KVPair,
        TokenFilter,
        WatchCallback,
    )


class ConsulKVRepository:
    """KV repository over a Consul client."""

    def __init__(self, client: ConsulClientProtocol, query: QueryOptions, write: WriteOptions) -> None:
        self._client = client
        self.query = query
        self.write = write

    async def keys(self, prefix: str, separator: str = "") -> ConsulResponse[list[str]]:
        return await self._client.kv_keys(prefix, self.query, separator)

    async def get(self, key: str) -> ConsulResponse[KVPair]:
        return await self._client.kv_get(key, self.query)

    async def list(self, prefix: str) -> ConsulResponse[list[KVPair]]:
        return await self._client.kv_list(prefix, self.query)

    async def put(self, key: str, value: bytes) -> ConsulResponse[bool]:
        return await self._client.kv_put(key, value, self.write)

    async def delete(self, key: str) -> ConsulResponse[bool]:
        if key.endswith("/"):
            return await self._client.kv_delete_tree(key, self.write)
        return await self._client.kv_delete(key, self.write)

    async def watch(self, prefix: str, callback: WatchCallback) -> None:
        await self._client.watch_keys(prefix, self.query, callback)


class ConsulACLRepository:
    """ACL repository over a Consul client."""

    def __init__(self, client: ConsulClientProtocol, query: QueryOptions, write: WriteOptions) -> None:
        self._client = client
        self.query = query
        self.write = write

    async def read_self(self) -> ConsulResponse[ACLToken]:
        return await self._client.token_read_self(self.query)

    async def read_self_with(self, secret_id: str) -> ConsulResponse[ACLToken]:
        return await self._client.token_read_self(replace(self.query, token=secret_id))

    async def list_tokens(self, token_filter: TokenFilter | None = None) -> ConsulResponse[list[ACLToken]]:
        return await self._client.token_list(self.query, token_filter)

    async def read_token(self, accessor_id: str) -> ConsulResponse[ACLToken]:
        return await self._client.token_read(accessor_id, self.query)

    async def create_token(self, token: ACLToken) -> ConsulResponse[ACLToken]:
        return await self._client.token_create(token, self.write)

    async def update_token(self, token: ACLToken) -> ConsulResponse[ACLToken]:
        return await self._client.token_update(token, self.write)

    async def delete_token(self, accessor_id: str) -> ConsulResponse[bool]:
        return await self._client.token_delete(accessor_id, self.write)

    async def list_policies(self) -> ConsulResponse[list[ACLPolicy]]:
        return await self._client.policy_list(self.query)

    async def read_policy(self, policy_id: str) -> ConsulResponse[ACLPolicy]:
        return await self._client.policy_read(policy_id, self.query)

    async def read_policy_by_name(self, name: str) -> ConsulResponse[ACLPolicy]:
        return await self._client.policy_read_by_name(name, self.query)

    async def create_policy(self, policy: ACLPolicy) -> ConsulResponse[ACLPolicy]:
        return await self._client.policy_create(policy, self.write)

    async def update_policy(self, policy: ACLPolicy) -> ConsulResponse[ACLPolicy]:
        return await self._client.policy_update(policy, self.write)

    async def delete_policy(self, policy_id: str) -> ConsulResponse[bool]:
        return await self._client.policy_delete(policy_id, self.write)

    async def list_roles(self) -> ConsulResponse[list[ACLRole]]:
        return await self._client.role_list(self.query)

    async def read_role(self, role_id: str) -> ConsulResponse[ACLRole]:
        return await self._client.role_read(role_id, self.query)

    async def read_role_by_name(self, name: str) -> ConsulResponse[ACLRole]:
        return await self._client.role_read_by_name(name, self.query)

    async def create_role(self, role: ACLRole) -> ConsulResponse[ACLRole]:
        return await self._client.role_create(role, self.write)

    async def update_role(self, role: ACLRole) -> ConsulResponse[ACLRole]:
        return await self._client.role_update(role, self.write)

    async def delete_role(self, role_id: str) -> ConsulResponse[bool]:
        return await self._client.role_delete(role_id, self.write)


@dataclass(frozen=True)
class AdminRepository:
    """KV and ACL repositories sharing the fixed admin credentials."""

    kv: ConsulKVRepository
    acl: ConsulACLRepository

    @classmethod
    def from_settings(cls, client: ConsulClientProtocol, settings: ConsulSettings) -> AdminRepository:
        query = settings.admin_query_options()
        write = settings.admin_write_options()
        return cls(
            kv=ConsulKVRepository(client, query, write),
            acl=ConsulACLRepository(client, query, write),
        )


def user_options(token: str, datacenter: str = "") -> tuple[QueryOptions, WriteOptions]:
    """Request options acting on behalf of the holder of ``token``."""
    return QueryOptions(token=token, datacenter=datacenter), WriteOptions(token=token, datacenter=datacenter)
