"""Repository contracts used by the services.

Repositories return the raw ``ConsulResponse`` so the services can apply
their own status-code rules; transport failures propagate as
``ConsulTransportError``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from consee.infra.consul import (
        ACLPolicy,
        ACLRole,
        ACLToken,
        ConsulResponse,
        KVPair,
        TokenFilter,
        WatchCallback,
    )


@runtime_checkable
class KVRepository(Protocol):
    """Key/value operations bound to one set of credentials."""

    async def keys(self, prefix: str, separator: str = "") -> ConsulResponse[list[str]]: ...

    async def get(self, key: str) -> ConsulResponse[KVPair]: ...

    async def list(self, prefix: str) -> ConsulResponse[list[KVPair]]: ...

    async def put(self, key: str, value: bytes) -> ConsulResponse[bool]: ...

    async def delete(self, key: str) -> ConsulResponse[bool]:
        """Delete ``key``; a key ending with ``/`` deletes the whole folder."""
        ...

    async def watch(self, prefix: str, callback: WatchCallback) -> None: ...


@runtime_checkable
class ACLRepository(Protocol):
    """Token, policy and role operations bound to one set of credentials."""

    async def read_self(self) -> ConsulResponse[ACLToken]: ...

    async def read_self_with(self, secret_id: str) -> ConsulResponse[ACLToken]:
        """Self-read using another secret; used for secret id uniqueness checks."""
        ...

    async def list_tokens(self, token_filter: TokenFilter | None = None) -> ConsulResponse[list[ACLToken]]: ...

    async def read_token(self, accessor_id: str) -> ConsulResponse[ACLToken]: ...

    async def create_token(self, token: ACLToken) -> ConsulResponse[ACLToken]: ...

    async def update_token(self, token: ACLToken) -> ConsulResponse[ACLToken]: ...

    async def delete_token(self, accessor_id: str) -> ConsulResponse[bool]: ...

    async def list_policies(self) -> ConsulResponse[list[ACLPolicy]]: ...

    async def read_policy(self, policy_id: str) -> ConsulResponse[ACLPolicy]: ...

    async def read_policy_by_name(self, name: str) -> ConsulResponse[ACLPolicy]: ...

    async def create_policy(self, policy: ACLPolicy) -> ConsulResponse[ACLPolicy]: ...

    async def update_policy(self, policy: ACLPolicy) -> ConsulResponse[ACLPolicy]: ...

    async def delete_policy(self, policy_id: str) -> ConsulResponse[bool]: ...

    async def list_roles(self) -> ConsulResponse[list[ACLRole]]: ...

    async def read_role(self, role_id: str) -> ConsulResponse[ACLRole]: ...

    async def read_role_by_name(self, name: str) -> ConsulResponse[ACLRole]: ...

    async def create_role(self, role: ACLRole) -> ConsulResponse[ACLRole]: ...

    async def update_role(self, role: ACLRole) -> ConsulResponse[ACLRole]: ...

    async def delete_role(self, role_id: str) -> ConsulResponse[bool]: ...
