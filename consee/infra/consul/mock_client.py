"""Mock Consul client for testing without a real Consul instance.

This module provides a MockConsulClient with the same KV and ACL surface as
``ConsulClient`` and stores all state in memory, making it ideal for unit
tests of the repositories and services.

Access control is deliberately coarse:
- an unknown token is refused with 403 on every call,
- a token holding the global-management policy may do anything,
- any other known token may read its own token and read KV.

Usage in tests:
    from consee.infra.consul.mock_client import MockConsulClient

    @pytest.fixture
    def mock_consul():
        client = MockConsulClient()
        client.bootstrap(ADMIN_SECRET)
        return client

    async def test_put(mock_consul):
        resp = await mock_consul.kv_put("a", b"1", WriteOptions(token=ADMIN_SECRET))
        assert resp.body is True
        assert mock_consul.kv["a"] == b"1"
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
import logging
from typing import Any
import uuid

from consee.core.constants import (
    POLICY_NAME_BUILTIN_GLOBAL_READONLY,
    POLICY_NAME_GLOBAL_MANAGEMENT,
)
from consee.infra.consul.client import WatchCallback
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

logger = logging.getLogger(__name__)

GLOBAL_MANAGEMENT_POLICY_ID = "00000000-0000-0000-0000-000000000001"
GLOBAL_READONLY_POLICY_ID = "00000000-0000-0000-0000-000000000002"


@dataclass
class CallRecord:
    """Record of a method call for assertion in tests."""

    method: str
    args: dict[str, Any]
    status: int | None = None


@dataclass
class MockConsulClient:
    """In-memory mock Consul client for testing.

    Attributes:
        kv: Stored values by key.
        tokens: Tokens by accessor id.
        policies: Policies by id.
        roles: Roles by id.
        index: Raft-like modify index, bumped on every KV write.
        call_history: List of all method calls for assertion.
        fail_next_call: Set to True to raise a transport error on next call.
        status_overrides: Force a status code for an operation name
            (e.g. ``{"kv.get": 500}``); applied before any other logic.
        watch_wait: Seconds a blocking key read waits for a change.
    """

    kv: dict[str, bytes] = field(default_factory=dict)
    tokens: dict[str, ACLToken] = field(default_factory=dict)
    policies: dict[str, ACLPolicy] = field(default_factory=dict)
    roles: dict[str, ACLRole] = field(default_factory=dict)
    index: int = 1
    call_history: list[CallRecord] = field(default_factory=list)
    fail_next_call: bool = False
    status_overrides: dict[str, int] = field(default_factory=dict)
    watch_wait: float = 0.05
    closed: bool = False

    def __post_init__(self) -> None:
        self._changed = asyncio.Event()
        self.policies[GLOBAL_MANAGEMENT_POLICY_ID] = ACLPolicy(
            id=GLOBAL_MANAGEMENT_POLICY_ID,
            name=POLICY_NAME_GLOBAL_MANAGEMENT,
            description="Builtin Policy that grants unlimited access",
        )
        self.policies[GLOBAL_READONLY_POLICY_ID] = ACLPolicy(
            id=GLOBAL_READONLY_POLICY_ID,
            name=POLICY_NAME_BUILTIN_GLOBAL_READONLY,
            description="Builtin Policy that grants unlimited read-only access",
        )

    # ──────────────────────────────────────────────────────────────
    # Test helpers
    # ──────────────────────────────────────────────────────────────

    def bootstrap(self, secret_id: str, accessor_id: str | None = None) -> ACLToken:
        """Create a global-management token, like ``consul acl bootstrap``."""
        return self.add_token(
            secret_id,
            accessor_id=accessor_id,
            policies=[ACLLink(GLOBAL_MANAGEMENT_POLICY_ID, POLICY_NAME_GLOBAL_MANAGEMENT)],
            description="Bootstrap Token (Global Management)",
        )

    def add_token(
        self,
        secret_id: str,
        accessor_id: str | None = None,
        policies: list[ACLLink] | None = None,
        description: str = "",
    ) -> ACLToken:
        """Store a token directly, bypassing access control."""
        token = ACLToken(
            accessor_id=accessor_id or str(uuid.uuid4()),
            secret_id=secret_id,
            description=description,
            policies=list(policies or []),
        )
        self.tokens[token.accessor_id] = token
        return token

    def policy_by_name(self, name: str) -> ACLPolicy | None:
        return next((p for p in self.policies.values() if p.name == name), None)

    def get_calls(self, method: str | None = None) -> list[CallRecord]:
        """Get call history, optionally filtered by method name."""
        if method is None:
            return list(self.call_history)
        return [c for c in self.call_history if c.method == method]

    def reset(self) -> None:
        """Drop stored KV data and call history; ACL objects are kept."""
        self.kv.clear()
        self.call_history.clear()
        self.fail_next_call = False
        self.status_overrides.clear()

    # ──────────────────────────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────────────────────────

    def _token_by_secret(self, secret_id: str) -> ACLToken | None:
        if not secret_id:
            return None
        return next((t for t in self.tokens.values() if t.secret_id == secret_id), None)

    def _is_manager(self, token: ACLToken) -> bool:
        return any(
            link.id == GLOBAL_MANAGEMENT_POLICY_ID or link.name == POLICY_NAME_GLOBAL_MANAGEMENT
            for link in token.policies
        )

    def _begin(
        self,
        operation: str,
        options: QueryOptions | WriteOptions,
        *,
        privileged: bool,
        **args: Any,
    ) -> ConsulResponse[Any] | None:
        """Record the call and return an early response when it is refused."""
        record = CallRecord(method=operation, args=args)
        self.call_history.append(record)
        if self.fail_next_call:
            self.fail_next_call = False
            raise ConsulTransportError(operation, "connection", "simulated failure")
        if operation in self.status_overrides:
            record.status = self.status_overrides[operation]
            return ConsulResponse(status=record.status, index=self.index)
        caller = self._token_by_secret(options.token)
        if caller is None:
            record.status = 403
            return ConsulResponse(status=403, raw_body=b"ACL not found", index=self.index)
        if privileged and not self._is_manager(caller):
            record.status = 403
            return ConsulResponse(status=403, raw_body=b"Permission denied", index=self.index)
        record.status = 200
        return None

    def _ok(self, body: Any) -> ConsulResponse[Any]:
        return ConsulResponse(status=200, body=body, index=self.index)

    def _status(self, status: int, message: str = "") -> ConsulResponse[Any]:
        if self.call_history:
            self.call_history[-1].status = status
        return ConsulResponse(status=status, raw_body=message.encode(), index=self.index)

    def _bump(self) -> None:
        self.index += 1
        self._changed.set()
        self._changed = asyncio.Event()

    def _resolve_links(self, links: list[ACLLink], store: dict[str, Any]) -> list[ACLLink] | None:
        resolved = []
        for link in links:
            target = store.get(link.id) if link.id else None
            if target is None and link.name:
                target = next((o for o in store.values() if o.name == link.name), None)
            if target is None:
                return None
            resolved.append(ACLLink(target.id, target.name))
        return resolved

    # ──────────────────────────────────────────────────────────────
    # KV
    # ──────────────────────────────────────────────────────────────

    async def kv_keys(
        self, prefix: str, query: QueryOptions, separator: str = ""
    ) -> ConsulResponse[list[str]]:
        if (denied := self._begin("kv.keys", query, privileged=False, prefix=prefix)) is not None:
            return denied
        if query.wait_index and query.wait_index >= self.index:
            changed = self._changed
            try:
                await asyncio.wait_for(changed.wait(), timeout=self.watch_wait)
            except TimeoutError:
                pass
        keys = sorted(k for k in self.kv if k.startswith(prefix))
        if separator:
            folded: list[str] = []
            for key in keys:
                rest = key[len(prefix) :]
                cut = rest.find(separator)
                entry = key if cut < 0 else prefix + rest[: cut + len(separator)]
                if entry not in folded:
                    folded.append(entry)
            keys = folded
        if not keys:
            return self._status(404)
        return self._ok(keys)

    async def kv_get(self, key: str, query: QueryOptions) -> ConsulResponse[KVPair]:
        if (denied := self._begin("kv.get", query, privileged=False, key=key)) is not None:
            return denied
        if key not in self.kv:
            return self._status(404)
        return self._ok(KVPair(key=key, value=self.kv[key]))

    async def kv_list(self, prefix: str, query: QueryOptions) -> ConsulResponse[list[KVPair]]:
        if (denied := self._begin("kv.list", query, privileged=False, prefix=prefix)) is not None:
            return denied
        pairs = [KVPair(key=k, value=v) for k, v in sorted(self.kv.items()) if k.startswith(prefix)]
        if not pairs:
            return self._status(404)
        return self._ok(pairs)

    async def kv_put(self, key: str, value: bytes, write: WriteOptions) -> ConsulResponse[bool]:
        if key.startswith("/"):
            raise ValueError(f"invalid key {key!r}: keys must not begin with '/'")
        if (denied := self._begin("kv.put", write, privileged=True, key=key)) is not None:
            return denied
        self.kv[key] = bytes(value)
        self._bump()
        return self._ok(True)

    async def kv_delete(self, key: str, write: WriteOptions) -> ConsulResponse[bool]:
        if (denied := self._begin("kv.delete", write, privileged=True, key=key)) is not None:
            return denied
        if self.kv.pop(key, None) is not None:
            self._bump()
        return self._ok(True)

    async def kv_delete_tree(self, prefix: str, write: WriteOptions) -> ConsulResponse[bool]:
        if (denied := self._begin("kv.delete_tree", write, privileged=True, prefix=prefix)) is not None:
            return denied
        doomed = [k for k in self.kv if k.startswith(prefix)]
        for key in doomed:
            del self.kv[key]
        if doomed:
            self._bump()
        return self._ok(True)

    async def watch_keys(self, prefix: str, query: QueryOptions, callback: WatchCallback) -> None:
        index = 0
        while True:
            current = query.with_wait(index, self.watch_wait) if index else query
            try:
                resp = await self.kv_keys(prefix, current)
            except ConsulTransportError as e:
                if await callback(None, e):
                    return
                continue
            index = resp.index
            if await callback(resp, None):
                return

    # ──────────────────────────────────────────────────────────────
    # ACL tokens
    # ──────────────────────────────────────────────────────────────

    async def token_read_self(self, query: QueryOptions) -> ConsulResponse[ACLToken]:
        if (denied := self._begin("acl.token_read_self", query, privileged=False)) is not None:
            return denied
        return self._ok(replace(self._token_by_secret(query.token)))

    async def token_list(
        self, query: QueryOptions, token_filter: TokenFilter | None = None
    ) -> ConsulResponse[list[ACLToken]]:
        if (denied := self._begin("acl.token_list", query, privileged=True)) is not None:
            return denied
        tokens = list(self.tokens.values())
        if token_filter is not None and token_filter.policy:
            tokens = [t for t in tokens if any(p.id == token_filter.policy for p in t.policies)]
        if token_filter is not None and token_filter.role:
            tokens = [t for t in tokens if any(r.id == token_filter.role for r in t.roles)]
        return self._ok([replace(t) for t in tokens])

    async def token_read(self, accessor_id: str, query: QueryOptions) -> ConsulResponse[ACLToken]:
        if (denied := self._begin("acl.token_read", query, privileged=True, id=accessor_id)) is not None:
            return denied
        token = self.tokens.get(accessor_id)
        if token is None:
            return self._status(404, "ACL not found")
        return self._ok(replace(token))

    async def token_create(self, token: ACLToken, write: WriteOptions) -> ConsulResponse[ACLToken]:
        if (denied := self._begin("acl.token_create", write, privileged=True)) is not None:
            return denied
        accessor_id = token.accessor_id or str(uuid.uuid4())
        secret_id = token.secret_id or str(uuid.uuid4())
        if accessor_id in self.tokens or self._token_by_secret(secret_id) is not None:
            return self._status(500, "Invalid Token: AccessorID or SecretID already in use")
        policies = self._resolve_links(token.policies, self.policies)
        roles = self._resolve_links(token.roles, self.roles)
        if policies is None or roles is None:
            return self._status(400, "No such ACL policy or role")
        created = replace(
            token, accessor_id=accessor_id, secret_id=secret_id, policies=policies, roles=roles
        )
        self.tokens[accessor_id] = created
        return self._ok(replace(created))

    async def token_update(self, token: ACLToken, write: WriteOptions) -> ConsulResponse[ACLToken]:
        if (denied := self._begin("acl.token_update", write, privileged=True, id=token.accessor_id)) is not None:
            return denied
        current = self.tokens.get(token.accessor_id)
        if current is None:
            return self._status(400, "Cannot find token to update")
        policies = self._resolve_links(token.policies, self.policies)
        roles = self._resolve_links(token.roles, self.roles)
        if policies is None or roles is None:
            return self._status(400, "No such ACL policy or role")
        updated = replace(
            current,
            description=token.description or current.description,
            policies=policies,
            roles=roles,
        )
        self.tokens[token.accessor_id] = updated
        return self._ok(replace(updated))

    async def token_delete(self, accessor_id: str, write: WriteOptions) -> ConsulResponse[bool]:
        if (denied := self._begin("acl.token_delete", write, privileged=True, id=accessor_id)) is not None:
            return denied
        self.tokens.pop(accessor_id, None)
        return self._ok(True)

    # ──────────────────────────────────────────────────────────────
    # ACL policies
    # ──────────────────────────────────────────────────────────────

    async def policy_list(self, query: QueryOptions) -> ConsulResponse[list[ACLPolicy]]:
        if (denied := self._begin("acl.policy_list", query, privileged=True)) is not None:
            return denied
        return self._ok([replace(p) for p in self.policies.values()])

    async def policy_read(self, policy_id: str, query: QueryOptions) -> ConsulResponse[ACLPolicy]:
        if (denied := self._begin("acl.policy_read", query, privileged=True, id=policy_id)) is not None:
            return denied
        policy = self.policies.get(policy_id)
        if policy is None:
            return self._status(404, "ACL not found")
        return self._ok(replace(policy))

    async def policy_read_by_name(self, name: str, query: QueryOptions) -> ConsulResponse[ACLPolicy]:
        if (denied := self._begin("acl.policy_read_by_name", query, privileged=True, name=name)) is not None:
            return denied
        policy = self.policy_by_name(name)
        if policy is None:
            return self._status(404, "ACL not found")
        return self._ok(replace(policy))

    async def policy_create(self, policy: ACLPolicy, write: WriteOptions) -> ConsulResponse[ACLPolicy]:
        if (denied := self._begin("acl.policy_create", write, privileged=True, name=policy.name)) is not None:
            return denied
        if self.policy_by_name(policy.name) is not None:
            return self._status(500, f"Invalid Policy: A Policy with Name {policy.name!r} already exists")
        created = replace(policy, id=policy.id or str(uuid.uuid4()))
        self.policies[created.id] = created
        return self._ok(replace(created))

    async def policy_update(self, policy: ACLPolicy, write: WriteOptions) -> ConsulResponse[ACLPolicy]:
        if (denied := self._begin("acl.policy_update", write, privileged=True, id=policy.id)) is not None:
            return denied
        if policy.id not in self.policies:
            return self._status(400, "Cannot find policy to update")
        self.policies[policy.id] = replace(policy)
        return self._ok(replace(policy))

    async def policy_delete(self, policy_id: str, write: WriteOptions) -> ConsulResponse[bool]:
        if (denied := self._begin("acl.policy_delete", write, privileged=True, id=policy_id)) is not None:
            return denied
        self.policies.pop(policy_id, None)
        for token in self.tokens.values():
            token.policies = [p for p in token.policies if p.id != policy_id]
        return self._ok(True)

    # ──────────────────────────────────────────────────────────────
    # ACL roles
    # ──────────────────────────────────────────────────────────────

    async def role_list(self, query: QueryOptions) -> ConsulResponse[list[ACLRole]]:
        if (denied := self._begin("acl.role_list", query, privileged=True)) is not None:
            return denied
        return self._ok([replace(r) for r in self.roles.values()])

    async def role_read(self, role_id: str, query: QueryOptions) -> ConsulResponse[ACLRole]:
        if (denied := self._begin("acl.role_read", query, privileged=True, id=role_id)) is not None:
            return denied
        role = self.roles.get(role_id)
        if role is None:
            return self._status(404, "ACL not found")
        return self._ok(replace(role))

    async def role_read_by_name(self, name: str, query: QueryOptions) -> ConsulResponse[ACLRole]:
        if (denied := self._begin("acl.role_read_by_name", query, privileged=True, name=name)) is not None:
            return denied
        role = next((r for r in self.roles.values() if r.name == name), None)
        if role is None:
            return self._status(404, "ACL not found")
        return self._ok(replace(role))

    async def role_create(self, role: ACLRole, write: WriteOptions) -> ConsulResponse[ACLRole]:
        if (denied := self._begin("acl.role_create", write, privileged=True, name=role.name)) is not None:
            return denied
        if any(r.name == role.name for r in self.roles.values()):
            return self._status(500, f"Invalid Role: A Role with Name {role.name!r} already exists")
        policies = self._resolve_links(role.policies, self.policies)
        if policies is None:
            return self._status(400, "No such ACL policy")
        created = replace(role, id=role.id or str(uuid.uuid4()), policies=policies)
        self.roles[created.id] = created
        return self._ok(replace(created))

    async def role_update(self, role: ACLRole, write: WriteOptions) -> ConsulResponse[ACLRole]:
        if (denied := self._begin("acl.role_update", write, privileged=True, id=role.id)) is not None:
            return denied
        if role.id not in self.roles:
            return self._status(400, "Cannot find role to update")
        policies = self._resolve_links(role.policies, self.policies)
        if policies is None:
            return self._status(400, "No such ACL policy")
        updated = replace(role, policies=policies)
        self.roles[role.id] = updated
        return self._ok(replace(updated))

    async def role_delete(self, role_id: str, write: WriteOptions) -> ConsulResponse[bool]:
        if (denied := self._begin("acl.role_delete", write, privileged=True, id=role_id)) is not None:
            return denied
        self.roles.pop(role_id, None)
        return self._ok(True)

    async def close(self) -> None:
        """Mark the client closed."""
        self.closed = True
        logger.debug("MockConsulClient closed")
