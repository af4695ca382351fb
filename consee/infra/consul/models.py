"""Typed request options, responses and API objects for the Consul HTTP API."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field, replace
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ConsulTransportError(Exception):
    """Raised when Consul could not be reached or the exchange failed midway.

    Attributes:
        operation: Client operation that failed (e.g. ``kv.get``).
        error_type: Short category used for metrics (timeout, connection, http_error).
    """

    def __init__(self, operation: str, error_type: str, message: str) -> None:
        self.operation = operation
        self.error_type = error_type
        super().__init__(f"{operation}: {message}")


# ──────────────────────────────────────────────────────────────
# Request options
# ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class QueryOptions:
    """Options of a read request, passed explicitly with every call."""

    token: str = ""
    datacenter: str = ""
    wait_index: int = 0
    wait_time: float = 0.0
    filter: str = ""

    def with_wait(self, index: int, wait_time: float) -> QueryOptions:
        """Copy of these options turned into a blocking query."""
        return replace(self, wait_index=index, wait_time=wait_time)

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.datacenter:
            params["dc"] = self.datacenter
        if self.wait_index:
            params["index"] = str(self.wait_index)
        if self.wait_time:
            params["wait"] = f"{max(1, int(self.wait_time * 1000))}ms"
        if self.filter:
            params["filter"] = self.filter
        return params

    def to_headers(self) -> dict[str, str]:
        return {"X-Consul-Token": self.token} if self.token else {}


@dataclass(frozen=True)
class WriteOptions:
    """Options of a write request, passed explicitly with every call."""

    token: str = ""
    datacenter: str = ""

    def to_params(self) -> dict[str, str]:
        return {"dc": self.datacenter} if self.datacenter else {}

    def to_headers(self) -> dict[str, str]:
        return {"X-Consul-Token": self.token} if self.token else {}


@dataclass(frozen=True)
class TokenFilter:
    """Server-side filters for listing tokens."""

    policy: str = ""
    role: str = ""
    auth_method: str = ""
    service_name: str = ""

    def to_params(self) -> dict[str, str]:
        params = {
            "policy": self.policy,
            "role": self.role,
            "authmethod": self.auth_method,
            "servicename": self.service_name,
        }
        return {k: v for k, v in params.items() if v}


# ──────────────────────────────────────────────────────────────
# Response envelope
# ──────────────────────────────────────────────────────────────


@dataclass
class ConsulResponse(Generic[T]):
    """Outcome of one Consul API call.

    The body is decoded only for 200 responses. A body that fails to decode
    leaves ``body`` as None and describes the failure in ``error``.
    """

    status: int
    body: T | None = None
    raw_body: bytes = b""
    error: str | None = None
    index: int = 0
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == 200


# ──────────────────────────────────────────────────────────────
# API objects
# ──────────────────────────────────────────────────────────────


@dataclass
class KVPair:
    key: str
    value: bytes = b""
    flags: int = 0
    create_index: int = 0
    modify_index: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> KVPair:
        raw = data.get("Value")
        return cls(
            key=data["Key"],
            value=base64.b64decode(raw) if raw else b"",
            flags=data.get("Flags", 0),
            create_index=data.get("CreateIndex", 0),
            modify_index=data.get("ModifyIndex", 0),
        )


@dataclass
class ACLLink:
    """Identifier/name pair referencing a policy or role."""

    id: str = ""
    name: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ACLLink:
        return cls(id=data.get("ID", ""), name=data.get("Name", ""))

    def to_api(self) -> dict[str, str]:
        payload = {}
        if self.id:
            payload["ID"] = self.id
        if self.name:
            payload["Name"] = self.name
        return payload


@dataclass
class ACLToken:
    accessor_id: str = ""
    secret_id: str = ""
    description: str = ""
    policies: list[ACLLink] = field(default_factory=list)
    roles: list[ACLLink] = field(default_factory=list)
    local: bool = False
    create_index: int = 0
    modify_index: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ACLToken:
        return cls(
            accessor_id=data.get("AccessorID", ""),
            secret_id=data.get("SecretID", ""),
            description=data.get("Description", ""),
            policies=[ACLLink.from_api(p) for p in data.get("Policies") or []],
            roles=[ACLLink.from_api(r) for r in data.get("Roles") or []],
            local=data.get("Local", False),
            create_index=data.get("CreateIndex", 0),
            modify_index=data.get("ModifyIndex", 0),
        )

    def to_api(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "AccessorID": self.accessor_id,
            "SecretID": self.secret_id,
            "Description": self.description,
            "Local": self.local,
        }
        if self.policies:
            payload["Policies"] = [p.to_api() for p in self.policies]
        if self.roles:
            payload["Roles"] = [r.to_api() for r in self.roles]
        return payload


@dataclass
class ACLPolicy:
    id: str = ""
    name: str = ""
    description: str = ""
    rules: str = ""
    datacenters: list[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ACLPolicy:
        return cls(
            id=data.get("ID", ""),
            name=data.get("Name", ""),
            description=data.get("Description", ""),
            rules=data.get("Rules", ""),
            datacenters=list(data.get("Datacenters") or []),
        )

    def to_api(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "Name": self.name,
            "Description": self.description,
            "Rules": self.rules,
        }
        if self.id:
            payload["ID"] = self.id
        if self.datacenters:
            payload["Datacenters"] = self.datacenters
        return payload


@dataclass
class ACLRole:
    id: str = ""
    name: str = ""
    description: str = ""
    policies: list[ACLLink] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ACLRole:
        return cls(
            id=data.get("ID", ""),
            name=data.get("Name", ""),
            description=data.get("Description", ""),
            policies=[ACLLink.from_api(p) for p in data.get("Policies") or []],
        )

    def to_api(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "Name": self.name,
            "Description": self.description,
            "Policies": [p.to_api() for p in self.policies],
        }
        if self.id:
            payload["ID"] = self.id
        return payload
