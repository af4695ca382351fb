"""Consul HTTP API client with observability.

This module provides the KV and ACL client used by the repositories:
- Uses httpx for async HTTP operations
- Includes OpenTelemetry tracing for all API calls
- Records Prometheus metrics for monitoring
- Returns every HTTP answer as a ``ConsulResponse``; only transport
  failures raise (``ConsulTransportError``)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
import time
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
from opentelemetry import trace

from consee.infra.consul.metrics import (
    consul_errors_total,
    consul_request_duration_seconds,
    consul_requests_total,
    consul_watch_iterations_total,
)
from consee.infra.consul.models import (
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

if TYPE_CHECKING:
    from consee.core.settings.consul import ConsulSettings

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Callback of a key watch: receives the latest response (or the transport
# error) and returns True to stop watching.
WatchCallback = Callable[
    [ConsulResponse[list[str]] | None, ConsulTransportError | None], Awaitable[bool]
]

WATCH_RETRY_DELAY = 1.0


def _kv_path(key: str) -> str:
    return "/v1/kv/" + quote(key, safe="/")


def _name_path(kind: str, name: str) -> str:
    return f"/v1/acl/{kind}/name/" + quote(name, safe="")


class ConsulClient:
    """HTTP client for the Consul KV and ACL APIs.

    Every method takes explicit ``QueryOptions`` or ``WriteOptions``; the
    client itself holds no credentials.

    Example:
        client = ConsulClient(get_consul_settings())
        resp = await client.kv_get("app/config", QueryOptions(token=token))
        if resp.ok:
            print(resp.body.value)
        await client.close()
    """

    def __init__(
        self,
        settings: ConsulSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Consul client.

        Args:
            settings: ConsulSettings instance with connection configuration.
            transport: Optional httpx transport (used by tests).
        """
        self._settings = settings
        self._base_url = settings.base_url
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(settings.connect_timeout),
            verify=settings.verify_ssl,
            transport=transport,
        )

        logger.debug(
            "ConsulClient initialized",
            extra={"base_url": self._base_url, "datacenter": settings.datacenter},
        )

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        query: QueryOptions | None = None,
        write: WriteOptions | None = None,
        params: dict[str, str] | None = None,
        content: bytes | None = None,
        payload: Any = None,
        decode: Callable[[Any], Any] | None = None,
    ) -> ConsulResponse[Any]:
        options = query or write or QueryOptions()
        request_params = {**options.to_params(), **(params or {})}
        timeout = None
        if query is not None and query.wait_time:
            # Blocking queries may legitimately hold the connection for the whole wait
            timeout = httpx.Timeout(self._settings.connect_timeout + query.wait_time * 1.1)

        start_time = time.perf_counter()
        with tracer.start_as_current_span(f"consul.{operation}") as span:
            span.set_attribute("consul.operation", operation)
            span.set_attribute("http.method", method)
            span.set_attribute("consul.path", path)
            try:
                response = await self._client.request(
                    method,
                    path,
                    params=request_params,
                    headers=options.to_headers(),
                    content=content,
                    json=payload,
                    timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
                )
            except httpx.TimeoutException as e:
                span.record_exception(e)
                consul_errors_total.labels(operation=operation, error_type="timeout").inc()
                logger.warning(
                    "Consul request timed out",
                    extra={"operation": operation, "path": path, "error": str(e)},
                )
                raise ConsulTransportError(operation, "timeout", str(e)) from e
            except httpx.HTTPError as e:
                span.record_exception(e)
                consul_errors_total.labels(operation=operation, error_type="connection").inc()
                logger.warning(
                    "Consul connection error",
                    extra={"operation": operation, "path": path, "error": str(e)},
                )
                raise ConsulTransportError(operation, "connection", str(e)) from e

            duration = time.perf_counter() - start_time
            if timeout is None:
                consul_request_duration_seconds.labels(operation=operation).observe(duration)
            consul_requests_total.labels(operation=operation, status=str(response.status_code)).inc()
            span.set_attribute("http.status_code", response.status_code)

            result: ConsulResponse[Any] = ConsulResponse(
                status=response.status_code,
                raw_body=response.content,
                index=int(response.headers.get("X-Consul-Index", "0") or 0),
                duration=duration,
            )
            if response.status_code != 200:
                logger.debug(
                    "Consul request returned non-200 status",
                    extra={
                        "operation": operation,
                        "status_code": response.status_code,
                        "response": response.text[:200],
                    },
                )
                return result

            if response.content:
                try:
                    data = response.json()
                    result.body = decode(data) if decode is not None else data
                except (ValueError, KeyError, TypeError) as e:
                    result.error = str(e)
                    span.record_exception(e)
                    logger.warning(
                        "Failed to decode Consul response",
                        extra={"operation": operation, "error": str(e)},
                    )
            return result

    # ──────────────────────────────────────────────────────────────
    # KV
    # ──────────────────────────────────────────────────────────────

    async def kv_keys(
        self, prefix: str, query: QueryOptions, separator: str = ""
    ) -> ConsulResponse[list[str]]:
        """List the keys under ``prefix`` (``GET /v1/kv/<prefix>?keys``)."""
        return await self._request(
            "kv.keys",
            "GET",
            _kv_path(prefix),
            query=query,
            params={"keys": "", **({"separator": separator} if separator else {})},
            decode=lambda data: [str(k) for k in data],
        )

    async def kv_get(self, key: str, query: QueryOptions) -> ConsulResponse[KVPair]:
        """Read one key; a missing key answers 404."""
        return await self._request(
            "kv.get",
            "GET",
            _kv_path(key),
            query=query,
            decode=lambda data: KVPair.from_api(data[0]) if data else None,
        )

    async def kv_list(self, prefix: str, query: QueryOptions) -> ConsulResponse[list[KVPair]]:
        """Read every pair under ``prefix``."""
        return await self._request(
            "kv.list",
            "GET",
            _kv_path(prefix),
            query=query,
            params={"recurse": ""},
            decode=lambda data: [KVPair.from_api(item) for item in data],
        )

    async def kv_put(self, key: str, value: bytes, write: WriteOptions) -> ConsulResponse[bool]:
        """Write ``value`` at ``key``. Keys must not start with ``/``."""
        if key.startswith("/"):
            raise ValueError(f"invalid key {key!r}: keys must not begin with '/'")
        return await self._request(
            "kv.put", "PUT", _kv_path(key), write=write, content=value, decode=bool
        )

    async def kv_delete(self, key: str, write: WriteOptions) -> ConsulResponse[bool]:
        return await self._request("kv.delete", "DELETE", _kv_path(key), write=write, decode=bool)

    async def kv_delete_tree(self, prefix: str, write: WriteOptions) -> ConsulResponse[bool]:
        return await self._request(
            "kv.delete_tree",
            "DELETE",
            _kv_path(prefix),
            write=write,
            params={"recurse": ""},
            decode=bool,
        )

    async def watch_keys(
        self,
        prefix: str,
        query: QueryOptions,
        callback: WatchCallback,
    ) -> None:
        """Watch the key list under ``prefix`` with blocking queries.

        The first read returns immediately; every following read blocks on the
        last seen index. The loop ends when the callback returns True or the
        surrounding task is cancelled.

        Args:
            prefix: Key prefix to watch.
            query: Base read options (token and datacenter).
            callback: Called after every read with the response or the error.
        """
        index = 0
        while True:
            current = query.with_wait(index, self._settings.watch_wait) if index else query
            try:
                resp = await self.kv_keys(prefix, current)
            except ConsulTransportError as e:
                consul_watch_iterations_total.labels(outcome="error").inc()
                if await callback(None, e):
                    return
                await asyncio.sleep(WATCH_RETRY_DELAY)
                continue

            consul_watch_iterations_total.labels(
                outcome="changed" if resp.index != index else "unchanged"
            ).inc()
            # Consul may reset the index; restart from a non-blocking read then
            index = resp.index if resp.index > index else 0
            if await callback(resp, None):
                return

    # ──────────────────────────────────────────────────────────────
    # ACL tokens
    # ──────────────────────────────────────────────────────────────

    async def token_read_self(self, query: QueryOptions) -> ConsulResponse[ACLToken]:
        """Read the token carried by ``query``."""
        return await self._request(
            "acl.token_read_self",
            "GET",
            "/v1/acl/token/self",
            query=query,
            decode=ACLToken.from_api,
        )

    async def token_list(
        self, query: QueryOptions, token_filter: TokenFilter | None = None
    ) -> ConsulResponse[list[ACLToken]]:
        return await self._request(
            "acl.token_list",
            "GET",
            "/v1/acl/tokens",
            query=query,
            params=token_filter.to_params() if token_filter else None,
            decode=lambda data: [ACLToken.from_api(item) for item in data],
        )

    async def token_read(self, accessor_id: str, query: QueryOptions) -> ConsulResponse[ACLToken]:
        return await self._request(
            "acl.token_read",
            "GET",
            "/v1/acl/token/" + quote(accessor_id, safe=""),
            query=query,
            decode=ACLToken.from_api,
        )

    async def token_create(self, token: ACLToken, write: WriteOptions) -> ConsulResponse[ACLToken]:
        return await self._request(
            "acl.token_create",
            "PUT",
            "/v1/acl/token",
            write=write,
            payload=token.to_api(),
            decode=ACLToken.from_api,
        )

    async def token_update(self, token: ACLToken, write: WriteOptions) -> ConsulResponse[ACLToken]:
        return await self._request(
            "acl.token_update",
            "PUT",
            "/v1/acl/token/" + quote(token.accessor_id, safe=""),
            write=write,
            payload=token.to_api(),
            decode=ACLToken.from_api,
        )

    async def token_delete(self, accessor_id: str, write: WriteOptions) -> ConsulResponse[bool]:
        return await self._request(
            "acl.token_delete",
            "DELETE",
            "/v1/acl/token/" + quote(accessor_id, safe=""),
            write=write,
            decode=bool,
        )

    # ──────────────────────────────────────────────────────────────
    # ACL policies
    # ──────────────────────────────────────────────────────────────

    async def policy_list(self, query: QueryOptions) -> ConsulResponse[list[ACLPolicy]]:
        return await self._request(
            "acl.policy_list",
            "GET",
            "/v1/acl/policies",
            query=query,
            decode=lambda data: [ACLPolicy.from_api(item) for item in data],
        )

    async def policy_read(self, policy_id: str, query: QueryOptions) -> ConsulResponse[ACLPolicy]:
        return await self._request(
            "acl.policy_read",
            "GET",
            "/v1/acl/policy/" + quote(policy_id, safe=""),
            query=query,
            decode=ACLPolicy.from_api,
        )

    async def policy_read_by_name(self, name: str, query: QueryOptions) -> ConsulResponse[ACLPolicy]:
        return await self._request(
            "acl.policy_read_by_name",
            "GET",
            _name_path("policy", name),
            query=query,
            decode=ACLPolicy.from_api,
        )

    async def policy_create(self, policy: ACLPolicy, write: WriteOptions) -> ConsulResponse[ACLPolicy]:
        return await self._request(
            "acl.policy_create",
            "PUT",
            "/v1/acl/policy",
            write=write,
            payload=policy.to_api(),
            decode=ACLPolicy.from_api,
        )

    async def policy_update(self, policy: ACLPolicy, write: WriteOptions) -> ConsulResponse[ACLPolicy]:
        return await self._request(
            "acl.policy_update",
            "PUT",
            "/v1/acl/policy/" + quote(policy.id, safe=""),
            write=write,
            payload=policy.to_api(),
            decode=ACLPolicy.from_api,
        )

    async def policy_delete(self, policy_id: str, write: WriteOptions) -> ConsulResponse[bool]:
        return await self._request(
            "acl.policy_delete",
            "DELETE",
            "/v1/acl/policy/" + quote(policy_id, safe=""),
            write=write,
            decode=bool,
        )

    # ──────────────────────────────────────────────────────────────
    # ACL roles
    # ──────────────────────────────────────────────────────────────

    async def role_list(self, query: QueryOptions) -> ConsulResponse[list[ACLRole]]:
        return await self._request(
            "acl.role_list",
            "GET",
            "/v1/acl/roles",
            query=query,
            decode=lambda data: [ACLRole.from_api(item) for item in data],
        )

    async def role_read(self, role_id: str, query: QueryOptions) -> ConsulResponse[ACLRole]:
        return await self._request(
            "acl.role_read",
            "GET",
            "/v1/acl/role/" + quote(role_id, safe=""),
            query=query,
            decode=ACLRole.from_api,
        )

    async def role_read_by_name(self, name: str, query: QueryOptions) -> ConsulResponse[ACLRole]:
        return await self._request(
            "acl.role_read_by_name",
            "GET",
            _name_path("role", name),
            query=query,
            decode=ACLRole.from_api,
        )

    async def role_create(self, role: ACLRole, write: WriteOptions) -> ConsulResponse[ACLRole]:
        return await self._request(
            "acl.role_create",
            "PUT",
            "/v1/acl/role",
            write=write,
            payload=role.to_api(),
            decode=ACLRole.from_api,
        )

    async def role_update(self, role: ACLRole, write: WriteOptions) -> ConsulResponse[ACLRole]:
        return await self._request(
            "acl.role_update",
            "PUT",
            "/v1/acl/role/" + quote(role.id, safe=""),
            write=write,
            payload=role.to_api(),
            decode=ACLRole.from_api,
        )

    async def role_delete(self, role_id: str, write: WriteOptions) -> ConsulResponse[bool]:
        return await self._request(
            "acl.role_delete",
            "DELETE",
            "/v1/acl/role/" + quote(role_id, safe=""),
            write=write,
            decode=bool,
        )

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        await self._client.aclose()
        logger.debug("ConsulClient closed")


__all__ = ["WATCH_RETRY_DELAY", "ConsulClient", "WatchCallback"]
