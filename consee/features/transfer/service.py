"""Export and import of KV and ACL state, plus first-run initialization.

Import always runs a dry-run classification first. Every key, policy and
token of the manifest is looked up in the live system:

- found: conflict
- not found: success (safe to import)
- any other failure: error, carrying the failure message

When the caller does not ask for a dry-run, the apply pass then writes the
items one after another. A failing item is recorded and never stops the
remaining ones. Export, by contrast, fails as a whole on the first error.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import TYPE_CHECKING

from pydantic import TypeAdapter, ValidationError

from consee.core.constants import (
    BUILTIN_POLICY_NAMES,
    CONSEE_ADMIN,
    DEFAULT_VALUE_TYPE,
    INITIALIZER,
    POLICY_NAME_GLOBAL_MANAGEMENT,
    exclusive_policy_name,
)
from consee.core.exceptions import (
    DomainError,
    DomainErrorCode,
    failed_to_parse,
    invalid_input,
    not_admin,
    not_found,
    permission_denied,
)
from consee.core.responses import call_consul, is_missing
from consee.features.acl.schemas import CreatePolicyRequest, CreateTokenRequest, PolicyMode, UpdateTokenRequest
from consee.features.admin.schemas import TokenMetadata
from consee.features.kv.service import b64key

from .archive import ArchiveReader, ArchiveWriter, kv_member, policy_member, token_member
from .metrics import transfer_exports_total, transfer_import_items_total
from .schemas import (
    CompatibleKVMeta,
    ExportedKVMeta,
    ExportFormat,
    ExportMetadata,
    ExportRequest,
    ImportRequest,
    ImportResponse,
    ItemKind,
    OnConflictPolicy,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from consee.features.acl.service import ACLService
    from consee.features.admin.service import AdminService
    from consee.features.kv.service import KVService

logger = logging.getLogger(__name__)

_compatible_list = TypeAdapter(list[CompatibleKVMeta])


def _token_param(name: str, accessor_id: str) -> str:
    return f"{name}(ID:{accessor_id})"


class TransferService:
    """Reconciliation engine over the KV, ACL and metadata services.

    Args:
        kv: KV service bound to the caller's token.
        acl: ACL service bound to the caller's token.
        admin: Metadata service bound to the admin token.
    """

    def __init__(self, kv: KVService, acl: ACLService, admin: AdminService) -> None:
        self._kv = kv
        self._acl = acl
        self._admin = admin

    # ──────────────────────────────────────────────────────────────
    # Initialization
    # ──────────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Check the admin token and record its bookkeeping on first run.

        Idempotent: nothing is written once the admin token has a name.

        Raises:
            DomainError: PERMISSION_DENIED when the admin token is refused or
                lacks the global-management policy; NOT_FOUND when it does not
                exist; INTERNAL_ERROR when Consul can not be reached.
        """
        resp = await call_consul(self._admin.repository.acl.read_self(), "read self during initialization")
        if is_missing(resp):
            raise not_found("token not found")
        if resp.status == 403:
            raise permission_denied()
        if resp.error is not None or resp.body is None:
            logger.error("Failed to parse self response during initialization", extra={"error": resp.error})
            raise failed_to_parse()

        token = resp.body
        if not any(policy.name == POLICY_NAME_GLOBAL_MANAGEMENT for policy in token.policies):
            raise not_admin()

        try:
            name = await self._admin.get_token_name(token.accessor_id)
        except DomainError as e:
            if not e.is_not_found:
                raise
            name = ""
        if name:
            logger.debug("Admin token already initialized", extra={"accessor_id": token.accessor_id})
            return

        await self._admin.write_id_name_mapping(token.accessor_id, CONSEE_ADMIN)
        await self._admin.write_token_metadata(token.accessor_id, TokenMetadata.fresh(INITIALIZER))
        logger.info("Admin token initialized", extra={"accessor_id": token.accessor_id})

    # ──────────────────────────────────────────────────────────────
    # Export
    # ──────────────────────────────────────────────────────────────

    async def export(self, req: ExportRequest) -> bytes:
        """Export the requested keys, and optionally the ACL objects.

        Only the listed keys are exported; an empty list exports no key.

        Raises:
            DomainError: The first failure met; no partial output is returned.
        """
        try:
            if req.format == ExportFormat.JSON:
                data = await self._export_json(req.keys)
            else:
                data = await self._export_zip(req.keys, req.acl)
        except DomainError:
            transfer_exports_total.labels(format=req.format.value, outcome="error").inc()
            raise
        transfer_exports_total.labels(format=req.format.value, outcome="success").inc()
        logger.info(
            "Export finished",
            extra={"export_format": req.format.value, "keys": len(req.keys), "acl": req.acl, "size": len(data)},
        )
        return data

    async def _export_json(self, keys: list[str]) -> bytes:
        items = []
        for key in keys:
            value = await self._kv.get_value(key)
            items.append(CompatibleKVMeta(key=key, flags=0, value=base64.b64encode(value).decode()))
        return _compatible_list.dump_json(items)

    async def _export_zip(self, keys: list[str], include_acl: bool) -> bytes:
        archive = ArchiveWriter()
        try:
            metadata = ExportMetadata()
            for key in keys:
                metadata.keys.append(await self._export_key(archive, key))
            if include_acl:
                await self._export_tokens(archive, metadata)
                await self._export_policies(archive, metadata)
        except Exception:
            archive.discard()
            raise
        return archive.finish(metadata)

    async def _export_key(self, archive: ArchiveWriter, key: str) -> ExportedKVMeta:
        encoded = b64key(key)
        try:
            value = await self._kv.get_value(key)
        except DomainError as e:
            logger.error("Failed to get key during export", extra={"key": key, "error": e.message})
            raise
        archive.write(kv_member(key), value)

        try:
            value_type = await self._admin.get_value_type(encoded)
        except DomainError as e:
            if not e.is_not_found:
                logger.error("Failed to get value type during export", extra={"key": key, "error": e.message})
                raise
            value_type = DEFAULT_VALUE_TYPE

        versions = await self._history_versions(encoded)
        for version in versions:
            archive.write(kv_member(key, version), await self._admin.get_kv_history_value(encoded, version))
        return ExportedKVMeta(name=key, value_type=value_type, history_versions=versions)

    async def _history_versions(self, encoded_key: str) -> list[str]:
        try:
            return await self._admin.get_kv_history(encoded_key)
        except DomainError as e:
            if e.code == DomainErrorCode.NOT_IMPLEMENTED:
                return []
            raise

    async def _export_tokens(self, archive: ArchiveWriter, metadata: ExportMetadata) -> None:
        links = await self._acl.list_tokens()
        for link in links:
            try:
                token = await self._acl.read_token(link.id)
            except DomainError as e:
                logger.error(
                    "Failed to read token during export",
                    extra={"accessor_id": link.id, "token_name": link.name, "error": e.message},
                )
                raise
            request = CreateTokenRequest(
                accessor_id=token.accessor_id,
                secret_id=token.secret_id,
                name=token.name,
                policy_mode=PolicyMode.COMMON,
            )
            own_policy = exclusive_policy_name(token.accessor_id)
            if len(token.policies) == 1 and token.policies[0].name == own_policy:
                request.policy_mode = PolicyMode.EXCLUSIVE
                request.rules = (await self._acl.fetch_policy(own_policy)).rules
            else:
                request.policies = [policy.name for policy in token.policies]
            archive.write(token_member(token.accessor_id), request.model_dump_json(exclude={"roles"}))
        metadata.tokens = links

    async def _export_policies(self, archive: ArchiveWriter, metadata: ExportMetadata) -> None:
        for link in await self._acl.list_policies(exclusive="0"):
            if link.name in BUILTIN_POLICY_NAMES:
                continue
            try:
                policy = await self._acl.fetch_policy(link.name)
            except DomainError as e:
                logger.error("Failed to read policy during export", extra={"policy": link.name, "error": e.message})
                raise
            body = CreatePolicyRequest(name=policy.name, description=policy.description, rules=policy.rules)
            archive.write(policy_member(policy.name), body.model_dump_json())
            metadata.policies.append(policy.name)

    # ──────────────────────────────────────────────────────────────
    # Import
    # ──────────────────────────────────────────────────────────────

    async def import_data(self, req: ImportRequest) -> ImportResponse:
        """Classify, then unless ``req.dryrun`` apply, an uploaded export.

        Raises:
            DomainError: INVALID_INPUT when the file can not be read as the
                given format; item-level failures are reported in the response.
        """
        if req.format == ExportFormat.JSON:
            entries = self._decode_compatible(req.file_content)
            resp = await self.dry_run(ExportMetadata(keys=[ExportedKVMeta(name=e.key) for e in entries]))
            if not req.dryrun:
                resp = await self._apply_json(entries, req.on_conflict)
        else:
            with ArchiveReader(req.file_content) as archive:
                resp = await self.dry_run(archive.metadata)
                if not req.dryrun:
                    resp = await self._apply_zip(archive, req.on_conflict)

        self._count(resp, req.dryrun)
        logger.info(
            "Import finished",
            extra={
                "dryrun": req.dryrun,
                "successes": len(resp.successes),
                "conflicts": len(resp.conflicts),
                "errors": len(resp.errors),
            },
        )
        return resp

    @staticmethod
    def _decode_compatible(content: bytes) -> list[CompatibleKVMeta]:
        try:
            return _compatible_list.validate_json(content)
        except ValidationError as e:
            raise invalid_input("invalid file format") from e

    @staticmethod
    def _count(resp: ImportResponse, dryrun: bool) -> None:
        flag = "1" if dryrun else "0"
        for outcome, items in (("success", resp.successes), ("conflict", resp.conflicts), ("error", resp.errors)):
            for item in items:
                transfer_import_items_total.labels(kind=item.kind.value, outcome=outcome, dryrun=flag).inc()

    # ──────────────────────────────────────────────────────────────
    # Dry-run
    # ──────────────────────────────────────────────────────────────

    async def dry_run(self, metadata: ExportMetadata) -> ImportResponse:
        """Classify every item of a manifest without writing anything."""
        resp = ImportResponse()
        for key in metadata.keys:
            await self._classify(resp, ItemKind.KV, key.name, self._kv.get_value(key.name))
        for name in metadata.policies:
            if name in BUILTIN_POLICY_NAMES:
                continue
            await self._classify(resp, ItemKind.POLICY, name, self._acl.fetch_policy(name))
        for link in metadata.tokens:
            await self._classify(resp, ItemKind.TOKEN, _token_param(link.name, link.id), self._acl.fetch_token(link.id))
        return resp

    @staticmethod
    async def _classify(resp: ImportResponse, kind: ItemKind, param: str, lookup: Awaitable[object]) -> None:
        try:
            await lookup
        except DomainError as e:
            if e.is_not_found:
                resp.success(kind, param)
            else:
                resp.error(kind, param, e.message)
            return
        resp.conflict(kind, param)

    # ──────────────────────────────────────────────────────────────
    # Apply
    # ──────────────────────────────────────────────────────────────

    async def _apply_json(self, entries: list[CompatibleKVMeta], on_conflict: OnConflictPolicy) -> ImportResponse:
        resp = ImportResponse()
        for entry in entries:
            try:
                value = base64.b64decode(entry.value, validate=True)
            except binascii.Error as e:
                resp.error(ItemKind.KV, entry.key, f"invalid base64 value: {e}")
                continue
            await self._apply_key(resp, entry.key, value, DEFAULT_VALUE_TYPE, on_conflict)
        return resp

    async def _apply_zip(self, archive: ArchiveReader, on_conflict: OnConflictPolicy) -> ImportResponse:
        resp = ImportResponse()
        metadata = archive.metadata
        for key in metadata.keys:
            try:
                value = archive.read(kv_member(key.name))
            except (KeyError, ValueError) as e:
                resp.error(ItemKind.KV, key.name, f"failed to read latest value: {e}")
                continue
            await self._apply_key(resp, key.name, value, key.value_type, on_conflict)
            # History is applied even when the latest value failed
            await self._apply_history(resp, archive, key)
        for name in metadata.policies:
            if name in BUILTIN_POLICY_NAMES:
                continue
            await self._apply_policy(resp, archive, name)
        for link in metadata.tokens:
            await self._apply_token(resp, archive, link.id, link.name)
        return resp

    async def _apply_key(
        self,
        resp: ImportResponse,
        key: str,
        value: bytes,
        value_type: str,
        on_conflict: OnConflictPolicy,
    ) -> None:
        """Write the latest value of one key, honouring ``on_conflict``."""
        try:
            current = await self._kv.get_value(key)
        except DomainError as e:
            if not e.is_not_found:
                resp.error(ItemKind.KV, key, e.message)
                return
            current = None

        if current is None:
            try:
                await self._kv.create_raw(key, value, value_type)
            except DomainError as e:
                resp.error(ItemKind.KV, key, e.message)
            else:
                resp.success(ItemKind.KV, key)
            return

        if current == value:
            resp.success(ItemKind.KV, key)
            return

        if on_conflict == OnConflictPolicy.REPLACE:
            try:
                await self._kv.update(key, value)
                if not key.endswith("/"):
                    await self._admin.write_value_type(b64key(key), value_type)
            except DomainError as e:
                resp.error(ItemKind.KV, key, e.message)
        resp.conflict(ItemKind.KV, key)

    async def _apply_history(self, resp: ImportResponse, archive: ArchiveReader, key: ExportedKVMeta) -> None:
        encoded = b64key(key.name)
        for version in key.history_versions:
            param = f"{key.name}:{version}"
            try:
                value = archive.read(kv_member(key.name, version))
            except KeyError:
                resp.error(ItemKind.KV_HISTORY, param, "history version not found")
                continue
            except ValueError:
                resp.error(ItemKind.KV_HISTORY, param, "failed to read history version")
                continue
            try:
                await self._admin.add_history_version(encoded, version, value)
            except DomainError as e:
                if e.code == DomainErrorCode.NOT_IMPLEMENTED:
                    logger.debug(
                        "History store unavailable, version dropped",
                        extra={"key": key.name, "version": version},
                    )
                    continue
                resp.error(ItemKind.KV_HISTORY, param, e.message)

    async def _apply_policy(self, resp: ImportResponse, archive: ArchiveReader, name: str) -> None:
        try:
            policy = CreatePolicyRequest.model_validate_json(archive.read(policy_member(name)))
        except KeyError:
            resp.error(ItemKind.POLICY, name, "policy not found")
            return
        except ValueError:
            resp.error(ItemKind.POLICY, name, "invalid policy information")
            return

        try:
            await self._acl.fetch_policy(name)
        except DomainError as e:
            if not e.is_not_found:
                resp.error(ItemKind.POLICY, name, e.message)
                return
            try:
                await self._acl.create_policy(policy)
            except DomainError as create_error:
                resp.error(ItemKind.POLICY, name, create_error.message)
            else:
                resp.success(ItemKind.POLICY, name)
            return

        # Existing policies always take the archived rules
        try:
            await self._acl.update_policy_rule(name, policy.rules)
        except DomainError as e:
            resp.error(ItemKind.POLICY, name, e.message)
        resp.conflict(ItemKind.POLICY, name)

    async def _apply_token(self, resp: ImportResponse, archive: ArchiveReader, accessor_id: str, name: str) -> None:
        param = _token_param(name, accessor_id)
        try:
            token = CreateTokenRequest.model_validate_json(archive.read(token_member(accessor_id)))
        except KeyError:
            resp.error(ItemKind.TOKEN, param, "token not found")
            return
        except ValueError:
            resp.error(ItemKind.TOKEN, param, "invalid token information")
            return

        try:
            live = await self._acl.fetch_token(accessor_id)
        except DomainError as e:
            if not e.is_not_found:
                resp.error(ItemKind.TOKEN, param, e.message)
                return
            try:
                await self._acl.create_token(token)
            except DomainError as create_error:
                resp.error(ItemKind.TOKEN, param, create_error.message)
            else:
                resp.success(ItemKind.TOKEN, param)
            return

        # Only the policy list of an existing token is replaced; its roles stay
        update = UpdateTokenRequest(policies=token.policies, roles=[role.id for role in live.roles])
        try:
            await self._acl.update_token(accessor_id, update)
        except DomainError as e:
            resp.error(ItemKind.TOKEN, param, e.message)
        resp.conflict(ItemKind.TOKEN, param)
