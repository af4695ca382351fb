"""Pydantic schemas for export and import."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

from consee.core.constants import DEFAULT_VALUE_TYPE
from consee.features.acl.schemas import ACLLink


class ExportFormat(StrEnum):
    ZIP = "zip"
    JSON = "json"


class OnConflictPolicy(StrEnum):
    """What import does with a key whose live value differs from the archive."""

    SKIP = "skip"
    REPLACE = "replace"


class ItemKind(StrEnum):
    KV = "kv"
    KV_HISTORY = "kv-history"
    POLICY = "policy"
    TOKEN = "token"


class ExportedKVMeta(BaseModel):
    name: str
    value_type: str = DEFAULT_VALUE_TYPE
    history_versions: list[str] = Field(default_factory=list)


class ExportMetadata(BaseModel):
    """Manifest stored as ``metadata.json`` in every archive."""

    keys: list[ExportedKVMeta] = Field(default_factory=list)
    tokens: list[ACLLink] = Field(default_factory=list)
    policies: list[str] = Field(default_factory=list)


class CompatibleKVMeta(BaseModel):
    """One element of the flat JSON format, as produced by ``consul kv export``."""

    key: str
    flags: int = 0
    value: str = Field(default="", description="base64 of the raw value")


class ExportRequest(BaseModel):
    keys: list[str] = Field(default_factory=list)
    format: ExportFormat = ExportFormat.ZIP
    acl: bool = False


class ImportRequest(BaseModel):
    file_content: bytes
    format: ExportFormat = ExportFormat.ZIP
    dryrun: bool = False
    on_conflict: OnConflictPolicy = OnConflictPolicy.SKIP


class ImportItem(BaseModel):
    kind: ItemKind
    param: str
    cause: str = ""


class ImportResponse(BaseModel):
    successes: list[ImportItem] = Field(default_factory=list)
    conflicts: list[ImportItem] = Field(default_factory=list)
    errors: list[ImportItem] = Field(default_factory=list)

    def success(self, kind: ItemKind, param: str) -> None:
        self.successes.append(ImportItem(kind=kind, param=param))

    def conflict(self, kind: ItemKind, param: str) -> None:
        self.conflicts.append(ImportItem(kind=kind, param=param))

    def error(self, kind: ItemKind, param: str, cause: str) -> None:
        self.errors.append(ImportItem(kind=kind, param=param, cause=cause))
