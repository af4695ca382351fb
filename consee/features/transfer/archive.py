"""Zip archive layout used by export and import.

Members::

    metadata.json
    kv/<base64(key)>/latest
    kv/<base64(key)>/<version>
    policies/<base64(policy name)>
    tokens/<accessor id>
"""

from __future__ import annotations

import base64
import io
import zipfile
import zlib

from consee.core.exceptions import invalid_input

from .schemas import ExportMetadata

ZIP_MAGIC = b"PK\x03\x04"
METADATA_MEMBER = "metadata.json"
LATEST_VERSION = "latest"


def b64(text: str) -> str:
    return base64.b64encode(text.encode()).decode()


def kv_member(key: str, version: str = LATEST_VERSION) -> str:
    return f"kv/{b64(key)}/{version}"


def policy_member(name: str) -> str:
    return f"policies/{b64(name)}"


def token_member(accessor_id: str) -> str:
    return f"tokens/{accessor_id}"


class ArchiveWriter:
    """In-memory zip builder; ``finish`` returns the archive bytes."""

    def __init__(self) -> None:
        self._buffer = io.BytesIO()
        self._zip = zipfile.ZipFile(self._buffer, mode="w", compression=zipfile.ZIP_DEFLATED)

    def write(self, member: str, data: bytes | str) -> None:
        self._zip.writestr(member, data)

    def finish(self, metadata: ExportMetadata) -> bytes:
        self.write(METADATA_MEMBER, metadata.model_dump_json())
        self._zip.close()
        return self._buffer.getvalue()

    def discard(self) -> None:
        self._zip.close()


class ArchiveReader:
    """Read-only view over an uploaded archive.

    Raises:
        DomainError: INVALID_INPUT when the content is not a zip archive or
            its manifest is missing or malformed.
    """

    def __init__(self, content: bytes) -> None:
        if content[:4] != ZIP_MAGIC:
            raise invalid_input("invalid file format")
        try:
            self._zip = zipfile.ZipFile(io.BytesIO(content))
        except zipfile.BadZipFile as e:
            raise invalid_input("invalid file format") from e
        self.metadata = self._read_metadata()

    def _read_metadata(self) -> ExportMetadata:
        try:
            return ExportMetadata.model_validate_json(self.read(METADATA_MEMBER))
        except KeyError as e:
            raise invalid_input("invalid file format: metadata.json not found") from e
        except ValueError as e:
            raise invalid_input("invalid file format: metadata.json is invalid") from e

    def read(self, member: str) -> bytes:
        """Return the content of a member.

        Raises:
            KeyError: If the member does not exist.
            ValueError: If the member is corrupted.
        """
        try:
            return self._zip.read(member)
        except (zipfile.BadZipFile, zlib.error, OSError) as e:
            raise ValueError(f"corrupted archive member {member}: {e}") from e

    def close(self) -> None:
        self._zip.close()

    def __enter__(self) -> ArchiveReader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
