"""API router for export and import. Both routes require an admin token."""

from __future__ import annotations

from datetime import datetime
import logging
from pathlib import PurePosixPath
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile

from consee.core.dependencies import TransferServiceDep, check_admin_token, check_user_token
from consee.core.exceptions import StatusError
from consee.core.settings import get_app_settings

from .schemas import ExportFormat, ExportRequest, ImportRequest, ImportResponse, OnConflictPolicy

router = APIRouter(tags=["transfer"], dependencies=[Depends(check_user_token), Depends(check_admin_token)])

logger = logging.getLogger(__name__)

_MEDIA_TYPES = {ExportFormat.ZIP: "application/zip", ExportFormat.JSON: "application/json"}
_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def export_filename(fmt: ExportFormat, now: datetime | None = None) -> str:
    """``consee-export-<YYYYMMDD-HHMMSS>.<format>``"""
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return f"consee-export-{stamp}.{fmt.value}"


def _import_format(explicit: str, filename: str | None) -> ExportFormat:
    candidate = explicit or PurePosixPath(filename or "").suffix.lstrip(".")
    try:
        return ExportFormat(candidate.lower())
    except ValueError as e:
        raise StatusError(400, "invalid file format", process="parsing file") from e


@router.post(
    "/export",
    summary="Export keys and ACL objects",
    response_class=Response,
    responses={200: {"content": {"application/zip": {}, "application/json": {}}}},
)
async def export(body: ExportRequest, transfer: TransferServiceDep) -> Response:
    data = await transfer.export(body)
    return Response(
        content=data,
        media_type=_MEDIA_TYPES[body.format],
        headers={"Content-Disposition": f"attachment; filename={export_filename(body.format)}"},
    )


@router.post("/import", response_model=ImportResponse, summary="Import an export file")
async def import_file(
    transfer: TransferServiceDep,
    file: Annotated[UploadFile, File(description="File produced by /export")],
    dryrun: Annotated[str, Form()] = "",
    on_conflict: Annotated[str, Form()] = OnConflictPolicy.SKIP.value,
    format: Annotated[str, Form()] = "",  # noqa: A002
) -> ImportResponse:
    fmt = _import_format(format, file.filename)
    try:
        policy = OnConflictPolicy(on_conflict or OnConflictPolicy.SKIP.value)
    except ValueError as e:
        raise StatusError(400, f"invalid conflict policy {on_conflict!r}", process="parsing form") from e

    limit = get_app_settings().max_import_size_bytes
    content = await file.read(limit + 1)
    await file.close()
    if len(content) > limit:
        raise StatusError(400, "file too large", process="parsing file")

    logger.info(
        "Import requested",
        extra={"upload_name": file.filename, "import_format": fmt.value, "size": len(content)},
    )
    return await transfer.import_data(
        ImportRequest(
            file_content=content,
            format=fmt,
            dryrun=dryrun.lower() in _TRUE_VALUES,
            on_conflict=policy,
        )
    )
