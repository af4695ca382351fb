"""API router for the KV feature.

Keys travel in paths as standard base64 so that any key, slashes included,
fits in one segment.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import PlainTextResponse

from consee.core.dependencies import KeyPathDep, KVServiceDep, check_admin_token, check_user_token

from .schemas import BatchUpdateRequest, CreateKeyValueRequest, GetValueResponse, UpdateValueRequest

router = APIRouter(prefix="/kv", tags=["kv"], dependencies=[Depends(check_user_token)])

logger = logging.getLogger(__name__)


@router.get("/keys", response_model=list[str], summary="List keys")
async def list_keys(kv: KVServiceDep) -> list[str]:
    return await kv.list_keys()


@router.get(
    "/value/{b64key:path}",
    response_model=GetValueResponse,
    summary="Read a key",
    description="Returns the current value, or the history version given by `v`.",
)
async def get_value(key: KeyPathDep, kv: KVServiceDep, v: str = "") -> GetValueResponse:
    return await kv.get(key, version=v)


@router.get("/valuetype/{b64key:path}", response_class=PlainTextResponse, summary="Read the value type of a key")
async def get_value_type(key: KeyPathDep, kv: KVServiceDep) -> str:
    return await kv.get_type(key)


@router.put("/valuetype/{b64key:path}", status_code=status.HTTP_204_NO_CONTENT, summary="Set the value type of a key")
async def update_value_type(key: KeyPathDep, request: Request, kv: KVServiceDep) -> Response:
    value_type = (await request.body()).decode(errors="replace").strip()
    await kv.update_type(key, value_type)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/value", status_code=status.HTTP_201_CREATED, summary="Create a key")
async def create_value(body: CreateKeyValueRequest, kv: KVServiceDep) -> Response:
    await kv.create(body)
    return Response(status_code=status.HTTP_201_CREATED)


@router.put("/value/{b64key:path}", status_code=status.HTTP_204_NO_CONTENT, summary="Update a key")
async def update_value(key: KeyPathDep, body: UpdateValueRequest, kv: KVServiceDep) -> Response:
    await kv.update(key, body.value)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/value/{b64key:path}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a key",
    description="Keys ending with `/` are folders and are deleted recursively.",
)
async def delete_value(key: KeyPathDep, kv: KVServiceDep) -> Response:
    await kv.delete(key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/batch",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_admin_token)],
    summary="Update several keys",
)
async def batch_update(body: BatchUpdateRequest, kv: KVServiceDep) -> Response:
    await kv.batch_update(body)
    logger.info("Batch update applied", extra={"count": len(body.kvs)})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
