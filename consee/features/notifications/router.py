"""API router for notifications.

``GET /watch`` streams the number of open notifications as server-sent
events; a new event is sent each time the count changes.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
import contextlib
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from consee.core.dependencies import AdminServiceDep, KVServiceDep, check_user_token
from consee.features.admin.schemas import ListNotificationsResponse
from consee.features.kv.service import KVService

router = APIRouter(prefix="/notifications", tags=["notifications"], dependencies=[Depends(check_user_token)])

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL = 15.0


def _sse(event: str, data: object) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def _count_events(kv: KVService, request: Request) -> AsyncIterator[str]:
    queue: asyncio.Queue[int] = asyncio.Queue()

    async def on_count(count: int) -> bool:
        await queue.put(count)
        return False

    watch = asyncio.create_task(kv.watch_open_notifications_count(on_count))
    try:
        while not watch.done():
            try:
                count = await asyncio.wait_for(queue.get(), timeout=HEARTBEAT_INTERVAL)
            except TimeoutError:
                if await request.is_disconnected():
                    break
                yield ": keep-alive\n\n"
                continue
            yield _sse("count", {"n": count})
        if watch.done() and not watch.cancelled() and watch.exception() is not None:
            logger.warning("Notification watch stopped", extra={"error": str(watch.exception())})
    finally:
        if not watch.done():
            watch.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watch


@router.get("/", response_model=ListNotificationsResponse, summary="List notifications")
async def list_notifications(admin: AdminServiceDep) -> ListNotificationsResponse:
    return await admin.list_notifications()


@router.get("/watch", summary="Stream the open notification count")
async def watch_notifications(request: Request, kv: KVServiceDep) -> StreamingResponse:
    return StreamingResponse(
        _count_events(kv, request),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
