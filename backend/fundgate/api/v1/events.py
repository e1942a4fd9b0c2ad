from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from fundgate.services.event_bus import event_bus

router = APIRouter(prefix="/events", tags=["events"])


@router.get("/stream")
async def event_stream(request: Request):
    """SSE feed of every ledger notification as it is committed."""

    async def generate():
        async for data in event_bus.subscribe():
            if await request.is_disconnected():
                break
            yield data

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
