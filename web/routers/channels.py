"""Channel routes: listing, lookup and queue preview."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from web.deps import get_source, get_store
from web.shared import limiter
from youtube.extractor import channel_uploads_url
from youtube.source import QueueEmpty, QueueFailed

router = APIRouter()


@router.get("/api/channels")
async def list_channels(request: Request):
    """Verified channels available for boosting."""
    return JSONResponse(get_store(request).get_verified_channels())


@router.get("/api/channel/{channel_id}")
async def get_channel(request: Request, channel_id: str):
    channel = get_store(request).get_channel(channel_id)
    if not channel:
        return JSONResponse({"error": "not_found", "message": "Channel not found"}, status_code=404)
    return JSONResponse(channel)


@router.get("/api/channel/{channel_id}/queue")
@limiter.limit("10/minute")
async def preview_queue(request: Request, channel_id: str):
    """Resolve a channel's playable queue without starting a session."""
    channel = get_store(request).get_channel(channel_id)
    name = channel["name"] if channel and channel["name"] != channel_id else ""
    result = await get_source(request).resolve_queue(channel_id, channel_name=name)
    if isinstance(result, QueueFailed):
        return JSONResponse({"error": "resolution_failed", "message": result.reason},
                            status_code=502)
    if isinstance(result, QueueEmpty):
        return JSONResponse({"status": "empty", "videos": [],
                             "fallback_url": channel_uploads_url(channel_id)})
    videos = [{**item, "status": "queued"} for item in result.items]
    return JSONResponse({"status": "items", "videos": videos})
