"""Boosting session routes: start, stop, current, view counting."""

import logging

from fastapi import APIRouter, Request, Query
from fastapi.responses import JSONResponse

from web.deps import get_manager
from web.helpers import StartBoostingRequest, StopBoostingRequest, ViewCountRequest
from web.shared import limiter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/boosting/start")
@limiter.limit("10/minute")
async def start_boosting(request: Request, body: StartBoostingRequest):
    """Resolve the channel's queue and start a session (replacing any current one)."""
    outcome = await get_manager(request).start(body.user_id, body.channel_id)
    if outcome.status == "started":
        return JSONResponse({"status": "started", "session": outcome.session})
    if outcome.status == "empty":
        return JSONResponse({
            "status": "empty",
            "message": "No playable videos found for this channel",
            "fallback_url": outcome.fallback_url,
        })
    return JSONResponse(
        {"status": "cancelled", "message": "Session was stopped while loading videos"},
        status_code=409,
    )


@router.post("/api/boosting/stop")
@limiter.limit("30/minute")
async def stop_boosting(request: Request, body: StopBoostingRequest):
    """Stop the user's session; succeeds whether or not one exists."""
    stopped = await get_manager(request).stop(body.user_id)
    return JSONResponse({"success": True, "stopped": stopped})


@router.get("/api/boosting/current")
async def current_boosting(request: Request, user_id: int = Query(..., gt=0)):
    """Current session with per-item status, or 404."""
    return JSONResponse(get_manager(request).current(user_id))


@router.post("/api/view/count")
@limiter.limit("60/minute")
async def count_view(request: Request, body: ViewCountRequest):
    """Playback observer callback: one call per finished item."""
    manager = get_manager(request)
    outcome = await manager.report_completion(body.user_id, body.video_id, body.view_duration)
    if body.channel_id and outcome.view_stat and outcome.view_stat["channel_id"] != body.channel_id:
        logger.warning("View report for user %s named channel %s, session channel is %s",
                       body.user_id, body.channel_id, outcome.view_stat["channel_id"])
    return JSONResponse({
        "view_stat": outcome.view_stat,
        "duplicate": outcome.duplicate,
        "finished": outcome.finished,
        "session": outcome.session,
    })
