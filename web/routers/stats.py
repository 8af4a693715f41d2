"""Statistics routes: per-user totals, geo and device breakdowns."""

from fastapi import APIRouter, Request, Query
from fastapi.responses import JSONResponse

from web.deps import get_aggregator
from web.helpers import GeoStatRequest
from web.shared import limiter

router = APIRouter()


@router.get("/api/user/stats")
async def user_stats(request: Request, user_id: int = Query(..., gt=0)):
    return JSONResponse(get_aggregator(request).compute_user_stats(user_id))


@router.post("/api/geo-stat")
@limiter.limit("60/minute")
async def create_geo_stat(request: Request, body: GeoStatRequest):
    """Attach location/device details to a counted view."""
    stat = get_aggregator(request).record_geo(**body.model_dump())
    return JSONResponse(stat)


@router.get("/api/geo-metrics")
async def geo_metrics(request: Request, user_id: int = Query(..., gt=0)):
    return JSONResponse(get_aggregator(request).compute_geo_metrics(user_id))


@router.get("/api/device-metrics")
async def device_metrics(request: Request, user_id: int = Query(..., gt=0)):
    return JSONResponse(get_aggregator(request).compute_device_metrics(user_id))
