"""Channel recommendation routes."""

from fastapi import APIRouter, Request, Query
from fastapi.responses import JSONResponse

from boosting import notifications
from web.deps import get_bus, get_store
from web.helpers import EngagementUpdate, RecommendationCreate
from web.shared import limiter

router = APIRouter()


@router.get("/api/recommendations")
async def list_recommendations(request: Request, user_id: int = Query(..., gt=0)):
    """A user's recommendations, highest impact first."""
    return JSONResponse(get_store(request).list_recommendations(user_id))


@router.post("/api/recommendation")
@limiter.limit("30/minute")
async def create_recommendation(request: Request, body: RecommendationCreate):
    data = body.model_dump()
    if body.last_engaged is not None:
        data["last_engaged"] = body.last_engaged.isoformat()
    rec = get_store(request).create_recommendation(**data)
    get_bus(request).publish(notifications.RECOMMENDATION_CREATED, rec)
    return JSONResponse(rec)


@router.patch("/api/recommendation/{rec_id}/engagement")
@limiter.limit("30/minute")
async def update_engagement(request: Request, rec_id: int, body: EngagementUpdate):
    updated = get_store(request).update_recommendation_engagement(rec_id, body.views_actual)
    if not updated:
        return JSONResponse({"error": "not_found", "message": "Recommendation not found"},
                            status_code=404)
    get_bus(request).publish(notifications.RECOMMENDATION_ENGAGEMENT_UPDATED, updated)
    return JSONResponse(updated)
