"""Content calendar CRUD routes."""

from fastapi import APIRouter, Request, Query
from fastapi.responses import JSONResponse

from boosting import notifications
from web.deps import get_bus, get_store
from web.helpers import CalendarEventCreate, CalendarEventUpdate
from web.shared import limiter

router = APIRouter()


def _not_found():
    return JSONResponse({"error": "not_found", "message": "Event not found"}, status_code=404)


@router.get("/api/calendar/events")
async def list_events(request: Request, user_id: int = Query(..., gt=0)):
    return JSONResponse(get_store(request).list_calendar_events(user_id))


@router.get("/api/calendar/event/{event_id}")
async def get_event(request: Request, event_id: int):
    event = get_store(request).get_calendar_event(event_id)
    if not event:
        return _not_found()
    return JSONResponse(event)


@router.post("/api/calendar/event")
@limiter.limit("30/minute")
async def create_event(request: Request, body: CalendarEventCreate):
    event = get_store(request).create_calendar_event(**body.model_dump())
    get_bus(request).publish(notifications.CALENDAR_EVENT_CREATED, event)
    return JSONResponse(event)


@router.patch("/api/calendar/event/{event_id}")
@limiter.limit("30/minute")
async def update_event(request: Request, event_id: int, body: CalendarEventUpdate):
    fields = body.model_dump(exclude_unset=True)
    for required in ("title", "scheduled_date", "channel_id", "status"):
        if required in fields and fields[required] is None:
            return JSONResponse({"error": "invalid", "message": f"{required} cannot be null"},
                                status_code=422)
    event = get_store(request).update_calendar_event(event_id, **fields)
    if not event:
        return _not_found()
    get_bus(request).publish(notifications.CALENDAR_EVENT_UPDATED, event)
    return JSONResponse(event)


@router.delete("/api/calendar/event/{event_id}")
@limiter.limit("30/minute")
async def delete_event(request: Request, event_id: int):
    store = get_store(request)
    event = store.get_calendar_event(event_id)
    deleted = store.delete_calendar_event(event_id)
    if deleted and event:
        get_bus(request).publish(notifications.CALENDAR_EVENT_DELETED,
                                 {"id": event_id, "user_id": event["user_id"]})
    return JSONResponse({"success": True, "deleted": deleted})
