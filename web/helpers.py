"""Shared request models and error handlers used across web routers."""

import logging
from datetime import datetime
from typing import Annotated, Literal, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import AfterValidator, BaseModel, Field, TypeAdapter, ValidationError
from slowapi.errors import RateLimitExceeded

from boosting.aggregator import ViewStatNotFound
from boosting.errors import (
    BoostError, InvalidArgument, ItemNotActive, NoActiveSession, ResolutionFailure,
    StorageFailure, UserConflict,
)

logger = logging.getLogger(__name__)

CalendarStatus = Literal["scheduled", "in-progress", "completed", "cancelled"]

_DATETIME = TypeAdapter(datetime)


def _iso_datetime(value: str) -> str:
    """Accept any ISO-8601 datetime but keep the client's spelling of it."""
    try:
        _DATETIME.validate_python(value)
    except ValidationError as e:
        raise ValueError(f"not an ISO-8601 datetime: {value!r}") from e
    return value


IsoDatetime = Annotated[str, AfterValidator(_iso_datetime)]

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class StartBoostingRequest(BaseModel):
    user_id: int = Field(gt=0)
    channel_id: str = Field(min_length=1, max_length=64)


class StopBoostingRequest(BaseModel):
    user_id: int = Field(gt=0)


class ViewCountRequest(BaseModel):
    user_id: int = Field(gt=0)
    channel_id: str = Field("", max_length=64)
    video_id: str = Field(min_length=1, max_length=64)
    view_duration: int = Field(ge=0, le=86400)


class GeoStatRequest(BaseModel):
    view_stat_id: int = Field(gt=0)
    user_id: int = Field(gt=0)
    channel_id: str = Field(min_length=1, max_length=64)
    country: Optional[str] = Field(None, max_length=100)
    region: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    device_type: Optional[str] = Field(None, max_length=50)
    browser: Optional[str] = Field(None, max_length=50)


class AuthExchangeRequest(BaseModel):
    provider_id: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=320)
    name: str = Field(min_length=1, max_length=200)
    avatar: Optional[str] = Field(None, max_length=2000)


class CalendarEventCreate(BaseModel):
    user_id: int = Field(gt=0)
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    scheduled_date: IsoDatetime
    channel_id: str = Field(min_length=1, max_length=64)
    video_ids: list[str] = Field(default_factory=list, max_length=200)
    status: CalendarStatus = "scheduled"


class CalendarEventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    scheduled_date: Optional[IsoDatetime] = None
    channel_id: Optional[str] = Field(None, min_length=1, max_length=64)
    video_ids: Optional[list[str]] = Field(None, max_length=200)
    status: Optional[CalendarStatus] = None


class RecommendationCreate(BaseModel):
    user_id: int = Field(gt=0)
    channel_id: str = Field(min_length=1, max_length=64)
    impact_score: float = Field(ge=0)
    views_potential: int = Field(ge=0)
    views_actual: int = Field(0, ge=0)
    category: Optional[str] = Field(None, max_length=100)
    last_engaged: Optional[datetime] = None


class EngagementUpdate(BaseModel):
    views_actual: int = Field(ge=0)


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------

_ERROR_STATUS = {
    InvalidArgument: 400,
    NoActiveSession: 404,
    ItemNotActive: 409,
    UserConflict: 409,
    ResolutionFailure: 502,
    StorageFailure: 503,
}


def _status_for(exc: BoostError) -> int:
    for cls in type(exc).__mro__:
        if cls in _ERROR_STATUS:
            return _ERROR_STATUS[cls]
    return 400


async def boost_error_handler(request: Request, exc: BoostError):
    status = _status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    body = {"error": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, StorageFailure):
        body["retryable"] = True
    return JSONResponse(body, status_code=status)


async def not_found_handler(request: Request, exc: ViewStatNotFound):
    return JSONResponse({"error": "not_found", "message": str(exc)}, status_code=404)


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        {"error": "rate_limited", "message": "Too many requests, please wait a moment."},
        status_code=429,
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BoostError, boost_error_handler)
    app.add_exception_handler(ViewStatNotFound, not_found_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
