"""FastAPI application assembly: routers, error handlers, rate limiter."""

import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from web.helpers import register_error_handlers
from web.routers.auth import router as auth_router
from web.routers.boosting import router as boosting_router
from web.routers.calendar_events import router as calendar_router
from web.routers.channels import router as channels_router
from web.routers.events import router as events_router
from web.routers.recommendations import router as recommendations_router
from web.routers.stats import router as stats_router
from version import __version__
from web.shared import limiter

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build a FastAPI app with every router mounted.

    Dependencies (store, manager, aggregator, bus, source, configs) are set
    on app.state by the caller.
    """
    app = FastAPI(title="ChannelBooster", version=__version__)
    app.state.limiter = limiter
    register_error_handlers(app)

    app.include_router(auth_router)
    app.include_router(channels_router)
    app.include_router(boosting_router)
    app.include_router(stats_router)
    app.include_router(calendar_router)
    app.include_router(recommendations_router)
    app.include_router(events_router)

    @app.get("/healthz")
    async def healthz():
        return JSONResponse({"ok": True})

    return app


app = create_app()
