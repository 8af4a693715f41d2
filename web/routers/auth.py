"""Identity exchange: maps an identity-provider account to a local user id."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from web.deps import get_store
from web.helpers import AuthExchangeRequest
from web.shared import limiter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/auth/exchange")
@limiter.limit("10/minute")
async def auth_exchange(request: Request, body: AuthExchangeRequest):
    """Get-or-create the local user for a verified provider identity.

    Token verification happens upstream; this route only trusts what the
    identity provider integration hands it.
    """
    user, created = get_store(request).get_or_create_user(
        provider_id=body.provider_id,
        email=body.email,
        username=body.name,
        avatar_url=body.avatar,
    )
    if created:
        logger.info("Created user %s", user["id"])
    return JSONResponse({"user": user, "created": created})
