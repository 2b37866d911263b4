"""Shared dependencies for FastAPI endpoints."""

import logging
from typing import NamedTuple, Optional

from fastapi import Header, HTTPException, Request
from infrastructure.scheduler import BackgroundScheduler
from services.garden_service import GardenService

logger = logging.getLogger("Dependencies")

USER_ID_HEADER = "X-User-Id"


class RequestIdentity(NamedTuple):
    user_id: str


def get_request_identity(x_user_id: Optional[str] = Header(default=None)) -> RequestIdentity:
    """
    Return the caller's user id.

    Authentication happens upstream; this service trusts the X-User-Id header
    set by the gateway in front of it.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail=f"Missing {USER_ID_HEADER} header")
    return RequestIdentity(user_id=x_user_id.strip())


def get_garden_service(request: Request) -> GardenService:
    """
    Dependency to get the garden service instance from app state.

    The instance is created during application startup in the lifespan context.
    """
    return request.app.state.garden_service


def get_background_scheduler(request: Request) -> BackgroundScheduler:
    """
    Dependency to get the field lifecycle scheduler from app state.

    The instance is created during application startup in the lifespan context.
    """
    return request.app.state.background_scheduler
