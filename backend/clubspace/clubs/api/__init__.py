"""FastAPI routers for the clubs domain."""

from __future__ import annotations

from fastapi import APIRouter

from clubspace.clubs.api import clubs, events, members, rsvps

router = APIRouter(prefix="/api/clubs/v1")

router.include_router(clubs.router)
router.include_router(members.router)
router.include_router(events.router)
router.include_router(rsvps.router)

__all__ = ["router"]
