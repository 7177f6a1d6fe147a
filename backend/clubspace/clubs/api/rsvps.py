"""RSVP routes."""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from clubspace.clubs import container
from clubspace.clubs.api._errors import to_http_error
from clubspace.clubs.domain import models
from clubspace.clubs.domain.attendance import AttendanceLedger
from clubspace.clubs.domain.exceptions import ClubError, RSVPNotFound
from clubspace.clubs.schemas import dto
from clubspace.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["clubs:rsvps"])


@router.put("/events/{event_id}/rsvp", response_model=models.RSVPOutcome)
async def set_rsvp_endpoint(
	event_id: str,
	payload: dto.RSVPRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	attendance: AttendanceLedger = Depends(container.get_attendance),
) -> models.RSVPOutcome:
	try:
		return await attendance.set_rsvp(event_id, auth_user.id, payload.status)
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.get("/events/{event_id}/rsvp", response_model=models.RSVP)
async def my_rsvp_endpoint(
	event_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	attendance: AttendanceLedger = Depends(container.get_attendance),
) -> models.RSVP:
	try:
		rsvp = await attendance.get_user_rsvp(event_id, auth_user.id)
		if rsvp is None:
			raise RSVPNotFound(event_id=event_id, uid=auth_user.id)
		return rsvp
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.get("/events/{event_id}/rsvps", response_model=dto.RSVPListResponse)
async def list_rsvps_endpoint(
	event_id: str,
	status_filter: Optional[Literal["going", "not_going"]] = Query(default=None, alias="status"),
	limit: Optional[int] = Query(default=None, ge=1, le=500),
	attendance: AttendanceLedger = Depends(container.get_attendance),
) -> dto.RSVPListResponse:
	try:
		return dto.RSVPListResponse(items=await attendance.list_event_rsvps(event_id, status=status_filter, limit=limit))
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.get("/events/{event_id}/rsvps/summary", response_model=models.RSVPSummary)
async def rsvp_summary_endpoint(
	event_id: str,
	attendance: AttendanceLedger = Depends(container.get_attendance),
) -> models.RSVPSummary:
	try:
		return await attendance.get_rsvp_summary(event_id)
	except ClubError as exc:
		raise to_http_error(exc) from exc
