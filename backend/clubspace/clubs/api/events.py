"""Event routes."""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status

from clubspace.clubs import container
from clubspace.clubs.api._errors import to_http_error
from clubspace.clubs.domain import models
from clubspace.clubs.domain.events_service import EventsService
from clubspace.clubs.domain.exceptions import ClubError
from clubspace.clubs.schemas import dto
from clubspace.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["clubs:events"])


@router.post("/clubs/{club_id}/events", response_model=models.Event, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
	club_id: str,
	payload: dto.EventCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: EventsService = Depends(container.get_events),
) -> models.Event:
	try:
		return await service.create_event(
			club_id,
			auth_user.id,
			title=payload.title,
			description=payload.description,
			date_time=payload.date_time,
			location=payload.location,
			max_attendees=payload.max_attendees,
		)
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.get("/clubs/{club_id}/events", response_model=dto.EventListResponse)
async def list_events_endpoint(
	club_id: str,
	status_filter: Optional[Literal["active", "cancelled", "completed"]] = Query(default=None, alias="status"),
	limit: Optional[int] = Query(default=None, ge=1, le=200),
	service: EventsService = Depends(container.get_events),
) -> dto.EventListResponse:
	try:
		return dto.EventListResponse(items=await service.list_club_events(club_id, status=status_filter, limit=limit))
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.get("/events/{event_id}", response_model=models.Event)
async def get_event_endpoint(event_id: str, service: EventsService = Depends(container.get_events)) -> models.Event:
	try:
		return await service.get_event(event_id)
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.patch("/events/{event_id}", response_model=models.Event)
async def update_event_endpoint(
	event_id: str,
	payload: dto.EventUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: EventsService = Depends(container.get_events),
) -> models.Event:
	# An explicit null for maxAttendees removes the cap.
	clear_cap = "max_attendees" in payload.model_fields_set and payload.max_attendees is None
	try:
		return await service.update_event(
			event_id,
			auth_user.id,
			title=payload.title,
			description=payload.description,
			date_time=payload.date_time,
			location=payload.location,
			max_attendees=payload.max_attendees,
			clear_max_attendees=clear_cap,
		)
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.post("/events/{event_id}/status", response_model=models.Event)
async def close_event_endpoint(
	event_id: str,
	payload: dto.EventStatusRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: EventsService = Depends(container.get_events),
) -> models.Event:
	try:
		if payload.status == "cancelled":
			return await service.cancel_event(event_id, auth_user.id)
		return await service.complete_event(event_id, auth_user.id)
	except ClubError as exc:
		raise to_http_error(exc) from exc
