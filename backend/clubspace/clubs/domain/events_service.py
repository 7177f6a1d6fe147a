"""Club events: creation, edits and lifecycle transitions."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from clubspace.clubs.domain import models, policies, validation
from clubspace.clubs.domain import serializers as ser
from clubspace.clubs.domain.attendance import AttendanceLedger
from clubspace.clubs.domain.exceptions import (
	ClubInactive,
	ClubNotFound,
	EventClosed,
	EventNotFound,
	PermissionDenied,
	ValidationFailed,
)
from clubspace.clubs.domain.membership import MembershipLedger
from clubspace.clubs.infra import redis_streams
from clubspace.infra.documents import Document, DocumentStore, WriteBatch
from clubspace.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({"cancelled", "completed"})


class EventsService:
	"""Event operations; RSVPs go through the attendance ledger."""

	def __init__(
		self,
		store: DocumentStore,
		*,
		membership: MembershipLedger | None = None,
		attendance: AttendanceLedger | None = None,
	) -> None:
		self.store = store
		self.membership = membership or MembershipLedger(store)
		self.attendance = attendance or AttendanceLedger(store, coordinator=self.membership.coordinator)

	async def _load_event(self, event_id: str) -> Document:
		event_id = validation.require_id("eventId", event_id)
		document = await self.store.get(ser.EVENTS, event_id)
		if document is None:
			raise EventNotFound(event_id=event_id)
		return document

	async def _active_club(self, club_id: str) -> Document:
		club = await self.store.get(ser.CLUBS, club_id)
		if club is None:
			raise ClubNotFound(club_id=club_id)
		if club.get("status") != "active":
			raise ClubInactive(club_id=club_id)
		return club

	async def _actor_role(self, club_id: str, actor_uid: str, action: str, **context: str | None) -> str:
		actor_role = await self.membership.get_member_role(club_id, actor_uid)
		refusal = policies.evaluate(action, actor_role, actor_uid=actor_uid, **context)
		if refusal is not None:
			if isinstance(refusal, PermissionDenied):
				obs_metrics.inc_permission_denied(action)
			refusal.identifiers.setdefault("club_id", club_id)
			raise refusal
		return actor_role  # type: ignore[return-value]

	@staticmethod
	def _guard(batch: WriteBatch, club_id: str, actor_uid: str, actor_role: str) -> None:
		batch.require_exists(ser.CLUBS, club_id, reason="club_not_found")
		batch.require_exists(ser.CLUBS, club_id, reason="club_inactive", where={"status": "active"})
		batch.require_exists(
			ser.CLUB_MEMBERS,
			ser.member_key(club_id, actor_uid),
			reason="actor_role_changed",
			where={"status": "active", "role": actor_role},
		)

	async def create_event(
		self,
		club_id: str,
		actor_uid: str,
		*,
		title: str,
		date_time: datetime,
		description: str | None = None,
		location: str | None = None,
		max_attendees: int | None = None,
	) -> models.Event:
		club_id = validation.require_id("clubId", club_id)
		actor_uid = validation.require_id("actorUid", actor_uid)
		event_title = validation.event_title(title)
		when = validation.event_date(date_time)
		text = validation.event_description(description)
		place = validation.event_location(location)
		limit = validation.max_attendees(max_attendees)
		await self._active_club(club_id)
		actor_role = await self._actor_role(club_id, actor_uid, "create_events")

		now = ser.utcnow()
		event = models.Event(
			event_id=ser.new_event_id(),
			club_id=club_id,
			title=event_title,
			description=text,
			date_time=when,
			location=place,
			creator_uid=actor_uid,
			max_attendees=limit,
			current_attendees=0,
			status="active",
			created_at=now,
			updated_at=now,
		)
		stamp = ser.timestamp(now)
		batch = WriteBatch()
		self._guard(batch, club_id, actor_uid, actor_role)
		batch.create(ser.EVENTS, event.event_id, ser.to_document(event))
		batch.update(
			ser.CLUB_STATS,
			club_id,
			{"lastActivityAt": stamp, "updatedAt": stamp},
			increments={"totalEvents": 1, "upcomingEvents": 1},
		)
		await self.membership.coordinator.commit(batch, club_id=club_id, event_id=event.event_id)

		obs_metrics.inc_event_created()
		logger.info("event created", extra={"club_id": club_id, "event_id": event.event_id})
		await redis_streams.publish_event_change("event.created", event_id=event.event_id, club_id=club_id, actor_id=actor_uid)
		return event

	async def get_event(self, event_id: str) -> models.Event:
		return ser.from_document(models.Event, await self._load_event(event_id))

	async def list_club_events(
		self,
		club_id: str,
		*,
		status: str | None = None,
		limit: int | None = None,
		start: datetime | None = None,
		end: datetime | None = None,
	) -> list[models.Event]:
		"""Events of ``club_id``, latest ``dateTime`` first."""
		club_id = validation.require_id("clubId", club_id)
		where: dict[str, Any] = {"clubId": club_id}
		if status is not None:
			where["status"] = validation.ensure_event_status(status)
		documents = await self.store.query(ser.EVENTS, where, order_by="dateTime", descending=True)
		events = [ser.from_document(models.Event, doc) for doc in documents]
		if start is not None:
			start = validation.event_date(start)
			events = [event for event in events if event.date_time >= start]
		if end is not None:
			end = validation.event_date(end)
			events = [event for event in events if event.date_time <= end]
		if limit is not None:
			events = events[:limit]
		return events

	async def update_event(
		self,
		event_id: str,
		actor_uid: str,
		*,
		title: str | None = None,
		description: str | None = None,
		date_time: datetime | None = None,
		location: str | None = None,
		max_attendees: int | None = None,
		clear_max_attendees: bool = False,
	) -> models.Event:
		"""Edit an active event; allowed to its creator and to club managers.

		``None`` leaves a field unchanged. ``clear_max_attendees`` removes the
		attendance cap, and cannot be combined with a new ``max_attendees``.
		"""
		actor_uid = validation.require_id("actorUid", actor_uid)
		event = await self._load_event(event_id)
		event_id, club_id = event["eventId"], event["clubId"]
		if event.get("status") != "active":
			raise EventClosed(event_id=event_id)
		await self._active_club(club_id)
		actor_role = await self._actor_role(club_id, actor_uid, "manage_events", creator_uid=event.get("creatorUid"))

		fields: dict[str, Any] = {}
		if title is not None:
			fields["title"] = validation.event_title(title)
		if description is not None:
			fields["description"] = validation.event_description(description)
		if date_time is not None:
			fields["dateTime"] = ser.timestamp(validation.event_date(date_time))
		if location is not None:
			fields["location"] = validation.event_location(location)
		if clear_max_attendees:
			if max_attendees is not None:
				raise ValidationFailed("maxAttendees", "maxAttendees_conflict", event_id=event_id)
			fields["maxAttendees"] = None
		elif max_attendees is not None:
			fields["maxAttendees"] = validation.max_attendees(max_attendees)
		if not fields:
			return ser.from_document(models.Event, event)
		fields["updatedAt"] = ser.timestamp(ser.utcnow())

		batch = WriteBatch()
		self._guard(batch, club_id, actor_uid, actor_role)
		batch.require_exists(ser.EVENTS, event_id, reason="event_not_found")
		batch.require_exists(ser.EVENTS, event_id, reason="event_closed", where={"status": "active"})
		batch.update(ser.EVENTS, event_id, fields)
		await self.membership.coordinator.commit(batch, club_id=club_id, event_id=event_id)

		await redis_streams.publish_event_change("event.updated", event_id=event_id, club_id=club_id, actor_id=actor_uid)
		return await self.get_event(event_id)

	async def cancel_event(self, event_id: str, actor_uid: str) -> models.Event:
		return await self._close(event_id, actor_uid, "cancelled")

	async def complete_event(self, event_id: str, actor_uid: str) -> models.Event:
		return await self._close(event_id, actor_uid, "completed")

	async def _close(self, event_id: str, actor_uid: str, status: str) -> models.Event:
		"""Move an active event to a terminal status and drop it from ``upcomingEvents``."""
		actor_uid = validation.require_id("actorUid", actor_uid)
		event = await self._load_event(event_id)
		event_id, club_id = event["eventId"], event["clubId"]
		if event.get("status") in TERMINAL_STATUSES:
			raise EventClosed(event_id=event_id)
		await self._active_club(club_id)
		actor_role = await self._actor_role(club_id, actor_uid, "manage_events", creator_uid=event.get("creatorUid"))

		stamp = ser.timestamp(ser.utcnow())
		batch = WriteBatch()
		self._guard(batch, club_id, actor_uid, actor_role)
		batch.require_exists(ser.EVENTS, event_id, reason="event_not_found")
		batch.require_exists(ser.EVENTS, event_id, reason="event_closed", where={"status": "active"})
		batch.update(ser.EVENTS, event_id, {"status": status, "updatedAt": stamp})
		batch.update(ser.CLUB_STATS, club_id, {"updatedAt": stamp}, increments={"upcomingEvents": -1})
		await self.membership.coordinator.commit(batch, club_id=club_id, event_id=event_id)

		obs_metrics.inc_event_transition(status)
		await redis_streams.publish_event_change(f"event.{status}", event_id=event_id, club_id=club_id, actor_id=actor_uid)
		return await self.get_event(event_id)

	async def set_rsvp(self, event_id: str, actor_uid: str, status: str) -> models.RSVPOutcome:
		return await self.attendance.set_rsvp(event_id, actor_uid, status)

	async def get_rsvp_summary(self, event_id: str) -> models.RSVPSummary:
		return await self.attendance.get_rsvp_summary(event_id)

	async def get_user_rsvp(self, event_id: str, uid: str) -> Optional[models.RSVP]:
		return await self.attendance.get_user_rsvp(event_id, uid)


__all__ = ["EventsService", "TERMINAL_STATUSES"]
