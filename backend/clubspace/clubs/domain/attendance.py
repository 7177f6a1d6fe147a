"""Attendance ledger: RSVP records and the event's attendee counter.

``Event.currentAttendees`` is never adjusted by a delta. Each SetRSVP upserts
the response and recounts the ``going`` RSVPs inside the same grouped write,
so flips in either direction and duplicate submissions cannot skew it.
``maxAttendees`` is advisory: overbooking is allowed and reported via
``is_full``.
"""

from __future__ import annotations

import logging
from typing import Optional

from clubspace.clubs.domain import models, validation
from clubspace.clubs.domain import serializers as ser
from clubspace.clubs.domain.coordinator import ConsistencyCoordinator, going_where
from clubspace.clubs.domain.exceptions import EventNotFound
from clubspace.clubs.infra import redis_streams
from clubspace.infra.documents import Document, DocumentStore, WriteBatch
from clubspace.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


class AttendanceLedger:
	def __init__(self, store: DocumentStore, *, coordinator: ConsistencyCoordinator | None = None) -> None:
		self.store = store
		self.coordinator = coordinator or ConsistencyCoordinator(store)

	async def _load_event(self, event_id: str) -> Document:
		event = await self.store.get(ser.EVENTS, event_id)
		if event is None:
			raise EventNotFound(event_id=event_id)
		return event

	async def set_rsvp(self, event_id: str, actor_uid: str, status: str) -> models.RSVPOutcome:
		"""Upsert the actor's response and recount ``currentAttendees``.

		RSVPs are accepted whatever the event's lifecycle status; callers that
		want to freeze cancelled or completed events must check before calling.
		"""
		event_id = validation.require_id("eventId", event_id)
		actor_uid = validation.require_id("actorUid", actor_uid)
		status = validation.ensure_rsvp_status(status)
		await self._load_event(event_id)

		key = ser.rsvp_key(event_id, actor_uid)
		previous = await self.store.get(ser.RSVPS, key)
		now = ser.utcnow()
		rsvp = models.RSVP(
			event_id=event_id,
			uid=actor_uid,
			status=status,
			created_at=previous["createdAt"] if previous else now,
			updated_at=now,
		)

		batch = WriteBatch()
		batch.require_exists(ser.EVENTS, event_id, reason="event_not_found")
		batch.set(ser.RSVPS, key, ser.to_document(rsvp))
		batch.update(ser.EVENTS, event_id, {"updatedAt": ser.timestamp(now)})
		batch.recount(ser.EVENTS, event_id, field="currentAttendees", source=ser.RSVPS, where=going_where(event_id))
		await self.coordinator.commit(batch, event_id=event_id, uid=actor_uid)

		event = await self._load_event(event_id)
		current = int(event.get("currentAttendees") or 0)
		limit = event.get("maxAttendees")
		obs_metrics.inc_rsvp_updated(status)
		await redis_streams.publish_rsvp_change(
			event_id=event_id,
			club_id=event.get("clubId", ""),
			uid=actor_uid,
			status=status,
			current_attendees=current,
		)
		return models.RSVPOutcome(
			rsvp=rsvp,
			current_attendees=current,
			max_attendees=limit,
			is_full=limit is not None and current >= int(limit),
		)

	async def get_rsvp_summary(self, event_id: str) -> models.RSVPSummary:
		"""Count responses; a mismatch with ``currentAttendees`` is logged as drift."""
		event_id = validation.require_id("eventId", event_id)
		event = await self._load_event(event_id)
		going = await self.store.count(ser.RSVPS, going_where(event_id))
		not_going = await self.store.count(ser.RSVPS, {"eventId": event_id, "status": "not_going"})
		stored = int(event.get("currentAttendees") or 0)
		if stored != going:
			obs_metrics.inc_counter_drift("event", "currentAttendees")
			logger.warning(
				"attendance counter disagrees with rsvp set",
				extra={"event_id": event_id, "stored": stored, "actual": going},
			)
		return models.RSVPSummary(going=going, not_going=not_going, total=going + not_going)

	async def get_user_rsvp(self, event_id: str, uid: str) -> Optional[models.RSVP]:
		event_id = validation.require_id("eventId", event_id)
		uid = validation.require_id("uid", uid)
		document = await self.store.get(ser.RSVPS, ser.rsvp_key(event_id, uid))
		return ser.from_document(models.RSVP, document) if document else None

	async def list_event_rsvps(
		self,
		event_id: str,
		*,
		status: str | None = None,
		limit: int | None = None,
	) -> list[models.RSVP]:
		event_id = validation.require_id("eventId", event_id)
		await self._load_event(event_id)
		where = {"eventId": event_id}
		if status is not None:
			where["status"] = validation.ensure_rsvp_status(status)
		documents = await self.store.query(ser.RSVPS, where, order_by="updatedAt", descending=True, limit=limit)
		return [ser.from_document(models.RSVP, doc) for doc in documents]

	async def reconcile_attendance(self, event_id: str, *, repair: bool = True) -> models.CounterReport:
		event_id = validation.require_id("eventId", event_id)
		return await self.coordinator.reconcile_event(event_id, repair=repair)


__all__ = ["AttendanceLedger"]
