"""Consistency coordinator: grouped writes and counter reconciliation.

The ledgers describe each mutation as one :class:`WriteBatch` carrying the
preconditions that decide its outcome. The coordinator commits it through the
injected store and translates refused preconditions into domain errors, so a
caller that lost a race sees the same error a sequential caller would. Any
other store failure propagates unchanged; nothing here retries.
"""

from __future__ import annotations

import logging
from typing import Callable

from clubspace.clubs.domain import models
from clubspace.clubs.domain import serializers as ser
from clubspace.clubs.domain.exceptions import (
	AlreadyMember,
	ClubError,
	ClubFull,
	ClubInactive,
	ClubNotFound,
	ConflictError,
	EventClosed,
	EventNotFound,
	MemberNotFound,
	NotAMember,
	OwnerCannotLeave,
	PermissionDenied,
)
from clubspace.infra.documents import DocumentStore, PreconditionFailed, WriteBatch
from clubspace.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

# Precondition reasons used by the ledgers, and the error each one means.
REASON_ERRORS: dict[str, Callable[[], ClubError]] = {
	"club_not_found": ClubNotFound,
	"club_inactive": ClubInactive,
	"club_full": ClubFull,
	"already_member": AlreadyMember,
	"not_a_member": NotAMember,
	"member_not_found": MemberNotFound,
	"owner_cannot_leave": OwnerCannotLeave,
	"actor_role_changed": lambda: PermissionDenied("actor_role_changed"),
	"member_changed": lambda: ConflictError("member_changed"),
	"event_not_found": EventNotFound,
	"event_closed": EventClosed,
}

# Predicates the recounts use; kept here so reconciliation and the ledgers agree.
ACTIVE_MEMBERS = {"status": "active"}
GOING = {"status": "going"}


def club_members_where(club_id: str, *, active_only: bool) -> dict[str, str]:
	where = {"clubId": club_id}
	if active_only:
		where.update(ACTIVE_MEMBERS)
	return where


def going_where(event_id: str) -> dict[str, str]:
	return {"eventId": event_id, **GOING}


class ConsistencyCoordinator:
	"""Applies grouped writes against one injected document store."""

	def __init__(self, store: DocumentStore) -> None:
		self.store = store

	async def commit(self, batch: WriteBatch, **identifiers: str | None) -> None:
		"""Commit ``batch`` all-or-nothing, raising the domain error for a refused precondition."""
		try:
			await self.store.commit(batch)
		except PreconditionFailed as exc:
			obs_metrics.inc_grouped_write_failure(exc.reason)
			factory = REASON_ERRORS.get(exc.reason)
			if factory is None:
				raise
			error = factory()
			error.identifiers.update({key: value for key, value in identifiers.items() if value is not None})
			raise error from exc

	async def reconcile_club(self, club_id: str, *, repair: bool = True) -> models.CounterReport:
		"""Re-derive the membership counters of ``club_id`` from its ClubMember records."""
		club = await self.store.get(ser.CLUBS, club_id)
		if club is None:
			raise ClubNotFound(club_id=club_id)
		stats = await self.store.get(ser.CLUB_STATS, club_id) or {}
		stored = {
			"memberCount": int(club.get("memberCount") or 0),
			"activeMembers": int(stats.get("activeMembers") or 0),
			"totalMembers": int(stats.get("totalMembers") or 0),
		}
		active = await self.store.count(ser.CLUB_MEMBERS, club_members_where(club_id, active_only=True))
		total = await self.store.count(ser.CLUB_MEMBERS, club_members_where(club_id, active_only=False))
		actual = {"memberCount": active, "activeMembers": active, "totalMembers": total}
		report = models.CounterReport(entity="club", entity_id=club_id, stored=stored, actual=actual)
		drifted = report.drifted
		if not drifted:
			return report
		for field in drifted:
			obs_metrics.inc_counter_drift("club", field)
		logger.warning(
			"membership counters drifted",
			extra={"club_id": club_id, "drift": {name: list(values) for name, values in drifted.items()}},
		)
		if not repair:
			return report

		batch = WriteBatch()
		batch.require_exists(ser.CLUBS, club_id, reason="club_not_found")
		batch.recount(
			ser.CLUBS,
			club_id,
			field="memberCount",
			source=ser.CLUB_MEMBERS,
			where=club_members_where(club_id, active_only=True),
		)
		if stats:
			batch.recount(
				ser.CLUB_STATS,
				club_id,
				field="activeMembers",
				source=ser.CLUB_MEMBERS,
				where=club_members_where(club_id, active_only=True),
			)
			batch.recount(
				ser.CLUB_STATS,
				club_id,
				field="totalMembers",
				source=ser.CLUB_MEMBERS,
				where=club_members_where(club_id, active_only=False),
			)
		await self.commit(batch, club_id=club_id)
		repaired = await self.store.get(ser.CLUBS, club_id) or {}
		repaired_stats = await self.store.get(ser.CLUB_STATS, club_id) or {}
		report.actual = {
			"memberCount": int(repaired.get("memberCount") or 0),
			"activeMembers": int(repaired_stats.get("activeMembers") or 0) if stats else active,
			"totalMembers": int(repaired_stats.get("totalMembers") or 0) if stats else total,
		}
		report.repaired = True
		return report

	async def reconcile_event(self, event_id: str, *, repair: bool = True) -> models.CounterReport:
		"""Re-derive ``currentAttendees`` of ``event_id`` from its RSVP records."""
		event = await self.store.get(ser.EVENTS, event_id)
		if event is None:
			raise EventNotFound(event_id=event_id)
		stored = {"currentAttendees": int(event.get("currentAttendees") or 0)}
		going = await self.store.count(ser.RSVPS, going_where(event_id))
		report = models.CounterReport(
			entity="event",
			entity_id=event_id,
			stored=stored,
			actual={"currentAttendees": going},
		)
		if not report.drifted:
			return report
		obs_metrics.inc_counter_drift("event", "currentAttendees")
		logger.warning(
			"attendance counter drifted",
			extra={"event_id": event_id, "stored": stored["currentAttendees"], "actual": going},
		)
		if not repair:
			return report
		batch = WriteBatch()
		batch.require_exists(ser.EVENTS, event_id, reason="event_not_found")
		batch.recount(ser.EVENTS, event_id, field="currentAttendees", source=ser.RSVPS, where=going_where(event_id))
		await self.commit(batch, event_id=event_id)
		refreshed = await self.store.get(ser.EVENTS, event_id) or {}
		report.actual = {"currentAttendees": int(refreshed.get("currentAttendees") or 0)}
		report.repaired = True
		return report


__all__ = [
	"ConsistencyCoordinator",
	"REASON_ERRORS",
	"club_members_where",
	"going_where",
]
