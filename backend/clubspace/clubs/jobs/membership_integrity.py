"""Membership integrity job re-derives denormalized counters from their records."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from clubspace.clubs import container
from clubspace.clubs.domain import serializers as ser
from clubspace.clubs.domain.coordinator import ConsistencyCoordinator
from clubspace.clubs.domain.exceptions import ClubNotFound, EventNotFound
from clubspace.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

_JOB_NAME = "clubs-membership-integrity"


class MembershipIntegrityJob:
	"""Reconciles member counters of active clubs and attendee counters of active events."""

	def __init__(
		self,
		*,
		coordinator: ConsistencyCoordinator | None = None,
		include_events: bool = True,
	) -> None:
		self._coordinator = coordinator
		self.include_events = include_events

	@property
	def coordinator(self) -> ConsistencyCoordinator:
		return self._coordinator or container.get_coordinator()

	async def run_once(self) -> int:
		"""Run one pass; returns the number of repaired documents."""
		started = datetime.now(timezone.utc)
		try:
			repaired = await self._reconcile_clubs()
			if self.include_events:
				repaired += await self._reconcile_events()
			obs_metrics.BACKGROUND_RUNS.labels(name=_JOB_NAME, result="success").inc()
			if repaired:
				logger.info("integrity pass repaired counters", extra={"repaired": repaired})
			return repaired
		except Exception:
			obs_metrics.BACKGROUND_RUNS.labels(name=_JOB_NAME, result="error").inc()
			logger.exception("integrity pass failed")
			raise
		finally:
			duration = (datetime.now(timezone.utc) - started).total_seconds()
			obs_metrics.BACKGROUND_DURATION.labels(name=_JOB_NAME).observe(duration)

	async def _reconcile_clubs(self) -> int:
		coordinator = self.coordinator
		clubs = await coordinator.store.query(ser.CLUBS, {"status": "active"}, order_by="createdAt")
		repaired = 0
		for club in clubs:
			try:
				report = await coordinator.reconcile_club(club["clubId"])
			except ClubNotFound:
				continue
			repaired += int(report.repaired)
		return repaired

	async def _reconcile_events(self) -> int:
		coordinator = self.coordinator
		events = await coordinator.store.query(ser.EVENTS, {"status": "active"}, order_by="createdAt")
		repaired = 0
		for event in events:
			try:
				report = await coordinator.reconcile_event(event["eventId"])
			except EventNotFound:
				continue
			repaired += int(report.repaired)
		return repaired


__all__ = ["MembershipIntegrityJob"]
