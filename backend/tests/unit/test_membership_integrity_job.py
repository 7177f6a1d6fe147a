from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from clubspace.clubs.domain import serializers as ser
from clubspace.clubs.jobs.membership_integrity import MembershipIntegrityJob
from clubspace.infra.documents import WriteBatch
from clubspace.obs import metrics as obs_metrics


def _runs(result: str) -> float:
	return obs_metrics.BACKGROUND_RUNS.labels(name="clubs-membership-integrity", result=result)._value.get()


async def _seed(services) -> tuple[str, str]:
	created = await services.membership.create_club("owner", club_name="Running", description="Weekly runs")
	club_id = created.club.club_id
	await services.membership.join_club(club_id, "alice")
	event = await services.events.create_event(
		club_id,
		"owner",
		title="Parkrun",
		date_time=datetime.now(timezone.utc) + timedelta(days=2),
	)
	await services.attendance.set_rsvp(event.event_id, "alice", "going")
	return club_id, event.event_id


@pytest.mark.asyncio
async def test_run_once_repairs_drifted_counters(services, store):
	club_id, event_id = await _seed(services)
	await store.commit(
		WriteBatch()
		.update(ser.CLUBS, club_id, {"memberCount": 0})
		.update(ser.EVENTS, event_id, {"currentAttendees": 3})
	)
	before = _runs("success")

	repaired = await MembershipIntegrityJob().run_once()

	assert repaired == 2
	assert (await store.get(ser.CLUBS, club_id))["memberCount"] == 2
	assert (await store.get(ser.EVENTS, event_id))["currentAttendees"] == 1
	assert _runs("success") == before + 1


@pytest.mark.asyncio
async def test_consistent_data_needs_no_repair(services, store):
	await _seed(services)
	commits = store.commits
	assert await MembershipIntegrityJob().run_once() == 0
	assert store.commits == commits


@pytest.mark.asyncio
async def test_events_can_be_skipped(services, store):
	_, event_id = await _seed(services)
	await store.commit(WriteBatch().update(ser.EVENTS, event_id, {"currentAttendees": 9}))

	job = MembershipIntegrityJob(coordinator=services.coordinator, include_events=False)

	assert await job.run_once() == 0
	assert (await store.get(ser.EVENTS, event_id))["currentAttendees"] == 9


@pytest.mark.asyncio
async def test_archived_clubs_are_left_alone(services, store):
	club_id, _ = await _seed(services)
	await services.clubs.archive_club(club_id, "owner")
	await store.commit(WriteBatch().update(ser.CLUBS, club_id, {"memberCount": 0}))

	await MembershipIntegrityJob(include_events=False).run_once()

	assert (await store.get(ser.CLUBS, club_id))["memberCount"] == 0


@pytest.mark.asyncio
async def test_failures_are_counted_and_raised(services, store, monkeypatch):
	async def _broken(*args, **kwargs):
		raise ConnectionError("store unavailable")

	monkeypatch.setattr(store, "query", _broken)
	before = _runs("error")

	with pytest.raises(ConnectionError):
		await MembershipIntegrityJob().run_once()
	assert _runs("error") == before + 1
