from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from clubspace.clubs.domain import serializers as ser
from clubspace.clubs.domain.events_service import EventsService
from clubspace.clubs.domain.exceptions import (
	ClubInactive,
	ClubNotFound,
	EventClosed,
	EventNotFound,
	PermissionDenied,
	ValidationFailed,
)
from clubspace.clubs.domain.clubs_service import ClubsService
from clubspace.clubs.domain.membership import MembershipLedger
from clubspace.clubs.infra import redis_streams


@pytest.fixture()
def membership(store) -> MembershipLedger:
	return MembershipLedger(store)


@pytest.fixture()
def events(store, membership) -> EventsService:
	return EventsService(store, membership=membership)


@pytest_asyncio.fixture
async def club_id(membership) -> str:
	created = await membership.create_club("owner", club_name="Book Club", description="Monthly reads")
	club_id = created.club.club_id
	await membership.join_club(club_id, "member")
	await membership.join_club(club_id, "organizer")
	await membership.update_member_role(club_id, "owner", "organizer", "organizer")
	return club_id


def _soon(days: int = 7) -> datetime:
	return datetime.now(timezone.utc) + timedelta(days=days)


async def _stats(store, club_id: str) -> dict:
	return await store.get(ser.CLUB_STATS, club_id)


@pytest.mark.asyncio
async def test_create_event_moves_club_stats(events, store, club_id):
	event = await events.create_event(club_id, "organizer", title="  Dune  ", date_time=_soon(), max_attendees=12)

	assert event.title == "Dune"
	assert event.status == "active"
	assert event.current_attendees == 0
	assert event.creator_uid == "organizer"
	stats = await _stats(store, club_id)
	assert stats["totalEvents"] == 1
	assert stats["upcomingEvents"] == 1
	assert (await events.get_event(event.event_id)).max_attendees == 12


@pytest.mark.asyncio
async def test_plain_members_cannot_create_events(events, store, club_id):
	with pytest.raises(PermissionDenied) as excinfo:
		await events.create_event(club_id, "member", title="Dune", date_time=_soon())
	assert excinfo.value.detail == "create_events_forbidden"
	with pytest.raises(PermissionDenied):
		await events.create_event(club_id, "stranger", title="Dune", date_time=_soon())
	assert (await _stats(store, club_id))["totalEvents"] == 0


@pytest.mark.asyncio
async def test_create_event_validation(events, club_id):
	with pytest.raises(ValidationFailed):
		await events.create_event(club_id, "owner", title="No", date_time=_soon())
	with pytest.raises(ValidationFailed):
		await events.create_event(club_id, "owner", title="Dune", date_time="tomorrow")  # type: ignore[arg-type]
	with pytest.raises(ValidationFailed):
		await events.create_event(club_id, "owner", title="Dune", date_time=_soon(), max_attendees=0)
	with pytest.raises(ClubNotFound):
		await events.create_event("club_missing", "owner", title="Dune", date_time=_soon())


@pytest.mark.asyncio
async def test_naive_dates_are_treated_as_utc(events, club_id):
	naive = datetime(2030, 5, 1, 18, 30)
	event = await events.create_event(club_id, "owner", title="Dune", date_time=naive)
	assert event.date_time == naive.replace(tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_update_event_by_creator_and_managers(events, membership, club_id):
	await membership.update_member_role(club_id, "owner", "member", "organizer")
	event = await events.create_event(club_id, "member", title="Dune", date_time=_soon())
	await membership.update_member_role(club_id, "owner", "member", "member")

	edited = await events.update_event(event.event_id, "member", location="Library")
	assert edited.location == "Library"
	edited = await events.update_event(event.event_id, "organizer", title="Dune Messiah")
	assert edited.title == "Dune Messiah"

	await membership.join_club(club_id, "reader")
	with pytest.raises(PermissionDenied) as excinfo:
		await events.update_event(event.event_id, "reader", title="Hijacked")
	assert excinfo.value.detail == "manage_events_forbidden"


@pytest.mark.asyncio
async def test_cancel_and_complete_close_the_event(events, store, club_id):
	first = await events.create_event(club_id, "owner", title="Dune", date_time=_soon())
	second = await events.create_event(club_id, "owner", title="Foundation", date_time=_soon(14))

	cancelled = await events.cancel_event(first.event_id, "organizer")
	completed = await events.complete_event(second.event_id, "owner")

	assert cancelled.status == "cancelled"
	assert completed.status == "completed"
	stats = await _stats(store, club_id)
	assert stats["totalEvents"] == 2
	assert stats["upcomingEvents"] == 0

	with pytest.raises(EventClosed):
		await events.cancel_event(first.event_id, "owner")
	with pytest.raises(EventClosed):
		await events.update_event(second.event_id, "owner", title="Second Foundation")
	assert (await _stats(store, club_id))["upcomingEvents"] == 0


@pytest.mark.asyncio
async def test_member_cannot_cancel_others_event(events, club_id):
	event = await events.create_event(club_id, "owner", title="Dune", date_time=_soon())
	with pytest.raises(PermissionDenied):
		await events.cancel_event(event.event_id, "member")
	with pytest.raises(EventNotFound):
		await events.cancel_event("evt_missing", "owner")


@pytest.mark.asyncio
async def test_archived_club_refuses_event_changes(events, store, membership, club_id):
	event = await events.create_event(club_id, "owner", title="Dune", date_time=_soon())
	await ClubsService(store, membership=membership).archive_club(club_id, "owner")

	with pytest.raises(ClubInactive):
		await events.create_event(club_id, "owner", title="Foundation", date_time=_soon())
	with pytest.raises(ClubInactive):
		await events.cancel_event(event.event_id, "owner")
	assert (await events.get_event(event.event_id)).status == "active"


@pytest.mark.asyncio
async def test_list_club_events_newest_first(events, club_id):
	early = await events.create_event(club_id, "owner", title="Early", date_time=_soon(1))
	late = await events.create_event(club_id, "owner", title="Late", date_time=_soon(30))
	middle = await events.create_event(club_id, "owner", title="Middle", date_time=_soon(10))
	await events.cancel_event(middle.event_id, "owner")

	listed = await events.list_club_events(club_id)
	assert [event.event_id for event in listed] == [late.event_id, middle.event_id, early.event_id]

	active = await events.list_club_events(club_id, status="active")
	assert [event.event_id for event in active] == [late.event_id, early.event_id]

	window = await events.list_club_events(club_id, start=_soon(5), end=_soon(20))
	assert [event.event_id for event in window] == [middle.event_id]

	assert len(await events.list_club_events(club_id, limit=2)) == 2
	with pytest.raises(ValidationFailed):
		await events.list_club_events(club_id, status="postponed")


@pytest.mark.asyncio
async def test_rsvp_delegates(events, club_id):
	event = await events.create_event(club_id, "owner", title="Dune", date_time=_soon())
	outcome = await events.set_rsvp(event.event_id, "member", "going")
	assert outcome.current_attendees == 1
	assert (await events.get_user_rsvp(event.event_id, "member")).status == "going"
	summary = await events.get_rsvp_summary(event.event_id)
	assert (summary.going, summary.not_going, summary.total) == (1, 0, 1)


@pytest.mark.asyncio
async def test_event_changes_are_published(events, club_id, fake_redis):
	event = await events.create_event(club_id, "owner", title="Dune", date_time=_soon())
	await events.cancel_event(event.event_id, "owner")
	entries = await fake_redis.xrange(redis_streams.STREAM_EVENT)
	assert [fields["event"] for _, fields in entries] == ["event.created", "event.cancelled"]
	assert all(fields["id"] == event.event_id for _, fields in entries)


@pytest.mark.asyncio
async def test_attendance_cap_can_be_cleared(events, store, club_id):
	event = await events.create_event(club_id, "owner", title="Dune", date_time=_soon(), max_attendees=1)

	unchanged = await events.update_event(event.event_id, "owner", title="Dune Part Two")
	assert unchanged.max_attendees == 1

	with pytest.raises(ValidationFailed):
		await events.update_event(event.event_id, "owner", max_attendees=5, clear_max_attendees=True)

	cleared = await events.update_event(event.event_id, "owner", clear_max_attendees=True)
	assert cleared.max_attendees is None
	await events.set_rsvp(event.event_id, "member", "going")
	outcome = await events.set_rsvp(event.event_id, "organizer", "going")
	assert outcome.is_full is False
	assert outcome.max_attendees is None
