from __future__ import annotations

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from clubspace.clubs.infra import redis_streams
from clubspace.infra.redis import redis_client, set_redis_client
from clubspace.obs import metrics as obs_metrics
from clubspace.settings import settings


class _DownRedis:
	async def xadd(self, *args, **kwargs):
		raise RedisConnectionError("connection refused")


def _failures(stream: str) -> float:
	return obs_metrics.CHANGE_STREAM_FAILURES.labels(stream=stream)._value.get()


@pytest.mark.asyncio
async def test_member_change_is_written_to_stream(fake_redis):
	assert await redis_streams.publish_member_change("member.joined", club_id="club_1", uid="alice", role="member")
	entries = await fake_redis.xrange(redis_streams.STREAM_MEMBER)
	assert len(entries) == 1
	fields = entries[0][1]
	assert fields["event"] == "member.joined"
	assert fields["club_id"] == "club_1"
	assert fields["role"] == "member"
	assert "actor_id" not in fields
	assert "ts" in fields


@pytest.mark.asyncio
async def test_publish_failure_is_counted_not_raised(fake_redis):
	before = _failures(redis_streams.STREAM_EVENT)
	set_redis_client(_DownRedis())  # restored by the fake_redis fixture
	published = await redis_streams.publish_event_change("event.created", event_id="evt_1", club_id="club_1")
	assert published is False
	assert _failures(redis_streams.STREAM_EVENT) == before + 1


@pytest.mark.asyncio
async def test_disabled_stream_skips_redis(fake_redis, monkeypatch):
	monkeypatch.setattr(settings, "change_stream_enabled", False)
	assert await redis_streams.publish_rsvp_change(
		event_id="evt_1", club_id="club_1", uid="alice", status="going", current_attendees=1
	) is False
	assert await fake_redis.xlen(redis_streams.STREAM_RSVP) == 0
	assert redis_client.client is fake_redis


@pytest.mark.asyncio
async def test_ledger_write_survives_stream_outage(store):
	from clubspace.clubs.domain import serializers as ser
	from clubspace.clubs.domain.membership import MembershipLedger

	set_redis_client(_DownRedis())
	ledger = MembershipLedger(store)
	created = await ledger.create_club("owner", club_name="Cycling", description="Road rides")
	assert await store.get(ser.CLUBS, created.club.club_id) is not None
