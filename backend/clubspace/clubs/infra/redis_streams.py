"""Change records published after successful grouped writes.

Consumers (notification delivery, search indexing) read these streams; the
ledgers never wait on them. A failed publish is logged and counted, the
committed write stands.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from redis.exceptions import RedisError

from clubspace.infra.redis import redis_client
from clubspace.obs import metrics as obs_metrics
from clubspace.settings import settings

logger = logging.getLogger(__name__)

STREAM_MEMBER = "club:member"
STREAM_EVENT = "club:event"
STREAM_RSVP = "club:rsvp"


def _now_ts() -> str:
	return datetime.now(timezone.utc).isoformat()


async def _publish(stream: str, payload: dict[str, Any]) -> bool:
	if not settings.change_stream_enabled:
		return False
	fields = {key: str(value) for key, value in payload.items() if value is not None}
	fields["ts"] = _now_ts()
	try:
		await redis_client.xadd(stream, fields, maxlen=settings.change_stream_maxlen, approximate=True)
	except (RedisError, OSError):
		obs_metrics.inc_change_stream_failure(stream)
		logger.warning("change record not published", extra={"stream": stream, "event": payload.get("event")}, exc_info=True)
		return False
	return True


async def publish_member_change(
	event: str,
	*,
	club_id: str,
	uid: str,
	actor_id: str | None = None,
	role: str | None = None,
) -> bool:
	return await _publish(
		STREAM_MEMBER,
		{"event": event, "entity": "member", "club_id": club_id, "uid": uid, "actor_id": actor_id, "role": role},
	)


async def publish_event_change(event: str, *, event_id: str, club_id: str, actor_id: str | None = None) -> bool:
	return await _publish(
		STREAM_EVENT,
		{"event": event, "entity": "event", "id": event_id, "club_id": club_id, "actor_id": actor_id},
	)


async def publish_rsvp_change(
	*,
	event_id: str,
	club_id: str,
	uid: str,
	status: str,
	current_attendees: int,
) -> bool:
	return await _publish(
		STREAM_RSVP,
		{
			"event": "rsvp.updated",
			"entity": "rsvp",
			"event_id": event_id,
			"club_id": club_id,
			"uid": uid,
			"status": status,
			"current_attendees": current_attendees,
		},
	)


__all__ = [
	"STREAM_EVENT",
	"STREAM_MEMBER",
	"STREAM_RSVP",
	"publish_event_change",
	"publish_member_change",
	"publish_rsvp_change",
]
