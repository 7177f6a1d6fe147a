"""Canonical storage mapping for club entities.

Each entity has exactly one serialization routine; unset optionals are
dropped here and nowhere else.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Any, Mapping, Type, TypeVar

from pydantic import BaseModel

CLUBS = "clubs"
CLUB_MEMBERS = "clubMembers"
CLUB_STATS = "clubStats"
EVENTS = "events"
RSVPS = "rsvps"

ModelT = TypeVar("ModelT", bound=BaseModel)


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


def new_club_id() -> str:
	return f"club_{secrets.token_hex(8)}"


def new_event_id() -> str:
	return f"evt_{secrets.token_hex(8)}"


def member_key(club_id: str, uid: str) -> str:
	return f"{club_id}_{uid}"


def rsvp_key(event_id: str, uid: str) -> str:
	return f"{event_id}_{uid}"


def to_document(entity: BaseModel) -> dict[str, Any]:
	return entity.model_dump(mode="json", by_alias=True, exclude_none=True)


def from_document(model: Type[ModelT], document: Mapping[str, Any]) -> ModelT:
	return model.model_validate(dict(document))


def timestamp(value: datetime) -> str:
	"""Render a timestamp exactly as ``to_document`` stores it."""
	return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


__all__ = [
	"CLUBS",
	"CLUB_MEMBERS",
	"CLUB_STATS",
	"EVENTS",
	"RSVPS",
	"from_document",
	"member_key",
	"new_club_id",
	"new_event_id",
	"rsvp_key",
	"timestamp",
	"to_document",
	"utcnow",
]
