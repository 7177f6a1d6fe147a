"""Structural validation re-run by the core on every mutating call."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError

from clubspace.clubs.domain import models
from clubspace.clubs.domain.exceptions import ValidationFailed

CLUB_NAME_MIN_LENGTH = 2
CLUB_NAME_MAX_LENGTH = 50
CLUB_DESCRIPTION_MAX_LENGTH = 500
CLUB_MAX_TAGS = 5
CLUB_TAG_MAX_LENGTH = 20
CLUB_MIN_MEMBERS = 1
CLUB_MAX_MEMBERS_LIMIT = 1000

EVENT_TITLE_MIN_LENGTH = 3
EVENT_TITLE_MAX_LENGTH = 100
EVENT_DESCRIPTION_MAX_LENGTH = 1000
EVENT_LOCATION_MAX_LENGTH = 200
EVENT_MIN_ATTENDEES = 1
EVENT_MAX_ATTENDEES_LIMIT = 1000


def require_id(field: str, value: object) -> str:
	if not isinstance(value, str) or not value.strip():
		raise ValidationFailed(field, f"{field}_required")
	return value.strip()


def require_text(field: str, value: object, *, min_length: int = 1, max_length: int | None = None) -> str:
	if not isinstance(value, str) or not value.strip():
		raise ValidationFailed(field, f"{field}_required")
	text = value.strip()
	if len(text) < min_length:
		raise ValidationFailed(field, f"{field}_too_short")
	if max_length is not None and len(text) > max_length:
		raise ValidationFailed(field, f"{field}_too_long")
	return text


def optional_text(field: str, value: object, *, max_length: int) -> str:
	if value is None:
		return ""
	if not isinstance(value, str):
		raise ValidationFailed(field)
	text = value.strip()
	if len(text) > max_length:
		raise ValidationFailed(field, f"{field}_too_long")
	return text


def _ensure_choice(field: str, value: object, choices: Iterable[str]) -> str:
	if value not in tuple(choices):
		raise ValidationFailed(field, f"invalid_{field}")
	return value  # type: ignore[return-value]


def ensure_role(role: object) -> str:
	return _ensure_choice("role", role, models.CLUB_ROLES)


def ensure_rsvp_status(status: object) -> str:
	return _ensure_choice("status", status, models.RSVP_STATUSES)


def ensure_event_status(status: object) -> str:
	return _ensure_choice("status", status, models.EVENT_STATUSES)


def ensure_limit(field: str, value: Optional[int], *, minimum: int, maximum: int) -> Optional[int]:
	if value is None:
		return None
	if isinstance(value, bool) or not isinstance(value, int) or value < minimum or value > maximum:
		raise ValidationFailed(field, f"{field}_out_of_range")
	return value


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
	cleaned: list[str] = []
	for tag in tags or []:
		if not isinstance(tag, str):
			raise ValidationFailed("tags")
		value = tag.strip().lower()
		if not value:
			continue
		if len(value) > CLUB_TAG_MAX_LENGTH:
			raise ValidationFailed("tags", "tag_too_long")
		if value not in cleaned:
			cleaned.append(value)
	if len(cleaned) > CLUB_MAX_TAGS:
		raise ValidationFailed("tags", "too_many_tags")
	return cleaned


def club_name(value: object) -> str:
	return require_text("clubName", value, min_length=CLUB_NAME_MIN_LENGTH, max_length=CLUB_NAME_MAX_LENGTH)


def club_description(value: object) -> str:
	return require_text("description", value, max_length=CLUB_DESCRIPTION_MAX_LENGTH)


def max_members(value: Optional[int]) -> Optional[int]:
	return ensure_limit("maxMembers", value, minimum=CLUB_MIN_MEMBERS, maximum=CLUB_MAX_MEMBERS_LIMIT)


def event_title(value: object) -> str:
	return require_text("title", value, min_length=EVENT_TITLE_MIN_LENGTH, max_length=EVENT_TITLE_MAX_LENGTH)


def event_description(value: object) -> str:
	return optional_text("description", value, max_length=EVENT_DESCRIPTION_MAX_LENGTH)


def event_location(value: object) -> str:
	return optional_text("location", value, max_length=EVENT_LOCATION_MAX_LENGTH)


def max_attendees(value: Optional[int]) -> Optional[int]:
	return ensure_limit("maxAttendees", value, minimum=EVENT_MIN_ATTENDEES, maximum=EVENT_MAX_ATTENDEES_LIMIT)


def event_date(value: object) -> datetime:
	if not isinstance(value, datetime):
		raise ValidationFailed("dateTime", "dateTime_required")
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value


def club_settings(value: object, *, current: Mapping[str, Any] | None = None) -> models.ClubSettings:
	"""Validate a settings patch and merge it over ``current`` (stored, camelCase).

	Keys may use either the stored camelCase names or their snake_case form.
	"""
	if value is None:
		value = {}
	if not isinstance(value, Mapping):
		raise ValidationFailed("settings")
	try:
		requested = models.ClubSettings.model_validate(dict(value))
		merged = {**(current or {}), **requested.model_dump(by_alias=True, exclude_unset=True)}
		return models.ClubSettings.model_validate(merged)
	except ValidationError as exc:
		invalid = sorted({str(error["loc"][0]) for error in exc.errors() if error.get("loc")})
		raise ValidationFailed("settings", "invalid_settings", keys=",".join(invalid) or None) from exc
