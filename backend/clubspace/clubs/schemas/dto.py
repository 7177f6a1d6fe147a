"""Pydantic schemas for the clubs API.

Payloads use the same camelCase names as the stored documents.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from clubspace.clubs.domain import models, validation


class _Payload(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClubCreateRequest(_Payload):
	club_name: str = Field(..., min_length=validation.CLUB_NAME_MIN_LENGTH, max_length=validation.CLUB_NAME_MAX_LENGTH)
	description: str = Field(..., min_length=1, max_length=validation.CLUB_DESCRIPTION_MAX_LENGTH)
	is_public: bool = True
	max_members: Optional[int] = Field(
		default=None,
		ge=validation.CLUB_MIN_MEMBERS,
		le=validation.CLUB_MAX_MEMBERS_LIMIT,
	)
	tags: List[str] = Field(default_factory=list, max_length=validation.CLUB_MAX_TAGS)
	settings: Dict[str, Any] = Field(default_factory=dict)


class ClubUpdateRequest(_Payload):
	club_name: Optional[str] = Field(
		default=None,
		min_length=validation.CLUB_NAME_MIN_LENGTH,
		max_length=validation.CLUB_NAME_MAX_LENGTH,
	)
	description: Optional[str] = Field(default=None, max_length=validation.CLUB_DESCRIPTION_MAX_LENGTH)
	is_public: Optional[bool] = None
	max_members: Optional[int] = Field(
		default=None,
		ge=validation.CLUB_MIN_MEMBERS,
		le=validation.CLUB_MAX_MEMBERS_LIMIT,
	)
	tags: Optional[List[str]] = Field(default=None, max_length=validation.CLUB_MAX_TAGS)
	settings: Optional[Dict[str, Any]] = None


class ClubListResponse(_Payload):
	items: List[models.Club]


class UserClubListResponse(_Payload):
	items: List[models.UserClub]


class JoinRequest(_Payload):
	role: str = Field(default="member", pattern="^(member|guest)$")


class MemberRoleUpdateRequest(_Payload):
	role: str = Field(..., pattern="^(owner|organizer|member|guest)$")


class MemberListResponse(_Payload):
	items: List[models.ClubMember]


class PermissionCheckResponse(_Payload):
	action: str
	allowed: bool
	role: Optional[str] = None


class EventCreateRequest(_Payload):
	title: str = Field(..., min_length=validation.EVENT_TITLE_MIN_LENGTH, max_length=validation.EVENT_TITLE_MAX_LENGTH)
	description: str = Field(default="", max_length=validation.EVENT_DESCRIPTION_MAX_LENGTH)
	date_time: datetime
	location: str = Field(default="", max_length=validation.EVENT_LOCATION_MAX_LENGTH)
	max_attendees: Optional[int] = Field(
		default=None,
		ge=validation.EVENT_MIN_ATTENDEES,
		le=validation.EVENT_MAX_ATTENDEES_LIMIT,
	)


class EventUpdateRequest(_Payload):
	title: Optional[str] = Field(
		default=None,
		min_length=validation.EVENT_TITLE_MIN_LENGTH,
		max_length=validation.EVENT_TITLE_MAX_LENGTH,
	)
	description: Optional[str] = Field(default=None, max_length=validation.EVENT_DESCRIPTION_MAX_LENGTH)
	date_time: Optional[datetime] = None
	location: Optional[str] = Field(default=None, max_length=validation.EVENT_LOCATION_MAX_LENGTH)
	max_attendees: Optional[int] = Field(
		default=None,
		ge=validation.EVENT_MIN_ATTENDEES,
		le=validation.EVENT_MAX_ATTENDEES_LIMIT,
	)


class EventStatusRequest(_Payload):
	status: str = Field(..., pattern="^(cancelled|completed)$")


class EventListResponse(_Payload):
	items: List[models.Event]


class RSVPRequest(_Payload):
	status: str = Field(..., pattern="^(going|not_going)$")


class RSVPListResponse(_Payload):
	items: List[models.RSVP]
