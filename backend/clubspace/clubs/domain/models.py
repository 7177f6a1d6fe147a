"""Domain models for clubs, memberships, events and RSVPs."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ClubRole = Literal["owner", "organizer", "member", "guest"]
ClubStatus = Literal["active", "inactive", "archived"]
MemberStatus = Literal["active", "inactive", "banned"]
EventStatus = Literal["active", "cancelled", "completed"]
RSVPStatus = Literal["going", "not_going"]
EventVisibility = Literal["public", "members_only", "organizers_only"]

CLUB_ROLES: tuple[str, ...] = ("owner", "organizer", "member", "guest")
CLUB_STATUSES: tuple[str, ...] = ("active", "inactive", "archived")
MEMBER_STATUSES: tuple[str, ...] = ("active", "inactive", "banned")
EVENT_STATUSES: tuple[str, ...] = ("active", "cancelled", "completed")
RSVP_STATUSES: tuple[str, ...] = ("going", "not_going")


class _Document(BaseModel):
	"""Base for stored entities: camelCase on the wire, snake_case in Python."""

	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClubSettings(_Document):
	allow_member_invites: bool = True
	allow_public_events: bool = True
	default_event_visibility: EventVisibility = "members_only"
	allow_member_posts: bool = True
	auto_delete_inactive_members: bool = False
	inactivity_threshold_days: int = 180


class ClubPermissions(_Document):
	can_create_events: bool = False
	can_edit_club: bool = False
	can_manage_members: bool = False
	can_delete_posts: bool = False
	can_send_announcements: bool = False
	can_access_finances: bool = False


class Club(_Document):
	"""Represents a club; ``member_count`` mirrors the active membership set."""

	club_id: str
	club_name: str
	description: str
	owner_uid: str
	status: ClubStatus = "active"
	settings: ClubSettings = Field(default_factory=ClubSettings)
	member_count: int = 0
	max_members: Optional[int] = None
	tags: list[str] = Field(default_factory=list)
	is_public: bool = True
	created_at: datetime
	updated_at: datetime


class ClubMember(_Document):
	"""Membership record keyed by (club_id, uid)."""

	club_id: str
	uid: str
	role: ClubRole
	status: MemberStatus = "active"
	joined_at: datetime
	last_activity_at: datetime
	permissions: ClubPermissions


class ClubStats(_Document):
	club_id: str
	total_members: int = 0
	active_members: int = 0
	total_events: int = 0
	upcoming_events: int = 0
	total_posts: int = 0
	last_activity_at: datetime
	updated_at: datetime


class Event(_Document):
	"""Club event; ``current_attendees`` is recounted from the RSVP set."""

	event_id: str
	club_id: str
	title: str
	description: str = ""
	date_time: datetime
	location: str = ""
	creator_uid: str
	max_attendees: Optional[int] = None
	current_attendees: int = 0
	status: EventStatus = "active"
	created_at: datetime
	updated_at: datetime


class RSVP(_Document):
	event_id: str
	uid: str
	status: RSVPStatus
	created_at: datetime
	updated_at: datetime


class RSVPSummary(BaseModel):
	going: int = 0
	not_going: int = 0
	total: int = 0


class RSVPOutcome(_Document):
	"""Result of SetRSVP: the stored response plus the recounted attendance."""

	rsvp: RSVP
	current_attendees: int
	max_attendees: Optional[int] = None
	is_full: bool = False


class ClubCreated(_Document):
	club: Club
	owner: ClubMember
	stats: ClubStats


class UserClub(_Document):
	club: Club
	role: ClubRole


class CounterReport(_Document):
	"""Stored-versus-actual counter values returned by reconciliation."""

	entity: str
	entity_id: str
	stored: dict[str, int]
	actual: dict[str, int]
	repaired: bool = False

	@property
	def drifted(self) -> dict[str, tuple[int, int]]:
		return {
			name: (self.stored.get(name, 0), value)
			for name, value in self.actual.items()
			if self.stored.get(name, 0) != value
		}


__all__ = [
	"CLUB_ROLES",
	"CLUB_STATUSES",
	"Club",
	"ClubCreated",
	"ClubMember",
	"ClubPermissions",
	"ClubRole",
	"ClubSettings",
	"ClubStats",
	"CounterReport",
	"EVENT_STATUSES",
	"Event",
	"EventStatus",
	"MEMBER_STATUSES",
	"RSVP",
	"RSVPOutcome",
	"RSVPStatus",
	"RSVPSummary",
	"RSVP_STATUSES",
	"UserClub",
]
