"""Authorization policies for club operations.

Everything here is pure: callers pass the roles they read and receive either
``None`` (allowed) or the error that describes the refusal.
"""

from __future__ import annotations

from typing import Optional

from clubspace.clubs.domain import models
from clubspace.clubs.domain.exceptions import (
	CannotRemoveOwner,
	CannotRemoveSelf,
	ClubError,
	InvalidStateError,
	PermissionDenied,
	ValidationFailed,
)

ROLE_HIERARCHY = {"owner": 4, "organizer": 3, "member": 2, "guest": 1}

DEFAULT_PERMISSIONS: dict[str, models.ClubPermissions] = {
	"owner": models.ClubPermissions(
		can_create_events=True,
		can_edit_club=True,
		can_manage_members=True,
		can_delete_posts=True,
		can_send_announcements=True,
		can_access_finances=True,
	),
	"organizer": models.ClubPermissions(
		can_create_events=True,
		can_manage_members=True,
		can_delete_posts=True,
		can_send_announcements=True,
	),
	"member": models.ClubPermissions(),
	"guest": models.ClubPermissions(),
}

ACTIONS = frozenset(
	{
		"edit_club",
		"delete_club",
		"create_events",
		"manage_events",
		"manage_members",
		"remove_member",
		"change_role",
	}
)

# Roles a user may take when joining on their own.
SELF_JOIN_ROLES = frozenset({"member", "guest"})


def default_permissions(role: str) -> models.ClubPermissions:
	if role not in DEFAULT_PERMISSIONS:
		raise ValidationFailed("role", "invalid_role")
	return DEFAULT_PERMISSIONS[role].model_copy()


def _rank(role: str | None) -> int:
	return ROLE_HIERARCHY.get(role or "", 0)


def _member_policy(
	actor_role: str,
	*,
	actor_uid: str | None,
	target_uid: str | None,
	target_role: str | None,
	self_error: ClubError,
) -> Optional[ClubError]:
	if actor_uid is not None and actor_uid == target_uid:
		return self_error
	if not DEFAULT_PERMISSIONS[actor_role].can_manage_members:
		return PermissionDenied("manage_members_required")
	if target_role is None:
		return None
	if actor_role != "owner" and _rank(target_role) >= ROLE_HIERARCHY["organizer"]:
		return PermissionDenied("insufficient_role_rank")
	return None


def evaluate(
	action: str,
	actor_role: str | None,
	*,
	actor_uid: str | None = None,
	target_uid: str | None = None,
	target_role: str | None = None,
	new_role: str | None = None,
	creator_uid: str | None = None,
) -> Optional[ClubError]:
	"""Return ``None`` when ``actor_role`` may perform ``action``, else the refusal.

	``actor_role`` is ``None`` for non-members. For ``remove_member`` and
	``change_role`` a missing ``target_role`` evaluates only the actor's own
	capability, which lets callers refuse early before reading the target.
	"""
	if action not in ACTIONS:
		raise ValidationFailed("action", "invalid_action")
	if actor_role is None:
		return PermissionDenied("membership_required")
	if actor_role not in ROLE_HIERARCHY:
		raise ValidationFailed("role", "invalid_role")
	permissions = DEFAULT_PERMISSIONS[actor_role]

	if action in {"edit_club", "delete_club"}:
		if actor_role != "owner":
			return PermissionDenied("owner_role_required")
		return None
	if action == "create_events":
		return None if permissions.can_create_events else PermissionDenied("create_events_forbidden")
	if action == "manage_events":
		if _rank(actor_role) >= ROLE_HIERARCHY["organizer"]:
			return None
		if creator_uid is not None and creator_uid == actor_uid:
			return None
		return PermissionDenied("manage_events_forbidden")
	if action == "manage_members":
		return None if permissions.can_manage_members else PermissionDenied("manage_members_required")

	if action == "remove_member":
		refusal = _member_policy(
			actor_role,
			actor_uid=actor_uid,
			target_uid=target_uid,
			target_role=target_role,
			self_error=CannotRemoveSelf(),
		)
		if refusal is not None:
			return refusal
		if target_role == "owner":
			return CannotRemoveOwner()
		return None

	# change_role
	refusal = _member_policy(
		actor_role,
		actor_uid=actor_uid,
		target_uid=target_uid,
		target_role=target_role,
		self_error=PermissionDenied("cannot_change_own_role"),
	)
	if refusal is not None:
		return refusal
	if new_role is not None:
		if new_role == "owner":
			return PermissionDenied("owner_not_assignable")
		if actor_role != "owner" and _rank(new_role) >= ROLE_HIERARCHY["organizer"]:
			return PermissionDenied("insufficient_role_rank")
	if target_role == "owner":
		return InvalidStateError("owner_role_locked")
	return None


def can_perform(action: str, actor_role: str | None, **context: str | None) -> bool:
	return evaluate(action, actor_role, **context) is None


def ensure_allowed(action: str, actor_role: str | None, **context: str | None) -> None:
	refusal = evaluate(action, actor_role, **context)
	if refusal is not None:
		raise refusal


__all__ = [
	"ACTIONS",
	"DEFAULT_PERMISSIONS",
	"ROLE_HIERARCHY",
	"SELF_JOIN_ROLES",
	"can_perform",
	"default_permissions",
	"ensure_allowed",
	"evaluate",
]
