"""Domain errors raised by the club ledgers."""

from __future__ import annotations

from typing import Any

from fastapi import status

if hasattr(status, "HTTP_422_UNPROCESSABLE_CONTENT"):
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_CONTENT
else:  # pragma: no cover - older Starlette builds
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_ENTITY


class ClubError(Exception):
	"""Base class for club domain errors.

	``kind`` names the error family (not_found, permission_denied, conflict,
	invalid_state, validation_failed); ``detail`` is the machine code returned
	to callers; ``identifiers`` carries the offending ids.
	"""

	kind: str = "error"
	status_code: int = status.HTTP_400_BAD_REQUEST
	detail: str = "club_error"

	def __init__(self, detail: str | None = None, **identifiers: Any) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail
		self.identifiers: dict[str, Any] = {key: value for key, value in identifiers.items() if value is not None}

	def to_payload(self) -> dict[str, Any]:
		payload: dict[str, Any] = {"code": self.detail, "kind": self.kind}
		if self.identifiers:
			payload["identifiers"] = dict(self.identifiers)
		return payload


class NotFoundError(ClubError):
	kind = "not_found"
	status_code = status.HTTP_404_NOT_FOUND
	detail = "not_found"


class ClubNotFound(NotFoundError):
	detail = "club_not_found"


class EventNotFound(NotFoundError):
	detail = "event_not_found"


class MemberNotFound(NotFoundError):
	detail = "member_not_found"


class NotAMember(NotFoundError):
	"""The actor holds no active membership in the club."""

	detail = "not_a_member"


class RSVPNotFound(NotFoundError):
	detail = "rsvp_not_found"


class PermissionDenied(ClubError):
	kind = "permission_denied"
	status_code = status.HTTP_403_FORBIDDEN
	detail = "permission_denied"


class ConflictError(ClubError):
	kind = "conflict"
	status_code = status.HTTP_409_CONFLICT
	detail = "conflict"


class AlreadyMember(ConflictError):
	detail = "already_member"


class ClubFull(ConflictError):
	detail = "club_full"


class InvalidStateError(ClubError):
	kind = "invalid_state"
	status_code = status.HTTP_409_CONFLICT
	detail = "invalid_state"


class OwnerCannotLeave(InvalidStateError):
	detail = "owner_cannot_leave"


class CannotRemoveSelf(InvalidStateError):
	detail = "cannot_remove_self"


class CannotRemoveOwner(InvalidStateError):
	detail = "cannot_remove_owner"


class ClubInactive(InvalidStateError):
	detail = "club_inactive"


class EventClosed(InvalidStateError):
	detail = "event_closed"


class ValidationFailed(ClubError):
	"""Structural validation failure; ``field`` names the offending input."""

	kind = "validation_failed"
	status_code = _HTTP_422
	detail = "validation_failed"

	def __init__(self, field: str, detail: str | None = None, **identifiers: Any) -> None:
		super().__init__(detail or f"invalid_{field}", field=field, **identifiers)
		self.field = field
