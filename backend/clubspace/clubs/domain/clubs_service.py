"""Club reads and owner edits layered over the membership ledger."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from clubspace.clubs.domain import models, policies, validation
from clubspace.clubs.domain import serializers as ser
from clubspace.clubs.domain.exceptions import ClubInactive, ClubNotFound, PermissionDenied, ValidationFailed
from clubspace.clubs.domain.membership import MembershipLedger
from clubspace.clubs.infra import redis_streams
from clubspace.infra.documents import Document, DocumentStore, WriteBatch
from clubspace.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

SORT_FIELDS = {
	"name": "clubName",
	"memberCount": "memberCount",
	"createdAt": "createdAt",
	"updatedAt": "updatedAt",
}
SEARCH_LIMIT_MAX = 100


class ClubsService:
	"""Club lookups, search, and owner-only edits."""

	def __init__(self, store: DocumentStore, *, membership: MembershipLedger | None = None) -> None:
		self.store = store
		self.membership = membership or MembershipLedger(store)

	async def _load(self, club_id: str) -> Document:
		club_id = validation.require_id("clubId", club_id)
		document = await self.store.get(ser.CLUBS, club_id)
		if document is None:
			raise ClubNotFound(club_id=club_id)
		return document

	async def _owner_role(self, club_id: str, actor_uid: str, action: str) -> str:
		actor_role = await self.membership.get_member_role(club_id, actor_uid)
		refusal = policies.evaluate(action, actor_role, actor_uid=actor_uid)
		if refusal is not None:
			if isinstance(refusal, PermissionDenied):
				obs_metrics.inc_permission_denied(action)
			refusal.identifiers.setdefault("club_id", club_id)
			raise refusal
		return actor_role  # type: ignore[return-value]

	def _guard_owner(self, batch: WriteBatch, club_id: str, actor_uid: str, actor_role: str) -> None:
		batch.require_exists(ser.CLUBS, club_id, reason="club_not_found")
		batch.require_exists(ser.CLUBS, club_id, reason="club_inactive", where={"status": "active"})
		batch.require_exists(
			ser.CLUB_MEMBERS,
			ser.member_key(club_id, actor_uid),
			reason="actor_role_changed",
			where={"status": "active", "role": actor_role},
		)

	async def get_club(self, club_id: str) -> models.Club:
		return ser.from_document(models.Club, await self._load(club_id))

	async def get_stats(self, club_id: str) -> Optional[models.ClubStats]:
		club_id = validation.require_id("clubId", club_id)
		document = await self.store.get(ser.CLUB_STATS, club_id)
		return ser.from_document(models.ClubStats, document) if document else None

	async def update_club(
		self,
		club_id: str,
		actor_uid: str,
		*,
		club_name: str | None = None,
		description: str | None = None,
		is_public: bool | None = None,
		max_members: int | None = None,
		tags: Iterable[str] | None = None,
		settings: dict[str, Any] | None = None,
	) -> models.Club:
		"""Apply an owner edit. ``maxMembers`` may not drop below the current member count."""
		actor_uid = validation.require_id("actorUid", actor_uid)
		club = await self._load(club_id)
		club_id = club["clubId"]
		if club.get("status") != "active":
			raise ClubInactive(club_id=club_id)
		actor_role = await self._owner_role(club_id, actor_uid, "edit_club")

		fields: dict[str, Any] = {}
		if club_name is not None:
			fields["clubName"] = validation.club_name(club_name)
		if description is not None:
			fields["description"] = validation.club_description(description)
		if is_public is not None:
			fields["isPublic"] = bool(is_public)
		if tags is not None:
			fields["tags"] = validation.normalize_tags(tags)
		if settings is not None:
			merged = validation.club_settings(settings, current=club.get("settings"))
			fields["settings"] = ser.to_document(merged)

		batch = WriteBatch()
		self._guard_owner(batch, club_id, actor_uid, actor_role)
		if max_members is not None:
			limit = validation.max_members(max_members)
			member_count = int(club.get("memberCount") or 0)
			if limit < member_count:
				raise ValidationFailed("maxMembers", "max_members_below_member_count", club_id=club_id)
			fields["maxMembers"] = limit
			batch.require_exists(ser.CLUBS, club_id, reason="member_changed", where={"memberCount": member_count})
		if not fields:
			return ser.from_document(models.Club, club)
		fields["updatedAt"] = ser.timestamp(ser.utcnow())
		batch.update(ser.CLUBS, club_id, fields)
		await self.membership.coordinator.commit(batch, club_id=club_id)
		logger.info("club updated", extra={"club_id": club_id, "fields": sorted(fields)})
		return await self.get_club(club_id)

	async def archive_club(self, club_id: str, actor_uid: str) -> models.Club:
		"""Soft delete: the club moves to ``archived``; its members, events and RSVPs stay as they are."""
		actor_uid = validation.require_id("actorUid", actor_uid)
		club = await self._load(club_id)
		club_id = club["clubId"]
		if club.get("status") != "active":
			raise ClubInactive(club_id=club_id)
		actor_role = await self._owner_role(club_id, actor_uid, "delete_club")

		batch = WriteBatch()
		self._guard_owner(batch, club_id, actor_uid, actor_role)
		batch.update(ser.CLUBS, club_id, {"status": "archived", "updatedAt": ser.timestamp(ser.utcnow())})
		await self.membership.coordinator.commit(batch, club_id=club_id)

		obs_metrics.inc_club_archived()
		logger.info("club archived", extra={"club_id": club_id, "actor_id": actor_uid})
		await redis_streams.publish_member_change("club.archived", club_id=club_id, uid=actor_uid, actor_id=actor_uid)
		return await self.get_club(club_id)

	async def search_clubs(
		self,
		*,
		query: str | None = None,
		tags: Iterable[str] | None = None,
		sort_by: str = "createdAt",
		sort_order: str = "desc",
		limit: int = 20,
	) -> list[models.Club]:
		"""Active public clubs matching ``query`` (name or description) and any of ``tags``."""
		if sort_by not in SORT_FIELDS:
			raise ValidationFailed("sortBy")
		if sort_order not in {"asc", "desc"}:
			raise ValidationFailed("sortOrder")
		validation.ensure_limit("limit", limit, minimum=1, maximum=SEARCH_LIMIT_MAX)
		wanted_tags = set(validation.normalize_tags(tags)) if tags else set()
		needle = (query or "").strip().lower()

		documents = await self.store.query(
			ser.CLUBS,
			{"status": "active", "isPublic": True},
			order_by=SORT_FIELDS[sort_by],
			descending=sort_order == "desc",
		)
		results: list[models.Club] = []
		for document in documents:
			if needle:
				haystack = f"{document.get('clubName', '')} {document.get('description', '')}".lower()
				if needle not in haystack:
					continue
			if wanted_tags and not wanted_tags.intersection(document.get("tags") or []):
				continue
			results.append(ser.from_document(models.Club, document))
			if len(results) >= limit:
				break
		return results

	async def get_user_clubs(self, uid: str) -> list[models.UserClub]:
		"""Clubs where ``uid`` holds an active membership, fetched in one batch read."""
		uid = validation.require_id("uid", uid)
		memberships = await self.store.query(
			ser.CLUB_MEMBERS,
			{"uid": uid, "status": "active"},
			order_by="joinedAt",
			descending=True,
		)
		clubs = await self.store.get_many(ser.CLUBS, [member["clubId"] for member in memberships])
		results: list[models.UserClub] = []
		for member in memberships:
			document = clubs.get(member["clubId"])
			if document is None:
				logger.warning("membership without club", extra={"club_id": member["clubId"], "uid": uid})
				continue
			results.append(models.UserClub(club=ser.from_document(models.Club, document), role=member["role"]))
		return results


__all__ = ["ClubsService", "SORT_FIELDS"]
