"""Membership ledger: who belongs to which club, and the counters derived from it.

The ledger owns ``ClubMember`` records together with ``Club.memberCount`` and
``ClubStats.totalMembers`` / ``ClubStats.activeMembers``. Every mutation is a
single grouped write over the record and each counter it moves; the checks
performed up front for clear errors are re-asserted as preconditions of that
write so concurrent callers cannot slip past them.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from clubspace.clubs.domain import models, policies, validation
from clubspace.clubs.domain import serializers as ser
from clubspace.clubs.domain.coordinator import ConsistencyCoordinator
from clubspace.clubs.domain.exceptions import (
	AlreadyMember,
	CannotRemoveSelf,
	ClubError,
	ClubFull,
	ClubInactive,
	ClubNotFound,
	MemberNotFound,
	NotAMember,
	OwnerCannotLeave,
	PermissionDenied,
)
from clubspace.clubs.infra import redis_streams
from clubspace.infra.documents import Document, DocumentStore, WriteBatch
from clubspace.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _tracked(action: str) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
	"""Count the outcome of a ledger mutation."""

	def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
		@functools.wraps(func)
		async def wrapper(*args: Any, **kwargs: Any) -> T:
			try:
				result = await func(*args, **kwargs)
			except ClubError as exc:
				obs_metrics.inc_membership_mutation(action, exc.detail)
				if isinstance(exc, PermissionDenied):
					obs_metrics.inc_permission_denied(action)
				raise
			obs_metrics.inc_membership_mutation(action, "ok")
			return result

		return wrapper

	return decorator


class MembershipLedger:
	"""Implements CreateClub, JoinClub, LeaveClub, RemoveMember and UpdateMemberRole."""

	def __init__(self, store: DocumentStore, *, coordinator: ConsistencyCoordinator | None = None) -> None:
		self.store = store
		self.coordinator = coordinator or ConsistencyCoordinator(store)

	# ------------------------------------------------------------------
	# Reads

	async def _load_club(self, club_id: str, *, require_active: bool = True) -> Document:
		club = await self.store.get(ser.CLUBS, club_id)
		if club is None:
			raise ClubNotFound(club_id=club_id)
		if require_active and club.get("status") != "active":
			raise ClubInactive(club_id=club_id)
		return club

	async def _load_member(self, club_id: str, uid: str) -> Optional[Document]:
		return await self.store.get(ser.CLUB_MEMBERS, ser.member_key(club_id, uid))

	async def _active_role(self, club_id: str, uid: str) -> Optional[str]:
		member = await self._load_member(club_id, uid)
		if member is None or member.get("status") != "active":
			return None
		return member.get("role")

	async def get_member(self, club_id: str, uid: str) -> Optional[models.ClubMember]:
		document = await self._load_member(club_id, uid)
		return ser.from_document(models.ClubMember, document) if document else None

	async def get_member_role(self, club_id: str, uid: str) -> Optional[str]:
		"""Role of ``uid`` in ``club_id``, or ``None`` without an active membership."""
		club_id = validation.require_id("clubId", club_id)
		uid = validation.require_id("uid", uid)
		return await self._active_role(club_id, uid)

	async def list_members(self, club_id: str, *, limit: int | None = None) -> list[models.ClubMember]:
		club_id = validation.require_id("clubId", club_id)
		await self._load_club(club_id, require_active=False)
		documents = await self.store.query(
			ser.CLUB_MEMBERS,
			{"clubId": club_id, "status": "active"},
			order_by="joinedAt",
			limit=limit,
		)
		return [ser.from_document(models.ClubMember, doc) for doc in documents]

	async def can_perform(
		self,
		club_id: str,
		actor_uid: str,
		action: str,
		*,
		target_uid: str | None = None,
		new_role: str | None = None,
		creator_uid: str | None = None,
	) -> bool:
		"""Advisory permission query for UI gating; mutations re-check on their own."""
		club_id = validation.require_id("clubId", club_id)
		actor_uid = validation.require_id("actorUid", actor_uid)
		club = await self.store.get(ser.CLUBS, club_id)
		if club is None or club.get("status") != "active":
			return False
		actor_role = await self._active_role(club_id, actor_uid)
		target_role = None
		if target_uid:
			target_role = await self._active_role(club_id, target_uid)
			if target_role is None and action in {"remove_member", "change_role"}:
				return False
		return policies.can_perform(
			action,
			actor_role,
			actor_uid=actor_uid,
			target_uid=target_uid,
			target_role=target_role,
			new_role=new_role,
			creator_uid=creator_uid,
		)

	# ------------------------------------------------------------------
	# Batch helpers

	@staticmethod
	def _guard_club(batch: WriteBatch, club_id: str) -> None:
		batch.require_exists(ser.CLUBS, club_id, reason="club_not_found")
		batch.require_exists(ser.CLUBS, club_id, reason="club_inactive", where={"status": "active"})

	@staticmethod
	def _move_counters(batch: WriteBatch, club_id: str, *, active: int, total: int, now: str) -> None:
		batch.update(ser.CLUBS, club_id, {"updatedAt": now}, increments={"memberCount": active})
		increments = {"activeMembers": active}
		if total:
			increments["totalMembers"] = total
		batch.update(ser.CLUB_STATS, club_id, {"lastActivityAt": now, "updatedAt": now}, increments=increments)

	# ------------------------------------------------------------------
	# Mutations

	@_tracked("create")
	async def create_club(
		self,
		actor_uid: str,
		*,
		club_name: str,
		description: str,
		is_public: bool = True,
		max_members: int | None = None,
		tags: list[str] | None = None,
		settings: dict[str, Any] | None = None,
	) -> models.ClubCreated:
		"""Create a club with its owner membership and stats in one grouped write."""
		actor_uid = validation.require_id("actorUid", actor_uid)
		name = validation.club_name(club_name)
		text = validation.club_description(description)
		limit = validation.max_members(max_members)
		cleaned_tags = validation.normalize_tags(tags)
		club_settings = validation.club_settings(settings)

		now = ser.utcnow()
		club_id = ser.new_club_id()
		club = models.Club(
			club_id=club_id,
			club_name=name,
			description=text,
			owner_uid=actor_uid,
			status="active",
			settings=club_settings,
			member_count=1,
			max_members=limit,
			tags=cleaned_tags,
			is_public=bool(is_public),
			created_at=now,
			updated_at=now,
		)
		owner = models.ClubMember(
			club_id=club_id,
			uid=actor_uid,
			role="owner",
			status="active",
			joined_at=now,
			last_activity_at=now,
			permissions=policies.default_permissions("owner"),
		)
		stats = models.ClubStats(
			club_id=club_id,
			total_members=1,
			active_members=1,
			last_activity_at=now,
			updated_at=now,
		)

		batch = WriteBatch()
		batch.create(ser.CLUBS, club_id, ser.to_document(club))
		batch.create(ser.CLUB_MEMBERS, ser.member_key(club_id, actor_uid), ser.to_document(owner))
		batch.create(ser.CLUB_STATS, club_id, ser.to_document(stats))
		await self.coordinator.commit(batch, club_id=club_id)

		obs_metrics.inc_club_created()
		logger.info("club created", extra={"club_id": club_id, "owner_uid": actor_uid})
		await redis_streams.publish_member_change("club.created", club_id=club_id, uid=actor_uid, role="owner")
		return models.ClubCreated(club=club, owner=owner, stats=stats)

	@_tracked("join")
	async def join_club(self, club_id: str, actor_uid: str, role: str = "member") -> models.ClubMember:
		"""Add ``actor_uid`` to the club, bumping every membership counter by one."""
		club_id = validation.require_id("clubId", club_id)
		actor_uid = validation.require_id("actorUid", actor_uid)
		role = validation.ensure_role(role)
		if role not in policies.SELF_JOIN_ROLES:
			raise PermissionDenied("role_not_joinable", club_id=club_id, uid=actor_uid)

		club = await self._load_club(club_id)
		existing = await self._load_member(club_id, actor_uid)
		if existing is not None and existing.get("status") == "active":
			raise AlreadyMember(club_id=club_id, uid=actor_uid)
		limit = club.get("maxMembers")
		if limit is not None and int(club.get("memberCount") or 0) >= int(limit):
			raise ClubFull(club_id=club_id)

		now = ser.utcnow()
		member = models.ClubMember(
			club_id=club_id,
			uid=actor_uid,
			role=role,
			status="active",
			joined_at=now,
			last_activity_at=now,
			permissions=policies.default_permissions(role),
		)
		key = ser.member_key(club_id, actor_uid)
		stamp = ser.timestamp(now)

		batch = WriteBatch()
		self._guard_club(batch, club_id)
		if existing is None:
			batch.require_absent(ser.CLUB_MEMBERS, key, reason="already_member")
		else:
			# Overwrites a banned/inactive record that is already counted in totalMembers.
			batch.require_exists(
				ser.CLUB_MEMBERS,
				key,
				reason="already_member",
				where={"status": existing.get("status")},
			)
		batch.require_below(ser.CLUBS, club_id, field="memberCount", limit_field="maxMembers", reason="club_full")
		if existing is None:
			batch.create(ser.CLUB_MEMBERS, key, ser.to_document(member), reason="already_member")
		else:
			batch.set(ser.CLUB_MEMBERS, key, ser.to_document(member))
		self._move_counters(batch, club_id, active=1, total=1 if existing is None else 0, now=stamp)
		await self.coordinator.commit(batch, club_id=club_id, uid=actor_uid)

		await redis_streams.publish_member_change("member.joined", club_id=club_id, uid=actor_uid, role=role)
		return member

	@_tracked("leave")
	async def leave_club(self, club_id: str, actor_uid: str) -> None:
		"""Delete the actor's own membership; the owner can never leave."""
		club_id = validation.require_id("clubId", club_id)
		actor_uid = validation.require_id("actorUid", actor_uid)
		await self._load_club(club_id)
		member = await self._load_member(club_id, actor_uid)
		if member is None or member.get("status") != "active":
			raise NotAMember(club_id=club_id, uid=actor_uid)
		if member.get("role") == "owner":
			raise OwnerCannotLeave(club_id=club_id, uid=actor_uid)

		key = ser.member_key(club_id, actor_uid)
		batch = WriteBatch()
		self._guard_club(batch, club_id)
		batch.require_exists(ser.CLUB_MEMBERS, key, reason="not_a_member", where={"status": "active"})
		batch.require_absent(ser.CLUB_MEMBERS, key, reason="owner_cannot_leave", where={"role": "owner"})
		batch.delete(ser.CLUB_MEMBERS, key)
		self._move_counters(batch, club_id, active=-1, total=-1, now=ser.timestamp(ser.utcnow()))
		await self.coordinator.commit(batch, club_id=club_id, uid=actor_uid)

		await redis_streams.publish_member_change("member.left", club_id=club_id, uid=actor_uid)

	@_tracked("remove")
	async def remove_member(self, club_id: str, actor_uid: str, target_uid: str) -> None:
		"""Admin removal of ``target_uid``; same counter effect as a leave."""
		club_id = validation.require_id("clubId", club_id)
		actor_uid = validation.require_id("actorUid", actor_uid)
		target_uid = validation.require_id("targetUid", target_uid)
		if actor_uid == target_uid:
			raise CannotRemoveSelf(club_id=club_id, uid=actor_uid)

		await self._load_club(club_id)
		actor_role = await self._active_role(club_id, actor_uid)
		context = {"actor_uid": actor_uid, "target_uid": target_uid}
		self._enforce("remove_member", actor_role, club_id, **context)
		target = await self._load_member(club_id, target_uid)
		if target is None or target.get("status") != "active":
			raise MemberNotFound(club_id=club_id, uid=target_uid)
		target_role = target.get("role")
		self._enforce("remove_member", actor_role, club_id, target_role=target_role, **context)

		target_key = ser.member_key(club_id, target_uid)
		batch = WriteBatch()
		self._guard_club(batch, club_id)
		batch.require_exists(
			ser.CLUB_MEMBERS,
			ser.member_key(club_id, actor_uid),
			reason="actor_role_changed",
			where={"status": "active", "role": actor_role},
		)
		batch.require_exists(ser.CLUB_MEMBERS, target_key, reason="member_not_found", where={"status": "active"})
		batch.require_exists(ser.CLUB_MEMBERS, target_key, reason="member_changed", where={"role": target_role})
		batch.delete(ser.CLUB_MEMBERS, target_key)
		self._move_counters(batch, club_id, active=-1, total=-1, now=ser.timestamp(ser.utcnow()))
		await self.coordinator.commit(batch, club_id=club_id, uid=target_uid)

		logger.info("member removed", extra={"club_id": club_id, "uid": target_uid, "actor_id": actor_uid})
		await redis_streams.publish_member_change(
			"member.removed",
			club_id=club_id,
			uid=target_uid,
			actor_id=actor_uid,
			role=target_role,
		)

	@_tracked("change_role")
	async def update_member_role(
		self,
		club_id: str,
		actor_uid: str,
		target_uid: str,
		new_role: str,
	) -> models.ClubMember:
		"""Rewrite the target's role and derived permissions in place."""
		club_id = validation.require_id("clubId", club_id)
		actor_uid = validation.require_id("actorUid", actor_uid)
		target_uid = validation.require_id("targetUid", target_uid)
		new_role = validation.ensure_role(new_role)
		if actor_uid == target_uid:
			raise PermissionDenied("cannot_change_own_role", club_id=club_id, uid=actor_uid)

		await self._load_club(club_id)
		actor_role = await self._active_role(club_id, actor_uid)
		context = {"actor_uid": actor_uid, "target_uid": target_uid, "new_role": new_role}
		self._enforce("change_role", actor_role, club_id, **context)
		target = await self._load_member(club_id, target_uid)
		if target is None or target.get("status") != "active":
			raise MemberNotFound(club_id=club_id, uid=target_uid)
		target_role = target.get("role")
		self._enforce("change_role", actor_role, club_id, target_role=target_role, **context)

		member = ser.from_document(models.ClubMember, target)
		if target_role == new_role:
			return member
		member.role = new_role  # type: ignore[assignment]
		member.permissions = policies.default_permissions(new_role)

		target_key = ser.member_key(club_id, target_uid)
		batch = WriteBatch()
		self._guard_club(batch, club_id)
		batch.require_exists(
			ser.CLUB_MEMBERS,
			ser.member_key(club_id, actor_uid),
			reason="actor_role_changed",
			where={"status": "active", "role": actor_role},
		)
		batch.require_exists(
			ser.CLUB_MEMBERS,
			target_key,
			reason="member_changed",
			where={"status": "active", "role": target_role},
		)
		batch.update(
			ser.CLUB_MEMBERS,
			target_key,
			{"role": new_role, "permissions": ser.to_document(member.permissions)},
		)
		await self.coordinator.commit(batch, club_id=club_id, uid=target_uid)

		await redis_streams.publish_member_change(
			"member.role_changed",
			club_id=club_id,
			uid=target_uid,
			actor_id=actor_uid,
			role=new_role,
		)
		return member

	@staticmethod
	def _enforce(action: str, actor_role: str | None, club_id: str, **context: str | None) -> None:
		refusal = policies.evaluate(action, actor_role, **context)
		if refusal is None:
			return
		refusal.identifiers.setdefault("club_id", club_id)
		if context.get("target_uid"):
			refusal.identifiers.setdefault("uid", context["target_uid"])
		raise refusal


__all__ = ["MembershipLedger"]
