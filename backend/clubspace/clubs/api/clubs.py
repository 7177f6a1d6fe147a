"""Club routes: creation, lookup, search, owner edits."""

from __future__ import annotations

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status

from clubspace.clubs import container
from clubspace.clubs.api._errors import to_http_error
from clubspace.clubs.domain import models
from clubspace.clubs.domain.clubs_service import ClubsService
from clubspace.clubs.domain.exceptions import ClubError, NotFoundError
from clubspace.clubs.domain.membership import MembershipLedger
from clubspace.clubs.schemas import dto
from clubspace.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["clubs"])


@router.post("/clubs", response_model=models.ClubCreated, status_code=status.HTTP_201_CREATED)
async def create_club_endpoint(
	payload: dto.ClubCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	membership: MembershipLedger = Depends(container.get_membership),
) -> models.ClubCreated:
	try:
		return await membership.create_club(
			auth_user.id,
			club_name=payload.club_name,
			description=payload.description,
			is_public=payload.is_public,
			max_members=payload.max_members,
			tags=payload.tags,
			settings=payload.settings,
		)
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.get("/clubs", response_model=dto.ClubListResponse)
async def search_clubs_endpoint(
	q: Optional[str] = Query(default=None, max_length=100),
	tags: Optional[List[str]] = Query(default=None),
	sort_by: Literal["name", "memberCount", "createdAt", "updatedAt"] = Query(default="createdAt", alias="sortBy"),
	sort_order: Literal["asc", "desc"] = Query(default="desc", alias="sortOrder"),
	limit: int = Query(default=20, ge=1, le=100),
	service: ClubsService = Depends(container.get_clubs),
) -> dto.ClubListResponse:
	try:
		items = await service.search_clubs(query=q, tags=tags, sort_by=sort_by, sort_order=sort_order, limit=limit)
	except ClubError as exc:
		raise to_http_error(exc) from exc
	return dto.ClubListResponse(items=items)


@router.get("/clubs/mine", response_model=dto.UserClubListResponse)
async def my_clubs_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: ClubsService = Depends(container.get_clubs),
) -> dto.UserClubListResponse:
	try:
		return dto.UserClubListResponse(items=await service.get_user_clubs(auth_user.id))
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.get("/clubs/{club_id}", response_model=models.Club)
async def get_club_endpoint(club_id: str, service: ClubsService = Depends(container.get_clubs)) -> models.Club:
	try:
		return await service.get_club(club_id)
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.get("/clubs/{club_id}/stats", response_model=models.ClubStats)
async def get_club_stats_endpoint(club_id: str, service: ClubsService = Depends(container.get_clubs)) -> models.ClubStats:
	try:
		await service.get_club(club_id)
		stats = await service.get_stats(club_id)
	except ClubError as exc:
		raise to_http_error(exc) from exc
	if stats is None:
		raise to_http_error(NotFoundError("stats_not_found", club_id=club_id))
	return stats


@router.patch("/clubs/{club_id}", response_model=models.Club)
async def update_club_endpoint(
	club_id: str,
	payload: dto.ClubUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: ClubsService = Depends(container.get_clubs),
) -> models.Club:
	try:
		return await service.update_club(
			club_id,
			auth_user.id,
			club_name=payload.club_name,
			description=payload.description,
			is_public=payload.is_public,
			max_members=payload.max_members,
			tags=payload.tags,
			settings=payload.settings,
		)
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.delete("/clubs/{club_id}", response_model=models.Club)
async def archive_club_endpoint(
	club_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: ClubsService = Depends(container.get_clubs),
) -> models.Club:
	try:
		return await service.archive_club(club_id, auth_user.id)
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.get("/clubs/{club_id}/permissions/{action}", response_model=dto.PermissionCheckResponse)
async def permission_check_endpoint(
	club_id: str,
	action: str,
	target_uid: Optional[str] = Query(default=None, alias="targetUid"),
	new_role: Optional[str] = Query(default=None, alias="newRole"),
	creator_uid: Optional[str] = Query(default=None, alias="creatorUid"),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	membership: MembershipLedger = Depends(container.get_membership),
) -> dto.PermissionCheckResponse:
	try:
		allowed = await membership.can_perform(
			club_id,
			auth_user.id,
			action,
			target_uid=target_uid,
			new_role=new_role,
			creator_uid=creator_uid,
		)
		role = await membership.get_member_role(club_id, auth_user.id)
	except ClubError as exc:
		raise to_http_error(exc) from exc
	return dto.PermissionCheckResponse(action=action, allowed=allowed, role=role)
