"""Membership routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status

from clubspace.clubs import container
from clubspace.clubs.api._errors import to_http_error
from clubspace.clubs.domain import models
from clubspace.clubs.domain.exceptions import ClubError
from clubspace.clubs.domain.membership import MembershipLedger
from clubspace.clubs.schemas import dto
from clubspace.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["clubs:members"])


@router.get("/clubs/{club_id}/members", response_model=dto.MemberListResponse)
async def list_members_endpoint(
	club_id: str,
	limit: Optional[int] = Query(default=None, ge=1, le=500),
	membership: MembershipLedger = Depends(container.get_membership),
) -> dto.MemberListResponse:
	try:
		return dto.MemberListResponse(items=await membership.list_members(club_id, limit=limit))
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.post("/clubs/{club_id}/members", response_model=models.ClubMember, status_code=status.HTTP_201_CREATED)
async def join_club_endpoint(
	club_id: str,
	payload: Optional[dto.JoinRequest] = Body(default=None),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	membership: MembershipLedger = Depends(container.get_membership),
) -> models.ClubMember:
	role = payload.role if payload is not None else "member"
	try:
		return await membership.join_club(club_id, auth_user.id, role)
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.delete(
	"/clubs/{club_id}/members/me",
	status_code=204,
	response_class=Response,
	response_model=None,
)
async def leave_club_endpoint(
	club_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	membership: MembershipLedger = Depends(container.get_membership),
) -> None:
	try:
		await membership.leave_club(club_id, auth_user.id)
		return None
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.delete(
	"/clubs/{club_id}/members/{uid}",
	status_code=204,
	response_class=Response,
	response_model=None,
)
async def remove_member_endpoint(
	club_id: str,
	uid: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	membership: MembershipLedger = Depends(container.get_membership),
) -> None:
	try:
		await membership.remove_member(club_id, auth_user.id, uid)
		return None
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.patch("/clubs/{club_id}/members/{uid}", response_model=models.ClubMember)
async def update_member_role_endpoint(
	club_id: str,
	uid: str,
	payload: dto.MemberRoleUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	membership: MembershipLedger = Depends(container.get_membership),
) -> models.ClubMember:
	try:
		return await membership.update_member_role(club_id, auth_user.id, uid, payload.role)
	except ClubError as exc:
		raise to_http_error(exc) from exc
