"""API surface tests for club and membership routes."""

from __future__ import annotations

import pytest

BASE = "/api/clubs/v1"


def _headers(uid: str) -> dict[str, str]:
	return {"X-User-Id": uid}


async def _create_club(api_client, owner: str = "owner-1", **overrides) -> dict:
	body = {"clubName": "Astronomy", "description": "Stargazing nights", "tags": ["Space", "night"]}
	body.update(overrides)
	response = await api_client.post(f"{BASE}/clubs", json=body, headers=_headers(owner))
	assert response.status_code == 201, response.text
	return response.json()


@pytest.mark.asyncio
async def test_create_club_returns_club_owner_and_stats(api_client):
	payload = await _create_club(api_client)

	club = payload["club"]
	assert club["clubName"] == "Astronomy"
	assert club["ownerUid"] == "owner-1"
	assert club["memberCount"] == 1
	assert club["tags"] == ["space", "night"]
	assert club["createdAt"] == club["updatedAt"]
	assert payload["owner"]["role"] == "owner"
	assert payload["owner"]["permissions"]["canEditClub"] is True
	assert payload["stats"]["totalMembers"] == 1

	fetched = await api_client.get(f"{BASE}/clubs/{club['clubId']}")
	assert fetched.status_code == 200
	assert fetched.json()["clubId"] == club["clubId"]


@pytest.mark.asyncio
async def test_requests_without_identity_are_rejected(api_client):
	response = await api_client.post(f"{BASE}/clubs", json={"clubName": "Astronomy", "description": "Stars"})
	assert response.status_code == 401


@pytest.mark.asyncio
async def test_payload_limits_are_enforced(api_client):
	response = await api_client.post(
		f"{BASE}/clubs",
		json={"clubName": "A", "description": "Too short a name"},
		headers=_headers("owner-1"),
	)
	assert response.status_code == 422


@pytest.mark.asyncio
async def test_join_leave_and_counters(api_client):
	club_id = (await _create_club(api_client))["club"]["clubId"]

	joined = await api_client.post(f"{BASE}/clubs/{club_id}/members", headers=_headers("alice"))
	assert joined.status_code == 201
	assert joined.json()["role"] == "member"
	guest = await api_client.post(f"{BASE}/clubs/{club_id}/members", json={"role": "guest"}, headers=_headers("bob"))
	assert guest.json()["role"] == "guest"

	stats = (await api_client.get(f"{BASE}/clubs/{club_id}/stats")).json()
	assert stats["totalMembers"] == 3
	assert stats["activeMembers"] == 3

	left = await api_client.delete(f"{BASE}/clubs/{club_id}/members/me", headers=_headers("alice"))
	assert left.status_code == 204
	club = (await api_client.get(f"{BASE}/clubs/{club_id}")).json()
	assert club["memberCount"] == 2

	members = (await api_client.get(f"{BASE}/clubs/{club_id}/members")).json()["items"]
	assert {member["uid"] for member in members} == {"owner-1", "bob"}


@pytest.mark.asyncio
async def test_domain_errors_carry_code_kind_and_identifiers(api_client):
	club_id = (await _create_club(api_client, maxMembers=1))["club"]["clubId"]

	full = await api_client.post(f"{BASE}/clubs/{club_id}/members", headers=_headers("alice"))
	assert full.status_code == 409
	assert full.json()["detail"] == {"code": "club_full", "kind": "conflict", "identifiers": {"club_id": club_id}}

	again = await api_client.post(f"{BASE}/clubs/{club_id}/members", headers=_headers("owner-1"))
	assert again.status_code == 409
	assert again.json()["detail"]["code"] == "already_member"

	owner_leave = await api_client.delete(f"{BASE}/clubs/{club_id}/members/me", headers=_headers("owner-1"))
	assert owner_leave.status_code == 409
	assert owner_leave.json()["detail"]["code"] == "owner_cannot_leave"

	missing = await api_client.get(f"{BASE}/clubs/club_missing")
	assert missing.status_code == 404
	assert missing.json()["detail"]["kind"] == "not_found"


@pytest.mark.asyncio
async def test_remove_member_and_role_changes(api_client):
	club_id = (await _create_club(api_client))["club"]["clubId"]
	for uid in ("alice", "bob", "carol"):
		await api_client.post(f"{BASE}/clubs/{club_id}/members", headers=_headers(uid))

	promoted = await api_client.patch(
		f"{BASE}/clubs/{club_id}/members/alice",
		json={"role": "organizer"},
		headers=_headers("owner-1"),
	)
	assert promoted.status_code == 200
	assert promoted.json()["permissions"]["canManageMembers"] is True

	removed = await api_client.delete(f"{BASE}/clubs/{club_id}/members/bob", headers=_headers("alice"))
	assert removed.status_code == 204

	denied = await api_client.delete(f"{BASE}/clubs/{club_id}/members/alice", headers=_headers("carol"))
	assert denied.status_code == 403
	assert denied.json()["detail"]["kind"] == "permission_denied"

	remove_owner = await api_client.delete(f"{BASE}/clubs/{club_id}/members/owner-1", headers=_headers("alice"))
	assert remove_owner.status_code == 403

	self_remove = await api_client.delete(f"{BASE}/clubs/{club_id}/members/owner-1", headers=_headers("owner-1"))
	assert self_remove.status_code == 409
	assert self_remove.json()["detail"]["code"] == "cannot_remove_self"

	make_owner = await api_client.patch(
		f"{BASE}/clubs/{club_id}/members/carol",
		json={"role": "owner"},
		headers=_headers("owner-1"),
	)
	assert make_owner.status_code == 403

	club = (await api_client.get(f"{BASE}/clubs/{club_id}")).json()
	assert club["memberCount"] == 3


@pytest.mark.asyncio
async def test_owner_edit_archive_and_search(api_client):
	club_id = (await _create_club(api_client))["club"]["clubId"]
	await _create_club(api_client, owner="owner-2", clubName="Knitting", description="Yarn", tags=["crafts"])

	edited = await api_client.patch(
		f"{BASE}/clubs/{club_id}",
		json={"description": "Telescopes and stargazing"},
		headers=_headers("owner-1"),
	)
	assert edited.status_code == 200
	assert edited.json()["description"] == "Telescopes and stargazing"

	found = (await api_client.get(f"{BASE}/clubs", params={"q": "telescope"})).json()["items"]
	assert [club["clubId"] for club in found] == [club_id]
	tagged = (await api_client.get(f"{BASE}/clubs", params={"tags": "crafts"})).json()["items"]
	assert [club["clubName"] for club in tagged] == ["Knitting"]

	forbidden = await api_client.delete(f"{BASE}/clubs/{club_id}", headers=_headers("owner-2"))
	assert forbidden.status_code == 403
	archived = await api_client.delete(f"{BASE}/clubs/{club_id}", headers=_headers("owner-1"))
	assert archived.status_code == 200
	assert archived.json()["status"] == "archived"

	join = await api_client.post(f"{BASE}/clubs/{club_id}/members", headers=_headers("alice"))
	assert join.status_code == 409
	assert join.json()["detail"]["code"] == "club_inactive"
	remaining = (await api_client.get(f"{BASE}/clubs")).json()["items"]
	assert [club["clubName"] for club in remaining] == ["Knitting"]


@pytest.mark.asyncio
async def test_my_clubs_and_permission_check(api_client):
	club_id = (await _create_club(api_client))["club"]["clubId"]
	await api_client.post(f"{BASE}/clubs/{club_id}/members", headers=_headers("alice"))

	mine = (await api_client.get(f"{BASE}/clubs/mine", headers=_headers("alice"))).json()["items"]
	assert [(entry["club"]["clubId"], entry["role"]) for entry in mine] == [(club_id, "member")]

	owner_check = await api_client.get(f"{BASE}/clubs/{club_id}/permissions/edit_club", headers=_headers("owner-1"))
	assert owner_check.json() == {"action": "edit_club", "allowed": True, "role": "owner"}
	member_check = await api_client.get(f"{BASE}/clubs/{club_id}/permissions/edit_club", headers=_headers("alice"))
	assert member_check.json()["allowed"] is False
	stranger = await api_client.get(f"{BASE}/clubs/{club_id}/permissions/create_events", headers=_headers("zed"))
	assert stranger.json() == {"action": "create_events", "allowed": False, "role": None}


@pytest.mark.asyncio
@pytest.mark.parametrize(
	"settings",
	[{"defaultEventVisibility": "everyone"}, {"inactivityThresholdDays": "abc"}],
)
async def test_malformed_settings_return_422(api_client, settings):
	created = await api_client.post(
		f"{BASE}/clubs",
		json={"clubName": "Astronomy", "description": "Stars", "settings": settings},
		headers=_headers("owner-1"),
	)
	assert created.status_code == 422
	assert created.json()["detail"]["code"] == "invalid_settings"

	club_id = (await _create_club(api_client))["club"]["clubId"]
	edited = await api_client.patch(
		f"{BASE}/clubs/{club_id}",
		json={"settings": settings},
		headers=_headers("owner-1"),
	)
	assert edited.status_code == 422
	assert edited.json()["detail"]["kind"] == "validation_failed"


@pytest.mark.asyncio
async def test_settings_edit_with_snake_case_keys(api_client):
	club_id = (await _create_club(api_client))["club"]["clubId"]
	edited = await api_client.patch(
		f"{BASE}/clubs/{club_id}",
		json={"settings": {"allow_member_invites": False}},
		headers=_headers("owner-1"),
	)
	assert edited.status_code == 200
	assert edited.json()["settings"]["allowMemberInvites"] is False
