from __future__ import annotations

import pytest

from clubspace.infra.documents import DocumentMissing, PreconditionFailed, WriteBatch
from clubspace.infra.memory_documents import MemoryDocumentStore


async def _seed(store: MemoryDocumentStore) -> None:
	batch = WriteBatch()
	batch.create("clubs", "c1", {"clubId": "c1", "memberCount": 1, "maxMembers": 2})
	batch.create("clubMembers", "c1_owner", {"clubId": "c1", "uid": "owner", "status": "active"})
	await store.commit(batch)


@pytest.mark.asyncio
async def test_failed_precondition_writes_nothing():
	store = MemoryDocumentStore()
	await _seed(store)
	batch = WriteBatch()
	batch.update("clubs", "c1", increments={"memberCount": 1})
	batch.create("clubMembers", "c1_a", {"clubId": "c1", "uid": "a", "status": "active"})
	batch.require_exists("clubs", "c1", reason="club_inactive", where={"status": "active"})

	with pytest.raises(PreconditionFailed) as excinfo:
		await store.commit(batch)

	assert excinfo.value.reason == "club_inactive"
	assert (await store.get("clubs", "c1"))["memberCount"] == 1
	assert await store.get("clubMembers", "c1_a") is None
	assert store.commits == 1


@pytest.mark.asyncio
async def test_missing_update_target_aborts_whole_batch():
	store = MemoryDocumentStore()
	await _seed(store)
	batch = WriteBatch()
	batch.create("clubMembers", "c1_a", {"clubId": "c1", "uid": "a", "status": "active"})
	batch.update("clubStats", "c1", increments={"totalMembers": 1})

	with pytest.raises(DocumentMissing):
		await store.commit(batch)

	assert await store.get("clubMembers", "c1_a") is None


@pytest.mark.asyncio
async def test_require_below_uses_limit_field():
	store = MemoryDocumentStore()
	await _seed(store)
	batch = WriteBatch()
	batch.require_below("clubs", "c1", field="memberCount", limit_field="maxMembers", reason="club_full")
	batch.update("clubs", "c1", increments={"memberCount": 1})
	await store.commit(batch)
	assert (await store.get("clubs", "c1"))["memberCount"] == 2

	again = WriteBatch()
	again.require_below("clubs", "c1", field="memberCount", limit_field="maxMembers", reason="club_full")
	again.update("clubs", "c1", increments={"memberCount": 1})
	with pytest.raises(PreconditionFailed) as excinfo:
		await store.commit(again)
	assert excinfo.value.reason == "club_full"
	assert (await store.get("clubs", "c1"))["memberCount"] == 2


@pytest.mark.asyncio
async def test_require_below_without_limit_is_unbounded():
	store = MemoryDocumentStore()
	await store.commit(WriteBatch().create("clubs", "c2", {"clubId": "c2", "memberCount": 500}))
	batch = WriteBatch()
	batch.require_below("clubs", "c2", field="memberCount", limit_field="maxMembers", reason="club_full")
	batch.update("clubs", "c2", increments={"memberCount": 1})
	await store.commit(batch)
	assert (await store.get("clubs", "c2"))["memberCount"] == 501


@pytest.mark.asyncio
async def test_create_on_existing_key_reports_its_reason():
	store = MemoryDocumentStore()
	await _seed(store)
	batch = WriteBatch().create("clubMembers", "c1_owner", {"uid": "owner"}, reason="already_member")
	with pytest.raises(PreconditionFailed) as excinfo:
		await store.commit(batch)
	assert excinfo.value.reason == "already_member"


@pytest.mark.asyncio
async def test_recount_observes_writes_in_same_batch():
	store = MemoryDocumentStore()
	await store.commit(WriteBatch().create("events", "e1", {"eventId": "e1", "currentAttendees": 7}))
	batch = WriteBatch()
	batch.set("rsvps", "e1_a", {"eventId": "e1", "uid": "a", "status": "going"})
	batch.set("rsvps", "e1_b", {"eventId": "e1", "uid": "b", "status": "not_going"})
	batch.recount("events", "e1", field="currentAttendees", source="rsvps", where={"eventId": "e1", "status": "going"})
	await store.commit(batch)
	assert (await store.get("events", "e1"))["currentAttendees"] == 1

	flip = WriteBatch()
	flip.set("rsvps", "e1_a", {"eventId": "e1", "uid": "a", "status": "not_going"})
	flip.recount("events", "e1", field="currentAttendees", source="rsvps", where={"eventId": "e1", "status": "going"})
	await store.commit(flip)
	assert (await store.get("events", "e1"))["currentAttendees"] == 0


@pytest.mark.asyncio
async def test_require_absent_with_filter_only_matches_that_state():
	store = MemoryDocumentStore()
	await _seed(store)
	ok = WriteBatch().require_absent("clubMembers", "c1_owner", reason="banned", where={"status": "banned"})
	await store.commit(ok)
	refused = WriteBatch().require_absent("clubMembers", "c1_owner", reason="exists")
	with pytest.raises(PreconditionFailed):
		await store.commit(refused)


@pytest.mark.asyncio
async def test_query_filters_orders_and_limits():
	store = MemoryDocumentStore()
	batch = WriteBatch()
	for idx, status in enumerate(["active", "active", "inactive", "active"]):
		batch.create("clubMembers", f"c1_{idx}", {"clubId": "c1", "status": status, "joinedAt": f"2026-01-0{idx + 1}"})
	await store.commit(batch)

	rows = await store.query("clubMembers", {"clubId": "c1", "status": "active"}, order_by="joinedAt", descending=True)
	assert [row["joinedAt"] for row in rows] == ["2026-01-04", "2026-01-02", "2026-01-01"]
	limited = await store.query("clubMembers", {"clubId": "c1"}, order_by="joinedAt", limit=2)
	assert len(limited) == 2
	assert await store.count("clubMembers", {"status": "inactive"}) == 1
	found = await store.get_many("clubMembers", ["c1_0", "missing", "c1_0"])
	assert list(found) == ["c1_0"]


@pytest.mark.asyncio
async def test_reads_return_copies():
	store = MemoryDocumentStore()
	await _seed(store)
	club = await store.get("clubs", "c1")
	club["memberCount"] = 99
	assert (await store.get("clubs", "c1"))["memberCount"] == 1


def test_batch_keys_are_sorted_and_unique():
	batch = WriteBatch()
	batch.update("clubs", "b", increments={"memberCount": 1})
	batch.require_exists("clubs", "b", reason="club_not_found")
	batch.delete("clubMembers", "b_x")
	assert batch.keys() == [("clubMembers", "b_x"), ("clubs", "b")]
	assert len(batch) == 3
