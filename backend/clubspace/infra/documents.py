"""Document store contract shared by every storage backend.

A store offers point reads, equality-predicate queries and counts, and one
mutation primitive: ``commit(batch)``. A :class:`WriteBatch` groups
preconditions, writes and recounts that must be applied all-or-nothing.
Backends apply a batch in three phases, holding whatever lock serializes
writers of the touched documents for the whole duration:

1. evaluate every precondition against the current committed state;
2. apply writes in insertion order (creates, sets, updates with atomic
   increments, deletes);
3. evaluate recounts, so a recount observes the batch's own writes.

If any precondition fails the backend raises :class:`PreconditionFailed`
carrying the precondition's ``reason`` and nothing is written.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, Sequence, Union

Document = dict[str, Any]
Filters = Mapping[str, Any]


class DocumentStoreError(Exception):
	"""Base class for storage failures."""


class PreconditionFailed(DocumentStoreError):
	"""A grouped write was refused because a precondition did not hold."""

	def __init__(self, reason: str, *, collection: str, doc_id: str) -> None:
		super().__init__(f"{reason} ({collection}/{doc_id})")
		self.reason = reason
		self.collection = collection
		self.doc_id = doc_id


class DocumentMissing(DocumentStoreError):
	"""An update or delete targeted a document that does not exist."""

	def __init__(self, collection: str, doc_id: str) -> None:
		super().__init__(f"document not found: {collection}/{doc_id}")
		self.collection = collection
		self.doc_id = doc_id


# --- Preconditions -----------------------------------------------------


@dataclass(slots=True, frozen=True)
class RequireExists:
	"""Document must exist and match ``where`` (field equality)."""

	collection: str
	doc_id: str
	reason: str
	where: Filters = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class RequireAbsent:
	"""No document may exist at the key that matches ``where``.

	With an empty ``where`` the document must not exist at all.
	"""

	collection: str
	doc_id: str
	reason: str
	where: Filters = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class RequireBelow:
	"""``field`` must be strictly below the document's ``limit_field``.

	A missing or null limit means unbounded.
	"""

	collection: str
	doc_id: str
	field: str
	limit_field: str
	reason: str


Precondition = Union[RequireExists, RequireAbsent, RequireBelow]


# --- Writes --------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class CreateOp:
	collection: str
	doc_id: str
	data: Document
	reason: str = "already_exists"


@dataclass(slots=True, frozen=True)
class SetOp:
	collection: str
	doc_id: str
	data: Document


@dataclass(slots=True, frozen=True)
class UpdateOp:
	collection: str
	doc_id: str
	fields: Document = field(default_factory=dict)
	increments: Mapping[str, int] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class DeleteOp:
	collection: str
	doc_id: str


@dataclass(slots=True, frozen=True)
class RecountOp:
	"""Overwrite ``field`` with the number of ``source`` documents matching ``where``."""

	collection: str
	doc_id: str
	field: str
	source: str
	where: Filters


WriteOp = Union[CreateOp, SetOp, UpdateOp, DeleteOp]


class WriteBatch:
	"""Accumulates a grouped write; hand it to ``DocumentStore.commit``."""

	def __init__(self) -> None:
		self.preconditions: list[Precondition] = []
		self.writes: list[WriteOp] = []
		self.recounts: list[RecountOp] = []

	def __len__(self) -> int:
		return len(self.preconditions) + len(self.writes) + len(self.recounts)

	def require_exists(self, collection: str, doc_id: str, *, reason: str, where: Filters | None = None) -> "WriteBatch":
		self.preconditions.append(RequireExists(collection, doc_id, reason, dict(where or {})))
		return self

	def require_absent(self, collection: str, doc_id: str, *, reason: str, where: Filters | None = None) -> "WriteBatch":
		self.preconditions.append(RequireAbsent(collection, doc_id, reason, dict(where or {})))
		return self

	def require_below(
		self,
		collection: str,
		doc_id: str,
		*,
		field: str,
		limit_field: str,
		reason: str,
	) -> "WriteBatch":
		self.preconditions.append(RequireBelow(collection, doc_id, field, limit_field, reason))
		return self

	def create(self, collection: str, doc_id: str, data: Document, *, reason: str = "already_exists") -> "WriteBatch":
		self.writes.append(CreateOp(collection, doc_id, dict(data), reason))
		return self

	def set(self, collection: str, doc_id: str, data: Document) -> "WriteBatch":
		self.writes.append(SetOp(collection, doc_id, dict(data)))
		return self

	def update(
		self,
		collection: str,
		doc_id: str,
		fields: Document | None = None,
		*,
		increments: Mapping[str, int] | None = None,
	) -> "WriteBatch":
		self.writes.append(UpdateOp(collection, doc_id, dict(fields or {}), dict(increments or {})))
		return self

	def delete(self, collection: str, doc_id: str) -> "WriteBatch":
		self.writes.append(DeleteOp(collection, doc_id))
		return self

	def recount(self, collection: str, doc_id: str, *, field: str, source: str, where: Filters) -> "WriteBatch":
		self.recounts.append(RecountOp(collection, doc_id, field, source, dict(where)))
		return self

	def keys(self) -> list[tuple[str, str]]:
		"""Every (collection, id) the batch reads or writes, sorted for lock ordering."""
		found: set[tuple[str, str]] = set()
		for item in (*self.preconditions, *self.writes, *self.recounts):
			found.add((item.collection, item.doc_id))
		return sorted(found)


def matches(document: Mapping[str, Any] | None, where: Filters) -> bool:
	if document is None:
		return False
	return all(document.get(key) == value for key, value in where.items())


def check_precondition(precondition: Precondition, document: Mapping[str, Any] | None) -> bool:
	if isinstance(precondition, RequireExists):
		return matches(document, precondition.where)
	if isinstance(precondition, RequireAbsent):
		if document is None:
			return True
		if not precondition.where:
			return False
		return not matches(document, precondition.where)
	if document is None:
		return False
	limit = document.get(precondition.limit_field)
	if limit is None:
		return True
	return int(document.get(precondition.field) or 0) < int(limit)


def apply_update(document: Mapping[str, Any], op: UpdateOp) -> Document:
	updated = dict(document)
	updated.update(op.fields)
	for name, delta in op.increments.items():
		updated[name] = int(updated.get(name) or 0) + int(delta)
	return updated


class DocumentStore(Protocol):
	"""Storage handle injected into the ledgers and the coordinator."""

	async def init(self) -> None: ...

	async def dispose(self) -> None: ...

	async def get(self, collection: str, doc_id: str) -> Optional[Document]: ...

	async def get_many(self, collection: str, doc_ids: Sequence[str]) -> dict[str, Document]: ...

	async def query(
		self,
		collection: str,
		where: Filters,
		*,
		order_by: str | None = None,
		descending: bool = False,
		limit: int | None = None,
	) -> list[Document]: ...

	async def count(self, collection: str, where: Filters) -> int: ...

	async def commit(self, batch: WriteBatch) -> None: ...


__all__ = [
	"CreateOp",
	"DeleteOp",
	"Document",
	"DocumentMissing",
	"DocumentStore",
	"DocumentStoreError",
	"Filters",
	"PreconditionFailed",
	"RecountOp",
	"RequireAbsent",
	"RequireBelow",
	"RequireExists",
	"SetOp",
	"UpdateOp",
	"WriteBatch",
	"apply_update",
	"check_precondition",
	"matches",
]
