"""In-process document store.

All grouped writes are serialized by one ``asyncio.Lock``; a batch is staged
on copies of the touched documents and swapped in only after every phase
succeeded, so a failing batch leaves nothing behind.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Optional, Sequence

from clubspace.infra.documents import (
	CreateOp,
	DeleteOp,
	Document,
	DocumentMissing,
	Filters,
	PreconditionFailed,
	SetOp,
	UpdateOp,
	WriteBatch,
	apply_update,
	check_precondition,
	matches,
)

_MISSING = object()


class MemoryDocumentStore:
	"""Dictionary-backed store honouring the grouped-write contract."""

	def __init__(self) -> None:
		self._collections: dict[str, dict[str, Document]] = {}
		self._lock = asyncio.Lock()
		self.commits = 0

	async def init(self) -> None:
		return None

	async def dispose(self) -> None:
		self._collections.clear()

	def _bucket(self, collection: str) -> dict[str, Document]:
		return self._collections.setdefault(collection, {})

	async def get(self, collection: str, doc_id: str) -> Optional[Document]:
		document = self._bucket(collection).get(doc_id)
		return copy.deepcopy(document) if document is not None else None

	async def get_many(self, collection: str, doc_ids: Sequence[str]) -> dict[str, Document]:
		bucket = self._bucket(collection)
		return {doc_id: copy.deepcopy(bucket[doc_id]) for doc_id in dict.fromkeys(doc_ids) if doc_id in bucket}

	async def query(
		self,
		collection: str,
		where: Filters,
		*,
		order_by: str | None = None,
		descending: bool = False,
		limit: int | None = None,
	) -> list[Document]:
		rows = [copy.deepcopy(doc) for doc in self._bucket(collection).values() if matches(doc, where)]
		if order_by:
			rows.sort(key=lambda doc: (doc.get(order_by) is None, doc.get(order_by)), reverse=descending)
		if limit is not None:
			rows = rows[:limit]
		return rows

	async def count(self, collection: str, where: Filters) -> int:
		return sum(1 for doc in self._bucket(collection).values() if matches(doc, where))

	async def commit(self, batch: WriteBatch) -> None:
		async with self._lock:
			staged: dict[tuple[str, str], object] = {}

			def _current(collection: str, doc_id: str) -> Optional[Document]:
				key = (collection, doc_id)
				if key in staged:
					value = staged[key]
					return None if value is _MISSING else value  # type: ignore[return-value]
				return self._bucket(collection).get(doc_id)

			for precondition in batch.preconditions:
				document = _current(precondition.collection, precondition.doc_id)
				if not check_precondition(precondition, document):
					raise PreconditionFailed(
						precondition.reason,
						collection=precondition.collection,
						doc_id=precondition.doc_id,
					)

			for op in batch.writes:
				key = (op.collection, op.doc_id)
				existing = _current(op.collection, op.doc_id)
				if isinstance(op, CreateOp):
					if existing is not None:
						raise PreconditionFailed(op.reason, collection=op.collection, doc_id=op.doc_id)
					staged[key] = copy.deepcopy(op.data)
				elif isinstance(op, SetOp):
					staged[key] = copy.deepcopy(op.data)
				elif isinstance(op, UpdateOp):
					if existing is None:
						raise DocumentMissing(op.collection, op.doc_id)
					staged[key] = apply_update(existing, op)
				elif isinstance(op, DeleteOp):
					if existing is None:
						raise DocumentMissing(op.collection, op.doc_id)
					staged[key] = _MISSING

			for recount in batch.recounts:
				target = _current(recount.collection, recount.doc_id)
				if target is None:
					raise DocumentMissing(recount.collection, recount.doc_id)
				total = 0
				source_ids = set(self._bucket(recount.source)) | {
					doc_id for (collection, doc_id) in staged if collection == recount.source
				}
				for doc_id in source_ids:
					if matches(_current(recount.source, doc_id), recount.where):
						total += 1
				updated = dict(target)
				updated[recount.field] = total
				staged[(recount.collection, recount.doc_id)] = updated

			for (collection, doc_id), value in staged.items():
				bucket = self._bucket(collection)
				if value is _MISSING:
					bucket.pop(doc_id, None)
				else:
					bucket[doc_id] = value  # type: ignore[assignment]
			self.commits += 1


__all__ = ["MemoryDocumentStore"]
