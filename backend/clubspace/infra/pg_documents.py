"""PostgreSQL-backed document store.

Documents live in one JSONB table keyed by (collection, id). A grouped write
is one transaction:

- every existing row the batch touches is locked ``FOR UPDATE`` in key order,
  which serializes concurrent batches on the same club or event;
- the touched rows are then re-read (a fresh READ COMMITTED snapshot taken
  after the locks are held) and preconditions are evaluated on that state;
- writes are flushed, then recounts run as SQL counts that see the
  transaction's own writes.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import asyncpg

from clubspace.infra import postgres
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
)
from clubspace.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

_MISSING = object()


class PostgresDocumentStore:
	"""Document store over a single asyncpg pool owned by this instance."""

	def __init__(
		self,
		*,
		config: Settings | None = None,
		pool: asyncpg.pool.Pool | None = None,
	) -> None:
		self._config = config or default_settings
		self._pool = pool
		self._owns_pool = pool is None
		self._table = self._config.postgres_documents_table

	async def init(self) -> None:
		if self._pool is None:
			self._pool = await postgres.create_pool(self._config)
		async with self._pool.acquire() as conn:
			await conn.execute(
				f"""
				CREATE TABLE IF NOT EXISTS {self._table} (
					collection TEXT NOT NULL,
					id TEXT NOT NULL,
					body JSONB NOT NULL,
					updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
					PRIMARY KEY (collection, id)
				)
				"""
			)
			await conn.execute(
				f"CREATE INDEX IF NOT EXISTS {self._table}_body_idx ON {self._table} USING GIN (body jsonb_path_ops)"
			)
		logger.info("document store ready", extra={"table": self._table})

	async def dispose(self) -> None:
		if self._pool is not None and self._owns_pool:
			await self._pool.close()
		self._pool = None

	def _require_pool(self) -> asyncpg.pool.Pool:
		if self._pool is None:
			raise RuntimeError("document store is not initialised")
		return self._pool

	async def get(self, collection: str, doc_id: str) -> Optional[Document]:
		async with self._require_pool().acquire() as conn:
			return await conn.fetchval(
				f"SELECT body FROM {self._table} WHERE collection=$1 AND id=$2",
				collection,
				doc_id,
			)

	async def get_many(self, collection: str, doc_ids: Sequence[str]) -> dict[str, Document]:
		ids = list(dict.fromkeys(doc_ids))
		if not ids:
			return {}
		async with self._require_pool().acquire() as conn:
			rows = await conn.fetch(
				f"SELECT id, body FROM {self._table} WHERE collection=$1 AND id = ANY($2::text[])",
				collection,
				ids,
			)
		return {row["id"]: row["body"] for row in rows}

	async def query(
		self,
		collection: str,
		where: Filters,
		*,
		order_by: str | None = None,
		descending: bool = False,
		limit: int | None = None,
	) -> list[Document]:
		params: list[Any] = [collection, dict(where)]
		sql = f"SELECT body FROM {self._table} WHERE collection=$1 AND body @> $2::jsonb"
		if order_by:
			params.append(order_by)
			sql += f" ORDER BY body -> ${len(params)} {'DESC' if descending else 'ASC'} NULLS LAST"
		if limit is not None:
			params.append(limit)
			sql += f" LIMIT ${len(params)}"
		async with self._require_pool().acquire() as conn:
			rows = await conn.fetch(sql, *params)
		return [row["body"] for row in rows]

	async def count(self, collection: str, where: Filters) -> int:
		async with self._require_pool().acquire() as conn:
			return await conn.fetchval(
				f"SELECT COUNT(*) FROM {self._table} WHERE collection=$1 AND body @> $2::jsonb",
				collection,
				dict(where),
			)

	async def commit(self, batch: WriteBatch) -> None:
		keys = batch.keys()
		if not keys:
			return
		collections = [collection for collection, _ in keys]
		ids = [doc_id for _, doc_id in keys]
		async with self._require_pool().acquire() as conn:
			async with conn.transaction():
				await conn.execute(
					f"""
					SELECT 1 FROM {self._table}
					WHERE (collection, id) IN (SELECT * FROM unnest($1::text[], $2::text[]))
					ORDER BY collection, id
					FOR UPDATE
					""",
					collections,
					ids,
				)
				rows = await conn.fetch(
					f"""
					SELECT collection, id, body FROM {self._table}
					WHERE (collection, id) IN (SELECT * FROM unnest($1::text[], $2::text[]))
					""",
					collections,
					ids,
				)
				existing: dict[tuple[str, str], Document] = {
					(row["collection"], row["id"]): row["body"] for row in rows
				}
				staged = self._stage(batch, existing)
				await self._flush(conn, staged, existing, batch)
				for recount in batch.recounts:
					total = await conn.fetchval(
						f"SELECT COUNT(*) FROM {self._table} WHERE collection=$1 AND body @> $2::jsonb",
						recount.source,
						dict(recount.where),
					)
					status = await conn.execute(
						f"""
						UPDATE {self._table}
						SET body = jsonb_set(body, ARRAY[$3::text], to_jsonb($4::bigint)), updated_at = NOW()
						WHERE collection=$1 AND id=$2
						""",
						recount.collection,
						recount.doc_id,
						recount.field,
						total,
					)
					if status.endswith(" 0"):
						raise DocumentMissing(recount.collection, recount.doc_id)

	@staticmethod
	def _stage(batch: WriteBatch, existing: dict[tuple[str, str], Document]) -> dict[tuple[str, str], object]:
		staged: dict[tuple[str, str], object] = {}

		def _current(key: tuple[str, str]) -> Optional[Document]:
			if key in staged:
				value = staged[key]
				return None if value is _MISSING else value  # type: ignore[return-value]
			return existing.get(key)

		for precondition in batch.preconditions:
			if not check_precondition(precondition, _current((precondition.collection, precondition.doc_id))):
				raise PreconditionFailed(
					precondition.reason,
					collection=precondition.collection,
					doc_id=precondition.doc_id,
				)
		for op in batch.writes:
			key = (op.collection, op.doc_id)
			current = _current(key)
			if isinstance(op, CreateOp):
				if current is not None:
					raise PreconditionFailed(op.reason, collection=op.collection, doc_id=op.doc_id)
				staged[key] = dict(op.data)
			elif isinstance(op, SetOp):
				staged[key] = dict(op.data)
			elif isinstance(op, UpdateOp):
				if current is None:
					raise DocumentMissing(op.collection, op.doc_id)
				staged[key] = apply_update(current, op)
			elif isinstance(op, DeleteOp):
				if current is None:
					raise DocumentMissing(op.collection, op.doc_id)
				staged[key] = _MISSING
		return staged

	async def _flush(
		self,
		conn: asyncpg.Connection,
		staged: dict[tuple[str, str], object],
		existing: dict[tuple[str, str], Document],
		batch: WriteBatch,
	) -> None:
		create_reasons = {(op.collection, op.doc_id): op.reason for op in batch.writes if isinstance(op, CreateOp)}
		for (collection, doc_id), value in staged.items():
			if value is _MISSING:
				if (collection, doc_id) in existing:
					await conn.execute(
						f"DELETE FROM {self._table} WHERE collection=$1 AND id=$2",
						collection,
						doc_id,
					)
				continue
			if (collection, doc_id) in existing:
				await conn.execute(
					f"UPDATE {self._table} SET body=$3::jsonb, updated_at=NOW() WHERE collection=$1 AND id=$2",
					collection,
					doc_id,
					value,
				)
				continue
			try:
				# A concurrent creator of the same key blocks here until it commits.
				await conn.execute(
					f"INSERT INTO {self._table} (collection, id, body) VALUES ($1, $2, $3::jsonb)",
					collection,
					doc_id,
					value,
				)
			except asyncpg.UniqueViolationError as exc:
				reason = create_reasons.get((collection, doc_id), "already_exists")
				raise PreconditionFailed(reason, collection=collection, doc_id=doc_id) from exc


__all__ = ["PostgresDocumentStore"]
