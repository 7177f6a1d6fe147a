"""AsyncPG pool construction for the document store."""

from __future__ import annotations

import json

import asyncpg

from clubspace.settings import Settings, settings as default_settings


async def _init_connection(conn: asyncpg.Connection) -> None:
	await conn.set_type_codec(
		"jsonb",
		encoder=json.dumps,
		decoder=json.loads,
		schema="pg_catalog",
	)


async def create_pool(config: Settings | None = None) -> asyncpg.pool.Pool:
	config = config or default_settings
	# Force 127.0.0.1 instead of localhost to avoid IPv6 issues on Windows
	dsn = config.postgres_url.replace("localhost", "127.0.0.1")
	return await asyncpg.create_pool(
		dsn=dsn,
		min_size=config.postgres_min_pool_size,
		max_size=config.postgres_max_pool_size,
		ssl="require" if config.postgres_ssl else "disable",
		init=_init_connection,
	)
