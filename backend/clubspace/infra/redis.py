"""Redis connection management.

``redis_client`` is a stable proxy: modules import it once and tests swap the
underlying client (fakeredis) without touching those references.
"""

from __future__ import annotations

import redis.asyncio as redis

from clubspace.settings import settings


class RedisProxy:
	"""Forwards attribute access to the current Redis client."""

	def __init__(self, client: redis.Redis):
		self._client: redis.Redis = client

	def set_client(self, client: redis.Redis) -> None:
		self._client = client

	@property
	def client(self) -> redis.Redis:
		return self._client

	def __getattr__(self, item):
		return getattr(self._client, item)


redis_client: RedisProxy = RedisProxy(redis.from_url(settings.redis_url, decode_responses=True))


def set_redis_client(client: redis.Redis) -> None:
	redis_client.set_client(client)
