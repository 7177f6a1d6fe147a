"""Health check helpers for liveness and readiness probes."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Dict, Tuple

from redis.exceptions import RedisError

from clubspace.clubs import container
from clubspace.infra.redis import redis_client
from clubspace.obs import metrics
from clubspace.settings import settings

LOGGER = logging.getLogger(__name__)


async def _redis_status(timeout: float = 0.2) -> Dict[str, Any]:
	if not settings.change_stream_enabled:
		return {"ok": True, "skipped": True}
	start = perf_counter()
	try:
		await asyncio.wait_for(redis_client.ping(), timeout=timeout)
	except (RedisError, OSError, asyncio.TimeoutError) as exc:
		LOGGER.warning("Redis readiness check failed", exc_info=True)
		return {"ok": False, "error": str(exc) or exc.__class__.__name__}
	return {"ok": True, "latency_ms": round((perf_counter() - start) * 1000, 2)}


async def _store_status(timeout: float = 0.5) -> Dict[str, Any]:
	try:
		store = container.get_services().store
	except RuntimeError as exc:
		metrics.set_document_store_up(False)
		return {"ok": False, "error": str(exc)}
	start = perf_counter()
	try:
		await asyncio.wait_for(store.count("clubs", {"status": "active"}), timeout=timeout)
	except Exception as exc:  # pragma: no cover - depends on runtime
		metrics.set_document_store_up(False)
		LOGGER.warning("Document store readiness check failed", exc_info=True)
		return {"ok": False, "error": str(exc) or exc.__class__.__name__}
	metrics.set_document_store_up(True)
	return {
		"ok": True,
		"backend": settings.document_store_backend,
		"latency_ms": round((perf_counter() - start) * 1000, 2),
	}


async def liveness() -> Dict[str, Any]:
	return {"status": "ok"}


async def readiness() -> Tuple[int, Dict[str, Any]]:
	redis_state = await _redis_status()
	store_state = await _store_status()
	ok = bool(redis_state.get("ok") and store_state.get("ok"))
	return (
		200 if ok else 503,
		{
			"status": "ok" if ok else "degraded",
			"redis": redis_state,
			"document_store": store_state,
		},
	)
