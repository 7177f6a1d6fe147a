import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from clubspace.clubs import container
from clubspace.infra.memory_documents import MemoryDocumentStore
from clubspace.main import app
from clubspace.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from clubspace.infra.redis import redis_client, set_redis_client
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Keep every test on the in-process store with the change stream on."""
	original_backend = settings.document_store_backend
	original_stream = settings.change_stream_enabled
	original_token = settings.obs_admin_token
	settings.document_store_backend = "memory"
	settings.change_stream_enabled = True
	settings.obs_admin_token = "test-admin-token"
	try:
		yield
	finally:
		settings.document_store_backend = original_backend
		settings.change_stream_enabled = original_stream
		settings.obs_admin_token = original_token


@pytest.fixture()
def store() -> MemoryDocumentStore:
	return MemoryDocumentStore()


@pytest.fixture()
def services(store):
	configured = container.configure(store)
	try:
		yield configured
	finally:
		container.reset()


@pytest_asyncio.fixture
async def api_client(services):
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
