import asyncio
import os
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

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-heartline-suite-0123456789")
os.environ.setdefault("RELATIONSHIP_STORE", "memory")

from app.domain.chat import service as chat_service
from app.domain.chat.redis_transport import RedisChatTransport
from app.domain.matching import store
from app.domain.matching.memory import InMemoryRelationshipRepository
from app.infra import postgres
from app.main import app
from app.settings import settings


if hasattr(asyncio, "WindowsSelectorEventLoopPolicy"):
	try:
		asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
	except RuntimeError:
		pass


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from app.infra.redis import redis_client, set_redis_client

	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Ensure a consistent test environment.

	API tests authenticate via the X-User-Id header, which is only accepted in
	dev mode.
	"""
	original_env = settings.environment
	original_store = settings.relationship_store
	settings.environment = "dev"
	settings.relationship_store = "memory"
	try:
		yield
	finally:
		settings.environment = original_env
		settings.relationship_store = original_store


@pytest.fixture
def memory_repo():
	repository = InMemoryRelationshipRepository()
	store.set_repository(repository)
	try:
		yield repository
	finally:
		store.set_repository(None)


@pytest_asyncio.fixture
async def transport(fake_redis):
	redis_transport = RedisChatTransport(fake_redis, poll_block_ms=10)
	chat_service.set_transport(redis_transport)
	try:
		yield redis_transport
	finally:
		chat_service.set_transport(None)


@pytest.fixture
def add_user(memory_repo):
	"""Insert a user row with sensible defaults and return its profile."""

	def _add(user_id, *, gender="female", accepts=(), name=None, **extra):
		record = {
			"id": user_id,
			"full_name": name or user_id.title(),
			"email": f"{user_id}@example.com",
			"gender": gender,
			"preferences": {
				"age_range": {"min": 18, "max": 50},
				"distance_miles": 25,
				"gender_preferences": list(accepts),
				"relationship_goal": "not_sure",
			},
		}
		record.update(extra)
		return memory_repo.add_user(record)

	return _add


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
