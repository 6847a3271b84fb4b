import sys
from pathlib import Path

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from postrank.posts.keys import KeySpace


T0 = 1_700_000_000.0


class FrozenClock:
	"""Callable clock the engine reads instead of time.time()."""

	def __init__(self, now: float = T0) -> None:
		self.now = now

	def __call__(self) -> float:
		return self.now

	def advance(self, seconds: float) -> float:
		self.now += seconds
		return self.now


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from postrank.infra.redis import redis_client, set_redis_client
	original = redis_client.__dict__.get("_client")
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		await client.flushall()
		set_redis_client(original)


@pytest.fixture
def clock() -> FrozenClock:
	return FrozenClock()


@pytest.fixture
def keys() -> KeySpace:
	return KeySpace(prefix="bbs:")
