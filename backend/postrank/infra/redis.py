"""Redis connection management.

Provides a stable proxy object so imports like `from postrank.infra.redis import redis_client`
always reference the same proxy instance. The underlying client can be swapped at
runtime (e.g., to fakeredis in tests) without breaking previously imported references.

Engine classes take the client explicitly; the proxy is only the default the
process hands them, and its lifecycle is owned by startup/shutdown.
"""

from __future__ import annotations

from typing import Optional

import redis.asyncio as redis

from postrank.settings import settings


class RedisProxy:
	"""Lightweight proxy that forwards attribute access to an underlying Redis client."""

	def __init__(self, client: Optional[redis.Redis] = None):
		self._client: Optional[redis.Redis] = client

	def set_client(self, client: Optional[redis.Redis]) -> None:
		self._client = client

	@property
	def connected(self) -> bool:
		return self._client is not None

	def __getattr__(self, item):
		client = self.__dict__.get("_client")
		if client is None:
			raise RuntimeError("redis client not initialised; call init_client() at startup")
		return getattr(client, item)


redis_client: RedisProxy = RedisProxy()


def set_redis_client(client: Optional[redis.Redis]) -> None:
	redis_client.set_client(client)


def init_client(url: Optional[str] = None) -> RedisProxy:
	"""Create the process-wide client if it is not set yet."""
	if not redis_client.connected:
		redis_client.set_client(redis.from_url(url or settings.redis_url, decode_responses=True))
	return redis_client


async def close_client() -> None:
	if redis_client.connected:
		await redis_client.aclose()
		redis_client.set_client(None)
