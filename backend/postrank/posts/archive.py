"""Durable storage for vote totals of posts whose voting window closed."""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol

import asyncpg

from postrank.posts.models import ArchivedTally
from postrank.settings import settings

_SCHEMA = """
CREATE TABLE IF NOT EXISTS post_vote_archive (
	post_id NUMERIC(20, 0) PRIMARY KEY,
	community_id NUMERIC(20, 0),
	upvotes INTEGER NOT NULL,
	downvotes INTEGER NOT NULL,
	votes INTEGER NOT NULL,
	score DOUBLE PRECISION NOT NULL,
	archived_at TIMESTAMPTZ NOT NULL
)
"""


class VoteArchiveSink(Protocol):
	async def save(self, tally: ArchivedTally) -> None: ...


class PostgresVoteArchive:
	"""Upserts archived tallies into Postgres via asyncpg.

	The pool is created lazily on first use unless one is injected; the owner
	calls close() at shutdown.
	"""

	def __init__(self, pool: asyncpg.pool.Pool | None = None, *, dsn: str | None = None) -> None:
		self._pool = pool
		self._dsn = dsn or settings.postgres_url

	async def _get_pool(self) -> asyncpg.pool.Pool:
		if self._pool is None:
			self._pool = await asyncpg.create_pool(
				dsn=self._dsn,
				min_size=0,
				max_size=settings.postgres_max_pool_size,
			)
		return self._pool

	async def close(self) -> None:
		if self._pool is not None:
			await self._pool.close()
			self._pool = None

	async def ensure_schema(self) -> None:
		pool = await self._get_pool()
		async with pool.acquire() as conn:
			await conn.execute(_SCHEMA)

	async def save(self, tally: ArchivedTally) -> None:
		pool = await self._get_pool()
		async with pool.acquire() as conn:
			await conn.execute(
				"""
				INSERT INTO post_vote_archive (post_id, community_id, upvotes, downvotes, votes, score, archived_at)
				VALUES ($1,$2,$3,$4,$5,$6,$7)
				ON CONFLICT (post_id)
				DO UPDATE
				SET upvotes = EXCLUDED.upvotes,
					downvotes = EXCLUDED.downvotes,
					votes = EXCLUDED.votes,
					score = EXCLUDED.score,
					archived_at = EXCLUDED.archived_at
				""",
				Decimal(tally.post_id),
				Decimal(tally.community_id) if tally.community_id is not None else None,
				tally.upvotes,
				tally.downvotes,
				tally.votes,
				tally.score,
				tally.archived_at,
			)


__all__ = ["VoteArchiveSink", "PostgresVoteArchive"]
