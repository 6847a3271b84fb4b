from __future__ import annotations

import pytest

from postrank.posts.exceptions import VotingClosed
from postrank.posts.models import ArchivedTally
from postrank.posts.store import PostStore
from postrank.posts.votes import VoteEngine
from postrank.workers.vote_archiver import VoteArchiver

WEEK = 7 * 24 * 3600


class _StubArchive:
	def __init__(self) -> None:
		self.saved: list[ArchivedTally] = []

	async def save(self, tally: ArchivedTally) -> None:
		self.saved.append(tally)


class _FailingArchive:
	async def save(self, tally: ArchivedTally) -> None:
		raise RuntimeError("archive down")


@pytest.fixture
def store(fake_redis, keys, clock) -> PostStore:
	return PostStore(fake_redis, keys=keys, clock=clock, vote_score=432.0)


@pytest.fixture
def engine(fake_redis, keys, clock) -> VoteEngine:
	return VoteEngine(fake_redis, keys=keys, clock=clock, vote_score=432.0, window_seconds=WEEK)


@pytest.mark.asyncio
async def test_archives_only_closed_posts(fake_redis, keys, store, engine, clock):
	await store.create_post(1, 10, "old", "", 3)
	await engine.cast_vote(20, 1, 1)
	await engine.cast_vote(21, 1, -1)
	clock.advance(WEEK + 1)
	await store.create_post(2, 10, "fresh", "", 3)
	sink = _StubArchive()
	archiver = VoteArchiver(sink, client=fake_redis, store=store, keys=keys, clock=clock, window_seconds=WEEK, batch_size=1)

	assert await archiver.run_once() == 1

	[tally] = sink.saved
	assert (tally.post_id, tally.community_id) == (1, 3)
	assert (tally.upvotes, tally.downvotes, tally.votes) == (2, 1, 1)
	assert tally.score == pytest.approx(1_700_000_000.0 + 432)
	assert not await fake_redis.exists(keys.voted("1"))
	assert await fake_redis.exists(keys.voted("2"))
	assert await fake_redis.sismember(keys.archived, "1")
	assert await fake_redis.zscore(keys.post_score, "1") is not None
	assert (await store.get_post(1)).votes == 1


@pytest.mark.asyncio
async def test_second_run_skips_archived(fake_redis, keys, store, engine, clock):
	await store.create_post(1, 10, "old", "", 3)
	clock.advance(WEEK + 1)
	sink = _StubArchive()
	archiver = VoteArchiver(sink, client=fake_redis, store=store, keys=keys, clock=clock, window_seconds=WEEK)

	assert await archiver.run_once() == 1
	assert await archiver.run_once() == 0
	assert len(sink.saved) == 1
	with pytest.raises(VotingClosed):
		await engine.cast_vote(30, 1, 1)


@pytest.mark.asyncio
async def test_failed_sink_keeps_ledger(fake_redis, keys, store, clock):
	await store.create_post(1, 10, "old", "", 3)
	clock.advance(WEEK + 1)
	archiver = VoteArchiver(_FailingArchive(), client=fake_redis, store=store, keys=keys, clock=clock, window_seconds=WEEK)

	assert await archiver.run_once() == 0
	assert await fake_redis.exists(keys.voted("1"))
	assert not await fake_redis.sismember(keys.archived, "1")


@pytest.mark.asyncio
async def test_clean_run_moves_watermark_and_next_scan_starts_there(fake_redis, keys, store, clock):
	await store.create_post(1, 10, "old", "", 3)
	clock.advance(WEEK + 1)
	sink = _StubArchive()
	archiver = VoteArchiver(sink, client=fake_redis, store=store, keys=keys, clock=clock, window_seconds=WEEK)

	assert await archiver.run_once() == 1
	assert float(await fake_redis.get(keys.archive_watermark)) == clock() - WEEK

	# Below the watermark nothing is rescanned, even without the archived marker.
	await fake_redis.srem(keys.archived, "1")
	await store.create_post(2, 10, "newer", "", 3)
	clock.advance(WEEK + 1)

	assert await archiver.run_once() == 1
	assert [tally.post_id for tally in sink.saved] == [1, 2]


@pytest.mark.asyncio
async def test_failed_run_keeps_watermark_for_retry(fake_redis, keys, store, clock):
	await store.create_post(1, 10, "old", "", 3)
	clock.advance(WEEK + 1)
	failing = VoteArchiver(_FailingArchive(), client=fake_redis, store=store, keys=keys, clock=clock, window_seconds=WEEK)

	assert await failing.run_once() == 0
	assert await fake_redis.get(keys.archive_watermark) is None

	sink = _StubArchive()
	archiver = VoteArchiver(sink, client=fake_redis, store=store, keys=keys, clock=clock, window_seconds=WEEK)
	assert await archiver.run_once() == 1
	assert [tally.post_id for tally in sink.saved] == [1]
	assert await fake_redis.get(keys.archive_watermark) is not None
