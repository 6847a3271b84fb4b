from __future__ import annotations

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from postrank.posts.exceptions import CommunityNotFound, MalformedInput, StoreTransportError
from postrank.posts.feed_query import FeedQueryService, rank_range
from postrank.posts.store import PostStore
from postrank.posts.votes import VoteEngine


@pytest.fixture
def store(fake_redis, keys, clock) -> PostStore:
	return PostStore(fake_redis, keys=keys, clock=clock, vote_score=432.0)


@pytest.fixture
def engine(fake_redis, keys, clock) -> VoteEngine:
	return VoteEngine(fake_redis, keys=keys, clock=clock, vote_score=432.0)


@pytest.fixture
def feeds(fake_redis, keys, clock, store) -> FeedQueryService:
	return FeedQueryService(fake_redis, store=store, keys=keys, clock=clock, page_size=20, cache_ttl_seconds=60)


async def _seed(store, clock, post_ids, community_id):
	for post_id in post_ids:
		await store.create_post(post_id, 1, f"post {post_id}", "", community_id)
		clock.advance(10)


def test_rank_range():
	assert rank_range(1, 20) == (0, 19)
	assert rank_range(3, 20) == (40, 59)


@pytest.mark.asyncio
async def test_get_posts_by_score_is_non_increasing(store, engine, feeds, clock):
	await _seed(store, clock, range(1, 26), 1)
	await engine.cast_vote(900, 3, 1)
	await engine.cast_vote(900, 7, -1)

	page = await feeds.get_posts("score", 1)

	assert 0 < len(page) <= 20
	scores = [post.score for post in page]
	assert scores == sorted(scores, reverse=True)
	second = await feeds.get_posts("score", 2)
	assert len(second) == 5
	assert {post.id for post in page}.isdisjoint(post.id for post in second)


@pytest.mark.asyncio
async def test_get_posts_by_time_is_newest_first(store, feeds, clock):
	await _seed(store, clock, [1, 2, 3], 1)

	page = await feeds.get_posts("time", 1, page_size=2)

	assert [post.id for post in page] == [3, 2]
	assert [post.id for post in await feeds.get_posts("time", 2, page_size=2)] == [1]


@pytest.mark.asyncio
async def test_page_beyond_data_is_empty(store, feeds, clock):
	await _seed(store, clock, [1], 1)
	assert await feeds.get_posts("score", 5) == []


@pytest.mark.asyncio
async def test_rejects_bad_order_and_page(feeds):
	with pytest.raises(MalformedInput):
		await feeds.get_posts("popular", 1)
	with pytest.raises(MalformedInput):
		await feeds.get_posts("score", 0)


@pytest.mark.asyncio
async def test_community_view_is_scoped_and_cached(fake_redis, keys, store, engine, feeds, clock):
	await _seed(store, clock, [1, 2], 7)
	await _seed(store, clock, [3], 8)

	first = await feeds.get_community_posts(7, "score", 1)
	assert [post.id for post in first] == [2, 1]
	cache_key = keys.community_ranked("score", "7")
	assert 0 < await fake_redis.ttl(cache_key) <= 60

	await engine.cast_vote(500, 3, 1)
	await engine.cast_vote(500, 1, 1)
	await engine.cast_vote(501, 1, 1)

	second = await feeds.get_community_posts(7, "score", 1)
	assert [post.id for post in second] == [2, 1]

	await fake_redis.delete(cache_key)
	rebuilt = await feeds.get_community_posts(7, "score", 1)
	assert [post.id for post in rebuilt] == [1, 2]


@pytest.mark.asyncio
async def test_community_view_by_time(store, feeds, clock):
	await _seed(store, clock, [4, 5, 6], 9)
	page = await feeds.get_community_posts(9, "time", 1, page_size=2)
	assert [post.id for post in page] == [6, 5]


@pytest.mark.asyncio
async def test_unknown_community(feeds):
	with pytest.raises(CommunityNotFound):
		await feeds.get_community_posts(404, "score", 1)


@pytest.mark.asyncio
async def test_hot_posts_prefer_net_votes(store, engine, feeds, clock):
	await _seed(store, clock, [1, 2], 1)
	for user in range(100, 120):
		await engine.cast_vote(user, 1, 1)
	await engine.cast_vote(999, 2, -1)
	await engine.cast_vote(998, 2, -1)

	page = await feeds.get_hot_posts(1)

	assert [post.id for post in page] == [1, 2]


@pytest.mark.asyncio
async def test_community_page_survives_cache_expiring_after_lookup(fake_redis, keys, store, feeds, clock, monkeypatch):
	await _seed(store, clock, [1, 2], 7)
	await feeds.get_community_posts(7, "score", 1)
	cache_key = keys.community_ranked("score", "7")
	real_exists = fake_redis.exists

	async def exists_then_expire(*names):
		found = await real_exists(*names)
		if cache_key in names:
			await fake_redis.delete(cache_key)
		return found

	monkeypatch.setattr(fake_redis, "exists", exists_then_expire)

	page = await feeds.get_community_posts(7, "score", 1)

	assert [post.id for post in page] == [2, 1]


@pytest.mark.asyncio
async def test_rebuilt_community_view_serves_requested_page(fake_redis, keys, store, feeds, clock):
	await _seed(store, clock, [1, 2, 3], 7)
	await feeds.get_community_posts(7, "time", 1, page_size=2)
	await fake_redis.delete(keys.community_ranked("time", "7"))

	page = await feeds.get_community_posts(7, "time", 2, page_size=2)

	assert [post.id for post in page] == [1]


@pytest.mark.asyncio
async def test_listing_store_failure_is_transport_error(fake_redis, store, feeds, clock, monkeypatch):
	await _seed(store, clock, [1], 1)

	async def unavailable(*args, **kwargs):
		raise RedisConnectionError("connection reset")

	monkeypatch.setattr(fake_redis, "zrevrange", unavailable)
	with pytest.raises(StoreTransportError):
		await feeds.get_posts("score", 1)
