"""Paginated ranked listings, globally and per community."""

from __future__ import annotations

import logging
import time
from typing import Callable

import redis.asyncio as redis

from postrank.infra.redis import redis_client
from postrank.obs import metrics as obs_metrics
from postrank.posts import ranker
from postrank.posts.exceptions import CommunityNotFound, store_errors
from postrank.posts.keys import KeySpace
from postrank.posts.models import Post, PostOrder, coerce_id, coerce_order, coerce_page
from postrank.posts.store import PostStore
from postrank.settings import settings

_LOG = logging.getLogger(__name__)


def rank_range(page: int, page_size: int) -> tuple[int, int]:
    """Zero-based inclusive rank range for a 1-based page."""

    start = (page - 1) * page_size
    return start, start + page_size - 1


class FeedQueryService:
    """Resolves ranked pages from the score/time indexes."""

    def __init__(
        self,
        client: redis.Redis | None = None,
        *,
        store: PostStore | None = None,
        keys: KeySpace | None = None,
        clock: Callable[[], float] = time.time,
        page_size: int | None = None,
        cache_ttl_seconds: int | None = None,
        hot_candidate_limit: int | None = None,
    ) -> None:
        self._redis = client if client is not None else redis_client
        self.store = store or PostStore(self._redis, keys=keys, clock=clock)
        self.keys = keys or self.store.keys
        self._clock = clock
        self.page_size = page_size or settings.page_size
        self.cache_ttl_seconds = cache_ttl_seconds or settings.community_cache_ttl_seconds
        self.hot_candidate_limit = hot_candidate_limit or settings.hot_candidate_limit

    async def get_posts(
        self,
        order: PostOrder | str = PostOrder.SCORE,
        page: int = 1,
        page_size: int | None = None,
    ) -> list[Post]:
        """One page of posts from the global score or time index."""

        resolved = coerce_order(order)
        page, size = coerce_page(page, page_size or self.page_size)
        with obs_metrics.FEED_QUERY_DURATION.labels(order=resolved.value).time():
            return await self._page(self.keys.order_index(resolved.value), page, size)

    async def get_community_posts(
        self,
        community_id: int | str,
        order: PostOrder | str = PostOrder.SCORE,
        page: int = 1,
        page_size: int | None = None,
    ) -> list[Post]:
        """One page of a community's posts ranked by the chosen index.

        The ranked view is the intersection of the community membership set
        with the global index, cached for ``cache_ttl_seconds``. A cached view
        is served unchanged until it expires.
        """

        resolved = coerce_order(order)
        community = coerce_id(community_id, "community_id")
        page, size = coerce_page(page, page_size or self.page_size)
        with obs_metrics.FEED_QUERY_DURATION.labels(order=f"community_{resolved.value}").time():
            post_ids = await self._community_page(community, resolved, page, size)
            return await self.store.fetch_posts(post_ids)

    async def get_hot_posts(self, page: int = 1, page_size: int | None = None) -> list[Post]:
        """Recent posts re-ordered by hot rank computed from voter ledgers.

        Read-only: the score index is not touched.
        """

        page, size = coerce_page(page, page_size or self.page_size)
        with obs_metrics.FEED_QUERY_DURATION.labels(order="hot").time():
            with store_errors("get_hot_posts"):
                candidates = await self._redis.zrevrange(
                    self.keys.post_time, 0, self.hot_candidate_limit - 1, withscores=True
                )
            if not candidates:
                return []
            post_ids = [member for member, _ in candidates]
            tallies = await self.store.vote_tallies(post_ids)
            scored = [
                (ranker.hot(tally.upvotes, tally.downvotes, created, epoch_offset=settings.hot_epoch_offset), created, member)
                for (member, created), tally in zip(candidates, tallies)
            ]
            scored.sort(key=lambda item: (item[0], item[1]), reverse=True)
            start, stop = rank_range(page, size)
            return await self.store.fetch_posts([member for _, _, member in scored[start : stop + 1]])

    async def _community_page(self, community: str, order: PostOrder, page: int, size: int) -> list[str]:
        cache_key = self.keys.community_ranked(order.value, community)
        members_key = self.keys.community(community)
        start, stop = rank_range(page, size)
        with store_errors("get_community_posts"):
            # Existence and range are read in one MULTI so the TTL cannot lapse between them.
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.exists(cache_key)
                pipe.zrevrange(cache_key, start, stop)
                cached, post_ids = await pipe.execute()
            if cached:
                obs_metrics.inc_community_cache("hit")
                return post_ids
            obs_metrics.inc_community_cache("miss")
            if not await self._redis.exists(members_key):
                raise CommunityNotFound()
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.zinterstore(cache_key, [members_key, self.keys.order_index(order.value)], aggregate="MAX")
                pipe.expire(cache_key, self.cache_ttl_seconds)
                pipe.zrevrange(cache_key, start, stop)
                view_size, _, post_ids = await pipe.execute()
        _LOG.debug(
            "feed_query.cache_rebuilt",
            extra={"community_id": community, "order": order.value, "size": view_size},
        )
        return post_ids

    async def _page(self, key: str, page: int, size: int) -> list[Post]:
        start, stop = rank_range(page, size)
        with store_errors("list_posts"):
            post_ids = await self._redis.zrevrange(key, start, stop)
        return await self.store.fetch_posts(post_ids)


__all__ = ["FeedQueryService", "rank_range"]
