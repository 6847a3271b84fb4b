"""Facade bundling the ranking engine operations over one store client."""

from __future__ import annotations

import time
from datetime import datetime
from typing import Callable

import redis.asyncio as redis

from postrank.infra.redis import redis_client
from postrank.posts import ranker
from postrank.posts.feed_query import FeedQueryService
from postrank.posts.keys import KeySpace, default_keys
from postrank.posts.models import Post, PostOrder
from postrank.posts.store import PostStore
from postrank.posts.votes import VoteEngine
from postrank.settings import settings


class PostRankingService:
    """Entry point used by the HTTP layer for posts, votes and listings."""

    def __init__(
        self,
        client: redis.Redis | None = None,
        *,
        keys: KeySpace | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = client if client is not None else redis_client
        self.keys = keys or default_keys()
        self.store = PostStore(self._redis, keys=self.keys, clock=clock)
        self.votes = VoteEngine(self._redis, keys=self.keys, clock=clock)
        self.feeds = FeedQueryService(self._redis, store=self.store, keys=self.keys, clock=clock)

    async def create_post(self, post_id: int, author_id: int, title: str, summary: str, community_id: int) -> Post:
        return await self.store.create_post(post_id, author_id, title, summary, community_id)

    async def cast_vote(self, user_id: int, post_id: int, value: int) -> None:
        await self.votes.cast_vote(user_id, post_id, value)

    async def get_post(self, post_id: int) -> Post:
        return await self.store.get_post(post_id)

    async def get_posts(self, order: PostOrder | str = PostOrder.SCORE, page: int = 1, page_size: int | None = None) -> list[Post]:
        return await self.feeds.get_posts(order, page, page_size)

    async def get_community_posts(
        self,
        community_id: int,
        order: PostOrder | str = PostOrder.SCORE,
        page: int = 1,
        page_size: int | None = None,
    ) -> list[Post]:
        return await self.feeds.get_community_posts(community_id, order, page, page_size)

    async def get_hot_posts(self, page: int = 1, page_size: int | None = None) -> list[Post]:
        return await self.feeds.get_hot_posts(page, page_size)

    @staticmethod
    def hot(ups: int, downs: int, date: datetime | float) -> float:
        return ranker.hot(ups, downs, date, epoch_offset=settings.hot_epoch_offset)


__all__ = ["PostRankingService"]
