"""Redis-backed post records and ranking index seeding."""

from __future__ import annotations

import logging
import time
from typing import Callable, Sequence

import redis.asyncio as redis
from redis.exceptions import WatchError

from postrank.infra.redis import redis_client
from postrank.obs import metrics as obs_metrics
from postrank.posts.exceptions import PostNotFound, store_errors
from postrank.posts.keys import KeySpace, default_keys
from postrank.posts.models import Post, VoteTally, coerce_id
from postrank.settings import settings

_LOG = logging.getLogger(__name__)


class PostStore:
    """Owns the post record hash, the score/time indexes and voter ledgers."""

    def __init__(
        self,
        client: redis.Redis | None = None,
        *,
        keys: KeySpace | None = None,
        clock: Callable[[], float] = time.time,
        vote_score: float | None = None,
        ledger_ttl_seconds: int | None = None,
    ) -> None:
        self._redis = client if client is not None else redis_client
        self.keys = keys or default_keys()
        self._clock = clock
        self.vote_score = settings.vote_score if vote_score is None else vote_score
        self.ledger_ttl_seconds = ledger_ttl_seconds or settings.voter_ledger_ttl_seconds

    async def create_post(
        self,
        post_id: int,
        author_id: int,
        title: str,
        summary: str,
        community_id: int,
    ) -> Post:
        """Seed a new post into every structure in one transaction.

        The author casts an implicit upvote, so the post starts at
        ``now + vote_score`` with one vote. Replaying a create for an id that
        already exists returns the stored post unchanged.
        """

        member = coerce_id(post_id, "post_id")
        author = coerce_id(author_id, "author_id")
        community = coerce_id(community_id, "community_id")
        post_key = self.keys.post(member)
        voted_key = self.keys.voted(member)

        with store_errors("create_post"):
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.watch(post_key)
                if await pipe.exists(post_key):
                    await pipe.unwatch()
                    _LOG.info("post_store.create_replayed", extra={"post_id": member})
                    return await self.get_post(member)

                now = float(self._clock())
                post = Post(
                    id=int(member),
                    author_id=int(author),
                    community_id=int(community),
                    title=title,
                    summary=summary,
                    created_at=now,
                    votes=1,
                    comments=0,
                    score=now + self.vote_score,
                )
                pipe.multi()
                pipe.zadd(voted_key, {author: 1})
                pipe.expire(voted_key, self.ledger_ttl_seconds)
                pipe.hset(post_key, mapping=post.to_mapping())
                pipe.zadd(self.keys.post_score, {member: now + self.vote_score})
                pipe.zadd(self.keys.post_time, {member: now})
                pipe.sadd(self.keys.community(community), member)
                try:
                    await pipe.execute()
                except WatchError:
                    # Someone created the same id between WATCH and EXEC.
                    _LOG.info("post_store.create_raced", extra={"post_id": member})
                    return await self.get_post(member)

        obs_metrics.inc_post_created()
        _LOG.info(
            "post_store.created",
            extra={"post_id": member, "author_id": author, "community_id": community},
        )
        return post

    async def get_post(self, post_id: int | str) -> Post:
        member = coerce_id(post_id, "post_id")
        with store_errors("get_post"):
            async with self._redis.pipeline(transaction=False) as pipe:
                pipe.hgetall(self.keys.post(member))
                pipe.zscore(self.keys.post_score, member)
                mapping, score = await pipe.execute()
        if not mapping:
            raise PostNotFound()
        return Post.from_mapping(member, mapping, score=score)

    async def fetch_posts(self, post_ids: Sequence[str]) -> list[Post]:
        """Hydrate post records in the given order, skipping missing ones."""

        if not post_ids:
            return []
        with store_errors("fetch_posts"):
            async with self._redis.pipeline(transaction=False) as pipe:
                for post_id in post_ids:
                    pipe.hgetall(self.keys.post(post_id))
                    pipe.zscore(self.keys.post_score, post_id)
                rows = await pipe.execute()
        posts: list[Post] = []
        for idx, post_id in enumerate(post_ids):
            mapping, score = rows[2 * idx], rows[2 * idx + 1]
            if not mapping:
                _LOG.warning("post_store.record_missing", extra={"post_id": str(post_id)})
                continue
            posts.append(Post.from_mapping(post_id, mapping, score=score))
        return posts

    async def get_vote(self, post_id: int | str, user_id: int | str) -> int:
        """Current vote of a user on a post; 0 when they never voted."""

        member = coerce_id(post_id, "post_id")
        user = coerce_id(user_id, "user_id")
        with store_errors("get_vote"):
            value = await self._redis.zscore(self.keys.voted(member), user)
        return int(value) if value is not None else 0

    async def vote_tally(self, post_id: int | str) -> VoteTally:
        member = coerce_id(post_id, "post_id")
        voted_key = self.keys.voted(member)
        with store_errors("vote_tally"):
            async with self._redis.pipeline(transaction=False) as pipe:
                pipe.zcount(voted_key, 1, 1)
                pipe.zcount(voted_key, -1, -1)
                ups, downs = await pipe.execute()
        return VoteTally(post_id=int(member), upvotes=int(ups), downvotes=int(downs))

    async def vote_tallies(self, post_ids: Sequence[str]) -> list[VoteTally]:
        if not post_ids:
            return []
        with store_errors("vote_tallies"):
            async with self._redis.pipeline(transaction=False) as pipe:
                for post_id in post_ids:
                    voted_key = self.keys.voted(post_id)
                    pipe.zcount(voted_key, 1, 1)
                    pipe.zcount(voted_key, -1, -1)
                rows = await pipe.execute()
        return [
            VoteTally(post_id=int(post_id), upvotes=int(rows[2 * idx]), downvotes=int(rows[2 * idx + 1]))
            for idx, post_id in enumerate(post_ids)
        ]

    async def increment_comments(self, post_id: int | str, delta: int = 1) -> int:
        """Bump the comment counter kept on the post record."""

        member = coerce_id(post_id, "post_id")
        post_key = self.keys.post(member)
        with store_errors("increment_comments"):
            if not await self._redis.exists(post_key):
                raise PostNotFound()
            return int(await self._redis.hincrby(post_key, "comments", delta))


__all__ = ["PostStore"]
