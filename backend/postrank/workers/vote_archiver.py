"""Reconciles closed voting windows into durable storage."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Sequence

import redis.asyncio as redis

from postrank.infra.redis import redis_client
from postrank.obs import metrics as obs_metrics
from postrank.posts.archive import VoteArchiveSink
from postrank.posts.exceptions import store_errors
from postrank.posts.keys import KeySpace
from postrank.posts.models import ArchivedTally
from postrank.posts.store import PostStore
from postrank.settings import settings

_LOG = logging.getLogger(__name__)


class VoteArchiver:
    """Moves final tallies of expired posts out of Redis.

    For each post older than the voting window that has not been archived
    yet, the voter ledger is tallied, the totals are written to the sink and
    the ledger is dropped. The post keeps its score, time, record and
    community membership.
    """

    def __init__(
        self,
        sink: VoteArchiveSink,
        *,
        client: redis.Redis | None = None,
        store: PostStore | None = None,
        keys: KeySpace | None = None,
        clock: Callable[[], float] = time.time,
        window_seconds: int | None = None,
        batch_size: int | None = None,
    ) -> None:
        self._redis = client if client is not None else redis_client
        self.store = store or PostStore(self._redis, keys=keys, clock=clock)
        self.keys = keys or self.store.keys
        self.sink = sink
        self._clock = clock
        self.window_seconds = window_seconds or settings.voting_window_seconds
        self.batch_size = max(1, batch_size or settings.archive_batch_size)

    async def run_once(self) -> int:
        """Archive every post whose window closed since the last clean run.

        The scan starts at the stored watermark. The watermark only moves to
        this run's cutoff when no post failed, so failures are rescanned.
        """

        start = time.perf_counter()
        cutoff = self._clock() - self.window_seconds
        with store_errors("archive_watermark"):
            watermark = await self._redis.get(self.keys.archive_watermark)
        low = watermark if watermark is not None else "-inf"
        archived = failed = 0
        offset = 0
        while True:
            with store_errors("archive_scan"):
                post_ids = await self._redis.zrangebyscore(
                    self.keys.post_time, low, f"({cutoff}", start=offset, num=self.batch_size
                )
            if not post_ids:
                break
            offset += len(post_ids)
            for post_id in await self._pending(post_ids):
                if await self._archive_post(post_id):
                    archived += 1
                else:
                    failed += 1
        if not failed and (watermark is None or cutoff > float(watermark)):
            with store_errors("archive_watermark"):
                await self._redis.set(self.keys.archive_watermark, repr(cutoff))
        duration = time.perf_counter() - start
        obs_metrics.ARCHIVE_RUN_DURATION.observe(duration)
        _LOG.info(
            "vote_archiver.run",
            extra={"count": archived, "failed": failed, "watermark": cutoff if not failed else low, "duration": duration},
        )
        return archived

    async def _pending(self, post_ids: Sequence[str]) -> list[str]:
        with store_errors("archive_pending"):
            async with self._redis.pipeline(transaction=False) as pipe:
                for post_id in post_ids:
                    pipe.sismember(self.keys.archived, post_id)
                flags = await pipe.execute()
        return [post_id for post_id, done in zip(post_ids, flags) if not done]

    async def _archive_post(self, post_id: str) -> bool:
        try:
            post = await self.store.get_post(post_id)
            tally = await self.store.vote_tally(post_id)
            await self.sink.save(
                ArchivedTally(
                    post_id=post.id,
                    community_id=post.community_id,
                    upvotes=tally.upvotes,
                    downvotes=tally.downvotes,
                    votes=post.votes,
                    score=post.score if post.score is not None else 0.0,
                    archived_at=datetime.fromtimestamp(self._clock(), tz=timezone.utc),
                )
            )
            with store_errors("archive_commit"):
                async with self._redis.pipeline(transaction=True) as pipe:
                    pipe.delete(self.keys.voted(post_id))
                    pipe.sadd(self.keys.archived, post_id)
                    await pipe.execute()
        except Exception:
            obs_metrics.inc_post_archived("failed")
            _LOG.exception("vote_archiver.archive_failed", extra={"post_id": post_id})
            return False
        obs_metrics.inc_post_archived("ok")
        _LOG.debug(
            "vote_archiver.archived",
            extra={"post_id": post_id, "upvotes": tally.upvotes, "downvotes": tally.downvotes},
        )
        return True


__all__ = ["VoteArchiver"]
