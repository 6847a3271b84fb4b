"""Vote engine: windowed, per-user voting over the score index.

A vote moves the post's score by ``vote_score`` per unit of change between
the user's previous and new value, so a flip from +1 to -1 moves it twice.
The post's ``votes`` field moves by exactly one in the direction of change
regardless of magnitude.

The window check, the prior-vote read and every write run inside one
server-side script, so concurrent casts on the same post serialize in Redis
without client retries.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

import redis.asyncio as redis

from postrank.infra.redis import redis_client
from postrank.obs import metrics as obs_metrics
from postrank.posts.exceptions import DuplicateVote, PostRankError, VotingClosed, store_errors
from postrank.posts.keys import KeySpace, default_keys
from postrank.posts.models import coerce_id, coerce_vote
from postrank.settings import settings

_LOG = logging.getLogger(__name__)

_DIRECTIONS = {1: "up", -1: "down", 0: "cancel"}

CAST_OK = 0
CAST_CLOSED = 1
CAST_DUPLICATE = 2

# KEYS: post_time, voted ledger, post_score, post record
# ARGV: post_id, user_id, value, now, window_seconds, vote_score
CAST_VOTE_SCRIPT = """
local created = redis.call('ZSCORE', KEYS[1], ARGV[1])
if not created or tonumber(ARGV[4]) - tonumber(created) > tonumber(ARGV[5]) then
	return {1, 0}
end
local vote = tonumber(ARGV[3])
local previous = redis.call('ZSCORE', KEYS[2], ARGV[2])
local ov = 0
if previous then
	ov = tonumber(previous)
end
if vote == ov then
	return {2, ov}
end
local op = 1
if vote < ov then
	op = -1
end
local diff = math.abs(vote - ov)
redis.call('ZINCRBY', KEYS[3], tonumber(ARGV[6]) * diff * op, ARGV[1])
if vote == 0 then
	redis.call('ZREM', KEYS[2], ARGV[2])
else
	redis.call('ZADD', KEYS[2], vote, ARGV[2])
end
redis.call('HINCRBY', KEYS[4], 'votes', op)
return {0, ov}
"""

_REJECTIONS = {CAST_CLOSED: VotingClosed, CAST_DUPLICATE: DuplicateVote}


class VoteEngine:
    """Applies CastVote atomically across score index, ledger and record."""

    def __init__(
        self,
        client: redis.Redis | None = None,
        *,
        keys: KeySpace | None = None,
        clock: Callable[[], float] = time.time,
        vote_score: float | None = None,
        window_seconds: int | None = None,
    ) -> None:
        self._redis = client if client is not None else redis_client
        self.keys = keys or default_keys()
        self._clock = clock
        self.vote_score = settings.vote_score if vote_score is None else vote_score
        self.window_seconds = window_seconds or settings.voting_window_seconds

    async def cast_vote(self, user_id: int | str, post_id: int | str, value: int) -> None:
        """Record ``value`` as the user's vote on the post.

        Raises VotingClosed when the post is older than the voting window or
        unknown, DuplicateVote when the value equals the one on record and
        MalformedInput for values outside -1, 0, 1.
        """

        vote = coerce_vote(value)
        member = coerce_id(post_id, "post_id")
        user = coerce_id(user_id, "user_id")

        try:
            with store_errors("cast_vote"):
                # Registered per call: the proxied client may be swapped after construction.
                script = self._redis.register_script(CAST_VOTE_SCRIPT)
                status, previous = await script(
                    keys=[self.keys.post_time, self.keys.voted(member), self.keys.post_score, self.keys.post(member)],
                    args=[member, user, vote, float(self._clock()), self.window_seconds, self.vote_score],
                )
            rejection = _REJECTIONS.get(int(status))
            if rejection is not None:
                raise rejection()
        except PostRankError as exc:
            reason = type(exc).detail
            obs_metrics.inc_vote_rejected(reason)
            _LOG.info(
                "vote_engine.rejected",
                extra={"post_id": member, "voter_id": user, "value": vote, "reason": reason},
            )
            raise

        previous = int(previous)
        obs_metrics.inc_vote_cast(_DIRECTIONS[vote])
        _LOG.info(
            "vote_engine.cast",
            extra={
                "post_id": member,
                "voter_id": user,
                "value": vote,
                "previous": previous,
                "delta": self.vote_score * (vote - previous),
            },
        )


__all__ = ["VoteEngine", "CAST_VOTE_SCRIPT"]
