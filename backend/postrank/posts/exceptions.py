"""Domain exceptions for the ranking and voting engine."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from redis.exceptions import RedisError


class PostRankError(Exception):
	"""Base class for ranking engine errors."""

	status_code: int = 400
	detail: str = "post_rank_error"

	def __init__(self, detail: str | None = None) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail


class VotingClosed(PostRankError):
	"""The voting window elapsed, or the post is unknown to the time index."""

	status_code = 403
	detail = "voting_closed"


class DuplicateVote(PostRankError):
	"""The user re-submitted the vote value already on record."""

	status_code = 409
	detail = "duplicate_vote"


class MalformedInput(PostRankError):
	status_code = 422
	detail = "malformed_input"


class NotFound(PostRankError):
	status_code = 404
	detail = "not_found"


class PostNotFound(NotFound):
	detail = "post_not_found"


class CommunityNotFound(NotFound):
	detail = "community_not_found"


class StoreTransportError(PostRankError):
	"""The backing store could not commit; nothing was applied."""

	status_code = 503
	detail = "store_unavailable"


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
	"""Translate redis client failures into StoreTransportError."""
	try:
		yield
	except RedisError as exc:
		raise StoreTransportError(f"{operation}:{type(exc).__name__}") from exc


__all__ = [
	"PostRankError",
	"VotingClosed",
	"DuplicateVote",
	"MalformedInput",
	"NotFound",
	"PostNotFound",
	"CommunityNotFound",
	"StoreTransportError",
	"store_errors",
]
