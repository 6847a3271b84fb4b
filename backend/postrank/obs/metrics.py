"""Central registry for Prometheus metrics used by the ranking engine."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

VOTES_CAST = Counter(
	"postrank_votes_cast_total",
	"Votes committed to the score index",
	["direction"],
)

VOTES_REJECTED = Counter(
	"postrank_votes_rejected_total",
	"Votes rejected before commit",
	["reason"],
)

POSTS_CREATED = Counter(
	"postrank_posts_created_total",
	"Posts seeded into the ranking indexes",
)

COMMUNITY_CACHE = Counter(
	"postrank_community_cache_total",
	"Community ranked view cache lookups",
	["result"],
)

FEED_QUERY_DURATION = Histogram(
	"postrank_feed_query_duration_seconds",
	"Ranked listing latency in seconds",
	["order"],
	buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

POSTS_ARCHIVED = Counter(
	"postrank_posts_archived_total",
	"Posts whose voter ledger was reconciled into durable storage",
	["result"],
)

ARCHIVE_RUN_DURATION = Histogram(
	"postrank_archive_run_duration_seconds",
	"Duration of vote archival runs",
	buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0),
)


def inc_vote_cast(direction: str) -> None:
	VOTES_CAST.labels(direction=direction).inc()


def inc_vote_rejected(reason: str) -> None:
	VOTES_REJECTED.labels(reason=reason).inc()


def inc_post_created() -> None:
	POSTS_CREATED.inc()


def inc_community_cache(result: str) -> None:
	COMMUNITY_CACHE.labels(result=result).inc()


def inc_post_archived(result: str) -> None:
	POSTS_ARCHIVED.labels(result=result).inc()
