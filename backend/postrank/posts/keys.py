"""Redis key layout for posts, votes and communities."""

from __future__ import annotations

from dataclasses import dataclass

from postrank.settings import settings


@dataclass(frozen=True, slots=True)
class KeySpace:
    """Builds every key the engine touches under one prefix."""

    prefix: str = "bbs:"

    @property
    def post_time(self) -> str:
        """ZSET post_id -> creation timestamp."""
        return f"{self.prefix}post:time"

    @property
    def post_score(self) -> str:
        """ZSET post_id -> popularity score."""
        return f"{self.prefix}post:score"

    @property
    def archived(self) -> str:
        return f"{self.prefix}post:archived"

    @property
    def archive_watermark(self) -> str:
        """Creation time below which every post is already archived."""
        return f"{self.prefix}post:archived:watermark"

    def post(self, post_id: str) -> str:
        return f"{self.prefix}post:{post_id}"

    def voted(self, post_id: str) -> str:
        """ZSET user_id -> vote value (-1 or 1) for a single post."""
        return f"{self.prefix}post:voted:{post_id}"

    def community(self, community_id: str) -> str:
        return f"{self.prefix}community:{community_id}"

    def community_ranked(self, order: str, community_id: str) -> str:
        return f"{self.prefix}community:ranked:{order}:{community_id}"

    def order_index(self, order: str) -> str:
        return self.post_time if order == "time" else self.post_score


def default_keys() -> KeySpace:
    return KeySpace(prefix=settings.key_prefix)


__all__ = ["KeySpace", "default_keys"]
