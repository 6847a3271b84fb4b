"""Domain models for posts, votes and archival tallies."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from postrank.posts.exceptions import MalformedInput

VOTE_VALUES = (-1, 0, 1)
MAX_ID = 2**64 - 1


class PostOrder(str, Enum):
    """Global indexes a listing can be ranked by."""

    SCORE = "score"
    TIME = "time"


class Post(BaseModel):
    """A post record joined with its identifier and live score."""

    id: int
    author_id: int
    community_id: Optional[int] = None
    title: str
    summary: str
    created_at: float
    votes: int
    comments: int = 0
    score: Optional[float] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_mapping(cls, post_id: str | int, mapping: Mapping[str, Any], *, score: Optional[float] = None) -> "Post":
        """Build a post from its Redis hash fields."""

        community = mapping.get("community:id")
        return cls(
            id=int(post_id),
            author_id=int(mapping.get("user:id", 0)),
            community_id=int(community) if community not in (None, "") else None,
            title=mapping.get("title", ""),
            summary=mapping.get("summary", ""),
            created_at=float(mapping.get("time", 0.0)),
            votes=int(mapping.get("votes", 0)),
            comments=int(mapping.get("comments", 0)),
            score=float(score) if score is not None else None,
        )

    def to_mapping(self) -> dict[str, str | int | float]:
        """Serialise into hash fields suitable for HSET."""

        mapping: dict[str, str | int | float] = {
            "title": self.title,
            "summary": self.summary,
            "post:id": self.id,
            "user:id": self.author_id,
            "time": self.created_at,
            "votes": self.votes,
            "comments": self.comments,
        }
        if self.community_id is not None:
            mapping["community:id"] = self.community_id
        return mapping


@dataclass(slots=True)
class VoteTally:
    """Up and down votes currently held in a post's voter ledger."""

    post_id: int
    upvotes: int = 0
    downvotes: int = 0

    @property
    def net(self) -> int:
        return self.upvotes - self.downvotes


@dataclass(slots=True)
class ArchivedTally:
    """Final vote totals for a post whose voting window closed."""

    post_id: int
    community_id: Optional[int]
    upvotes: int
    downvotes: int
    votes: int
    score: float
    archived_at: datetime


def coerce_vote(value: Any) -> int:
    """Return value as one of -1, 0, 1 or raise MalformedInput."""

    if isinstance(value, bool):
        raise MalformedInput("vote_value")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    elif isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError as exc:
            raise MalformedInput("vote_value") from exc
    if not isinstance(value, int) or value not in VOTE_VALUES:
        raise MalformedInput("vote_value")
    return value


def coerce_order(value: Any) -> PostOrder:
    if isinstance(value, PostOrder):
        return value
    try:
        return PostOrder(str(value).strip().lower())
    except ValueError as exc:
        raise MalformedInput("order") from exc


def coerce_id(value: Any, field: str = "id") -> str:
    """Validate a 64-bit unsigned identifier and return its member string."""

    if isinstance(value, bool):
        raise MalformedInput(field)
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise MalformedInput(field) from exc
    if number < 0 or number > MAX_ID:
        raise MalformedInput(field)
    return str(number)


def coerce_page(page: Any, page_size: Any) -> tuple[int, int]:
    try:
        page_num = int(page)
        size = int(page_size)
    except (TypeError, ValueError) as exc:
        raise MalformedInput("page") from exc
    if page_num < 1 or size < 1:
        raise MalformedInput("page")
    return page_num, size


__all__ = [
    "VOTE_VALUES",
    "PostOrder",
    "Post",
    "VoteTally",
    "ArchivedTally",
    "coerce_vote",
    "coerce_order",
    "coerce_id",
    "coerce_page",
]
