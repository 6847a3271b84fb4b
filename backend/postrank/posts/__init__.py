"""Post ranking and voting engine."""

from postrank.posts.exceptions import (
	CommunityNotFound,
	DuplicateVote,
	MalformedInput,
	NotFound,
	PostNotFound,
	PostRankError,
	StoreTransportError,
	VotingClosed,
)
from postrank.posts.models import Post, PostOrder, VoteTally
from postrank.posts.ranker import hot
from postrank.posts.service import PostRankingService

__all__ = [
	"CommunityNotFound",
	"DuplicateVote",
	"MalformedInput",
	"NotFound",
	"PostNotFound",
	"PostRankError",
	"StoreTransportError",
	"VotingClosed",
	"Post",
	"PostOrder",
	"VoteTally",
	"hot",
	"PostRankingService",
]
