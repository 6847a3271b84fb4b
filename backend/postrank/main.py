"""Process entrypoint: store client lifecycle and the archival worker."""

from __future__ import annotations

import argparse
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from postrank import obs
from postrank.infra.redis import close_client, init_client, redis_client
from postrank.infra.scheduler import ArchiveScheduler
from postrank.posts.archive import PostgresVoteArchive
from postrank.settings import settings
from postrank.workers.vote_archiver import VoteArchiver

_LOG = logging.getLogger(__name__)

ARCHIVE_JOB_ID = "vote_archiver"


@asynccontextmanager
async def lifespan(*, archive: bool | None = None) -> AsyncIterator[ArchiveScheduler]:
	"""Own the Redis client, and the archival schedule when enabled."""
	obs.init()
	init_client()
	scheduler = ArchiveScheduler()
	sink: PostgresVoteArchive | None = None
	run_archive = settings.archive_enabled if archive is None else archive
	try:
		if run_archive:
			sink = PostgresVoteArchive()
			await sink.ensure_schema()
			archiver = VoteArchiver(sink, client=redis_client)
			scheduler.schedule_every(ARCHIVE_JOB_ID, archiver.run_once, seconds=settings.archive_interval_seconds)
			scheduler.start()
			_LOG.info("postrank.archive_scheduled", extra={"interval": settings.archive_interval_seconds})
		yield scheduler
	finally:
		scheduler.shutdown()
		if sink is not None:
			await sink.close()
		await close_client()


async def archive_once() -> int:
	async with lifespan(archive=False):
		sink = PostgresVoteArchive()
		try:
			await sink.ensure_schema()
			return await VoteArchiver(sink, client=redis_client).run_once()
		finally:
			await sink.close()


async def archive_loop() -> None:
	async with lifespan(archive=True):
		await asyncio.Event().wait()


def _parse_args() -> argparse.Namespace:
	parser = argparse.ArgumentParser(description="Post ranking maintenance tasks")
	parser.add_argument(
		"command",
		choices=("archive-once", "archive-loop"),
		help="archive-once reconciles closed voting windows and exits; archive-loop keeps the schedule running",
	)
	return parser.parse_args()


def main() -> None:
	args = _parse_args()
	if args.command == "archive-once":
		count = asyncio.run(archive_once())
		print(f"Archived {count} posts.")
		return
	asyncio.run(archive_loop())


if __name__ == "__main__":
	main()
