"""Deduplication entry points invoked by the play workflow and maintenance tooling."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING

import structlog

from plays.dedup.candidates import bucket_key, bucket_plays, find_candidates, load_bucket
from plays.dedup.exclusions import ExclusionWriter, excluded_state, utc_now
from plays.dedup.grouping import group_duplicates
from plays.dedup.leading import select_leading
from plays.dedup.types import SyncReport
from plays.exceptions import PlayNotFoundError
from shared.dal.models import DedupState

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import date, datetime

    from shared.dal.models import Play
    from shared.dal.play_repository import PlayRepository

logger = structlog.get_logger()


class DeduplicationService:
    """Keep leading/excluded state consistent for stored plays.

    Every public coroutine leaves the invariants intact on success: each
    duplicate group has exactly one leading play, and every excluded play
    points directly at a leading one. Methods that do not open a transaction
    themselves (``resync_play``, ``promote_successor``) must be awaited inside
    ``PlayRepository.transaction()``.
    """

    def __init__(self, repo: PlayRepository, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._repo = repo
        self._clock = clock
        self._writer = ExclusionWriter(repo, clock=clock)

    async def sync_for_play(self, play_id: int) -> SyncReport:
        """Re-evaluate a play after it was created or updated, in its own transaction."""
        async with self._repo.transaction():
            return await self.resync_play(play_id)

    async def resync_play(self, play_id: int) -> SyncReport:
        """Re-evaluate a play inside the caller's transaction.

        A play without a group is left untouched, including any exclusion it
        carried before it left its group. Excluded plays that still point at
        it from another bucket (its game, date or group changed) are
        re-evaluated in their own bucket.
        """
        play = await self._repo.get_play(play_id)
        if play is None:
            raise PlayNotFoundError(play_id)

        report = SyncReport()
        own_key = bucket_key(play)
        if own_key is None:
            logger.debug("play has no group, skipping dedup sync", play_id=play_id)
        else:
            report.merge(await self._sync_bucket(await find_candidates(self._repo, play)))

        stray_keys = {
            key
            for dependent in await self._repo.get_excluded_plays(play.id)
            if (key := bucket_key(dependent)) is not None and key != own_key
        }
        for key in sorted(stray_keys):
            report.merge(await self._sync_bucket(await load_bucket(self._repo, key)))
        return report

    async def sync_for_scope(
        self,
        *,
        group_id: int | None = None,
        game_id: int | None = None,
        played_on: date | None = None,
    ) -> SyncReport:
        """Re-evaluate every grouped play matching the filters, one transaction per bucket.

        Used for backfills and maintenance. Each bucket is reloaded inside its
        transaction, so edits made while the scope is being walked are not lost.
        """
        plays = await self._repo.find_plays(group_id=group_id, game_id=game_id, played_on=played_on)
        report = SyncReport()
        for key in sorted(bucket_plays(plays)):
            async with self._repo.transaction():
                report.merge(await self._sync_bucket(await load_bucket(self._repo, key)))
        logger.info(
            "scoped dedup sync finished",
            group_id=group_id,
            game_id=game_id,
            played_on=played_on,
            **asdict(report),
        )
        return report

    async def promote_successor(self, play_id: int) -> Play | None:
        """Prepare a leading play for deletion by promoting one of its excluded plays.

        The lowest-id excluded play becomes leading and the others are
        re-pointed at it, keeping their original ``excluded_at``. Returns the
        promoted play, or None when there is nothing to promote (the play is
        excluded itself, or has no duplicates). The caller deletes the play
        and then runs ``resync_play`` on the promoted one.
        """
        play = await self._repo.get_play(play_id)
        if play is None:
            raise PlayNotFoundError(play_id)
        if not play.is_leading:
            return None

        members = await self._repo.get_excluded_plays(play.id)
        if not members:
            return None

        promoted, *remaining = members
        now = self._clock()
        states = [DedupState.leading(promoted.id)]
        states.extend(excluded_state(member.id, promoted.id, member.excluded_at or now) for member in remaining)
        await self._repo.save_dedup_states(states)
        logger.info(
            "promoted play to leading",
            play_id=promoted.id,
            replaced_play_id=play.id,
            repointed=len(remaining),
        )
        return await self._repo.get_play(promoted.id)

    async def _sync_bucket(self, candidates: list[Play]) -> SyncReport:
        """Group one bucket of candidates and write the outcome.

        Candidates that are excluded but belong to no duplicate group are
        restored to leading first; with fewer than two candidates that is
        the only possible change.
        """
        report = SyncReport(buckets=1)
        groups = group_duplicates(candidates) if len(candidates) >= 2 else []
        grouped_ids = {play_id for group in groups for play_id in group.play_ids}

        for play in candidates:
            if play.id not in grouped_ids and await self._writer.clear(play):
                report.cleared += 1

        for group in groups:
            report.merge(await self._writer.apply(select_leading(group)))
        return report
