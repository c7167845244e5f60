"""Persist leading/excluded state for duplicate groups."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from plays.dedup.types import SyncReport
from plays.exceptions import DeduplicationInvariantError
from shared.dal.models import DedupState

if TYPE_CHECKING:
    from collections.abc import Callable

    from plays.dedup.types import LeadingDecision
    from shared.dal.models import Play
    from shared.dal.play_repository import PlayRepository

logger = structlog.get_logger()


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def exclusion_reason(leading_play_id: int) -> str:
    return (
        f"Duplicate of play #{leading_play_id} "
        "(same game, date, and participants, logged by a different user)"
    )


def excluded_state(play_id: int, leading_play_id: int, excluded_at: datetime) -> DedupState:
    return DedupState(
        play_id=play_id,
        is_excluded=True,
        leading_play_id=leading_play_id,
        excluded_at=excluded_at,
        exclusion_reason=exclusion_reason(leading_play_id),
    )


class ExclusionWriter:
    """Write the outcome of leading selection through the play repository.

    Only changed states are written: a member already excluded under the same
    leader keeps its original ``excluded_at`` and reason, so applying the same
    decision twice leaves stored state untouched. Callers hold the repository
    transaction; the states of one decision go out in a single
    ``save_dedup_states`` call, followed by one more when plays outside the
    group still pointed at a member that just lost leading status.
    """

    def __init__(self, repo: PlayRepository, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._repo = repo
        self._clock = clock

    def plan(self, decision: LeadingDecision) -> list[DedupState]:
        """Return the state changes needed to apply a decision, leader first."""
        leader = decision.leader
        if any(play.id == leader.id for play in decision.excluded):
            raise DeduplicationInvariantError(f"Play {leader.id} cannot be both leading and excluded")

        states: list[DedupState] = []
        if not leader.is_leading:
            states.append(DedupState.leading(leader.id))

        now = self._clock()
        for play in decision.excluded:
            if play.is_excluded and play.leading_play_id == leader.id:
                continue
            states.append(excluded_state(play.id, leader.id, now))
        return states

    async def apply(self, decision: LeadingDecision) -> SyncReport:
        states = self.plan(decision)
        if states:
            await self._repo.save_dedup_states(states)

        report = SyncReport(groups=1)
        plays_by_id = {play.id: play for play in (decision.leader, *decision.excluded)}
        for state in states:
            play = plays_by_id[state.play_id]
            if state.is_excluded:
                report.excluded += 1
                logger.info(
                    "play marked as excluded",
                    excluded_play_id=play.id,
                    leading_play_id=state.leading_play_id,
                    game_id=play.game_id,
                    played_on=play.played_on,
                )
            else:
                report.cleared += 1
                logger.info("play exclusion cleared", play_id=play.id, previous_leading_play_id=play.leading_play_id)

        newly_excluded = [state.play_id for state in states if state.is_excluded]
        report.excluded += await self._repoint_dependents(newly_excluded, decision.leader.id)
        return report

    async def _repoint_dependents(self, play_ids: list[int], leading_play_id: int) -> int:
        """Move plays still excluded under a just-excluded play onto its new leader.

        Such dependents live outside the synced bucket (for example a play
        that left its group while excluded). Their ``excluded_at`` is kept.
        """
        now = self._clock()
        states: list[DedupState] = []
        for play_id in play_ids:
            for dependent in await self._repo.get_excluded_plays(play_id):
                states.append(excluded_state(dependent.id, leading_play_id, dependent.excluded_at or now))
                logger.info(
                    "excluded play repointed",
                    play_id=dependent.id,
                    previous_leading_play_id=play_id,
                    leading_play_id=leading_play_id,
                )
        if states:
            await self._repo.save_dedup_states(states)
        return len(states)

    async def clear(self, play: Play) -> bool:
        """Restore a play to leading. Returns False when it already was."""
        if play.is_leading:
            return False
        await self._repo.save_dedup_states([DedupState.leading(play.id)])
        logger.info("play exclusion cleared", play_id=play.id, previous_leading_play_id=play.leading_play_id)
        return True
