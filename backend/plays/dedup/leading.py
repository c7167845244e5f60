"""Leading play selection for a duplicate group.

Plays are ranked by a single total order:

1. earliest ``created_at``
2. lowest external play id (plays without one rank after every play with one)
3. highest detail score
4. lowest play id

The last two keys only decide between plays tied on the first two, which is
exactly the tie-break rule. Because the order is total, selection is
deterministic regardless of how the group was assembled.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from plays.dedup.types import LeadingDecision

if TYPE_CHECKING:
    from datetime import datetime

    from plays.dedup.types import DuplicateGroup
    from shared.dal.models import Play

COMMENT_DETAIL_POINTS = 10
SCORE_DETAIL_POINTS = 5
GAME_LENGTH_DETAIL_POINTS = 2

_MISSING_EXTERNAL_ID = sys.maxsize


def detail_score(play: Play) -> int:
    """Score how much detail a play carries (0 to 17)."""
    score = 0
    if play.comment:
        score += COMMENT_DETAIL_POINTS
    if any(participant.score is not None for participant in play.participants):
        score += SCORE_DETAIL_POINTS
    if play.game_length_minutes is not None:
        score += GAME_LENGTH_DETAIL_POINTS
    return score


def priority_key(play: Play) -> tuple[datetime, int, int, int]:
    """Sort key whose minimum is the leading play."""
    external_id = play.external_play_id if play.external_play_id is not None else _MISSING_EXTERNAL_ID
    return (play.created_at, external_id, -detail_score(play), play.id)


def select_leading(group: DuplicateGroup) -> LeadingDecision:
    leader = min(group.plays, key=priority_key)
    return LeadingDecision(
        leader=leader,
        excluded=tuple(play for play in group.plays if play.id != leader.id),
    )
