"""Value types shared by the deduplication pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import NamedTuple

from shared.dal.models import Play


class BucketKey(NamedTuple):
    """Candidate bucket: plays that can only be duplicates of each other."""

    game_id: int
    played_on: date
    group_id: int


@dataclass(frozen=True)
class DuplicateGroup:
    """Two or more plays judged to describe the same real-world event, ordered by id."""

    plays: tuple[Play, ...]

    def __post_init__(self) -> None:
        if len(self.plays) < 2:
            raise ValueError(f"A duplicate group needs at least 2 plays, got {len(self.plays)}")

    @property
    def play_ids(self) -> tuple[int, ...]:
        return tuple(play.id for play in self.plays)

    def __contains__(self, play_id: object) -> bool:
        return play_id in self.play_ids


@dataclass(frozen=True)
class LeadingDecision:
    """Outcome of leading-play selection for one duplicate group."""

    leader: Play
    excluded: tuple[Play, ...]


@dataclass
class SyncReport:
    """Counters for one sync invocation."""

    buckets: int = 0
    groups: int = 0
    excluded: int = 0  # plays written as excluded (new or re-pointed)
    cleared: int = 0  # plays restored to leading

    def merge(self, other: SyncReport) -> None:
        self.buckets += other.buckets
        self.groups += other.groups
        self.excluded += other.excluded
        self.cleared += other.cleared
