"""Candidate discovery: plays that could be duplicates of each other."""

from __future__ import annotations

from typing import TYPE_CHECKING

from plays.dedup.types import BucketKey

if TYPE_CHECKING:
    from collections.abc import Iterable

    from shared.dal.models import Play
    from shared.dal.play_repository import PlayRepository


def bucket_key(play: Play) -> BucketKey | None:
    """Return the play's candidate bucket, or None for plays outside any group."""
    if play.group_id is None:
        return None
    return BucketKey(game_id=play.game_id, played_on=play.played_on, group_id=play.group_id)


def bucket_plays(plays: Iterable[Play]) -> dict[BucketKey, list[Play]]:
    """Partition plays by (game, played-on date, group), dropping ungrouped plays."""
    buckets: dict[BucketKey, list[Play]] = {}
    for play in plays:
        key = bucket_key(play)
        if key is not None:
            buckets.setdefault(key, []).append(play)
    return buckets


async def load_bucket(repo: PlayRepository, key: BucketKey) -> list[Play]:
    return await repo.find_plays(group_id=key.group_id, game_id=key.game_id, played_on=key.played_on)


async def find_candidates(repo: PlayRepository, play: Play) -> list[Play]:
    """Return every play sharing the play's game, date and group, the play included.

    A play without a group has no candidates at all.
    """
    key = bucket_key(play)
    if key is None:
        return []
    candidates = [candidate for candidate in await load_bucket(repo, key) if candidate.id != play.id]
    candidates.append(play)
    return sorted(candidates, key=lambda candidate: candidate.id)
