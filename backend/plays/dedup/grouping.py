"""Partition candidate plays into duplicate groups.

Groups are the connected components of the pairwise duplicate relation,
built with a union-find over the candidate set. If P matches Q and Q
matches R, all three form one group even when P and R do not match
directly (for example because they share a creator).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from plays.dedup.participants import normalize_participants, same_participants
from plays.dedup.types import DuplicateGroup

if TYPE_CHECKING:
    from collections.abc import Sequence

    from plays.dedup.participants import ParticipantIdentity
    from shared.dal.models import Play


class _DisjointSet:
    """Union-find over list indices with path halving."""

    def __init__(self, size: int) -> None:
        self._parent = list(range(size))

    def find(self, i: int) -> int:
        while self._parent[i] != i:
            self._parent[i] = self._parent[self._parent[i]]
            i = self._parent[i]
        return i

    def union(self, a: int, b: int) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a != root_b:
            # smaller root wins so component roots stay stable
            self._parent[max(root_a, root_b)] = min(root_a, root_b)


def is_duplicate_pair(
    a: Play,
    b: Play,
    *,
    a_identities: tuple[ParticipantIdentity, ...] | None = None,
    b_identities: tuple[ParticipantIdentity, ...] | None = None,
) -> bool:
    """Check whether two plays describe the same event.

    Requires different creators and positionally matching participants.
    Precomputed identities may be passed to avoid re-normalizing.
    """
    if a.created_by_user_id == b.created_by_user_id:
        return False
    if a_identities is None:
        a_identities = normalize_participants(a)
    if b_identities is None:
        b_identities = normalize_participants(b)
    return same_participants(a_identities, b_identities)


def group_duplicates(plays: Sequence[Play]) -> list[DuplicateGroup]:
    """Return duplicate groups (size >= 2) among the given candidates.

    Members are ordered by id and groups by their lowest member id, so the
    result does not depend on the order of the input.
    """
    ordered = sorted({play.id: play for play in plays}.values(), key=lambda play: play.id)
    identities = [normalize_participants(play) for play in ordered]
    components = _DisjointSet(len(ordered))

    for i in range(len(ordered)):
        for j in range(i + 1, len(ordered)):
            if is_duplicate_pair(
                ordered[i],
                ordered[j],
                a_identities=identities[i],
                b_identities=identities[j],
            ):
                components.union(i, j)

    members: dict[int, list[Play]] = {}
    for i, play in enumerate(ordered):
        members.setdefault(components.find(i), []).append(play)

    return [DuplicateGroup(plays=tuple(group)) for _, group in sorted(members.items()) if len(group) >= 2]
