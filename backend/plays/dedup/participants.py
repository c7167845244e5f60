"""Participant identity normalization and matching.

Each participant reduces to a (user id, external username, guest name) triple
with exactly one field populated. Two positional participants match only when
both carry the same kind of identity and its values are equal; there is no
fallback across identity kinds.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from shared.dal.models import Participant, Play


class ParticipantIdentity(NamedTuple):
    user_id: int | None
    external_username: str | None
    guest_name: str | None

    @classmethod
    def of(cls, participant: Participant) -> ParticipantIdentity:
        return cls(participant.user_id, participant.external_username, participant.guest_name)

    @property
    def sort_key(self) -> tuple[str, str, str]:
        return (
            str(self.user_id) if self.user_id is not None else "",
            self.external_username or "",
            self.guest_name or "",
        )


def normalize_participants(play: Play) -> tuple[ParticipantIdentity, ...]:
    """Return the play's participant identities in a stable, order-independent order."""
    return tuple(sorted((ParticipantIdentity.of(p) for p in play.participants), key=lambda i: i.sort_key))


def identities_match(a: ParticipantIdentity, b: ParticipantIdentity) -> bool:
    if a.user_id is not None and b.user_id is not None:
        return a.user_id == b.user_id
    if a.external_username is not None and b.external_username is not None:
        return a.external_username == b.external_username
    if a.guest_name is not None and b.guest_name is not None:
        return a.guest_name == b.guest_name
    return False


def same_participants(a: tuple[ParticipantIdentity, ...], b: tuple[ParticipantIdentity, ...]) -> bool:
    """Compare two normalized participant lists position by position.

    Two empty lists compare equal.
    """
    if len(a) != len(b):
        return False
    return all(identities_match(x, y) for x, y in zip(a, b, strict=True))
