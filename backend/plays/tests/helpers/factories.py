"""Builders for plays and participants shared by play tests."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from shared.dal.models import Participant, Play

if TYPE_CHECKING:
    from collections.abc import Sequence

    from shared.dal.play_repository import PlayRepository

GAME_ID = 174430
GROUP_ID = 3
PLAYED_ON = date(2025, 1, 7)
T0 = datetime(2025, 1, 7, 18, 0, tzinfo=UTC)


def user(user_id: int, **kwargs: Any) -> Participant:
    return Participant(user_id=user_id, **kwargs)


def external(username: str, **kwargs: Any) -> Participant:
    return Participant(external_username=username, **kwargs)


def guest(name: str, **kwargs: Any) -> Participant:
    return Participant(guest_name=name, **kwargs)


def make_play(
    play_id: int,
    *,
    created_by: int = 1,
    participants: Sequence[Participant] = (),
    created_at: datetime = T0,
    **overrides: Any,
) -> Play:
    """Build an in-memory play in the default bucket."""
    fields: dict[str, Any] = {
        "id": play_id,
        "game_id": GAME_ID,
        "group_id": GROUP_ID,
        "created_by_user_id": created_by,
        "played_on": PLAYED_ON,
        "created_at": created_at,
        "participants": tuple(participants),
    }
    fields.update(overrides)
    return Play(**fields)


async def insert_play(
    repo: PlayRepository,
    *,
    created_by: int = 1,
    participants: Sequence[Participant] = (),
    created_at: datetime = T0,
    game_id: int = GAME_ID,
    group_id: int | None = GROUP_ID,
    played_on: date = PLAYED_ON,
    external_play_id: int | None = None,
    comment: str | None = None,
    game_length_minutes: int | None = None,
) -> Play:
    """Store a play in its own transaction without running deduplication."""
    async with repo.transaction():
        return await repo.create_play(
            game_id=game_id,
            group_id=group_id,
            created_by_user_id=created_by,
            played_on=played_on,
            created_at=created_at,
            external_play_id=external_play_id,
            comment=comment,
            game_length_minutes=game_length_minutes,
            participants=participants,
        )


async def reload(repo: PlayRepository, play: Play | int) -> Play:
    play_id = play if isinstance(play, int) else play.id
    stored = await repo.get_play(play_id)
    assert stored is not None, f"play {play_id} is gone"
    return stored


class FixedClock:
    """Deterministic clock for exclusion timestamps."""

    def __init__(self, now: datetime = T0 + timedelta(hours=1)) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)
