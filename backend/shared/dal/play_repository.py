"""Abstract interface for play persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from contextlib import AbstractAsyncContextManager
    from datetime import date, datetime

    from shared.dal.models import DedupState, Participant, Play


class PlayRepository(ABC):
    """Abstract interface for play persistence.

    Reads always return plays with their participants attached. Every write
    must run inside ``transaction()``; implementations raise RuntimeError
    for writes attempted outside of one.
    """

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Open a unit of work that commits on success and rolls back on any exception."""

    @abstractmethod
    async def get_play(self, play_id: int) -> Play | None: ...

    @abstractmethod
    async def find_plays(
        self,
        *,
        group_id: int | None = None,
        game_id: int | None = None,
        played_on: date | None = None,
    ) -> list[Play]:
        """Return grouped plays matching every given filter, ordered by id.

        Plays without a group are never returned: this is the candidate read
        of deduplication and scoped sync.
        """

    @abstractmethod
    async def find_counted_plays(
        self,
        *,
        group_id: int | None = None,
        game_id: int | None = None,
    ) -> list[Play]:
        """Return non-excluded plays, grouped or not, ordered by id.

        One representative per duplicate event; statistics queries read this.
        """

    @abstractmethod
    async def get_excluded_plays(self, leading_play_id: int) -> list[Play]:
        """Return excluded plays pointing at the given play, ordered by id."""

    @abstractmethod
    async def save_dedup_states(self, states: Sequence[DedupState]) -> None:
        """Persist the deduplication fields of each play. Other columns are untouched."""

    @abstractmethod
    async def create_play(
        self,
        *,
        game_id: int,
        group_id: int | None,
        created_by_user_id: int,
        played_on: date,
        created_at: datetime,
        external_play_id: int | None = None,
        comment: str | None = None,
        game_length_minutes: int | None = None,
        participants: Sequence[Participant] = (),
    ) -> Play: ...

    @abstractmethod
    async def update_play(self, play_id: int, changes: Mapping[str, object]) -> None:
        """Update play columns. Deduplication fields cannot be changed here."""

    @abstractmethod
    async def replace_participants(self, play_id: int, participants: Sequence[Participant]) -> None: ...

    @abstractmethod
    async def set_new_player_flags(self, flags: Mapping[int, bool]) -> None:
        """Set is_new_player per participant row id."""

    @abstractmethod
    async def delete_play(self, play_id: int) -> bool: ...

    @abstractmethod
    async def count_counted_plays_with_participant(
        self,
        game_id: int,
        participant: Participant,
        *,
        exclude_play_id: int | None = None,
    ) -> int:
        """Count non-excluded plays of a game that include the participant's identity."""
