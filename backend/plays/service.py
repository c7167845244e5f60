"""Play management workflow: create, edit and delete plays with deduplication kept in sync."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from plays.dedup.exclusions import utc_now
from plays.dedup.service import DeduplicationService
from plays.exceptions import PlayNotFoundError, PlayValidationError
from plays.settings import PlaySettings
from shared.dal.models import Participant

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import datetime

    from shared.dal.models import ParticipantDraft, Play, PlayDraft, PlayUpdate
    from shared.dal.play_repository import PlayRepository

logger = structlog.get_logger()

_REQUIRED_COLUMNS = ("game_id", "played_on")


def _blank_to_none(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value


def resolve_participant(draft: ParticipantDraft) -> Participant:
    """Pick the participant identity by priority: user id, external username, guest name."""
    user_id = draft.user_id
    external_username = _blank_to_none(draft.external_username) if user_id is None else None
    guest_name = _blank_to_none(draft.guest_name) if user_id is None and external_username is None else None
    if user_id is None and external_username is None and guest_name is None:
        raise PlayValidationError("Each participant needs a user id, external username, or guest name")
    return Participant(
        user_id=user_id,
        external_username=external_username,
        guest_name=guest_name,
        score=draft.score,
        is_winner=draft.is_winner,
        position=draft.position,
    )


class PlayService:
    """Coordinate play writes with the deduplication engine.

    Each operation runs in a single repository transaction, so a play is
    never visible with stale deduplication state.
    """

    def __init__(
        self,
        repo: PlayRepository,
        dedup: DeduplicationService | None = None,
        *,
        settings: PlaySettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repo
        self._dedup = dedup or DeduplicationService(repo, clock=clock)
        self._settings = settings or PlaySettings()
        self._clock = clock

    async def get_play(self, play_id: int) -> Play:
        play = await self._repo.get_play(play_id)
        if play is None:
            raise PlayNotFoundError(play_id)
        return play

    async def list_counted_plays(self, *, group_id: int | None = None, game_id: int | None = None) -> list[Play]:
        """Plays that count towards statistics: one representative per duplicate event.

        Plays outside any group are never excluded, so they always count.
        """
        return await self._repo.find_counted_plays(group_id=group_id, game_id=game_id)

    async def create_play(self, draft: PlayDraft, *, created_by_user_id: int) -> Play:
        participants = self._resolve_participants(draft.participants)
        async with self._repo.transaction():
            play = await self._repo.create_play(
                game_id=draft.game_id,
                group_id=draft.group_id,
                created_by_user_id=created_by_user_id,
                played_on=draft.played_on,
                created_at=draft.created_at or self._clock(),
                external_play_id=draft.external_play_id,
                comment=draft.comment,
                game_length_minutes=draft.game_length_minutes,
                participants=participants,
            )
            await self._detect_new_players(play)
            await self._dedup.resync_play(play.id)
            created = await self.get_play(play.id)

        logger.info("play created", play_id=created.id, game_id=created.game_id, group_id=created.group_id)
        return created

    async def update_play(self, play_id: int, update: PlayUpdate) -> Play:
        changes = update.changed_columns()
        for column in _REQUIRED_COLUMNS:
            if column in changes and changes[column] is None:
                raise PlayValidationError(f"{column} cannot be cleared")
        participants = None if update.participants is None else self._resolve_participants(update.participants)

        async with self._repo.transaction():
            await self.get_play(play_id)
            await self._repo.update_play(play_id, changes)
            if participants is not None:
                await self._repo.replace_participants(play_id, participants)
            if participants is not None or "game_id" in changes:
                await self._detect_new_players(await self.get_play(play_id))
            await self._dedup.resync_play(play_id)
            updated = await self.get_play(play_id)

        logger.info("play updated", play_id=play_id, columns=sorted(changes), participants_replaced=participants is not None)
        return updated

    async def delete_play(self, play_id: int) -> None:
        """Delete a play, promoting one of its duplicates first if it was leading.

        The promoted play is re-evaluated after the row is gone, so the
        deleted play can no longer win leading selection.
        """
        async with self._repo.transaction():
            promoted = await self._dedup.promote_successor(play_id)
            await self._repo.delete_play(play_id)
            if promoted is not None:
                await self._dedup.resync_play(promoted.id)

        logger.info("play deleted", play_id=play_id, promoted_play_id=promoted.id if promoted else None)

    # -- private helpers --

    def _resolve_participants(self, drafts: Sequence[ParticipantDraft]) -> list[Participant]:
        if len(drafts) < self._settings.min_participants:
            raise PlayValidationError(f"A play must have at least {self._settings.min_participants} participant(s)")
        if len(drafts) > self._settings.max_participants:
            raise PlayValidationError(f"A play cannot have more than {self._settings.max_participants} participants")
        return [resolve_participant(draft) for draft in drafts]

    async def _detect_new_players(self, play: Play) -> None:
        """Flag participants who have no other counted play of this game."""
        flags: dict[int, bool] = {}
        for participant in play.participants:
            if participant.id is None:  # pragma: no cover
                continue
            previous = await self._repo.count_counted_plays_with_participant(
                play.game_id,
                participant,
                exclude_play_id=play.id,
            )
            flags[participant.id] = previous == 0
        if flags:
            await self._repo.set_new_player_flags(flags)
