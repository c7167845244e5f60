"""Persistence models for the data access layer."""

from datetime import UTC, date, datetime
from typing import Self

from pydantic import BaseModel, Field, field_validator, model_validator


def _populated_identity_fields(user_id: int | None, external_username: str | None, guest_name: str | None) -> int:
    return sum(value is not None for value in (user_id, external_username, guest_name))


class Participant(BaseModel, frozen=True):
    """A person attached to a play, identified by exactly one identity field."""

    id: int | None = None  # row id, None until persisted
    user_id: int | None = None  # registered user
    external_username: str | None = None  # play-tracking service username
    guest_name: str | None = None  # free-text guest
    score: float | None = None
    is_winner: bool = False
    is_new_player: bool = False  # first non-excluded play of this game for this identity
    position: int | None = None

    @model_validator(mode="after")
    def _validate_identity(self) -> Self:
        if _populated_identity_fields(self.user_id, self.external_username, self.guest_name) != 1:
            raise ValueError("Participant must have exactly one of user_id, external_username, guest_name")
        return self


class DedupState(BaseModel, frozen=True):
    """Deduplication fields of a single play.

    A play is either leading (not excluded, no leader, no exclusion metadata)
    or excluded (pointing at the id of another play).
    """

    play_id: int
    is_excluded: bool = False
    leading_play_id: int | None = None
    excluded_at: datetime | None = None
    exclusion_reason: str | None = None

    @model_validator(mode="after")
    def _validate_shape(self) -> Self:
        if self.is_excluded:
            if self.leading_play_id is None:
                raise ValueError(f"Excluded play {self.play_id} must reference a leading play")
            if self.leading_play_id == self.play_id:
                raise ValueError(f"Play {self.play_id} cannot lead itself")
        elif self.leading_play_id is not None or self.excluded_at is not None or self.exclusion_reason is not None:
            raise ValueError(f"Leading play {self.play_id} must not carry exclusion fields")
        return self

    @classmethod
    def leading(cls, play_id: int) -> Self:
        return cls(play_id=play_id)


class Play(BaseModel, frozen=True):
    """Snapshot of a stored play with its participants eagerly attached."""

    id: int
    game_id: int
    group_id: int | None = None  # plays outside a group are never deduplicated
    created_by_user_id: int
    played_on: date
    created_at: datetime
    external_play_id: int | None = None
    comment: str | None = None
    game_length_minutes: int | None = None
    is_excluded: bool = False
    leading_play_id: int | None = None
    excluded_at: datetime | None = None
    exclusion_reason: str | None = None
    participants: tuple[Participant, ...] = ()

    @field_validator("created_at", "excluded_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        # naive timestamps are stored as UTC; keep them comparable with aware ones
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def is_leading(self) -> bool:
        return not self.is_excluded and self.leading_play_id is None

    @property
    def dedup_state(self) -> DedupState:
        return DedupState(
            play_id=self.id,
            is_excluded=self.is_excluded,
            leading_play_id=self.leading_play_id,
            excluded_at=self.excluded_at,
            exclusion_reason=self.exclusion_reason,
        )


class ParticipantDraft(BaseModel, frozen=True):
    """Participant input for creating or updating a play.

    Several identity fields may be supplied; the highest-priority one wins
    (user id, then external username, then guest name).
    """

    user_id: int | None = None
    external_username: str | None = None
    guest_name: str | None = None
    score: float | None = None
    is_winner: bool = False
    position: int | None = None


class PlayDraft(BaseModel, frozen=True):
    """Input for creating a play."""

    game_id: int
    group_id: int | None = None
    played_on: date
    created_at: datetime | None = None  # defaults to the service clock
    external_play_id: int | None = None
    comment: str | None = None
    game_length_minutes: int | None = Field(default=None, ge=0)
    participants: list[ParticipantDraft] = Field(default_factory=list)


class PlayUpdate(BaseModel, frozen=True):
    """Partial update for a play. Only explicitly set fields are applied."""

    game_id: int | None = None
    group_id: int | None = None
    played_on: date | None = None
    external_play_id: int | None = None
    comment: str | None = None
    game_length_minutes: int | None = Field(default=None, ge=0)
    participants: list[ParticipantDraft] | None = None

    def changed_columns(self) -> dict[str, object]:
        """Return the set play columns (participants excluded), keyed by column name."""
        return {name: getattr(self, name) for name in self.model_fields_set if name != "participants"}
