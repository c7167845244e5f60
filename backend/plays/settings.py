"""Play service configuration via environment variables."""

from typing import Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class PlaySettings(BaseSettings):
    model_config = {"env_prefix": "PLAYS_"}

    # SQLite database file path
    database_path: str = Field(default="backend/storage.db", min_length=1)
    log_dir: str = Field(default="backend/logs/plays", min_length=1)

    # Participant count limits enforced when plays are created or edited
    min_participants: int = Field(default=1, ge=1)
    max_participants: int = Field(default=30, ge=1)

    @model_validator(mode="after")
    def _validate_participant_limits(self) -> Self:
        if self.max_participants < self.min_participants:
            raise ValueError("max_participants must be >= min_participants")
        return self
