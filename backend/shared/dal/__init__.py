"""Data access layer: repository interfaces and shared persistence models."""

from shared.dal.models import DedupState, Participant, ParticipantDraft, Play, PlayDraft, PlayUpdate
from shared.dal.play_repository import PlayRepository

__all__ = [
    "DedupState",
    "Participant",
    "ParticipantDraft",
    "Play",
    "PlayDraft",
    "PlayRepository",
    "PlayUpdate",
]
