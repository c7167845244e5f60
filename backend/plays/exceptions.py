"""Typed domain exceptions for play management and deduplication.

Repository failures (sqlite3.Error) are not wrapped: they propagate after the
surrounding transaction has rolled back, leaving the prior state intact.
"""


class PlayError(Exception):
    """Base exception for play management failures."""


class PlayNotFoundError(PlayError):
    """No play exists with the requested id."""

    def __init__(self, play_id: int) -> None:
        self.play_id = play_id
        super().__init__(f"Play {play_id} not found")


class PlayValidationError(PlayError):
    """Play input violates workflow rules (participant count, identity, required fields)."""


class DeduplicationInvariantError(PlayError):
    """A deduplication write would break the leading/excluded invariants.

    Raised before anything is written, so the transaction rolls back cleanly.
    """
