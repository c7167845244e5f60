"""SQLite-backed play repository."""

from __future__ import annotations

import asyncio
import contextlib
from datetime import date, datetime
from typing import TYPE_CHECKING

import structlog

from shared.dal.models import Participant, Play
from shared.dal.play_repository import PlayRepository

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import AsyncIterator, Mapping, Sequence

    from shared.dal.models import DedupState
    from shared.db.connection import Database

logger = structlog.get_logger()

_PLAY_COLUMNS = (
    "id, game_id, group_id, created_by_user_id, played_on, created_at, external_play_id, "
    "comment, game_length_minutes, is_excluded, leading_play_id, excluded_at, exclusion_reason"
)
_PARTICIPANT_COLUMNS = (
    "id, play_id, user_id, external_username, guest_name, score, is_winner, is_new_player, position"
)
_UPDATABLE_COLUMNS = frozenset(
    {"game_id", "group_id", "played_on", "external_play_id", "comment", "game_length_minutes"},
)
_IDENTITY_COLUMNS = ("user_id", "external_username", "guest_name")


def _to_db(value: object) -> object:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


class SqlitePlayRepository(PlayRepository):
    """SQLite implementation of PlayRepository.

    Transactions are serialized with an asyncio lock and opened with
    BEGIN IMMEDIATE, so two overlapping syncs never interleave their
    read-modify-write cycles over the same candidate set.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task | None = None

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        task = asyncio.current_task()
        if task is not None and self._owner is task:
            raise RuntimeError("Nested transactions are not supported")
        async with self._lock:
            self._owner = task
            try:
                with self._db.transaction():
                    yield
            finally:
                self._owner = None

    async def get_play(self, play_id: int) -> Play | None:
        plays = self._select_plays("id = ?", (play_id,))
        return plays[0] if plays else None

    async def find_plays(
        self,
        *,
        group_id: int | None = None,
        game_id: int | None = None,
        played_on: date | None = None,
    ) -> list[Play]:
        return self._select_filtered(
            "group_id IS NOT NULL",
            group_id=group_id,
            game_id=game_id,
            played_on=played_on,
        )

    async def find_counted_plays(
        self,
        *,
        group_id: int | None = None,
        game_id: int | None = None,
    ) -> list[Play]:
        return self._select_filtered("is_excluded = 0", group_id=group_id, game_id=game_id)

    async def get_excluded_plays(self, leading_play_id: int) -> list[Play]:
        return self._select_plays("leading_play_id = ? AND is_excluded = 1", (leading_play_id,))

    async def save_dedup_states(self, states: Sequence[DedupState]) -> None:
        self._require_transaction()
        for state in states:
            self._write_dedup_state(state)

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
    ) -> Play:
        self._require_transaction()
        cursor = self._db.connection.execute(
            "INSERT INTO plays (game_id, group_id, created_by_user_id, played_on, created_at, "
            "external_play_id, comment, game_length_minutes) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                game_id,
                group_id,
                created_by_user_id,
                played_on.isoformat(),
                created_at.isoformat(),
                external_play_id,
                comment,
                game_length_minutes,
            ),
        )
        play_id = cursor.lastrowid
        if play_id is None:  # pragma: no cover
            raise RuntimeError("INSERT into plays did not return a row id")
        self._insert_participants(play_id, participants)
        play = await self.get_play(play_id)
        if play is None:  # pragma: no cover
            raise RuntimeError(f"Play {play_id} vanished after insert")
        return play

    async def update_play(self, play_id: int, changes: Mapping[str, object]) -> None:
        self._require_transaction()
        unknown = set(changes) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Columns cannot be updated through update_play: {sorted(unknown)}")
        if not changes:
            return
        columns = sorted(changes)
        assignments = ", ".join(f"{column} = ?" for column in columns)
        params = [_to_db(changes[column]) for column in columns]
        cursor = self._db.connection.execute(
            f"UPDATE plays SET {assignments} WHERE id = ?",  # noqa: S608 - columns come from a whitelist
            (*params, play_id),
        )
        if cursor.rowcount == 0:
            raise ValueError(f"Play {play_id} does not exist")

    async def replace_participants(self, play_id: int, participants: Sequence[Participant]) -> None:
        self._require_transaction()
        self._db.connection.execute("DELETE FROM play_participants WHERE play_id = ?", (play_id,))
        self._insert_participants(play_id, participants)

    async def set_new_player_flags(self, flags: Mapping[int, bool]) -> None:
        self._require_transaction()
        self._db.connection.executemany(
            "UPDATE play_participants SET is_new_player = ? WHERE id = ?",
            [(int(is_new), participant_id) for participant_id, is_new in flags.items()],
        )

    async def delete_play(self, play_id: int) -> bool:
        self._require_transaction()
        cursor = self._db.connection.execute("DELETE FROM plays WHERE id = ?", (play_id,))
        if cursor.rowcount == 0:
            logger.warning("delete_play had no effect (not found)", play_id=play_id)
            return False
        return True

    async def count_counted_plays_with_participant(
        self,
        game_id: int,
        participant: Participant,
        *,
        exclude_play_id: int | None = None,
    ) -> int:
        column = next(name for name in _IDENTITY_COLUMNS if getattr(participant, name) is not None)
        sql = (
            "SELECT COUNT(DISTINCT p.id) FROM plays p "
            "JOIN play_participants pp ON pp.play_id = p.id "
            f"WHERE p.game_id = ? AND p.is_excluded = 0 AND pp.{column} = ?"  # noqa: S608 - column from a fixed tuple
        )
        params: list[object] = [game_id, getattr(participant, column)]
        if exclude_play_id is not None:
            sql += " AND p.id != ?"
            params.append(exclude_play_id)
        row = self._db.connection.execute(sql, params).fetchone()
        return row[0]

    # -- private helpers --

    def _require_transaction(self) -> None:
        if not self._db.in_transaction:
            raise RuntimeError("Play writes must run inside PlayRepository.transaction()")

    def _write_dedup_state(self, state: DedupState) -> None:
        cursor = self._db.connection.execute(
            "UPDATE plays SET is_excluded = ?, leading_play_id = ?, excluded_at = ?, exclusion_reason = ? WHERE id = ?",
            (
                int(state.is_excluded),
                state.leading_play_id,
                _to_db(state.excluded_at),
                state.exclusion_reason,
                state.play_id,
            ),
        )
        if cursor.rowcount == 0:
            raise ValueError(f"Play {state.play_id} does not exist")

    def _insert_participants(self, play_id: int, participants: Sequence[Participant]) -> None:
        self._db.connection.executemany(
            "INSERT INTO play_participants (play_id, user_id, external_username, guest_name, score, "
            "is_winner, is_new_player, position) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    play_id,
                    p.user_id,
                    p.external_username,
                    p.guest_name,
                    p.score,
                    int(p.is_winner),
                    int(p.is_new_player),
                    p.position,
                )
                for p in participants
            ],
        )

    def _select_filtered(
        self,
        base_clause: str,
        *,
        group_id: int | None = None,
        game_id: int | None = None,
        played_on: date | None = None,
    ) -> list[Play]:
        clauses = [base_clause]
        params: list[object] = []
        if group_id is not None:
            clauses.append("group_id = ?")
            params.append(group_id)
        if game_id is not None:
            clauses.append("game_id = ?")
            params.append(game_id)
        if played_on is not None:
            clauses.append("played_on = ?")
            params.append(played_on.isoformat())
        return self._select_plays(" AND ".join(clauses), tuple(params))

    def _select_plays(self, where: str, params: Sequence[object]) -> list[Play]:
        """Load plays matching a WHERE clause with their participants in two queries."""
        conn = self._db.connection
        play_rows = conn.execute(
            f"SELECT {_PLAY_COLUMNS} FROM plays WHERE {where} ORDER BY id",  # noqa: S608 - internal clauses only
            params,
        ).fetchall()
        if not play_rows:
            return []
        participant_rows = conn.execute(
            f"SELECT {_PARTICIPANT_COLUMNS} FROM play_participants "  # noqa: S608 - internal clauses only
            f"WHERE play_id IN (SELECT id FROM plays WHERE {where}) ORDER BY play_id, id",
            params,
        ).fetchall()
        participants_by_play: dict[int, list[Participant]] = {}
        for row in participant_rows:
            participants_by_play.setdefault(row["play_id"], []).append(_participant_from_row(row))
        return [
            Play.model_validate({**dict(row), "participants": tuple(participants_by_play.get(row["id"], ()))})
            for row in play_rows
        ]


def _participant_from_row(row: sqlite3.Row) -> Participant:
    data = dict(row)
    data.pop("play_id")
    return Participant.model_validate(data)
