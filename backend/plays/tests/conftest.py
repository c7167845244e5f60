from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from plays.dedup import DeduplicationService
from plays.service import PlayService
from plays.settings import PlaySettings
from plays.tests.helpers.factories import FixedClock
from shared.db import Database, SqlitePlayRepository

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def db(tmp_path: Path):
    database = Database(tmp_path / "test.db")
    database.connect()
    yield database
    database.close()


@pytest.fixture
def repo(db: Database) -> SqlitePlayRepository:
    return SqlitePlayRepository(db)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def dedup(repo: SqlitePlayRepository, clock: FixedClock) -> DeduplicationService:
    return DeduplicationService(repo, clock=clock)


@pytest.fixture
def settings(tmp_path: Path) -> PlaySettings:
    return PlaySettings(database_path=str(tmp_path / "test.db"), log_dir=str(tmp_path / "logs"))


@pytest.fixture
def service(
    repo: SqlitePlayRepository,
    dedup: DeduplicationService,
    settings: PlaySettings,
    clock: FixedClock,
) -> PlayService:
    return PlayService(repo, dedup, settings=settings, clock=clock)
