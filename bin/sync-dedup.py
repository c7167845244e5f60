"""Recalculate play deduplication for a scope of stored plays.

Usage:
    uv run python bin/sync-dedup.py
    uv run python bin/sync-dedup.py --group 3
    uv run python bin/sync-dedup.py --group 3 --game 174430 --date 2025-01-07

Every filter is optional; with none given, all grouped plays are processed.
Each (game, date, group) bucket is committed in its own transaction, so the
script can be interrupted and re-run safely.
"""

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from plays.dedup import DeduplicationService
from plays.settings import PlaySettings
from shared.db import Database, SqlitePlayRepository
from shared.logging import setup_logging


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--group", type=int, default=None, help="only plays of this group id")
    parser.add_argument("--game", type=int, default=None, help="only plays of this game id")
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="only plays on this date (YYYY-MM-DD)")
    parser.add_argument("--database", default=None, help="SQLite file (default: PLAYS_DATABASE_PATH)")
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = PlaySettings()
    setup_logging(log_dir=settings.log_dir)

    db = Database(args.database or settings.database_path)
    db.connect()
    try:
        service = DeduplicationService(SqlitePlayRepository(db))
        report = await service.sync_for_scope(group_id=args.group, game_id=args.game, played_on=args.date)
    finally:
        db.close()

    print(f"Buckets processed: {report.buckets}")
    print(f"Duplicate groups:  {report.groups}")
    print(f"Plays excluded:    {report.excluded}")
    print(f"Plays cleared:     {report.cleared}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
