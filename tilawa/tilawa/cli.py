"""
Command line entry point: ``python -m tilawa <command>``.
"""

import argparse
import sys
from datetime import date
from pathlib import Path

from tilawa.config import get_settings
from tilawa.context import TilawaContext
from tilawa.core.juz import juz_of, juz_range, total_ayahs_in_juz
from tilawa.core.weekly import week_start
from tilawa.exceptions import TilawaError
from tilawa.logging_utils import setup_logging, write_practice_log


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tilawa", description="Juz rotation and recitation tools")
    parser.add_argument("--db", help="SQLite database file (overrides TILAWA_DATABASE_PATH)")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the database tables")

    p = sub.add_parser("juz-of", help="Juz containing a verse")
    p.add_argument("surah", type=int)
    p.add_argument("ayah", type=int)

    p = sub.add_parser("juz-range", help="First and last verse of a juz")
    p.add_argument("juz", type=int)

    p = sub.add_parser("week-start", help="Friday that starts the rotation week")
    p.add_argument("date", nargs="?", type=date.fromisoformat, help="YYYY-MM-DD, default today")

    p = sub.add_parser("available-juz", help="Unassigned juz in a community")
    p.add_argument("community_id", type=int)

    p = sub.add_parser("details", help="Juz table of a community")
    p.add_argument("community_id", type=int)

    p = sub.add_parser("export-practice", help="Write a user's listen counts to CSV")
    p.add_argument("user_id", type=int)
    p.add_argument("path")

    return parser


def run(args: argparse.Namespace) -> None:
    if args.command == "juz-of":
        print(juz_of(args.surah, args.ayah))
        return

    if args.command == "juz-range":
        rng = juz_range(args.juz)
        print(f"Juz {rng.juz_number}: {rng.start} - {rng.last_verse} "
              f"({total_ayahs_in_juz(rng.juz_number)} ayahs)")
        return

    if args.command == "week-start":
        print(week_start(args.date or date.today()))
        return

    ctx = TilawaContext()
    if args.db:
        ctx = TilawaContext(settings=ctx.settings.model_copy(update={"database_path": Path(args.db)}))

    if args.command == "init-db":
        ctx.initialize()
        print(f"Database ready at {ctx.db.path}")

    elif args.command == "available-juz":
        print(" ".join(str(j) for j in ctx.ledger.available_juz(args.community_id)))

    elif args.command == "details":
        details = ctx.ledger.details(args.community_id)
        print(f"{details.community.name} (admin {details.community.admin_id})")
        print("-" * 48)
        for slot in details.juz_data:
            holder = f"member {slot.member_id}" if slot.member_id is not None else "-"
            print(f"Juz {slot.juz_number:2d}  {holder:<14} {slot.completion_percentage:5.1f}%  "
                  f"{slot.status.value}")

    elif args.command == "export-practice":
        print(write_practice_log(ctx.history, args.user_id, args.path))


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level or get_settings().log_level)
    try:
        run(args)
    except TilawaError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 1
    return 0
