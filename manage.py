"""
manage.py
Command line entry point: init | seed | check | serve.

Usage:
    python manage.py init
    python manage.py seed --reset
    python manage.py check
    python manage.py serve --port 3000
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

import db
import store
import utils
from config import Settings, configure_logging, load_settings

logger = logging.getLogger(__name__)


def cmd_init(settings: Settings, args: argparse.Namespace) -> int:
    db.init_db()
    logger.info("Database ready at %s", settings.db_file)
    return 0


def cmd_seed(settings: Settings, args: argparse.Namespace) -> int:
    db.init_db()
    counts = utils.insert_sample_data(settings.academy_name, reset=args.reset)
    logger.info("Sample data inserted%s", " (existing data cleared)" if args.reset else "")
    _print_counts(counts)
    return 0


def cmd_check(settings: Settings, args: argparse.Namespace) -> int:
    if not Path(settings.db_file).exists():
        logger.error("Database file %s does not exist. Run `manage.py init` first.", settings.db_file)
        return 1
    if not db.ping():
        logger.error("Database at %s is not reachable", settings.db_file)
        return 1
    db.init_db()
    _print_counts(store.counts())
    return 0


def cmd_serve(settings: Settings, args: argparse.Namespace) -> int:
    import server

    overrides = {k: v for k, v in (("host", args.host), ("port", args.port)) if v is not None}
    server.main(dataclasses.replace(settings, **overrides))
    return 0


def _print_counts(counts: dict[str, int]) -> None:
    width = max(len(name) for name in counts)
    for name, count in counts.items():
        print(f"{name.ljust(width)}  {count}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sports academy manager")
    parser.add_argument("--db-file", type=Path, help="SQLite file (default: ACADEMY_DB_FILE or academy.db)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create the database tables").set_defaults(func=cmd_init)

    seed = sub.add_parser("seed", help="Insert sample data")
    seed.add_argument("--reset", action="store_true", help="Delete existing rows first")
    seed.set_defaults(func=cmd_seed)

    sub.add_parser("check", help="Print row counts per collection").set_defaults(func=cmd_check)

    serve = sub.add_parser("serve", help="Run the REST API with uvicorn")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(func=cmd_serve)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    if args.db_file is not None:
        settings = dataclasses.replace(settings, db_file=args.db_file.expanduser().resolve())
    configure_logging(settings.log_level)
    db.configure(settings.db_file)
    return args.func(settings, args)


if __name__ == "__main__":
    sys.exit(main())
