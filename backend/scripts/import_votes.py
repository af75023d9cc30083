"""Import the jury and televote matrices of one contest venue into Supabase.

Reads ``<data-dir>/<year>_<venue>_jury.csv`` and ``<year>_<venue>_public.csv``
and replaces that venue's songs and votes.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from esc_core.importers import import_votes
from esc_core.store import DataStore

VENUE_CODES = ("final", "sm1", "sm2")


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--year", type=int, required=True)
    parser.add_argument("--venue", choices=VENUE_CODES, required=True)
    parser.add_argument("--data-dir", type=Path, default=Path("data"))
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    try:
        args = _parse_args(argv)
    except SystemExit as exc:
        return 0 if exc.code == 0 else 1
    load_dotenv()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="%(levelname)s %(message)s")

    store = DataStore()
    try:
        summary = import_votes(store, args.year, args.venue, args.data_dir)
    except (ValueError, RuntimeError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    print(f"Imported {args.year} {summary.venue_type} (contest {summary.contest_id}, venue {summary.venue_id}):")
    print(f"- Songs: {summary.songs}")
    print(f"- Jury votes: {summary.jury_votes}")
    print(f"- Televotes: {summary.televote_votes}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
