"""Populate Supabase from the 1975-2019 per-vote spreadsheet."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from esc_core.importers import DEFAULT_SHEET_NAME, load_sheet_rows, populate_database
from esc_core.store import DataStore


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--file", type=Path, default=Path("data") / DEFAULT_SHEET_NAME)
    parser.add_argument("-c", "--cleanup", action="store_true", help="delete all existing rows first")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    try:
        args = _parse_args(argv)
    except SystemExit as exc:
        return 0 if exc.code == 0 else 1
    load_dotenv()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="%(levelname)s %(message)s")

    if not args.file.exists():
        print(f"ERROR: spreadsheet not found: {args.file}", file=sys.stderr)
        return 1

    # Read the whole sheet before --cleanup empties the tables.
    try:
        rows = list(load_sheet_rows(args.file))
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    store = DataStore()
    try:
        summary = populate_database(store, rows, cleanup=args.cleanup)
    except RuntimeError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    print(f"Loaded {summary.rows} rows")
    print(f"- Countries: {summary.countries}")
    print(f"- Contests: {summary.contests}")
    print(f"- Venues: {summary.venues}")
    print(f"- Songs: {summary.songs}")
    print(f"- Votes: {summary.votes}")
    for item in summary.errors:
        print(f"  - {item}")
    return 1 if summary.errors else 0


if __name__ == "__main__":
    raise SystemExit(main())
