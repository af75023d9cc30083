"""Import a country's song history CSV (e.g. ``Poland.csv``) into Supabase.

Existing songs are matched on contest year and venue and updated in place;
the rest are inserted. Contests must already exist.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from esc_core.importers import import_songs
from esc_core.store import DataStore


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--country", required=True, help="country name as stored in the database")
    parser.add_argument("--file", dest="csv_file", help="CSV file (defaults to <country>.csv)")
    parser.add_argument("--max-year", type=int, help="ignore rows after this year")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    try:
        args = _parse_args(argv)
    except SystemExit as exc:
        return 0 if exc.code == 0 else 1
    load_dotenv()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="%(levelname)s %(message)s")

    csv_path = Path(args.csv_file or f"{args.country}.csv")
    if not csv_path.exists():
        print(f"ERROR: CSV file not found: {csv_path}", file=sys.stderr)
        return 1

    store = DataStore()
    try:
        summary = import_songs(
            store,
            args.country,
            csv_path.read_text(encoding="utf-8-sig"),
            max_year=args.max_year,
        )
    except (LookupError, ValueError, RuntimeError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    print(f"Import completed for {summary.country}:")
    print(f"- Updated: {summary.updated} songs")
    print(f"- Inserted: {summary.inserted} songs")
    print(f"- Skipped: {summary.skipped} songs")
    if summary.failed:
        print(f"- Failed: {summary.failed} songs")
    return 1 if summary.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
