#!/usr/bin/env python3
"""Command line runner for the OIS parser.

Fetches an export, parses it and writes any requested outputs.

Examples:
    # Parse a local file and write JSONL + GeoJSON
    ois-parse --input data/ois.csv --jsonl output/ois.jsonl --geojson output/ois.geojson

    # Fetch over HTTP and replace the SQLite store contents
    ois-parse --input https://example.org/ois.csv --db output/incidents.db --reload

    # See why rows were dropped
    ois-parse --input data/ois.csv --show-rejects -v
"""
import argparse
import logging
import os
import sys

from . import config, emit, store
from .extractor import parse_with_summary
from .fetch import InputUnreadable, load_raw_text


def _ensure_parent(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="OIS Parser - officer-involved shooting export to map markers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:", 1)[1],
    )
    parser.add_argument("--input", required=True, help="Path or http(s) URL of the export")
    parser.add_argument("--jsonl", default=None, help="Write parsed records as JSONL")
    parser.add_argument("--csv", default=None, help="Write parsed records as CSV")
    parser.add_argument("--geojson", default=None, help="Write map markers as a GeoJSON FeatureCollection")
    parser.add_argument("--db", nargs="?", const=config.DEFAULT_DB_PATH, default=None,
                        help=f"Store records in SQLite (default path: {config.DEFAULT_DB_PATH})")
    parser.add_argument("--reload", action="store_true",
                        help="With --db, replace all stored incidents instead of upserting")
    parser.add_argument("--timeout", type=float, default=config.HTTP_TIMEOUT, help="HTTP timeout in seconds")
    parser.add_argument("--max-rejects", type=int, default=config.MAX_REJECTIONS,
                        help="How many individual rejections to keep in the summary")
    parser.add_argument("--show-rejects", action="store_true", help="Print the kept rejections")
    parser.add_argument("--list", type=int, default=0, metavar="N", help="Print the first N parsed records")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv=None) -> int:
    """CLI entry point.

    Returns:
        Exit code: 0 on success, 1 when the input cannot be read, 130 on
        keyboard interrupt.
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        raw = load_raw_text(args.input, timeout=args.timeout)
    except InputUnreadable as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130

    result = parse_with_summary(raw, max_rejections=args.max_rejects)
    records, summary = result.records, result.summary
    print(f"[OK] {summary.rows_seen} rows: {summary.accepted} accepted, {summary.rejected} rejected")
    for reason, count in sorted(summary.reasons.items()):
        print(f"  {reason}: {count}")

    if args.show_rejects:
        for rej in summary.rejections:
            print(f"[WARN] row {rej.row_number} ({rej.reason}): {rej.excerpt}")

    if args.list:
        for line in emit.summary_lines(records, limit=args.list):
            print(line)

    schema = emit.load_schema()
    for rec in records:
        errs = emit.validate_record(rec, schema)
        if errs:
            print(f"[WARN] {rec.case_number} failed validation:", *errs, sep="\n  ")

    if args.jsonl:
        _ensure_parent(args.jsonl)
        emit.write_jsonl(records, args.jsonl)
        print(f"Wrote {args.jsonl}")
    if args.csv:
        _ensure_parent(args.csv)
        print(f"Wrote {emit.write_csv(records, args.csv)}")
    if args.geojson:
        _ensure_parent(args.geojson)
        emit.write_geojson(records, args.geojson)
        print(f"Wrote {args.geojson}")

    if args.db:
        conn = store.connect(args.db)
        try:
            store.init_store(conn)
            if args.reload:
                n = store.reload_incidents(conn, records)
            else:
                n = store.upsert_incidents(conn, records)
        finally:
            conn.close()
        print(f"Stored {n} incidents in {args.db}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
