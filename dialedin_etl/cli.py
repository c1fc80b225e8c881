from __future__ import annotations

import argparse
import asyncio
import json
from datetime import datetime
from pathlib import Path

from dialedin_etl.checklist import get_checklist_status
from dialedin_etl.db.models import INGESTION_SOURCES, SOURCE_UPLOAD
from dialedin_etl.db.session import SessionLocal
from dialedin_etl.pipeline import IngestPipeline
from dialedin_etl.reconcile import IncompleteResult, Reconciler
from dialedin_etl.services.logging import configure_logging


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="DialedIn report ingestion.")
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Ingest report files and reconcile their dates.")
    ingest.add_argument("files", nargs="+")
    ingest.add_argument("--source", choices=INGESTION_SOURCES, default=SOURCE_UPLOAD)

    checklist = sub.add_parser("checklist", help="Show which report types are in for a date.")
    checklist.add_argument("--date", required=True)

    reconcile = sub.add_parser("reconcile", help="Recompute daily results for a date.")
    reconcile.add_argument("--date", required=True)
    return parser.parse_args(argv)


def _date(value: str):
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise SystemExit(f"Invalid date (expected YYYY-MM-DD): {value}")


async def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging()

    if args.command == "ingest":
        files = [(Path(p).name, Path(p).read_bytes()) for p in args.files]
        batch = await IngestPipeline().run(files, args.source)
        for outcome in batch.files:
            print(json.dumps(outcome.to_dict()))
        for report_date, result in batch.reconciled.items():
            state = "waiting" if isinstance(result, IncompleteResult) else ("partial" if result.is_partial else "complete")
            print(f"{report_date.isoformat()}: {state} ({result.checklist.received_count}/{result.checklist.total_count})")
        return 0 if batch.processed else 1

    report_date = _date(args.date)
    if args.command == "checklist":
        with SessionLocal() as db:
            status = get_checklist_status(db, report_date)
        print(json.dumps(status.to_dict(), indent=2))
        return 0

    result = await Reconciler().reconcile(report_date)
    if isinstance(result, IncompleteResult):
        print(f"Agent Summary not received for {report_date.isoformat()}; nothing computed.")
        return 1
    print(f"{report_date.isoformat()}: computed, is_partial={result.is_partial}")
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
