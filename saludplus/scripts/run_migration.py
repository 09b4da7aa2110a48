from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from saludplus.core.settings import configure_logging, settings
from saludplus.db.history_store import PatientHistoryStore
from saludplus.db.session import SessionLocal
from saludplus.services.migration.orchestrator import run_migration
from saludplus.services.migration.source import CsvSource

logger = logging.getLogger("saludplus.scripts.run_migration")


def _write_stats(path: str, payload: dict[str, object]) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(payload, indent=2, sort_keys=True, default=str), encoding="utf-8")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Load the appointment CSV into the relational store and patient histories."
    )
    parser.add_argument("--csv", default=None, help="CSV path (defaults to SIMULACRO_CSV_PATH).")
    parser.add_argument(
        "--no-clear",
        action="store_true",
        help="Keep existing rows and documents; upsert on top of them.",
    )
    parser.add_argument("--stats-out", default=None, help="Write the summary JSON to this file.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings)
    csv_path = args.csv or settings.csv_path
    source = CsvSource(csv_path)
    store = PatientHistoryStore.from_settings(settings)

    logger.info("Starting migration from %s", csv_path)
    summary = run_migration(
        SessionLocal,
        store,
        source,
        clear_before=not args.no_clear,
        source_label=csv_path,
    )
    payload = summary.as_dict()
    if args.stats_out:
        _write_stats(args.stats_out, payload)
    print(json.dumps(payload, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
