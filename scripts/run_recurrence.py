#!/usr/bin/env python3
"""
Administrative trigger for recurrence runs.

Materializes every recurring rule due on or before a date (default: today in
the configured timezone), purges expired soft-deleted rows, and reports how
many rules were processed.

Usage:
    python3 scripts/run_recurrence.py [--config PATH] [--database-url URL] COMMAND

Commands:
    init-db                   Create missing tables.
    run [--as-of YYYY-MM-DD]  Run once; prints {"processed": N} on success.
    serve                     Run the daily scheduler until interrupted.

Examples:
    # Catch up everything due today
    python3 scripts/run_recurrence.py run

    # Re-run a specific date against another database
    python3 scripts/run_recurrence.py --database-url sqlite:///ledger.db run --as-of 2025-03-01
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import sys
from datetime import date
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Materialize due recurring rules into the ledger.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML config file (default: LEDGER_CONFIG or bundled defaults).",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Override database_url from the config.",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="Create missing tables.")
    run = sub.add_parser("run", help="Run recurrence once and exit.")
    run.add_argument(
        "--as-of",
        type=lambda s: date.fromisoformat(s),
        default=None,
        help="Date to run for (YYYY-MM-DD). Default: today in the configured timezone.",
    )
    sub.add_parser("serve", help="Run the daily scheduler until interrupted.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from ledger_batch.domain.types import RunTrigger
    from ledger_batch.orchestrator import LedgerOrchestrator
    from ledger_config import get_active_config
    from ledger_kernel.db.engine import create_tables

    try:
        config = get_active_config(args.config)
        if args.database_url:
            config = dataclasses.replace(config, database_url=args.database_url)
    except Exception as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    try:
        orchestrator = LedgerOrchestrator.from_config(config)
    except Exception as e:
        print(f"ERROR: Database init failed: {e}", file=sys.stderr)
        return 1

    if args.command == "init-db":
        try:
            create_tables()
        except Exception as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        print("Tables created.")
        return 0

    if args.command == "run":
        as_of = args.as_of or orchestrator.today()
        try:
            result = orchestrator.engine.run(as_of, trigger=RunTrigger.ADMIN)
        except Exception as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        print(json.dumps({"processed": result.processed_count}))
        return 0

    scheduler = orchestrator.create_scheduler()
    scheduler.start()
    print(
        f"Scheduler running (timezone={config.timezone}, "
        f"tick={config.tick_interval_seconds}s). Ctrl-C to stop."
    )
    try:
        scheduler.wait()
    except KeyboardInterrupt:
        print("Stopping...")
    finally:
        scheduler.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
