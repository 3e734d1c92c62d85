#!/usr/bin/env python3
"""
Nightly compliance maintenance.

Subcommands:
  purge   permanently delete recycle-bin records past the retention window
  sweep   rewrite stored Pending installments that are past due to Overdue

Usage:
  python3 scripts/compliance_maintenance.py purge --database-url URL
  python3 scripts/compliance_maintenance.py sweep --database-url URL [--config PATH]

The database URL may also come from COMPLIANCE_DATABASE_URL.
"""

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DB_URL_ENV = "COMPLIANCE_DATABASE_URL"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Compliance recycle-bin purge and overdue sweep")
    p.add_argument("command", choices=("purge", "sweep"), help="Maintenance task to run")
    p.add_argument(
        "--database-url",
        default=os.environ.get(DB_URL_ENV),
        help=f"Database URL (default: ${DB_URL_ENV})",
    )
    p.add_argument(
        "--config",
        default=None,
        help="Settings file (default: compliance_config/sets/default.yaml)",
    )
    p.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before running",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    if not args.database_url:
        print(f"  ERROR: --database-url or {DB_URL_ENV} is required", file=sys.stderr)
        return 2

    from compliance_config import get_active_config
    from compliance_kernel.db.engine import create_tables, init_engine_from_url, session_scope
    from compliance_services import ComplianceService, RecycleBinService

    config = get_active_config(args.config)

    try:
        init_engine_from_url(args.database_url, echo=False)
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    if args.create_tables:
        create_tables()

    with session_scope() as session:
        if args.command == "purge":
            report = RecycleBinService(session, config=config).purge_expired()
            print(
                f"  Purged {report.agreements_purged} agreement(s) and "
                f"{report.installments_purged} installment(s)."
            )
        else:
            updated = ComplianceService(session, config=config).refresh_overdue_statuses()
            print(f"  Marked {updated} installment(s) Overdue.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
