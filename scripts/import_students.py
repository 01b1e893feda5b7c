#!/usr/bin/env python3
"""
Student register import

Stages the rows of a register CSV (header row: SN, NAMES, SURNAME, CLASS,
REG NO, MEMBER/NMEMBER, DAY/BOARDER, SCHOOL FEES, DEBTS, PARENT EMAIL) and
processes every pending row.

Usage:
    python -m scripts.import_students register.csv

    # Process already-staged rows only
    python -m scripts.import_students --process-only

    # Retry rows that failed on a previous run
    python -m scripts.import_students --retry-failed
"""

import argparse
import csv
import json
import sys

from schoolpay.infrastructure.database import SessionLocal
from schoolpay.infrastructure.logging_config import setup_logging
from schoolpay.infrastructure.settings import get_settings
from schoolpay.services import bulk_import


def main():
    """Main entry point for the import runner"""
    parser = argparse.ArgumentParser(
        description='Import students from a register CSV',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('csv_path', nargs='?', help='Register CSV file (UTF-8)')
    parser.add_argument('--process-only', action='store_true', help='Skip staging, process pending rows')
    parser.add_argument('--retry-failed', action='store_true', help='Reset failed rows to pending first')
    parser.add_argument('--limit', type=int, default=None, help='Maximum rows to process')
    args = parser.parse_args()

    if not args.csv_path and not args.process_only:
        parser.error('csv_path is required unless --process-only is given')

    setup_logging(get_settings().LOG_LEVEL)

    db = SessionLocal()
    try:
        staged = 0
        if args.csv_path and not args.process_only:
            with open(args.csv_path, newline='', encoding='utf-8-sig') as f:
                staged = bulk_import.stage_records(db, csv.DictReader(f))

        reset = bulk_import.reset_failed(db) if args.retry_failed else 0
        report = bulk_import.process_pending(db, limit=args.limit)

        output = {
            "job": "import_students",
            "staged": staged,
            "reset": reset,
            "report": report.as_dict(),
            "exit_code": 0 if report.error_count == 0 else 1,
        }
        print(json.dumps(output, default=str))
        sys.exit(output["exit_code"])
    finally:
        db.close()


if __name__ == "__main__":
    main()
