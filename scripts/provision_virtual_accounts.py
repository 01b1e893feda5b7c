#!/usr/bin/env python3
"""
Virtual account provisioning runner

Creates a dedicated virtual account for every student without an active one.
Safe to re-run: provisioned students are skipped.

Usage:
    python -m scripts.provision_virtual_accounts

    # Slower pacing for a rate-limited business account
    python -m scripts.provision_virtual_accounts --delay 2 --settle 1
"""

import argparse
import json
import sys
from uuid import uuid4

from schoolpay.infrastructure.database import SessionLocal
from schoolpay.infrastructure.logging_config import setup_logging, trace_id_context
from schoolpay.infrastructure.settings import get_settings
from schoolpay.services.provider.paystack_client import PaystackClient
from schoolpay.services.provisioning import ProvisioningOrchestrator


def main():
    """Main entry point for the provisioning runner"""
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description='Provision Paystack virtual accounts for all students',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument(
        '--delay',
        type=float,
        default=settings.PROVISIONING_DELAY_SECONDS,
        help=f'Seconds between students (default: {settings.PROVISIONING_DELAY_SECONDS})'
    )
    parser.add_argument(
        '--settle',
        type=float,
        default=settings.PROVISIONING_SETTLE_SECONDS,
        help=f'Seconds between customer and account creation (default: {settings.PROVISIONING_SETTLE_SECONDS})'
    )
    args = parser.parse_args()

    setup_logging(settings.LOG_LEVEL)
    trace_id = f"job-provisioning-{str(uuid4())[:8]}"
    trace_id_context.set(trace_id)

    db = SessionLocal()
    try:
        with PaystackClient() as client:
            report = ProvisioningOrchestrator(
                db,
                client,
                delay_seconds=args.delay,
                settle_seconds=args.settle,
            ).provision_all(actor_subject="cli")

        output = {
            "job": "provision_virtual_accounts",
            "trace_id": trace_id,
            "report": report.as_dict(),
            "exit_code": 0 if report.failed == 0 and not report.aborted else 1,
        }
        print(json.dumps(output, default=str))
        sys.exit(output["exit_code"])
    finally:
        db.close()


if __name__ == "__main__":
    main()
