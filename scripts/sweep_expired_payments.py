#!/usr/bin/env python3
"""
Reject PENDING payments nobody confirmed within the pending timeout.

Meant to run from cron (hourly is plenty).  Every expired payment is
rejected in its own savepoint, so one bad row never blocks the rest; the
whole sweep commits once at the end.

Usage:
    python3 scripts/sweep_expired_payments.py
    python3 scripts/sweep_expired_payments.py --config path/to/settings.yaml
    python3 scripts/sweep_expired_payments.py --database-url postgresql://...

Exit status is 1 when any payment failed to reject.
"""

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Reject expired PENDING payments")
    p.add_argument(
        "--config",
        default=None,
        help="Settings YAML (default: $INSTALLMENT_CONFIG or the packaged default set)",
    )
    p.add_argument(
        "--database-url",
        default=None,
        help="Database URL (default: database.url from the settings)",
    )
    p.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before sweeping",
    )
    return p.parse_args()


def main() -> int:
    args = _parse_args()

    from installment_config import build_policy, get_active_settings
    from installment_kernel.db.engine import create_tables, init_engine_from_url, session_scope
    from installment_kernel.exceptions import ConfigurationError
    from installment_kernel.logging_config import configure_logging, get_logger
    from installment_kernel.services.engine import ReconciliationEngine

    try:
        settings = get_active_settings(args.config)
    except ConfigurationError as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 2

    configure_logging(level=getattr(logging, settings.logging.level))
    logger = get_logger("scripts.sweep")

    db = settings.database
    init_engine_from_url(args.database_url or db.url, echo=db.echo, pool_size=db.pool_size)
    if args.create_tables:
        create_tables()

    with session_scope() as session:
        result = ReconciliationEngine(session, policy=build_policy(settings)).reject_expired_payments()

    logger.info(
        "sweep_script_finished",
        extra={
            "settings_id": settings.settings_id,
            "rejected": len(result.rejected_ids),
            "failed": len(result.failed_ids),
        },
    )
    print(f"  Rejected {len(result.rejected_ids)} expired payment(s) older than {result.threshold:%Y-%m-%d %H:%M} UTC")
    for payment_id in result.failed_ids:
        print(f"  FAILED: {payment_id}", file=sys.stderr)
    return 1 if result.failed_ids else 0


if __name__ == "__main__":
    sys.exit(main())
