#!/usr/bin/env python3
"""
StockLedger Reconciliation Check

Verifies that stored quantities and statuses agree with the receipts,
ledger transactions and invoice lines they are derived from.

Usage:
  cd backend
  python scripts/reconcile_check.py            # report only
  python scripts/reconcile_check.py --repair   # recompute derived fields

Exit code is 1 when findings remain unrepaired.
"""
import argparse
import os
import sys

# Add project root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from stockledger.db.session import SessionLocal  # noqa: E402
from stockledger.logging_config import setup_logging  # noqa: E402
from stockledger.services.integrity_service import IntegrityAuditor  # noqa: E402


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Check quantity reconciliation invariants")
    parser.add_argument("--repair", action="store_true", help="Recompute derived columns and commit")
    args = parser.parse_args(argv)

    setup_logging(log_format="text")
    db = SessionLocal()
    try:
        findings = IntegrityAuditor(db).run(repair=args.repair)
        if args.repair:
            db.commit()
        else:
            db.rollback()
    finally:
        db.close()

    print(f"Reconciliation check: {len(findings)} finding(s)")
    for f in findings:
        status = "repaired" if f.repaired else "open"
        print(f"  [{f.check}] {f.entity} {f.entity_id}: {f.message} ({status})")

    return 1 if any(not f.repaired for f in findings) else 0


if __name__ == "__main__":
    sys.exit(main())
