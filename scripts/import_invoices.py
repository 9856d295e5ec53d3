#!/usr/bin/env python3
"""
Import Invoice Lines from the Billing Export Workbook

Reads the "Sample_Data_for_Model_updated1" sheet (or the first sheet) and
inserts invoice lines into the `invoice` table. Lines already present
(same billing_document + item) are skipped, so re-running is safe.

Usage:
    python3 scripts/import_invoices.py data/invoices.xlsx [--dry-run] [--verbose]
"""
import os
import sys
import argparse
import logging
from pathlib import Path

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from dotenv import load_dotenv
load_dotenv(override=True)

from ainoc.services.ingestion_service import import_invoice_workbook


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description='Import invoice lines from an Excel workbook')
    parser.add_argument('workbook', type=str, help='Path to the .xlsx billing export')
    parser.add_argument('--dry-run', action='store_true', help='Parse and validate without writing')
    parser.add_argument('--verbose', action='store_true', help='Show detailed progress')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    workbook = Path(args.workbook)
    if not workbook.exists():
        print(f"❌ ERROR: Workbook not found: {workbook}")
        sys.exit(1)

    print("=" * 80)
    print("⬆️  IMPORT INVOICES")
    print("=" * 80)
    print(f"\n📁 Workbook: {workbook}")

    if args.dry_run:
        print("\n⚠️  DRY RUN MODE - No changes will be made to database\n")

    try:
        stats = import_invoice_workbook(str(workbook), dry_run=args.dry_run)
    except Exception as e:
        print(f"\n❌ Import failed: {e}")
        sys.exit(1)

    print(f"\n📊 Rows read: {stats['read']}")
    print(f"   • Rejected (no billing_document/item): {stats['rejected']}")
    print(f"   • Inserted: {stats['inserted']}")
    print("\n✅ Import completed")


if __name__ == '__main__':
    main()
