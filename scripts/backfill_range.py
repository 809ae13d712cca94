"""Backfill HubSpot campaigns from Microsoft Ads over a historical date range.

Safe to re-run over overlapping ranges: spend items are keyed per day and
totals are guarded by each campaign's last-processed date, so days already
synced are skipped. Run ranges oldest-first; a backfill that starts before a
campaign's marker will skip those earlier days' totals.

    python scripts/backfill_range.py --from 2024-01-01 --to 2024-03-31 [--dry-run]
"""

import argparse
import os
import sys
from datetime import date

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

from hubsync.main import build_orchestrator, load_config_or_exit
from hubsync.utils.logger import setup_logging


def main():
    load_dotenv()
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--from", dest="start", type=date.fromisoformat, required=True)
    parser.add_argument("--to", dest="end", type=date.fromisoformat, required=True)
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()
    if args.start > args.end:
        parser.error("--from must not be after --to")

    logger = setup_logging(os.environ.get("LOG_LEVEL", "INFO"))
    logger.info("Starting backfill %s -> %s%s", args.start, args.end, " [DRY RUN]" if args.dry_run else "")
    config = load_config_or_exit(logger)

    summary = build_orchestrator(config, dry_run=args.dry_run).run(args.start, args.end)
    logger.info(
        "Backfill finished: days=%d spend_items=%d totals_added=%d totals_skipped=%d failures=%d",
        summary.days_processed, summary.spend_items, summary.totals_applied,
        summary.totals_skipped, summary.failures,
    )
    if summary.failures:
        sys.exit(1)


if __name__ == "__main__":
    main()
