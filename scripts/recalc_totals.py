"""Recompute and overwrite campaign totals from Microsoft Ads for a date range.

Sums clicks, impressions and conversions over the range for every campaign in
the local campaign map and sets them on HubSpot, with the last-processed date
moved to --to. Start the range at the campaign's first active day, otherwise
earlier history is dropped from the totals. Spend items are not touched.

    python scripts/recalc_totals.py --from 2024-01-01 --to 2024-03-31 [--dry-run]
"""

import argparse
import os
import sys
from datetime import date

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

from hubsync.campaign_map import CampaignMap
from hubsync.hubspot import HubSpotClient
from hubsync.main import load_config_or_exit
from hubsync.recalc import TotalsRecalculator
from hubsync.sources.msads_auth import MsAdsTokenProvider
from hubsync.sources.msads_report import MsAdsReportClient, MsAdsSource
from hubsync.totals import TotalsAccumulator
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
    config = load_config_or_exit(logger)

    report_client = MsAdsReportClient(config.msads, MsAdsTokenProvider(config.msads))
    recalculator = TotalsRecalculator(
        source=MsAdsSource(report_client, label=config.sync.spend_source_label),
        campaign_map=CampaignMap(config.sync.campaign_map_path),
        accumulator=TotalsAccumulator(HubSpotClient(config.hubspot), config.hubspot.properties),
        dry_run=args.dry_run,
    )
    summary = recalculator.run(args.start, args.end)
    if summary.failures:
        sys.exit(1)


if __name__ == "__main__":
    main()
