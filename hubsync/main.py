import argparse
import os
import sys
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from hubsync.campaign_map import CampaignMap
from hubsync.config import AppConfig, load_config
from hubsync.hubspot import HubSpotClient
from hubsync.resolver import CampaignResolver
from hubsync.sources.msads_auth import MsAdsTokenProvider
from hubsync.sources.msads_report import MsAdsReportClient, MsAdsSource
from hubsync.spend import SpendLedgerWriter
from hubsync.sync import SyncOrchestrator
from hubsync.totals import TotalsAccumulator
from hubsync.utils.logger import setup_logging


def yesterday_in(tz_name: str) -> date:
    """Calendar day before today in tz_name (DST-safe: day arithmetic, not now - 24h)."""
    return datetime.now(ZoneInfo(tz_name)).date() - timedelta(days=1)


def build_orchestrator(config: AppConfig, dry_run: bool = False) -> SyncOrchestrator:
    hubspot = HubSpotClient(config.hubspot)
    report_client = MsAdsReportClient(config.msads, MsAdsTokenProvider(config.msads))
    return SyncOrchestrator(
        source=MsAdsSource(report_client, label=config.sync.spend_source_label),
        resolver=CampaignResolver(hubspot, CampaignMap(config.sync.campaign_map_path), dry_run=dry_run),
        spend_writer=SpendLedgerWriter(hubspot),
        accumulator=TotalsAccumulator(hubspot, config.hubspot.properties),
        dry_run=dry_run,
    )


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync Microsoft Ads daily campaign data into HubSpot")
    parser.add_argument("--date", type=date.fromisoformat, help="Single day (YYYY-MM-DD). Default: yesterday")
    parser.add_argument("--from", dest="start", type=date.fromisoformat, help="Range start (YYYY-MM-DD)")
    parser.add_argument("--to", dest="end", type=date.fromisoformat, help="Range end (YYYY-MM-DD)")
    parser.add_argument("--dry-run", action="store_true", help="Fetch and resolve only; no HubSpot writes")
    args = parser.parse_args(argv)
    if (args.start is None) != (args.end is None):
        parser.error("--from and --to must be given together")
    if args.date and args.start:
        parser.error("--date cannot be combined with --from/--to")
    if args.start and args.start > args.end:
        parser.error("--from must not be after --to")
    return args


def load_config_or_exit(logger, require_msads: bool = True) -> AppConfig:
    try:
        return load_config(require_msads=require_msads)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)


def main(argv: Optional[list[str]] = None):
    load_dotenv()
    args = parse_args(argv)
    logger = setup_logging(os.environ.get("LOG_LEVEL", "INFO"))
    config = load_config_or_exit(logger)

    if args.start:
        start, end = args.start, args.end
    else:
        start = end = args.date or yesterday_in(config.sync.timezone)
    logger.info("Target dates: %s to %s", start, end)

    summary = build_orchestrator(config, dry_run=args.dry_run).run(start, end)
    if summary.failures:
        sys.exit(1)


if __name__ == "__main__":
    main()
