"""Rebuild campaign totals from scratch for a date range.

The daily sync only ever adds to the totals. When they drift (a property was
edited by hand, a backfill ran out of order) this recomputes clicks,
impressions and conversions over a range and overwrites them, moving each
campaign's last-processed marker to the range end. Only campaigns already in
the local name cache are touched; nothing is searched for or created.
"""

import logging
from dataclasses import dataclass
from datetime import date

from hubsync.campaign_map import CampaignMap
from hubsync.sources.base import BaseReportSource
from hubsync.sync import iter_dates
from hubsync.totals import DailyDelta, TotalsAccumulator

logger = logging.getLogger(__name__)


@dataclass
class RecalcSummary:
    days_fetched: int = 0
    days_failed: int = 0
    updated: int = 0
    skipped_unknown: int = 0
    failures: int = 0


class TotalsRecalculator:
    def __init__(
        self,
        source: BaseReportSource,
        campaign_map: CampaignMap,
        accumulator: TotalsAccumulator,
        dry_run: bool = False,
    ):
        self.source = source
        self.campaign_map = campaign_map
        self.accumulator = accumulator
        self.dry_run = dry_run

    def collect(self, start: date, end: date, summary: RecalcSummary) -> dict[str, DailyDelta]:
        totals: dict[str, DailyDelta] = {}
        for day in iter_dates(start, end):
            try:
                rows = self.source.fetch_rows(day)
            except Exception as e:
                logger.error("Day %s failed: %s", day, e)
                summary.days_failed += 1
                continue
            summary.days_fetched += 1
            for record in rows:
                if not record.campaign_name:
                    continue
                delta = DailyDelta(
                    clicks=record.clicks,
                    impressions=record.impressions,
                    conversions=record.conversions,
                )
                totals[record.campaign_name] = totals.get(record.campaign_name, DailyDelta()) + delta
        return totals

    def run(self, start: date, end: date) -> RecalcSummary:
        if start > end:
            raise ValueError(f"Start date {start} is after end date {end}")

        summary = RecalcSummary()
        totals = self.collect(start, end, summary)
        logger.info("Built totals for %d campaign(s) from %s to %s", len(totals), start, end)

        # A partial sum would overwrite good totals with smaller ones.
        if summary.days_failed:
            logger.error("%d day(s) could not be fetched, not writing any totals", summary.days_failed)
            summary.failures += summary.days_failed
            return summary

        for name, campaign_totals in sorted(totals.items()):
            campaign_id = self.campaign_map.get(name)
            if not campaign_id:
                logger.warning("Skipping %r: not in the campaign map", name)
                summary.skipped_unknown += 1
                continue
            if self.dry_run:
                logger.info("[DRY RUN] set totals %r (%s) clicks=%d imps=%d conv=%d", name, campaign_id,
                            campaign_totals.clicks, campaign_totals.impressions, campaign_totals.conversions)
                continue
            try:
                self.accumulator.set_totals(campaign_id, campaign_totals, through=end)
            except Exception as e:
                logger.error("Setting totals for %r (%s) failed: %s", name, campaign_id, e)
                summary.failures += 1
                continue
            summary.updated += 1

        logger.info(
            "Recalc done. Updated=%d SkippedUnknown=%d Failures=%d%s",
            summary.updated, summary.skipped_unknown, summary.failures,
            " (DRY RUN)" if self.dry_run else "",
        )
        return summary
