import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator

from hubsync.resolver import CampaignResolver
from hubsync.sources.base import BaseReportSource, CampaignMetricRecord
from hubsync.spend import SpendLedgerWriter
from hubsync.totals import DailyDelta, TotalsAccumulator

logger = logging.getLogger(__name__)


@dataclass
class SyncSummary:
    days_processed: int = 0
    spend_items: int = 0
    totals_applied: int = 0
    totals_skipped: int = 0
    failures: int = 0

    def merge(self, other: "SyncSummary") -> None:
        self.days_processed += other.days_processed
        self.spend_items += other.spend_items
        self.totals_applied += other.totals_applied
        self.totals_skipped += other.totals_skipped
        self.failures += other.failures


def iter_dates(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


class SyncOrchestrator:
    """Syncs a closed date range from one ad source into HubSpot, oldest day first."""

    def __init__(
        self,
        source: BaseReportSource,
        resolver: CampaignResolver,
        spend_writer: SpendLedgerWriter,
        accumulator: TotalsAccumulator,
        dry_run: bool = False,
    ):
        self.source = source
        self.resolver = resolver
        self.spend_writer = spend_writer
        self.accumulator = accumulator
        self.dry_run = dry_run

    def run(self, start: date, end: date) -> SyncSummary:
        if start > end:
            raise ValueError(f"Start date {start} is after end date {end}")

        logger.info("Syncing %s from %s to %s%s", self.source.label, start, end,
                    " [DRY RUN]" if self.dry_run else "")
        summary = SyncSummary()
        # Ascending order matters: the totals marker would otherwise skip earlier days.
        for day in iter_dates(start, end):
            try:
                rows = self.source.fetch_rows(day)
            except Exception as e:
                logger.error("Day %s failed: %s", day, e, exc_info=True)
                summary.failures += 1
                continue

            summary.days_processed += 1
            if not rows:
                logger.info("%s: no data (skipped)", day)
                continue
            summary.merge(self.sync_day(day, rows))

        logger.info(
            "Done. Days=%d SpendItems=%d TotalsAdded=%d TotalsSkipped=%d Failures=%d%s",
            summary.days_processed, summary.spend_items, summary.totals_applied,
            summary.totals_skipped, summary.failures, " (DRY RUN)" if self.dry_run else "",
        )
        return summary

    def sync_day(self, day: date, rows: list[CampaignMetricRecord]) -> SyncSummary:
        summary = SyncSummary()
        for record in rows:
            name = record.campaign_name
            if not name:
                logger.error("%s: row for campaign id %s has no name, skipping",
                             day, record.campaign_external_id)
                summary.failures += 1
                continue

            try:
                campaign_id = self.resolver.resolve(name)
            except Exception as e:
                logger.error("Resolving campaign %r for %s failed: %s", name, day, e)
                summary.failures += 1
                continue

            self._sync_spend(day, record, campaign_id, summary)
            self._sync_totals(day, record, campaign_id, summary)
        return summary

    def _sync_spend(self, day: date, record: CampaignMetricRecord, campaign_id, summary: SyncSummary) -> None:
        if record.spend <= 0:
            return
        if self.dry_run:
            logger.info("[DRY RUN] spend %r %s %.2f (%s)", record.campaign_name, day,
                        record.spend, campaign_id or "new campaign")
            return
        try:
            self.spend_writer.record_spend(campaign_id, day, record.spend, self.source.label)
            summary.spend_items += 1
        except Exception as e:
            logger.error("Spend item for %r on %s failed: %s", record.campaign_name, day, e)
            summary.failures += 1

    def _sync_totals(self, day: date, record: CampaignMetricRecord, campaign_id, summary: SyncSummary) -> None:
        delta = DailyDelta(
            clicks=record.clicks,
            impressions=record.impressions,
            conversions=record.conversions,
        )
        if delta.is_zero:
            return
        if self.dry_run:
            logger.info("[DRY RUN] totals %r %s +clicks %d +imps %d +conv %d", record.campaign_name, day,
                        delta.clicks, delta.impressions, delta.conversions)
            return
        try:
            applied = self.accumulator.apply_daily_delta(
                campaign_id, day, delta,
                status=record.status,
                average_cpc=record.average_cpc,
                cost_per_conversion=record.cost_per_conversion,
            )
        except Exception as e:
            logger.error("Totals for %r on %s failed: %s", record.campaign_name, day, e)
            summary.failures += 1
            return
        if applied:
            summary.totals_applied += 1
        else:
            summary.totals_skipped += 1
