from datetime import date
from decimal import Decimal

import pytest

from hubsync.resolver import CampaignResolver
from hubsync.sources.base import BaseReportSource, CampaignMetricRecord
from hubsync.spend import SpendLedgerWriter
from hubsync.sync import SyncOrchestrator, iter_dates
from hubsync.totals import TotalsAccumulator, parse_marker


class FakeSource(BaseReportSource):
    label = "Bing Ads"

    def __init__(self, rows_by_day=None, failing_days=()):
        self.rows_by_day = rows_by_day or {}
        self.failing_days = set(failing_days)
        self.requested = []

    def fetch_rows(self, target_date):
        self.requested.append(target_date)
        if target_date in self.failing_days:
            raise RuntimeError("report job exploded")
        return list(self.rows_by_day.get(target_date, []))


def _record(day, name, clicks=0, impressions=0, spend="0.00"):
    return CampaignMetricRecord(date=day, campaign_name=name, clicks=clicks,
                                impressions=impressions, spend=Decimal(spend))


def _orchestrator(source, fake_hubspot, campaign_map, properties, dry_run=False):
    return SyncOrchestrator(
        source=source,
        resolver=CampaignResolver(fake_hubspot, campaign_map, dry_run=dry_run),
        spend_writer=SpendLedgerWriter(fake_hubspot),
        accumulator=TotalsAccumulator(fake_hubspot, properties),
        dry_run=dry_run,
    )


D1, D2, D3 = date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)


def _three_day_source():
    return FakeSource({
        D1: [_record(D1, "Camp A", clicks=10, spend="4.20")],
        D3: [_record(D3, "Camp A", clicks=5, spend="1.05")],
    })


def test_three_day_range_with_empty_middle_day(fake_hubspot, campaign_map, properties):
    source = _three_day_source()

    summary = _orchestrator(source, fake_hubspot, campaign_map, properties).run(D1, D3)

    assert source.requested == [D1, D2, D3]
    assert summary.days_processed == 3
    assert summary.spend_items == 2
    assert summary.totals_applied == 2
    assert summary.failures == 0

    cid = campaign_map.get("Camp A")
    props = fake_hubspot.campaigns[cid]["properties"]
    assert props["total_clicks"] == 15
    assert parse_marker(props["bing_last_processed"]) == D3
    assert [item["order"] for _, item in fake_hubspot.spend_calls] == [20240101, 20240103]


def test_rerunning_the_range_changes_nothing(fake_hubspot, campaign_map, properties):
    _orchestrator(_three_day_source(), fake_hubspot, campaign_map, properties).run(D1, D3)

    summary = _orchestrator(_three_day_source(), fake_hubspot, campaign_map, properties).run(D1, D3)

    cid = campaign_map.get("Camp A")
    assert fake_hubspot.campaigns[cid]["properties"]["total_clicks"] == 15
    assert summary.totals_applied == 0
    assert summary.totals_skipped == 2
    assert summary.failures == 0
    assert len(fake_hubspot.spend_items[cid]) == 2
    assert len(fake_hubspot.campaigns) == 1


def test_day_failure_does_not_stop_the_range(fake_hubspot, campaign_map, properties):
    source = FakeSource({D3: [_record(D3, "Camp A", clicks=2)]}, failing_days={D2})

    summary = _orchestrator(source, fake_hubspot, campaign_map, properties).run(D1, D3)

    assert summary.failures == 1
    assert summary.days_processed == 2
    assert summary.totals_applied == 1


def test_row_failures_are_isolated(fake_hubspot, campaign_map, properties):
    source = FakeSource({D1: [
        _record(D1, "", clicks=1),
        _record(D1, "Camp A", clicks=3, spend="2.00"),
    ]})
    original_spend = fake_hubspot.create_spend_item

    def broken_spend(campaign_id, item):
        raise RuntimeError("spend endpoint down")

    fake_hubspot.create_spend_item = broken_spend
    summary = _orchestrator(source, fake_hubspot, campaign_map, properties).run(D1, D1)
    fake_hubspot.create_spend_item = original_spend

    # Nameless row and failed spend both count; totals still applied.
    assert summary.failures == 2
    assert summary.spend_items == 0
    assert summary.totals_applied == 1


def test_resolution_failure_skips_only_that_campaign(fake_hubspot, campaign_map, properties):
    class FlakyResolver(CampaignResolver):
        def resolve(self, name):
            if name == "Broken":
                raise RuntimeError("HubSpot list failed")
            return super().resolve(name)

    source = FakeSource({D1: [_record(D1, "Broken", clicks=1), _record(D1, "Camp A", clicks=1)]})
    orchestrator = SyncOrchestrator(
        source=source,
        resolver=FlakyResolver(fake_hubspot, campaign_map),
        spend_writer=SpendLedgerWriter(fake_hubspot),
        accumulator=TotalsAccumulator(fake_hubspot, properties),
    )

    summary = orchestrator.run(D1, D1)

    assert summary.failures == 1
    assert summary.totals_applied == 1


def test_dry_run_makes_no_writes(fake_hubspot, campaign_map, properties):
    existing = fake_hubspot.add_campaign("Camp A")
    source = FakeSource({D1: [_record(D1, "Camp A", clicks=4, spend="3.00"), _record(D1, "Camp New", clicks=2)]})

    summary = _orchestrator(source, fake_hubspot, campaign_map, properties, dry_run=True).run(D1, D1)

    assert summary.failures == 0
    assert summary.spend_items == 0
    assert summary.totals_applied == 0
    assert fake_hubspot.spend_calls == []
    assert fake_hubspot.patch_calls == []
    assert list(fake_hubspot.campaigns) == [existing]


def test_unreadable_marker_is_a_row_failure(fake_hubspot, campaign_map, properties):
    cid = fake_hubspot.add_campaign("Camp A", total_clicks=10, bing_last_processed="05/01/2024")
    campaign_map.set("Camp A", cid)
    source = FakeSource({D3: [_record(D3, "Camp A", clicks=10)]})

    summary = _orchestrator(source, fake_hubspot, campaign_map, properties).run(D3, D3)

    assert summary.failures == 1
    assert summary.totals_applied == 0
    assert fake_hubspot.patch_calls == []
    assert fake_hubspot.campaigns[cid]["properties"]["total_clicks"] == 10


def test_rejects_reversed_range(fake_hubspot, campaign_map, properties):
    with pytest.raises(ValueError):
        _orchestrator(FakeSource(), fake_hubspot, campaign_map, properties).run(D3, D1)


def test_iter_dates_crosses_month_end():
    assert list(iter_dates(date(2024, 2, 28), date(2024, 3, 1))) == [
        date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1),
    ]
