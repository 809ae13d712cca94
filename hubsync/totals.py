"""Additive lifetime totals on HubSpot campaigns.

HubSpot has no atomic increment, so each update is read-modify-write. Replays
are made safe by a "last processed" date marker stored on the same campaign:
a day at or before the marker has already been added and is skipped. This
assumes one sync process per campaign at a time.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from hubsync.config import HubSpotProperties
from hubsync.hubspot import HubSpotClient
from hubsync.spend import epoch_millis

logger = logging.getLogger(__name__)

PROPERTY_GROUP = "campaigninformation"


@dataclass(frozen=True)
class DailyDelta:
    clicks: int = 0
    impressions: int = 0
    conversions: int = 0

    @property
    def is_zero(self) -> bool:
        return not (self.clicks or self.impressions or self.conversions)

    def __add__(self, other: "DailyDelta") -> "DailyDelta":
        return DailyDelta(
            clicks=self.clicks + other.clicks,
            impressions=self.impressions + other.impressions,
            conversions=self.conversions + other.conversions,
        )


def _to_int(value) -> int:
    if value is None or value == "":
        return 0
    try:
        number = Decimal(str(value).replace(",", ""))
    except ArithmeticError:
        return 0
    if not number.is_finite() or number < 0:
        return 0
    return int(number)


def parse_marker(value) -> Optional[date]:
    """Read a HubSpot date property: epoch millis, YYYY-MM-DD or an ISO datetime.

    Returns None only when the property is unset. Any other unreadable value
    raises ValueError so the day is never added on top of an unknown marker.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        if text.isdigit():
            return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc).date()
        return date.fromisoformat(text[:10])
    except (ValueError, OverflowError, OSError):
        raise ValueError(f"Unrecognised last-processed value {value!r}") from None


def campaign_property_definitions(props: HubSpotProperties) -> list[dict]:
    """Definitions for every enabled custom campaign property this sync writes."""
    roles = [
        (props.total_clicks, "Bing Click Total", "number", "Cumulative Microsoft Ads clicks"),
        (props.total_impressions, "Bing Impression Total", "number", "Cumulative Microsoft Ads impressions"),
        (props.total_conversions, "Bing Conversion Total", "number", "Cumulative Microsoft Ads conversions"),
        (props.last_processed, "Bing Last Processed Date", "date", "Last day added to the Microsoft Ads totals"),
        (props.last_status, "Bing Last Status", "string", "Campaign status on the last processed day"),
        (props.last_avg_cpc, "Bing Avg CPC (Last Day)", "number", "Average CPC on the last processed day"),
        (props.last_cpl, "Bing Cost per Conversion (Last Day)", "number",
         "Cost per conversion on the last processed day"),
    ]
    field_types = {"number": "number", "date": "date", "string": "text"}
    return [
        {
            "name": name,
            "label": label,
            "type": prop_type,
            "fieldType": field_types[prop_type],
            "description": description,
            "groupName": PROPERTY_GROUP,
            "formField": False,
        }
        for name, label, prop_type, description in roles
        if name
    ]


class TotalsAccumulator:
    def __init__(self, hubspot: HubSpotClient, properties: HubSpotProperties):
        self.hubspot = hubspot
        self.props = properties

    def _read_properties(self) -> list[str]:
        names = [
            self.props.total_clicks,
            self.props.total_impressions,
            self.props.total_conversions,
            self.props.last_processed,
        ]
        return [n for n in names if n]

    def apply_daily_delta(self, external_id: str, target_date: date, delta: DailyDelta,
                          status: Optional[str] = None,
                          average_cpc: Optional[Decimal] = None,
                          cost_per_conversion: Optional[Decimal] = None) -> bool:
        """Add one day's delta to the campaign totals at most once.

        Returns True when the totals were written, False when the delta was
        all zeros or the day is not after the stored marker. Raises ValueError
        without writing when the stored marker cannot be read.
        """
        if delta.is_zero:
            return False

        campaign = self.hubspot.get_campaign(external_id, properties=self._read_properties())
        current = campaign.get("properties") or {}

        marker = parse_marker(current.get(self.props.last_processed))
        if marker is not None and target_date <= marker:
            logger.info(
                "Totals for campaign %s on %s already applied (last processed %s)",
                external_id, target_date, marker,
            )
            return False

        updates = {self.props.last_processed: epoch_millis(target_date)}
        for prop, added in (
            (self.props.total_clicks, delta.clicks),
            (self.props.total_impressions, delta.impressions),
            (self.props.total_conversions, delta.conversions),
        ):
            if prop:
                updates[prop] = _to_int(current.get(prop)) + max(int(added), 0)

        if self.props.last_status:
            updates[self.props.last_status] = status or "OK"
        if self.props.last_avg_cpc and average_cpc is not None:
            updates[self.props.last_avg_cpc] = float(average_cpc)
        if self.props.last_cpl and cost_per_conversion is not None:
            updates[self.props.last_cpl] = float(cost_per_conversion)

        self.hubspot.patch_campaign(external_id, updates)
        logger.info(
            "Added totals for campaign %s on %s: clicks+%d imps+%d conv+%d",
            external_id, target_date, delta.clicks, delta.impressions, delta.conversions,
        )
        return True

    def set_totals(self, external_id: str, totals: DailyDelta, through: date) -> None:
        """Overwrite the totals with a recomputed sum and move the marker to through."""
        updates = {self.props.last_processed: epoch_millis(through)}
        for prop, value in (
            (self.props.total_clicks, totals.clicks),
            (self.props.total_impressions, totals.impressions),
            (self.props.total_conversions, totals.conversions),
        ):
            if prop:
                updates[prop] = max(int(value), 0)
        self.hubspot.patch_campaign(external_id, updates)
        logger.info(
            "Set totals for campaign %s through %s: clicks=%d imps=%d conv=%d",
            external_id, through, totals.clicks, totals.impressions, totals.conversions,
        )
