import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from hubsync.sources.base import CampaignMetricRecord

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

# Normalized header token variants, first match wins.
COLUMN_ALIASES = {
    "campaign_id": ("campaignid",),
    "campaign_name": ("campaignname",),
    "status": ("campaignstatus",),
    "impressions": ("impressions",),
    "clicks": ("clicks",),
    "conversions": ("conversions", "allconversions"),
    "spend": ("spend", "cost"),
    "average_cpc": ("averagecpc", "avgcpc"),
    "cost_per_conversion": ("allcostperconversion", "costperconversion"),
}


def _field(row: dict[str, str], key: str) -> str:
    for alias in COLUMN_ALIASES[key]:
        if alias in row:
            return (row[alias] or "").strip()
    return ""


def _safe_decimal(value: Optional[str]) -> Decimal:
    if value is None:
        return Decimal(0)
    value = value.strip().replace(",", "")
    if not value:
        return Decimal(0)
    try:
        number = Decimal(value)
    except InvalidOperation:
        return Decimal(0)
    if not number.is_finite() or number < 0:
        return Decimal(0)
    return number


def _safe_int(value: Optional[str]) -> int:
    return int(_safe_decimal(value).to_integral_value(rounding=ROUND_HALF_UP))


def _money(value: Optional[str]) -> Decimal:
    return _safe_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def normalize_rows(rows: list[dict[str, str]], target_date: date) -> list[CampaignMetricRecord]:
    """Turn parsed report rows into records stamped with target_date."""
    records = []
    for row in rows:
        campaign_id = _field(row, "campaign_id")
        campaign_name = _field(row, "campaign_name")
        if not campaign_id and not campaign_name:
            logger.debug("Dropping row without campaign id or name: %s", row)
            continue

        records.append(CampaignMetricRecord(
            date=target_date,
            campaign_name=campaign_name,
            campaign_external_id=campaign_id,
            impressions=_safe_int(_field(row, "impressions")),
            clicks=_safe_int(_field(row, "clicks")),
            conversions=_safe_int(_field(row, "conversions")),
            spend=_money(_field(row, "spend")),
            status=_field(row, "status") or None,
            average_cpc=_money(_field(row, "average_cpc")),
            cost_per_conversion=_money(_field(row, "cost_per_conversion")),
        ))
    return records
