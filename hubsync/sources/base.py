from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class CampaignMetricRecord:
    """One campaign's metrics for one day, as every ad source must produce it."""

    date: date
    campaign_name: str
    campaign_external_id: str = ""
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0
    spend: Decimal = Decimal("0.00")
    status: Optional[str] = None
    average_cpc: Decimal = Decimal("0.00")
    cost_per_conversion: Decimal = Decimal("0.00")

    @property
    def has_activity(self) -> bool:
        return bool(self.clicks or self.impressions or self.conversions)


class BaseReportSource(ABC):
    label: str = "Ads"

    @abstractmethod
    def fetch_rows(self, target_date: date) -> list[CampaignMetricRecord]:
        """Fetch normalized campaign rows for exactly one calendar day.

        An empty list means the network has no data for that day. Raises only
        when the day cannot be fetched or decoded at all.
        """
