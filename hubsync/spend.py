import logging
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from hubsync.hubspot import HubSpotClient, HubSpotConflictError

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def day_key(target_date: date) -> int:
    """Stable per-day key, e.g. 2024-01-03 -> 20240103."""
    return int(target_date.strftime("%Y%m%d"))


def epoch_millis(target_date: date) -> int:
    """Midnight UTC of target_date in epoch milliseconds (HubSpot date properties)."""
    return int(datetime.combine(target_date, time.min, tzinfo=timezone.utc).timestamp() * 1000)


def to_major_units(amount) -> Decimal:
    """Round an amount in major currency units (e.g. pounds) to 2 decimal places."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValueError(f"Spend amount is not a number: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"Spend amount is not finite: {amount!r}")
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


class SpendLedgerWriter:
    def __init__(self, hubspot: HubSpotClient):
        self.hubspot = hubspot

    def record_spend(self, external_id: str, target_date: date, amount, source_label: str) -> bool:
        """Create the spend item for one campaign/day.

        Returns True when created and False when HubSpot already holds an item
        with the same day key. Both outcomes leave exactly one item.
        """
        amount_major = to_major_units(amount)
        if amount_major <= 0:
            raise ValueError(f"Spend amount must be positive, got {amount_major}")

        item = {
            "name": f"{source_label} {target_date.isoformat()}",
            "amount": float(amount_major),
            "order": day_key(target_date),
            "date": epoch_millis(target_date),
        }
        try:
            self.hubspot.create_spend_item(external_id, item)
        except HubSpotConflictError:
            logger.info("Spend item %s for campaign %s already exists", item["order"], external_id)
            return False
        logger.info("Recorded spend %s for campaign %s on %s", amount_major, external_id, target_date)
        return True
