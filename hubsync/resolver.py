import logging
from typing import Optional

from hubsync.campaign_map import CampaignMap
from hubsync.hubspot import NAME_PROPERTY, HubSpotClient, HubSpotConflictError, HubSpotError
from hubsync.utils.retry import retry_call

logger = logging.getLogger(__name__)

# HubSpot's list endpoint can lag a create by several seconds.
CONFLICT_SEARCH_ATTEMPTS = 6
CONFLICT_BASE_DELAY = 1.0
CONFLICT_DELAY_STEP = 0.5


class CampaignResolutionError(Exception):
    pass


class _NotVisibleYet(Exception):
    pass


class CampaignResolver:
    """Maps campaign names to HubSpot campaign ids, creating campaigns on first sight."""

    def __init__(self, hubspot: HubSpotClient, campaign_map: CampaignMap,
                 dry_run: bool = False, max_pages: int = 50):
        self.hubspot = hubspot
        self.campaign_map = campaign_map
        self.dry_run = dry_run
        self.max_pages = max_pages

    def _verify_cached(self, name: str, campaign_id: str) -> bool:
        try:
            campaign = self.hubspot.get_campaign(campaign_id, properties=[NAME_PROPERTY])
        except HubSpotError as e:
            logger.warning("Cached id %s for %r failed verification (%s), dropping it",
                           campaign_id, name, e.status_code or e)
            return False
        hs_name = (campaign.get("properties") or {}).get(NAME_PROPERTY)
        if hs_name is not None and hs_name != name:
            logger.warning("Cached id %s now belongs to %r, not %r; dropping it", campaign_id, hs_name, name)
            return False
        return True

    def find_by_name(self, name: str) -> Optional[str]:
        """Exact-name scan over every campaign page."""
        for campaign in self.hubspot.iter_campaigns(max_pages=self.max_pages):
            if (campaign.get("properties") or {}).get(NAME_PROPERTY) == name:
                return str(campaign["id"])
        return None

    def _find_or_raise(self, name: str) -> str:
        campaign_id = self.find_by_name(name)
        if campaign_id is None:
            raise _NotVisibleYet(f"{name!r} not listed yet")
        return campaign_id

    def _remember(self, name: str, campaign_id: str) -> str:
        self.campaign_map.set(name, campaign_id)
        return campaign_id

    def resolve(self, name: str) -> Optional[str]:
        """Return the HubSpot id for name, creating the campaign if needed.

        In dry-run mode nothing is created and None is returned for unknown
        names. Raises CampaignResolutionError if a create conflicted but the
        campaign never became visible.
        """
        if not name:
            raise CampaignResolutionError("Campaign name is empty")

        cached = self.campaign_map.get(name)
        if cached:
            if self._verify_cached(name, cached):
                return cached
            self.campaign_map.remove(name)

        found = self.find_by_name(name)
        if found:
            return self._remember(name, found)

        if self.dry_run:
            logger.info("[DRY RUN] Would create HubSpot campaign %r", name)
            return None

        try:
            created = self.hubspot.create_campaign(name)
        except HubSpotConflictError:
            logger.info("Create for %r conflicted, waiting for it to appear in listings", name)
            try:
                found = retry_call(
                    self._find_or_raise, name,
                    max_retries=CONFLICT_SEARCH_ATTEMPTS - 1,
                    base_delay=CONFLICT_BASE_DELAY,
                    step=CONFLICT_DELAY_STEP,
                    exceptions=(_NotVisibleYet,),
                )
            except _NotVisibleYet:
                raise CampaignResolutionError(
                    f"Create campaign conflicted but {name!r} was not found after "
                    f"{CONFLICT_SEARCH_ATTEMPTS} searches"
                )
            return self._remember(name, found)

        campaign_id = str(created.get("id") or "")
        if not campaign_id:
            raise CampaignResolutionError(f"Create campaign returned no id for {name!r}")
        logger.info("Created HubSpot campaign %r -> %s", name, campaign_id)
        return self._remember(name, campaign_id)


def seed_campaign_map(hubspot: HubSpotClient, campaign_map: CampaignMap, max_pages: int = 50) -> int:
    """Fill the local name cache from every existing HubSpot campaign.

    When several campaigns share a name the first one listed wins, matching
    find_by_name. Returns the number of cache entries added or changed.
    """
    entries: dict[str, str] = {}
    for campaign in hubspot.iter_campaigns(max_pages=max_pages):
        name = (campaign.get("properties") or {}).get(NAME_PROPERTY)
        campaign_id = campaign.get("id")
        if not name or not campaign_id:
            continue
        if name in entries:
            logger.warning("Duplicate HubSpot campaign name %r (%s and %s), keeping %s",
                           name, entries[name], campaign_id, entries[name])
            continue
        entries[name] = str(campaign_id)
    changed = campaign_map.update(entries)
    logger.info("Listed %d named campaign(s); %d cache entr%s updated",
                len(entries), changed, "y" if changed == 1 else "ies")
    return changed
