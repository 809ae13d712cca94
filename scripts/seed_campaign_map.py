"""Seed the local campaign name -> id cache from existing HubSpot campaigns.

Useful on a new machine or after the cache file was lost, so the first sync
does not have to scan every campaign page for each name.

    python scripts/seed_campaign_map.py [--max-pages 50]
"""

import argparse
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

from hubsync.campaign_map import CampaignMap
from hubsync.hubspot import HubSpotClient, HubSpotError
from hubsync.main import load_config_or_exit
from hubsync.resolver import seed_campaign_map
from hubsync.utils.logger import setup_logging


def main():
    load_dotenv()
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--max-pages", type=int, default=50)
    args = parser.parse_args()

    logger = setup_logging(os.environ.get("LOG_LEVEL", "INFO"))
    config = load_config_or_exit(logger, require_msads=False)

    campaign_map = CampaignMap(config.sync.campaign_map_path)
    try:
        seed_campaign_map(HubSpotClient(config.hubspot), campaign_map, max_pages=args.max_pages)
    except HubSpotError as e:
        logger.error("Could not list HubSpot campaigns: %s", e)
        sys.exit(1)
    logger.info("Campaign map %s now holds %d name(s)", config.sync.campaign_map_path, len(campaign_map))


if __name__ == "__main__":
    main()
