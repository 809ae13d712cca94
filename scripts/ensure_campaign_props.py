"""Create the custom HubSpot campaign properties the sync writes to.

Run once per portal before the first sync; properties that already exist are
left alone. Property names come from the HSPROP_* variables, and an empty
value skips that property.

    python scripts/ensure_campaign_props.py
"""

import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

from hubsync.hubspot import HubSpotClient, HubSpotError
from hubsync.main import load_config_or_exit
from hubsync.totals import campaign_property_definitions
from hubsync.utils.logger import setup_logging


def main():
    load_dotenv()
    logger = setup_logging(os.environ.get("LOG_LEVEL", "INFO"))
    config = load_config_or_exit(logger, require_msads=False)

    definitions = campaign_property_definitions(config.hubspot.properties)
    logger.info("Ensuring %d HubSpot campaign propert%s exist", len(definitions),
                "y" if len(definitions) == 1 else "ies")
    try:
        created = HubSpotClient(config.hubspot).ensure_properties(definitions)
    except HubSpotError as e:
        logger.error("Could not ensure campaign properties: %s", e)
        sys.exit(1)

    if created:
        logger.info("Created: %s", ", ".join(created))
    else:
        logger.info("No new properties were needed")


if __name__ == "__main__":
    main()
