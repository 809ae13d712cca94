import itertools

import pytest

from hubsync.campaign_map import CampaignMap
from hubsync.config import HubSpotConfig, HubSpotProperties, MsAdsConfig
from hubsync.hubspot import NAME_PROPERTY, HubSpotConflictError, HubSpotError


@pytest.fixture
def msads_config():
    return MsAdsConfig(
        client_id="test-client-id",
        refresh_token="test-refresh-token",
        developer_token="test-developer-token",
        account_id="1234567",
        customer_id="7654321",
        report_timeout=60,
        poll_interval=5,
    )


@pytest.fixture
def hubspot_config():
    return HubSpotConfig(token="pat-test-token", base_url="https://api.hubapi.test")


@pytest.fixture
def properties():
    return HubSpotProperties()


@pytest.fixture
def campaign_map(tmp_path):
    return CampaignMap(str(tmp_path / "campaign-map.json"))


class FakeHubSpot:
    """In-memory stand-in for HubSpotClient with HubSpot's conflict semantics."""

    def __init__(self):
        self.campaigns: dict[str, dict] = {}
        self.spend_items: dict[str, dict[int, dict]] = {}
        self.spend_calls: list[tuple[str, dict]] = []
        self.patch_calls: list[tuple[str, dict]] = []
        self.get_calls: list[str] = []
        self._ids = itertools.count(1001)

    def add_campaign(self, name: str, **properties) -> str:
        campaign_id = str(next(self._ids))
        self.campaigns[campaign_id] = {
            "id": campaign_id,
            "properties": {NAME_PROPERTY: name, **properties},
        }
        return campaign_id

    def get_campaign(self, campaign_id, properties=None):
        self.get_calls.append(campaign_id)
        if campaign_id not in self.campaigns:
            raise HubSpotError(f"Get campaign {campaign_id} failed (404)", 404)
        campaign = self.campaigns[campaign_id]
        return {"id": campaign["id"], "properties": dict(campaign["properties"])}

    def iter_campaigns(self, max_pages=50):
        for campaign in list(self.campaigns.values()):
            yield {"id": campaign["id"], "properties": dict(campaign["properties"])}

    def create_campaign(self, name):
        for campaign in self.campaigns.values():
            if campaign["properties"][NAME_PROPERTY] == name:
                raise HubSpotConflictError(f"Create campaign {name!r} failed (409)", 409)
        campaign_id = self.add_campaign(name)
        return {"id": campaign_id, "properties": {NAME_PROPERTY: name}}

    def patch_campaign(self, campaign_id, properties):
        self.patch_calls.append((campaign_id, dict(properties)))
        if campaign_id not in self.campaigns:
            raise HubSpotError(f"Update campaign {campaign_id} failed (404)", 404)
        self.campaigns[campaign_id]["properties"].update(properties)
        return self.campaigns[campaign_id]

    def create_spend_item(self, campaign_id, item):
        self.spend_calls.append((campaign_id, dict(item)))
        ledger = self.spend_items.setdefault(campaign_id, {})
        if item["order"] in ledger:
            raise HubSpotConflictError("Create spend item failed (409)", 409)
        ledger[item["order"]] = dict(item)
        return {"id": f"spend-{item['order']}", **item}


@pytest.fixture
def fake_hubspot():
    return FakeHubSpot()
