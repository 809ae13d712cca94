import json
from unittest.mock import patch

import pytest
import responses

from hubsync.campaign_map import CampaignMap
from hubsync.config import HubSpotProperties
from hubsync.hubspot import HubSpotClient, HubSpotError
from hubsync.resolver import seed_campaign_map
from hubsync.totals import campaign_property_definitions

CAMPAIGNS = "https://api.hubapi.test/marketing/v3/campaigns"
PROPERTIES = "https://api.hubapi.test/crm/v3/properties/marketing-campaigns"


@pytest.fixture
def hubspot(hubspot_config):
    return HubSpotClient(hubspot_config)


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("hubsync.utils.retry.time.sleep") as sleep:
        yield sleep


@responses.activate
def test_non_json_success_body_raises_hubspot_error(hubspot):
    responses.add(responses.GET, f"{CAMPAIGNS}/501", body="<html>gateway</html>", status=200)

    with pytest.raises(HubSpotError) as exc:
        hubspot.get_campaign("501")

    assert "Get campaign 501" in str(exc.value)
    assert exc.value.status_code == 200


@responses.activate
def test_empty_success_body_is_empty_dict(hubspot):
    responses.add(responses.PATCH, f"{CAMPAIGNS}/501", body="", status=200)

    assert hubspot.patch_campaign("501", {"total_clicks": 1}) == {}


@responses.activate
def test_server_errors_are_retried(hubspot, no_sleep):
    responses.add(responses.GET, f"{CAMPAIGNS}/501", status=503)
    responses.add(responses.GET, f"{CAMPAIGNS}/501", json={"id": "501"}, status=200)

    assert hubspot.get_campaign("501") == {"id": "501"}
    assert no_sleep.call_count == 1


@responses.activate
def test_ensure_properties_creates_only_missing(hubspot):
    responses.add(responses.GET, PROPERTIES, json={"results": [{"name": "total_clicks"}, {"name": "hs_name"}]})
    responses.add(responses.POST, PROPERTIES, json={"name": "created"}, status=201)
    responses.add(responses.POST, PROPERTIES, json={"message": "exists"}, status=409)
    definitions = campaign_property_definitions(HubSpotProperties(
        total_conversions="", last_status="", last_avg_cpc="", last_cpl="",
    ))

    created = hubspot.ensure_properties(definitions)

    posted = [json.loads(c.request.body)["name"] for c in responses.calls if c.request.method == "POST"]
    assert posted == ["total_impressions", "bing_last_processed"]
    assert created == ["total_impressions"]


@responses.activate
def test_ensure_properties_surfaces_other_errors(hubspot):
    responses.add(responses.GET, PROPERTIES, json={"results": []})
    responses.add(responses.POST, PROPERTIES, json={"message": "bad type"}, status=400)

    with pytest.raises(HubSpotError) as exc:
        hubspot.ensure_properties(campaign_property_definitions(HubSpotProperties()))
    assert exc.value.status_code == 400


def test_property_definitions_types():
    definitions = {d["name"]: d for d in campaign_property_definitions(HubSpotProperties())}

    assert set(definitions) == {
        "total_clicks", "total_impressions", "total_conversions", "bing_last_processed",
        "bing_last_status", "avg_cpc_last", "cpl_last",
    }
    assert definitions["total_clicks"]["type"] == "number"
    assert definitions["bing_last_processed"]["type"] == "date"
    assert definitions["bing_last_status"]["fieldType"] == "text"
    assert all(d["groupName"] == "campaigninformation" for d in definitions.values())


@responses.activate
def test_seed_campaign_map_walks_every_page(hubspot, tmp_path):
    responses.add(responses.GET, CAMPAIGNS, json={
        "results": [
            {"id": "501", "properties": {"hs_name": "Camp A"}},
            {"id": "502", "properties": {"hs_name": ""}},
        ],
        "paging": {"next": {"after": "p2"}},
    })
    responses.add(responses.GET, CAMPAIGNS, json={
        "results": [
            {"id": "503", "properties": {"hs_name": "Camp B"}},
            {"id": "504", "properties": {"hs_name": "Camp A"}},
        ],
    })
    path = str(tmp_path / "campaign-map.json")
    CampaignMap(path).set("Camp B", "999")

    changed = seed_campaign_map(hubspot, CampaignMap(path))

    reloaded = CampaignMap(path)
    assert changed == 2
    assert reloaded.get("Camp A") == "501"
    assert reloaded.get("Camp B") == "503"
    assert len(reloaded) == 2
    assert "after=p2" in responses.calls[1].request.url


@responses.activate
def test_seed_campaign_map_without_changes_does_not_write(hubspot, tmp_path):
    responses.add(responses.GET, CAMPAIGNS, json={"results": [{"id": "501", "properties": {"hs_name": "Camp A"}}]})
    path = tmp_path / "campaign-map.json"
    CampaignMap(str(path)).set("Camp A", "501")
    before = path.stat().st_mtime_ns

    assert seed_campaign_map(hubspot, CampaignMap(str(path))) == 0
    assert path.stat().st_mtime_ns == before
