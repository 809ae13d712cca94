import logging
from typing import Iterable, Iterator, Optional

import requests

from hubsync.config import HubSpotConfig
from hubsync.utils.retry import with_retry

logger = logging.getLogger(__name__)

CAMPAIGNS_PATH = "/marketing/v3/campaigns"
PROPERTIES_PATH = "/crm/v3/properties/marketing-campaigns"
NAME_PROPERTY = "hs_name"


class HubSpotError(Exception):
    def __init__(self, message: str, status_code: int = 0, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class HubSpotConflictError(HubSpotError):
    """HubSpot answered 409: the object (or its unique key) already exists."""


class HubSpotClient:
    """Thin wrapper over the HubSpot marketing campaigns API."""

    def __init__(self, config: HubSpotConfig):
        self.config = config
        self.base_url = config.base_url.rstrip("/")

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.config.token}",
            "Content-Type": "application/json",
        }

    @with_retry(max_retries=2, base_delay=2.0, step=2.0, exceptions=(requests.ConnectionError, requests.Timeout))
    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        resp = requests.request(
            method,
            f"{self.base_url}{path}",
            headers=self._headers(),
            timeout=30,
            **kwargs,
        )
        if resp.status_code >= 500 or resp.status_code == 429:
            raise requests.ConnectionError(f"HubSpot {method} {path} transient error: {resp.status_code}")
        return resp

    @staticmethod
    def _raise_for(resp: requests.Response, action: str, ok: Iterable[int] = (200,)) -> dict:
        if resp.status_code in ok:
            if not resp.content:
                return {}
            try:
                return resp.json()
            except ValueError:
                raise HubSpotError(
                    f"{action} returned a non-JSON body ({resp.status_code}) {resp.text[:300]}",
                    resp.status_code, resp.text,
                ) from None
        message = f"{action} failed ({resp.status_code}) {resp.text[:300]}"
        if resp.status_code == 409:
            raise HubSpotConflictError(message, resp.status_code, resp.text)
        raise HubSpotError(message, resp.status_code, resp.text)

    def get_campaign(self, campaign_id: str, properties: Optional[list[str]] = None) -> dict:
        params = {"properties": properties} if properties else None
        resp = self._request("GET", f"{CAMPAIGNS_PATH}/{campaign_id}", params=params)
        return self._raise_for(resp, f"Get campaign {campaign_id}")

    def list_campaigns_page(self, after: Optional[str] = None, limit: int = 100) -> dict:
        params = {"limit": limit, "properties": [NAME_PROPERTY]}
        if after:
            params["after"] = after
        resp = self._request("GET", CAMPAIGNS_PATH, params=params)
        return self._raise_for(resp, "List campaigns")

    def iter_campaigns(self, max_pages: int = 50) -> Iterator[dict]:
        after = None
        for _ in range(max_pages):
            data = self.list_campaigns_page(after=after)
            yield from data.get("results") or []
            after = ((data.get("paging") or {}).get("next") or {}).get("after")
            if not after:
                return
        logger.warning("Stopped listing HubSpot campaigns after %d pages", max_pages)

    def create_campaign(self, name: str) -> dict:
        # Only hs_name is sent; HubSpot rejects writes to some built-in properties on create.
        resp = self._request("POST", CAMPAIGNS_PATH, json={"properties": {NAME_PROPERTY: name}})
        return self._raise_for(resp, f"Create campaign {name!r}", ok=(200, 201))

    def patch_campaign(self, campaign_id: str, properties: dict) -> dict:
        resp = self._request("PATCH", f"{CAMPAIGNS_PATH}/{campaign_id}", json={"properties": properties})
        return self._raise_for(resp, f"Update campaign {campaign_id}")

    def create_spend_item(self, campaign_id: str, item: dict) -> dict:
        resp = self._request("POST", f"{CAMPAIGNS_PATH}/{campaign_id}/spend", json=item)
        return self._raise_for(resp, f"Create spend item for {campaign_id}", ok=(200, 201))

    def list_property_names(self) -> set[str]:
        resp = self._request("GET", PROPERTIES_PATH)
        data = self._raise_for(resp, "List campaign properties")
        return {p["name"] for p in data.get("results") or [] if p.get("name")}

    def create_property(self, definition: dict) -> dict:
        resp = self._request("POST", PROPERTIES_PATH, json=definition)
        return self._raise_for(resp, f"Create campaign property {definition.get('name')!r}", ok=(200, 201))

    def ensure_properties(self, definitions: list[dict]) -> list[str]:
        """Create any missing custom campaign properties. Returns the names created."""
        existing = self.list_property_names()
        created = []
        for definition in definitions:
            name = definition["name"]
            if name in existing:
                logger.info("Campaign property %s already exists", name)
                continue
            try:
                self.create_property(definition)
            except HubSpotConflictError:
                logger.info("Campaign property %s already exists", name)
                continue
            logger.info("Created campaign property %s (%s)", name, definition.get("type"))
            created.append(name)
        return created
