import logging
from typing import Optional

import requests

from hubsync.config import MsAdsConfig
from hubsync.utils.retry import with_retry

logger = logging.getLogger(__name__)

TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
SCOPE = "https://ads.microsoft.com/msads.manage offline_access"


class MsAdsAuthError(Exception):
    pass


class MsAdsTokenProvider:
    """Exchanges the long-lived refresh token for an access token, once per run."""

    def __init__(self, config: MsAdsConfig):
        self.config = config
        self._access_token: Optional[str] = None

    def get_access_token(self) -> str:
        if self._access_token is None:
            self._access_token = self._refresh()
        return self._access_token

    @with_retry(max_retries=2, base_delay=2.0, step=2.0, exceptions=(requests.ConnectionError, requests.Timeout))
    def _refresh(self) -> str:
        data = {
            "client_id": self.config.client_id,
            "grant_type": "refresh_token",
            "refresh_token": self.config.refresh_token,
            "scope": SCOPE,
        }
        # Public (native) clients must not send a secret.
        if self.config.client_secret and not self.config.public_client:
            data["client_secret"] = self.config.client_secret

        resp = requests.post(TOKEN_URL, data=data, timeout=30)
        if resp.status_code >= 500:
            raise requests.ConnectionError(f"Token endpoint error: {resp.status_code}")

        try:
            payload = resp.json()
        except ValueError:
            payload = {}
        token = payload.get("access_token")
        if resp.status_code != 200 or not token:
            raise MsAdsAuthError(
                f"Failed to get Microsoft Ads access token: {resp.status_code} "
                f"{payload.get('error_description') or payload.get('error') or resp.text[:200]}"
            )
        logger.info("Obtained Microsoft Ads access token")
        return token
