import os
from dataclasses import dataclass, field


@dataclass(frozen=True)
class MsAdsConfig:
    client_id: str
    refresh_token: str
    developer_token: str
    account_id: str
    customer_id: str
    client_secret: str = ""
    public_client: bool = False
    report_timeout: float = 12 * 60
    poll_interval: float = 5.0


@dataclass(frozen=True)
class HubSpotProperties:
    # Names of the custom campaign properties. An empty name disables that write.
    total_clicks: str = "total_clicks"
    total_impressions: str = "total_impressions"
    total_conversions: str = "total_conversions"
    last_processed: str = "bing_last_processed"
    last_status: str = "bing_last_status"
    last_avg_cpc: str = "avg_cpc_last"
    last_cpl: str = "cpl_last"


@dataclass(frozen=True)
class HubSpotConfig:
    token: str
    base_url: str = "https://api.hubapi.com"
    properties: HubSpotProperties = field(default_factory=HubSpotProperties)


@dataclass(frozen=True)
class SyncConfig:
    campaign_map_path: str = "campaign-map.json"
    spend_source_label: str = "Bing Ads"
    timezone: str = "Europe/London"


@dataclass(frozen=True)
class AppConfig:
    msads: MsAdsConfig
    hubspot: HubSpotConfig
    sync: SyncConfig = field(default_factory=SyncConfig)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def load_config(require_msads: bool = True) -> AppConfig:
    """Load and validate all configuration from environment variables.

    HubSpot-only tools pass require_msads=False to skip the Microsoft Ads checks.
    """
    missing = []

    def _get(name: str, required: bool = True) -> str:
        val = os.environ.get(name, "").strip()
        if not val:
            if required:
                missing.append(name)
            return ""
        return val

    def _opt(name: str, default: str) -> str:
        # Set-but-empty is honoured so a property can be switched off.
        val = os.environ.get(name)
        return default if val is None else val.strip()

    msads = MsAdsConfig(
        client_id=_get("MSADS_CLIENT_ID", require_msads),
        refresh_token=_get("MSADS_REFRESH_TOKEN", require_msads),
        developer_token=_get("MSADS_DEVELOPER_TOKEN", require_msads),
        account_id=_get("MSADS_ACCOUNT_ID", require_msads),
        customer_id=_get("MSADS_CUSTOMER_ID", require_msads),
        client_secret=os.environ.get("MSADS_CLIENT_SECRET", "").strip(),
        public_client=os.environ.get("MSADS_PUBLIC_CLIENT", "").strip().lower() == "true",
        report_timeout=_env_float("MSADS_REPORT_TIMEOUT_SECONDS", 12 * 60),
        poll_interval=_env_float("MSADS_REPORT_POLL_SECONDS", 5.0),
    )

    defaults = HubSpotProperties()
    hubspot = HubSpotConfig(
        token=_get("HUBSPOT_PRIVATE_APP_TOKEN"),
        properties=HubSpotProperties(
            total_clicks=_opt("HSPROP_TOTAL_CLICKS", defaults.total_clicks),
            total_impressions=_opt("HSPROP_TOTAL_IMPRESSIONS", defaults.total_impressions),
            total_conversions=_opt("HSPROP_TOTAL_CONVERSIONS", defaults.total_conversions),
            last_processed=_opt("HSPROP_LAST_BING_DATE", defaults.last_processed),
            last_status=_opt("HSPROP_LAST_STATUS", defaults.last_status),
            last_avg_cpc=_opt("HSPROP_LAST_AVG_CPC", defaults.last_avg_cpc),
            last_cpl=_opt("HSPROP_LAST_CPL", defaults.last_cpl),
        ),
    )

    if missing:
        raise ValueError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    if not (hubspot.properties.total_clicks and hubspot.properties.last_processed):
        raise ValueError("HSPROP_TOTAL_CLICKS and HSPROP_LAST_BING_DATE cannot be empty")

    sync = SyncConfig(
        campaign_map_path=_opt("CAMPAIGN_MAP_FILE", "campaign-map.json") or "campaign-map.json",
        spend_source_label=_opt("SPEND_SOURCE_LABEL", "Bing Ads") or "Bing Ads",
        timezone=_opt("SYNC_TIMEZONE", "Europe/London") or "Europe/London",
    )

    return AppConfig(msads=msads, hubspot=hubspot, sync=sync)
