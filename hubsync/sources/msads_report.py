import enum
import gzip
import io
import json
import logging
import time
import zipfile
import zlib
from dataclasses import dataclass
from datetime import date
from typing import Optional

import requests

from hubsync.config import MsAdsConfig
from hubsync.sources.base import BaseReportSource, CampaignMetricRecord
from hubsync.sources.msads_auth import MsAdsTokenProvider
from hubsync.sources.normalizer import normalize_rows
from hubsync.sources.report_parser import parse_report
from hubsync.utils.retry import retry_call

logger = logging.getLogger(__name__)

API_BASE = "https://reporting.api.bingads.microsoft.com/Reporting/v13"
SUBMIT_URL = f"{API_BASE}/GenerateReport/Submit"
POLL_URL = f"{API_BASE}/GenerateReport/Poll"

REPORT_COLUMNS = [
    "TimePeriod", "AccountId", "AccountName", "CampaignId", "CampaignName",
    "CampaignStatus", "Impressions", "Clicks", "AverageCpc", "Spend",
    "Conversions", "AllCostPerConversion",
]

# Returned when the requested day lies outside the account's reportable history.
INVALID_DATE_RANGE_CODE = 2010
INVALID_DATE_RANGE_ERROR = "InvalidCustomDateRangeEnd"

SUBMIT_RETRY_DELAY = 4.0
ZIP_MAGIC = b"PK\x03\x04"
GZIP_MAGIC = b"\x1f\x8b"


class ReportStatus(enum.Enum):
    PENDING = "Pending"
    SUCCESS = "Success"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"

    @property
    def is_terminal(self) -> bool:
        return self is not ReportStatus.PENDING

    @classmethod
    def from_api(cls, value: Optional[str]) -> "ReportStatus":
        if value == "Success":
            return cls.SUCCESS
        if value in ("Error", "Failed"):
            return cls.FAILED
        return cls.PENDING


@dataclass
class ReportJob:
    request_id: str
    scope_date: date
    status: ReportStatus = ReportStatus.PENDING
    download_url: Optional[str] = None


class ReportJobError(Exception):
    pass


class ReportDecodeError(Exception):
    pass


def _is_invalid_date_range(status_code: int, body: str) -> bool:
    if status_code < 400:
        return False
    if INVALID_DATE_RANGE_ERROR in body:
        return True
    try:
        payload = json.loads(body)
    except ValueError:
        return f'"Code":{INVALID_DATE_RANGE_CODE}' in body.replace(" ", "")
    if not isinstance(payload, dict):
        return False
    errors = list(payload.get("OperationErrors") or []) + list(payload.get("BatchErrors") or [])
    errors.append(payload)
    for err in errors:
        if not isinstance(err, dict):
            continue
        if err.get("Code") in (INVALID_DATE_RANGE_CODE, str(INVALID_DATE_RANGE_CODE)):
            return True
        if err.get("ErrorCode") == INVALID_DATE_RANGE_ERROR:
            return True
    return False


def decode_payload(data: bytes) -> str:
    """Decode a report download that may be zipped, gzipped or plain text."""
    try:
        if data.startswith(ZIP_MAGIC):
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                names = [n for n in archive.namelist() if not n.endswith("/")]
                if not names:
                    return ""
                csv_names = [n for n in names if n.lower().endswith(".csv")]
                raw = archive.read((csv_names or names)[0])
        elif data.startswith(GZIP_MAGIC):
            raw = gzip.decompress(data)
        else:
            raw = data
        return raw.decode("utf-8-sig")
    except (zipfile.BadZipFile, zlib.error, OSError, EOFError, UnicodeDecodeError) as e:
        raise ReportDecodeError(f"Could not decode report payload: {e}") from e


class MsAdsReportClient:
    """Drives the Submit -> Poll -> Download report protocol for one day."""

    def __init__(self, config: MsAdsConfig, token_provider: MsAdsTokenProvider):
        self.config = config
        self.token_provider = token_provider

    def _headers(self, token: str) -> dict:
        return {
            "Authorization": f"Bearer {token}",
            "DeveloperToken": self.config.developer_token,
            "CustomerId": str(self.config.customer_id),
            "CustomerAccountId": str(self.config.account_id),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def build_report_request(self, target_date: date) -> dict:
        day = {"Day": target_date.day, "Month": target_date.month, "Year": target_date.year}
        return {
            "ReportRequest": {
                "Type": "CampaignPerformanceReportRequest",
                "Format": "Csv",
                "ReportName": f"CampaignPerf {target_date.isoformat()}",
                "ReturnOnlyCompleteData": False,
                "Aggregation": "Daily",
                "Scope": {"AccountIds": [str(self.config.account_id)]},
                "Time": {
                    "CustomDateRangeStart": day,
                    "CustomDateRangeEnd": day,
                },
                "Columns": REPORT_COLUMNS,
            }
        }

    def _submit_once(self, token: str, target_date: date) -> Optional[str]:
        resp = requests.post(
            SUBMIT_URL,
            json=self.build_report_request(target_date),
            headers=self._headers(token),
            timeout=30,
        )
        if _is_invalid_date_range(resp.status_code, resp.text):
            logger.info("Report date %s rejected as out of range, treating as no data", target_date)
            return None
        request_id = None
        if resp.status_code == 200:
            try:
                request_id = resp.json().get("ReportRequestId")
            except ValueError:
                request_id = None
        if not request_id:
            raise ReportJobError(f"Submit report failed: {resp.status_code} {resp.text[:300]}")
        return request_id

    def submit(self, token: str, target_date: date) -> Optional[ReportJob]:
        """Submit a one-day report job. Returns None when the day is soft-skipped."""
        request_id = retry_call(
            self._submit_once, token, target_date,
            max_retries=1, base_delay=SUBMIT_RETRY_DELAY,
            exceptions=(requests.RequestException, ReportJobError),
        )
        if request_id is None:
            return None
        logger.info("Submitted report %s for %s", request_id, target_date)
        return ReportJob(request_id=request_id, scope_date=target_date)

    def poll(self, token: str, job: ReportJob) -> ReportJob:
        """Poll until the job is terminal or the overall timeout elapses."""
        started = time.monotonic()
        while True:
            try:
                resp = retry_call(
                    requests.post, POLL_URL,
                    json={"ReportRequestId": job.request_id},
                    headers=self._headers(token),
                    timeout=30,
                    max_retries=1, base_delay=self.config.poll_interval,
                    exceptions=(requests.RequestException,),
                )
                resp.raise_for_status()
                status_obj = resp.json().get("ReportRequestStatus") or {}
            except (requests.RequestException, ValueError) as e:
                logger.warning("Polling report %s failed: %s", job.request_id, e)
                job.status = ReportStatus.FAILED
                return job

            job.status = ReportStatus.from_api(status_obj.get("Status"))
            job.download_url = status_obj.get("ReportDownloadUrl") or None
            logger.debug("Report %s status: %s", job.request_id, job.status.value)
            if job.status.is_terminal:
                return job

            if time.monotonic() - started > self.config.report_timeout:
                job.status = ReportStatus.TIMED_OUT
                return job
            time.sleep(self.config.poll_interval)

    def download(self, token: str, url: str) -> str:
        try:
            resp = requests.get(url, timeout=60)
            if resp.status_code in (401, 403):
                logger.info("Anonymous report download rejected (%d), retrying with bearer token", resp.status_code)
                resp = requests.get(url, headers={"Authorization": f"Bearer {token}"}, timeout=60)
        except requests.RequestException as e:
            logger.warning("Report download failed: %s, treating as no data", e)
            return ""
        if resp.status_code != 200:
            logger.warning("Report download returned %d, treating as no data", resp.status_code)
            return ""
        return decode_payload(resp.content)

    def fetch_daily_report(self, target_date: date) -> str:
        """Return the decoded report text for one day, or "" when there is no data."""
        token = self.token_provider.get_access_token()

        job = self.submit(token, target_date)
        if job is None:
            return ""

        job = self.poll(token, job)
        if job.status is not ReportStatus.SUCCESS:
            logger.warning("Report %s for %s ended %s, treating as no data",
                           job.request_id, target_date, job.status.value)
            return ""
        if not job.download_url:
            logger.info("Report %s for %s succeeded without a download URL (no rows)",
                        job.request_id, target_date)
            return ""

        return self.download(token, job.download_url)


class MsAdsSource(BaseReportSource):
    label = "Bing Ads"

    def __init__(self, client: MsAdsReportClient, label: Optional[str] = None):
        self.client = client
        if label:
            self.label = label

    def fetch_rows(self, target_date: date) -> list[CampaignMetricRecord]:
        raw_text = self.client.fetch_daily_report(target_date)
        rows = parse_report(raw_text)
        records = normalize_rows(rows, target_date)
        logger.info("Microsoft Ads rows for %s: %d", target_date, len(records))
        return records
