"""Parser for Microsoft Advertising CSV report downloads.

The download is not a clean CSV: a few banner lines (report name, generation
time, account) precede the real header, a copyright footer follows the data,
and the delimiter depends on the account's locale settings.
"""

import csv
import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

DELIMITERS = (",", ";", "\t")
REQUIRED_COLUMNS = {"timeperiod", "campaignname", "clicks"}

# Payloads this short without a header are the network's "no data" response.
NO_DATA_MAX_LINES = 5

_BANNER_RE = re.compile(
    r'^"?\s*(report name:|report generated at|generated at|report time:|'
    r'report aggregation:|account:|©|\(c\)|copyright)',
    re.IGNORECASE,
)
_FOOTER_RE = re.compile(r'^"?\s*(©|\(c\)|copyright)', re.IGNORECASE)
_TOTAL_RE = re.compile(r'^"?\s*total:', re.IGNORECASE)


class ReportParseError(Exception):
    pass


def normalize_header_token(token: str) -> str:
    return re.sub(r"[^a-z0-9]", "", token.lower())


def pick_delimiter(line: str) -> str:
    counts = {d: line.count(d) for d in DELIMITERS}
    best = max(DELIMITERS, key=lambda d: counts[d])
    return best if counts[best] else ","


def split_quoted(line: str, delimiter: str) -> list[str]:
    """Split one line, honouring double quotes and "" escapes inside them."""
    reader = csv.reader([line], delimiter=delimiter)
    return [cell.strip() for cell in next(reader, [])]


def _find_header(lines: list[str]) -> Optional[tuple[int, str, list[str]]]:
    for index, line in enumerate(lines):
        raw = line.strip()
        if not raw or _BANNER_RE.match(raw):
            continue
        delimiter = pick_delimiter(raw)
        tokens = [normalize_header_token(c) for c in split_quoted(raw, delimiter)]
        if REQUIRED_COLUMNS.issubset(tokens):
            return index, delimiter, tokens
    return None


def parse_report(raw_text: str) -> list[dict[str, str]]:
    """Extract data rows keyed by normalized header token.

    Returns an empty list for empty payloads and for short payloads that carry
    no header. Raises ReportParseError when a longer payload has no
    recognizable header.
    """
    if not raw_text:
        return []
    text = raw_text.lstrip("\ufeff")
    lines = text.splitlines()
    if len(lines) < 2:
        return []

    header = _find_header(lines)
    if header is None:
        if len(lines) <= NO_DATA_MAX_LINES:
            logger.info("Report has no header row (%d lines), treating as no data", len(lines))
            return []
        raise ReportParseError(
            f"Report is missing the expected header row "
            f"({', '.join(sorted(REQUIRED_COLUMNS))}) in {len(lines)} lines"
        )

    header_index, delimiter, columns = header
    rows = []
    truncated = 0
    overlong = 0
    for line in lines[header_index + 1:]:
        raw = line.strip()
        if not raw or _TOTAL_RE.match(raw) or _FOOTER_RE.match(raw):
            break
        cells = split_quoted(raw, delimiter)
        if len(cells) < len(columns):
            truncated += 1
            continue
        # Extra non-empty cells mean an unquoted delimiter shifted the columns.
        if any(cells[len(columns):]):
            overlong += 1
            continue
        rows.append(dict(zip(columns, cells)))

    if truncated:
        logger.warning("Discarded %d truncated report row(s)", truncated)
    if overlong:
        logger.warning("Discarded %d report row(s) with more cells than the header", overlong)
    logger.debug("Parsed %d report row(s) with delimiter %r", len(rows), delimiter)
    return rows
