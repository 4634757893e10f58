"""Parsing of tabular video exports into VideoRecord objects.

Rows come from CSV files with loosely named columns. Every field is
optional; a row with bad or missing values is null-filled rather than
dropped.
"""

import csv
import io
import re
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from shared.logging import get_logger
from shared.models import VideoRecord

logger = get_logger(__name__)

# Normalized header name -> record field
COLUMN_ALIASES = {
    "title": "title",
    "video_title": "title",
    "name": "title",
    "url": "url",
    "video_url": "url",
    "link": "url",
    "published_at": "published_at",
    "publishedat": "published_at",
    "published": "published_at",
    "date": "published_at",
    "upload_date": "published_at",
    "description": "description",
    "desc": "description",
    "summary": "description",
    "tags": "tags",
    "keywords": "tags",
}

VIDEO_ID_PATTERNS = (
    re.compile(r"watch\?(?:[^#]*&)?v=([A-Za-z0-9_-]+)"),
    re.compile(r"youtu\.be/([A-Za-z0-9_-]+)"),
)

_PUNCTUATION = re.compile(r"[^\w\s]")

TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%b %d, %Y",
    "%d %b %Y",
    "%B %d, %Y",
)


def normalize_header(header: Optional[str]) -> str:
    if not header:
        return ""
    return header.strip().lower().replace(" ", "_").replace("-", "_")


def extract_video_id(url: str) -> str:
    """Return the video id from a watch or short link, or ``""``."""
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(url or "")
        if match:
            return match.group(1)
    return ""


def derive_tags(*texts: str) -> list[str]:
    """Lower-case, strip punctuation and tokenize; unique, first-seen order."""
    tags: dict[str, None] = {}
    for text in texts:
        if not text:
            continue
        for token in _PUNCTUATION.sub("", text.lower()).split():
            tags.setdefault(token, None)
    return list(tags)


def parse_timestamp(value: str) -> Optional[datetime]:
    """
    Parse a publish timestamp in one of the formats seen in exports.

    Naive values are taken as UTC. Returns None when nothing matches.
    """
    value = (value or "").strip()
    if not value:
        return None

    parsed: Optional[datetime] = None
    iso = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    try:
        parsed = datetime.fromisoformat(iso)
    except ValueError:
        for fmt in TIMESTAMP_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _cell(value: Any) -> str:
    # DictReader yields None for short rows and lists for overflow cells
    if isinstance(value, str):
        return value.strip()
    return ""


def record_from_row(row: dict[Optional[str], Any]) -> Optional[VideoRecord]:
    """
    Build a record from one CSV row.

    Returns None only for rows with no usable content at all.
    """
    fields: dict[str, str] = {}
    for header, value in row.items():
        field = COLUMN_ALIASES.get(normalize_header(header))
        if field and field not in fields:
            fields[field] = _cell(value)

    if not any(fields.values()):
        return None

    url = fields.get("url", "")
    return VideoRecord(
        id=extract_video_id(url),
        title=fields.get("title", ""),
        url=url,
        published_at=fields.get("published_at", ""),
        tags=derive_tags(fields.get("description", ""), fields.get("tags", "")),
    )


def parse_records(text: str) -> list[VideoRecord]:
    """
    Parse CSV text into records in source order.

    Rows the CSV reader cannot tokenize (an oversized field, a stray NUL)
    are skipped like any other malformed row.
    """
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    return list(_iter_records(reader))


def _iter_records(reader: csv.DictReader) -> Iterator[VideoRecord]:
    skipped = 0
    while True:
        try:
            row = next(reader)
        except StopIteration:
            break
        except csv.Error as e:
            # The reader drops the offending line and resumes on the next one
            skipped += 1
            logger.debug("Skipping unreadable row", line=reader.line_num, error=str(e))
            continue

        try:
            record = record_from_row(row)
        except ValueError as e:
            skipped += 1
            logger.debug("Skipping malformed row", line=reader.line_num, error=str(e))
            continue
        if record is not None:
            yield record

    if skipped:
        logger.warning("Skipped malformed dataset rows", count=skipped)
