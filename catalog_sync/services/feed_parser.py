"""
Feed normalization and parsing.

Every supplier feed, whatever its wire format, is normalized into canonical
CSV text: header first, one record per physical line, no embedded newlines.
That text is what gets diffed and stored as the snapshot, and only the
changed lines are parsed back into row dictionaries.
"""

import io
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from xml.parsers.expat import ExpatError

import pandas as pd
import xmltodict

from catalog_sync.core.enums import FeedFormat
from catalog_sync.core.exceptions import FeedFormatError

logger = logging.getLogger(__name__)


def decode_feed(raw: bytes) -> str:
    """Decode feed bytes, tolerating a UTF-8 BOM and legacy Windows-1252 exports."""
    if isinstance(raw, str):
        return raw
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.debug("Feed is not valid UTF-8, decoding as cp1252")
        return raw.decode("cp1252", errors="replace")


def _resolve_path(document: Any, record_path: Optional[str]) -> Any:
    if not record_path:
        return document
    node = document
    for key in record_path.split("."):
        if not isinstance(node, dict) or key not in node:
            raise FeedFormatError(f"Record path '{record_path}' not found in feed (missing '{key}')")
        node = node[key]
    return node


def _stringify(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _stringify(v) for k, v in value.items()}
    if value is None:
        return ""
    if isinstance(value, list):
        return "|".join(str(_stringify(v)) for v in value)
    return str(value)


def _records_frame(records: Any) -> pd.DataFrame:
    if records is None:
        return pd.DataFrame()
    if isinstance(records, dict):
        records = [records]
    if not isinstance(records, list):
        raise FeedFormatError("Feed records are not a list of objects")
    rows = [_stringify(r) for r in records if isinstance(r, dict)]
    return pd.json_normalize(rows) if rows else pd.DataFrame()


def _frame_to_csv(df: pd.DataFrame) -> str:
    if df.empty and len(df.columns) == 0:
        return ""
    df = df.fillna("").astype(str)
    df.columns = [str(c).strip() for c in df.columns]
    for column in df.columns:
        df[column] = df[column].str.replace(r"[\r\n]+", " ", regex=True)
    return df.to_csv(index=False, lineterminator="\n").rstrip("\n")


@dataclass
class NormalizedFeed:
    """Canonical CSV text plus the source rows that could not be tabularized."""
    content: str = ""
    rejected_rows: List[List[str]] = field(default_factory=list)


def _read_csv(text: str, rejected_rows: List[List[str]]) -> pd.DataFrame:
    def reject(fields: List[str]):
        rejected_rows.append(fields)
        return None

    # Rows with more fields than the header are dropped and reported; short rows are padded
    return pd.read_csv(
        io.StringIO(text),
        dtype=str,
        keep_default_na=False,
        skipinitialspace=True,
        engine="python",
        index_col=False,
        on_bad_lines=reject,
    )


def normalize_feed(raw: bytes, feed_format: FeedFormat, record_path: Optional[str] = None) -> NormalizedFeed:
    """
    Convert raw feed bytes into canonical CSV text.

    CSV rows with too many columns do not fail the feed; they are returned in
    ``rejected_rows`` for the caller to count as failed records.

    Raises:
        FeedFormatError: if the payload cannot be read as a table
    """
    text = decode_feed(raw)
    if not text.strip():
        return NormalizedFeed()

    rejected_rows: List[List[str]] = []
    try:
        if feed_format == FeedFormat.CSV:
            df = _read_csv(text, rejected_rows)
        elif feed_format == FeedFormat.JSON:
            df = _records_frame(_resolve_path(json.loads(text), record_path))
        elif feed_format == FeedFormat.XML:
            df = _records_frame(_resolve_path(xmltodict.parse(text), record_path))
        else:
            raise FeedFormatError(f"Unsupported feed format: {feed_format}")
    except FeedFormatError:
        raise
    except pd.errors.EmptyDataError:
        return NormalizedFeed()
    except (pd.errors.ParserError, ValueError, ExpatError) as e:
        raise FeedFormatError(f"Could not read {feed_format.value} feed: {e}") from e

    if rejected_rows:
        logger.warning(f"Dropped {len(rejected_rows)} malformed {feed_format.value} rows")
    return NormalizedFeed(content=_frame_to_csv(df), rejected_rows=rejected_rows)


def parse_rows(csv_text: str) -> List[Dict[str, str]]:
    """Parse canonical CSV text (header + lines) into row dictionaries."""
    if not csv_text or not csv_text.strip():
        return []
    try:
        df = pd.read_csv(io.StringIO(csv_text), dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        return []
    except pd.errors.ParserError as e:
        raise FeedFormatError(f"Could not parse changed lines: {e}") from e

    df.columns = [str(c).strip() for c in df.columns]
    return df.to_dict(orient="records")
