"""
OIS Record Extractor - tolerant parser for officer-involved shooting exports.

Turns raw delimited text into :class:`~ois_parser.protocols.IncidentRecord`
values. The exports this targets are only loosely CSV: the location column
carries embedded line breaks (street line, city line, coordinate line),
quoting is inconsistent and some rows are short or have no coordinates.
Rows that cannot be turned into a record are dropped and tallied, never
raised.

Pipeline (one pass, two tokenization phases):
    1. segment_rows: split text into logical records, keeping newlines that
       fall inside an open quoted span or before a missing coordinate line
    2. skip the first logical record (column header)
    3. split_fields: comma split outside quotes, trim, strip one quote layer
    4. extract_coordinates: last valid "(lat, lon)" in the location text
    5. extract_address: first line before that parenthetical
    6. field-count and validity gates, then emission in input order

Usage:
    >>> from ois_parser.extractor import parse_incidents
    >>> records = parse_incidents(open("ois.csv", encoding="utf-8").read())
"""
from __future__ import annotations

import logging
import math
import re
from typing import List, Optional, Tuple, Union

from pydantic import ValidationError

from . import config
from .protocols import IncidentRecord, Location, ParseResult, ParseSummary, RowRejection

logger = logging.getLogger(__name__)

# ---------- Patterns ----------

# Any "(a, b)" without nested parentheses; numeric checks happen afterwards
COORD_CANDIDATE_RE = re.compile(r"\(\s*([^(),]*?)\s*,\s*([^(),]*?)\s*\)")

# A candidate pair that ends its line
COORD_TAIL_RE = re.compile(COORD_CANDIDATE_RE.pattern + r"\s*$")

NUMBER_RE = re.compile(r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)")

# Quotes/whitespace at either end, trailing list punctuation at the end
ADDRESS_TRIM_RE = re.compile(r'^[\s"]+|[\s",;:]+$')

# ---------- Reject reasons ----------

TOO_FEW_FIELDS = "too_few_fields"
EMPTY_CASE_NUMBER = "empty_case_number"
NO_COORDINATES = "no_coordinates"
INVALID_RECORD = "invalid_record"


# ---------- Tokenization ----------

def _as_text(raw: Union[str, bytes, None]) -> str:
    if raw is None:
        return ""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8-sig", errors="replace")
    if raw.startswith("\ufeff"):
        raw = raw[1:]
    return raw.replace("\r\n", "\n").replace("\r", "\n")


def _quote_state(text: str, in_quotes: bool = False, field_start: bool = True) -> Tuple[bool, bool]:
    """
    Advance quote tracking over ``text``.

    A double quote opens a quoted span only where a field begins (start of
    the row or right after a comma, leading blanks allowed). Anywhere else,
    such as the inch mark in ``Knife 6"``, it is a literal character.

    Returns:
        Tuple[bool, bool]: (in_quotes, field_start) after the last character
    """
    for ch in text:
        if in_quotes:
            if ch == '"':
                in_quotes = False
        elif ch == '"' and field_start:
            in_quotes = True
            field_start = False
        elif ch == ",":
            field_start = True
        elif not ch.isspace():
            field_start = False
    return in_quotes, field_start


def _ends_with_coordinates(line: str) -> bool:
    m = COORD_TAIL_RE.search(line)
    return bool(m) and _to_float(m.group(1)) is not None and _to_float(m.group(2)) is not None


def _awaits_coordinates(record: str) -> bool:
    """True for a full-width record whose unquoted location has no coordinates yet."""
    if record.rstrip().endswith('"'):
        return False
    fields = split_fields(record)
    if len(fields) < config.MIN_FIELD_COUNT:
        return False
    return find_coordinates(", ".join(fields[config.LEADING_FIELD_COUNT:])) is None


def _is_continuation(line: str) -> bool:
    return bool(line.strip()) and len(split_fields(line)) < config.MIN_FIELD_COUNT


def segment_rows(text: str) -> List[str]:
    """
    Split text into logical records.

    A line break ends the current record unless:

    * a quoted span is open, so a quoted multi-line location stays with its
      row. A line ending in a ``(lat, lon)`` parenthetical still closes the
      record, which keeps an unterminated quote from swallowing later rows.
    * the record has all its columns but an unquoted location without
      coordinates. Following short lines (fewer columns than a row) are
      folded in until the coordinate line shows up, at most
      ``config.MAX_FOLDED_LINES`` of them. The header record is never
      folded.

    Blank lines outside a quoted span are dropped.

    Args:
        text (str): Raw export text with normalized line endings

    Returns:
        List[str]: Logical records in input order

    Example:
        >>> segment_rows('a,"x\\ny"\\nb,c')
        ['a,"x\\ny"', 'b,c']
    """
    rows: List[str] = []
    current: List[str] = []
    in_quotes = False
    folded = 0

    for line in text.split("\n"):
        if current:
            if in_quotes:
                current.append(line)
                in_quotes, _ = _quote_state(line, in_quotes=True, field_start=False)
                if in_quotes and _ends_with_coordinates(line):
                    in_quotes = False
                continue
            if (rows and folded < config.MAX_FOLDED_LINES and _is_continuation(line)
                    and _awaits_coordinates("\n".join(current))):
                current.append(line)
                folded += 1
                in_quotes, _ = _quote_state(line, field_start=False)
                if in_quotes and _ends_with_coordinates(line):
                    in_quotes = False
                continue
            rows.append("\n".join(current))
            current = []
            folded = 0
        if not line.strip():
            continue
        current = [line]
        in_quotes, _ = _quote_state(line)
        if in_quotes and _ends_with_coordinates(line):
            in_quotes = False

    if current:
        rows.append("\n".join(current))
    return rows


def _strip_field(field: str) -> str:
    field = field.strip()
    if len(field) >= 2 and field[0] == '"' and field[-1] == '"':
        field = field[1:-1].strip()
    return field


def split_fields(row: str) -> List[str]:
    """
    Split one logical record on commas that are outside quoted spans.

    Quoted spans open only at the start of a field, as in
    :func:`segment_rows`. Each field is trimmed and loses one layer of
    enclosing quotes. This is not a full CSV grammar: doubled quotes are
    not unescaped.

    Args:
        row (str): A logical record from :func:`segment_rows`

    Returns:
        List[str]: Field values, at least one (possibly empty)
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False
    field_start = True
    for ch in row:
        if in_quotes:
            if ch == '"':
                in_quotes = False
        elif ch == '"' and field_start:
            in_quotes = True
            field_start = False
        elif ch == ",":
            fields.append(_strip_field("".join(current)))
            current = []
            field_start = True
            continue
        elif not ch.isspace():
            field_start = False
        current.append(ch)
    fields.append(_strip_field("".join(current)))
    return fields


# ---------- Location helpers ----------

def _to_float(text: str) -> Optional[float]:
    if not NUMBER_RE.fullmatch(text):
        return None
    value = float(text)
    return value if math.isfinite(value) else None


def find_coordinates(location: str) -> Optional[Tuple[Tuple[float, float], int]]:
    """
    Locate the coordinate parenthetical in location text.

    Candidates are tried from last to first so a numeric parenthetical in
    the street line never shadows the real pair after it.

    Returns:
        Optional[Tuple[Tuple[float, float], int]]: ((lat, lon), start offset
        of the parenthetical), or None when no candidate holds two finite
        numbers
    """
    if not location:
        return None
    for m in reversed(list(COORD_CANDIDATE_RE.finditer(location))):
        lat = _to_float(m.group(1))
        lon = _to_float(m.group(2))
        if lat is not None and lon is not None:
            return (lat, lon), m.start()
    return None


def extract_coordinates(location: str) -> Optional[Tuple[float, float]]:
    """Return the last valid (lat, lon) pair in ``location``, or None."""
    found = find_coordinates(location)
    return found[0] if found else None


def extract_address(location: str, coord_start: Optional[int] = None) -> str:
    """
    First non-empty line of the location text before the coordinates.

    Args:
        location (str): Location field text
        coord_start (Optional[int]): Offset of the coordinate parenthetical;
            looked up when not given

    Returns:
        str: Cleaned address, possibly empty
    """
    if coord_start is None:
        found = find_coordinates(location)
        coord_start = found[1] if found else len(location)
    for line in location[:coord_start].split("\n"):
        line = ADDRESS_TRIM_RE.sub("", line)
        if line:
            return line
    return ""


def _excerpt(row: str) -> str:
    return re.sub(r"\s+", " ", row).strip()[:config.EXCERPT_LENGTH]


def _url_or_none(field: str) -> Optional[str]:
    return None if field.strip().lower() in config.SENTINELS else field


# ---------- Record assembly ----------

def _build_record(fields: List[str]) -> Tuple[Optional[IncidentRecord], Optional[str]]:
    """Apply the gates to one tokenized row. Returns (record, reject reason)."""
    if len(fields) < config.MIN_FIELD_COUNT:
        return None, TOO_FEW_FIELDS
    if not fields[0]:
        return None, EMPTY_CASE_NUMBER

    # Unquoted commas may have split the location; fold the tail back in.
    location_text = ", ".join(fields[config.LEADING_FIELD_COUNT:])
    found = find_coordinates(location_text)
    if found is None:
        return None, NO_COORDINATES
    coordinates, coord_start = found

    ag_forms_url = _url_or_none(fields[config.AG_FORMS_URL_INDEX])
    summary_url = _url_or_none(fields[config.SUMMARY_URL_INDEX])
    try:
        record = IncidentRecord(
            case_number=fields[0],
            date=fields[1],
            outcome=fields[2],
            subject_weapon=fields[3],
            officers=fields[4],
            grand_jury_disposition=fields[5],
            reference_urls=tuple(u for u in (ag_forms_url, summary_url) if u),
            ag_forms_url=ag_forms_url,
            summary_url=summary_url,
            location=Location(
                address=extract_address(location_text, coord_start),
                coordinates=coordinates,
            ),
        )
    except ValidationError:
        return None, INVALID_RECORD
    return record, None


def parse_with_summary(raw_text: Union[str, bytes, None],
                       max_rejections: int = config.MAX_REJECTIONS) -> ParseResult:
    """
    Parse an OIS export and report what was kept and what was dropped.

    Never raises for row-level problems. Empty or header-only input yields
    an empty result.

    Args:
        raw_text (Union[str, bytes, None]): Whole export; bytes are decoded
            as UTF-8
        max_rejections (int): How many individual rejections to keep in the
            summary (counts are always complete)

    Returns:
        ParseResult: Accepted records in input order plus a ParseSummary
    """
    summary = ParseSummary()
    records: List[IncidentRecord] = []

    rows = segment_rows(_as_text(raw_text))
    for row_number, row in enumerate(rows[1:], start=1):
        fields = split_fields(row)
        record, reason = _build_record(fields)
        if record is None:
            rejection = RowRejection(
                row_number=row_number,
                reason=reason,
                case_number=fields[0],
                excerpt=_excerpt(row),
            )
            summary.add_rejection(rejection, max_rejections)
            logger.debug("row %d rejected (%s): %s", row_number, reason, rejection.excerpt)
            continue
        records.append(record)
        summary.add_accepted()

    logger.debug("parsed %d rows: %d accepted, %d rejected",
                 summary.rows_seen, summary.accepted, summary.rejected)
    return ParseResult(records=records, summary=summary)


def parse_incidents(raw_text: Union[str, bytes, None]) -> List[IncidentRecord]:
    """Parse an OIS export into incident records, dropping malformed rows."""
    return parse_with_summary(raw_text).records
