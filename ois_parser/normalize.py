"""Normalization of parsed incidents into the storage shape.

Maps free-text outcomes onto a closed incident type, explodes the officer
list into name/demographic pairs and converts source dates to ISO format.
"""
from __future__ import annotations

import re
from typing import List, Optional

from dateutil.parser import parse as dt_parse

from . import config
from .protocols import IncidentRecord, IncidentType, Officer, StoredIncident

# "Name (Race/Gender)" with the parenthetical optional
OFFICER_RE = re.compile(r"^(?P<name>[^(]*?)\s*(?:\((?P<demo>[^)]*)\))?\s*$")

# Month, day and year all present ("7/7/2007", "07-07-07") or ISO "2007-07-07"
FULL_DATE_RE = re.compile(r"^\s*(?:\d{1,2}[/.-]\d{1,2}[/.-](?:\d{2}|\d{4})|\d{4}-\d{1,2}-\d{1,2})\s*$")


def null_if_sentinel(value: Optional[str]) -> Optional[str]:
    """Return None for empty and "N/A"-style values, else the stripped text."""
    if value is None:
        return None
    s = value.strip()
    return None if s.lower() in config.SENTINELS else s


def classify_outcome(outcome: str) -> IncidentType:
    """
    Map an outcome description onto IncidentType.

    Example:
        >>> classify_outcome("Deceased")
        <IncidentType.FATAL: 'fatal'>
        >>> classify_outcome("Shoot and Miss")
        <IncidentType.SHOT_FIRED_NO_HIT: 'shot_fired_no_hit'>
    """
    lowered = (outcome or "").lower()
    if "deceased" in lowered:
        return IncidentType.FATAL
    if "injured" in lowered:
        return IncidentType.NON_FATAL
    return IncidentType.SHOT_FIRED_NO_HIT


def parse_officers(officers: str) -> List[Officer]:
    """
    Split a semicolon-joined officer list into Officer entries.

    A trailing parenthetical becomes ``race_gender``; entries without one
    keep their whole text as the name.

    Args:
        officers (str): e.g. "Smith, Jane (B/F); Doe, John (W/M)"

    Returns:
        List[Officer]: One entry per non-empty item, in order
    """
    out: List[Officer] = []
    for part in (officers or "").split(";"):
        part = part.strip()
        if not part:
            continue
        m = OFFICER_RE.match(part)
        if m and m.group("name"):
            out.append(Officer(name=m.group("name").strip(), race_gender=(m.group("demo") or "").strip()))
        else:
            out.append(Officer(name=part))
    return out


def to_iso_date(date_text: str) -> Optional[str]:
    """
    Convert a month-first source date ("7/7/2007") to "2007-07-07".
    Returns None when the text is not a full date; dateutil would otherwise
    fill a missing day or year from today.
    """
    if not null_if_sentinel(date_text) or not FULL_DATE_RE.match(date_text):
        return None
    try:
        return dt_parse(date_text, dayfirst=False, yearfirst=False).date().isoformat()
    except (ValueError, OverflowError):
        return None


def to_stored(record: IncidentRecord) -> StoredIncident:
    """Build the storage row for one parsed record."""
    return StoredIncident(
        id=record.case_number,
        incident_date=to_iso_date(record.date),
        latitude=record.location.latitude,
        longitude=record.location.longitude,
        address=record.location.address,
        incident_type=classify_outcome(record.outcome),
        summary_url=record.summary_url,
        ag_forms_url=record.ag_forms_url,
        grand_jury_disposition=null_if_sentinel(record.grand_jury_disposition),
        officers=parse_officers(record.officers),
        weapons=[w for w in [null_if_sentinel(record.subject_weapon)] if w],
    )
