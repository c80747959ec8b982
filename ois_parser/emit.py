"""
Output writers for parsed incidents.

Produces the payload a map view consumes (GeoJSON point features carrying
the popup fields), plus JSONL and CSV exports and JSON-schema checks of the
emitted records.
"""
from __future__ import annotations

import csv
import json
import logging
import os
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from jsonschema import Draft7Validator

from . import config
from .protocols import IncidentRecord

logger = logging.getLogger(__name__)

# Path to the bundled record schema
RECORD_SCHEMA_PATH: str = os.path.join(os.path.dirname(__file__), "schemas", "incident_record.schema.json")

CSV_COLUMNS = [
    "case_number", "date", "outcome", "subject_weapon", "officers",
    "grand_jury_disposition", "reference_urls", "ag_forms_url", "summary_url",
    "address", "latitude", "longitude",
]

# ---------- Map payload ----------

def map_center(records: Sequence[IncidentRecord]) -> Tuple[float, float]:
    """First record's coordinates, or the default center when there are none."""
    if records:
        return records[0].location.coordinates
    return config.DEFAULT_CENTER


def to_marker(record: IncidentRecord) -> Dict[str, Any]:
    """
    Build one GeoJSON Feature for a map marker.

    Geometry follows GeoJSON axis order ([longitude, latitude]); properties
    hold what the popup shows. ``link`` prefers the summary URL and is None
    when the record has no reference URL.
    """
    return {
        "type": "Feature",
        "id": record.case_number,
        "geometry": {
            "type": "Point",
            "coordinates": [record.location.longitude, record.location.latitude],
        },
        "properties": {
            "caseNumber": record.case_number,
            "date": record.date,
            "outcome": record.outcome,
            "subjectWeapon": record.subject_weapon,
            "officers": record.officers,
            "address": record.location.address,
            "link": record.link,
            "summaryUrl": record.summary_url,
            "agFormsUrl": record.ag_forms_url,
        },
    }


def to_feature_collection(records: Sequence[IncidentRecord]) -> Dict[str, Any]:
    lat, lon = map_center(records)
    return {
        "type": "FeatureCollection",
        "center": [lat, lon],
        "features": [to_marker(r) for r in records],
    }


def write_geojson(records: Sequence[IncidentRecord], path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(to_feature_collection(records), f, ensure_ascii=False, indent=2)


# ---------- JSON / validation ----------

def record_to_json(record: IncidentRecord) -> Dict[str, Any]:
    """camelCase, JSON-safe dict of a record."""
    return record.model_dump(mode="json", by_alias=True)


def load_schema(path: str = RECORD_SCHEMA_PATH) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def validate_record(record: IncidentRecord, schema: Dict[str, Any]) -> List[str]:
    """Return schema violations for one record as "path: message" strings."""
    errors = []
    v = Draft7Validator(schema)
    for e in sorted(v.iter_errors(record_to_json(record)), key=lambda e: [str(p) for p in e.path]):
        errors.append(f"{list(e.path)}: {e.message}")
    return errors


def write_jsonl(records: Iterable[IncidentRecord], path: str) -> int:
    count = 0
    with open(path, "w", encoding="utf-8") as f:
        for rec in records:
            f.write(json.dumps(record_to_json(rec), ensure_ascii=False) + "\n")
            count += 1
    return count


# ---------- CSV ----------

def flatten_for_csv(record: IncidentRecord) -> Dict[str, Any]:
    """
    Flatten a record into one CSV row.

    Reference URLs are joined with "; ", coordinates split into their own
    columns and the address keeps no line breaks.
    """
    return {
        "case_number": record.case_number,
        "date": record.date,
        "outcome": record.outcome,
        "subject_weapon": record.subject_weapon,
        "officers": record.officers,
        "grand_jury_disposition": record.grand_jury_disposition,
        "reference_urls": "; ".join(record.reference_urls),
        "ag_forms_url": record.ag_forms_url or "",
        "summary_url": record.summary_url or "",
        "address": record.location.address,
        "latitude": record.location.latitude,
        "longitude": record.location.longitude,
    }


def _write_rows(path: str, rows: List[Dict[str, Any]]) -> None:
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=CSV_COLUMNS, extrasaction="ignore")
        w.writeheader()
        for row in rows:
            w.writerow(row)


def write_csv(records: Iterable[IncidentRecord], output_csv_path: str) -> str:
    """
    Write records with a fixed column order.

    If the target is locked (e.g. open in a spreadsheet) a timestamped
    sibling file is written instead.

    Returns:
        str: Path actually written
    """
    rows = [flatten_for_csv(r) for r in records]
    try:
        _write_rows(output_csv_path, rows)
        return output_csv_path
    except PermissionError:
        ts = time.strftime("%Y%m%d_%H%M%S")
        alt = os.path.splitext(output_csv_path)[0] + f".{ts}.csv"
        _write_rows(alt, rows)
        logger.warning("could not write %s (locked?), wrote %s instead", output_csv_path, alt)
        return alt


def summary_lines(records: Sequence[IncidentRecord], limit: Optional[int] = None) -> List[str]:
    """Short one-line descriptions, handy for console output."""
    out = []
    for rec in (records[:limit] if limit else records):
        lat, lon = rec.location.coordinates
        out.append(f"{rec.case_number}  {rec.date}  {rec.outcome}  @ ({lat}, {lon})  {rec.location.address}")
    return out
