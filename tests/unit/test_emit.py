"""Unit tests for the map payload and export writers."""
import csv
import json
import pytest
import sys
from pathlib import Path
from unittest.mock import patch

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from ois_parser import config, emit
from ois_parser.extractor import parse_incidents
from ois_parser.protocols import IncidentRecord, Location


@pytest.fixture
def records(sample_export):
    return parse_incidents(sample_export)


@pytest.mark.unit
class TestMapPayload:
    """Test cases for marker and feature collection building."""

    def test_marker_geometry_is_lon_lat(self, records):
        marker = emit.to_marker(records[0])
        assert marker["type"] == "Feature"
        assert marker["id"] == "507756T"
        assert marker["geometry"] == {"type": "Point", "coordinates": [-96.802127, 32.786522]}

    def test_marker_popup_properties(self, records):
        props = emit.to_marker(records[0])["properties"]
        assert props == {
            "caseNumber": "507756T",
            "date": "07/07/2007",
            "outcome": "Shoot and Miss",
            "subjectWeapon": "Vehicle",
            "officers": "Madison, John W/M",
            "address": "1818 N Akard Street",
            "link": "https://example.com/report.pdf",
            "summaryUrl": "https://example.com/report.pdf",
            "agFormsUrl": None,
        }

    def test_marker_without_link(self):
        rec = IncidentRecord(case_number="1", location=Location(coordinates=(1.0, 2.0)))
        assert emit.to_marker(rec)["properties"]["link"] is None

    def test_marker_link_falls_back_to_ag_form(self):
        rec = IncidentRecord(
            case_number="1",
            reference_urls=("https://ag/form.pdf",),
            ag_forms_url="https://ag/form.pdf",
            location=Location(coordinates=(1.0, 2.0)),
        )
        props = emit.to_marker(rec)["properties"]
        assert props["link"] == "https://ag/form.pdf"
        assert props["summaryUrl"] is None
        assert props["agFormsUrl"] == "https://ag/form.pdf"

    def test_feature_collection_center(self, records):
        fc = emit.to_feature_collection(records)
        assert fc["type"] == "FeatureCollection"
        assert len(fc["features"]) == 2
        assert fc["center"] == [32.786522, -96.802127]

    def test_empty_collection_uses_default_center(self):
        fc = emit.to_feature_collection([])
        assert fc["features"] == []
        assert fc["center"] == list(config.DEFAULT_CENTER)

    def test_write_geojson(self, records, temp_dir):
        path = Path(temp_dir) / "ois.geojson"
        emit.write_geojson(records, str(path))
        data = json.loads(path.read_text(encoding="utf-8"))
        assert [f["id"] for f in data["features"]] == ["507756T", "44523-2015"]


@pytest.mark.unit
class TestJsonExport:
    """Test cases for JSON output and schema validation."""

    def test_record_to_json_is_camel_case(self, records):
        data = emit.record_to_json(records[0])
        assert data["caseNumber"] == "507756T"
        assert data["referenceUrls"] == ["https://example.com/report.pdf"]
        assert data["location"] == {
            "address": "1818 N Akard Street",
            "coordinates": [32.786522, -96.802127],
        }

    def test_parsed_records_match_schema(self, records, record_schema):
        for rec in records:
            assert emit.validate_record(rec, record_schema) == []

    def test_out_of_range_latitude_flagged(self, record_schema):
        rec = IncidentRecord(case_number="1", location=Location(coordinates=(132.0, -96.0)))
        errors = emit.validate_record(rec, record_schema)
        assert len(errors) == 1
        assert "location" in errors[0]

    def test_write_jsonl(self, records, temp_dir):
        path = Path(temp_dir) / "ois.jsonl"
        assert emit.write_jsonl(records, str(path)) == 2
        lines = path.read_text(encoding="utf-8").splitlines()
        assert [json.loads(line)["caseNumber"] for line in lines] == ["507756T", "44523-2015"]


@pytest.mark.unit
class TestCsvExport:
    """Test cases for CSV flattening and writing."""

    def test_flatten_for_csv(self, records):
        row = emit.flatten_for_csv(records[1])
        assert row["reference_urls"] == "https://example.com/ag/44523.pdf; https://example.com/summary/44523.pdf"
        assert row["latitude"] == 32.784123
        assert row["longitude"] == -96.784956
        assert set(row) == set(emit.CSV_COLUMNS)

    def test_write_csv_round_trip(self, records, temp_dir):
        path = str(Path(temp_dir) / "ois.csv")
        assert emit.write_csv(records, path) == path
        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert [r["case_number"] for r in rows] == ["507756T", "44523-2015"]
        assert rows[0]["officers"] == "Madison, John W/M"

    def test_write_csv_locked_target(self, records, temp_dir):
        path = str(Path(temp_dir) / "ois.csv")
        real_write = emit._write_rows
        calls = []

        def _flaky(p, rows):
            calls.append(p)
            if len(calls) == 1:
                raise PermissionError("locked")
            real_write(p, rows)

        with patch("ois_parser.emit._write_rows", side_effect=_flaky):
            written = emit.write_csv(records, path)

        assert written != path
        assert written.endswith(".csv")
        assert Path(written).exists()

    def test_summary_lines(self, records):
        lines = emit.summary_lines(records, limit=1)
        assert len(lines) == 1
        assert lines[0].startswith("507756T")
