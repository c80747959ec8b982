"""Pytest configuration and shared fixtures for OIS parser tests.

Provides sample export text, temporary directories, an in-memory store and
the bundled record schema.
"""
import sqlite3
import shutil
import sys
import tempfile
from pathlib import Path

import pytest
from jsonschema import Draft7Validator

# Get project root directory
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(PROJECT_ROOT))

from ois_parser import emit, store  # noqa: E402

HEADER = (
    "Case #,Date,Suspect Deceased/Injured or Shoot and Miss,Suspect Weapon,Officer(s),"
    "Grand Jury Disposition,Attorney General Forms URL,Summary URL,GeoLocation"
)

ROW_AKARD = (
    '507756T,07/07/2007,Shoot and Miss,Vehicle,"Madison, John W/M",N/A,N/A,'
    'https://example.com/report.pdf,"1818 N Akard Street\nDallas, Texas\n(32.786522, -96.802127)"'
)

ROW_ELM = (
    '44523-2015,02/23/2015,Deceased,Handgun,"Smith, Jane (B/F); Doe, John (W/M)",No Bill,'
    'https://example.com/ag/44523.pdf,https://example.com/summary/44523.pdf,'
    '"2400 Elm Street\nDallas, Texas\n(32.784123, -96.784956)"'
)

ROW_NO_COORDS = (
    '112233A,01/05/2012,Injured,Knife,"Lee, Sam (A/M)",N/A,N/A,N/A,'
    '"500 Main Street\nDallas, Texas"'
)

ROW_SHORT = "998877B,03/03/2013,Injured,Knife,Lee"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs.

    Returns:
        Path to temporary directory (automatically cleaned up after test).
    """
    temp_path = tempfile.mkdtemp()
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def header():
    return HEADER


@pytest.fixture
def row_akard():
    return ROW_AKARD


@pytest.fixture
def row_elm():
    return ROW_ELM


@pytest.fixture
def sample_export():
    """Header plus two good rows, one row without coordinates and one short row."""
    return "\n".join([HEADER, ROW_AKARD, ROW_NO_COORDS, ROW_ELM, ROW_SHORT]) + "\n"


@pytest.fixture
def sample_export_file(temp_dir, sample_export):
    """Write sample_export to disk and return its path as a string."""
    path = Path(temp_dir) / "ois.csv"
    path.write_text(sample_export, encoding="utf-8")
    return str(path)


@pytest.fixture
def memory_store():
    """In-memory SQLite connection with tables created."""
    conn = store.connect(":memory:")
    store.init_store(conn)
    yield conn
    conn.close()


@pytest.fixture
def record_schema():
    return emit.load_schema()


@pytest.fixture
def schema_validator(record_schema):
    return Draft7Validator(record_schema)


def count_rows(conn: sqlite3.Connection, table: str) -> int:
    return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


@pytest.fixture
def row_counter():
    """Return the count_rows helper.

    Returns:
        count_rows function for use in tests.
    """
    return count_rows
