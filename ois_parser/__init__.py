"""OIS Parser - officer-involved shooting exports to map markers.

Tolerant parsing of loosely-CSV incident exports into typed records, plus
map payload, export and SQLite storage helpers.
"""

__version__ = "0.1.0"

from .extractor import parse_incidents, parse_with_summary
from .protocols import IncidentRecord, Location, ParseResult, ParseSummary, RowRejection

__all__ = [
    "parse_incidents",
    "parse_with_summary",
    "IncidentRecord",
    "Location",
    "ParseResult",
    "ParseSummary",
    "RowRejection",
]
