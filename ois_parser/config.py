"""Configuration constants for the OIS parser.

Values here are read once at import time. A handful of paths and timeouts
can be overridden through environment variables; command line flags in
:mod:`ois_parser.cli` take precedence over both.
"""
import os
from typing import Tuple

# ---------- Column contract ----------

# case number, date, outcome, weapon, officers, disposition, AG form URL, summary URL
LEADING_FIELD_COUNT: int = 8

# Leading fields plus the trailing location field
MIN_FIELD_COUNT: int = LEADING_FIELD_COUNT + 1

# Positions of the two reference URL columns
AG_FORMS_URL_INDEX: int = 6
SUMMARY_URL_INDEX: int = 7

# Values treated as "no value" in free-text columns
SENTINELS = {"", "n/a", "na", "none", "null"}

# ---------- Diagnostics ----------

# How many individual rejections a ParseSummary keeps
MAX_REJECTIONS: int = 20

# Characters of raw row text kept in a rejection excerpt
EXCERPT_LENGTH: int = 80

# Physical lines an unquoted location may be folded over while its
# coordinate line is still missing
MAX_FOLDED_LINES: int = 3

# ---------- I/O defaults ----------

DEFAULT_OUTPUT_DIR: str = os.environ.get("OIS_OUTPUT_DIR", "output")

DEFAULT_DB_PATH: str = os.environ.get("OIS_DB_PATH", os.path.join(DEFAULT_OUTPUT_DIR, "incidents.db"))

HTTP_TIMEOUT: float = float(os.environ.get("OIS_HTTP_TIMEOUT", "30"))

USER_AGENT: str = "ois_parser"

# ---------- Map view ----------

# Downtown Dallas, used when there are no records to center on
DEFAULT_CENTER: Tuple[float, float] = (32.7767, -96.7970)
