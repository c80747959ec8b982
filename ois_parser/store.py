"""SQLite persistence for parsed incidents.

Nothing happens at import time. Callers open a connection, call
:func:`init_store` (idempotent) and then either :func:`upsert_incidents` to
merge records in or :func:`reload_incidents` to replace the whole dataset.
"""
from __future__ import annotations

import logging
import os
import sqlite3
from typing import Any, Dict, Iterable, List

from .normalize import to_stored
from .protocols import IncidentRecord, StoredIncident

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS incidents (
    id TEXT PRIMARY KEY,
    incident_date TEXT,
    latitude REAL NOT NULL,
    longitude REAL NOT NULL,
    address TEXT NOT NULL,
    incident_type TEXT NOT NULL CHECK (incident_type IN ('fatal', 'non_fatal', 'shot_fired_no_hit')),
    description TEXT,
    summary_url TEXT,
    ag_forms_url TEXT,
    grand_jury_disposition TEXT
);

CREATE TABLE IF NOT EXISTS officers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    incident_id TEXT NOT NULL REFERENCES incidents(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    race_gender TEXT
);

CREATE TABLE IF NOT EXISTS weapons (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    incident_id TEXT NOT NULL REFERENCES incidents(id) ON DELETE CASCADE,
    weapon_type TEXT NOT NULL
);
"""


def connect(path: str) -> sqlite3.Connection:
    """Open (or create) the database file. Tables are not created here."""
    if path != ":memory:":
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_store(conn: sqlite3.Connection) -> None:
    """Create the tables if they do not exist. Safe to call repeatedly."""
    conn.executescript(SCHEMA_SQL)
    conn.commit()


def _write_incident(conn: sqlite3.Connection, inc: StoredIncident) -> None:
    # Children first so REPLACE never trips the foreign key.
    conn.execute("DELETE FROM officers WHERE incident_id = ?", (inc.id,))
    conn.execute("DELETE FROM weapons WHERE incident_id = ?", (inc.id,))
    conn.execute(
        """
        INSERT OR REPLACE INTO incidents (
            id, incident_date, latitude, longitude, address,
            incident_type, description, summary_url, ag_forms_url, grand_jury_disposition
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            inc.id,
            inc.incident_date,
            inc.latitude,
            inc.longitude,
            inc.address,
            inc.incident_type.value,
            inc.description,
            inc.summary_url,
            inc.ag_forms_url,
            inc.grand_jury_disposition,
        ),
    )
    conn.executemany(
        "INSERT INTO officers (incident_id, name, race_gender) VALUES (?, ?, ?)",
        [(inc.id, o.name, o.race_gender) for o in inc.officers],
    )
    conn.executemany(
        "INSERT INTO weapons (incident_id, weapon_type) VALUES (?, ?)",
        [(inc.id, w) for w in inc.weapons],
    )


def upsert_incidents(conn: sqlite3.Connection, records: Iterable[IncidentRecord]) -> int:
    """
    Insert or replace incidents keyed by case number, in one transaction.

    Officer and weapon rows of a replaced incident are replaced too.

    Returns:
        int: Number of records written
    """
    count = 0
    with conn:
        for rec in records:
            _write_incident(conn, to_stored(rec))
            count += 1
    logger.info("upserted %d incidents", count)
    return count


def reload_incidents(conn: sqlite3.Connection, records: Iterable[IncidentRecord]) -> int:
    """
    Replace the whole dataset with ``records`` in one transaction.

    Running it twice with the same records leaves the same rows behind.
    """
    stored = [to_stored(r) for r in records]
    with conn:
        conn.execute("DELETE FROM weapons")
        conn.execute("DELETE FROM officers")
        conn.execute("DELETE FROM incidents")
        for inc in stored:
            _write_incident(conn, inc)
    logger.info("reloaded store with %d incidents", len(stored))
    return len(stored)


def get_incidents(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    """
    Read all incidents with their officers and weapons.

    Returns:
        List[Dict[str, Any]]: Incident rows ordered by date then id; each has
        ``officers`` ([{name, race_gender}]) and ``weapons`` ([{weapon_type}])
    """
    incidents = [dict(r) for r in conn.execute(
        "SELECT * FROM incidents ORDER BY incident_date, id"
    )]
    by_id = {inc["id"]: inc for inc in incidents}
    for inc in incidents:
        inc["officers"] = []
        inc["weapons"] = []
    for row in conn.execute("SELECT incident_id, name, race_gender FROM officers ORDER BY id"):
        if row["incident_id"] in by_id:
            by_id[row["incident_id"]]["officers"].append(
                {"name": row["name"], "race_gender": row["race_gender"]}
            )
    for row in conn.execute("SELECT incident_id, weapon_type FROM weapons ORDER BY id"):
        if row["incident_id"] in by_id:
            by_id[row["incident_id"]]["weapons"].append({"weapon_type": row["weapon_type"]})
    return incidents
