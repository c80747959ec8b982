"""Protocol definitions for the OIS parser.

Pydantic models for parsed incident records, parse diagnostics and the
storage row shape.
"""
from __future__ import annotations

import math
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# ---- parsed records ----

class Location(BaseModel):
    """Street address plus the (latitude, longitude) pair found after it."""
    model_config = ConfigDict(frozen=True)

    address: str = ""
    coordinates: Tuple[float, float]

    @field_validator("coordinates")
    @classmethod
    def _finite(cls, v: Tuple[float, float]) -> Tuple[float, float]:
        if not all(math.isfinite(c) for c in v):
            raise ValueError(f"coordinates must be finite, got {v!r}")
        return v

    @property
    def latitude(self) -> float:
        return self.coordinates[0]

    @property
    def longitude(self) -> float:
        return self.coordinates[1]


class IncidentRecord(BaseModel):
    """One officer-involved shooting incident.

    Attributes are snake_case; ``model_dump(by_alias=True)`` produces the
    camelCase keys the map view expects (``caseNumber``, ``subjectWeapon``...).
    ``ag_forms_url`` and ``summary_url`` keep the two URL columns apart;
    ``reference_urls`` lists whichever of them is present, in column order.
    """
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    case_number: str = Field(min_length=1)
    date: str = ""
    outcome: str = ""
    subject_weapon: str = ""
    officers: str = ""
    grand_jury_disposition: str = ""
    reference_urls: Tuple[str, ...] = ()
    ag_forms_url: Optional[str] = None
    summary_url: Optional[str] = None
    location: Location

    @property
    def link(self) -> Optional[str]:
        """Outbound link for the popup: the summary URL, else the AG forms URL."""
        return self.summary_url or self.ag_forms_url


# ---- parse diagnostics ----

class RowRejection(BaseModel):
    """Why a logical record was dropped."""
    row_number: int
    reason: str
    case_number: str = ""
    excerpt: str = ""


class ParseSummary(BaseModel):
    """Counts for one parse call. ``rows_seen == accepted + rejected``."""
    rows_seen: int = 0
    accepted: int = 0
    rejected: int = 0
    reasons: Dict[str, int] = Field(default_factory=dict)
    rejections: List[RowRejection] = Field(default_factory=list)

    def add_accepted(self) -> None:
        self.rows_seen += 1
        self.accepted += 1

    def add_rejection(self, rejection: RowRejection, keep: int) -> None:
        self.rows_seen += 1
        self.rejected += 1
        self.reasons[rejection.reason] = self.reasons.get(rejection.reason, 0) + 1
        if len(self.rejections) < keep:
            self.rejections.append(rejection)


class ParseResult(BaseModel):
    """Records plus the summary of the call that produced them."""
    records: List[IncidentRecord] = Field(default_factory=list)
    summary: ParseSummary = Field(default_factory=ParseSummary)


# ---- storage shape ----

class IncidentType(str, Enum):
    FATAL = "fatal"
    NON_FATAL = "non_fatal"
    SHOT_FIRED_NO_HIT = "shot_fired_no_hit"


class Officer(BaseModel):
    name: str
    race_gender: str = ""


class StoredIncident(BaseModel):
    """Row shape of the ``incidents`` table plus its child rows."""
    id: str
    incident_date: Optional[str] = None
    latitude: float
    longitude: float
    address: str
    incident_type: IncidentType
    description: Optional[str] = None
    summary_url: Optional[str] = None
    ag_forms_url: Optional[str] = None
    grand_jury_disposition: Optional[str] = None
    officers: List[Officer] = Field(default_factory=list)
    weapons: List[str] = Field(default_factory=list)
