"""
Submission types and reference tables for clearance certificates.

A ``ClearanceSubmission`` is the single canonical shape a clerk composes for
every certificate format. Which of its fields matter is decided per format by
``clearance.validation.ValidationRules``; fields a format does not use are
ignored, not rejected.
"""

from dataclasses import dataclass, field, asdict, fields as dataclass_fields
from datetime import date, datetime
from enum import Enum as PyEnum
from typing import Any, Dict, List, Optional, Union


class ClearanceStatus(str, PyEnum):
    """Lifecycle label of an issued certificate"""
    VALID = "Valid"
    EXPIRED = "Expired"


OTHER_PURPOSE = "Other"
DEFAULT_NATIONALITY = "Filipino"
VALIDITY_SIX_MONTHS = "6 Months"
VALIDITY_ONE_YEAR = "1 Year"
VALIDITY_PERIODS = (VALIDITY_SIX_MONTHS, VALIDITY_ONE_YEAR)

# Fee in pesos charged per purpose. Insertion order is the order shown to clerks.
PURPOSE_FEES: Dict[str, int] = {
    "Local Employment": 50,
    "Foreign Employment": 100,
    "Foreign Travel": 200,
    "Firearm License": 1000,
    "Permit to Carry Firearm": 500,
    "Business Permit": 300,
    "Retirement/Resignation": 100,
    "Certification of No Pending Case": 75,
    "Promotion": 0,
    "Probation": 0,
    "Plea Bargaining Agreement": 0,
    "For Family Verification": 0,
    "For Adoption Proceedings": 0,
    "No Derogatory Record": 50,
    "Application for Balsaff": 100,
    OTHER_PURPOSE: 0,
}

CIVIL_STATUS_OPTIONS = ("Single", "Married", "Widow", "Widower", "Separated", "Divorced")

CASE_STATUS_OPTIONS = (
    "Pending in Court",
    "Pending with Prosecutor",
    "Dismissed",
    "Convicted",
    "Acquitted",
    "Referred to Other Agency",
    "Other",
)


def parse_iso_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` (a trailing time part is ignored).

    Returns:
        The date, or None when the value is empty or not a valid date
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


@dataclass
class CriminalCaseEntry:
    """One criminal case enumerated on a certificate"""
    case_number: str = ""
    crime: str = ""
    date_info_filed: str = ""
    origin: str = ""
    status: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CriminalCaseEntry':
        return cls(
            case_number=_text(data.get("case_number")),
            crime=_text(data.get("crime")),
            date_info_filed=_text(data.get("date_info_filed")),
            origin=_text(data.get("origin")),
            status=_text(data.get("status")),
        )

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class ClearanceSubmission:
    """Client-composed certificate request, superset of every format's fields"""
    format_type: str = "A"

    # Identity
    first_name: str = ""
    middle_name: str = ""
    last_name: str = ""
    suffix: str = ""
    alias: str = ""
    age: Union[int, str, None] = None
    civil_status: str = ""
    nationality: str = DEFAULT_NATIONALITY
    address: str = ""

    # Request
    purpose: str = ""
    custom_purpose: str = ""
    purpose_fee: Optional[float] = None
    issued_upon_request_by: str = ""

    # Issuance
    date_issued: str = ""
    prc_id_number: str = ""
    validity_period: str = ""  # blank means the office default
    validity_expiry: str = ""

    # Legacy single-case block
    case_numbers: str = ""
    crime_description: str = ""
    legal_statute: str = ""
    date_of_commission: str = ""
    date_information_filed: str = ""
    case_status: str = ""
    court_branch: str = ""

    criminal_cases: List[CriminalCaseEntry] = field(default_factory=list)
    notes: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ClearanceSubmission':
        """Build a submission from a loosely typed mapping (API payload, DB row)."""
        known = {f.name for f in dataclass_fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in known or key == "criminal_cases":
                continue
            if key in ("age", "purpose_fee"):
                values[key] = value
            elif isinstance(value, (date, datetime)):
                values[key] = value.isoformat()[:10]
            else:
                values[key] = _text(value)
        values["criminal_cases"] = [
            c if isinstance(c, CriminalCaseEntry) else CriminalCaseEntry.from_dict(c)
            for c in (data.get("criminal_cases") or [])
        ]
        if not values.get("nationality"):
            values["nationality"] = DEFAULT_NATIONALITY
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["criminal_cases"] = [c.to_dict() for c in self.criminal_cases]
        return data

    @property
    def effective_purpose(self) -> str:
        return effective_purpose(self.purpose, self.custom_purpose)


@dataclass(frozen=True)
class Actor:
    """Identity supplied by the session provider for writes and deletes"""
    user_id: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_identified(self) -> bool:
        return not (is_blank(self.user_id) and is_blank(self.name))


def effective_purpose(purpose: Optional[str], custom_purpose: Optional[str] = None) -> str:
    """Custom purpose text when purpose is "Other", else the purpose verbatim."""
    if purpose == OTHER_PURPOSE:
        return (custom_purpose or "").strip()
    return purpose or ""


def effective_fee(purpose: Optional[str], fee_table: Optional[Dict[str, float]] = None) -> float:
    """Look up the fee for a purpose; custom purposes cost nothing."""
    table = fee_table if fee_table is not None else PURPOSE_FEES
    return table.get(purpose or "", 0)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()
