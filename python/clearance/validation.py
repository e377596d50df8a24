"""
Validation rules for clearance submissions.

The required-field set is derived from the certificate format. ``validate``
collects every violation in a single pass so a clerk can correct them all at
once; business-rule violations are returned, never raised.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, Optional, Set

from clearance.formats import FormatConfig
from clearance.submission import (
    ClearanceSubmission,
    OTHER_PURPOSE,
    VALIDITY_PERIODS,
    is_blank,
    parse_iso_date,
)

NAME_PATTERN = re.compile(r"^[A-Za-zÀ-ÖØ-öø-ÿ\s\-'.]+$")

IDENTITY_FIELDS = (
    "first_name",
    "last_name",
    "age",
    "address",
    "purpose",
    "prc_id_number",
    "date_issued",
)

LEGACY_CASE_FIELDS = (
    "case_numbers",
    "crime_description",
    "legal_statute",
    "date_of_commission",
    "date_information_filed",
    "case_status",
    "court_branch",
)

# origin is optional: the certificate prints the office's default venue
CASE_ENTRY_FIELDS = ("case_number", "crime", "date_info_filed", "status")

FIELD_LABELS = {
    "first_name": "First name",
    "middle_name": "Middle name",
    "last_name": "Last name",
    "age": "Age",
    "address": "Address",
    "purpose": "Purpose",
    "custom_purpose": "Custom purpose",
    "prc_id_number": "O.R. number",
    "date_issued": "Date issued",
    "issued_upon_request_by": "Requester name",
    "case_numbers": "Case number(s)",
    "crime_description": "Crime description",
    "legal_statute": "Legal statute",
    "date_of_commission": "Date of commission",
    "date_information_filed": "Date information filed",
    "case_status": "Case status",
    "court_branch": "Court/branch",
    "criminal_cases": "Criminal case details",
    "case_number": "Case number",
    "crime": "Crime",
    "date_info_filed": "Date information filed",
    "status": "Status",
    "suffix": "Suffix",
    "alias": "Alias",
    "civil_status": "Civil status",
    "nationality": "Nationality",
    "origin": "Origin",
    "notes": "Notes",
}

ADDRESS_MIN_LENGTH = 10

# Longest accepted value per field, matching the column widths in database/models.py.
# Names are bounded separately by ``name_max_length``.
FIELD_MAX_LENGTHS = {
    "suffix": 20,
    "alias": 100,
    "civil_status": 30,
    "nationality": 50,
    "address": 500,
    "purpose": 100,
    "custom_purpose": 255,
    "issued_upon_request_by": 200,
    "prc_id_number": 50,
    "notes": 2000,
}

LEGACY_CASE_MAX_LENGTHS = {
    "case_numbers": 255,
    "crime_description": 2000,
    "legal_statute": 255,
    "case_status": 50,
    "court_branch": 100,
}

CASE_ENTRY_MAX_LENGTHS = {
    "case_number": 100,
    "crime": 500,
    "origin": 200,
    "status": 100,
}

NAME_COLUMN_LENGTH = 100


@dataclass
class ValidationResult:
    """Field-keyed validation outcome; the first message per field is kept"""
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add(self, field_name: str, message: str) -> None:
        self.errors.setdefault(field_name, message)


class ValidationRules:
    """Derives required fields from a format and checks submissions against them"""

    def __init__(
        self,
        min_age: int = 18,
        max_age: int = 120,
        name_max_length: int = 100,
        validity_periods: Iterable[str] = VALIDITY_PERIODS
    ):
        self.min_age = min_age
        self.max_age = max_age
        self.name_max_length = min(name_max_length, NAME_COLUMN_LENGTH)
        self.validity_periods = tuple(validity_periods)

    @classmethod
    def from_config(cls, config) -> 'ValidationRules':
        """Build from a ``config_manager.ClearanceConfig``"""
        return cls(
            min_age=config.min_age,
            max_age=config.max_age,
            name_max_length=config.name_max_length,
            validity_periods=config.validity_periods,
        )

    def required_fields(self, config: FormatConfig, purpose: Optional[str] = None) -> Set[str]:
        """Fields that must be non-empty for the given format.

        Args:
            config: Certificate format
            purpose: Selected purpose; "Other" adds ``custom_purpose``

        Returns:
            Set of submission field names
        """
        required = set(IDENTITY_FIELDS)
        if purpose == OTHER_PURPOSE:
            required.add("custom_purpose")
        if config.is_family_request:
            required.add("issued_upon_request_by")
        if config.has_criminal_record:
            required.update(LEGACY_CASE_FIELDS)
            required.add("criminal_cases")
        return required

    def validate(
        self,
        submission: ClearanceSubmission,
        config: FormatConfig,
        today: Optional[date] = None
    ) -> ValidationResult:
        """Check a submission against the rules of its format.

        Args:
            submission: Candidate submission
            config: Resolved format configuration
            today: Reference date for the not-in-future check

        Returns:
            ValidationResult holding one message per invalid field
        """
        today = today or date.today()
        result = ValidationResult()
        required = self.required_fields(config, submission.purpose)

        for name in sorted(required - {"criminal_cases"}):
            if is_blank(getattr(submission, name)):
                result.add(name, f"{FIELD_LABELS.get(name, name)} is required")

        self._check_names(submission, result)
        self._check_age(submission.age, result)
        self._check_address(submission.address, result)
        self._check_issuance(submission, today, result)
        self._check_lengths(submission, FIELD_MAX_LENGTHS, "", result)

        if config.has_criminal_record:
            self._check_lengths(submission, LEGACY_CASE_MAX_LENGTHS, "", result)
            self._check_legacy_case(submission, result)
            self._check_case_entries(submission, result)

        return result

    def _check_lengths(self, item, limits: Dict[str, int], prefix: str,
                       result: ValidationResult) -> None:
        for name, limit in limits.items():
            value = getattr(item, name)
            if not is_blank(value) and len(str(value).strip()) > limit:
                result.add(f"{prefix}{name}",
                           f"{FIELD_LABELS.get(name, name)} must be at most {limit} characters")

    def _check_address(self, address, result: ValidationResult) -> None:
        if not is_blank(address) and len(address.strip()) < ADDRESS_MIN_LENGTH:
            result.add("address", f"Address must be at least {ADDRESS_MIN_LENGTH} characters")

    def _check_names(self, submission: ClearanceSubmission, result: ValidationResult) -> None:
        for name in ("first_name", "middle_name", "last_name"):
            value = getattr(submission, name)
            if is_blank(value):
                continue
            label = FIELD_LABELS[name]
            if len(value) > self.name_max_length:
                result.add(name, f"{label} must be at most {self.name_max_length} characters")
            elif not NAME_PATTERN.match(value):
                result.add(name, f"{label} can only contain letters, spaces, hyphens, and apostrophes")

    def _check_age(self, age, result: ValidationResult) -> None:
        if is_blank(age):
            return
        if isinstance(age, bool):
            result.add("age", "Age must be a number")
            return
        try:
            years = int(str(age).strip())
        except ValueError:
            result.add("age", "Age must be a number")
            return
        if years < self.min_age or years > self.max_age:
            result.add("age", f"Age must be between {self.min_age} and {self.max_age}")

    def _check_issuance(self, submission: ClearanceSubmission, today: date,
                        result: ValidationResult) -> None:
        if not is_blank(submission.date_issued):
            issued = parse_iso_date(submission.date_issued)
            if issued is None:
                result.add("date_issued", "Date issued must be a valid date (YYYY-MM-DD)")
            elif issued > today:
                result.add("date_issued", "Date issued cannot be in the future")

        period = submission.validity_period
        if not is_blank(period) and period not in self.validity_periods:
            result.add(
                "validity_period",
                f"Validity period must be one of: {', '.join(self.validity_periods)}"
            )

    def _check_legacy_case(self, submission: ClearanceSubmission, result: ValidationResult) -> None:
        committed = filed = None
        for name in ("date_of_commission", "date_information_filed"):
            value = getattr(submission, name)
            if is_blank(value):
                continue
            parsed = parse_iso_date(value)
            if parsed is None:
                result.add(name, f"{FIELD_LABELS[name]} must be a valid date (YYYY-MM-DD)")
            elif name == "date_of_commission":
                committed = parsed
            else:
                filed = parsed

        if committed and filed and committed > filed:
            result.add("date_of_commission",
                       "Date of commission cannot be after date information filed")

    def _check_case_entries(self, submission: ClearanceSubmission, result: ValidationResult) -> None:
        if not submission.criminal_cases:
            result.add("criminal_cases", "At least one criminal case is required")
            return

        for index, entry in enumerate(submission.criminal_cases):
            prefix = f"criminal_cases[{index}]"
            for name in CASE_ENTRY_FIELDS:
                if is_blank(getattr(entry, name)):
                    result.add(f"{prefix}.{name}", f"{FIELD_LABELS[name]} is required")
            self._check_lengths(entry, CASE_ENTRY_MAX_LENGTHS, f"{prefix}.", result)
            if not is_blank(entry.date_info_filed) and parse_iso_date(entry.date_info_filed) is None:
                result.add(f"{prefix}.date_info_filed",
                           "Date information filed must be a valid date (YYYY-MM-DD)")


default_rules = ValidationRules()


def required_fields(config: FormatConfig, purpose: Optional[str] = None) -> Set[str]:
    return default_rules.required_fields(config, purpose)


def validate(submission: ClearanceSubmission, config: FormatConfig,
             today: Optional[date] = None) -> ValidationResult:
    return default_rules.validate(submission, config, today)
