"""
Unit tests for format-driven validation of clearance submissions.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from clearance.formats import FORMAT_CATALOG
from clearance.submission import ClearanceSubmission, CriminalCaseEntry
from clearance.validation import ValidationRules, required_fields, validate
from conftest import TODAY, submission_payload


def _submission(format_type="A", **overrides):
    return ClearanceSubmission.from_dict(submission_payload(format_type, **overrides))


def _validate(submission):
    return validate(submission, FORMAT_CATALOG.lookup(submission.format_type), TODAY)


# ============================================
# REQUIRED FIELDS
# ============================================

class TestRequiredFields:
    """Tests for the derived required-field set."""

    def test_identity_fields_for_format_a(self):
        fields = required_fields(FORMAT_CATALOG.lookup("A"))
        assert fields == {
            "first_name", "last_name", "age", "address",
            "purpose", "prc_id_number", "date_issued",
        }

    def test_other_purpose_requires_custom_purpose(self):
        fields = required_fields(FORMAT_CATALOG.lookup("A"), purpose="Other")
        assert "custom_purpose" in fields

    def test_family_formats_require_requester(self):
        assert "issued_upon_request_by" in required_fields(FORMAT_CATALOG.lookup("C"))
        assert "issued_upon_request_by" in required_fields(FORMAT_CATALOG.lookup("D"))
        assert "issued_upon_request_by" not in required_fields(FORMAT_CATALOG.lookup("B"))

    @pytest.mark.parametrize("code", ["B", "D", "F"])
    def test_criminal_record_formats_require_case_fields(self, code):
        fields = required_fields(FORMAT_CATALOG.lookup(code))
        for name in ("case_numbers", "crime_description", "legal_statute",
                     "date_of_commission", "date_information_filed",
                     "case_status", "court_branch", "criminal_cases"):
            assert name in fields

    @pytest.mark.parametrize("code", ["A", "C", "E"])
    def test_clean_record_formats_have_no_case_fields(self, code):
        fields = required_fields(FORMAT_CATALOG.lookup(code))
        assert "criminal_cases" not in fields
        assert "case_numbers" not in fields


# ============================================
# VALIDATE
# ============================================

class TestValidSubmissions:
    """Complete submissions pass for every format."""

    @pytest.mark.parametrize("code", ["A", "B", "C", "D", "E", "F"])
    def test_complete_submission_is_valid(self, code):
        result = _validate(_submission(code))
        assert result.ok, result.errors

    def test_criminal_fields_ignored_without_record(self):
        """Garbage in criminal fields never blocks a clean-record format."""
        submission = _submission(
            "A",
            date_of_commission="not a date",
            criminal_cases=[{"case_number": "", "crime": "", "status": ""}],
        )
        assert _validate(submission).ok

    def test_blank_origin_is_allowed(self):
        submission = _submission("B")
        submission.criminal_cases[0].origin = ""
        assert _validate(submission).ok


class TestMissingFields:
    """Missing required values are reported per field."""

    def test_empty_submission_reports_every_required_field(self):
        result = _validate(ClearanceSubmission(format_type="A", validity_period=""))
        assert not result.ok
        assert result.errors["first_name"] == "First name is required"
        assert result.errors["prc_id_number"] == "O.R. number is required"
        assert set(result.errors) == {
            "first_name", "last_name", "age", "address",
            "purpose", "prc_id_number", "date_issued",
        }

    def test_whitespace_counts_as_missing(self):
        result = _validate(_submission(address="   "))
        assert result.errors["address"] == "Address is required"

    def test_custom_purpose_required_for_other(self):
        result = _validate(_submission(purpose="Other", custom_purpose=""))
        assert "custom_purpose" in result.errors

    def test_requester_required_for_family_format(self):
        result = _validate(_submission("C", issued_upon_request_by=""))
        assert result.errors["issued_upon_request_by"] == "Requester name is required"

    def test_empty_case_list_keyed_on_list(self):
        result = _validate(_submission("B", criminal_cases=[]))
        assert result.errors["criminal_cases"] == "At least one criminal case is required"

    def test_incomplete_case_entry_keyed_by_index(self):
        submission = _submission("D")
        submission.criminal_cases.append(
            CriminalCaseEntry(case_number="CR-2", crime="", date_info_filed="2024-01-01", status="")
        )
        result = _validate(submission)
        assert result.errors["criminal_cases[1].crime"] == "Crime is required"
        assert "criminal_cases[1].status" in result.errors
        assert not any(key.startswith("criminal_cases[0]") for key in result.errors)

    def test_errors_collected_in_one_pass(self):
        """Several independent problems are all reported together."""
        result = _validate(_submission("B", first_name="", age=15, criminal_cases=[]))
        assert {"first_name", "age", "criminal_cases"} <= set(result.errors)


class TestAge:
    """Age must be numeric and within 18-120."""

    @pytest.mark.parametrize("age", [18, 120, "45"])
    def test_accepted_ages(self, age):
        assert "age" not in _validate(_submission(age=age)).errors

    @pytest.mark.parametrize("age", [17, 121, 0])
    def test_out_of_range(self, age):
        assert _validate(_submission(age=age)).errors["age"] == "Age must be between 18 and 120"

    def test_non_numeric(self):
        assert _validate(_submission(age="thirty")).errors["age"] == "Age must be a number"

    @pytest.mark.parametrize("age", [True, False])
    def test_boolean_rejected(self, age):
        assert _validate(_submission(age=age)).errors["age"] == "Age must be a number"

    def test_custom_bounds(self):
        rules = ValidationRules(min_age=21, max_age=65)
        result = rules.validate(_submission(age=20), FORMAT_CATALOG.lookup("A"), TODAY)
        assert result.errors["age"] == "Age must be between 21 and 65"


class TestNames:
    def test_letters_hyphens_apostrophes_allowed(self):
        result = _validate(_submission(first_name="Ma. Luisa", last_name="Dela Cruz-O'Neil"))
        assert result.ok

    def test_digits_rejected(self):
        result = _validate(_submission(last_name="Cruz2"))
        assert "last_name" in result.errors

    def test_length_limit(self):
        result = _validate(_submission(first_name="A" * 101))
        assert result.errors["first_name"] == "First name must be at most 100 characters"


class TestLengths:
    """Values longer than their storage column are reported per field."""

    def test_long_identity_fields(self):
        result = _validate(_submission(
            prc_id_number="9" * 60, civil_status="S" * 40,
            purpose="Other", custom_purpose="x" * 300,
        ))
        assert result.errors["prc_id_number"] == "O.R. number must be at most 50 characters"
        assert result.errors["civil_status"] == "Civil status must be at most 30 characters"
        assert result.errors["custom_purpose"] == "Custom purpose must be at most 255 characters"

    def test_values_at_the_limit_accepted(self):
        assert _validate(_submission(prc_id_number="9" * 50, suffix="S" * 20)).ok

    def test_long_case_entry_field(self):
        submission = _submission("B")
        submission.criminal_cases[0].status = "s" * 101
        result = _validate(submission)
        assert result.errors["criminal_cases[0].status"] == "Status must be at most 100 characters"

    def test_case_fields_only_checked_with_record(self):
        assert _validate(_submission("A", court_branch="x" * 101)).ok
        assert "court_branch" in _validate(_submission("B", court_branch="x" * 101)).errors

    def test_name_limit_capped_at_column_width(self):
        rules = ValidationRules(name_max_length=500)
        result = rules.validate(_submission(first_name="A" * 101), FORMAT_CATALOG.lookup("A"), TODAY)
        assert "first_name" in result.errors

    def test_short_address(self):
        result = _validate(_submission(address="Cebu"))
        assert result.errors["address"] == "Address must be at least 10 characters"


class TestDates:
    def test_future_issuance_rejected(self):
        result = _validate(_submission(date_issued="2025-03-16"))
        assert result.errors["date_issued"] == "Date issued cannot be in the future"

    def test_issued_today_accepted(self):
        assert _validate(_submission(date_issued=TODAY.isoformat())).ok

    def test_unparseable_issuance_date(self):
        result = _validate(_submission(date_issued="03/10/2025"))
        assert "date_issued" in result.errors

    def test_unknown_validity_period(self):
        result = _validate(_submission(validity_period="2 Years"))
        assert "validity_period" in result.errors

    def test_commission_after_filing_rejected(self):
        result = _validate(_submission(
            "B", date_of_commission="2024-03-01", date_information_filed="2024-02-01"
        ))
        assert result.errors["date_of_commission"] == \
            "Date of commission cannot be after date information filed"

    def test_bad_case_entry_date(self):
        submission = _submission("F")
        submission.criminal_cases[0].date_info_filed = "yesterday"
        result = _validate(submission)
        assert "criminal_cases[0].date_info_filed" in result.errors


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
