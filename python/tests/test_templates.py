"""
Tests for narrative template routing and wording.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from clearance.dates import ordinal_suffix
from clearance.formats import FORMAT_CATALOG, FormatCode, FormatConfig
from clearance.submission import ClearanceSubmission
from clearance.templates import TemplateSelector, route_format, select_template
from conftest import submission_payload

FULL_NAME = "JUAN S. CRUZ JR"


def _render(code, **overrides):
    submission = ClearanceSubmission.from_dict(submission_payload(code, **overrides))
    template = select_template(FORMAT_CATALOG.lookup(code))
    return template(submission, FULL_NAME, "OCP-2025-000001", ordinal_suffix)


class TestRouting:
    """Template selection is total and follows the flag priority."""

    @pytest.mark.parametrize("code", ["A", "B", "C", "D", "E", "F"])
    def test_catalog_formats_route_to_themselves(self, code):
        assert route_format(FORMAT_CATALOG.lookup(code)) == FormatCode(code)

    def test_derogatory_wins_over_everything(self):
        config = FormatConfig(FormatCode.A, "x", has_criminal_record=True,
                              is_family_request=True, is_derogatory_variant=True,
                              is_balsaff_variant=True)
        assert route_format(config) == FormatCode.E

    def test_balsaff_wins_over_criminal_family(self):
        config = FormatConfig(FormatCode.A, "x", has_criminal_record=True,
                              is_family_request=True, is_balsaff_variant=True)
        assert route_format(config) == FormatCode.F

    def test_selection_is_deterministic(self):
        selector = TemplateSelector()
        config = FORMAT_CATALOG.lookup("D")
        assert selector.select(config) is selector.select(config)
        assert selector.select(config).code == FormatCode.D


class TestNoRecordWording:
    def test_format_a(self):
        html = _render("A", alias="Johnny")
        assert "THIS IS TO CERTIFY that the records of this office show that one" in html
        assert f"<strong>{FULL_NAME} y JOHNNY</strong>" in html
        assert "<strong>30 years old</strong>" in html
        assert "NO CRIMINAL RECORD" in html
        # Subject is the requester when nobody else asked
        assert f"<u>{FULL_NAME}</u>" in html
        assert "<u>LOCAL EMPLOYMENT</u>" in html

    def test_format_a_names_requester_when_given(self):
        html = _render("A", issued_upon_request_by="Pedro Reyes")
        assert "<u>Pedro Reyes</u>" in html

    def test_format_c_names_requester(self):
        html = _render("C")
        assert "<u>Maria Cruz</u>" in html
        assert "NO CRIMINAL RECORD" in html

    def test_format_c_placeholder_without_requester(self):
        html = _render("C", issued_upon_request_by="")
        assert "[REQUESTER NAME]" in html

    def test_format_e(self):
        html = _render("E", alias="Johnny")
        assert "NO DEROGATORY RECORD</span> found in this office." in html
        assert "JOHNNY" not in html
        assert "NO CRIMINAL RECORD" not in html


class TestCaseListWording:
    def test_format_b_enumerates_cases_verbatim(self):
        html = _render("B")
        assert "has been charged of the following:" in html
        assert "Crim. Case No." in html
        assert "<strong>CR-2024-001</strong>" in html
        assert "<strong>Theft</strong>" in html
        assert "February 10, 2024" in html
        assert "Pending in Court" in html
        # Blank origin prints the office default
        assert "Tagbilaran City" in html
        # Requester line is the subject
        assert f"<u>{FULL_NAME}</u>" in html

    def test_format_d_adds_country_and_requester(self):
        html = _render("D")
        assert "123 Main St, Tagbilaran City</strong>, Philippines" in html
        assert "<u>Maria Cruz</u>" in html

    def test_format_f_balsaff_wording(self):
        html = _render("F")
        assert "issued in connection with the application for <strong>BALSAFF</strong>:" in html
        assert "CR-2024-001" in html

    def test_multiple_cases_in_order(self):
        cases = [
            {"case_number": "CR-1", "crime": "Estafa", "date_info_filed": "2023-05-01", "status": "Dismissed"},
            {"case_number": "CR-2", "crime": "Theft", "date_info_filed": "2024-02-10", "status": "Convicted"},
        ]
        html = _render("B", criminal_cases=cases)
        assert html.index("CR-1") < html.index("CR-2")


class TestWitnessLine:
    @pytest.mark.parametrize("issued,day", [
        ("2025-03-01", "1st"),
        ("2025-03-02", "2nd"),
        ("2025-03-03", "3rd"),
        ("2025-03-10", "10th"),
        ("2025-03-11", "11th"),
        ("2025-03-22", "22nd"),
    ])
    def test_ordinal_day(self, issued, day):
        html = _render("A", date_issued=issued)
        assert f"WITNESS MY HAND this <strong><u>{day}</u></strong> day of" in html
        assert "<u>March 2025</u>" in html

    def test_witness_place_from_office(self):
        selector = TemplateSelector(witness_place="City of Tagbilaran, Bohol")
        submission = ClearanceSubmission.from_dict(submission_payload("A"))
        html = selector.select(FORMAT_CATALOG.lookup("A"))(submission, FULL_NAME, None, ordinal_suffix)
        assert "in the City of Tagbilaran, Bohol." in html


class TestEscaping:
    def test_applicant_text_is_escaped(self):
        html = _render("A", address="<script>alert(1)</script>")
        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    def test_placeholders_for_missing_values(self):
        submission = ClearanceSubmission(format_type="A")
        template = select_template(FORMAT_CATALOG.lookup("A"))
        html = template(submission, "", None, ordinal_suffix)
        assert "[FULL NAME]" in html
        assert "[AGE]" in html
        assert "[DAY]" in html


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
