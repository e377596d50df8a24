"""
Tests for derived values and certificate document assembly.
"""

import sys
from datetime import date
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from clearance.assembler import (
    DocumentAssembler,
    derive_status,
    effective_fee,
    effective_purpose,
    format_long_date,
    full_name,
    ordinal_suffix,
    validity_expiry,
)
from clearance.dates import add_months
from clearance.formats import FORMAT_CATALOG, FormatCatalog, FormatCode
from clearance.submission import ClearanceStatus, ClearanceSubmission
from config_manager import OfficeConfig
from conftest import submission_payload


# ============================================
# DERIVED VALUES
# ============================================

class TestFullName:
    def test_all_parts(self):
        assert full_name("juan", "santos", "cruz", "jr") == "JUAN S. CRUZ JR"

    def test_missing_parts_dropped(self):
        assert full_name("Maria", "", "Reyes") == "MARIA REYES"
        assert full_name("Maria", None, "Reyes", None) == "MARIA REYES"

    def test_whitespace_trimmed(self):
        assert full_name("  ana ", " b ", " lim ", "") == "ANA B. LIM"


class TestOrdinalSuffix:
    @pytest.mark.parametrize("day,suffix", [
        (1, "st"), (2, "nd"), (3, "rd"), (4, "th"),
        (11, "th"), (12, "th"), (13, "th"), (20, "th"),
        (21, "st"), (22, "nd"), (23, "rd"), (24, "th"),
        (30, "th"), (31, "st"),
    ])
    def test_suffix_table(self, day, suffix):
        assert ordinal_suffix(day) == suffix


class TestValidityExpiry:
    def test_six_months(self):
        assert validity_expiry("2025-01-15", "6 Months") == "2025-07-15"

    def test_one_year(self):
        assert validity_expiry("2025-01-15", "1 Year") == "2026-01-15"

    def test_unknown_period_defaults_to_six_months(self):
        assert validity_expiry("2025-01-15", None) == "2025-07-15"

    def test_month_end_clamps(self):
        assert validity_expiry("2024-08-31", "6 Months") == "2025-02-28"
        assert validity_expiry("2023-08-31", "6 Months") == "2024-02-29"

    def test_leap_day_plus_one_year(self):
        assert validity_expiry("2024-02-29", "1 Year") == "2025-02-28"

    def test_accepts_date_objects(self):
        assert validity_expiry(date(2025, 12, 31), "6 Months") == "2026-06-30"

    def test_invalid_date_raises(self):
        with pytest.raises(ValueError):
            validity_expiry("not-a-date", "1 Year")

    def test_add_months_across_year(self):
        assert add_months(date(2025, 11, 30), 3) == date(2026, 2, 28)


class TestDerivedText:
    def test_format_long_date(self):
        assert format_long_date("2025-01-15") == "January 15, 2025"
        assert format_long_date("", "____") == "____"

    def test_effective_purpose(self):
        assert effective_purpose("Other", "  Scholarship ") == "Scholarship"
        assert effective_purpose("Foreign Travel", "ignored") == "Foreign Travel"

    def test_effective_fee(self):
        assert effective_fee("Firearm License") == 1000
        assert effective_fee("Promotion") == 0
        assert effective_fee("Something custom") == 0
        assert effective_fee("Foreign Travel", {"Foreign Travel": 250}) == 250


class TestDeriveStatus:
    def test_valid_until_expiry_day(self):
        assert derive_status("2025-07-15", date(2025, 7, 15)) == ClearanceStatus.VALID

    def test_expired_after(self):
        assert derive_status("2025-07-15", date(2025, 7, 16)) == ClearanceStatus.EXPIRED

    def test_status_value(self):
        assert derive_status(date(2030, 1, 1), date(2025, 1, 1)).value == "Valid"


# ============================================
# ASSEMBLY
# ============================================

@pytest.fixture
def assembler():
    return DocumentAssembler(OfficeConfig())


def _submission(code="A", **overrides):
    payload = submission_payload(code)
    payload.update(overrides)
    return ClearanceSubmission.from_dict(payload)


class TestDocumentModel:
    def test_boilerplate(self, assembler):
        model = assembler.build_model(_submission(), FORMAT_CATALOG.lookup("A"))
        assert model.title == "C E R T I F I C A T I O N"
        assert model.salutation == "TO WHOM IT MAY CONCERN:"
        assert "OFFICE OF THE CITY PROSECUTOR" in model.letterhead
        assert model.signatory_name == "REGIE C. POCON"

    def test_derived_values(self, assembler):
        model = assembler.build_model(_submission(), FORMAT_CATALOG.lookup("A"))
        assert model.full_name == "JUAN S. CRUZ JR"
        assert model.validity_expiry == "2025-09-10"
        assert model.date_issued_text == "March 10, 2025"
        assert model.fee == 50
        assert model.validity_note == "Valid until 6 months from the date issued."

    def test_one_year_note(self, assembler):
        model = assembler.build_model(_submission(validity_period="1 Year"), FORMAT_CATALOG.lookup("A"))
        assert model.validity_note == "Valid until 1 year from the date issued."

    def test_text_color(self, assembler):
        assert assembler.build_model(_submission("A"), FORMAT_CATALOG.lookup("A")).text_color == "#00008B"
        assert assembler.build_model(_submission("B"), FORMAT_CATALOG.lookup("B")).text_color == "#000000"

    def test_footer_or_number_precedence(self, assembler):
        config = FORMAT_CATALOG.lookup("A")
        assert assembler.build_model(_submission(), config, "OCP-2025-000009").or_number == "1234567"
        assert assembler.build_model(_submission(prc_id_number=""), config, "OCP-2025-000009").or_number == \
            "OCP-2025-000009"
        assert assembler.build_model(_submission(prc_id_number=""), config).or_number == "________"

    def test_custom_purpose_fee_is_zero(self, assembler):
        model = assembler.build_model(
            _submission(purpose="Other", custom_purpose="Scholarship"), FORMAT_CATALOG.lookup("A")
        )
        assert model.purpose == "Scholarship"
        assert model.fee == 0


class TestRendering:
    def test_print_document_is_self_contained(self, assembler):
        document = assembler.assemble(_submission(), FORMAT_CATALOG.lookup("A"))
        assert document.print_html.startswith("<!DOCTYPE html>")
        assert "@page { size: 9.5in 12in;" in document.print_html
        assert "C E R T I F I C A T I O N" in document.print_html

    def test_preview_is_fragment(self, assembler):
        document = assembler.assemble(_submission(), FORMAT_CATALOG.lookup("A"))
        assert document.preview_html.startswith('<div class="clearance-preview"')
        assert "<html" not in document.preview_html

    def test_print_and_preview_agree(self, assembler):
        """Both renderings carry the same derived values."""
        document = assembler.assemble(_submission("B"), FORMAT_CATALOG.lookup("B"), "OCP-2025-000003")
        for text in ("JUAN S. CRUZ JR", "March 10, 2025", "O.R No: 1234567", "CR-2024-001"):
            assert text in document.print_html
            assert text in document.preview_html

    def test_unknown_format_degrades_to_a(self, security_logger):
        assembler = DocumentAssembler(OfficeConfig(), FormatCatalog(security_logger=security_logger))
        document = assembler.assemble(_submission(format_type="Q"))
        assert document.model.format_code == FormatCode.A
        assert document.model.degraded
        assert document.warnings

    def test_known_format_without_config_is_not_degraded(self, assembler):
        document = assembler.assemble(_submission("e"))
        assert document.model.format_code == FormatCode.E
        assert not document.model.degraded
        assert document.warnings == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
