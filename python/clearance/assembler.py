"""
Certificate Document Assembly

Builds a typed ``DocumentModel`` from a validated submission and renders it
two ways:
- ``render_print``: self-contained HTML document with inline print CSS, ready
  for a browser print dialog or an HTML-to-PDF converter
- ``render_preview``: styled container fragment for on-screen live preview

Both renderings read the same model, so full name, dates, O.R. number and
expiry always agree.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from jinja2 import Environment

from clearance.dates import (
    derive_status,
    format_long_date,
    ordinal_suffix,
    validity_expiry,
)
from clearance.formats import FORMAT_CATALOG, FormatCatalog, FormatCode, FormatConfig
from clearance.submission import (
    ClearanceSubmission,
    VALIDITY_ONE_YEAR,
    effective_fee,
    effective_purpose,
)
from clearance.templates import TemplateSelector
from config_manager import OfficeConfig

logger = logging.getLogger(__name__)

__all__ = [
    "AssembledDocument",
    "DocumentAssembler",
    "DocumentModel",
    "derive_status",
    "effective_fee",
    "effective_purpose",
    "format_long_date",
    "full_name",
    "ordinal_suffix",
    "validity_expiry",
]

NAVY = "#00008B"
BLACK = "#000000"
OR_PLACEHOLDER = "________"


def full_name(first: Optional[str], middle: Optional[str], last: Optional[str],
              suffix: Optional[str] = None) -> str:
    """``FIRST M. LAST SUFFIX`` in uppercase, empty parts dropped.

    >>> full_name("juan", "santos", "cruz", "jr")
    'JUAN S. CRUZ JR'
    """
    middle = (middle or "").strip()
    parts = [
        (first or "").strip().upper(),
        f"{middle[0].upper()}." if middle else "",
        (last or "").strip().upper(),
        (suffix or "").strip().upper(),
    ]
    return " ".join(p for p in parts if p)


@dataclass
class DocumentModel:
    """Everything a certificate rendering needs, with derived values resolved"""
    format_code: FormatCode
    letterhead: List[str]
    left_seal: str
    right_seal: str
    title: str
    salutation: str
    narrative_html: str
    signatory_prefix: str
    signatory_name: str
    signatory_title: str
    or_number: str
    date_issued_text: str
    validity_note: str
    text_color: str
    full_name: str
    validity_expiry: Optional[str] = None
    purpose: str = ""
    fee: float = 0
    degraded: bool = False


@dataclass
class AssembledDocument:
    """A model and its two renderings"""
    model: DocumentModel
    print_html: str
    preview_html: str
    warnings: List[str] = field(default_factory=list)
    filename: Optional[str] = None


_STYLES = """
.certificate { font-family: "Century Gothic", "CenturyGothic", Arial, sans-serif; font-size: 12pt; line-height: 1.4; }
.certificate .letterhead { display: flex; align-items: center; justify-content: center; gap: 18pt; text-align: center; }
.certificate .letterhead img { width: 80px; height: 80px; object-fit: contain; }
.certificate .letterhead p { margin: 0; }
.certificate .letterhead .office { font-weight: bold; font-size: 13pt; }
.certificate .title { text-align: center; font-weight: bold; font-size: 20pt; letter-spacing: 2pt; margin: 24pt 0 18pt; }
.certificate .salutation { font-weight: bold; margin-bottom: 12pt; }
.certificate .body-text { text-align: justify; text-indent: 0.5in; margin-bottom: 8pt; }
.certificate .verdict { text-align: center; color: #008000; font-weight: bold; font-size: 25pt; margin: 12pt 0; }
.certificate .verdict-inline { color: #008000; font-weight: bold; }
.certificate .case-entry { margin: 5pt 0 12pt 0.75in; line-height: 1.2; }
.certificate .case-entry p { margin: 0 0 2pt 0; }
.certificate .case-label { display: inline-block; width: 90pt; }
.certificate .case-sep { margin-right: 8px; }
.certificate .request-block { margin: 16pt 0 0 1.2in; line-height: 1.2; }
.certificate .request-block p { margin: 0 0 2pt 0; }
.certificate .witness { margin: 12pt 0 18pt; text-indent: 0.3in; }
.certificate .signature { margin-top: 36pt; margin-left: 3.5in; }
.certificate .signature p { margin: 0; }
.certificate .signature .name { font-weight: bold; margin-top: 30pt; }
.certificate .footer { margin-top: 36pt; font-size: 10pt; }
.certificate .footer p { margin: 0; }
"""

_PRINT_SOURCE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Clearance Certificate - {{ model.full_name }}</title>
    <style>
        @page { size: 9.5in 12in; margin: 0.5in 0.75in; }
        @media print { body { -webkit-print-color-adjust: exact; print-color-adjust: exact; } }
        body { margin: 0; background: #ffffff; }
{{ styles | safe }}
    </style>
</head>
<body>
{{ body | safe }}
</body>
</html>
"""

_PREVIEW_SOURCE = """<div class="clearance-preview" style="background: #ffffff; box-shadow: 0 0 12px rgba(0,0,0,0.15); padding: 0.5in 0.75in; max-width: 9.5in; margin: 0 auto;">
<style>
{{ styles | safe }}
</style>
{{ body | safe }}
</div>
"""

_BODY_SOURCE = """<div class="certificate" style="color: {{ model.text_color }};">
  <div class="letterhead">
    <img src="{{ model.left_seal }}" alt="Seal">
    <div>
{% for line in model.letterhead %}
      <p{% if loop.index == 3 %} class="office"{% endif %}>{{ line }}</p>
{% endfor %}
    </div>
    <img src="{{ model.right_seal }}" alt="Seal">
  </div>
  <p class="title">{{ model.title }}</p>
  <p class="salutation">{{ model.salutation }}</p>
  {{ model.narrative_html | safe }}
  <div class="signature">
    <p>{{ model.signatory_prefix }}</p>
    <p class="name">{{ model.signatory_name }}</p>
    <p>{{ model.signatory_title }}</p>
  </div>
  <div class="footer">
    <p>O.R No: {{ model.or_number }}</p>
    <p>Date: {{ model.date_issued_text }}</p>
    <p>Note: {{ model.validity_note }}</p>
  </div>
</div>
"""

_environment = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)
_print_template = _environment.from_string(_PRINT_SOURCE)
_preview_template = _environment.from_string(_PREVIEW_SOURCE)
_body_template = _environment.from_string(_BODY_SOURCE)


class DocumentAssembler:
    """Combines office boilerplate with a format's narrative"""

    def __init__(
        self,
        office: Optional[OfficeConfig] = None,
        catalog: FormatCatalog = FORMAT_CATALOG,
        selector: Optional[TemplateSelector] = None,
        fee_table: Optional[dict] = None
    ):
        self.office = office or OfficeConfig()
        self.catalog = catalog
        self.selector = selector or TemplateSelector.from_office(self.office)
        self.fee_table = fee_table

    def build_model(
        self,
        submission: ClearanceSubmission,
        config: Optional[FormatConfig] = None,
        or_number: Optional[str] = None
    ) -> DocumentModel:
        """Resolve every derived value and the narrative for a submission.

        Args:
            submission: Validated submission
            config: Resolved format; when omitted the submission's format code is
                looked up with the preview fallback to format A
            or_number: Generated O.R. number, if already assigned

        Returns:
            DocumentModel ready for rendering
        """
        degraded = False
        if config is None:
            config = self.catalog.lookup_or_default(submission.format_type, source="assembler")
            degraded = config.code.value != str(submission.format_type or "").strip().upper()

        name = full_name(submission.first_name, submission.middle_name,
                         submission.last_name, submission.suffix)
        template = self.selector.select(config)
        narrative = template(submission, name, or_number, ordinal_suffix)

        try:
            expiry = validity_expiry(submission.date_issued, submission.validity_period)
        except ValueError:
            expiry = None

        window = "1 year" if submission.validity_period == VALIDITY_ONE_YEAR else "6 months"
        office = self.office
        return DocumentModel(
            format_code=config.code,
            letterhead=office.letterhead_lines(),
            left_seal=office.left_seal,
            right_seal=office.right_seal,
            title="C E R T I F I C A T I O N",
            salutation="TO WHOM IT MAY CONCERN:",
            narrative_html=narrative,
            signatory_prefix=office.signatory_prefix,
            signatory_name=office.signatory_name,
            signatory_title=office.signatory_title,
            or_number=(submission.prc_id_number or "").strip() or or_number or OR_PLACEHOLDER,
            date_issued_text=format_long_date(submission.date_issued, "________"),
            validity_note=f"Valid until {window} from the date issued.",
            text_color=NAVY if config.code == FormatCode.A else BLACK,
            full_name=name,
            validity_expiry=expiry,
            purpose=submission.effective_purpose,
            fee=effective_fee(submission.purpose, self.fee_table),
            degraded=degraded,
        )

    def render_print(self, model: DocumentModel) -> str:
        """Self-contained printable HTML document"""
        return _print_template.render(model=model, styles=_STYLES, body=self._render_body(model))

    def render_preview(self, model: DocumentModel) -> str:
        """Styled fragment for embedding in a page"""
        return _preview_template.render(styles=_STYLES, body=self._render_body(model))

    def assemble(
        self,
        submission: ClearanceSubmission,
        config: Optional[FormatConfig] = None,
        or_number: Optional[str] = None
    ) -> AssembledDocument:
        model = self.build_model(submission, config, or_number)
        logger.debug("Assembled format %s certificate (O.R. %s)",
                     model.format_code.value, model.or_number)
        warnings = []
        if model.degraded:
            warnings.append(
                f"Unknown format '{submission.format_type}', rendered as format {model.format_code.value}"
            )
        return AssembledDocument(
            model=model,
            print_html=self.render_print(model),
            preview_html=self.render_preview(model),
            warnings=warnings,
        )

    def _render_body(self, model: DocumentModel) -> str:
        return _body_template.render(model=model)
