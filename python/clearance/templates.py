"""
Narrative templates for the six certificate formats.

Only the body paragraphs differ between formats; letterhead, signature block
and footer are added by ``clearance.assembler``. Templates are Jinja2 with
autoescaping, so applicant-supplied text is always HTML-escaped.
"""

from typing import Callable, Dict, List, Optional

from jinja2 import Environment, DictLoader

from clearance.dates import format_long_date, format_month_year
from clearance.formats import FormatCode, FormatConfig
from clearance.submission import ClearanceSubmission, DEFAULT_NATIONALITY, parse_iso_date

OrdinalFormatter = Callable[[int], str]

# Fallbacks used when office settings are not supplied
DEFAULT_WITNESS_PLACE = "City of Tagbilaran, Bohol, Philippines"
DEFAULT_CASE_ORIGIN = "Tagbilaran City"

_MACROS = """
{% macro subject(show_alias=True, bold_details=True, country='') -%}
{% if bold_details -%}
<strong>{{ full_name }}{% if show_alias and alias %} y {{ alias }}{% endif %}</strong>, <strong>{{ age }} years old</strong>, <strong>{{ civil_status }}</strong>, <strong>{{ nationality }}</strong>
{%- else -%}
<strong>{{ full_name }}{% if show_alias and alias %} y {{ alias }}{% endif %}</strong>, {{ age }} years old, {{ civil_status }}, {{ nationality }}
{%- endif %}, residing at <strong>{{ address }}</strong>{{ country }}
{%- endmacro %}

{% macro verdict(text) -%}
<p class="verdict">{{ text }}</p>
{%- endmacro %}

{% macro case_list() -%}
{% for case in cases %}
<div class="case-entry">
  <p><span class="case-label">Crim. Case No.</span><span class="case-sep">:</span><strong>{{ case.case_number }}</strong></p>
  <p><span class="case-label">Crime</span><span class="case-sep">:</span><strong>{{ case.crime }}</strong></p>
  <p><span class="case-label">Date Info Filed</span><span class="case-sep">:</span><span>{{ case.date_info_filed }}</span></p>
  <p><span class="case-label">Origin</span><span class="case-sep">:</span><span>{{ case.origin }}</span></p>
  <p><span class="case-label">Status</span><span class="case-sep">:</span><span>{{ case.status }}</span></p>
</div>
{% endfor %}
{%- endmacro %}

{% macro request_block() -%}
<div class="request-block">
  <p><span>Issued upon request: </span><strong><u>{{ requester }}</u></strong></p>
  <p><span>Purpose: </span><strong><u>{{ purpose }}</u></strong></p>
</div>
{%- endmacro %}

{% macro witness() -%}
<p class="witness">WITNESS MY HAND this <strong><u>{{ witness_day }}</u></strong> day of <strong><u>{{ witness_month_year }}</u></strong> in the {{ witness_place }}.</p>
{%- endmacro %}
"""

_FORMAT_SOURCES = {
    "format_a.html": """
{% from "macros.html" import subject, verdict, request_block, witness with context %}
<p class="body-text">THIS IS TO CERTIFY that the records of this office show that one {{ subject() }} has</p>
{{ verdict("NO CRIMINAL RECORD") }}
{{ request_block() }}
{{ witness() }}
""",
    "format_b.html": """
{% from "macros.html" import subject, case_list, request_block, witness with context %}
<p class="body-text">THIS IS TO CERTIFY that per records of this office show that one {{ subject(bold_details=False) }} has been charged of the following:</p>
{{ case_list() }}
{{ request_block() }}
{{ witness() }}
""",
    "format_c.html": """
{% from "macros.html" import subject, verdict, request_block, witness with context %}
<p class="body-text">THIS IS TO CERTIFY that the records of this office show that one {{ subject() }} has</p>
{{ verdict("NO CRIMINAL RECORD") }}
{{ request_block() }}
{{ witness() }}
""",
    "format_d.html": """
{% from "macros.html" import subject, case_list, request_block, witness with context %}
<p class="body-text">THIS IS TO CERTIFY that per records of this office show that one {{ subject(bold_details=False, country=', Philippines') }} has been charged of the following:</p>
{{ case_list() }}
{{ request_block() }}
{{ witness() }}
""",
    "format_e.html": """
{% from "macros.html" import subject, request_block, witness with context %}
<p class="body-text">THIS IS TO CERTIFY that per records of this office show that one {{ subject(show_alias=False) }} has <span class="verdict-inline">NO DEROGATORY RECORD</span> found in this office.</p>
{{ request_block() }}
{{ witness() }}
""",
    "format_f.html": """
{% from "macros.html" import subject, case_list, request_block, witness with context %}
<p class="body-text">THIS IS TO CERTIFY that per records of this office show that one {{ subject(bold_details=False) }} has the following case(s) on record in this office, issued in connection with the application for <strong>BALSAFF</strong>:</p>
{{ case_list() }}
{{ request_block() }}
{{ witness() }}
""",
}

_environment = Environment(
    loader=DictLoader({"macros.html": _MACROS, **_FORMAT_SOURCES}),
    autoescape=True,
    trim_blocks=True,
    lstrip_blocks=True,
)

# Who the "Issued upon request" line names
REQUESTER_OR_SUBJECT = "requester_or_subject"
SUBJECT = "subject"
REQUESTER = "requester"


class NarrativeTemplate:
    """Renders the format-specific body of a certificate.

    Instances are callables matching the template-function contract:
    ``template(submission, full_name, or_number, ordinal_suffix) -> str``.
    """

    def __init__(
        self,
        code: FormatCode,
        template_name: str,
        requester_rule: str,
        witness_place: str = DEFAULT_WITNESS_PLACE,
        default_origin: str = DEFAULT_CASE_ORIGIN
    ):
        self.code = code
        self.template_name = template_name
        self.requester_rule = requester_rule
        self.witness_place = witness_place
        self.default_origin = default_origin
        self._template = _environment.get_template(template_name)

    def __call__(
        self,
        submission: ClearanceSubmission,
        full_name: str,
        or_number: Optional[str],
        ordinal_suffix: OrdinalFormatter
    ) -> str:
        return self._template.render(
            **self._context(submission, full_name, or_number, ordinal_suffix)
        ).strip()

    def _context(self, submission, full_name, or_number, ordinal_suffix) -> Dict:
        issued = parse_iso_date(submission.date_issued)
        subject_name = full_name or "[FULL NAME]"
        return {
            "full_name": subject_name,
            "alias": (submission.alias or "").upper(),
            "age": submission.age if submission.age not in (None, "") else "[AGE]",
            "civil_status": submission.civil_status or "[STATUS]",
            "nationality": submission.nationality or DEFAULT_NATIONALITY,
            "address": submission.address or "[ADDRESS]",
            "requester": self._requester(submission, subject_name),
            "purpose": submission.effective_purpose.upper() or "[PURPOSE]",
            "cases": self._cases(submission),
            "witness_day": f"{issued.day}{ordinal_suffix(issued.day)}" if issued else "[DAY]",
            "witness_month_year": format_month_year(issued, "[MONTH YEAR]"),
            "witness_place": self.witness_place,
            "or_number": or_number or "",
        }

    def _requester(self, submission: ClearanceSubmission, subject_name: str) -> str:
        requested_by = (submission.issued_upon_request_by or "").strip()
        if self.requester_rule == SUBJECT:
            return subject_name
        if self.requester_rule == REQUESTER:
            return requested_by or "[REQUESTER NAME]"
        return requested_by or subject_name

    def _cases(self, submission: ClearanceSubmission) -> List[Dict[str, str]]:
        return [
            {
                "case_number": case.case_number or "[CASE NUMBER]",
                "crime": case.crime or "[CRIME]",
                "date_info_filed": format_long_date(case.date_info_filed, "[DATE]"),
                "origin": case.origin or self.default_origin,
                "status": case.status or "[STATUS]",
            }
            for case in submission.criminal_cases
        ]

    def __repr__(self) -> str:
        return f"<NarrativeTemplate(code={self.code.value}, template='{self.template_name}')>"


_TEMPLATE_SPECS = {
    FormatCode.A: ("format_a.html", REQUESTER_OR_SUBJECT),
    FormatCode.B: ("format_b.html", SUBJECT),
    FormatCode.C: ("format_c.html", REQUESTER),
    FormatCode.D: ("format_d.html", REQUESTER),
    FormatCode.E: ("format_e.html", REQUESTER_OR_SUBJECT),
    FormatCode.F: ("format_f.html", SUBJECT),
}


def route_format(config: FormatConfig) -> FormatCode:
    """Pick the narrative variant from format flags; first matching rule wins."""
    if config.is_derogatory_variant:
        return FormatCode.E
    if config.is_balsaff_variant:
        return FormatCode.F
    if config.has_criminal_record and config.is_family_request:
        return FormatCode.D
    if config.has_criminal_record:
        return FormatCode.B
    if config.is_family_request:
        return FormatCode.C
    return FormatCode.A


class TemplateSelector:
    """Maps a format configuration to its narrative template.

    One template instance is built per format code and reused, so selecting
    twice for the same configuration returns the same callable.
    """

    def __init__(self, witness_place: str = DEFAULT_WITNESS_PLACE,
                 default_origin: str = DEFAULT_CASE_ORIGIN):
        self._templates = {
            code: NarrativeTemplate(code, name, rule, witness_place, default_origin)
            for code, (name, rule) in _TEMPLATE_SPECS.items()
        }

    @classmethod
    def from_office(cls, office) -> 'TemplateSelector':
        """Build from a ``config_manager.OfficeConfig``"""
        return cls(witness_place=office.witness_place,
                   default_origin=office.default_case_origin)

    def select(self, config: FormatConfig) -> NarrativeTemplate:
        return self._templates[route_format(config)]


default_selector = TemplateSelector()


def select_template(config: FormatConfig) -> NarrativeTemplate:
    return default_selector.select(config)
