"""
Clearance Certificate Engine

This package provides:
- The catalog of certificate formats (A-F)
- Format-driven validation of clearance submissions
- Narrative template selection and document assembly

Persistence and the record lifecycle live in ``clearance.service``, which is
imported explicitly because it depends on the database package.
"""

from clearance.formats import (
    FORMAT_CATALOG,
    FormatCatalog,
    FormatCode,
    FormatConfig,
    UnknownFormatError,
)
from clearance.submission import (
    Actor,
    ClearanceStatus,
    ClearanceSubmission,
    CriminalCaseEntry,
    PURPOSE_FEES,
)
from clearance.validation import ValidationResult, ValidationRules
from clearance.templates import TemplateSelector, select_template
from clearance.assembler import AssembledDocument, DocumentAssembler, DocumentModel

__all__ = [
    # Formats
    'FORMAT_CATALOG',
    'FormatCatalog',
    'FormatCode',
    'FormatConfig',
    'UnknownFormatError',
    # Submissions
    'Actor',
    'ClearanceStatus',
    'ClearanceSubmission',
    'CriminalCaseEntry',
    'PURPOSE_FEES',
    # Validation
    'ValidationResult',
    'ValidationRules',
    # Rendering
    'TemplateSelector',
    'select_template',
    'AssembledDocument',
    'DocumentAssembler',
    'DocumentModel',
]
