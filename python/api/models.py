"""
Pydantic request/response schemas for the Clearance Certificate API

Request schemas are deliberately permissive: field-level business rules are
applied by ``clearance.validation`` so that every violation is reported in one
response instead of failing on the first bad type.
"""

from typing import List, Optional, Dict, Union

from pydantic import BaseModel, Field, field_validator

from clearance.submission import ClearanceSubmission


class CriminalCaseIn(BaseModel):
    """One criminal case as sent by the client."""
    case_number: Optional[str] = Field(default=None, description="Criminal case number")
    crime: Optional[str] = Field(default=None, description="Crime charged")
    date_info_filed: Optional[str] = Field(
        default=None,
        description="Date the information was filed (YYYY-MM-DD)"
    )
    origin: Optional[str] = Field(default=None, description="Venue; office default when blank")
    status: Optional[str] = Field(default=None, description="Case disposition")


class ClearanceIn(BaseModel):
    """Request schema for creating, updating and previewing a clearance.

    Superset of every format's fields; ``format_type`` decides which matter.
    ``purpose_fee`` and ``validity_expiry`` are accepted but recomputed server-side.
    """
    format_type: Optional[str] = Field(default="A", description="Certificate format code (A-F)")

    first_name: Optional[str] = Field(default=None, max_length=200)
    middle_name: Optional[str] = Field(default=None, max_length=200)
    last_name: Optional[str] = Field(default=None, max_length=200)
    suffix: Optional[str] = Field(default=None, max_length=20)
    alias: Optional[str] = Field(default=None, max_length=200)
    age: Optional[Union[int, str]] = Field(default=None, description="Age in years")
    civil_status: Optional[str] = Field(default=None)
    nationality: Optional[str] = Field(default=None, description="Defaults to Filipino")
    address: Optional[str] = Field(default=None)

    purpose: Optional[str] = Field(default=None, description="Purpose from /purposes, or 'Other'")
    custom_purpose: Optional[str] = Field(default=None, description="Required when purpose is 'Other'")
    purpose_fee: Optional[float] = Field(default=None, description="Ignored; fee comes from the fee table")
    issued_upon_request_by: Optional[str] = Field(default=None)

    date_issued: Optional[str] = Field(default=None, description="Issuance date (YYYY-MM-DD)")
    prc_id_number: Optional[str] = Field(default=None, description="Official receipt number typed by the clerk")
    validity_period: Optional[str] = Field(default=None, description="'6 Months' or '1 Year'")
    validity_expiry: Optional[str] = Field(default=None, description="Ignored; derived from date and period")

    case_numbers: Optional[str] = None
    crime_description: Optional[str] = None
    legal_statute: Optional[str] = None
    date_of_commission: Optional[str] = None
    date_information_filed: Optional[str] = None
    case_status: Optional[str] = None
    court_branch: Optional[str] = None

    criminal_cases: List[CriminalCaseIn] = Field(default_factory=list)
    notes: Optional[str] = None

    @field_validator('date_issued', 'date_of_commission', 'date_information_filed', 'validity_expiry')
    @classmethod
    def strip_time_part(cls, v: Optional[str]) -> Optional[str]:
        """Accept full ISO timestamps by keeping only the date part."""
        if v is None:
            return v
        return v.split('T')[0]

    def to_submission(self) -> ClearanceSubmission:
        return ClearanceSubmission.from_dict(self.model_dump())


class CriminalCaseOut(BaseModel):
    case_number: str
    crime: str
    date_info_filed: Optional[str] = None
    origin: Optional[str] = None
    status: str


class ClearanceOut(BaseModel):
    """A stored clearance record."""
    id: int
    or_number: str = Field(..., description="System-generated official receipt number")
    format_type: str
    has_criminal_record: bool
    status: str = Field(..., description="Valid or Expired")

    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    suffix: Optional[str] = None
    alias: Optional[str] = None
    age: int
    civil_status: Optional[str] = None
    nationality: str
    address: str

    purpose: str
    custom_purpose: Optional[str] = None
    purpose_fee: float
    issued_upon_request_by: Optional[str] = None

    date_issued: str
    prc_id_number: Optional[str] = None
    validity_period: str
    validity_expiry: str

    case_numbers: Optional[str] = None
    crime_description: Optional[str] = None
    legal_statute: Optional[str] = None
    date_of_commission: Optional[str] = None
    date_information_filed: Optional[str] = None
    case_status: Optional[str] = None
    court_branch: Optional[str] = None
    notes: Optional[str] = None

    criminal_cases: List[CriminalCaseOut] = Field(default_factory=list)

    issued_by_user_id: Optional[str] = None
    issued_by_name: Optional[str] = None
    updated_by_user_id: Optional[str] = None
    updated_by_name: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ClearanceListResponse(BaseModel):
    """Paginated list of clearances."""
    items: List[ClearanceOut] = Field(default_factory=list)
    total: int = Field(..., ge=0, description="Total records matching the filters")
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)


class StatsResponse(BaseModel):
    """Dashboard counts."""
    total: int = Field(..., ge=0)
    this_month: int = Field(..., ge=0, description="Issued in the current calendar month")
    no_criminal_record: int = Field(..., ge=0)
    has_criminal_record: int = Field(..., ge=0)


class IssuerOut(BaseModel):
    issued_by_user_id: Optional[str] = None
    issued_by_name: Optional[str] = None


class PurposeOption(BaseModel):
    purpose: str
    fee: float


class FormatOut(BaseModel):
    """One certificate format from the catalog."""
    code: str
    label: str
    has_criminal_record: bool
    is_family_request: bool
    is_derogatory_variant: bool = False
    is_balsaff_variant: bool = False


class OptionsResponse(BaseModel):
    """Advisory pick-lists for the clearance form."""
    civil_status: List[str]
    case_status: List[str]
    validity_periods: List[str]


class PreviewResponse(BaseModel):
    """Rendered certificate for on-screen preview."""
    format_code: str = Field(..., description="Format actually rendered")
    full_name: str
    or_number: str
    purpose: str
    fee: float
    validity_expiry: Optional[str] = None
    degraded: bool = Field(default=False, description="True when an unknown format fell back to A")
    warnings: List[str] = Field(default_factory=list)
    preview_html: str
    print_html: str


class DownloadLogResponse(BaseModel):
    logged: bool = True
    filename: str


class HealthResponse(BaseModel):
    """Response schema for health check endpoint."""
    status: str = Field(default="healthy", description="Service status")
    database: str = Field(..., description="Database connectivity: connected or unavailable")
    version: str = Field(..., description="API version")
    uptime_seconds: Optional[int] = Field(
        default=None,
        description="Server uptime in seconds"
    )
    error_message: Optional[str] = Field(default=None)


class ErrorDetail(BaseModel):
    """Detailed error information."""
    code: str = Field(..., description="Error code for programmatic handling")
    message: str = Field(..., description="Human-readable error message")
    field: Optional[str] = Field(default=None, description="Field that caused error")
    fields: Optional[Dict[str, str]] = Field(default=None, description="Per-field validation messages")
    suggestion: Optional[str] = Field(default=None, description="How to fix the error")
    timestamp: str = Field(..., description="Error timestamp (ISO 8601)")


class ErrorResponse(BaseModel):
    """Standardized error response format."""
    error: ErrorDetail


class DeleteResponse(BaseModel):
    deleted: bool = True
    id: int
