"""
FastAPI Clearance Certificate API Server

Provides REST API endpoints for issuing, editing, listing, rendering and
deleting clearance certificates.

Usage:
    uvicorn api.server:app --reload --port 8000
"""

import os
import math
import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Depends, Security, Header, Query
from fastapi.responses import HTMLResponse
from fastapi.security import APIKeyHeader
from sqlalchemy.exc import SQLAlchemyError

from api.models import (
    ClearanceIn,
    ClearanceOut,
    ClearanceListResponse,
    DeleteResponse,
    DownloadLogResponse,
    FormatOut,
    HealthResponse,
    IssuerOut,
    OptionsResponse,
    PreviewResponse,
    PurposeOption,
    StatsResponse,
    ErrorResponse,
)
from api.middleware import (
    setup_cors,
    setup_exception_handlers,
    RequestLoggingMiddleware,
)
from clearance.service import ClearanceService
from clearance.submission import Actor, CASE_STATUS_OPTIONS, CIVIL_STATUS_OPTIONS
from config_manager import get_config, configure_logging, ConfigManager, ConfigurationError
from database.connection import get_db_provider, init_db, close_db
from database.models import ClearanceRecord
from database.repositories import ClearanceFilters
from security_logger import get_security_logger

logger = logging.getLogger(__name__)

# Environment variables with defaults
API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8000"))
CONFIG_PATH = os.getenv("CONFIG_PATH", "config.yaml")
API_KEY = os.getenv("API_KEY", "")  # Required for write endpoints when set
DB_CREATE_TABLES = os.getenv("DB_CREATE_TABLES", "true").lower() == "true"
API_VERSION = "1.0.0"

# Global state
_service: Optional[ClearanceService] = None
_config: Optional[ConfigManager] = None
_startup_time: Optional[datetime] = None

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(api_key: Optional[str] = Security(api_key_header)) -> str:
    """Verify API key for protected endpoints.

    If API_KEY environment variable is not set, authentication is disabled.
    """
    if not API_KEY:
        # API key not configured - allow all requests (development mode)
        return "dev-mode"

    if not api_key:
        raise HTTPException(
            status_code=401, detail="Missing API key. Provide X-API-Key header."
        )

    if api_key != API_KEY:
        raise HTTPException(status_code=403, detail="Invalid API key")

    return api_key


def get_config_instance() -> ConfigManager:
    """Dependency to get the config instance."""
    global _config
    if _config is None:
        _config = get_config(CONFIG_PATH)
    return _config


def get_clearance_service(
    config: ConfigManager = Depends(get_config_instance),
) -> ClearanceService:
    """Dependency to get the clearance service."""
    global _service
    if _service is None:
        _service = ClearanceService(get_db_provider(), config)
    return _service


def get_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
) -> Actor:
    """Identity of the signed-in user, forwarded by the session layer."""
    return Actor(
        user_id=(x_user_id or "").strip()[:100] or None,
        name=(x_user_name or "").strip()[:200] or None,
    )


# Create FastAPI application
app = FastAPI(
    title="Clearance Certificate API",
    description="API for issuing and managing prosecutor's office clearance certificates",
    version=API_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# Setup middleware
setup_cors(app, get_config_instance().api.cors_origins)
app.add_middleware(RequestLoggingMiddleware)
setup_exception_handlers(app)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Unknown format or missing actor"},
    404: {"model": ErrorResponse, "description": "Clearance not found"},
    422: {"model": ErrorResponse, "description": "Validation failed"},
    503: {"model": ErrorResponse, "description": "Storage unavailable"},
}


@app.on_event("startup")
async def startup():
    """Load configuration, set up logging and connect to the database."""
    global _config, _startup_time

    try:
        _config = get_config(CONFIG_PATH)
        configure_logging(_config.logging)
        get_security_logger(log_dir=_config.logging.security_log_dir)
        logger.info(f"✓ Configuration loaded from {_config.config_path}")
    except ConfigurationError as e:
        logger.error(f"✗ Configuration error: {e}")
        raise

    try:
        init_db(_config.database, create_tables=DB_CREATE_TABLES)
        logger.info("✓ Database connected")
    except SQLAlchemyError as e:
        # Requests will report 503 until the database is reachable
        logger.error(f"✗ Database unavailable at startup: {e}")

    _startup_time = datetime.now(timezone.utc)
    logger.info("✓ Clearance API ready")


@app.on_event("shutdown")
async def shutdown():
    """Cleanup on shutdown."""
    logger.info("Shutting down Clearance API...")
    close_db()


def _to_out(record: ClearanceRecord) -> ClearanceOut:
    return ClearanceOut(**record.to_dict())


# ============================================
# REFERENCE DATA
# ============================================

@app.get(
    "/api/clearances/purposes",
    response_model=List[PurposeOption],
    summary="Purposes and fees",
)
def list_purposes(service: ClearanceService = Depends(get_clearance_service)):
    """Purpose to fee table, in display order."""
    return [PurposeOption(purpose=p, fee=fee) for p, fee in service.fee_table.items()]


@app.get(
    "/api/clearances/formats",
    response_model=List[FormatOut],
    summary="Certificate formats",
)
def list_formats(service: ClearanceService = Depends(get_clearance_service)):
    return [FormatOut(**config.to_dict()) for config in service.catalog.all()]


@app.get(
    "/api/clearances/options",
    response_model=OptionsResponse,
    summary="Form pick-lists",
)
def list_options(config: ConfigManager = Depends(get_config_instance)):
    return OptionsResponse(
        civil_status=list(CIVIL_STATUS_OPTIONS),
        case_status=list(CASE_STATUS_OPTIONS),
        validity_periods=list(config.clearance.validity_periods),
    )


@app.get(
    "/api/clearances/stats/overview",
    response_model=StatsResponse,
    responses={503: ERROR_RESPONSES[503]},
    summary="Dashboard counts",
)
def clearance_stats(service: ClearanceService = Depends(get_clearance_service)):
    return StatsResponse(**service.stats())


@app.get(
    "/api/clearances/issuers",
    response_model=List[IssuerOut],
    responses={503: ERROR_RESPONSES[503]},
    summary="Users who issued clearances",
)
def list_issuers(service: ClearanceService = Depends(get_clearance_service)):
    return [IssuerOut(**issuer) for issuer in service.issuers()]


# ============================================
# PREVIEW
# ============================================

@app.post(
    "/api/clearances/preview",
    response_model=PreviewResponse,
    summary="Render without saving",
    description="Assemble the certificate for on-screen preview. Unknown formats render as format A.",
)
def preview_clearance(
    payload: ClearanceIn,
    service: ClearanceService = Depends(get_clearance_service),
):
    document = service.preview(payload.to_submission())
    model = document.model
    return PreviewResponse(
        format_code=model.format_code.value,
        full_name=model.full_name,
        or_number=model.or_number,
        purpose=model.purpose,
        fee=model.fee,
        validity_expiry=model.validity_expiry,
        degraded=model.degraded,
        warnings=document.warnings,
        preview_html=document.preview_html,
        print_html=document.print_html,
    )


# ============================================
# CLEARANCE RECORDS
# ============================================

@app.post(
    "/api/clearances",
    response_model=ClearanceOut,
    status_code=201,
    responses={400: ERROR_RESPONSES[400], 422: ERROR_RESPONSES[422], 503: ERROR_RESPONSES[503]},
    summary="Issue a clearance",
)
def create_clearance(
    payload: ClearanceIn,
    service: ClearanceService = Depends(get_clearance_service),
    actor: Actor = Depends(get_actor),
    api_key: str = Depends(verify_api_key),
):
    """Validate, allocate an O.R. number and save."""
    record = service.create(payload.to_submission(), actor)
    return _to_out(record)


@app.get(
    "/api/clearances",
    response_model=ClearanceListResponse,
    responses={503: ERROR_RESPONSES[503]},
    summary="List clearances",
)
def list_clearances(
    search: Optional[str] = Query(default=None, max_length=200),
    format_type: Optional[str] = Query(default=None, max_length=1),
    has_criminal_record: Optional[bool] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    issued_by: Optional[str] = None,
    status: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    service: ClearanceService = Depends(get_clearance_service),
):
    filters = ClearanceFilters(
        search=search,
        format_type=format_type,
        has_criminal_record=has_criminal_record,
        date_from=date_from,
        date_to=date_to,
        issued_by=issued_by,
        status=status,
    )
    records, total = service.list(filters, page=page, limit=limit)
    return ClearanceListResponse(
        items=[_to_out(r) for r in records],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit),
    )


@app.get(
    "/api/clearances/{record_id}",
    response_model=ClearanceOut,
    responses={404: ERROR_RESPONSES[404], 503: ERROR_RESPONSES[503]},
    summary="Get one clearance",
)
def get_clearance(record_id: int, service: ClearanceService = Depends(get_clearance_service)):
    return _to_out(service.get(record_id))


@app.put(
    "/api/clearances/{record_id}",
    response_model=ClearanceOut,
    responses=ERROR_RESPONSES,
    summary="Edit a clearance",
)
def update_clearance(
    record_id: int,
    payload: ClearanceIn,
    service: ClearanceService = Depends(get_clearance_service),
    actor: Actor = Depends(get_actor),
    api_key: str = Depends(verify_api_key),
):
    """Re-validate against the (possibly changed) format; the O.R. number is kept."""
    record = service.update(record_id, payload.to_submission(), actor)
    return _to_out(record)


@app.delete(
    "/api/clearances/{record_id}",
    response_model=DeleteResponse,
    responses={400: ERROR_RESPONSES[400], 404: ERROR_RESPONSES[404], 503: ERROR_RESPONSES[503]},
    summary="Delete a clearance",
)
def delete_clearance(
    record_id: int,
    service: ClearanceService = Depends(get_clearance_service),
    actor: Actor = Depends(get_actor),
    api_key: str = Depends(verify_api_key),
):
    """Permanently delete; requires X-User-Id or X-User-Name."""
    service.delete(record_id, actor)
    return DeleteResponse(id=record_id)


@app.get(
    "/api/clearances/{record_id}/document",
    response_class=HTMLResponse,
    responses={404: ERROR_RESPONSES[404], 503: ERROR_RESPONSES[503]},
    summary="Printable certificate",
)
def clearance_document(
    record_id: int,
    download: bool = False,
    service: ClearanceService = Depends(get_clearance_service),
):
    """Self-contained HTML ready for the browser print dialog."""
    document = service.render_document(record_id)
    disposition = "attachment" if download else "inline"
    return HTMLResponse(
        content=document.print_html,
        headers={"Content-Disposition": f'{disposition}; filename="{document.filename}"'},
    )


@app.post(
    "/api/clearances/{record_id}/log-download",
    response_model=DownloadLogResponse,
    responses={404: ERROR_RESPONSES[404], 503: ERROR_RESPONSES[503]},
    summary="Record a certificate download",
)
def log_download(
    record_id: int,
    service: ClearanceService = Depends(get_clearance_service),
    actor: Actor = Depends(get_actor),
):
    filename = service.log_download(record_id, actor)
    return DownloadLogResponse(filename=filename)


# ============================================
# HEALTH
# ============================================

@app.get(
    "/api/health",
    response_model=HealthResponse,
    summary="Health check",
)
def health_check():
    """Service and database status. Always returns HTTP 200."""
    uptime_seconds = None
    if _startup_time:
        uptime_seconds = int((datetime.now(timezone.utc) - _startup_time).total_seconds())

    try:
        provider = get_db_provider()
        connected = provider.initialized and provider.health_check()
    except SQLAlchemyError as e:
        return HealthResponse(
            status="degraded",
            database="unavailable",
            version=API_VERSION,
            uptime_seconds=uptime_seconds,
            error_message=str(e),
        )

    return HealthResponse(
        status="healthy" if connected else "degraded",
        database="connected" if connected else "unavailable",
        version=API_VERSION,
        uptime_seconds=uptime_seconds,
    )


# Root redirect to docs
@app.get("/", include_in_schema=False)
async def root():
    """Redirect root to API documentation."""
    from fastapi.responses import RedirectResponse

    return RedirectResponse(url="/api/docs")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=API_HOST, port=API_PORT)
