"""
FastAPI Middleware for the Clearance Certificate API

CORS setup, per-request logging with a request id, and the exception
handlers that turn domain errors into the standard error envelope:

    {"error": {"code": ..., "message": ..., "timestamp": ..., ["field"], ["fields"], ["suggestion"]}}
"""

import os
import re
import time
import uuid
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from clearance.formats import UnknownFormatError
from clearance.service import (
    ActorRequiredError,
    NotFoundError,
    PersistenceError,
    ValidationFailed,
)
from config_manager import ConfigurationError
from security_logger import request_context
from text_utils import sanitize_for_logging

logger = logging.getLogger(__name__)

# Localhost origins used when neither CORS_ORIGINS nor config.yaml lists any
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",  # React dev server
    "http://localhost:5173",  # Vite dev port
    "http://localhost:8000",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:8000",
]

ALLOWED_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
EXPOSED_HEADERS = ["X-Request-ID", "X-Processing-Time-MS", "Content-Disposition"]


# ============================================
# CORS
# ============================================

def _origin_regex(origins: List[str]) -> Optional[str]:
    """Single regex for a list with wildcard origins, e.g. ``https://*.example.gov.ph``.

    Each ``*`` matches one subdomain label. Returns None when no origin has a wildcard.
    """
    if not any("*" in origin for origin in origins):
        return None
    alternatives = [re.escape(origin).replace(r"\*", r"[\w-]+") for origin in origins]
    return "|".join(f"({alt})" for alt in alternatives)


def resolve_cors_origins(configured_origins: Optional[List[str]] = None) -> List[str]:
    """CORS_ORIGINS (comma-separated) wins over config.yaml, which wins over localhost."""
    from_env = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
    return from_env or list(configured_origins or []) or list(DEFAULT_CORS_ORIGINS)


def setup_cors(app: FastAPI, configured_origins: Optional[List[str]] = None) -> None:
    origins = resolve_cors_origins(configured_origins)
    regex = _origin_regex(origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[] if regex else origins,
        allow_origin_regex=regex,
        allow_credentials=True,
        allow_methods=ALLOWED_METHODS,
        allow_headers=["*"],
        expose_headers=EXPOSED_HEADERS,
    )
    logger.info("CORS enabled for %d origin(s)", len(origins))


# ============================================
# REQUEST LOGGING
# ============================================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id and logs method, path, status and duration.

    An incoming X-Request-ID is reused so a client can correlate its logs. The id
    and the X-User-Id header are bound to security events raised by the request.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = sanitize_for_logging(request.headers.get("X-Request-ID", ""))[:64] \
            or uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        user_id = sanitize_for_logging(request.headers.get("X-User-Id", "")).strip()[:100]
        started = time.perf_counter()

        try:
            with request_context(request_id, user_id):
                response = await call_next(request)
        except Exception as exc:
            logger.error(
                "%s %s failed after %dms: %s [%s]",
                request.method,
                sanitize_for_logging(request.url.path),
                _elapsed_ms(started),
                sanitize_for_logging(str(exc)),
                request_id,
            )
            raise

        elapsed = _elapsed_ms(started)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Processing-Time-MS"] = str(elapsed)
        logger.info(
            "%s %s -> %d in %dms [%s]",
            request.method,
            sanitize_for_logging(request.url.path),
            response.status_code,
            elapsed,
            request_id,
        )
        return response


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


# ============================================
# ERROR ENVELOPE
# ============================================

def create_error_response(
    code: str,
    message: str,
    status_code: int = 500,
    field: Optional[str] = None,
    fields: Optional[Dict[str, str]] = None,
    suggestion: Optional[str] = None,
) -> JSONResponse:
    """Build the standard error envelope; optional keys are omitted when empty."""
    error = {
        "code": code,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    optional = {"field": field, "fields": fields, "suggestion": suggestion}
    error.update({key: value for key, value in optional.items() if value})
    return JSONResponse(status_code=status_code, content={"error": error})


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def _error_parts(exc: Exception) -> Tuple[int, dict]:
    """Status code and envelope fields for a domain exception."""
    if isinstance(exc, ValidationFailed):
        return 422, {
            "code": "VALIDATION_FAILED",
            "message": "Please correct the highlighted fields.",
            "fields": exc.errors,
        }
    if isinstance(exc, UnknownFormatError):
        return 400, {
            "code": "UNKNOWN_FORMAT",
            "message": str(exc),
            "field": "format_type",
            "suggestion": "Use one of the codes listed by /api/clearances/formats",
        }
    if isinstance(exc, ActorRequiredError):
        return 400, {
            "code": "ACTOR_REQUIRED",
            "message": str(exc),
            "suggestion": "Send the X-User-Id or X-User-Name header",
        }
    if isinstance(exc, NotFoundError):
        return 404, {"code": "NOT_FOUND", "message": str(exc)}
    if isinstance(exc, PersistenceError):
        return 503, {
            "code": "PERSISTENCE_ERROR",
            "message": "The clearance store is unavailable. Please try again later.",
        }
    if isinstance(exc, ConfigurationError):
        return 503, {
            "code": "CONFIGURATION_ERROR",
            "message": "Service configuration is invalid. Please contact administrator.",
        }
    return 500, {
        "code": "INTERNAL_ERROR",
        "message": "An unexpected error occurred. Please try again later.",
    }


async def domain_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map clearance and configuration errors onto HTTP statuses.

    Server-side failures are logged at ERROR with the exception message;
    clients only ever see the generic message.
    """
    status_code, parts = _error_parts(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "%s: %s: %s [%s]",
        parts["code"],
        type(exc).__name__,
        sanitize_for_logging(str(exc)),
        _request_id(request),
    )
    return create_error_response(status_code=status_code, **parts)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Routing and auth errors (404 for unknown paths, 401/403 for the API key)."""
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    logger.warning(
        "HTTP %d: %s [%s]",
        exc.status_code,
        sanitize_for_logging(message),
        _request_id(request),
    )
    return create_error_response(code=f"HTTP_{exc.status_code}", message=message,
                                 status_code=exc.status_code)


def setup_exception_handlers(app: FastAPI) -> None:
    for exc_class in (ValidationFailed, UnknownFormatError, ActorRequiredError,
                      NotFoundError, PersistenceError, ConfigurationError, Exception):
        app.add_exception_handler(exc_class, domain_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
