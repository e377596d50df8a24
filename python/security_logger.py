"""
Security Event Logging Module

Structured JSON events for the clearance service, written to a dedicated
``security`` logger:
- VALIDATION_FAILED: a submitted certificate was rejected
- FORMAT_FALLBACK: an unknown certificate format was rendered as format A
- ACTOR_MISSING: a write was refused because nobody could be held accountable

Applicant data is sanitized and truncated before it reaches the log.
"""

import logging
import json
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any, Iterator
from dataclasses import dataclass, field as dataclass_field

from text_utils import sanitize_for_logging

INPUT_PREVIEW_LENGTH = 50
CONTEXT_VALUE_LENGTH = 200

_SEVERITY_LEVELS = {
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Request being served by the current thread or task
_request_id: ContextVar[str] = ContextVar("security_request_id", default="")
_user_id: ContextVar[str] = ContextVar("security_user_id", default="")


def sanitize_value(value: Any, max_length: int = INPUT_PREVIEW_LENGTH) -> str:
    """Single-line, truncated string form of an arbitrary input."""
    if value is None or value == "":
        return ""
    text = sanitize_for_logging(str(value))
    if len(text) > max_length:
        return text[:max_length] + "...(truncated)"
    return text


def sanitize_context(context: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Sanitize keys and string values recursively; numbers, booleans and None pass through."""
    def clean(value: Any) -> Any:
        if value is None or isinstance(value, (bool, int, float)):
            return value
        if isinstance(value, dict):
            return sanitize_context(value)
        if isinstance(value, (list, tuple)):
            return [clean(item) for item in value]
        return sanitize_value(value, CONTEXT_VALUE_LENGTH)

    return {
        (sanitize_value(key, 100) or "unknown"): clean(value)
        for key, value in (context or {}).items()
    }


@dataclass
class SecurityEvent:
    """One security event; ``to_json`` is what lands in the log"""
    event_type: str
    severity: str
    field_name: str = ""
    error_code: str = ""
    sanitized_input: str = ""
    source: str = ""
    request_id: str = ""
    user_id: str = ""
    context: Dict[str, Any] = dataclass_field(default_factory=dict)
    timestamp: str = dataclass_field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'event_type': self.event_type,
            'severity': self.severity,
            'field': self.field_name,
            'error_code': self.error_code,
            'sanitized_input': self.sanitized_input,
            'source': self.source,
            'request_id': self.request_id,
            'user_id': self.user_id,
            'context': self.context
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


class SecurityLogger:
    """Writes security events to ``<log_dir>/security.log`` and optionally the console

    The ``security`` logger propagates, so application handlers see events too.
    """

    def __init__(
        self,
        log_dir: str = "logs",
        log_level: int = logging.WARNING,
        enable_console: bool = False,
        enable_file: bool = True
    ):
        self.log_dir = Path(log_dir)
        self.logger = logging.getLogger('security')
        self.logger.setLevel(log_level)
        self.logger.handlers.clear()

        handlers = []
        if enable_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.log_dir / "security.log", encoding='utf-8'))
        if enable_console:
            handlers.append(logging.StreamHandler())

        formatter = logging.Formatter('%(asctime)s - SECURITY - %(levelname)s - %(message)s')
        for handler in handlers:
            handler.setLevel(log_level)
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    # ---------- events ----------

    def _emit(self, event_type: str, severity: str, input_value: Any = "",
              context: Optional[Dict[str, Any]] = None, **fields: str) -> None:
        event = SecurityEvent(
            event_type=event_type,
            severity=severity,
            sanitized_input=sanitize_value(input_value),
            request_id=_request_id.get(),
            user_id=_user_id.get(),
            context=context or {},
            **fields
        )
        self.logger.log(_SEVERITY_LEVELS.get(severity, logging.WARNING), event.to_json())

    def log_validation_failure(
        self,
        field: str,
        error_code: str,
        input_value: Any,
        source: str = "",
        additional_context: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log one rejected field of a submission

        Args:
            field: Field name that failed validation
            error_code: Error code for the failure
            input_value: The offending input (sanitized and truncated)
            source: Module/function reporting the failure
            additional_context: Extra data such as the format code (sanitized)
        """
        self._emit(
            "VALIDATION_FAILED", "WARNING", input_value,
            sanitize_context(additional_context),
            field_name=field, error_code=error_code, source=source
        )

    def log_security_event(
        self,
        event_type: str,
        severity: str = "ERROR",
        field: str = "",
        error_code: str = "",
        input_value: Any = "",
        source: str = "",
        blocked: bool = True,
        additional_context: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log any other event; ``blocked`` records whether the operation was refused"""
        context = sanitize_context(additional_context)
        context['blocked'] = blocked
        self._emit(
            event_type, severity, input_value, context,
            field_name=field, error_code=error_code, source=source
        )

    def log_format_fallback(self, requested_code: Any, source: str = "") -> None:
        """An unknown certificate format was rendered as format A"""
        self.log_security_event(
            event_type="FORMAT_FALLBACK",
            severity="WARNING",
            field="format_type",
            error_code="UNKNOWN_FORMAT",
            input_value=requested_code,
            source=source,
            blocked=False,
            additional_context={"fallback": "A"}
        )

    def log_missing_actor(self, action: str, resource_id: Any, source: str = "") -> None:
        """A write was refused because no actor identity was supplied"""
        self.log_security_event(
            event_type="ACTOR_MISSING",
            error_code="ACTOR_REQUIRED",
            source=source,
            additional_context={"action": action, "resource_id": resource_id}
        )


_security_logger: Optional[SecurityLogger] = None


def get_security_logger(
    log_dir: str = "logs",
    enable_console: bool = False,
    enable_file: bool = True
) -> SecurityLogger:
    """Process-wide security logger; arguments apply only on first call"""
    global _security_logger
    if _security_logger is None:
        _security_logger = SecurityLogger(
            log_dir=log_dir,
            enable_console=enable_console,
            enable_file=enable_file
        )
    return _security_logger


def reset_security_logger() -> None:
    """Forget the process-wide instance (tests)"""
    global _security_logger
    _security_logger = None


@contextmanager
def request_context(request_id: Optional[str] = None, user_id: str = "") -> Iterator[str]:
    """Attach a request id (generated when missing) and user id to events logged in the block

    The values are context variables, so each request task or worker thread sees its own.
    """
    request_id = request_id or f"REQ-{uuid.uuid4().hex[:8]}"
    request_token = _request_id.set(request_id)
    user_token = _user_id.set(user_id)
    try:
        yield request_id
    finally:
        _request_id.reset(request_token)
        _user_id.reset(user_token)
