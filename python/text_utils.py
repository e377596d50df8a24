"""
Shared text helpers for log output and generated file names.
"""

import re
from typing import Optional


def sanitize_for_logging(text: str) -> str:
    """Sanitize user input for safe logging, preventing log injection

    Removes newlines, carriage returns, and other control characters
    that could be used to inject fake log entries.

    Args:
        text: User input text

    Returns:
        Sanitized text safe for logging
    """
    if not text:
        return ''
    sanitized = re.sub(r'[\r\n\x00-\x1f\x7f-\x9f]', ' ', str(text))
    sanitized = re.sub(r'\s+', ' ', sanitized).strip()
    return sanitized[:500] if len(sanitized) > 500 else sanitized


def safe_filename_part(value: Optional[str]) -> str:
    """Keep only characters that are safe inside a download file name."""
    if not value:
        return ''
    cleaned = "".join(c for c in str(value) if c.isalnum() or c in (' ', '-', '_')).strip()
    return re.sub(r'\s+', '_', cleaned)


def clearance_filename(last_name: str, first_name: str, or_number: str, extension: str = "html") -> str:
    """Build ``Clearance_<Last>_<First>_<OR>.<ext>`` for a certificate download."""
    parts = ["Clearance"]
    parts.extend(p for p in (
        safe_filename_part(last_name),
        safe_filename_part(first_name),
        safe_filename_part(or_number),
    ) if p)
    return "_".join(parts) + f".{extension}"
