"""
Certificate format catalog.

Six fixed variants (A-F) decide which fields are required and which narrative
template is printed. The catalog is immutable.
"""

import logging
from dataclasses import dataclass
from enum import Enum as PyEnum
from typing import Any, Dict, Iterable, List, Optional

from security_logger import SecurityLogger, get_security_logger
from text_utils import sanitize_for_logging

logger = logging.getLogger(__name__)


class FormatCode(str, PyEnum):
    """Certificate variant code"""
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"
    F = "F"


@dataclass(frozen=True)
class FormatConfig:
    """Configuration of one certificate variant"""
    code: FormatCode
    label: str
    has_criminal_record: bool
    is_family_request: bool
    is_derogatory_variant: bool = False
    is_balsaff_variant: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "label": self.label,
            "has_criminal_record": self.has_criminal_record,
            "is_family_request": self.is_family_request,
            "is_derogatory_variant": self.is_derogatory_variant,
            "is_balsaff_variant": self.is_balsaff_variant,
        }


class UnknownFormatError(ValueError):
    """Raised when a format code is not one of A-F"""

    def __init__(self, code: Any):
        self.code = code
        super().__init__(f"Unknown clearance format: {code!r}")


DEFAULT_FORMATS = (
    FormatConfig(FormatCode.A, "Individual - No Criminal Record",
                 has_criminal_record=False, is_family_request=False),
    FormatConfig(FormatCode.B, "Individual - Has Criminal Record",
                 has_criminal_record=True, is_family_request=False),
    FormatConfig(FormatCode.C, "Family/Requester - No Criminal Record",
                 has_criminal_record=False, is_family_request=True),
    FormatConfig(FormatCode.D, "Family/Requester - Has Criminal Record",
                 has_criminal_record=True, is_family_request=True),
    FormatConfig(FormatCode.E, "Individual - No Derogatory Record",
                 has_criminal_record=False, is_family_request=False,
                 is_derogatory_variant=True),
    FormatConfig(FormatCode.F, "Individual - Balsaff Application (With Case)",
                 has_criminal_record=True, is_family_request=False,
                 is_balsaff_variant=True),
)


def normalize_code(code: Any) -> Optional[FormatCode]:
    """Map ``'a'``, ``' B '`` or a FormatCode to a FormatCode; None if unknown."""
    if isinstance(code, FormatCode):
        return code
    if code is None:
        return None
    try:
        return FormatCode(str(code).strip().upper())
    except ValueError:
        return None


class FormatCatalog:
    """Registry of certificate formats keyed by code"""

    def __init__(
        self,
        formats: Iterable[FormatConfig] = DEFAULT_FORMATS,
        security_logger: Optional[SecurityLogger] = None
    ):
        self._formats: Dict[FormatCode, FormatConfig] = {f.code: f for f in formats}
        self._security_logger = security_logger

    def lookup(self, code: Any) -> FormatConfig:
        """Resolve a format code.

        Raises:
            UnknownFormatError: If the code is not in the catalog
        """
        normalized = normalize_code(code)
        if normalized is None or normalized not in self._formats:
            raise UnknownFormatError(code)
        return self._formats[normalized]

    def lookup_or_default(self, code: Any, source: str = "preview") -> FormatConfig:
        """Resolve a format code for rendering, degrading to format A.

        Only for preview paths. The fallback is logged as a degraded-mode
        decision; persisting paths must call ``lookup``.
        """
        try:
            return self.lookup(code)
        except UnknownFormatError:
            logger.warning(
                "Unknown clearance format %s requested by %s; rendering format A",
                sanitize_for_logging(repr(code)), source
            )
            security = self._security_logger or get_security_logger()
            security.log_format_fallback(code, source=source)
            return self._formats[FormatCode.A]

    def all(self) -> List[FormatConfig]:
        return [self._formats[c] for c in FormatCode if c in self._formats]

    def __contains__(self, code: Any) -> bool:
        return normalize_code(code) in self._formats


FORMAT_CATALOG = FormatCatalog()
