"""
Clearance Record Lifecycle Service

Coordinates validation, O.R. number allocation, persistence, audit logging and
document rendering for clearance certificates. Follows dependency injection:
the database provider, catalog, rules and assembler are all injectable.

Usage:
    # With FastAPI
    @app.post("/api/clearances")
    def create(
        payload: ClearanceIn,
        service: ClearanceService = Depends(get_clearance_service)
    ):
        return service.create(payload.to_submission(), actor).to_dict()

    # Standalone
    service = ClearanceService(get_db_provider())
    record = service.create(submission, Actor("u-1", "Clerk"))
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from typing import Any, Callable, Dict, Generator, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from clearance.assembler import AssembledDocument, DocumentAssembler
from clearance.dates import derive_status, validity_expiry
from clearance.formats import FORMAT_CATALOG, FormatCatalog, FormatConfig
from clearance.submission import (
    Actor,
    ClearanceSubmission,
    DEFAULT_NATIONALITY,
    PURPOSE_FEES,
    effective_fee,
    is_blank,
    parse_iso_date,
)
from clearance.validation import LEGACY_CASE_FIELDS, ValidationRules
from config_manager import ConfigManager, get_config
from database.connection import DatabaseSessionProvider, UnitOfWork
from database.models import AuditAction, ClearanceRecord
from database.repositories import (
    AuditRepository,
    ClearanceFilters,
    ClearanceRepository,
    DuplicateEntityError,
)
from security_logger import SecurityLogger, get_security_logger
from text_utils import clearance_filename

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "clearance"

# Serializes O.R. allocation and insertion within this process
_OR_LOCK = threading.Lock()

_OPTIONAL_TEXT_FIELDS = (
    "middle_name",
    "suffix",
    "alias",
    "civil_status",
    "custom_purpose",
    "issued_upon_request_by",
    "prc_id_number",
    "notes",
)


# ============================================
# EXCEPTIONS
# ============================================

class ClearanceError(Exception):
    """Base exception for clearance lifecycle errors."""
    pass


class ValidationFailed(ClearanceError):
    """Raised when a submission violates the rules of its format."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__(f"Validation failed for {len(self.errors)} field(s)")


class NotFoundError(ClearanceError):
    """Raised when a clearance record does not exist."""

    def __init__(self, record_id: Any):
        self.record_id = record_id
        super().__init__(f"Clearance not found: {record_id}")


class PersistenceError(ClearanceError):
    """Raised when storage is unavailable or rejects a write."""
    pass


class ActorRequiredError(ClearanceError):
    """Raised when an operation needs an identified actor and none was given."""
    pass


# ============================================
# SERVICE
# ============================================

class ClearanceService:
    """
    Lifecycle of clearance records: create, update, delete, read, render.

    Every write runs in a single unit of work together with its audit entry.
    """

    def __init__(
        self,
        provider: DatabaseSessionProvider,
        config: Optional[ConfigManager] = None,
        catalog: Optional[FormatCatalog] = None,
        rules: Optional[ValidationRules] = None,
        assembler: Optional[DocumentAssembler] = None,
        security_logger: Optional[SecurityLogger] = None,
        clock: Callable[[], date] = date.today
    ):
        """
        Initialize the service.

        Args:
            provider: Database session provider
            config: Configuration (global instance if not provided)
            catalog: Format catalog
            rules: Validation rules (built from config if not provided)
            assembler: Document assembler (built from config if not provided)
            security_logger: Security event logger
            clock: Returns "today"; injectable for tests
        """
        config = config or get_config()
        self.provider = provider
        self.settings = config.clearance
        self.max_page_size = config.api.max_page_size
        self.fee_table = {**PURPOSE_FEES, **self.settings.purpose_fees}
        self.catalog = catalog or FORMAT_CATALOG
        self.rules = rules or ValidationRules.from_config(self.settings)
        self.assembler = assembler or DocumentAssembler(
            config.office, self.catalog, fee_table=self.fee_table
        )
        self._security = security_logger or get_security_logger(config.logging.security_log_dir)
        self._clock = clock

    # ---------- writes ----------

    def create(self, submission: ClearanceSubmission, issuer: Actor) -> ClearanceRecord:
        """
        Validate and persist a new clearance with a freshly allocated O.R. number.

        Raises:
            UnknownFormatError: If the format code is not in the catalog
            ValidationFailed: If the submission is invalid for its format
            PersistenceError: If storage fails or no unique O.R. number was found
        """
        submission = self._with_defaults(submission)
        config = self.catalog.lookup(submission.format_type)
        today = self._clock()
        self._check(submission, config, today, source="ClearanceService.create")

        fields = self._record_fields(submission, config, today)
        fields["issued_by_user_id"] = issuer.user_id
        fields["issued_by_name"] = issuer.name
        cases = self._case_rows(submission, config)

        attempts = self.settings.or_max_attempts
        for attempt in range(1, attempts + 1):
            try:
                with _OR_LOCK:
                    record = self._insert(fields, cases, today.year, issuer)
                logger.info(f"Created clearance {record.or_number} (format {record.format_type})")
                return record
            except DuplicateEntityError as e:
                logger.warning(f"O.R. number collision (attempt {attempt}/{attempts}): {e}")

        raise PersistenceError(f"Could not allocate a unique O.R. number after {attempts} attempts")

    def update(
        self,
        record_id: int,
        submission: ClearanceSubmission,
        actor: Optional[Actor] = None
    ) -> ClearanceRecord:
        """
        Re-validate and update a clearance; the O.R. number never changes.

        Raises:
            UnknownFormatError, NotFoundError, ValidationFailed, PersistenceError
        """
        actor = actor or Actor()
        submission = self._with_defaults(submission)
        config = self.catalog.lookup(submission.format_type)
        today = self._clock()
        self._check(submission, config, today, source="ClearanceService.update")

        fields = self._record_fields(submission, config, today)
        fields["updated_by_user_id"] = actor.user_id
        fields["updated_by_name"] = actor.name
        cases = self._case_rows(submission, config)

        with self._unit_of_work("update") as uow:
            repo = ClearanceRepository(uow.session)
            existing = repo.find_by_id(record_id)
            if existing is None:
                raise NotFoundError(record_id)
            old_value = existing.to_dict()

            record = repo.update(record_id, fields, cases)
            AuditRepository(uow.session).log(
                action=AuditAction.UPDATE,
                resource_type=RESOURCE_TYPE,
                resource_id=str(record_id),
                actor_id=actor.user_id,
                actor_name=actor.name,
                old_value=old_value,
                new_value=record.to_dict()
            )
            uow.commit()

        logger.info(f"Updated clearance {record.or_number}")
        return record

    def delete(self, record_id: int, actor: Optional[Actor]) -> None:
        """
        Permanently delete a clearance, recording who did it.

        Raises:
            ActorRequiredError: If no actor id or name was supplied
            NotFoundError: If the record does not exist
            PersistenceError: If storage fails
        """
        if actor is None or not actor.is_identified:
            self._security.log_missing_actor("delete", record_id, source="ClearanceService.delete")
            raise ActorRequiredError("Deleting a clearance requires an identified user")

        with self._unit_of_work("delete") as uow:
            repo = ClearanceRepository(uow.session)
            record = repo.find_by_id(record_id)
            if record is None:
                raise NotFoundError(record_id)
            old_value = record.to_dict()

            repo.delete(record_id)
            AuditRepository(uow.session).log(
                action=AuditAction.DELETE,
                resource_type=RESOURCE_TYPE,
                resource_id=str(record_id),
                actor_id=actor.user_id,
                actor_name=actor.name,
                details={"or_number": old_value["or_number"]},
                old_value=old_value
            )
            uow.commit()

        logger.info(f"Deleted clearance {old_value['or_number']} by {actor.user_id or actor.name}")

    def log_download(self, record_id: int, actor: Optional[Actor] = None) -> str:
        """
        Audit a certificate download.

        Returns:
            Download filename for the certificate
        """
        actor = actor or Actor()
        with self._unit_of_work("log_download") as uow:
            record = ClearanceRepository(uow.session).find_by_id(record_id)
            if record is None:
                raise NotFoundError(record_id)
            filename = clearance_filename(record.last_name, record.first_name, record.or_number)

            AuditRepository(uow.session).log(
                action=AuditAction.DOWNLOAD,
                resource_type=RESOURCE_TYPE,
                resource_id=str(record_id),
                actor_id=actor.user_id,
                actor_name=actor.name,
                details={"or_number": record.or_number, "filename": filename}
            )
            uow.commit()
        return filename

    # ---------- reads ----------

    def get(self, record_id: int) -> ClearanceRecord:
        """Raises NotFoundError if the record does not exist."""
        with self._unit_of_work("get") as uow:
            repo = ClearanceRepository(uow.session)
            repo.expire_lapsed(self._clock())
            record = repo.find_by_id(record_id)
            if record is None:
                raise NotFoundError(record_id)
            uow.commit()
        return record

    def list(
        self,
        filters: Optional[ClearanceFilters] = None,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[ClearanceRecord], int]:
        """
        Paginated clearances, newest first.

        Returns:
            Tuple of (records, total matching)
        """
        page = max(1, page)
        limit = min(max(1, limit), self.max_page_size)

        with self._unit_of_work("list") as uow:
            repo = ClearanceRepository(uow.session)
            repo.expire_lapsed(self._clock())
            records, total = repo.list(filters, offset=(page - 1) * limit, limit=limit)
            uow.commit()
        return records, total

    def stats(self, today: Optional[date] = None) -> Dict[str, int]:
        today = today or self._clock()
        with self._unit_of_work("stats") as uow:
            repo = ClearanceRepository(uow.session)
            repo.expire_lapsed(today)
            result = repo.stats(today)
            uow.commit()
        return result

    def issuers(self) -> List[Dict[str, Optional[str]]]:
        with self._unit_of_work("issuers") as uow:
            return ClearanceRepository(uow.session).list_issuers()

    def expire_lapsed(self) -> int:
        """Flip lapsed Valid records to Expired. Returns the number changed."""
        with self._unit_of_work("expire_lapsed") as uow:
            changed = ClearanceRepository(uow.session).expire_lapsed(self._clock())
            uow.commit()
        return changed

    # ---------- rendering ----------

    def preview(self, submission: ClearanceSubmission) -> AssembledDocument:
        """Render without validating or persisting; unknown formats render as A."""
        return self.assembler.assemble(self._with_defaults(submission))

    def render_document(self, record_id: int) -> AssembledDocument:
        """Render the printable certificate of a stored clearance."""
        record = self.get(record_id)
        config = self.catalog.lookup(record.format_type)
        submission = ClearanceSubmission.from_dict(record.to_dict())

        document = self.assembler.assemble(submission, config, or_number=record.or_number)
        document.filename = clearance_filename(record.last_name, record.first_name, record.or_number)
        return document

    # ---------- internals ----------

    def _with_defaults(self, submission: ClearanceSubmission) -> ClearanceSubmission:
        """Copy of the submission with a blank validity period set to the office default."""
        if is_blank(submission.validity_period):
            return replace(submission, validity_period=self.settings.default_validity_period)
        return submission

    @contextmanager
    def _unit_of_work(self, operation: str) -> Generator[UnitOfWork, None, None]:
        """Unit of work whose storage failures surface as PersistenceError."""
        try:
            with self.provider.get_unit_of_work() as uow:
                yield uow
        except SQLAlchemyError as e:
            logger.error(f"Storage failure during {operation}: {e}")
            raise PersistenceError(f"Storage unavailable during {operation}") from e

    def _insert(
        self,
        fields: Dict[str, Any],
        cases: List[Dict[str, Any]],
        year: int,
        issuer: Actor
    ) -> ClearanceRecord:
        with self._unit_of_work("create") as uow:
            repo = ClearanceRepository(uow.session)
            or_number, sequence = repo.next_unique_or_number(year, self.settings.or_number_prefix)
            record = repo.insert(fields, cases, or_number, year, sequence)

            AuditRepository(uow.session).log(
                action=AuditAction.CREATE,
                resource_type=RESOURCE_TYPE,
                resource_id=str(record.id),
                actor_id=issuer.user_id,
                actor_name=issuer.name,
                new_value=record.to_dict()
            )
            try:
                uow.commit()
            except IntegrityError as e:
                uow.rollback()
                raise DuplicateEntityError(f"O.R. number already issued: {or_number}") from e
        return record

    def _check(self, submission: ClearanceSubmission, config: FormatConfig,
               today: date, source: str) -> None:
        result = self.rules.validate(submission, config, today)
        if result.ok:
            return

        for field_name, message in result.errors.items():
            self._security.log_validation_failure(
                field=field_name,
                error_code="VALIDATION_FAILED",
                input_value=getattr(submission, field_name, ""),
                source=source,
                additional_context={"format": config.code.value, "message": message}
            )
        raise ValidationFailed(result.errors)

    def _record_fields(self, submission: ClearanceSubmission, config: FormatConfig,
                       today: date) -> Dict[str, Any]:
        """Column values for a validated submission, with derived values applied."""
        expiry = parse_iso_date(validity_expiry(submission.date_issued, submission.validity_period))

        fields: Dict[str, Any] = {
            "format_type": config.code.value,
            "has_criminal_record": config.has_criminal_record,
            "first_name": submission.first_name.strip(),
            "last_name": submission.last_name.strip(),
            "age": int(str(submission.age).strip()),
            "nationality": submission.nationality or DEFAULT_NATIONALITY,
            "address": submission.address.strip(),
            "purpose": submission.purpose,
            "purpose_fee": effective_fee(submission.purpose, self.fee_table),
            "date_issued": parse_iso_date(submission.date_issued),
            "validity_period": submission.validity_period,
            "validity_expiry": expiry,
            "status": derive_status(expiry, today).value,
        }
        for name in _OPTIONAL_TEXT_FIELDS:
            value = getattr(submission, name)
            fields[name] = None if is_blank(value) else value.strip()

        for name in LEGACY_CASE_FIELDS:
            value = getattr(submission, name) if config.has_criminal_record else None
            if name.startswith("date_"):
                fields[name] = parse_iso_date(value)
            else:
                fields[name] = None if is_blank(value) else value.strip()
        return fields

    def _case_rows(self, submission: ClearanceSubmission, config: FormatConfig) -> List[Dict[str, Any]]:
        if not config.has_criminal_record:
            return []
        return [
            {
                "case_number": entry.case_number,
                "crime": entry.crime,
                "date_info_filed": parse_iso_date(entry.date_info_filed),
                "origin": entry.origin,
                "status": entry.status,
            }
            for entry in submission.criminal_cases
        ]
