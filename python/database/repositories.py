"""
Repository Pattern for Clearance Database Operations

Provides clean data access layer with proper typing and error handling.
Repositories flush but never commit; transaction boundaries belong to the
caller's UnitOfWork.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Dict, Any, Tuple

from sqlalchemy import select, func, update, and_, or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from database.models import (
    ClearanceRecord,
    ClearanceCriminalCase,
    AuditLog,
    AuditAction,
)

logger = logging.getLogger(__name__)

STATUS_VALID = "Valid"
STATUS_EXPIRED = "Expired"


class RepositoryError(Exception):
    """Base exception for repository errors."""
    pass


class EntityNotFoundError(RepositoryError):
    """Raised when a record is not found."""
    pass


class DuplicateEntityError(RepositoryError):
    """Raised when a unique constraint (e.g. the O.R. number) is violated."""
    pass


@dataclass
class ClearanceFilters:
    """Filters accepted by ``ClearanceRepository.list``"""
    search: Optional[str] = None
    format_type: Optional[str] = None
    has_criminal_record: Optional[bool] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    issued_by: Optional[str] = None
    status: Optional[str] = None


def format_or_number(prefix: str, year: int, sequence: int) -> str:
    """``OCP-2025-000042``"""
    return f"{prefix}-{year}-{sequence:06d}"


# ============================================
# CLEARANCE REPOSITORY
# ============================================

class ClearanceRepository:
    """Repository for clearance record operations."""

    def __init__(self, session: Session):
        self.session = session

    def insert(
        self,
        fields: Dict[str, Any],
        cases: List[Dict[str, Any]],
        or_number: str,
        or_year: int,
        or_sequence: int
    ) -> ClearanceRecord:
        """
        Insert a new clearance record with its criminal cases.

        Args:
            fields: Column values for the clearance
            cases: Criminal case column values, in display order
            or_number: Allocated O.R. number
            or_year: Year component of the O.R. number
            or_sequence: Sequence component of the O.R. number

        Returns:
            Created ClearanceRecord (server defaults loaded)

        Raises:
            DuplicateEntityError: If the O.R. number is already taken
        """
        record = ClearanceRecord(
            **fields,
            or_number=or_number,
            or_year=or_year,
            or_sequence=or_sequence
        )
        record.criminal_cases = self._build_cases(cases)

        try:
            self.session.add(record)
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateEntityError(f"O.R. number already issued: {or_number}") from e

        self.session.refresh(record)
        logger.debug(f"Created clearance: {record.id} ({record.or_number})")
        return record

    def find_by_id(self, record_id: int) -> Optional[ClearanceRecord]:
        """
        Get a clearance by ID.

        Returns:
            ClearanceRecord or None
        """
        query = select(ClearanceRecord).where(ClearanceRecord.id == record_id)
        return self.session.execute(query).scalar_one_or_none()

    def find_by_or_number(self, or_number: str) -> Optional[ClearanceRecord]:
        query = select(ClearanceRecord).where(ClearanceRecord.or_number == or_number)
        return self.session.execute(query).scalar_one_or_none()

    def update(
        self,
        record_id: int,
        fields: Dict[str, Any],
        cases: Optional[List[Dict[str, Any]]] = None
    ) -> ClearanceRecord:
        """
        Update a clearance in place; the O.R. number is never changed here.

        Args:
            record_id: ID of the clearance
            fields: Column values to set
            cases: Replacement criminal case list (None leaves cases untouched)

        Returns:
            Updated record

        Raises:
            EntityNotFoundError: If the record does not exist
        """
        record = self.find_by_id(record_id)
        if not record:
            raise EntityNotFoundError(f"Clearance not found: {record_id}")

        for key, value in fields.items():
            if key in ("id", "or_number", "or_year", "or_sequence"):
                continue
            if hasattr(record, key):
                setattr(record, key, value)

        if cases is not None:
            record.criminal_cases = self._build_cases(cases)

        self.session.flush()
        self.session.refresh(record)
        return record

    def delete(self, record_id: int) -> bool:
        """
        Physically delete a clearance and its cases.

        Returns:
            True if deleted, False if not found
        """
        record = self.find_by_id(record_id)
        if not record:
            return False

        self.session.delete(record)
        self.session.flush()
        return True

    def list(
        self,
        filters: Optional[ClearanceFilters] = None,
        offset: int = 0,
        limit: int = 10
    ) -> Tuple[List[ClearanceRecord], int]:
        """
        List clearances, newest first, with filters and pagination.

        Returns:
            Tuple of (records list, total count)
        """
        conditions = self._conditions(filters or ClearanceFilters())

        count_query = select(func.count()).select_from(ClearanceRecord)
        if conditions:
            count_query = count_query.where(and_(*conditions))
        total = self.session.execute(count_query).scalar_one()

        query = select(ClearanceRecord)
        if conditions:
            query = query.where(and_(*conditions))
        query = query.order_by(
            ClearanceRecord.created_at.desc(),
            ClearanceRecord.id.desc()
        ).offset(offset).limit(limit)

        records = list(self.session.execute(query).scalars().all())
        return records, total

    def list_issuers(self) -> List[Dict[str, Optional[str]]]:
        """Distinct users who issued at least one clearance."""
        query = select(
            ClearanceRecord.issued_by_user_id,
            ClearanceRecord.issued_by_name
        ).where(
            or_(
                ClearanceRecord.issued_by_user_id.is_not(None),
                ClearanceRecord.issued_by_name.is_not(None)
            )
        ).distinct().order_by(ClearanceRecord.issued_by_name)

        return [
            {"issued_by_user_id": row[0], "issued_by_name": row[1]}
            for row in self.session.execute(query)
        ]

    def next_unique_or_number(self, year: int, prefix: str) -> Tuple[str, int]:
        """
        Allocate the next O.R. number for a year.

        The caller must serialize allocation and insertion; the unique
        constraint on ``or_number`` rejects any number issued twice.

        Returns:
            Tuple of (formatted O.R. number, sequence)
        """
        query = select(func.max(ClearanceRecord.or_sequence)).where(
            ClearanceRecord.or_year == year
        )
        current = self.session.execute(query).scalar_one_or_none() or 0
        sequence = current + 1
        return format_or_number(prefix, year, sequence), sequence

    def stats(self, today: date) -> Dict[str, int]:
        """
        Overview counts for the dashboard.

        Returns:
            Dictionary with total, this_month, no_criminal_record, has_criminal_record
        """
        month_start = today.replace(day=1)
        next_month = (
            month_start.replace(year=month_start.year + 1, month=1)
            if month_start.month == 12
            else month_start.replace(month=month_start.month + 1)
        )

        total = self.session.execute(
            select(func.count()).select_from(ClearanceRecord)
        ).scalar_one()

        this_month = self.session.execute(
            select(func.count()).select_from(ClearanceRecord).where(
                and_(
                    ClearanceRecord.date_issued >= month_start,
                    ClearanceRecord.date_issued < next_month
                )
            )
        ).scalar_one()

        with_record = self.session.execute(
            select(func.count()).select_from(ClearanceRecord).where(
                ClearanceRecord.has_criminal_record == True  # noqa: E712
            )
        ).scalar_one()

        return {
            "total": total,
            "this_month": this_month,
            "no_criminal_record": total - with_record,
            "has_criminal_record": with_record,
        }

    def expire_lapsed(self, today: date) -> int:
        """
        Mark valid clearances whose expiry has passed as expired.

        Returns:
            Number of records changed
        """
        result = self.session.execute(
            update(ClearanceRecord)
            .where(
                and_(
                    ClearanceRecord.status == STATUS_VALID,
                    ClearanceRecord.validity_expiry < today
                )
            )
            .values(status=STATUS_EXPIRED)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info(f"Marked {result.rowcount} clearance(s) as expired")
        return result.rowcount

    def _build_cases(self, cases: List[Dict[str, Any]]) -> List[ClearanceCriminalCase]:
        return [
            ClearanceCriminalCase(
                position=index,
                case_number=case["case_number"],
                crime=case["crime"],
                date_info_filed=case.get("date_info_filed"),
                origin=case.get("origin") or None,
                status=case["status"]
            )
            for index, case in enumerate(cases)
        ]

    def _conditions(self, filters: ClearanceFilters) -> list:
        conditions = []

        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            conditions.append(or_(
                ClearanceRecord.first_name.ilike(pattern),
                ClearanceRecord.middle_name.ilike(pattern),
                ClearanceRecord.last_name.ilike(pattern),
                ClearanceRecord.or_number.ilike(pattern),
                ClearanceRecord.prc_id_number.ilike(pattern),
                ClearanceRecord.purpose.ilike(pattern),
            ))
        if filters.format_type:
            conditions.append(ClearanceRecord.format_type == filters.format_type.strip().upper())
        if filters.has_criminal_record is not None:
            conditions.append(ClearanceRecord.has_criminal_record == filters.has_criminal_record)
        if filters.date_from:
            conditions.append(ClearanceRecord.date_issued >= filters.date_from)
        if filters.date_to:
            conditions.append(ClearanceRecord.date_issued <= filters.date_to)
        if filters.issued_by:
            conditions.append(or_(
                ClearanceRecord.issued_by_user_id == filters.issued_by,
                ClearanceRecord.issued_by_name == filters.issued_by
            ))
        if filters.status:
            conditions.append(ClearanceRecord.status == filters.status)

        return conditions


# ============================================
# AUDIT REPOSITORY
# ============================================

class AuditRepository:
    """Repository for audit log operations."""

    def __init__(self, session: Session):
        self.session = session

    def log(
        self,
        action: AuditAction,
        resource_type: str,
        resource_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        actor_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        old_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None,
        success: bool = True,
        error_message: Optional[str] = None
    ) -> AuditLog:
        """
        Create an audit log entry.

        Args:
            action: Type of action
            resource_type: Type of resource affected
            resource_id: ID of resource
            actor_*: Actor information
            details: Additional details
            old_value: Value before change
            new_value: Value after change
            success: Whether action succeeded
            error_message: Error if failed

        Returns:
            Created AuditLog
        """
        log = AuditLog(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            actor_id=actor_id,
            actor_name=actor_name,
            details=details,
            old_value=old_value,
            new_value=new_value,
            success=success,
            error_message=error_message
        )

        self.session.add(log)
        self.session.flush()
        return log

    def search(
        self,
        action: Optional[AuditAction] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 100
    ) -> Tuple[List[AuditLog], int]:
        """
        Search audit logs with filters.

        Returns:
            Tuple of (logs list, total count)
        """
        conditions = []

        if action:
            conditions.append(AuditLog.action == action)
        if resource_type:
            conditions.append(AuditLog.resource_type == resource_type)
        if resource_id:
            conditions.append(AuditLog.resource_id == resource_id)
        if actor_id:
            conditions.append(AuditLog.actor_id == actor_id)
        if start_date:
            conditions.append(AuditLog.timestamp >= start_date)
        if end_date:
            conditions.append(AuditLog.timestamp <= end_date)

        count_query = select(func.count()).select_from(AuditLog)
        if conditions:
            count_query = count_query.where(and_(*conditions))
        total = self.session.execute(count_query).scalar_one()

        query = select(AuditLog)
        if conditions:
            query = query.where(and_(*conditions))
        query = query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).offset(offset).limit(limit)

        logs = list(self.session.execute(query).scalars().all())
        return logs, total
