"""
SQLAlchemy ORM Models for the Clearance Certificate Service

Tables:
1. clearances - Issued clearance certificates, one row per O.R. number
2. clearance_criminal_cases - Ordered criminal cases enumerated on a certificate
3. audit_logs - Append-only trail of writes, deletes and downloads

Only portable column types are used so the schema runs unchanged on
PostgreSQL (deployment) and SQLite (tests).
"""

from datetime import date, datetime
from enum import Enum as PyEnum
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    String, Integer, Float, Boolean, Date, DateTime, Text,
    ForeignKey, Index, CheckConstraint, UniqueConstraint, Enum, JSON
)
from sqlalchemy.orm import relationship, declarative_base, Mapped, mapped_column
from sqlalchemy.sql import func

# Base class for all models
Base = declarative_base()


# ============================================
# ENUMS
# ============================================

class AuditAction(str, PyEnum):
    """Type of audit action"""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    DOWNLOAD = "DOWNLOAD"


# ============================================
# MIXIN CLASSES
# ============================================

class TimestampMixin:
    """Mixin for created_at and updated_at timestamps"""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


# ============================================
# CLEARANCE MODELS
# ============================================

class ClearanceRecord(Base, TimestampMixin):
    """
    An issued clearance certificate.

    ``or_number`` is unique across all records; ``or_year``/``or_sequence`` are
    its numeric components, used to allocate the next number.
    """
    __tablename__ = "clearances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    format_type: Mapped[str] = mapped_column(String(1), nullable=False, index=True)
    has_criminal_record: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)

    # Identity
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    middle_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    suffix: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    alias: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    age: Mapped[int] = mapped_column(Integer, nullable=False)
    civil_status: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    nationality: Mapped[str] = mapped_column(String(50), nullable=False, default="Filipino")
    address: Mapped[str] = mapped_column(Text, nullable=False)

    # Request
    purpose: Mapped[str] = mapped_column(String(100), nullable=False)
    custom_purpose: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    purpose_fee: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    issued_upon_request_by: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Issuance
    date_issued: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    prc_id_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    validity_period: Mapped[str] = mapped_column(String(20), nullable=False, default="6 Months")
    validity_expiry: Mapped[date] = mapped_column(Date, nullable=False)

    # Legacy single-case block
    case_numbers: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    crime_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    legal_statute: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    date_of_commission: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    date_information_filed: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    case_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    court_branch: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Official receipt number
    or_number: Mapped[str] = mapped_column(String(30), nullable=False)
    or_year: Mapped[int] = mapped_column(Integer, nullable=False)
    or_sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    # Actors
    issued_by_user_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    issued_by_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    updated_by_user_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    updated_by_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Valid", index=True)

    criminal_cases: Mapped[List["ClearanceCriminalCase"]] = relationship(
        "ClearanceCriminalCase",
        back_populates="clearance",
        cascade="all, delete-orphan",
        order_by="ClearanceCriminalCase.position",
        lazy="selectin"
    )

    __table_args__ = (
        UniqueConstraint('or_number', name='uq_clearance_or_number'),
        UniqueConstraint('or_year', 'or_sequence', name='uq_clearance_or_sequence'),
        CheckConstraint("format_type IN ('A', 'B', 'C', 'D', 'E', 'F')", name='ck_clearance_format'),
        CheckConstraint("status IN ('Valid', 'Expired')", name='ck_clearance_status'),
        CheckConstraint('age >= 0', name='ck_clearance_age'),
        Index('ix_clearance_created', 'created_at'),
        Index('ix_clearance_name', 'last_name', 'first_name'),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Plain representation with ISO dates, cases included"""
        return {
            "id": self.id,
            "format_type": self.format_type,
            "has_criminal_record": self.has_criminal_record,
            "first_name": self.first_name,
            "middle_name": self.middle_name,
            "last_name": self.last_name,
            "suffix": self.suffix,
            "alias": self.alias,
            "age": self.age,
            "civil_status": self.civil_status,
            "nationality": self.nationality,
            "address": self.address,
            "purpose": self.purpose,
            "custom_purpose": self.custom_purpose,
            "purpose_fee": self.purpose_fee,
            "issued_upon_request_by": self.issued_upon_request_by,
            "date_issued": _iso(self.date_issued),
            "prc_id_number": self.prc_id_number,
            "validity_period": self.validity_period,
            "validity_expiry": _iso(self.validity_expiry),
            "case_numbers": self.case_numbers,
            "crime_description": self.crime_description,
            "legal_statute": self.legal_statute,
            "date_of_commission": _iso(self.date_of_commission),
            "date_information_filed": _iso(self.date_information_filed),
            "case_status": self.case_status,
            "court_branch": self.court_branch,
            "notes": self.notes,
            "or_number": self.or_number,
            "issued_by_user_id": self.issued_by_user_id,
            "issued_by_name": self.issued_by_name,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_by_name": self.updated_by_name,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "criminal_cases": [case.to_dict() for case in self.criminal_cases],
        }

    def __repr__(self) -> str:
        return f"<ClearanceRecord(id={self.id}, or_number='{self.or_number}', format='{self.format_type}')>"


class ClearanceCriminalCase(Base):
    """A criminal case listed on a clearance; replaced wholesale on update"""
    __tablename__ = "clearance_criminal_cases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    clearance_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("clearances.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    case_number: Mapped[str] = mapped_column(String(100), nullable=False)
    crime: Mapped[str] = mapped_column(String(500), nullable=False)
    date_info_filed: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    origin: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    status: Mapped[str] = mapped_column(String(100), nullable=False)

    clearance: Mapped["ClearanceRecord"] = relationship(
        "ClearanceRecord",
        back_populates="criminal_cases"
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "case_number": self.case_number,
            "crime": self.crime,
            "date_info_filed": _iso(self.date_info_filed),
            "origin": self.origin,
            "status": self.status,
        }

    def __repr__(self) -> str:
        return f"<ClearanceCriminalCase(clearance_id={self.clearance_id}, case='{self.case_number}')>"


# ============================================
# AUDIT MODELS
# ============================================

class AuditLog(Base):
    """
    Append-only audit trail.

    Deleted clearances leave their last state in ``old_value``.
    """
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Timestamp (no updated_at - audit logs are immutable)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True
    )

    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction, name="audit_action"),
        nullable=False,
        index=True
    )

    # Resource being acted upon
    resource_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    resource_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Actor information
    actor_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    actor_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    old_value: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    new_value: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index('ix_audit_timestamp_action', 'timestamp', 'action'),
        Index('ix_audit_resource', 'resource_type', 'resource_id'),
        Index('ix_audit_actor', 'actor_id', 'timestamp'),
    )

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action={self.action}, resource='{self.resource_type}')>"
