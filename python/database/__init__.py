"""
Database Package for the Clearance Certificate Service

This package provides:
- SQLAlchemy ORM models for clearances, their criminal cases and the audit trail
- A session provider with connection retry
- Unit of Work pattern for transaction management
- Repository pattern for data access
"""

from database.models import (
    Base,
    AuditAction,
    AuditLog,
    ClearanceRecord,
    ClearanceCriminalCase,
)
from database.connection import (
    DatabaseSessionProvider,
    DatabaseSettings,
    UnitOfWork,
    get_db_provider,
    # Initialization
    init_db,
    close_db,
    # Testing support
    create_test_provider,
)
from database.repositories import (
    ClearanceRepository,
    ClearanceFilters,
    AuditRepository,
    RepositoryError,
    EntityNotFoundError,
    DuplicateEntityError,
)

__all__ = [
    # Base
    'Base',
    # Models
    'AuditAction',
    'AuditLog',
    'ClearanceRecord',
    'ClearanceCriminalCase',
    # Database provider
    'DatabaseSessionProvider',
    'DatabaseSettings',
    'UnitOfWork',
    'get_db_provider',
    # Initialization
    'init_db',
    'close_db',
    # Testing support
    'create_test_provider',
    # Repositories
    'ClearanceRepository',
    'ClearanceFilters',
    'AuditRepository',
    'RepositoryError',
    'EntityNotFoundError',
    'DuplicateEntityError',
]
