"""
Shared fixtures: in-memory SQLite database, configuration with defaults,
a quiet security logger and a fixed "today".
"""

import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

sys.path.insert(0, str(Path(__file__).parent.parent))

from config_manager import ConfigManager
from database.connection import create_test_provider
from database.models import Base
from security_logger import SecurityLogger, get_security_logger, reset_security_logger

TODAY = date(2025, 3, 15)


def submission_payload(format_type: str = "A", **overrides: Any) -> Dict[str, Any]:
    """A complete, valid submission for the given format."""
    payload: Dict[str, Any] = {
        "format_type": format_type,
        "first_name": "Juan",
        "middle_name": "Santos",
        "last_name": "Cruz",
        "suffix": "Jr",
        "age": 30,
        "civil_status": "Single",
        "nationality": "Filipino",
        "address": "123 Main St, Tagbilaran City",
        "purpose": "Local Employment",
        "date_issued": "2025-03-10",
        "prc_id_number": "1234567",
        "validity_period": "6 Months",
    }
    if format_type in ("C", "D"):
        payload["issued_upon_request_by"] = "Maria Cruz"
    if format_type in ("B", "D", "F"):
        payload.update({
            "case_numbers": "CR-2024-001",
            "crime_description": "Theft",
            "legal_statute": "Art. 308 RPC",
            "date_of_commission": "2024-01-05",
            "date_information_filed": "2024-02-10",
            "case_status": "Pending in Court",
            "court_branch": "RTC Branch 1",
            "criminal_cases": [{
                "case_number": "CR-2024-001",
                "crime": "Theft",
                "date_info_filed": "2024-02-10",
                "origin": "",
                "status": "Pending in Court",
            }],
        })
    payload.update(overrides)
    return payload


@pytest.fixture(autouse=True)
def quiet_security_logger():
    """Global security logger without a log file."""
    reset_security_logger()
    get_security_logger(enable_file=False)
    yield
    reset_security_logger()


@pytest.fixture
def security_logger():
    return SecurityLogger(enable_console=False, enable_file=False)


@pytest.fixture
def config(tmp_path):
    """Configuration with built-in defaults (no config file)."""
    return ConfigManager(str(tmp_path / "missing-config.yaml"))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def provider(engine):
    provider = create_test_provider(engine=engine)
    provider.init()
    yield provider
    provider.close()


@pytest.fixture
def service(provider, config, security_logger):
    from clearance.service import ClearanceService
    return ClearanceService(
        provider,
        config=config,
        security_logger=security_logger,
        clock=lambda: TODAY,
    )
