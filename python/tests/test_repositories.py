"""
Repository tests against an in-memory SQLite database.

Covers insertion with cases, O.R. allocation, filters and pagination,
statistics, status expiry and the audit trail.
"""

import sys
from datetime import date
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from database.models import AuditAction, ClearanceCriminalCase
from database.repositories import (
    AuditRepository,
    ClearanceFilters,
    ClearanceRepository,
    DuplicateEntityError,
    EntityNotFoundError,
    format_or_number,
)
from sqlalchemy import select, func


def _fields(**overrides):
    fields = {
        "format_type": "A",
        "has_criminal_record": False,
        "first_name": "Juan",
        "last_name": "Cruz",
        "age": 30,
        "nationality": "Filipino",
        "address": "Tagbilaran City",
        "purpose": "Local Employment",
        "purpose_fee": 50,
        "date_issued": date(2025, 3, 10),
        "validity_period": "6 Months",
        "validity_expiry": date(2025, 9, 10),
        "status": "Valid",
        "issued_by_user_id": "clerk-1",
        "issued_by_name": "Clerk One",
    }
    fields.update(overrides)
    return fields


def _case(number, crime="Theft"):
    return {
        "case_number": number,
        "crime": crime,
        "date_info_filed": date(2024, 2, 10),
        "origin": "",
        "status": "Pending in Court",
    }


@pytest.fixture
def session(provider):
    """Session committed at the end of each test."""
    with provider.session_scope() as session:
        yield session


def _insert(repo, sequence, year=2025, cases=None, **overrides):
    return repo.insert(
        _fields(**overrides), cases or [],
        format_or_number("OCP", year, sequence), year, sequence
    )


# ============================================
# CLEARANCE REPOSITORY
# ============================================

class TestInsertAndFind:
    def test_insert_loads_server_defaults(self, session):
        record = _insert(ClearanceRepository(session), 1)
        assert record.id is not None
        assert record.created_at is not None
        assert record.or_number == "OCP-2025-000001"

    def test_cases_kept_in_order(self, session):
        repo = ClearanceRepository(session)
        record = _insert(repo, 1, cases=[_case("CR-1"), _case("CR-2")],
                         format_type="B", has_criminal_record=True)
        found = repo.find_by_id(record.id)
        assert [c.case_number for c in found.criminal_cases] == ["CR-1", "CR-2"]
        assert found.criminal_cases[0].origin is None

    def test_duplicate_or_number_rejected(self, session):
        repo = ClearanceRepository(session)
        _insert(repo, 1)
        with pytest.raises(DuplicateEntityError):
            repo.insert(_fields(), [], "OCP-2025-000001", 2030, 1)

    def test_find_missing_returns_none(self, session):
        assert ClearanceRepository(session).find_by_id(999) is None

    def test_find_by_or_number(self, session):
        repo = ClearanceRepository(session)
        _insert(repo, 7)
        assert repo.find_by_or_number("OCP-2025-000007").or_sequence == 7


class TestOrNumbers:
    def test_first_number_of_year(self, session):
        assert ClearanceRepository(session).next_unique_or_number(2025, "OCP") == ("OCP-2025-000001", 1)

    def test_continues_from_max(self, session):
        repo = ClearanceRepository(session)
        _insert(repo, 1)
        _insert(repo, 5)
        assert repo.next_unique_or_number(2025, "OCP") == ("OCP-2025-000006", 6)

    def test_sequence_restarts_each_year(self, session):
        repo = ClearanceRepository(session)
        _insert(repo, 41, year=2024)
        assert repo.next_unique_or_number(2025, "CLR") == ("CLR-2025-000001", 1)


class TestUpdateAndDelete:
    def test_update_keeps_or_number_and_replaces_cases(self, session):
        repo = ClearanceRepository(session)
        record = _insert(repo, 3, cases=[_case("CR-1"), _case("CR-2")],
                         format_type="B", has_criminal_record=True)

        updated = repo.update(record.id, {"address": "Dauis, Bohol", "or_number": "HACK-1"},
                              [_case("CR-9", "Estafa")])

        assert updated.address == "Dauis, Bohol"
        assert updated.or_number == "OCP-2025-000003"
        assert [c.case_number for c in updated.criminal_cases] == ["CR-9"]
        orphans = session.execute(select(func.count()).select_from(ClearanceCriminalCase)).scalar_one()
        assert orphans == 1

    def test_update_missing_raises(self, session):
        with pytest.raises(EntityNotFoundError):
            ClearanceRepository(session).update(404, {"address": "x"})

    def test_delete_removes_cases(self, session):
        repo = ClearanceRepository(session)
        record = _insert(repo, 1, cases=[_case("CR-1")], format_type="B", has_criminal_record=True)

        assert repo.delete(record.id) is True
        assert repo.find_by_id(record.id) is None
        remaining = session.execute(select(func.count()).select_from(ClearanceCriminalCase)).scalar_one()
        assert remaining == 0

    def test_delete_missing_returns_false(self, session):
        assert ClearanceRepository(session).delete(12345) is False


class TestListing:
    @pytest.fixture
    def populated(self, session):
        repo = ClearanceRepository(session)
        _insert(repo, 1, first_name="Ana", last_name="Lim", date_issued=date(2025, 1, 5))
        _insert(repo, 2, first_name="Ben", last_name="Tan", format_type="B",
                has_criminal_record=True, date_issued=date(2025, 2, 5),
                issued_by_user_id="clerk-2", issued_by_name="Clerk Two")
        _insert(repo, 3, first_name="Carla", last_name="Uy", date_issued=date(2025, 3, 5),
                status="Expired")
        return repo

    def test_total_and_pagination(self, populated):
        items, total = populated.list(offset=0, limit=2)
        assert total == 3
        assert len(items) == 2
        items, total = populated.list(offset=2, limit=2)
        assert len(items) == 1

    def test_search_by_name_and_or_number(self, populated):
        items, total = populated.list(ClearanceFilters(search="lim"))
        assert total == 1 and items[0].first_name == "Ana"
        items, total = populated.list(ClearanceFilters(search="000002"))
        assert total == 1 and items[0].first_name == "Ben"

    def test_filters(self, populated):
        assert populated.list(ClearanceFilters(format_type="b"))[1] == 1
        assert populated.list(ClearanceFilters(has_criminal_record=False))[1] == 2
        assert populated.list(ClearanceFilters(date_from=date(2025, 2, 1)))[1] == 2
        assert populated.list(ClearanceFilters(date_to=date(2025, 2, 1)))[1] == 1
        assert populated.list(ClearanceFilters(issued_by="clerk-2"))[1] == 1
        assert populated.list(ClearanceFilters(issued_by="Clerk One"))[1] == 2
        assert populated.list(ClearanceFilters(status="Expired"))[1] == 1

    def test_list_issuers(self, populated):
        issuers = populated.list_issuers()
        assert {i["issued_by_user_id"] for i in issuers} == {"clerk-1", "clerk-2"}


class TestStatsAndExpiry:
    def test_stats(self, session):
        repo = ClearanceRepository(session)
        _insert(repo, 1, date_issued=date(2025, 3, 1))
        _insert(repo, 2, date_issued=date(2025, 2, 28), format_type="D", has_criminal_record=True)
        _insert(repo, 3, date_issued=date(2025, 3, 14))

        stats = repo.stats(date(2025, 3, 15))
        assert stats == {"total": 3, "this_month": 2, "no_criminal_record": 2, "has_criminal_record": 1}

    def test_stats_december(self, session):
        repo = ClearanceRepository(session)
        _insert(repo, 1, date_issued=date(2025, 12, 31))
        assert repo.stats(date(2025, 12, 31))["this_month"] == 1

    def test_expire_lapsed(self, session):
        repo = ClearanceRepository(session)
        lapsed = _insert(repo, 1, validity_expiry=date(2025, 3, 14))
        current = _insert(repo, 2, validity_expiry=date(2025, 3, 15))

        assert repo.expire_lapsed(date(2025, 3, 15)) == 1
        session.expire_all()
        assert repo.find_by_id(lapsed.id).status == "Expired"
        assert repo.find_by_id(current.id).status == "Valid"
        assert repo.expire_lapsed(date(2025, 3, 15)) == 0


# ============================================
# AUDIT REPOSITORY
# ============================================

class TestAuditRepository:
    def test_log_and_search(self, session):
        audit = AuditRepository(session)
        audit.log(AuditAction.CREATE, "clearance", "1", actor_id="clerk-1",
                  new_value={"or_number": "OCP-2025-000001"})
        audit.log(AuditAction.DELETE, "clearance", "1", actor_name="Admin",
                  old_value={"or_number": "OCP-2025-000001"})
        audit.log(AuditAction.DOWNLOAD, "clearance", "2")

        logs, total = audit.search(resource_type="clearance")
        assert total == 3

        deletes, total = audit.search(action=AuditAction.DELETE)
        assert total == 1
        assert deletes[0].old_value == {"or_number": "OCP-2025-000001"}
        assert deletes[0].actor_name == "Admin"

        _, total = audit.search(resource_id="1")
        assert total == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
