# tests/test_access_log.py
"""Access event log: append semantics, direction policy, atomic visitor entries, queries."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import date, datetime, timedelta
from unittest.mock import patch
from sqlalchemy.exc import OperationalError
from app.config import settings
from app.models.access_event import AccessEvent
from app.services import access_log, visitor_registrar
from app.services.access_log import AccessEventDraft, AccessLogFilter
from app.services.event_clock import EventClock, TICK
from app.services import event_clock as event_clock_module
from app.services.exceptions import (
    CredentialNotFound, DirectionRejected, DirectoryUnavailable, EmployeeNotFound,
    StorageUnavailable, VisitorInactive,
)


def draft(person_id="42", direction="entry", **kw):
    return AccessEventDraft(person_type="employee", person_id=person_id, direction=direction, **kw)


@pytest.fixture
def policy(monkeypatch):
    def _set(value):
        monkeypatch.setattr(settings, "DIRECTION_POLICY", value)
    return _set


class TestAppend:
    def test_assigns_id_and_server_timestamp(self, db):
        before = datetime.utcnow()
        event = access_log.append(db, draft(person_name="Maria Silva"))

        assert event.id is not None
        assert event.timestamp >= before
        assert event.location == settings.SITE_LOCATION
        assert event.access_method == "manual"

    def test_timestamps_strictly_increase(self, db):
        events = [access_log.append(db, draft(direction=d)) for d in ("entry", "exit", "entry", "exit")]
        stamps = [e.timestamp for e in events]
        assert stamps == sorted(stamps)
        assert len(set(stamps)) == len(stamps)

    def test_earlier_events_are_never_modified(self, db):
        first = access_log.append(db, draft(notes="first"))
        snapshot = (first.id, first.timestamp, first.direction, first.notes)
        access_log.append(db, draft(direction="exit", notes="second"))

        db.expire_all()
        stored = db.get(AccessEvent, snapshot[0])
        assert (stored.id, stored.timestamp, stored.direction, stored.notes) == snapshot

    def test_storage_failure_writes_nothing(self, db, monkeypatch):
        def broken_commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(db, "commit", broken_commit)
        with pytest.raises(StorageUnavailable):
            access_log.append(db, draft())
        monkeypatch.undo()

        assert db.query(AccessEvent).count() == 0


class TestEventClock:
    def test_clock_going_backwards_still_increases(self, db, monkeypatch):
        fixed = datetime(2026, 5, 1, 12, 0, 0)

        class FrozenDatetime(datetime):
            @classmethod
            def utcnow(cls):
                return fixed

        monkeypatch.setattr(event_clock_module, "datetime", FrozenDatetime)
        clock = EventClock()
        stamps = [clock.next_timestamp(db) for _ in range(3)]

        assert stamps == [fixed, fixed + TICK, fixed + 2 * TICK]

    def test_never_behind_newest_stored_event(self, db, add_event):
        future = datetime.utcnow() + timedelta(hours=1)
        add_event("employee", "42", "entry", future)

        assert EventClock().next_timestamp(db) > future


class TestEmployeeAccess:
    @pytest.mark.asyncio
    async def test_event_snapshots_directory_identity(self, db, directory):
        event = await access_log.record_employee_access(db, directory, "42", "entry", verified_by="guard-1")

        assert event.person_type == "employee"
        assert event.person_name == "Maria Silva"
        assert event.person_cpf == "12345678901"
        assert event.verified_by == "guard-1"

    @pytest.mark.asyncio
    async def test_unknown_employee_writes_nothing(self, db, directory):
        with pytest.raises(EmployeeNotFound):
            await access_log.record_employee_access(db, directory, "999", "entry")
        assert db.query(AccessEvent).count() == 0

    @pytest.mark.asyncio
    async def test_directory_outage_writes_nothing(self, db, directory):
        directory.available = False
        with pytest.raises(DirectoryUnavailable):
            await access_log.record_employee_access(db, directory, "42", "entry")
        assert db.query(AccessEvent).count() == 0


class TestDirectionPolicy:
    @pytest.mark.asyncio
    async def test_reject_blocks_repeated_entry(self, db, directory, policy):
        policy("reject")
        await access_log.record_employee_access(db, directory, "42", "entry")
        with pytest.raises(DirectionRejected):
            await access_log.record_employee_access(db, directory, "42", "entry")
        assert db.query(AccessEvent).count() == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", ["warn", "allow"])
    async def test_warn_and_allow_record_repeated_entry(self, db, directory, policy, value):
        policy(value)
        await access_log.record_employee_access(db, directory, "42", "entry")
        await access_log.record_employee_access(db, directory, "42", "entry")
        assert db.query(AccessEvent).count() == 2

    @pytest.mark.asyncio
    async def test_alternating_directions_always_accepted(self, db, directory, policy):
        policy("reject")
        for direction in ("entry", "exit", "entry", "exit"):
            await access_log.record_employee_access(db, directory, "42", direction)
        assert db.query(AccessEvent).count() == 4


class TestCredentialAccess:
    @pytest.mark.asyncio
    async def test_direction_inferred_from_todays_log(self, db, directory, policy):
        policy("reject")
        first = await access_log.record_credential_access(db, directory, "FELKA_EMP_42")
        second = await access_log.record_credential_access(db, directory, "FELKA_EMP_42")
        third = await access_log.record_credential_access(db, directory, "FELKA_EMP_42")

        assert [first.direction, second.direction, third.direction] == ["entry", "exit", "entry"]
        assert first.access_method == "qr_code"

    @pytest.mark.asyncio
    async def test_unknown_credential_writes_nothing(self, db, directory):
        with pytest.raises(CredentialNotFound):
            await access_log.record_credential_access(db, directory, "FELKA_EMP_999", "entry")
        assert db.query(AccessEvent).count() == 0


class TestVisitorAccess:
    def test_entry_increments_visits_in_same_transaction(self, db):
        visitor = visitor_registrar.register_or_update(db, "Pedro Alves", "11122233344")
        event = access_log.record_visitor_access(db, visitor.id, "entry")

        assert event.person_type == "visitor"
        assert event.person_id == str(visitor.id)
        assert event.person_cpf == "11122233344"
        assert visitor_registrar.get_visitor(db, visitor.id).total_visits == 1

    def test_failed_counter_update_rolls_back_event(self, db):
        visitor = visitor_registrar.register_or_update(db, "Pedro Alves", "11122233344")

        with patch("app.services.access_log.visitor_registrar.record_visit", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                access_log.record_visitor_access(db, visitor.id, "entry")

        assert db.query(AccessEvent).count() == 0
        assert visitor_registrar.get_visitor(db, visitor.id).total_visits == 0

    def test_inactive_visitor_cannot_enter_but_can_leave(self, db):
        visitor = visitor_registrar.register_or_update(db, "Pedro Alves", "11122233344")
        visitor.is_active = False
        db.commit()

        with pytest.raises(VisitorInactive):
            access_log.record_visitor_access(db, visitor.id, "entry")
        event = access_log.record_visitor_access(db, visitor.id, "exit")

        assert event.direction == "exit"
        assert db.query(AccessEvent).count() == 1


class TestQuery:
    @pytest.fixture
    def history(self, db, add_event):
        base = datetime(2026, 3, 10, 8, 0)
        add_event("employee", "42", "entry", base, name="Maria Silva")
        add_event("visitor", "1", "entry", base + timedelta(minutes=5), name="Pedro Alves")
        add_event("employee", "42", "exit", base + timedelta(hours=9), name="Maria Silva")
        add_event("vehicle", "V1", "exit", base + timedelta(days=1), name="ABC-1234 - Scania R450")
        return base

    def test_newest_first(self, db, history):
        events = access_log.query(db, AccessLogFilter())
        stamps = [e.timestamp for e in events]
        assert stamps == sorted(stamps, reverse=True)

    def test_filter_by_type_and_direction(self, db, history):
        events = access_log.query(db, AccessLogFilter(person_type="employee", direction="exit"))
        assert [(e.person_id, e.direction) for e in events] == [("42", "exit")]

    def test_filter_by_date_window(self, db, history):
        events = access_log.query(db, AccessLogFilter(date_from=history, date_to=history + timedelta(days=1)))
        assert len(events) == 3
        assert all(e.person_type != "vehicle" for e in events)

    def test_text_search_matches_name(self, db, history):
        events = access_log.query(db, AccessLogFilter(text_search="pedro"))
        assert [e.person_name for e in events] == ["Pedro Alves"]

    def test_limit_and_offset(self, db, history):
        page = access_log.query(db, AccessLogFilter(limit=2, offset=1))
        assert len(page) == 2
        assert page[0].person_type == "employee" and page[0].direction == "exit"

    def test_daily_stats(self, db, history):
        stats = access_log.daily_stats(db, date(2026, 3, 10))

        assert stats["total_events"] == 3
        assert stats["entries"] == 2
        assert stats["exits"] == 1
        assert stats["by_person_type"]["employee"] == {"entries": 1, "exits": 1}
        assert stats["by_access_method"]["manual"] == 3
        assert stats["qr_code_percent"] == 0.0


class TestDirectionCheckStorage:
    @pytest.mark.asyncio
    async def test_storage_failure_during_check_is_unavailable(self, db, directory, policy):
        policy("reject")
        lost = OperationalError("SELECT", {}, Exception("server closed the connection"))

        with patch("app.services.access_log.latest_event", side_effect=lost):
            with pytest.raises(StorageUnavailable):
                await access_log.record_employee_access(db, directory, "42", "entry")

        assert db.query(AccessEvent).count() == 0

    def test_visitor_check_runs_in_write_transaction(self, db, policy):
        policy("reject")
        visitor = visitor_registrar.register_or_update(db, "Pedro Alves", "11122233344")
        lost = OperationalError("SELECT", {}, Exception("server closed the connection"))

        with patch("app.services.access_log.latest_event", side_effect=lost):
            with pytest.raises(StorageUnavailable):
                access_log.record_visitor_access(db, visitor.id, "entry")

        assert visitor_registrar.get_visitor(db, visitor.id).total_visits == 0
