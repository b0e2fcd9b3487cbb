# tests/test_visitor_registrar.py
"""Visitor registration: CPF idempotency, lookups, visit counters."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import MagicMock
from sqlalchemy.exc import IntegrityError
from app.models.visitor import Visitor
from app.services import access_log, visitor_registrar
from app.services.exceptions import InvalidCpf, VisitorNotFound


class TestRegistration:
    def test_new_visitor_starts_active_with_no_visits(self, db):
        visitor = visitor_registrar.register_or_update(db, "  Pedro Alves ", "111.222.333-44")

        assert visitor.id is not None
        assert visitor.name == "Pedro Alves"
        assert visitor.cpf == "11122233344"
        assert visitor.total_visits == 0
        assert visitor.last_visit is None
        assert visitor.is_active is True

    def test_same_cpf_returns_existing_row_unchanged(self, db):
        first = visitor_registrar.register_or_update(db, "Pedro Alves", "111.222.333-44")
        again = visitor_registrar.register_or_update(db, "P. Alves", "11122233344", photo="data:image/png;base64,xx")

        assert again.id == first.id
        assert again.name == "Pedro Alves"
        assert again.photo is None
        assert db.query(Visitor).count() == 1

    @pytest.mark.parametrize("cpf", ["123", "111.222.333-4", "", "abc.def.ghi-jk"])
    def test_malformed_cpf_rejected(self, db, cpf):
        with pytest.raises(InvalidCpf):
            visitor_registrar.register_or_update(db, "Someone", cpf)
        assert db.query(Visitor).count() == 0

    def test_concurrent_insert_returns_winning_row(self):
        winner = Visitor(id=5, name="Pedro Alves", cpf="11122233344", total_visits=0, is_active=True)
        db = MagicMock()
        db.query.return_value.filter.return_value.first.side_effect = [None, winner]
        db.commit.side_effect = IntegrityError("INSERT INTO visitors", {}, Exception("UNIQUE constraint failed"))

        result = visitor_registrar.register_or_update(db, "Pedro Alves", "111.222.333-44")

        assert result is winner
        db.rollback.assert_called_once()


class TestLookup:
    def test_find_by_cpf_accepts_any_punctuation(self, db):
        created = visitor_registrar.register_or_update(db, "Pedro Alves", "11122233344")
        assert visitor_registrar.find_by_cpf(db, "111.222.333-44").id == created.id

    def test_unknown_cpf_not_found(self, db):
        with pytest.raises(VisitorNotFound):
            visitor_registrar.find_by_cpf(db, "999.888.777-66")

    def test_unknown_id_not_found(self, db):
        with pytest.raises(VisitorNotFound):
            visitor_registrar.get_visitor(db, 12345)

    def test_list_filters_by_name_and_cpf(self, db):
        visitor_registrar.register_or_update(db, "Pedro Alves", "11122233344")
        visitor_registrar.register_or_update(db, "Lucia Ramos", "55566677788")

        assert [v.name for v in visitor_registrar.list_visitors(db, search="lucia")] == ["Lucia Ramos"]
        assert [v.name for v in visitor_registrar.list_visitors(db, search="111.222")] == ["Pedro Alves"]
        assert len(visitor_registrar.list_visitors(db)) == 2

    def test_update_changes_name_and_photo_only(self, db):
        visitor = visitor_registrar.register_or_update(db, "Pedro Alves", "11122233344")
        updated = visitor_registrar.update_visitor(db, visitor.id, name="Pedro A. Alves", photo="img")

        assert updated.name == "Pedro A. Alves"
        assert updated.photo == "img"
        assert updated.cpf == "11122233344"


class TestRepeatVisitor:
    def test_second_visit_reuses_record_and_counts(self, db):
        visitor = visitor_registrar.register_or_update(db, "Pedro Alves", "111.222.333-44")
        access_log.record_visitor_access(db, visitor.id, "entry")
        first_visit = visitor_registrar.get_visitor(db, visitor.id).last_visit
        access_log.record_visitor_access(db, visitor.id, "exit")

        again = visitor_registrar.register_or_update(db, "Pedro Alves", "11122233344")
        access_log.record_visitor_access(db, again.id, "entry")

        stored = visitor_registrar.get_visitor(db, visitor.id)
        assert again.id == visitor.id
        assert db.query(Visitor).count() == 1
        assert stored.total_visits == 2
        assert stored.last_visit >= first_visit

    def test_exit_does_not_count_as_visit(self, db):
        visitor = visitor_registrar.register_or_update(db, "Pedro Alves", "11122233344")
        access_log.record_visitor_access(db, visitor.id, "exit")
        assert visitor_registrar.get_visitor(db, visitor.id).total_visits == 0
