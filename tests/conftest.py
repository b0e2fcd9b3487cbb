"""Shared fixtures: in-memory SQLite session and a fake Identity Directory."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before app.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DIRECTORY_URL", "http://directory.test/api")
os.environ.setdefault("DIRECTION_POLICY", "warn")
os.environ.setdefault("SITE_UTC_OFFSET_HOURS", "0")

import pytest
from datetime import datetime
from app.database import Base, SessionLocal, create_tables, engine
from app.models.access_event import AccessEvent
from app.services.directory_client import DirectoryEmployee, DirectoryVehicle, DirectoryDriver
from app.services.exceptions import DirectoryUnavailable
from app.utils.cpf import looks_like_cpf, normalize_cpf


class FakeDirectory:
    """In-memory stand-in for IdentityDirectory with the same async interface."""

    def __init__(self):
        self.employees = {}
        self.vehicles = {}
        self.drivers = {}
        self.available = True
        self.calls = []

    def _check(self, call):
        self.calls.append(call)
        if not self.available:
            raise DirectoryUnavailable("directory down (test)")

    async def lookup_employee(self, id_or_cpf):
        self._check(("employee", id_or_cpf))
        key = id_or_cpf.strip()
        if looks_like_cpf(key):
            return next((e for e in self.employees.values() if e.cpf == normalize_cpf(key)), None)
        return self.employees.get(key)

    async def lookup_vehicle(self, id_or_plate):
        self._check(("vehicle", id_or_plate))
        key = id_or_plate.strip()
        return self.vehicles.get(key) or next(
            (v for v in self.vehicles.values() if v.plate == key.upper()), None)

    async def lookup_driver(self, driver_id):
        self._check(("driver", driver_id))
        return self.drivers.get(driver_id.strip())


@pytest.fixture
def directory():
    d = FakeDirectory()
    d.employees["42"] = DirectoryEmployee(id="42", name="Maria Silva", cpf="12345678901")
    d.employees["7"] = DirectoryEmployee(id="7", name="Carlos Souza", cpf="98765432100")
    d.vehicles["V1"] = DirectoryVehicle(id="V1", plate="ABC-1234", name="Scania R450")
    d.vehicles["V2"] = DirectoryVehicle(id="V2", plate="XYZ1A23", name="Volvo FH")
    d.drivers["D1"] = DirectoryDriver(id="D1", name="João Pereira", status="available")
    d.drivers["D2"] = DirectoryDriver(id="D2", name="Ana Lima", status="available")
    return d


@pytest.fixture
def db():
    create_tables()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def add_event(db):
    """Insert a historical event with an explicit timestamp (bypasses the clock)."""
    def _add(person_type, person_id, direction, ts: datetime, name=None):
        event = AccessEvent(person_type=person_type, person_id=str(person_id), person_name=name,
                            direction=direction, access_method="manual", location="Gate 1",
                            timestamp=ts)
        db.add(event)
        db.commit()
        return event
    return _add
