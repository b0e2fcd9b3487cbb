# app/models/vehicle_movement.py
"""
Vehicle movement status table: the live status row of one vehicle.
Created when a checklist is first submitted for the vehicle, then overwritten
in place by checklist approval, exit and return. Never deleted.

`version` is SQLAlchemy's optimistic-concurrency column: every UPDATE is issued
as `... WHERE vehicle_id = :id AND version = :seen`, so two gate stations
racing on the same vehicle cannot both commit.
"""

from sqlalchemy import Column, Integer, String, DateTime
from app.database import Base


class VehicleMovementStatus(Base):
    __tablename__ = "vehicle_movement_status"

    vehicle_id = Column(String(100), primary_key=True)
    driver_id = Column(String(100))
    checklist_id = Column(String(100))
    checklist_status = Column(String(20), default="none", nullable=False, index=True)  # none | pending | approved
    checklist_date = Column(DateTime)
    checklist_verified_by = Column(String(100))
    status = Column(String(20), default="available", nullable=False, index=True)       # available | in_transit
    destination = Column(String(200))
    origin_base = Column(String(200))
    exit_time = Column(DateTime)
    return_time = Column(DateTime)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return (f"<VehicleMovementStatus {self.vehicle_id} status={self.status} "
                f"checklist={self.checklist_status} v{self.version}>")
