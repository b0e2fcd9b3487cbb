# Portaria Access - Database Models
# Import all models here for SQLAlchemy discovery

from app.models.access_event import AccessEvent                     # noqa
from app.models.visitor import Visitor                               # noqa
from app.models.vehicle_movement import VehicleMovementStatus        # noqa
