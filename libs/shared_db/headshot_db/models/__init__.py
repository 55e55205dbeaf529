# headshot_db/models/__init__.py
"""Import all models so create_all() sees every table."""

from headshot_db.models.headshot import Headshot
from headshot_db.models.payments import Purchase, PurchaseStatus
from headshot_db.models.reservation import CreditReservation, ReservationStatus
from headshot_db.models.user import User

__all__ = [
    "CreditReservation",
    "Headshot",
    "Purchase",
    "PurchaseStatus",
    "ReservationStatus",
    "User",
]
