# headshot_db/crud/__init__.py

from .headshot import HeadshotDAO
from .payments import PurchaseDAO
from .reservation import CreditReservationDAO
from .user import UserDAO

__all__ = ["CreditReservationDAO", "HeadshotDAO", "PurchaseDAO", "UserDAO"]
