"""
.. autoclasstree:: powerbank.service

The service layer for the system. Acts as the internal API.
Each interface (REST API, admin scripts) should use the
service layer to implement their logic.

The service layer implements the use cases for the system, such
that they may be reused by any program that needs to access it.
It is designed to represent the business logic.
"""

from .exceptions import RentalError, NotFoundError, ConflictError, InsufficientBalanceError, LockTimeoutError, \
    PersistenceError
from .locks import LockManager, UserKey, DeviceKey
from .manager.membership_manager import MembershipManager
from .manager.rental_manager import RentalManager
