"""
Exceptions
----------

The errors raised by the service layer. Every operation either
completes in full or raises one of these, leaving the stores as
they were before the call.
"""

from contextlib import contextmanager

from tortoise.exceptions import BaseORMException


class RentalError(Exception):
    """The base class for all service errors."""

    retryable = False
    """Whether the caller may safely try the same operation again."""

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(RentalError):
    """Raised when a user, device, or order does not exist."""


class ConflictError(RentalError):
    """Raised when an entity is not in the state the operation requires."""


class InsufficientBalanceError(RentalError):
    """Raised when a user cannot afford the deposit or purchase."""

    def __init__(self, message, balance, required):
        super().__init__(message, balance=balance, required=required)
        self.balance = balance
        self.required = required


class LockTimeoutError(RentalError):
    """Raised when exclusive access to a row could not be acquired in time."""

    retryable = True


class PersistenceError(RentalError):
    """Wraps errors raised by the underlying storage."""


@contextmanager
def persistence_errors():
    """Re-raises any storage error as a :class:`PersistenceError`."""
    try:
        yield
    except BaseORMException as error:
        raise PersistenceError(f"The storage layer failed: {error}") from error
