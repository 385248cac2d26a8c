"""
Middleware
----------
"""
from decimal import Decimal
from enum import Enum
from http import HTTPStatus

from aiohttp import web
from aiohttp.abc import Request
from aiohttp.web_middlewares import middleware

from powerbank import logger
from powerbank.serializer import JSendStatus, JSendSchema
from powerbank.service.exceptions import RentalError, NotFoundError, ConflictError, InsufficientBalanceError, \
    LockTimeoutError, PersistenceError

response_schema = JSendSchema()

ERROR_STATUSES = [
    (NotFoundError, HTTPStatus.NOT_FOUND),
    (ConflictError, HTTPStatus.CONFLICT),
    (InsufficientBalanceError, HTTPStatus.PAYMENT_REQUIRED),
    (LockTimeoutError, HTTPStatus.SERVICE_UNAVAILABLE),
]
"""Maps the failures a user can cause or retry to their status codes."""

RETRY_AFTER_SECONDS = 1


def _jsonable(value):
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple):
        return str(value)
    return value


@middleware
async def rental_error_middleware(request: Request, handler):
    """
    Converts any :class:`~powerbank.service.exceptions.RentalError`
    that escapes a view into a JSend response.

    Errors the user can do something about are returned as failures,
    while persistence errors are logged and returned as errors.
    """

    try:
        return await handler(request)
    except PersistenceError as error:
        logger.exception("Persistence error handling %s %s", request.method, request.rel_url)
        return web.json_response(response_schema.dump({
            "status": JSendStatus.ERROR,
            "message": "There was a problem with the database, please try again later.",
            "code": HTTPStatus.INTERNAL_SERVER_ERROR,
            "data": {"errors": [str(arg) for arg in error.args]}
        }), status=HTTPStatus.INTERNAL_SERVER_ERROR)
    except RentalError as error:
        status = next(
            (status for error_type, status in ERROR_STATUSES if isinstance(error, error_type)),
            HTTPStatus.BAD_REQUEST
        )
        headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if error.retryable else None
        return web.json_response(response_schema.dump({
            "status": JSendStatus.FAIL,
            "data": {
                "message": error.message,
                **{key: _jsonable(value) for key, value in error.details.items()}
            }
        }), status=status, headers=headers)
