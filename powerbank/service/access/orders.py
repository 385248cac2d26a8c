"""
Orders
------

The ledger. Orders are opened by a rental and closed exactly once
when the device is returned, after which they never change.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Union

from tortoise.backends.base.client import BaseDBAsyncClient

from powerbank.models import Order, User, Device
from powerbank.service.exceptions import NotFoundError, ConflictError


def _resolve_id(target: Union[User, Device, int]) -> int:
    if isinstance(target, (User, Device)):
        return target.id
    elif isinstance(target, int):
        return target
    else:
        raise TypeError(f"Target {target} is neither a Model or an int.")


async def create_open_order(user_id: int, device_id: int, brand: str, start_time: datetime, deposit: Decimal, *,
                            connection: BaseDBAsyncClient = None) -> Order:
    """Opens a new order for the given user and device."""
    return await Order.create(
        user_id=user_id, device_id=device_id, brand=brand,
        rental_start_time=start_time, deposit=deposit,
        using_db=connection
    )


async def close_order(order_id: int, hours: int, cost: Decimal, order_code: str, return_time: datetime, *,
                      connection: BaseDBAsyncClient = None):
    """
    Closes an open order.

    :raises NotFoundError: If there is no such order.
    :raises ConflictError: If the order was already closed.
    """
    updated = await Order.filter(id=order_id, return_time__isnull=True).using_db(connection).update(
        rental_duration_hours=hours, total_cost=cost, order_code=order_code, return_time=return_time
    )

    if not updated:
        if await Order.filter(id=order_id).using_db(connection).exists():
            raise ConflictError(f"Order {order_id} has already been closed.", order_id=order_id)
        raise NotFoundError(f"Order {order_id} does not exist.", order_id=order_id)


async def get_order(order_id: int, *, for_update=False, connection: BaseDBAsyncClient = None) -> Optional[Order]:
    query = Order.filter(id=order_id)
    if for_update:
        query = query.select_for_update()
    return await query.using_db(connection).first()


async def get_order_by_code(order_code: str) -> Optional[Order]:
    return await Order.filter(order_code=order_code).first()


async def find_open_by_device(device: Union[Device, int], *, exclude: int = None,
                              connection: BaseDBAsyncClient = None) -> Optional[Order]:
    """
    Gets the open order for a device, if it is being rented.

    :param exclude: The id of an order to ignore.
    """
    query = Order.filter(device_id=_resolve_id(device), return_time__isnull=True, rental_duration_hours=0)
    if exclude is not None:
        query = query.exclude(id=exclude)
    return await query.using_db(connection).order_by("-rental_start_time").first()


async def get_orders(*, user: Union[User, int] = None, device: Union[Device, int] = None) -> List[Order]:
    """
    Gets the orders, most recent first.

    :param user: Only get orders for this user.
    :param device: Only get orders for this device.
    """
    query = Order.all()

    if user is not None:
        query = query.filter(user_id=_resolve_id(user))

    if device is not None:
        query = query.filter(device_id=_resolve_id(device))

    return await query.order_by("-rental_start_time", "-id")


async def get_open_orders(*, user: Union[User, int] = None) -> List[Order]:
    """Gets the orders that have not been returned yet, most recent first."""
    query = Order.filter(return_time__isnull=True, rental_duration_hours=0)

    if user is not None:
        query = query.filter(user_id=_resolve_id(user))

    return await query.order_by("-rental_start_time", "-id")


async def search_orders(user: Union[User, int], keyword: str) -> List[Order]:
    """
    Searches a user's orders for the keyword, matching on
    the order code, brand, device id, or total cost.
    """
    keyword = keyword.lower()
    return [
        order for order in await get_orders(user=user)
        if any(keyword in field.lower() for field in (
            order.order_code or "", order.brand, str(order.device_id), str(order.total_cost)
        ))
    ]
