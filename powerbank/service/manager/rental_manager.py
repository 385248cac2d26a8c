"""
Rental Manager
--------------

This module is what handles all the rentals in the system.

Responsibilities
================

This object handles everything needed for device rentals.

- creating a rental, taking a deposit from non-members
- returning a rental, charging the discounted cost to the renter
  and paying it into the treasury
- getting active rentals
- estimating rental price

Every rental operation locks the rows it touches through the
:class:`~powerbank.service.locks.LockManager` (users first, then
the device) and then does all its reads and writes in a single
database transaction, so either everything is committed or nothing is.
"""

from decimal import Decimal
from typing import Optional, List

from tortoise.transactions import in_transaction

from powerbank import logger
from powerbank.models import Order, User, Membership, DeviceStatus
from powerbank.pricing import deposit, actual_cost, return_balance, sufficient_funds, rental_hours, \
    metered_cost, to_money, Amount
from powerbank.service.access.devices import get_device, update_status
from powerbank.service.access.orders import get_order, create_open_order, close_order, find_open_by_device, \
    get_open_orders
from powerbank.service.access.users import get_user, get_treasury_account, adjust_balance
from powerbank.service.clock import Clock, SystemClock
from powerbank.service.exceptions import NotFoundError, ConflictError, InsufficientBalanceError, persistence_errors
from powerbank.service.locks import LockManager, UserKey, DeviceKey
from powerbank.service.order_codes import OrderCodeGenerator


def required_deposit(user: User) -> Decimal:
    """
    Gets the deposit the user must leave to rent a device.

    :raises ConflictError: If the user is the treasury, which does not rent devices.
    """
    if user.membership is Membership.ADMIN:
        raise ConflictError("The treasury account cannot rent devices.", user_id=user.id)
    return deposit(user.membership)


class RentalManager:
    """
    Handles the lifecycle of the rental in the system.
    """

    def __init__(self, locks: LockManager, clock: Clock = None, order_codes: OrderCodeGenerator = None):
        self._locks = locks
        self._clock = clock if clock is not None else SystemClock()
        self._order_codes = order_codes if order_codes is not None else OrderCodeGenerator(self._clock)

    async def create_rental(self, user_id: int, device_id: int, brand: str = None) -> Order:
        """
        Creates a new rental for a user.

        :param brand: The brand to record on the order, defaulting to the device's brand.
        :raises NotFoundError: If the user or device does not exist.
        :raises InsufficientBalanceError: If the user cannot afford the deposit.
        :raises ConflictError: If the device is not available.
        :raises LockTimeoutError: If the user or device is busy.
        """
        logger.info("Creating rental for user %s on device %s", user_id, device_id)

        async with self._locks.acquire(UserKey(user_id), DeviceKey(device_id)):
            with persistence_errors():
                async with in_transaction() as connection:
                    user = await get_user(user_id, for_update=True, connection=connection)
                    if user is None:
                        raise NotFoundError(f"User {user_id} does not exist.", user_id=user_id)

                    required = required_deposit(user)
                    if not sufficient_funds(user.balance, required):
                        logger.warning("User %s cannot afford the deposit of %s", user_id, required)
                        raise InsufficientBalanceError(
                            f"A balance of {required} is needed to rent a device.", user.balance, required
                        )

                    device = await get_device(device_id, for_update=True, connection=connection)
                    if device is None:
                        raise NotFoundError(f"Device {device_id} does not exist.", device_id=device_id)
                    if device.status is not DeviceStatus.AVAILABLE:
                        logger.warning("Device %s is %s and cannot be rented", device_id, device.status.value)
                        raise ConflictError(
                            f"Device {device_id} is not available.", device_id=device_id, status=device.status
                        )

                    # a device drained and recharged during a rental is available but still out
                    outstanding = await find_open_by_device(device.id, connection=connection)
                    if outstanding is not None:
                        logger.warning("Device %s is still out on order %s", device_id, outstanding.id)
                        raise ConflictError(
                            f"Device {device_id} has not been returned yet.",
                            device_id=device_id, order_id=outstanding.id
                        )

                    if not user.membership.is_vip:
                        balance = await adjust_balance(user.id, -required, connection=connection)
                        logger.debug("Took deposit of %s from user %s, balance now %s", required, user.id, balance)

                    order = await create_open_order(
                        user.id, device.id, brand if brand is not None else device.brand, self._clock.now(),
                        required, connection=connection
                    )
                    await update_status(
                        device.id, DeviceStatus.IN_USE, expected=DeviceStatus.AVAILABLE, connection=connection
                    )

        logger.info("Created order %s for user %s on device %s", order.id, user_id, device_id)
        return order

    async def return_rental(self, order_id: int, device_id: int, hours: int, total_cost: Amount,
                            order_code: str) -> Order:
        """
        Completes a rental.

        The renter gets their deposit back and is charged the metered cost
        after their membership discount, which is paid into the treasury.
        The discounted cost is what is stored on the order.

        :param hours: The number of hours the device was rented for.
        :param total_cost: The undiscounted cost of the rental.
        :param order_code: The code to close the order with.
        :raises NotFoundError: If the order, its user, or the treasury does not exist.
        :raises ConflictError: If the order is already closed, or is not for the given device.
        :raises LockTimeoutError: If the user or device is busy.
        """
        if hours < 0:
            raise ValueError("A rental cannot last negative hours.")
        total_cost = to_money(total_cost)
        if total_cost < 0:
            raise ValueError("A rental cannot have a negative cost.")

        logger.info("Returning order %s on device %s after %s hours", order_id, device_id, hours)

        with persistence_errors():
            order = await get_order(order_id)
            treasury = await get_treasury_account()
        if order is None:
            raise NotFoundError(f"Order {order_id} does not exist.", order_id=order_id)
        if treasury is None:
            raise NotFoundError("There is no treasury account to pay into.")

        async with self._locks.acquire(UserKey(order.user_id), UserKey(treasury.id), DeviceKey(device_id)):
            with persistence_errors():
                async with in_transaction() as connection:
                    order = await get_order(order_id, for_update=True, connection=connection)
                    if order is None:
                        raise NotFoundError(f"Order {order_id} does not exist.", order_id=order_id)
                    if not order.is_open:
                        raise ConflictError(f"Order {order_id} has already been returned.", order_id=order_id)
                    if order.device_id != device_id:
                        raise ConflictError(
                            f"Order {order_id} is not for device {device_id}.", order_id=order_id, device_id=device_id
                        )

                    user = await get_user(order.user_id, for_update=True, connection=connection)
                    if user is None:
                        raise NotFoundError(f"User {order.user_id} does not exist.", user_id=order.user_id)

                    cost = to_money(actual_cost(total_cost, user.membership))
                    new_balance = to_money(return_balance(user.balance, order.deposit, cost))
                    logger.debug(
                        "User %s balance %s, deposit %s, cost %s discounted to %s, new balance %s",
                        user.id, user.balance, order.deposit, total_cost, cost, new_balance
                    )
                    await adjust_balance(user.id, new_balance - user.balance, connection=connection)
                    await adjust_balance(treasury.id, cost, connection=connection)

                    return_time = self._clock.now()
                    await close_order(order.id, hours, cost, order_code, return_time, connection=connection)
                    await self._release_device(device_id, order.id, connection)

        order.rental_duration_hours = hours
        order.total_cost = cost
        order.order_code = order_code
        order.return_time = return_time

        logger.info("Returned order %s, charged %s", order.id, cost)
        return order

    async def _release_device(self, device_id: int, order_id: int, connection):
        """
        Makes a returned device available, unless it is out on another order.

        A device drained during its rental may already have been charged
        back to available by the time it is returned.
        """
        other = await find_open_by_device(device_id, exclude=order_id, connection=connection)
        if other is not None:
            logger.warning("Device %s is still out on order %s, leaving it as it is", device_id, other.id)
            return

        device = await get_device(device_id, for_update=True, connection=connection)
        if device is None:
            raise NotFoundError(f"Device {device_id} does not exist.", device_id=device_id)
        if device.status is not DeviceStatus.AVAILABLE:
            await update_status(device_id, DeviceStatus.AVAILABLE, expected=device.status, connection=connection)

    async def finish(self, order_id: int) -> Order:
        """
        Returns a rental as of now, metering the hours since it started
        against the device's hourly price and generating the order code.

        :raises NotFoundError: If the order or its device does not exist.
        """
        with persistence_errors():
            order = await get_order(order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} does not exist.", order_id=order_id)
            device = await get_device(order.device_id)
            if device is None:
                raise NotFoundError(f"Device {order.device_id} does not exist.", device_id=order.device_id)

        hours = rental_hours(order.rental_start_time, self._clock.now())
        total_cost = metered_cost(hours, device.price_per_hour)
        return await self.return_rental(order.id, device.id, hours, total_cost, self._order_codes(order.user_id))

    async def get_price_estimate(self, order: Order) -> Decimal:
        """Gets the discounted price of the rental so far."""
        device = await get_device(order.device_id)
        user = await get_user(order.user_id)
        hours = rental_hours(order.rental_start_time, self._clock.now())
        return to_money(actual_cost(metered_cost(hours, device.price_per_hour), user.membership))

    async def active_rentals(self) -> List[Order]:
        """Gets all the active rentals."""
        return await get_open_orders()

    async def current_rentals(self, user: int) -> List[Order]:
        """Gets the active rentals for a given user."""
        return await get_open_orders(user=user)

    async def active_rental_for_device(self, device_id: int) -> Optional[Order]:
        """Gets the active rental for a device, if it is rented."""
        return await find_open_by_device(device_id)
