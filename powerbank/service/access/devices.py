"""
Devices
-------

Handles the CRUD for a device, along with the compare-and-set
status updates the rental and battery services are built on.

None of these functions take locks. Callers mutating a device
that other operations may touch must hold its
:class:`~powerbank.service.locks.DeviceKey` lock, as the
:class:`~powerbank.service.manager.device_manager.DeviceManager` does.
"""
from decimal import Decimal
from typing import Optional, List, Union

from tortoise.backends.base.client import BaseDBAsyncClient

from powerbank.models import Device, DeviceStatus, Order
from powerbank.pricing import to_money
from powerbank.service.exceptions import NotFoundError, ConflictError

MIN_BATTERY = 0
MAX_BATTERY = 100
RECHARGE_THRESHOLD = 30
"""The battery level at which a charging device may be rented again."""


def clean_battery_level(level: int) -> int:
    """
    :raises ValueError: If the level is outside of 0 to 100.
    """
    if not isinstance(level, int) or isinstance(level, bool):
        raise ValueError(f"Battery level {level!r} must be an integer.")
    if not MIN_BATTERY <= level <= MAX_BATTERY:
        raise ValueError(f"Battery level {level} is not between {MIN_BATTERY} and {MAX_BATTERY}.")
    return level


async def get_devices(*, status: DeviceStatus = None, brand: str = None,
                      connection: BaseDBAsyncClient = None) -> List[Device]:
    """
    Gets all the devices in the system.

    :param status: An optional status to filter by.
    :param brand: An optional brand to filter by.
    """
    query = Device.all()

    if status is not None:
        query = query.filter(status=status)

    if brand is not None:
        query = query.filter(brand__icontains=brand)

    return await query.order_by("id").using_db(connection)


async def get_device(device_id: int, *, for_update=False, connection: BaseDBAsyncClient = None) -> Optional[Device]:
    """
    Gets a single device.

    :param for_update: Whether to lock the row until the end of the current transaction.
    """
    query = Device.filter(id=device_id)
    if for_update:
        query = query.select_for_update()
    return await query.using_db(connection).first()


async def register_device(brand: str, price_per_hour: Union[Decimal, float], *, battery_level: int = MAX_BATTERY,
                          status: DeviceStatus = DeviceStatus.AVAILABLE) -> Device:
    """
    Registers a new device with the system.

    A device can only be registered as available, or as unavailable
    while it is still charging up to the recharge threshold. Devices
    are only ever put in use by renting them.

    :raises ValueError: If the price is not positive, the battery level is out of range,
        or the device cannot start out in the given status.
    """
    price_per_hour = to_money(price_per_hour)
    if price_per_hour <= 0:
        raise ValueError("The price per hour must be positive.")

    battery_level = clean_battery_level(battery_level)
    if status is DeviceStatus.IN_USE:
        raise ValueError("A device can only be put in use by renting it.")
    elif status is DeviceStatus.UNAVAILABLE and battery_level >= RECHARGE_THRESHOLD:
        raise ValueError(f"An unavailable device must be charged below {RECHARGE_THRESHOLD}%.")
    elif status is not DeviceStatus.AVAILABLE and status is not DeviceStatus.UNAVAILABLE:
        raise ValueError(f"Unknown device status {status!r}.")

    return await Device.create(brand=brand, price_per_hour=price_per_hour, battery_level=battery_level, status=status)


async def update_device(device: Device, *, price_per_hour: Union[Decimal, float] = None,
                        battery_level: int = None, connection: BaseDBAsyncClient = None) -> Device:
    """
    Changes the price or battery level of a device. Fields left as ``None`` are not changed.

    :raises ValueError: If the price is not positive or the battery level is out of range.
    :raises ConflictError: If an unavailable device would be charged past the recharge threshold.
    """
    changed = []

    if price_per_hour is not None:
        price_per_hour = to_money(price_per_hour)
        if price_per_hour <= 0:
            raise ValueError("The price per hour must be positive.")
        device.price_per_hour = price_per_hour
        changed.append("price_per_hour")

    if battery_level is not None:
        battery_level = clean_battery_level(battery_level)
        if device.status is DeviceStatus.UNAVAILABLE and battery_level >= RECHARGE_THRESHOLD:
            raise ConflictError(
                f"Device {device.id} is charging and must stay below {RECHARGE_THRESHOLD}%.",
                device_id=device.id, status=device.status
            )
        device.battery_level = battery_level
        changed.append("battery_level")

    if changed:
        await device.save(update_fields=changed, using_db=connection)
    return device


async def delete_device(device: Device, *, connection: BaseDBAsyncClient = None):
    """
    Deletes a device.

    :raises ConflictError: If the device is rented, or has appeared in any order.
    """
    if device.status is DeviceStatus.IN_USE:
        raise ConflictError("A device cannot be deleted while it is in use.", device_id=device.id)

    if await Order.filter(device_id=device.id).using_db(connection).exists():
        raise ConflictError("A device with rental history cannot be deleted.", device_id=device.id)

    await device.delete(using_db=connection)


async def update_status(device_id: int, new_status: DeviceStatus, *, expected: DeviceStatus = None,
                        connection: BaseDBAsyncClient = None) -> Device:
    """
    Moves a device to a new status.

    The write only goes through if the device is still in the status it was read in,
    and the state machine allows moving from that status to the new one.

    :param expected: If given, the status the device must currently be in.
    :raises NotFoundError: If there is no such device.
    :raises ConflictError: If the device is not in the expected status, or the transition is not allowed.
    """
    device = await get_device(device_id, for_update=True, connection=connection)
    if device is None:
        raise NotFoundError(f"Device {device_id} does not exist.", device_id=device_id)

    current = device.status
    if expected is not None and current is not expected:
        raise ConflictError(
            f"Device {device_id} is {current.value}, not {expected.value}.",
            device_id=device_id, status=current
        )

    if not current.can_become(new_status):
        raise ConflictError(
            f"Device {device_id} cannot go from {current.value} to {new_status.value}.",
            device_id=device_id, status=current
        )

    updated = await Device.filter(id=device_id, status=current).using_db(connection).update(status=new_status)
    if not updated:
        raise ConflictError(f"Device {device_id} was changed by someone else.", device_id=device_id)

    device.status = new_status
    return device


async def update_battery(device_id: int, level: int, *, connection: BaseDBAsyncClient = None) -> int:
    """
    Sets the battery level of a device.

    :raises ValueError: If the level is outside of 0 to 100.
    :raises NotFoundError: If there is no such device.
    """
    level = clean_battery_level(level)
    updated = await Device.filter(id=device_id).using_db(connection).update(battery_level=level)
    if not updated:
        raise NotFoundError(f"Device {device_id} does not exist.", device_id=device_id)
    return level
