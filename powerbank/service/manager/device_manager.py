"""
Device Manager
--------------

Handles the admin changes to the inventory. Changing or deleting a
device holds that device's lock and re-reads the row inside the
transaction, so that a rental or a battery check running at the same
time either sees the change or finishes before it.
"""

from decimal import Decimal
from typing import Union

from tortoise.transactions import in_transaction

from powerbank import logger
from powerbank.models import Device
from powerbank.service.access.devices import get_device, update_device, delete_device
from powerbank.service.exceptions import NotFoundError, persistence_errors
from powerbank.service.locks import LockManager, DeviceKey


class DeviceManager:

    def __init__(self, locks: LockManager):
        self._locks = locks

    async def update_device(self, device_id: int, *, price_per_hour: Union[Decimal, float] = None,
                            battery_level: int = None) -> Device:
        """
        Changes the price or battery level of a device.

        :raises NotFoundError: If the device does not exist.
        :raises ValueError: If the price is not positive or the battery level is out of range.
        :raises ConflictError: If an unavailable device would be charged past the recharge threshold.
        :raises LockTimeoutError: If the device is busy.
        """
        async with self._locks.acquire(DeviceKey(device_id)):
            with persistence_errors():
                async with in_transaction() as connection:
                    device = await get_device(device_id, for_update=True, connection=connection)
                    if device is None:
                        raise NotFoundError(f"Device {device_id} does not exist.", device_id=device_id)

                    device = await update_device(
                        device, price_per_hour=price_per_hour, battery_level=battery_level, connection=connection
                    )

        logger.info("Updated device %s", device)
        return device

    async def delete_device(self, device_id: int):
        """
        Deletes a device that has never been rented.

        :raises NotFoundError: If the device does not exist.
        :raises ConflictError: If the device is rented, or has appeared in any order.
        :raises LockTimeoutError: If the device is busy.
        """
        async with self._locks.acquire(DeviceKey(device_id)):
            with persistence_errors():
                async with in_transaction() as connection:
                    device = await get_device(device_id, for_update=True, connection=connection)
                    if device is None:
                        raise NotFoundError(f"Device {device_id} does not exist.", device_id=device_id)

                    await delete_device(device, connection=connection)

        logger.info("Deleted device %s", device_id)
