"""
Battery Scheduler
-----------------

This background service simulates the batteries of the devices.
Every few minutes, rented devices lose some charge and flat devices
gain some. A rented device that runs flat becomes unavailable, and
an unavailable device that charges up past the recharge threshold
becomes available to rent again.

Each device is updated on its own, holding that device's lock, so
a failure on one device is logged and the rest are still updated.
"""

import asyncio
from asyncio import CancelledError
from contextlib import suppress
from datetime import timedelta
from typing import Callable, List, NamedTuple, Optional, Tuple

from tortoise.transactions import in_transaction

from powerbank import logger
from powerbank.models import Device, DeviceStatus
from powerbank.service.access.devices import get_devices, get_device, update_battery, update_status, \
    MIN_BATTERY, MAX_BATTERY, RECHARGE_THRESHOLD
from powerbank.service.exceptions import persistence_errors
from powerbank.service.locks import LockManager, DeviceKey

CHECK_INTERVAL = timedelta(minutes=5)
BATTERY_DECREASE_RATE = 1
BATTERY_INCREASE_RATE = 1

Step = Callable[[int], Tuple[int, Optional[DeviceStatus]]]


def discharge(level: int) -> Tuple[int, Optional[DeviceStatus]]:
    """Drains a rented device, which becomes unavailable once flat."""
    level = max(MIN_BATTERY, level - BATTERY_DECREASE_RATE)
    return level, DeviceStatus.UNAVAILABLE if level == MIN_BATTERY else None


def charge(level: int) -> Tuple[int, Optional[DeviceStatus]]:
    """Charges a flat device, which becomes available once past the threshold."""
    level = min(MAX_BATTERY, level + BATTERY_INCREASE_RATE)
    return level, DeviceStatus.AVAILABLE if level >= RECHARGE_THRESHOLD else None


class TickReport(NamedTuple):
    drained: List[int]
    recharged: List[int]
    failed: List[int]


class BatteryScheduler:
    """
    Periodically updates the battery levels of all rented and charging devices.

    The scheduler is owned by the application, which starts it once the
    database is up and stops it on shutdown. Stopping prevents any further
    ticks but lets a tick that is already running finish.
    """

    def __init__(self, locks: LockManager, interval: timedelta = None):
        self.interval = interval if interval is not None else CHECK_INTERVAL
        self._locks = locks
        self._task: Optional[asyncio.Task] = None
        self._tick: Optional[asyncio.Future] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """Starts ticking, the first tick happening immediately. Does nothing if already running."""
        if self.running:
            logger.info("Battery scheduler is already running")
            return

        loop = asyncio.get_event_loop()
        self._task = loop.create_task(self.run())
        logger.info("Started battery scheduler, checking every %s", self.interval)

    async def stop(self):
        """
        Stops the scheduler, waiting for the current tick to finish.

        .. note: We suppress CancelledError so that stopping a scheduler
            that is sleeping between ticks doesn't cause issues.
        """
        if self._task is None:
            return

        task, self._task = self._task, None
        task.cancel()
        with suppress(CancelledError):
            await task

        if self._tick is not None and not self._tick.done():
            logger.info("Waiting for the current battery check to finish")
            try:
                await self._tick
            except Exception:
                logger.exception("Battery check failed")

        logger.info("Stopped battery scheduler")

    async def run(self):
        """Runs a tick at most once every ``interval``."""
        while True:
            self._tick = asyncio.ensure_future(self.tick())
            try:
                # shielded so that stopping the scheduler never interrupts a tick
                await asyncio.shield(self._tick)
            except CancelledError:
                raise
            except Exception:
                logger.exception("Battery check failed")

            await asyncio.sleep(self.interval.total_seconds())

    async def tick(self) -> TickReport:
        """Drains every rented device and charges every unavailable one."""
        logger.info("Checking battery levels")
        failed: List[int] = []

        # both passes work from the devices as they were at the start of the tick
        with persistence_errors():
            in_use = await get_devices(status=DeviceStatus.IN_USE)
            unavailable = await get_devices(status=DeviceStatus.UNAVAILABLE)

        drained = await self._update_all(in_use, DeviceStatus.IN_USE, discharge, failed)
        logger.info("Updated %s devices in use", len(drained))

        recharged = await self._update_all(unavailable, DeviceStatus.UNAVAILABLE, charge, failed)
        logger.info("Updated %s charging devices", len(recharged))

        if failed:
            logger.warning("Could not update the battery of devices %s", failed)

        return TickReport(drained, recharged, failed)

    async def _update_all(self, devices: List[Device], status: DeviceStatus, step: Step,
                          failed: List[int]) -> List[int]:
        updated = []

        for device in devices:
            try:
                if await self._update_device(device.id, status, step):
                    updated.append(device.id)
            except Exception:
                logger.exception("Failed to update the battery of device %s", device.id)
                failed.append(device.id)

        return updated

    async def _update_device(self, device_id: int, status: DeviceStatus, step: Step) -> bool:
        """
        Applies the step to a single device, as long as it is still in the given status.

        :return: Whether the device was updated.
        """
        async with self._locks.acquire(DeviceKey(device_id)):
            with persistence_errors():
                async with in_transaction() as connection:
                    device = await get_device(device_id, for_update=True, connection=connection)
                    if device is None or device.status is not status:
                        logger.debug("Device %s changed since it was listed, skipping", device_id)
                        return False

                    level, new_status = step(device.battery_level)
                    await update_battery(device_id, level, connection=connection)
                    if new_status is not None:
                        await update_status(device_id, new_status, expected=status, connection=connection)

        logger.debug(
            "Device %s battery %s -> %s%s", device_id, device.battery_level, level,
            f", now {new_status.value}" if new_status is not None else ""
        )
        return True
