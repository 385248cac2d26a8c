"""
Device
-------------------------

Represents a rentable power bank. A device moves between three states:

- :attr:`~DeviceStatus.AVAILABLE` devices may be rented
- :attr:`~DeviceStatus.IN_USE` devices are referenced by exactly one open order
- :attr:`~DeviceStatus.UNAVAILABLE` devices are flat and recharging

Rentals move a device between available and in use, while the
:class:`~powerbank.service.background.battery_scheduler.BatteryScheduler`
drains and recharges it.
"""
from enum import Enum
from typing import Dict, Any, FrozenSet

from tortoise import Model, fields


class DeviceStatus(str, Enum):
    """
    Represents the possible states of a device.
    """

    AVAILABLE = "Available"
    IN_USE = "InUse"
    UNAVAILABLE = "Unavailable"

    @staticmethod
    def transitions() -> Dict["DeviceStatus", FrozenSet["DeviceStatus"]]:
        """Maps each state to the states it may move to."""
        return {
            DeviceStatus.AVAILABLE: frozenset({DeviceStatus.IN_USE}),
            DeviceStatus.IN_USE: frozenset({DeviceStatus.AVAILABLE, DeviceStatus.UNAVAILABLE}),
            DeviceStatus.UNAVAILABLE: frozenset({DeviceStatus.AVAILABLE}),
        }

    def can_become(self, other: "DeviceStatus") -> bool:
        """Checks whether the state machine allows moving from this state to the other."""
        return other in self.transitions()[self]

    @property
    def rentable(self) -> bool:
        return self is DeviceStatus.AVAILABLE


class Device(Model):
    id = fields.IntField(pk=True)
    status: DeviceStatus = fields.CharEnumField(DeviceStatus, max_length=16, default=DeviceStatus.AVAILABLE)
    battery_level: int = fields.IntField(default=100)
    price_per_hour = fields.DecimalField(max_digits=10, decimal_places=2)
    """The price of the device per hour."""
    brand: str = fields.CharField(max_length=64)

    def serialize(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "battery_level": self.battery_level,
            "price_per_hour": self.price_per_hour,
            "brand": self.brand,
            "available": self.status.rentable,
        }

    def __str__(self):
        return f"[{self.id}] {self.brand} ({self.status.value}, {self.battery_level}%)"
