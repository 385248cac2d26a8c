"""
The models package contains all the models used on the server.

.. autoclasstree:: powerbank.models
"""

from .device import Device, DeviceStatus
from .order import Order
from .user import User, Membership
