"""
User
---------------------------
"""
from decimal import Decimal
from enum import Enum

from tortoise import Model, fields


class Membership(str, Enum):
    COMMON = "Common"
    VIP = "VIP"
    SVIP = "SVIP"
    ADMIN = "Admin"

    @property
    def is_vip(self) -> bool:
        """VIP and SVIP members rent without a deposit."""
        return self in (Membership.VIP, Membership.SVIP)


class User(Model):
    """
    Represents a User in the system.

    The single user with the :attr:`~Membership.ADMIN` membership is the
    treasury, and receives the income from every rental.
    """

    id = fields.IntField(pk=True)
    username = fields.CharField(max_length=64, unique=True)
    phone = fields.CharField(max_length=32, default="")

    membership: Membership = fields.CharEnumField(Membership, max_length=16, default=Membership.COMMON)
    balance = fields.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    membership_expiry = fields.DatetimeField(null=True)

    @property
    def is_treasury(self) -> bool:
        return self.membership is Membership.ADMIN

    def serialize(self):
        return {
            "id": self.id,
            "username": self.username,
            "phone": self.phone,
            "membership": self.membership,
            "balance": self.balance,
            "membership_expiry": self.membership_expiry,
        }

    def __str__(self):
        return f"[{self.id}] {self.username} ({self.membership.value})"
