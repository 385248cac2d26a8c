"""
Order
---------------------------

An order is the ledger entry for a single rental. It is opened
when the device is taken and closed, exactly once, when it is
returned. While open, the duration and cost are zero and there
is neither an order code nor a return time.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, Any, Optional

from tortoise import Model, fields


class Order(Model):
    id = fields.IntField(pk=True)
    user = fields.ForeignKeyField(model_name="models.User", related_name="orders")
    device = fields.ForeignKeyField(model_name="models.Device", related_name="orders")
    brand = fields.CharField(max_length=64)

    rental_start_time: datetime = fields.DatetimeField()
    rental_duration_hours: int = fields.IntField(default=0)
    total_cost = fields.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    """The discounted cost of the rental, zero until it is returned."""

    order_code: Optional[str] = fields.CharField(max_length=40, null=True, unique=True)
    return_time: Optional[datetime] = fields.DatetimeField(null=True)
    deposit = fields.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    """The deposit held against the rental, refunded on return."""

    class Meta:
        table = "rental_order"

    @property
    def is_open(self) -> bool:
        return self.return_time is None and self.rental_duration_hours == 0

    def serialize(self, router=None, *, estimated_price=None) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "device_id": self.device_id,
            "brand": self.brand,
            "rental_start_time": self.rental_start_time,
            "deposit": self.deposit,
            "is_open": self.is_open,
        }

        if router is not None:
            data["device_url"] = router["device"].url_for(id=str(self.device_id)).path
            data["user_url"] = router["user"].url_for(id=str(self.user_id)).path

        if self.is_open:
            if estimated_price is not None:
                data["estimated_price"] = estimated_price
        else:
            data["rental_duration_hours"] = self.rental_duration_hours
            data["total_cost"] = self.total_cost
            data["order_code"] = self.order_code
            data["return_time"] = self.return_time

        return data

    def __str__(self):
        return f"[{self.id}] {self.order_code or 'open'} device {self.device_id} user {self.user_id}"
