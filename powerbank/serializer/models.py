"""
Model Serializers
-----------------

Defines serializers for the various models in the system,
as well as for the bodies of the requests that change them.
"""

from marshmallow import Schema, validates_schema, ValidationError, EXCLUDE
from marshmallow.fields import Integer, Boolean, String, DateTime, Url
from marshmallow.validate import Range, Length

from powerbank.models import DeviceStatus, Membership
from powerbank.service.access.devices import MIN_BATTERY, MAX_BATTERY, RECHARGE_THRESHOLD
from .fields import EnumField, Money


class DeviceSchema(Schema):
    """The schema corresponding to the :class:`~powerbank.models.device.Device` model."""

    class Meta:
        unknown = EXCLUDE

    id = Integer()
    status = EnumField(DeviceStatus, required=True)
    battery_level = Integer(validate=Range(MIN_BATTERY, MAX_BATTERY))
    price_per_hour = Money(required=True)
    brand = String(required=True)
    available = Boolean()


class DeviceCreationSchema(Schema):
    brand = String(required=True, validate=Length(min=1, max=64))
    price_per_hour = Money(required=True, validate=Range(min=0.01))
    battery_level = Integer(validate=Range(MIN_BATTERY, MAX_BATTERY))
    status = EnumField(DeviceStatus)

    @validates_schema
    def assert_starting_status(self, data, **kwargs):
        """Devices are put in use by renting them, and only flat devices start out unavailable."""
        status = data.get("status")
        if status is DeviceStatus.IN_USE:
            raise ValidationError("A device can only be put in use by renting it.", "status")
        if status is DeviceStatus.UNAVAILABLE and data.get("battery_level", MAX_BATTERY) >= RECHARGE_THRESHOLD:
            raise ValidationError(
                f"An unavailable device must be charged below {RECHARGE_THRESHOLD}%.", "battery_level"
            )


class DeviceUpdateSchema(Schema):
    price_per_hour = Money(validate=Range(min=0.01))
    battery_level = Integer(validate=Range(MIN_BATTERY, MAX_BATTERY))


class UserSchema(Schema):
    """The schema corresponding to the :class:`~powerbank.models.user.User` model."""

    class Meta:
        unknown = EXCLUDE

    id = Integer()
    username = String(required=True, validate=Length(min=1, max=64))
    phone = String(validate=Length(max=32))
    membership = EnumField(Membership)
    balance = Money()
    membership_expiry = DateTime(allow_none=True)


class TopUpSchema(Schema):
    amount = Money(required=True, validate=Range(min=0.01))


class MembershipUpgradeSchema(Schema):
    membership = EnumField(Membership, required=True)
    months = Integer(required=True, validate=Range(min=1))


class OrderSchema(Schema):
    """The schema corresponding to the :class:`~powerbank.models.order.Order` model."""

    class Meta:
        unknown = EXCLUDE

    id = Integer(required=True)

    user_id = Integer()
    user_url = Url(relative=True)

    device_id = Integer()
    device_url = Url(relative=True)

    brand = String(required=True)
    rental_start_time = DateTime(required=True)
    deposit = Money()
    is_open = Boolean(required=True)

    rental_duration_hours = Integer()
    total_cost = Money()
    order_code = String()
    return_time = DateTime()
    estimated_price = Money()

    @validates_schema
    def assert_return_time_with_cost(self, data, **kwargs):
        """
        Asserts that when a rental is complete the cost, code, and return time are all included.
        """
        closing_fields = {"total_cost", "order_code", "return_time"}
        included = closing_fields & data.keys()
        if included and included != closing_fields:
            raise ValidationError(f"A returned order must include all of {', '.join(sorted(closing_fields))}.")
        if "total_cost" in data and "estimated_price" in data:
            raise ValidationError("Order should have one of either total_cost or estimated_price.")

    @validates_schema
    def assert_url_included_with_foreign_key(self, data, **kwargs):
        """
        Asserts that when a user_id or device_id is sent that a user_url or device_url is sent with it.
        """
        if "user_id" in data and "user_url" not in data:
            raise ValidationError("User ID was included, but User URL was not.")
        if "device_id" in data and "device_url" not in data:
            raise ValidationError("Device ID was included, but Device URL was not.")


class RentalCreationSchema(Schema):
    user_id = Integer(required=True)
    brand = String(validate=Length(min=1, max=64))
