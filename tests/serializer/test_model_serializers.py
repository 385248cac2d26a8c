from datetime import datetime, timezone
from decimal import Decimal

import pytest
from marshmallow import ValidationError

from powerbank.models import DeviceStatus, Membership
from powerbank.serializer import JSendSchema, JSendStatus
from powerbank.serializer.models import OrderSchema, DeviceSchema, DeviceCreationSchema, MembershipUpgradeSchema, \
    TopUpSchema

OPEN_ORDER = {
    "id": 1,
    "user_id": 1,
    "user_url": "/api/v1/users/1",
    "device_id": 2,
    "device_url": "/api/v1/devices/2",
    "brand": "Anker",
    "rental_start_time": "2024-01-01T12:00:00+00:00",
    "deposit": 99.0,
    "is_open": True,
}


def test_open_order():
    order = OrderSchema().load({**OPEN_ORDER, "estimated_price": 10.0})
    assert order["estimated_price"] == Decimal("10.00")


def test_closed_order_needs_all_fields():
    """Assert that a returned order must have its cost, code and return time."""
    with pytest.raises(ValidationError):
        OrderSchema().load({**OPEN_ORDER, "is_open": False, "total_cost": 10.0})

    order = OrderSchema().load({
        **OPEN_ORDER, "is_open": False, "total_cost": 10.0, "order_code": "ORD1",
        "return_time": "2024-01-01T13:00:00+00:00", "rental_duration_hours": 1
    })
    assert order["return_time"] == datetime(2024, 1, 1, 13, tzinfo=timezone.utc)


def test_order_cost_and_estimate():
    with pytest.raises(ValidationError):
        OrderSchema().load({
            **OPEN_ORDER, "estimated_price": 10.0, "total_cost": 10.0, "order_code": "ORD1",
            "return_time": "2024-01-01T13:00:00+00:00",
        })


def test_order_id_without_url():
    data = dict(OPEN_ORDER)
    del data["device_url"]
    with pytest.raises(ValidationError):
        OrderSchema().load(data)


def test_money_dumps_as_number():
    """Assert that decimal amounts go out as plain numbers rounded to the cent."""
    data = DeviceSchema().dump({
        "id": 1, "status": DeviceStatus.AVAILABLE, "battery_level": 100,
        "price_per_hour": Decimal("2.505"), "brand": "Anker", "available": True
    })
    assert data["price_per_hour"] == 2.51
    assert data["status"] == "Available"


def test_enum_field_rejects_unknown():
    with pytest.raises(ValidationError) as error:
        MembershipUpgradeSchema().load({"membership": "Gold", "months": 1})
    assert "membership" in error.value.messages


def test_enum_field_load():
    assert MembershipUpgradeSchema().load({"membership": "VIP", "months": 12})["membership"] is Membership.VIP


def test_top_up_rejects_nan():
    with pytest.raises(ValidationError):
        TopUpSchema().load({"amount": "NaN"})


def test_jsend_fail_needs_message():
    with pytest.raises(ValidationError):
        JSendSchema().load({"status": "fail", "data": {}})


def test_jsend_typed():
    schema = JSendSchema.of(device=DeviceSchema(only=("id", "status")))
    data = schema.load({"status": "success", "data": {"device": {"id": 1, "status": "InUse"}}})
    assert data["status"] is JSendStatus.SUCCESS
    assert data["data"]["device"]["status"] is DeviceStatus.IN_USE


@pytest.mark.parametrize("envelope", [
    {"status": "success"},
    {"status": "error", "data": {}},
])
def test_jsend_incomplete(envelope):
    with pytest.raises(ValidationError):
        JSendSchema().load(envelope)


def test_jsend_error():
    data = JSendSchema().load({"status": "error", "message": "Database down", "code": 500})
    assert data["status"] is JSendStatus.ERROR
    assert data["code"] == 500


def test_jsend_typed_ignores_extra_data():
    schema = JSendSchema.of(device=DeviceSchema(only=("id", "status")))
    data = schema.load({"status": "success", "data": {"device": {"id": 1, "status": "Available"}, "extra": 1}})
    assert "extra" not in data["data"]


@pytest.mark.parametrize("device,field", [
    ({"status": "InUse"}, "status"),
    ({"status": "Unavailable"}, "battery_level"),
    ({"status": "Unavailable", "battery_level": 30}, "battery_level"),
])
def test_device_creation_starting_status(device, field):
    with pytest.raises(ValidationError) as error:
        DeviceCreationSchema().load({"brand": "Anker", "price_per_hour": 2, **device})
    assert field in error.value.messages


def test_device_creation_unavailable():
    data = DeviceCreationSchema().load(
        {"brand": "Anker", "price_per_hour": 2, "status": "Unavailable", "battery_level": 29}
    )
    assert data["status"] is DeviceStatus.UNAVAILABLE
