"""
Device Related Views
-------------------------

Handles all the device CRUD, and the renting of devices.
"""
from http import HTTPStatus

from aiohttp import web
from aiohttp_apispec import docs

from powerbank.models import Device, DeviceStatus
from powerbank.serializer import JSendSchema, JSendStatus
from powerbank.serializer.decorators import expects, returns
from powerbank.serializer.fields import Many
from powerbank.serializer.models import DeviceSchema, DeviceCreationSchema, DeviceUpdateSchema, OrderSchema, \
    RentalCreationSchema
from powerbank.service.access.devices import get_devices, get_device, register_device
from powerbank.service.access.orders import get_orders
from powerbank.views.base import BaseView
from powerbank.views.decorators import match_getter

DEVICE_IDENTIFIER_REGEX = r"\d+"


class DevicesView(BaseView):
    """
    Gets or adds to the list of devices.
    """
    url = "/devices"
    name = "devices"

    @docs(summary="Get All Devices")
    @returns(JSendSchema.of(devices=Many(DeviceSchema())))
    async def get(self):
        """
        Lists the devices, optionally filtered by ``status`` and ``brand`` in the query string.
        """
        status = self.request.query.get("status")
        if status is not None:
            try:
                status = DeviceStatus(status)
            except ValueError:
                valid = ", ".join(s.value for s in DeviceStatus)
                raise web.HTTPBadRequest(text=JSendSchema().dumps({
                    "status": JSendStatus.FAIL,
                    "data": {"message": f"Unknown status {status}, expected one of {valid}."}
                }), content_type='application/json')

        devices = await get_devices(status=status, brand=self.request.query.get("brand"))
        return {
            "status": JSendStatus.SUCCESS,
            "data": {"devices": [device.serialize() for device in devices]}
        }

    @docs(summary="Register A Device")
    @expects(DeviceCreationSchema())
    @returns(JSendSchema.of(device=DeviceSchema()), HTTPStatus.CREATED)
    async def post(self):
        device = await register_device(**self.request["data"])
        return {
            "status": JSendStatus.SUCCESS,
            "data": {"device": device.serialize()}
        }


class DeviceView(BaseView):
    """
    Gets, updates or deletes a single device.
    """
    url = f"/devices/{{id:{DEVICE_IDENTIFIER_REGEX}}}"
    name = "device"
    with_device = match_getter(get_device, 'device', device_id='id')

    @with_device
    @docs(summary="Get A Device")
    @returns(JSendSchema.of(device=DeviceSchema()))
    async def get(self, device: Device):
        return {
            "status": JSendStatus.SUCCESS,
            "data": {"device": device.serialize()}
        }

    @with_device
    @docs(summary="Change The Price Or Battery Of A Device")
    @expects(DeviceUpdateSchema())
    @returns(JSendSchema.of(device=DeviceSchema()))
    async def patch(self, device: Device):
        device = await self.device_manager.update_device(device.id, **self.request["data"])
        return {
            "status": JSendStatus.SUCCESS,
            "data": {"device": device.serialize()}
        }

    @with_device
    @docs(summary="Delete A Device")
    async def delete(self, device: Device):
        await self.device_manager.delete_device(device.id)
        raise web.HTTPNoContent


class DeviceRentalsView(BaseView):
    """
    Gets the rental history of a device, or rents it out.
    """
    url = f"/devices/{{id:{DEVICE_IDENTIFIER_REGEX}}}/rentals"
    name = "device_rentals"
    with_device = match_getter(get_device, 'device', device_id='id')

    @with_device
    @docs(summary="Get Past Rentals For Device")
    @returns(JSendSchema.of(rentals=Many(OrderSchema())))
    async def get(self, device: Device):
        return {
            "status": JSendStatus.SUCCESS,
            "data": {"rentals": [await self.serialize_order(order) for order in await get_orders(device=device)]}
        }

    @with_device
    @docs(summary="Start A New Rental")
    @expects(RentalCreationSchema())
    @returns(JSendSchema.of(rental=OrderSchema()), HTTPStatus.CREATED)
    async def post(self, device: Device):
        """
        Rents the device to the given user. Non-members need enough balance to cover the deposit.
        """
        order = await self.rental_manager.create_rental(
            self.request["data"]["user_id"], device.id, self.request["data"].get("brand")
        )
        return {
            "status": JSendStatus.SUCCESS,
            "data": {"rental": await self.serialize_order(order)}
        }


class DeviceCurrentRentalView(BaseView):
    """
    Gets the rental the device is currently out on.
    """
    url = f"/devices/{{id:{DEVICE_IDENTIFIER_REGEX}}}/rentals/current"
    name = "device_current_rental"
    with_device = match_getter(get_device, 'device', device_id='id')

    @with_device
    @docs(summary="Get Current Rental For Device")
    @returns(
        active_rental=JSendSchema.of(rental=OrderSchema()),
        no_rental=(JSendSchema(), HTTPStatus.NOT_FOUND)
    )
    async def get(self, device: Device):
        order = await self.rental_manager.active_rental_for_device(device.id)
        if order is None:
            return "no_rental", {
                "status": JSendStatus.FAIL,
                "data": {"message": f"Device {device.id} is not being rented."}
            }

        return "active_rental", {
            "status": JSendStatus.SUCCESS,
            "data": {"rental": await self.serialize_order(order)}
        }
