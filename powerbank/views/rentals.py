"""
Rental Related Views
---------------------------

Handles all the rentals CRUD.

To start a rental, go through the device.
"""
from aiohttp_apispec import docs

from powerbank.models import Order
from powerbank.serializer import JSendSchema, JSendStatus
from powerbank.serializer.decorators import returns
from powerbank.serializer.fields import Many
from powerbank.serializer.models import OrderSchema
from powerbank.service.access.orders import get_order, get_orders, get_order_by_code
from powerbank.views.base import BaseView
from powerbank.views.decorators import match_getter


class RentalsView(BaseView):
    """
    Gets a list of all rentals, or only the open ones with ``?active=true``.
    """
    url = "/rentals"
    name = "rentals"

    @docs(summary="Get All Rentals")
    @returns(JSendSchema.of(rentals=Many(OrderSchema())))
    async def get(self):
        if self.request.query.get("active", "").lower() == "true":
            orders = await self.rental_manager.active_rentals()
        else:
            orders = await get_orders()

        return {
            "status": JSendStatus.SUCCESS,
            "data": {"rentals": [await self.serialize_order(order) for order in orders]}
        }


class RentalView(BaseView):
    """
    Gets a single rental.
    """
    url = r"/rentals/{id:\d+}"
    name = "rental"
    with_rental = match_getter(get_order, 'rental', order_id='id')

    @with_rental
    @docs(summary="Get A Rental")
    @returns(JSendSchema.of(rental=OrderSchema()))
    async def get(self, rental: Order):
        return {
            "status": JSendStatus.SUCCESS,
            "data": {"rental": await self.serialize_order(rental)}
        }


class RentalByCodeView(BaseView):
    """
    Looks up a returned rental by its order code.
    """
    url = "/rentals/code/{code}"
    name = "rental_by_code"
    with_rental = match_getter(get_order_by_code, 'rental', order_code=('code', str))

    @with_rental
    @docs(summary="Get A Rental By Order Code")
    @returns(JSendSchema.of(rental=OrderSchema()))
    async def get(self, rental: Order):
        return {
            "status": JSendStatus.SUCCESS,
            "data": {"rental": await self.serialize_order(rental)}
        }


class RentalReturnView(BaseView):
    """
    Returns the device of a rental, charging the renter.
    """
    url = r"/rentals/{id:\d+}/return"
    name = "rental_return"
    with_rental = match_getter(get_order, 'rental', order_id='id')

    @with_rental
    @docs(summary="Return A Rental")
    @returns(JSendSchema.of(rental=OrderSchema()))
    async def patch(self, rental: Order):
        """
        Closes the rental now, metering the hours since it started. The deposit is
        refunded and the discounted cost is paid from the renter to the treasury.
        """
        rental = await self.rental_manager.finish(rental.id)
        return {
            "status": JSendStatus.SUCCESS,
            "data": {"rental": await self.serialize_order(rental)}
        }
