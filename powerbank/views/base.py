"""
Base
------------------------

The base view for the API. This view contains functionality
required in all other views.
"""

from typing import Optional

from aiohttp.abc import Application
from aiohttp.web import View, AbstractRoute
from aiohttp_cors import CorsConfig, CorsViewMixin, ResourceOptions

from powerbank.models import Order
from powerbank.service.background.battery_scheduler import BatteryScheduler
from powerbank.service.manager.device_manager import DeviceManager
from powerbank.service.manager.membership_manager import MembershipManager
from powerbank.service.manager.rental_manager import RentalManager


class ViewConfigurationError(Exception):
    """
    Raised if the view doesn't provide a URL.
    """


class BaseView(View, CorsViewMixin):
    """
    The base view that all other views extend. Contains some useful
    helper functions that the extending classes can use.
    """

    url: str
    name: Optional[str]
    route: AbstractRoute
    rental_manager: RentalManager
    device_manager: DeviceManager
    membership_manager: MembershipManager
    battery_scheduler: BatteryScheduler

    cors_config = {
        "*": ResourceOptions(
            allow_credentials=True,
            expose_headers="*",
            allow_headers="*",
            allow_methods="*",
        )
    }

    @classmethod
    def register_route(cls, app: Application, base: Optional[str] = None):
        """
        Registers the view with the given router.

        :raises ViewConfigurationError: If the URL hasn't been set on the given view.
        """
        try:
            url = base + cls.url if base is not None else cls.url
        except AttributeError:
            raise ViewConfigurationError("No URL provided!")

        kwargs = {}
        name = getattr(cls, "name", None)
        if name is not None:
            kwargs["name"] = name

        cls.route = app.router.add_view(url, cls, **kwargs)
        cls.rental_manager = app["rental_manager"]
        cls.device_manager = app["device_manager"]
        cls.membership_manager = app["membership_manager"]
        cls.battery_scheduler = app["battery_scheduler"]

    @classmethod
    def enable_cors(cls, cors: CorsConfig):
        """Enables CORS on the view."""
        try:
            cors.add(cls.route, webview=True)
        except AttributeError as error:
            raise ViewConfigurationError("No route assigned. Please register the route first.") from error

    async def serialize_order(self, order: Order):
        """Serializes an order, estimating the price of open ones."""
        estimated_price = await self.rental_manager.get_price_estimate(order) if order.is_open else None
        return order.serialize(self.request.app.router, estimated_price=estimated_price)
